from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest
from pydantic import ValidationError

from bulk_scraper.config import GlobalConfig, OutputConfig
from bulk_scraper.engine import Fetcher
from bulk_scraper.engine.exporter import MemoryExporter
from bulk_scraper.runner import BatchRunner

PAGES = {
    "/one": b"<html><head><title>One</title></head><body><p>first page</p></body></html>",
    "/two": b"<html><head><title>Two</title></head><body><p>second page</p></body></html>",
}


def _handler(request: httpx.Request) -> httpx.Response:
    body = PAGES.get(request.url.path)
    if body is None:
        return httpx.Response(404, content=b"missing")
    return httpx.Response(200, content=body, headers={"Content-Type": "text/html"})


URLS = ["https://site.test/one", "https://site.test/two", "https://site.test/gone"]


def test_run_exports_every_record(sample_global_config: GlobalConfig) -> None:
    runner = BatchRunner(global_config=sample_global_config, transport=httpx.MockTransport(_handler))

    result = runner.run(URLS, name="demo", concurrency=2, timeout=2.0)

    assert result.summary.total == 3
    assert result.summary.succeeded == 2
    assert result.summary.failures == {"http_status": 1}
    assert result.output_path is not None
    assert result.output_path.suffix == ".jsonl"
    rows = [json.loads(line) for line in result.output_path.read_text(encoding="utf-8").splitlines()]
    by_url = {row["url"]: row for row in rows}
    assert by_url["https://site.test/one"]["title"] == "One"
    assert by_url["https://site.test/two"]["text"] == "second page"
    assert by_url["https://site.test/gone"]["error"] == "http_status"
    assert by_url["https://site.test/gone"]["title"] is None


def test_run_with_explicit_exporter(sample_global_config: GlobalConfig) -> None:
    runner = BatchRunner(global_config=sample_global_config, transport=httpx.MockTransport(_handler))
    exporter = MemoryExporter()

    result = runner.run(URLS[:2], exporter=exporter)

    assert result.output_path is None
    assert sorted(record.title for record in exporter.records) == ["One", "Two"]


def test_run_with_format_none(tmp_path: Path) -> None:
    config = GlobalConfig(
        output=OutputConfig(format="none", outputs_dir=tmp_path / "out"),
        enable_progress_bar=False,
    )
    runner = BatchRunner(global_config=config, transport=httpx.MockTransport(_handler))

    result = runner.run(URLS[:1])

    assert result.summary.succeeded == 1
    assert result.output_path is None
    assert not (tmp_path / "out").exists()


def test_run_sqlite_output(tmp_path: Path) -> None:
    config = GlobalConfig(
        output=OutputConfig(format="sqlite", outputs_dir=tmp_path / "out"),
        enable_progress_bar=False,
    )
    runner = BatchRunner(global_config=config, transport=httpx.MockTransport(_handler))

    result = runner.run(URLS, name="sites")

    assert result.output_path == tmp_path / "out" / "sites.db"
    assert result.output_path.exists()


def test_invalid_concurrency_fails_before_output(sample_global_config: GlobalConfig) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200, content=b"<p>x</p>")

    runner = BatchRunner(global_config=sample_global_config, transport=httpx.MockTransport(handler))

    with pytest.raises(ValidationError):
        runner.run(URLS, concurrency=0)

    assert calls == []
    assert not sample_global_config.output.outputs_dir.exists()


def test_run_file_uses_stem_as_name(sample_global_config: GlobalConfig, tmp_path: Path) -> None:
    url_file = tmp_path / "seeds.txt"
    url_file.write_text("https://site.test/one\n", encoding="utf-8")
    runner = BatchRunner(global_config=sample_global_config, transport=httpx.MockTransport(_handler))

    result = runner.run_file(url_file)

    assert result.name == "seeds"
    assert result.output_path.name.startswith("seeds-")


@pytest.fixture
def closed_fetchers(monkeypatch: pytest.MonkeyPatch) -> list[Fetcher]:
    closed: list[Fetcher] = []
    original = Fetcher.close

    def tracking_close(self: Fetcher) -> None:
        closed.append(self)
        original(self)

    monkeypatch.setattr(Fetcher, "close", tracking_close)
    return closed


def test_client_closed_when_exporter_cannot_be_built(
    sample_global_config: GlobalConfig, closed_fetchers: list[Fetcher], monkeypatch: pytest.MonkeyPatch
) -> None:
    runner = BatchRunner(global_config=sample_global_config, transport=httpx.MockTransport(_handler))

    def broken_exporter(name: str, run_tag: str):
        raise RuntimeError("pymongo is required for MongoExporter")

    monkeypatch.setattr(runner, "_create_exporter", broken_exporter)

    with pytest.raises(RuntimeError):
        runner.run(URLS)

    assert len(closed_fetchers) == 1


class _FailingFlushExporter(MemoryExporter):
    def __init__(self) -> None:
        super().__init__()
        self.closed = False

    def flush(self) -> None:
        raise OSError("disk full")

    def close(self) -> None:
        self.closed = True


def test_sink_and_client_closed_when_flush_fails(
    sample_global_config: GlobalConfig, closed_fetchers: list[Fetcher]
) -> None:
    runner = BatchRunner(global_config=sample_global_config, transport=httpx.MockTransport(_handler))
    exporter = _FailingFlushExporter()

    with pytest.raises(OSError):
        runner.run(URLS[:1], exporter=exporter)

    assert exporter.closed
    assert len(closed_fetchers) == 1


def test_same_second_runs_write_separate_files(sample_global_config: GlobalConfig) -> None:
    config = sample_global_config.model_copy(
        update={"output": sample_global_config.output.model_copy(update={"format": "csv"})}
    )
    runner = BatchRunner(global_config=config, transport=httpx.MockTransport(_handler))

    first = runner.run(URLS[:1], name="twice")
    second = runner.run(URLS[:1], name="twice")

    assert first.output_path != second.output_path
    for path in (first.output_path, second.output_path):
        lines = path.read_text(encoding="utf-8").splitlines()
        assert lines.count("url,title,text,ok,error,detail") == 1
