from __future__ import annotations

import time

import httpx
import pytest

from bulk_scraper.config import FetchConfig
from bulk_scraper.engine import FailureReason, FetchError, FetchTimeout, Fetcher
from bulk_scraper.infra import UserAgentPool


def _fetcher(handler, **config) -> Fetcher:
    return Fetcher(FetchConfig(**config), transport=httpx.MockTransport(handler))


def test_fetch_returns_body_and_closes_connection() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"<html><title>Hi</title></html>")

    with _fetcher(handler, extra_headers={"Accept-Language": "en"}) as fetcher:
        response = fetcher.fetch("https://example.com/", timeout=2.0)

    assert response.status_code == 200
    assert response.content == b"<html><title>Hi</title></html>"
    assert seen[0].headers["Connection"] == "close"
    assert seen[0].headers["Accept-Language"] == "en"
    assert seen[0].headers["User-Agent"].startswith("Mozilla/5.0")


def test_fetch_content_returns_bytes_only() -> None:
    fetcher = _fetcher(lambda request: httpx.Response(200, content=b"payload"))
    try:
        assert fetcher.fetch_content("https://example.com/", timeout=1.0) == b"payload"
    finally:
        fetcher.close()


def test_user_agent_comes_from_pool() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.headers["User-Agent"])
        return httpx.Response(200, content=b"ok")

    fetcher = Fetcher(
        FetchConfig(),
        ua_pool=UserAgentPool(["UA-Only"]),
        transport=httpx.MockTransport(handler),
    )
    fetcher.fetch("https://example.com/", timeout=1.0)
    fetcher.close()

    assert seen == ["UA-Only"]


@pytest.mark.parametrize("status", [404, 500, 503])
def test_error_status_is_a_fetch_failure(status: int) -> None:
    fetcher = _fetcher(lambda request: httpx.Response(status, content=b"nope"))

    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("https://example.com/missing", timeout=1.0)

    assert excinfo.value.reason is FailureReason.HTTP_STATUS
    assert str(status) in str(excinfo.value)


def test_transport_timeout_maps_to_fetch_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("read timed out", request=request)

    with pytest.raises(FetchTimeout) as excinfo:
        _fetcher(handler).fetch("https://example.com/", timeout=0.5)

    assert excinfo.value.reason is FailureReason.TIMEOUT
    assert isinstance(excinfo.value, FetchError)


def test_connect_error_maps_to_connection() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchError) as excinfo:
        _fetcher(handler).fetch("https://example.com/", timeout=0.5)

    assert excinfo.value.reason is FailureReason.CONNECTION


def test_other_transport_errors_map_to_transport() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.RemoteProtocolError("server hung up", request=request)

    with pytest.raises(FetchError) as excinfo:
        _fetcher(handler).fetch("https://example.com/", timeout=0.5)

    assert excinfo.value.reason is FailureReason.TRANSPORT


def test_unsupported_scheme_is_invalid_url() -> None:
    fetcher = Fetcher(FetchConfig())
    try:
        with pytest.raises(FetchError) as excinfo:
            fetcher.fetch("ftp://example.com/file.html", timeout=0.5)
    finally:
        fetcher.close()

    assert excinfo.value.reason is FailureReason.INVALID_URL


def test_declared_oversized_body_is_rejected() -> None:
    fetcher = _fetcher(
        lambda request: httpx.Response(200, content=b"x" * 100),
        max_content_bytes=10,
    )

    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("https://example.com/big", timeout=1.0)

    assert excinfo.value.reason is FailureReason.TOO_LARGE


def test_streamed_oversized_body_is_rejected() -> None:
    def chunks():
        for _ in range(5):
            yield b"y" * 8

    fetcher = _fetcher(lambda request: httpx.Response(200, content=chunks()), max_content_bytes=20)

    with pytest.raises(FetchError) as excinfo:
        fetcher.fetch("https://example.com/stream", timeout=1.0)

    assert excinfo.value.reason is FailureReason.TOO_LARGE


def test_slow_body_hits_total_deadline() -> None:
    def trickle():
        for _ in range(10):
            time.sleep(0.05)
            yield b"<p>chunk</p>"

    fetcher = _fetcher(lambda request: httpx.Response(200, content=trickle()))

    with pytest.raises(FetchTimeout):
        fetcher.fetch("https://example.com/slow", timeout=0.12)


def test_is_failure_helper() -> None:
    assert Fetcher._is_failure(httpx.Response(404))
    assert not Fetcher._is_failure(httpx.Response(302))
    assert not Fetcher._is_failure(object())
