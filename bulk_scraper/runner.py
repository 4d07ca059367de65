"""Batch runner wiring together fetching, extraction, the pool, export and progress."""

from __future__ import annotations

from collections.abc import Sized
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Any, Iterable

import httpx
import structlog

from .config import ConfigRepository, GlobalConfig, PoolConfig, read_url_list
from .engine import BatchSummary, Extractor, FetchExtractPool, Fetcher
from .engine.exporter import (
    BaseExporter,
    FileExporter,
    MongoExporter,
    NullExporter,
    SQLiteExporter,
)
from .infra import UserAgentPool
from .logging_conf import batch_logger, configure_logging
from .ui import ProgressReporter


@dataclass(slots=True)
class RunResult:
    name: str
    summary: BatchSummary
    output_path: Path | None = None


class BatchRunner:
    """Run one URL batch end to end and return its summary."""

    def __init__(
        self,
        config_repository: ConfigRepository | None = None,
        global_config: GlobalConfig | None = None,
        transport: httpx.BaseTransport | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if global_config is None:
            repository = config_repository or ConfigRepository()
            global_config = repository.load_global_config()
        self.global_config = global_config
        self.transport = transport
        self.logger = logger or configure_logging().bind(component="runner")
        self._pool_lock = Lock()
        self._active_pool: FetchExtractPool | None = None

    def cancel(self) -> None:
        with self._pool_lock:
            pool = self._active_pool
        if pool is not None:
            pool.cancel()

    def run_file(self, path: Path, **kwargs: Any) -> RunResult:
        urls = read_url_list(path)
        kwargs.setdefault("name", path.stem)
        return self.run(urls, **kwargs)

    def run(
        self,
        urls: Iterable[str],
        *,
        name: str = "batch",
        concurrency: int | None = None,
        timeout: float | None = None,
        exporter: BaseExporter | None = None,
        progress: ProgressReporter | None = None,
    ) -> RunResult:
        overrides = {
            key: value
            for key, value in (("concurrency", concurrency), ("timeout", timeout))
            if value is not None
        }
        # Validate before any client or output file is opened.
        pool_config = PoolConfig.model_validate({**self.global_config.pool.model_dump(), **overrides})

        fetch_config = self.global_config.fetch
        extractor = Extractor(self.global_config.extract)
        run_tag = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S-%f")
        progress = progress or ProgressReporter(
            enabled=self.global_config.enable_progress_bar,
            max_url_length=self.global_config.max_url_display_length,
        )
        progress.set_label(name)
        total = len(urls) if isinstance(urls, Sized) else None

        with Fetcher(
            fetch_config,
            UserAgentPool.from_config(fetch_config),
            logger=self.logger.bind(component="fetcher"),
            transport=self.transport,
        ) as fetcher:
            pool = FetchExtractPool(
                fetcher.fetch_content,
                extractor.extract,
                pool_config,
                on_progress=progress.on_record,
                logger=batch_logger(name).bind(component="pool"),
            )
            exporter = exporter or self._create_exporter(name, run_tag)
            with self._pool_lock:
                self._active_pool = pool

            self.logger.info(
                "run_started",
                name=name,
                total=total,
                output=self.global_config.output.format,
            )
            try:
                progress.start(total=total)
                for record in pool.run(urls):
                    exporter.export(record)
            finally:
                progress.close()
                with self._pool_lock:
                    self._active_pool = None
                try:
                    exporter.flush()
                finally:
                    exporter.close()

        summary = pool.summary
        output_path = getattr(exporter, "path", None)
        self.logger.info(
            "run_finished",
            name=name,
            output_path=str(output_path) if output_path else None,
            **summary.as_dict(),
        )
        return RunResult(name=name, summary=summary, output_path=output_path)

    def _create_exporter(self, name: str, run_tag: str) -> BaseExporter:
        output = self.global_config.output
        base_dir = Path(output.outputs_dir)
        if output.format in {"json", "csv", "txt"}:
            return FileExporter(base_dir, name, output.format, run_tag=run_tag)
        if output.format == "sqlite":
            base_dir.mkdir(parents=True, exist_ok=True)
            return SQLiteExporter(base_dir / f"{name}.db")
        if output.format == "mongodb":
            return MongoExporter(output.mongo_uri, database=output.mongo_database, collection=name)
        if output.format == "none":
            return NullExporter()
        raise ValueError(f"Unsupported output format: {output.format}")


__all__ = ["BatchRunner", "RunResult"]
