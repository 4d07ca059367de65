"""structlog setup: JSON events to the console, ``scraper.log`` and ``error.log``.

Batches can additionally get their own file under ``logs/batches`` so a
single run can be inspected with ``bulk-scraper log show --batch NAME``.
"""

from __future__ import annotations

import logging
import logging.config
import re
from pathlib import Path
from typing import Any

import structlog

from .config.loader import project_home

ROOT_LOGGER = "bulk_scraper"
_LOGGING_INITIALISED = False


def default_log_dir() -> Path:
    return project_home() / "logs"


def _handler(level: str, filename: Path | None = None) -> dict[str, Any]:
    if filename is None:
        return {"class": "logging.StreamHandler", "level": level, "formatter": "json"}
    return {
        "class": "logging.FileHandler",
        "level": level,
        "filename": str(filename),
        "encoding": "utf-8",
        "formatter": "json",
    }


def _dict_config(log_dir: Path, verbose: bool) -> dict[str, Any]:
    level = "DEBUG" if verbose else "INFO"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.json.JsonFormatter",
                "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
            }
        },
        "handlers": {
            # Per-item failures are warnings; keep them off the terminal unless asked.
            "console": _handler(level if verbose else "ERROR"),
            "scraper_file": _handler("INFO", log_dir / "scraper.log"),
            "error_file": _handler("ERROR", log_dir / "error.log"),
        },
        "loggers": {
            ROOT_LOGGER: {
                "handlers": ["console", "scraper_file", "error_file"],
                "level": level,
                "propagate": False,
            },
        },
    }


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> structlog.BoundLogger:
    """Configure stdlib handlers and structlog once, then return the app logger."""

    global _LOGGING_INITIALISED
    if not _LOGGING_INITIALISED:
        log_dir = log_dir or default_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
        logging.config.dictConfig(_dict_config(log_dir, verbose))
        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger(ROOT_LOGGER)


def batch_log_path(name: str) -> Path:
    slug = re.sub(r"[^0-9A-Za-z_-]+", "_", name.strip()) or "batch"
    return default_log_dir() / "batches" / f"{slug}.log"


def batch_logger(name: str, verbose: bool = False) -> structlog.BoundLogger:
    """Logger for one batch; its events also land in ``logs/batches/<name>.log``."""

    configure_logging(verbose)
    path = batch_log_path(name)
    path.parent.mkdir(parents=True, exist_ok=True)
    logger_name = f"{ROOT_LOGGER}.batch.{path.stem}"
    py_logger = logging.getLogger(logger_name)
    known = {getattr(handler, "baseFilename", None) for handler in py_logger.handlers}
    if str(path.resolve()) not in known:
        file_handler = logging.FileHandler(path, encoding="utf-8")
        parent_handlers = logging.getLogger(ROOT_LOGGER).handlers
        if parent_handlers:
            file_handler.setFormatter(parent_handlers[0].formatter)
        file_handler.setLevel(logging.INFO)
        py_logger.addHandler(file_handler)
    return structlog.get_logger(logger_name).bind(batch=name)


def available_batch_logs() -> list[Path]:
    batches_dir = default_log_dir() / "batches"
    if not batches_dir.exists():
        return []
    return sorted(batches_dir.glob("*.log"))


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists() or line_count <= 0:
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


__all__ = [
    "available_batch_logs",
    "batch_log_path",
    "batch_logger",
    "configure_logging",
    "default_log_dir",
    "tail_log",
]
