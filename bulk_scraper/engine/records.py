"""Result types produced by the fetch-extract pool."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class FailureReason(str, Enum):
    """Why an item ended up as an absorbed failure."""

    TIMEOUT = "timeout"
    CONNECTION = "connection"
    HTTP_STATUS = "http_status"
    TOO_LARGE = "too_large"
    INVALID_URL = "invalid_url"
    TRANSPORT = "transport"
    EXTRACT = "extract"
    CANCELLED = "cancelled"
    INTERNAL = "internal"


@dataclass(frozen=True, slots=True)
class ExtractedRecord:
    """Unit handed back to the caller, one per submitted URL.

    Failed items keep ``title=None`` and ``text=""`` so that consumers which
    only look at the extracted fields see an empty record, while ``error``
    still tells them what went wrong.
    """

    url: str
    title: str | None
    text: str
    error: FailureReason | None = None
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failed(cls, url: str, reason: FailureReason, detail: str | None = None) -> "ExtractedRecord":
        return cls(url=url, title=None, text="", error=reason, detail=detail)

    def as_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "title": self.title,
            "text": self.text,
            "ok": self.ok,
            "error": self.error.value if self.error else None,
            "detail": self.detail,
        }


@dataclass(slots=True)
class BatchSummary:
    """Counters describing one finished (or running) batch."""

    total: int = 0
    succeeded: int = 0
    failed: int = 0
    elapsed: float = 0.0
    failures: dict[str, int] = field(default_factory=dict)

    @property
    def throughput(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return self.total / self.elapsed

    def record(self, item: ExtractedRecord) -> None:
        self.total += 1
        if item.ok:
            self.succeeded += 1
            return
        self.failed += 1
        reason = item.error.value if item.error else FailureReason.INTERNAL.value
        self.failures[reason] = self.failures.get(reason, 0) + 1

    def as_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "elapsed": round(self.elapsed, 3),
            "throughput": round(self.throughput, 3),
            "failures": dict(self.failures),
        }


__all__ = ["BatchSummary", "ExtractedRecord", "FailureReason"]
