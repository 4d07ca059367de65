"""Bounded-concurrency fetch → extract worker pool.

Every URL the pool admits from :meth:`FetchExtractPool.run` yields exactly
one :class:`ExtractedRecord`, emitted in completion order. After
:meth:`FetchExtractPool.cancel`, URLs not yet admitted are left unread and
produce no record. Per-item failures never reach the caller as exceptions:
a fetch or extraction error becomes a record with ``title=None``,
``text=""`` and an ``error`` tag. The batch favours finishing over per-item
correctness, so callers that need strict results should filter on
``record.ok``.
"""

from __future__ import annotations

import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from threading import Event, Lock
from typing import Callable, Iterable, Iterator, Optional, Tuple

import structlog

from ..config import PoolConfig
from .fetcher import FetchError
from .parser import ExtractError
from .records import BatchSummary, ExtractedRecord, FailureReason

FetchFn = Callable[[str, float], bytes]
ExtractFn = Callable[[bytes], Tuple[Optional[str], str]]
ProgressCallback = Callable[[int, ExtractedRecord], None]

# Upper bound on how long the collector sleeps between deadline/cancel checks.
_POLL_INTERVAL = 0.05
_EXHAUSTED = object()


@dataclass(slots=True)
class _Ticket:
    url: str
    fetch_started: float | None = None
    fetch_finished: bool = False
    abandoned: bool = False


def classify_failure(exc: BaseException, *, stage: str) -> FailureReason:
    """Map an exception raised by a collaborator to a failure reason."""

    if isinstance(exc, FetchError):
        return exc.reason
    if isinstance(exc, ExtractError):
        return FailureReason.EXTRACT
    if isinstance(exc, TimeoutError):
        return FailureReason.TIMEOUT
    if isinstance(exc, ConnectionError):
        return FailureReason.CONNECTION
    if stage == "extract":
        return FailureReason.EXTRACT
    return FailureReason.TRANSPORT


class FetchExtractPool:
    """Run fetch+extract over a URL stream with at most ``concurrency`` tasks in flight.

    Admission is a sliding window: as soon as one task finishes the next URL
    is submitted, so slow pages never hold back a whole round. A pool runs a
    single batch; build a new instance per run.

    A fetch that ignores its timeout is reported as ``timeout`` once it runs
    past ``timeout + timeout_grace``, but its thread keeps the executor slot
    until the call returns. With ``concurrency=1`` the next URL waits for it.
    """

    def __init__(
        self,
        fetch: FetchFn,
        extract: ExtractFn,
        config: PoolConfig | None = None,
        on_progress: ProgressCallback | None = None,
        logger: structlog.BoundLogger | None = None,
    ) -> None:
        if not callable(fetch) or not callable(extract):
            raise TypeError("fetch and extract must be callables")
        # Re-validate so a config mutated after construction is still rejected up front.
        self.config = PoolConfig.model_validate((config or PoolConfig()).model_dump())
        self._fetch = fetch
        self._extract = extract
        self.on_progress = on_progress
        self.logger = logger or structlog.get_logger("bulk_scraper.pool")
        self._lock = Lock()
        self._cancel = Event()
        self._started = False
        self._started_at: float | None = None
        self._finished_at: float | None = None
        self._completed = 0
        self._summary = BatchSummary()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def summary(self) -> BatchSummary:
        with self._lock:
            snapshot = BatchSummary(
                total=self._summary.total,
                succeeded=self._summary.succeeded,
                failed=self._summary.failed,
                failures=dict(self._summary.failures),
            )
            if self._started_at is not None:
                end = self._finished_at if self._finished_at is not None else time.perf_counter()
                snapshot.elapsed = end - self._started_at
        return snapshot

    def cancel(self) -> None:
        """Stop admitting new URLs; queued tasks are emitted as ``cancelled``."""

        if not self._cancel.is_set():
            self._cancel.set()
            self.logger.info("batch_cancel_requested", completed=self.completed)

    def run(self, urls: Iterable[str]) -> Iterator[ExtractedRecord]:
        with self._lock:
            if self._started:
                raise RuntimeError("FetchExtractPool instances run a single batch")
            self._started = True
        return self._iterate(iter(urls))

    # ------------------------------------------------------------------
    # Collector side (caller's thread)
    # ------------------------------------------------------------------
    def _iterate(self, source: Iterator[str]) -> Iterator[ExtractedRecord]:
        executor = ThreadPoolExecutor(
            max_workers=self.config.concurrency, thread_name_prefix="fetch-pool"
        )
        pending: dict[Future[ExtractedRecord], _Ticket] = {}
        with self._lock:
            self._started_at = time.perf_counter()
        self.logger.info(
            "batch_started",
            concurrency=self.config.concurrency,
            timeout=self.config.timeout,
        )
        try:
            self._admit(executor, source, pending)
            while pending:
                done, _ = wait(
                    list(pending),
                    timeout=self._wait_timeout(pending),
                    return_when=FIRST_COMPLETED,
                )
                for future in done:
                    ticket = pending.pop(future)
                    yield self._emit(self._collect(future, ticket))
                for future in self._overdue(pending):
                    ticket = pending.pop(future)
                    self.logger.warning(
                        "item_failed",
                        url=ticket.url,
                        reason=FailureReason.TIMEOUT.value,
                        error="fetch exceeded deadline, abandoned",
                    )
                    yield self._emit(
                        ExtractedRecord.failed(
                            ticket.url,
                            FailureReason.TIMEOUT,
                            f"No response within {self.config.timeout}s",
                        )
                    )
                if self._cancel.is_set():
                    queued = [item for item in pending if item.cancel()]
                    for future in queued:
                        ticket = pending.pop(future)
                        yield self._emit(
                            ExtractedRecord.failed(ticket.url, FailureReason.CANCELLED, "Batch cancelled")
                        )
                else:
                    self._admit(executor, source, pending)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)
            with self._lock:
                self._finished_at = time.perf_counter()
            self.logger.info("batch_finished", **self.summary.as_dict())

    def _admit(
        self,
        executor: ThreadPoolExecutor,
        source: Iterator[str],
        pending: dict[Future[ExtractedRecord], _Ticket],
    ) -> None:
        while len(pending) < self.config.concurrency and not self._cancel.is_set():
            url = next(source, _EXHAUSTED)
            if url is _EXHAUSTED:
                return
            ticket = _Ticket(url=url)
            pending[executor.submit(self._process, ticket)] = ticket

    def _wait_timeout(self, pending: dict[Future[ExtractedRecord], _Ticket]) -> float:
        limit = self.config.timeout + self.config.timeout_grace
        now = time.monotonic()
        candidates = [_POLL_INTERVAL]
        with self._lock:
            for ticket in pending.values():
                if ticket.fetch_started is not None and not ticket.fetch_finished:
                    candidates.append(ticket.fetch_started + limit - now)
        return max(0.0, min(candidates))

    def _overdue(
        self, pending: dict[Future[ExtractedRecord], _Ticket]
    ) -> list[Future[ExtractedRecord]]:
        limit = self.config.timeout + self.config.timeout_grace
        now = time.monotonic()
        overdue: list[Future[ExtractedRecord]] = []
        with self._lock:
            for future, ticket in pending.items():
                if ticket.fetch_started is None or ticket.fetch_finished or future.done():
                    continue
                if now - ticket.fetch_started > limit:
                    ticket.abandoned = True
                    overdue.append(future)
        return overdue

    def _collect(self, future: Future[ExtractedRecord], ticket: _Ticket) -> ExtractedRecord:
        try:
            return future.result()
        except Exception as exc:  # noqa: BLE001
            return self._absorb(ticket.url, FailureReason.INTERNAL, exc)

    def _emit(self, record: ExtractedRecord) -> ExtractedRecord:
        with self._lock:
            self._completed += 1
            completed = self._completed
            self._summary.record(record)
        if self.on_progress is not None:
            try:
                self.on_progress(completed, record)
            except Exception as exc:  # noqa: BLE001
                self.logger.warning("progress_callback_failed", url=record.url, error=str(exc))
        return record

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------
    def _process(self, ticket: _Ticket) -> ExtractedRecord:
        url = ticket.url
        with self._lock:
            ticket.fetch_started = time.monotonic()
        content: bytes | None = None
        error: Exception | None = None
        try:
            content = self._fetch(url, self.config.timeout)
        except Exception as exc:  # noqa: BLE001
            error = exc
        with self._lock:
            ticket.fetch_finished = True
            abandoned = ticket.abandoned
        if abandoned:
            # Already reported as a timeout; the late outcome is dropped.
            return ExtractedRecord.failed(url, FailureReason.TIMEOUT, "abandoned")
        if error is not None:
            return self._absorb(url, classify_failure(error, stage="fetch"), error)
        try:
            title, text = self._extract(content)
        except Exception as exc:  # noqa: BLE001
            return self._absorb(url, classify_failure(exc, stage="extract"), exc)
        return ExtractedRecord(url=url, title=title, text=text or "")

    def _absorb(self, url: str, reason: FailureReason, exc: BaseException) -> ExtractedRecord:
        self.logger.warning("item_failed", url=url, reason=reason.value, error=str(exc))
        return ExtractedRecord.failed(url, reason, str(exc) or type(exc).__name__)


def fetch_and_extract(
    urls: Iterable[str],
    fetch: FetchFn,
    extract: ExtractFn,
    *,
    concurrency: int = 8,
    timeout: float = 10.0,
    on_progress: ProgressCallback | None = None,
) -> Iterator[ExtractedRecord]:
    """Validate settings now, then lazily yield one record per URL."""

    pool = FetchExtractPool(
        fetch,
        extract,
        PoolConfig(concurrency=concurrency, timeout=timeout),
        on_progress=on_progress,
    )
    return pool.run(urls)


__all__ = [
    "ExtractFn",
    "FetchExtractPool",
    "FetchFn",
    "ProgressCallback",
    "classify_failure",
    "fetch_and_extract",
]
