"""Scripted collaborators shared by the test modules."""

from __future__ import annotations

import time
from threading import Lock
from typing import Any, Callable


def make_page(title: str | None, body: str) -> bytes:
    head = f"<head><title>{title}</title></head>" if title is not None else "<head></head>"
    return f"<html>{head}<body>{body}</body></html>".encode("utf-8")


class FakeFetch:
    """Scripted fetch capability recording calls and peak concurrency."""

    def __init__(
        self,
        pages: dict[str, bytes | Exception] | None = None,
        delay: float | Callable[[str], float] = 0.0,
        default: bytes | Exception | None = None,
    ) -> None:
        self.pages = pages or {}
        self.delay = delay
        self.default = default if default is not None else make_page("Default", "<p>default body</p>")
        self.calls: list[tuple[str, float]] = []
        self.in_flight = 0
        self.peak = 0
        self._lock = Lock()

    def __call__(self, url: str, timeout: float) -> bytes:
        with self._lock:
            self.calls.append((url, timeout))
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
        try:
            delay = self.delay(url) if callable(self.delay) else self.delay
            if delay:
                time.sleep(delay)
            outcome: Any = self.pages.get(url, self.default)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        finally:
            with self._lock:
                self.in_flight -= 1
