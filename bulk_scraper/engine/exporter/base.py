"""Exporter Service Provider Interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from threading import Lock
from typing import Iterable

from ..records import ExtractedRecord


class BaseExporter(ABC):
    """Uniform sink contract: records arrive one at a time, in pool order."""

    @abstractmethod
    def export(self, record: ExtractedRecord) -> None:
        """Persist a single record."""

    def export_many(self, records: Iterable[ExtractedRecord]) -> int:
        count = 0
        for record in records:
            self.export(record)
            count += 1
        return count

    @abstractmethod
    def flush(self) -> None:
        """Flush buffered data to destination."""

    @abstractmethod
    def close(self) -> None:
        """Release underlying resources."""

    def __enter__(self) -> "BaseExporter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.flush()
        self.close()


class MemoryExporter(BaseExporter):
    """Keep records in a list; handy for library use and tests."""

    def __init__(self) -> None:
        self._lock = Lock()
        self.records: list[ExtractedRecord] = []

    def export(self, record: ExtractedRecord) -> None:
        with self._lock:
            self.records.append(record)

    def flush(self) -> None:
        return

    def close(self) -> None:
        return


class NullExporter(BaseExporter):
    """Discard records (``--format none``)."""

    def export(self, record: ExtractedRecord) -> None:
        return

    def flush(self) -> None:
        return

    def close(self) -> None:
        return


__all__ = ["BaseExporter", "MemoryExporter", "NullExporter"]
