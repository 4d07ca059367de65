"""MongoDB exporter implementation."""

from __future__ import annotations

from ..records import ExtractedRecord
from .base import BaseExporter

try:  # noqa: SIM105
    from pymongo import MongoClient
except ImportError as exc:
    MongoClient = None  # type: ignore[assignment]
    _IMPORT_ERROR: Exception | None = exc
else:
    _IMPORT_ERROR = None


class MongoExporter(BaseExporter):
    """Buffer records and write them into a MongoDB collection on flush."""

    def __init__(self, uri: str, database: str, collection: str, batch_size: int = 100) -> None:
        if MongoClient is None:
            raise RuntimeError(f"pymongo is required for MongoExporter: {_IMPORT_ERROR}")
        self.client = MongoClient(uri)
        self.collection = self.client[database][collection]
        self.batch_size = batch_size
        self._buffer: list[dict] = []

    def export(self, record: ExtractedRecord) -> None:
        self._buffer.append(record.as_dict())
        if len(self._buffer) >= self.batch_size:
            self.flush()

    def flush(self) -> None:
        if not self._buffer:
            return
        self.collection.insert_many(self._buffer)
        self._buffer = []

    def close(self) -> None:
        self.flush()
        self.client.close()


__all__ = ["MongoExporter"]
