"""Bounded-concurrency bulk page fetching and text extraction."""

from .engine import (
    BatchSummary,
    ExtractedRecord,
    Extractor,
    FailureReason,
    FetchExtractPool,
    Fetcher,
    fetch_and_extract,
)

__version__ = "0.1.0"

__all__ = [
    "BatchSummary",
    "ExtractedRecord",
    "Extractor",
    "FailureReason",
    "FetchExtractPool",
    "Fetcher",
    "fetch_and_extract",
]
