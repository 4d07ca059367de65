"""Engine components: fetch → extract → pool → export."""

from .fetcher import FetchError, FetchResponse, FetchTimeout, Fetcher
from .parser import ExtractError, ExtractedPage, Extractor
from .pool import FetchExtractPool, fetch_and_extract
from .records import BatchSummary, ExtractedRecord, FailureReason

__all__ = [
    "BatchSummary",
    "ExtractError",
    "ExtractedPage",
    "ExtractedRecord",
    "Extractor",
    "FailureReason",
    "FetchError",
    "FetchExtractPool",
    "FetchResponse",
    "FetchTimeout",
    "Fetcher",
    "fetch_and_extract",
]
