"""Exporter SPI and implementations."""

from .base import BaseExporter, MemoryExporter, NullExporter
from .file_exporter import FileExporter
from .mongo_exporter import MongoExporter
from .sqlite_exporter import SQLiteExporter

__all__ = [
    "BaseExporter",
    "FileExporter",
    "MemoryExporter",
    "MongoExporter",
    "NullExporter",
    "SQLiteExporter",
]
