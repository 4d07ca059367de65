"""Export extracted records to an SQLite table."""

from __future__ import annotations

import sqlite3
from pathlib import Path

from ..records import ExtractedRecord
from .base import BaseExporter


class SQLiteExporter(BaseExporter):
    """Persist one row per record; commits on flush."""

    def __init__(self, path: Path, table: str = "records") -> None:
        if not table.isidentifier():
            raise ValueError(f"Invalid table name: {table}")
        self.path = path
        self.table = table
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.path)
        self.conn.execute(
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                url TEXT NOT NULL,
                title TEXT,
                text TEXT NOT NULL,
                ok INTEGER NOT NULL,
                error TEXT,
                detail TEXT
            )
            """
        )
        self.conn.commit()

    def export(self, record: ExtractedRecord) -> None:
        self.conn.execute(
            f"INSERT INTO {self.table}(url, title, text, ok, error, detail) VALUES (?, ?, ?, ?, ?, ?)",
            (
                record.url,
                record.title,
                record.text,
                int(record.ok),
                record.error.value if record.error else None,
                record.detail,
            ),
        )

    def flush(self) -> None:
        self.conn.commit()

    def close(self) -> None:
        self.conn.commit()
        self.conn.close()


__all__ = ["SQLiteExporter"]
