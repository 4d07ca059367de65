"""File based exporter supporting JSON lines, CSV and plain text."""

from __future__ import annotations

import csv
import json
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..records import ExtractedRecord
from .base import BaseExporter

FIELDNAMES = ["url", "title", "text", "ok", "error", "detail"]


class FileExporter(BaseExporter):
    """Write records to a local file named ``<name>-<run_tag>.<ext>``."""

    def __init__(self, output_dir: Path, name: str, fmt: str, run_tag: str | None = None) -> None:
        if fmt not in {"json", "csv", "txt"}:
            raise ValueError(f"Unsupported file format: {fmt}")
        self.output_dir = output_dir
        self.format = fmt
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.run_tag = run_tag or datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S-%f")
        slug = re.sub(r"[^0-9A-Za-z_-]+", "_", name.strip()) or "batch"
        self.path = self.output_dir / f"{slug}-{self.run_tag}.{self._extension}"
        self._file = self.path.open("w", encoding="utf-8", newline="")
        self._csv_writer: Optional[csv.DictWriter] = None
        self._counter = 0

    @property
    def _extension(self) -> str:
        if self.format == "json":
            return "jsonl"
        return self.format

    def export(self, record: ExtractedRecord) -> None:
        self._counter += 1
        payload = record.as_dict()
        if self.format == "json":
            json.dump(payload, self._file, ensure_ascii=False)
            self._file.write("\n")
        elif self.format == "csv":
            if self._csv_writer is None:
                self._csv_writer = csv.DictWriter(self._file, fieldnames=FIELDNAMES)
                self._csv_writer.writeheader()
            self._csv_writer.writerow(payload)
        else:
            self._file.write(self._format_txt(record, index=self._counter))

    @property
    def count(self) -> int:
        return self._counter

    def flush(self) -> None:
        if not self._file.closed:
            self._file.flush()

    def close(self) -> None:
        self._file.close()

    def _format_txt(self, record: ExtractedRecord, index: int) -> str:
        title = record.title or "(no title)"
        lines = [f"{index}. {title}", f"URL: {record.url}"]
        if not record.ok:
            reason = record.error.value if record.error else "unknown"
            lines.append(f"Failed: {reason}" + (f" ({record.detail})" if record.detail else ""))
        elif record.text:
            lines.append(record.text)
        # Blank line between records
        return "\n".join(lines) + "\n\n"


__all__ = ["FileExporter", "FIELDNAMES"]
