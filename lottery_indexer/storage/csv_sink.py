"""
Append-only CSV sink for lottery transaction rows.

Responsibilities:
- Write rows under a fixed header (CSV_FIELDS by default).
- If an existing file was written under a different header, re-read its rows
  and rewrite the whole file under the current header before appending, so the
  file never mixes row shapes. Columns no longer in the header are dropped.
- Full rewrites go through a temp file in the same directory and os.replace.
- Any I/O or CSV error surfaces as PersistenceError; the caller must not treat
  the batch as committed.
"""

from __future__ import annotations

import csv
import os
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, Sequence

from lottery_indexer.classifier.engine import CSV_FIELDS, format_decimal
from lottery_indexer.core.exceptions import PersistenceError
from lottery_indexer.lottery_logging import get_logger

logger = get_logger(__name__)


def format_cell(value: Any) -> str:
    """CSV text for one value: '' for None, true/false for bools, plain decimals."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return format_decimal(value)
    return str(value)


class CsvRecordSink:
    """Persist flat rows to one CSV file with a stable header."""

    def __init__(self, path: Path | str, fieldnames: Sequence[str] = CSV_FIELDS) -> None:
        self.path = Path(path)
        self.fieldnames = list(fieldnames)

    def read_header(self) -> list[str] | None:
        """Header of the existing file, or None when the file is missing or empty."""
        if not self.path.is_file():
            return None
        with self.path.open(newline="", encoding="utf-8") as f:
            first = next(csv.reader(f), None)
        return list(first) if first else None

    def read_rows(self) -> list[dict[str, str]]:
        if not self.path.is_file():
            return []
        with self.path.open(newline="", encoding="utf-8") as f:
            return list(csv.DictReader(f))

    def append(self, rows: Iterable[dict[str, Any]]) -> int:
        """Append rows; returns how many were written. Raises PersistenceError."""
        batch = [self._shape(r) for r in rows]
        if not batch:
            return 0
        try:
            header = self.read_header()
            if header is None:
                self._rewrite(batch)
            elif header != self.fieldnames:
                prior = [self._shape(r) for r in self.read_rows()]
                dropped = sorted(set(header) - set(self.fieldnames))
                logger.warning(
                    "csv_sink_header_migrated",
                    path=str(self.path),
                    prior_rows=len(prior),
                    dropped_columns=dropped,
                )
                self._rewrite(prior + batch)
            else:
                with self.path.open("a", newline="", encoding="utf-8") as f:
                    writer = csv.DictWriter(f, fieldnames=self.fieldnames)
                    writer.writerows(batch)
        except (OSError, csv.Error) as e:
            logger.error("csv_sink_write_failed", path=str(self.path), rows=len(batch), error=str(e))
            raise PersistenceError(f"Failed to write {len(batch)} rows to {self.path}: {e}") from e
        logger.debug("csv_sink_appended", path=str(self.path), rows=len(batch))
        return len(batch)

    def _shape(self, row: dict[str, Any]) -> dict[str, str]:
        return {name: format_cell(row.get(name)) for name in self.fieldnames}

    def _rewrite(self, rows: list[dict[str, str]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", newline="", encoding="utf-8") as f:
                writer = csv.DictWriter(f, fieldnames=self.fieldnames)
                writer.writeheader()
                writer.writerows(rows)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
