from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from sheetcal.models.error_record import SyncErrorRecord

"""Sync failure log buffering.

Failures are buffered during a run and written as JSON Lines to
``logs/sync-errors-YYYYMMDD-HHMMSS.log`` (UTC) on flush. The path is fixed on
first access so repeated flushes within one run append to the same file.
"""

__all__ = [
    "SyncErrorRecord",
    "SyncErrorLogBuffer",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class SyncErrorLogBuffer:
    """In-memory buffer for failure records. Serial use only."""

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[SyncErrorRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir or LOGS_DIR

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self._logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self._logs_dir / f"sync-errors-{stamp}.log"
        return self._file_path

    @property
    def records(self) -> list[SyncErrorRecord]:
        return list(self._records)

    def append(self, record: SyncErrorRecord) -> None:
        self._records.append(record)

    def __len__(self) -> int:
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the log file; ``None`` when nothing to write."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
