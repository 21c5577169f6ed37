from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.quality_record import QualityRecord

"""Data-quality log buffering.

- JSON Lines with a fixed key set (see ``QualityRecord``)
- one ``logs/quality-YYYYMMDD-HHMMSS.log`` (UTC) per run, created on first flush
- records are buffered and appended on ``flush()``
"""

__all__ = [
    "DataQualityLog",
    "LOGS_DIR",
    "QualityRecord",
]

LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class DataQualityLog:
    """In-memory buffer of quality records. Flush writes JSON Lines.

    Only the event loop thread appends, so no locking is needed.
    """

    def __init__(self, logs_dir: Path | None = None) -> None:
        self._records: list[QualityRecord] = []
        self._file_path: Path | None = None
        self._logs_dir = logs_dir

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            logs_dir = self._logs_dir or LOGS_DIR
            logs_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = logs_dir / f"quality-{stamp}.log"
        return self._file_path

    def append(self, record: QualityRecord) -> None:
        self._records.append(record)

    def record(self, source: str, sheet: str, row: int, issue_type: str, detail: str) -> QualityRecord:
        entry = QualityRecord.create(source, sheet, row, issue_type, detail)
        self.append(entry)
        return entry

    @property
    def records(self) -> tuple[QualityRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records; ``None`` when there was nothing to write."""
        if not self._records:
            return None
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self._records.clear()
        return fp
