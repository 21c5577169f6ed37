from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""QualityRecord model for the data-quality log.

Each record describes one sheet- or row-level anomaly found while loading
(a failed fetch, a sheet without any recognizable section, ...). Records are
written as JSON Lines with a fixed key set.
"""

__all__ = [
    "QualityRecord",
]


@dataclass(frozen=True)
class QualityRecord:
    """Structured data-quality record.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        source: Source id (sales / evaluation ...)
        sheet: Sheet name within the source
        row: 0-based grid row. Use -1 for sheet-level issues
        issue_type: Classification in UPPER_SNAKE_CASE format
        detail: Human readable description
    """
    timestamp: str  # ISO8601 UTC
    source: str
    sheet: str
    row: int  # 行番号。シート単位の問題は -1
    issue_type: str  # UPPER_SNAKE
    detail: str

    @staticmethod
    def create(source: str, sheet: str, row: int, issue_type: str, detail: str) -> QualityRecord:
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return QualityRecord(
            timestamp=ts,
            source=source,
            sheet=sheet,
            row=row,
            issue_type=issue_type,
            detail=detail,
        )

    def to_json_line(self) -> str:
        # 追加キー阻止: dataclass -> dict して json.dumps
        return json.dumps(asdict(self), ensure_ascii=False)
