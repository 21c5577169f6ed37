from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .evaluation import EmployeeEvaluation, RubricQuestion
from .ranking import SalesReport

"""Load result models.

The pipeline never aborts on a single sheet: every failed fetch becomes a
``SourceFailure`` next to the (partial) parsed data, and the CLI derives its
exit code and SUMMARY line from these records.
"""

__all__ = [
    "DashboardLoad",
    "EvaluationLoad",
    "SalesLoad",
    "SheetStat",
    "SourceFailure",
]


@dataclass(frozen=True)
class SourceFailure:
    """One sheet fetch that was rejected."""
    source: str  # source id (sales / evaluation)
    sheet: str
    error: Exception

    @property
    def message(self) -> str:
        return f"{type(self.error).__name__}: {self.error}"


@dataclass(frozen=True)
class SheetStat:
    source: str
    sheet: str
    status: str  # ok / failed
    rows: int  # grid 行数 (失敗時 0)
    elapsed_seconds: float


@dataclass(frozen=True)
class SalesLoad:
    report: SalesReport = field(default_factory=SalesReport)
    failures: tuple[SourceFailure, ...] = ()
    sheet_stats: tuple[SheetStat, ...] = ()


@dataclass(frozen=True)
class EvaluationLoad:
    """Rubric plus merged employees; failed sheets contribute nothing."""
    rubric: tuple[RubricQuestion, ...] = ()
    evaluations: dict[str, EmployeeEvaluation] = field(default_factory=dict)
    failures: tuple[SourceFailure, ...] = ()
    sheet_stats: tuple[SheetStat, ...] = ()

    def failed_sheets(self) -> list[str]:
        return [f.sheet for f in self.failures]


@dataclass(frozen=True)
class DashboardLoad:
    """Aggregated result of one full fetch-and-parse run."""
    sales: SalesLoad
    evaluation: EvaluationLoad
    sheet_stats: tuple[SheetStat, ...]
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float

    @property
    def failures(self) -> tuple[SourceFailure, ...]:
        return self.sales.failures + self.evaluation.failures

    @property
    def total_sheets(self) -> int:
        return len(self.sheet_stats)

    @property
    def loaded_sheets(self) -> int:
        return sum(1 for s in self.sheet_stats if s.status == "ok")
