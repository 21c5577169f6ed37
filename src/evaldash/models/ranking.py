from __future__ import annotations

from dataclasses import dataclass, field, replace

"""Sales ranking records.

RankingEntry / TeamSummary / DepartmentRanking are produced fresh on every
parse of a sales grid; RegionView bundles one region sheet's output.
"""

__all__ = [
    "RankingEntry",
    "TeamSummary",
    "DepartmentRanking",
    "RegionView",
    "SalesReport",
    "rerank_by_sales",
]


@dataclass(frozen=True)
class RankingEntry:
    """One person's row in a sales ranking."""
    rank: int  # 1-based, contiguous after re-derivation
    name: str
    team: str  # 所属チーム (空文字可)
    sales: int | float = 0
    sales_share: float = 0.0  # % (percentage points)
    profit: int | float = 0
    profit_share: float = 0.0  # %
    profit_rate: float = 0.0  # %


@dataclass(frozen=True)
class TeamSummary:
    """Team-level rollup row of a region sheet."""
    team: str  # unique within a region
    sales: int | float = 0
    expense: int | float = 0
    profit: int | float = 0
    profit_rate: float = 0.0
    sales_share: float = 0.0  # 支社内売上比率
    profit_share: float = 0.0  # 支社内粗利比率
    rank: int = 0


@dataclass(frozen=True)
class DepartmentRanking:
    name: str
    entries: tuple[RankingEntry, ...] = ()


@dataclass(frozen=True)
class RegionView:
    team_summary: tuple[TeamSummary, ...] = ()
    departments: tuple[DepartmentRanking, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.team_summary and not self.departments


@dataclass(frozen=True)
class SalesReport:
    """Everything parsed from one sales spreadsheet (overall sheet + regions)."""
    overall: tuple[RankingEntry, ...] = ()
    regions: dict[str, RegionView] = field(default_factory=dict)  # region key -> view


def rerank_by_sales(entries: list[RankingEntry] | tuple[RankingEntry, ...]) -> tuple[RankingEntry, ...]:
    """Sort by sales descending and assign ranks 1..N.

    ``sorted`` is stable, so rows with equal sales keep their source order.
    """
    ordered = sorted(entries, key=lambda e: e.sales, reverse=True)
    return tuple(replace(e, rank=i) for i, e in enumerate(ordered, start=1))
