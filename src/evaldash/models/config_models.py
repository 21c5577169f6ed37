from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the dashboard loader.

These are the typed view of ``config/dashboard.yml`` after schema validation
and defaulting (see ``evaldash.config.loader``). Defaults mirror the sheet
layout of the production workbooks.
"""

__all__ = [
    "DEFAULT_REGIONS",
    "DashboardConfig",
    "EvaluationConfig",
    "EvaluationSheets",
    "GrantConfig",
    "SalesConfig",
]

# シート名 -> 地域キー
DEFAULT_REGIONS: dict[str, str] = {
    "東京": "tokyo",
    "大阪": "osaka",
    "名古屋": "nagoya",
    "企画開発": "kikakukaihatsu",
}


@dataclass(frozen=True)
class SalesConfig:
    source: str = "sales"  # key in DashboardConfig.sources
    overall_sheet: str = "全体"
    regions: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_REGIONS))
    region_prefixes: tuple[str, ...] = ("東京", "大阪", "名古屋", "企画開発")
    percent_fraction_numbers: bool = True

    @property
    def sheet_names(self) -> list[str]:
        return [self.overall_sheet, *self.regions]


@dataclass(frozen=True)
class EvaluationSheets:
    rubric: str = "シート1"
    self_evaluation: str = "フォームの回答_自己"
    manager_evaluation: str = "フォームの回答_部長"
    total_score: str = "計算_部長"


@dataclass(frozen=True)
class EvaluationConfig:
    """Evaluation spreadsheet layout.

    ``score_scale`` is None when the built-in phrase scale applies.
    """
    source: str = "evaluation"
    sheets: EvaluationSheets = field(default_factory=EvaluationSheets)
    name_column: int = 1
    department_column: int = 2
    answers_start_column: int = 3
    score_name_column: int = 1
    score_scale: dict[str, float] | None = None


@dataclass(frozen=True)
class GrantConfig:
    key: str  # viewer access key
    role: str  # admin / president / manager
    departments: tuple[str, ...] = ()
    sales_tab: str = "all"
    department_key: str | None = None


@dataclass(frozen=True)
class DashboardConfig:
    """Root configuration object."""
    sources: dict[str, str]  # source id -> workbook path
    sales: SalesConfig
    evaluation: EvaluationConfig
    grants: tuple[GrantConfig, ...] = ()

    def source_location(self, source_id: str) -> str | None:
        return self.sources.get(source_id)
