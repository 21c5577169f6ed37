from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass

from ..grid.locator import (
    DEFAULT_PERSONAL_COLUMNS,
    DEFAULT_REGION_PREFIXES,
    ColumnSchema,
    LocatorOptions,
    Section,
    SectionKind,
    is_total_row,
    scan_sections,
)
from ..grid.primitives import (
    Grid,
    Row,
    cell_text,
    ensure_grid,
    is_blank_row,
    is_plausible_name,
    parse_amount,
    parse_percent,
    parse_rank_token,
)
from ..models.ranking import (
    DepartmentRanking,
    RankingEntry,
    RegionView,
    TeamSummary,
    rerank_by_sales,
)

"""Sales ranking extraction.

- ``extract_overall_ranking``: the flat personal ranking of the overall sheet
- ``extract_region_sections``: team rollup + per-department rankings of one
  region sheet

Both are total over layout drift: a section that cannot be found yields an
empty result and a log line, never an exception.
"""

__all__ = [
    "OTHER_DEPARTMENT",
    "SalesOptions",
    "extract_overall_ranking",
    "extract_region_sections",
]

logger = logging.getLogger(__name__)

OTHER_DEPARTMENT = "その他"
_NAME_LABEL = "氏名"
_OVERALL_COMPANION_LABELS = ("所属", "チーム", "売上")


@dataclass(frozen=True)
class SalesOptions:
    region_prefixes: tuple[str, ...] = DEFAULT_REGION_PREFIXES
    # 数値セルの比率を小数 (0.21 = 21%) として扱うか
    percent_fraction_numbers: bool = True

    def locator_options(self, region_label: str | None = None) -> LocatorOptions:
        prefixes = self.region_prefixes
        if region_label and region_label not in prefixes:
            prefixes = (region_label, *prefixes)
        return LocatorOptions(region_prefixes=prefixes)


def _percent(value, options: SalesOptions) -> float:
    return parse_percent(value, fraction_numbers=options.percent_fraction_numbers)


def _ranking_entry(row: Row, cols: ColumnSchema, rank: int, options: SalesOptions) -> RankingEntry:
    return RankingEntry(
        rank=rank,
        name=cell_text(cols.cell(row, "name")),
        team=cell_text(cols.cell(row, "team")),
        sales=parse_amount(cols.cell(row, "sales")),
        sales_share=_percent(cols.cell(row, "sales_share"), options),
        profit=parse_amount(cols.cell(row, "profit")),
        profit_share=_percent(cols.cell(row, "profit_share"), options),
        profit_rate=_percent(cols.cell(row, "profit_rate"), options),
    )


def _needs_rerank(entries: list[RankingEntry]) -> bool:
    ranks = [e.rank for e in entries]
    if any(r <= 0 for r in ranks):
        return True
    return any(count > 1 for count in Counter(ranks).values())


# --- overall sheet --------------------------------------------------------

def _has_name_label(row: Row | None) -> bool:
    return bool(row) and any(_NAME_LABEL in cell_text(c) for c in row)


def _is_overall_header(row: Row | None) -> bool:
    if not _has_name_label(row):
        return False
    return any(any(label in cell_text(c) for label in _OVERALL_COMPANION_LABELS) for c in row)


def extract_overall_ranking(grid: Grid, options: SalesOptions | None = None) -> tuple[RankingEntry, ...]:
    """Parse the flat personal ranking of the overall sheet.

    The header is the first row holding a 氏名 cell plus a 所属/チーム/売上
    cell. Columns are fixed offsets (rank, name, team, sales, sales share,
    profit, profit share, profit rate) anchored one column left of the 氏名
    cell, so a blank rank label does not shift the block. Reading stops at
    the next 氏名 header.
    """
    ensure_grid(grid)
    opts = options or SalesOptions()
    header_idx = next((i for i, row in enumerate(grid) if _is_overall_header(row)), None)
    if header_idx is None:
        logger.warning("overall ranking header not found (rows=%d)", len(grid))
        return ()

    header = grid[header_idx]
    name_idx = next(i for i, c in enumerate(header) if _NAME_LABEL in cell_text(c))
    base = max(name_idx - 1, 0)
    cols = DEFAULT_PERSONAL_COLUMNS.offset(base)

    entries: list[RankingEntry] = []
    skipped = 0
    for j in range(header_idx + 1, len(grid)):
        row = grid[j]
        if is_blank_row(row):
            continue
        if _has_name_label(row):
            logger.debug("overall ranking: next header at row %d, stopping", j)
            break
        if not is_plausible_name(cols.cell(row, "name")):
            skipped += 1
            continue
        rank = parse_rank_token(cols.cell(row, "rank"))
        entries.append(_ranking_entry(row, cols, rank, opts))

    if _needs_rerank(entries):
        logger.info("overall ranking: source ranks missing or duplicated -> re-ranked by sales")
        result = rerank_by_sales(entries)
    else:
        result = tuple(entries)
    logger.info("overall ranking: %d entries (skipped rows=%d)", len(result), skipped)
    return result


# --- region sheets --------------------------------------------------------

def _team_rows(grid: Grid, section: Section, options: SalesOptions) -> list[TeamSummary]:
    cols = section.columns
    teams: list[TeamSummary] = []
    seen: set[str] = set()
    for r in section.data_rows:
        row = grid[r]
        if is_total_row(row):
            continue
        rank = parse_rank_token(cols.cell(row, "rank"))
        if cols.rank is not None and rank <= 0:
            continue
        team = cell_text(cols.cell(row, "team"))
        if not team or team == "-" or "合計" in team:
            continue
        if team in seen:
            logger.warning("duplicate team '%s' in rollup (row=%d) ignored", team, r)
            continue
        seen.add(team)
        teams.append(
            TeamSummary(
                team=team,
                sales=parse_amount(cols.cell(row, "sales")),
                expense=parse_amount(cols.cell(row, "expense")),
                profit=parse_amount(cols.cell(row, "profit")),
                profit_rate=_percent(cols.cell(row, "profit_rate"), options),
                sales_share=_percent(cols.cell(row, "sales_share"), options),
                profit_share=_percent(cols.cell(row, "profit_share"), options),
                rank=rank or len(teams) + 1,
            )
        )
    return teams


def _personal_rows(grid: Grid, section: Section, options: SalesOptions) -> list[RankingEntry]:
    cols = section.columns
    entries: list[RankingEntry] = []
    for r in section.data_rows:
        row = grid[r]
        if is_total_row(row):
            continue
        rank = parse_rank_token(cols.cell(row, "rank"))
        if cols.rank is not None and rank <= 0:
            continue
        if not is_plausible_name(cols.cell(row, "name")):
            continue
        entries.append(_ranking_entry(row, cols, rank, options))
    return entries


def _department_order(names: list[str], team_order: list[str]) -> list[str]:
    position = {team: i for i, team in enumerate(team_order)}
    return sorted(names, key=lambda n: (0, position[n], "") if n in position else (1, 0, n))


def extract_region_sections(
    grid: Grid,
    region_label: str,
    options: SalesOptions | None = None,
) -> RegionView:
    """Parse one region sheet into its team rollup and department rankings.

    Personal rows are bucketed by the department recovered from their section
    title, else by the row's own team column, else into ``その他``. Each
    department is re-ranked 1..N by sales; departments follow the rollup's
    team order, unmatched ones are appended alphabetically.
    """
    ensure_grid(grid)
    opts = options or SalesOptions()
    sections = scan_sections(grid, opts.locator_options(region_label))
    if not sections:
        logger.warning("region %s: no sections found (rows=%d)", region_label, len(grid))
        return RegionView()

    team_summary: list[TeamSummary] = []
    for section in sections:
        if section.kind is SectionKind.TEAM_ROLLUP and not team_summary:
            team_summary = _team_rows(grid, section, opts)
        elif section.kind is SectionKind.TEAM_ROLLUP:
            logger.debug("region %s: extra team rollup at row %d ignored", region_label, section.data_start)
    if not team_summary:
        logger.warning("region %s: team rollup section not found or empty", region_label)

    buckets: dict[str, list[RankingEntry]] = {}
    for section in sections:
        if section.kind is not SectionKind.PERSONAL_RANKING:
            continue
        rows = _personal_rows(grid, section, opts)
        if not rows:
            logger.info("region %s: section %s has no valid rows", region_label, section.title or section.header_row)
        for entry in rows:
            key = section.department or entry.team or OTHER_DEPARTMENT
            buckets.setdefault(key, []).append(entry)

    ordered = _department_order(list(buckets), [t.team for t in team_summary])
    departments = tuple(DepartmentRanking(name=name, entries=rerank_by_sales(buckets[name])) for name in ordered)
    logger.info(
        "region %s: teams=%d departments=%d people=%d",
        region_label,
        len(team_summary),
        len(departments),
        sum(len(d.entries) for d in departments),
    )
    return RegionView(team_summary=tuple(team_summary), departments=departments)
