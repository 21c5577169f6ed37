from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime

from ..extract.evaluation import (
    AnswerLayout,
    extract_answers,
    extract_rubric,
    extract_total_scores,
    normalize_score_scale,
)
from ..extract.sales import SalesOptions, extract_overall_ranking, extract_region_sections
from ..grid.primitives import Grid
from ..grid.reader import FetchGrid
from ..logging.error_log import DataQualityLog
from ..models.config_models import DashboardConfig, EvaluationConfig, SalesConfig
from ..models.processing_result import (
    DashboardLoad,
    EvaluationLoad,
    SalesLoad,
    SheetStat,
    SourceFailure,
)
from ..models.ranking import RegionView, SalesReport
from .merge import merge_evaluations

"""Fetch-and-parse pipeline.

Sheet fetches run concurrently on one event loop and are joined with
``asyncio.gather(..., return_exceptions=True)``: a rejected fetch becomes a
``SourceFailure`` and the sheet is parsed as if it were empty. Parsing itself
is synchronous. Nothing is retried; a refresh is simply a new call.

Flow:
 1. load_sales: overall sheet + one sheet per region
 2. load_evaluations: rubric / self / manager / total-score sheets, merged
 3. load_dashboard: 1 and 2 concurrently, plus timing for the SUMMARY line
"""

__all__ = [
    "OnSheetDone",
    "SECTION_NOT_FOUND",
    "SHEET_FETCH_ERROR",
    "UNKNOWN_EVALUATION_TEXT",
    "load_dashboard",
    "load_evaluations",
    "load_sales",
    "score_scale_for",
]

logger = logging.getLogger(__name__)

OnSheetDone = Callable[[SheetStat], None]

SHEET_FETCH_ERROR = "SHEET_FETCH_ERROR"
SECTION_NOT_FOUND = "SECTION_NOT_FOUND"
UNKNOWN_EVALUATION_TEXT = "UNKNOWN_EVALUATION_TEXT"


class _SheetFetcher:
    """Wraps a ``FetchGrid`` to time each fetch and report it once done."""

    def __init__(
        self,
        fetch_grid: FetchGrid,
        source_id: str,
        quality_log: DataQualityLog | None,
        on_sheet_done: OnSheetDone | None,
    ) -> None:
        self.fetch_grid = fetch_grid
        self.source_id = source_id
        self.quality_log = quality_log
        self.on_sheet_done = on_sheet_done
        self.stats: list[SheetStat] = []

    async def fetch(self, sheet: str) -> Grid:
        started = time.perf_counter()
        try:
            grid = await self.fetch_grid(self.source_id, sheet)
        except Exception:
            self._done(SheetStat(self.source_id, sheet, "failed", 0, time.perf_counter() - started))
            raise
        self._done(SheetStat(self.source_id, sheet, "ok", len(grid), time.perf_counter() - started))
        return grid

    def _done(self, stat: SheetStat) -> None:
        self.stats.append(stat)
        if self.on_sheet_done is not None:
            self.on_sheet_done(stat)

    def failure(self, sheet: str, error: BaseException) -> SourceFailure:
        if not isinstance(error, Exception):
            # CancelledError / KeyboardInterrupt は伝播させる
            raise error
        logger.error("sheet fetch failed: source=%s sheet=%s (%s)", self.source_id, sheet, error)
        if self.quality_log is not None:
            self.quality_log.record(self.source_id, sheet, -1, SHEET_FETCH_ERROR, f"{type(error).__name__}: {error}")
        return SourceFailure(source=self.source_id, sheet=sheet, error=error)

    async def fetch_all(self, sheets: Sequence[str]) -> tuple[dict[str, Grid], tuple[SourceFailure, ...]]:
        results = await asyncio.gather(*(self.fetch(s) for s in sheets), return_exceptions=True)
        grids: dict[str, Grid] = {}
        failures: list[SourceFailure] = []
        for sheet, result in zip(sheets, results):
            if isinstance(result, BaseException):
                failures.append(self.failure(sheet, result))
            else:
                grids[sheet] = result
        return grids, tuple(failures)


def _sales_report(grids: dict[str, Grid], config: SalesConfig, fetcher: _SheetFetcher) -> SalesReport:
    options = SalesOptions(
        region_prefixes=config.region_prefixes,
        percent_fraction_numbers=config.percent_fraction_numbers,
    )
    overall_grid = grids.get(config.overall_sheet)
    overall = extract_overall_ranking(overall_grid, options) if overall_grid is not None else ()
    regions: dict[str, RegionView] = {}
    for sheet, key in config.regions.items():
        grid = grids.get(sheet)
        if grid is None:
            regions[key] = RegionView()
            continue
        view = extract_region_sections(grid, sheet, options)
        if view.is_empty and fetcher.quality_log is not None:
            fetcher.quality_log.record(fetcher.source_id, sheet, -1, SECTION_NOT_FOUND, "no team rollup or ranking section")
        regions[key] = view
    return SalesReport(overall=overall, regions=regions)


async def load_sales(
    fetch_grid: FetchGrid,
    config: SalesConfig,
    *,
    quality_log: DataQualityLog | None = None,
    on_sheet_done: OnSheetDone | None = None,
) -> SalesLoad:
    fetcher = _SheetFetcher(fetch_grid, config.source, quality_log, on_sheet_done)
    grids, failures = await fetcher.fetch_all(config.sheet_names)
    report = _sales_report(grids, config, fetcher)
    logger.info(
        "sales loaded: overall=%d regions=%d failed_sheets=%d",
        len(report.overall),
        sum(1 for v in report.regions.values() if not v.is_empty),
        len(failures),
    )
    return SalesLoad(report=report, failures=failures, sheet_stats=tuple(fetcher.stats))


async def load_evaluations(
    fetch_grid: FetchGrid,
    config: EvaluationConfig,
    *,
    quality_log: DataQualityLog | None = None,
    on_sheet_done: OnSheetDone | None = None,
) -> EvaluationLoad:
    fetcher = _SheetFetcher(fetch_grid, config.source, quality_log, on_sheet_done)
    sheets = config.sheets
    grids, failures = await fetcher.fetch_all(
        [sheets.rubric, sheets.self_evaluation, sheets.manager_evaluation, sheets.total_score]
    )
    layout = AnswerLayout(
        name_column=config.name_column,
        department_column=config.department_column,
        answers_start_column=config.answers_start_column,
    )

    rubric = extract_rubric(grids[sheets.rubric]) if sheets.rubric in grids else ()
    self_map = extract_answers(grids[sheets.self_evaluation], layout) if sheets.self_evaluation in grids else {}
    manager_map = (
        extract_answers(grids[sheets.manager_evaluation], layout) if sheets.manager_evaluation in grids else {}
    )
    score_map = (
        extract_total_scores(grids[sheets.total_score], config.score_name_column)
        if sheets.total_score in grids
        else {}
    )
    if failures:
        logger.warning("evaluation sources missing: %s (merging the rest)", ", ".join(f.sheet for f in failures))
    evaluations = merge_evaluations(rubric, self_map, manager_map, score_map)
    return EvaluationLoad(
        rubric=rubric,
        evaluations=evaluations,
        failures=failures,
        sheet_stats=tuple(fetcher.stats),
    )


def score_scale_for(config: EvaluationConfig) -> dict[str, float] | None:
    return normalize_score_scale(config.score_scale) if config.score_scale else None


async def load_dashboard(
    fetch_grid: FetchGrid,
    config: DashboardConfig,
    *,
    quality_log: DataQualityLog | None = None,
    on_sheet_done: OnSheetDone | None = None,
) -> DashboardLoad:
    """Load sales and evaluations concurrently.

    Both halves are already failure-tolerant, so this join never raises for
    a rejected sheet fetch.
    """
    start_time = datetime.now(UTC)
    started = time.perf_counter()
    sales, evaluation = await asyncio.gather(
        load_sales(fetch_grid, config.sales, quality_log=quality_log, on_sheet_done=on_sheet_done),
        load_evaluations(fetch_grid, config.evaluation, quality_log=quality_log, on_sheet_done=on_sheet_done),
    )
    elapsed = time.perf_counter() - started
    return DashboardLoad(
        sales=sales,
        evaluation=evaluation,
        sheet_stats=sales.sheet_stats + evaluation.sheet_stats,
        start_time=start_time,
        end_time=datetime.now(UTC),
        elapsed_seconds=round(elapsed, 3),
    )
