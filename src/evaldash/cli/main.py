from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv

from ..config.loader import ConfigError, load_config, resolve_config_path
from ..grid.primitives import cell_text
from ..grid.reader import WorkbookSource
from ..logging.error_log import DataQualityLog
from ..logging.init import log_summary, setup_logging
from ..models.config_models import DashboardConfig, EvaluationConfig
from ..models.evaluation import EmployeeEvaluation, RubricQuestion
from ..services.access import GrantTable, visible_evaluations, visible_sales_view
from ..services.merge import compare_answers, summarize_comparisons, unknown_answers
from ..services.pipeline import UNKNOWN_EVALUATION_TEXT, load_dashboard, score_scale_for
from ..services.progress import ProgressTracker
from ..services.summary import render_summary_line

"""CLI entrypoint.

Flow:
- Load .env, resolve and load the YAML config
- Fetch every configured sheet concurrently and parse it
- Optionally narrow the result to one viewer's grant and compare one
  employee's self / manager answers
- Print the SUMMARY line; the exit code reflects sheet failures
"""

__all__ = [
    "EXIT_FATAL",
    "EXIT_PARTIAL_FAILURE",
    "EXIT_SUCCESS_ALL",
    "main",
]

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

INSPECT_ROWS = 3


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv (values win over the process env)."""
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="evaldash", description="Sales ranking & evaluation dashboard loader")
    p.add_argument("--config", help="Config YAML path (default: $EVALDASH_CONFIG or config/dashboard.yml)")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument("--inspect-data", action="store_true", help="Print the first rows of each configured sheet then exit")
    p.add_argument("--viewer", help="Access key; filter output through that viewer's grant")
    p.add_argument("--employee", help="Print the self/manager comparison for one employee")
    return p.parse_args(argv)


def _configured_sheets(cfg: DashboardConfig) -> list[tuple[str, str]]:
    sheets = cfg.evaluation.sheets
    return [(cfg.sales.source, name) for name in cfg.sales.sheet_names] + [
        (cfg.evaluation.source, name)
        for name in (sheets.rubric, sheets.self_evaluation, sheets.manager_evaluation, sheets.total_score)
    ]


def _inspect_data(cfg: DashboardConfig, source: WorkbookSource) -> int:
    for source_id, sheet in _configured_sheets(cfg):
        print(f"SHEET: {source_id}/{sheet}")
        try:
            grid = source.read_sheet(source_id, sheet)
        except Exception as e:
            print(f"  read_error: {e}")
            continue
        print(f"  rows={len(grid)}")
        for row in list(grid)[:INSPECT_ROWS]:
            print("   ", [cell_text(c) for c in row])
    return EXIT_SUCCESS_ALL


def _print_comparison(
    logger,
    employee: EmployeeEvaluation,
    rubric: tuple[RubricQuestion, ...],
    eval_cfg: EvaluationConfig,
    quality_log: DataQualityLog,
) -> None:
    scale = score_scale_for(eval_cfg)
    comparisons = list(compare_answers(employee, rubric, scale))
    sheets = {"self": eval_cfg.sheets.self_evaluation, "manager": eval_cfg.sheets.manager_evaluation}
    for side, question_no, text in unknown_answers(comparisons, scale):
        quality_log.record(
            eval_cfg.source, sheets[side], -1, UNKNOWN_EVALUATION_TEXT, f"employee={employee.name} Q{question_no}: {text}"
        )
    logger.info(
        f"employee={employee.name} department={employee.department or '-'} total_score={employee.total_score}"
    )
    for c in comparisons:
        logger.info(
            f"  Q{c.question.question_no} [{c.question.major_category}/{c.question.minor_category}] "
            f"self={c.self_text or '-'}({c.self_numeric}) manager={c.manager_text or '-'}({c.manager_numeric}) "
            f"diff={c.difference:+}"
        )
    summary = summarize_comparisons(comparisons)
    logger.info(
        f"comparison questions={summary.question_count} "
        f"mean_abs_diff={summary.mean_abs_difference} max_abs_diff={summary.max_abs_difference}"
    )


def main(argv: list[str] | None = None) -> int:
    logger = setup_logging()

    # 空リスト [] (テストからの呼び出し) と None を区別する
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    _load_env_file(Path(".env"), override=True)
    if args.debug:
        logger = setup_logging(debug=True)
        logger.debug("debug mode enabled")

    config_path = resolve_config_path(args.config)
    try:
        cfg = load_config(config_path)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    grants = GrantTable.from_config(cfg.grants)
    grant = None
    if args.viewer:
        grant = grants.lookup(args.viewer)
        if grant is None:
            logger.error("viewer: unknown access key")
            return EXIT_FATAL

    source = WorkbookSource(cfg.sources)
    if args.inspect_data:
        return _inspect_data(cfg, source)

    logger.info(f"config={config_path} sources={','.join(sorted(cfg.sources))}")
    quality_log = DataQualityLog()
    total_sheets = len(_configured_sheets(cfg))
    with ProgressTracker(total_sheets) as progress:
        load = asyncio.run(
            load_dashboard(source, cfg, quality_log=quality_log, on_sheet_done=progress.sheet_done)
        )

    evaluations = load.evaluation.evaluations
    if grant is not None:
        view = visible_sales_view(grant, load.sales.report)
        evaluations = visible_evaluations(grant, evaluations)
        logger.info(
            f"viewer role={grant.role.value} overall={len(view.overall)} "
            f"regions={','.join(view.regions) or '-'} employees={len(evaluations)}"
        )

    if args.employee:
        employee = evaluations.get(args.employee)
        if employee is None:
            logger.warning(f"employee not found or not visible: {args.employee}")
        else:
            _print_comparison(logger, employee, load.evaluation.rubric, cfg.evaluation, quality_log)

    quality_path = quality_log.flush()
    if quality_path is not None:
        logger.info(f"data-quality log: {quality_path}")

    summary_line = render_summary_line(load)
    # log_summary が "SUMMARY " を付与するので除去
    log_summary(summary_line[len("SUMMARY "):])

    if load.loaded_sheets == 0:
        logger.error("no sheet could be loaded")
        return EXIT_FATAL
    if load.failures:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
