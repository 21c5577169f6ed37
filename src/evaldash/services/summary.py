from __future__ import annotations

from ..models.processing_result import DashboardLoad

"""SUMMARY line rendering.

Format:
SUMMARY sheets=<ok>/<total> failed=<n> overall=<n> regions=<n>
departments=<n> questions=<n> employees=<n> elapsed_sec=<s>
"""

__all__ = [
    "format_elapsed",
    "render_summary_line",
]


def format_elapsed(seconds: float) -> str:
    """Integral values print without a decimal point; tiny values avoid
    scientific notation."""
    if seconds == 0:
        return "0"
    if seconds == int(seconds):
        return str(int(seconds))
    if seconds < 0.01:
        return f"{seconds:.6f}".rstrip("0").rstrip(".")
    return str(seconds)


def render_summary_line(load: DashboardLoad) -> str:
    report = load.sales.report
    regions = [view for view in report.regions.values() if not view.is_empty]
    departments = sum(len(view.departments) for view in regions)
    return (
        f"SUMMARY sheets={load.loaded_sheets}/{load.total_sheets} "
        f"failed={len(load.failures)} "
        f"overall={len(report.overall)} "
        f"regions={len(regions)} "
        f"departments={departments} "
        f"questions={len(load.evaluation.rubric)} "
        f"employees={len(load.evaluation.evaluations)} "
        f"elapsed_sec={format_elapsed(load.elapsed_seconds)}"
    )
