from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace

from ..models.config_models import GrantConfig
from ..models.evaluation import EmployeeEvaluation
from ..models.grant import Grant, Role
from ..models.ranking import RankingEntry, RegionView, SalesReport

"""Visibility policy: which departments / sales data a viewer grant sees.

Department names are matched loosely because the rubric sheet and the org
chart spell departments differently (see ``department_matches``).
"""

__all__ = [
    "GrantTable",
    "SalesView",
    "department_matches",
    "visible_departments",
    "visible_evaluations",
    "visible_sales_view",
]

logger = logging.getLogger(__name__)


def _last_token(text: str) -> str:
    parts = text.split()
    return parts[-1] if parts else ""


def department_matches(pattern: str, candidate: str) -> bool:
    """Exact, containment either way, then last-token containment either way."""
    pattern = pattern.strip()
    candidate = candidate.strip()
    if not pattern or not candidate:
        return False
    if pattern == candidate or pattern in candidate or candidate in pattern:
        return True
    p_last, c_last = _last_token(pattern), _last_token(candidate)
    if not p_last or not c_last:
        return False
    return p_last in c_last or c_last in p_last


def visible_departments(grant: Grant, all_departments: Iterable[str]) -> set[str]:
    names = set(all_departments)
    if grant.sees_all_departments or grant.sees_all_regions:
        return names
    return {
        name
        for name in names
        if any(department_matches(pattern, name) for pattern in grant.department_patterns)
    }


def visible_evaluations(
    grant: Grant,
    evaluations: Mapping[str, EmployeeEvaluation],
) -> dict[str, EmployeeEvaluation]:
    allowed = visible_departments(grant, {e.department for e in evaluations.values()})
    return {name: e for name, e in evaluations.items() if e.department in allowed}


@dataclass(frozen=True)
class SalesView:
    """Sales data one grant may see.

    ``overall`` is empty for restricted grants.
    """
    overall: tuple[RankingEntry, ...] = ()
    regions: dict[str, RegionView] = field(default_factory=dict)


def _narrow_region(view: RegionView, key: str) -> RegionView:
    teams = tuple(t for t in view.team_summary if key in t.team or t.team in key)
    departments = tuple(d for d in view.departments if key in d.name or d.name in key)
    if not teams:
        logger.info("department_key '%s' matched no team; showing all teams", key)
        teams = view.team_summary
    if not departments:
        logger.info("department_key '%s' matched no department; showing all departments", key)
        departments = view.departments
    return replace(view, team_summary=teams, departments=departments)


def visible_sales_view(grant: Grant, report: SalesReport) -> SalesView:
    """Select the sales data a grant may see.

    Unrestricted grants see the overall ranking and every region. Others see
    only their region tab, narrowed by ``department_key`` when one is set.
    """
    if grant.sees_all_regions:
        overall = report.overall
        regions = dict(report.regions)
    else:
        view = report.regions.get(grant.sales_tab)
        if view is None:
            logger.warning("sales tab '%s' not found in report", grant.sales_tab)
            return SalesView()
        overall = ()
        regions = {grant.sales_tab: view}
    if grant.department_key:
        regions = {k: _narrow_region(v, grant.department_key) for k, v in regions.items()}
    return SalesView(overall=overall, regions=regions)


class GrantTable:
    """Access key -> Grant lookup built once from configuration."""

    def __init__(self, grants: Mapping[str, Grant]) -> None:
        self._grants = dict(grants)

    @classmethod
    def from_config(cls, entries: Iterable[GrantConfig]) -> GrantTable:
        grants: dict[str, Grant] = {}
        for entry in entries:
            role = Role(entry.role)
            if role is Role.ADMIN:
                grant = Grant.admin()
            elif role is Role.PRESIDENT:
                grant = Grant.president()
            else:
                grant = Grant.manager(entry.departments, entry.sales_tab, entry.department_key)
            grants[entry.key] = grant
        return cls(grants)

    def lookup(self, key: str) -> Grant | None:
        return self._grants.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._grants

    def __len__(self) -> int:
        return len(self._grants)
