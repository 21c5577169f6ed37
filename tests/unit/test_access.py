from __future__ import annotations

from evaldash.models.config_models import GrantConfig
from evaldash.models.evaluation import EmployeeEvaluation
from evaldash.models.grant import ALL_DEPARTMENTS, Grant, Role
from evaldash.models.ranking import DepartmentRanking, RankingEntry, RegionView, SalesReport, TeamSummary
from evaldash.services.access import (
    GrantTable,
    department_matches,
    visible_departments,
    visible_evaluations,
    visible_sales_view,
)

ROSTER = ["Tokyo HQ Sales Dept 1", "Sales Dept 2", "Osaka Planning"]


def _report() -> SalesReport:
    entry = RankingEntry(rank=1, name="Taro", team="Sales Dept 1", sales=100)
    tokyo = RegionView(
        team_summary=(TeamSummary(team="営業1部", sales=100), TeamSummary(team="営業2部", sales=50)),
        departments=(
            DepartmentRanking(name="営業1部", entries=(entry,)),
            DepartmentRanking(name="営業2部", entries=(entry,)),
        ),
    )
    osaka = RegionView(team_summary=(TeamSummary(team="大阪営業部", sales=10),))
    return SalesReport(overall=(entry,), regions={"tokyo": tokyo, "osaka": osaka})


def test_unrestricted_grants_see_everything():
    for grant in (Grant.admin(), Grant.president(), Grant(role=Role.MANAGER, department_patterns=(ALL_DEPARTMENTS,))):
        assert visible_departments(grant, ROSTER) == set(ROSTER)


def test_manager_with_universal_tab_is_unrestricted():
    grant = Grant.manager(["Nothing"], "all")
    assert visible_departments(grant, ROSTER) == set(ROSTER)


def test_manager_substring_containment():
    grant = Grant.manager(["Sales Dept 1"], "tokyo")
    assert visible_departments(grant, ROSTER) == {"Tokyo HQ Sales Dept 1"}


def test_department_matches_rules():
    assert department_matches("営業1部", "営業1部")
    assert department_matches("営業1部", "東京 営業1部")
    assert department_matches("東京本社 営業1部", "営業1部")
    assert department_matches("東京 営業1部 第2課", "大阪 第2課")
    assert not department_matches("Sales Dept 1", "Sales Dept 2")
    assert not department_matches("", "営業1部")


def test_visible_evaluations_filters_by_department():
    evaluations = {
        "A": EmployeeEvaluation(name="A", department="東京 営業1部"),
        "B": EmployeeEvaluation(name="B", department="大阪 営業2部"),
    }
    grant = Grant.manager(["営業1部"], "tokyo")
    assert list(visible_evaluations(grant, evaluations)) == ["A"]
    assert set(visible_evaluations(Grant.admin(), evaluations)) == {"A", "B"}


def test_sales_view_unrestricted_sees_overall_and_all_regions():
    view = visible_sales_view(Grant.president(), _report())
    assert len(view.overall) == 1
    assert set(view.regions) == {"tokyo", "osaka"}


def test_sales_view_manager_sees_only_own_tab_narrowed():
    view = visible_sales_view(Grant.manager(["営業1部"], "tokyo", "営業1部"), _report())
    assert view.overall == ()
    assert list(view.regions) == ["tokyo"]
    tokyo = view.regions["tokyo"]
    assert [t.team for t in tokyo.team_summary] == ["営業1部"]
    assert [d.name for d in tokyo.departments] == ["営業1部"]


def test_sales_view_department_key_falls_back_when_nothing_matches():
    view = visible_sales_view(Grant.manager(["x"], "tokyo", "存在しない部"), _report())
    tokyo = view.regions["tokyo"]
    assert len(tokyo.team_summary) == 2
    assert len(tokyo.departments) == 2


def test_sales_view_department_key_bidirectional():
    view = visible_sales_view(Grant.manager(["x"], "osaka", "営業部"), _report())
    assert [t.team for t in view.regions["osaka"].team_summary] == ["大阪営業部"]


def test_sales_view_unknown_tab_is_empty():
    view = visible_sales_view(Grant.manager(["x"], "sapporo"), _report())
    assert view.overall == ()
    assert view.regions == {}


def test_grant_table_from_config():
    table = GrantTable.from_config(
        [
            GrantConfig(key="boss", role="president"),
            GrantConfig(key="m1", role="manager", departments=("営業1部",), sales_tab="tokyo", department_key="営業1部"),
        ]
    )
    assert len(table) == 2
    assert "boss" in table
    assert table.lookup("boss").role is Role.PRESIDENT
    manager = table.lookup("m1")
    assert manager == Grant.manager(["営業1部"], "tokyo", "営業1部")
    assert table.lookup("nobody") is None
