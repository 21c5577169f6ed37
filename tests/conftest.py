# Shared pytest fixtures
from __future__ import annotations

import tempfile
from pathlib import Path

import pandas as pd
import pytest

from evaldash.logging.init import reset_logging


@pytest.fixture(autouse=True)
def _fresh_logging():
    # CLI テストが設定した propagate=False を後続テスト (caplog) に持ち越さない
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        monkeypatch.delenv("EVALDASH_CONFIG", raising=False)
        monkeypatch.delenv("EVALDASH_SOURCE_SALES", raising=False)
        monkeypatch.delenv("EVALDASH_SOURCE_EVALUATION", raising=False)
        yield p


def _make_workbook(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
    """Write literal grids as sheets of a real .xlsx (no header, no index)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet_name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return path


PERSONAL_HEADER = ["順位", "氏名", "所属チーム", "売上", "売上比率", "粗利", "粗利比率", "粗利率"]
TEAM_HEADER = ["順位", "チーム", "売上", "支払", "粗利", "粗利率", "支社内売上比率", "支社内粗利比率"]


@pytest.fixture()
def overall_grid() -> list[list[object]]:
    return [
        ["【全体 個人ランキング】", None, None, None, None, None, None, None],
        PERSONAL_HEADER,
        [1, "山田太郎", "営業1部", "¥3,000,000", "30.0%", "¥900,000", "31.0%", "30.0%"],
        [2, "佐藤花子", "営業2部", "¥2,000,000", "20.0%", "¥500,000", "17.2%", "25.0%"],
        [3, "合計", None, "¥5,000,000", None, None, None, None],
        [3, "鈴木一郎", "制作部", "¥1,000,000", "10.0%", "¥300,000", "10.3%", "30.0%"],
    ]


@pytest.fixture()
def tokyo_grid() -> list[list[object]]:
    return [
        ["【東京 チーム別サマリー】"],
        TEAM_HEADER,
        [1, "営業1部", "¥5,000,000", "¥3,000,000", "¥2,000,000", "40.0%", "62.5%", "66.7%"],
        [2, "営業2部", "¥3,000,000", "¥2,000,000", "¥1,000,000", "33.3%", "37.5%", "33.3%"],
        ["合計", None, "¥8,000,000", "¥5,000,000", "¥3,000,000", None, None, None],
        [None],
        ["【東京 営業2部個人ランキング】"],
        PERSONAL_HEADER,
        [1, "高橋次郎", "営業2部", "¥1,000,000", "33.3%", "¥300,000", "30.0%", "30.0%"],
        [2, "伊藤三郎", "営業2部", "¥2,000,000", "66.7%", "¥700,000", "70.0%", "35.0%"],
        [None],
        ["【東京 営業1部個人ランキング】"],
        PERSONAL_HEADER,
        [1, "山田太郎", "営業1部", "¥3,000,000", "60.0%", "¥900,000", "45.0%", "30.0%"],
        [2, "田中四郎", "営業1部", "¥2,000,000", "40.0%", "¥1,100,000", "55.0%", "55.0%"],
    ]


@pytest.fixture()
def rubric_grid() -> list[list[object]]:
    return [
        ["カテゴリNo", "設問No", "大カテゴリ", "小カテゴリ", "審査内容"],
        [1, None, "顧客対応（顧客との信頼関係）", "傾聴", None],
        [None, 1, None, None, "顧客の要望を正確に把握している"],
        [None, 2, None, "提案", "課題に応じた提案ができている"],
        [2, 3, "チームワーク\n周囲と協力して成果を出す", "協調", "他部署と連携している"],
    ]


@pytest.fixture()
def self_grid() -> list[list[object]]:
    return [
        ["タイムスタンプ", "氏名", "部署", "Q1", "Q2", "Q3"],
        ["2026/03/01 10:00", "山田太郎", "東京 営業1部", "達成できている", "一部達成できている", "該当なし"],
        ["2026/03/01 11:00", "佐藤花子", "大阪 営業2部", "達成できていない", "達成できている", "達成できている"],
    ]


@pytest.fixture()
def manager_grid() -> list[list[object]]:
    return [
        ["タイムスタンプ", "氏名", "部署", "Q1", "Q2", "Q3"],
        ["2026/03/05 10:00", "山田太郎", "東京 営業1部", "一部達成できている", "一部達成できている", "該当なし"],
        ["2026/03/05 10:30", "鈴木一郎", "制作部", "達成できている", "", ""],
    ]


@pytest.fixture()
def score_grid() -> list[list[object]]:
    return [
        ["No", "氏名", "Q1", "Q2", "合計点"],
        [1, "山田太郎", 1, 0.7, 85.5],
        [2, "鈴木一郎", 1, 0, 72],
    ]


@pytest.fixture()
def sample_config_yaml() -> str:
    return """sources:
  sales: data/sales.xlsx
  evaluation: data/evaluation.xlsx
sales:
  source: sales
  overall_sheet: 全体
  regions:
    東京: tokyo
    大阪: osaka
evaluation:
  source: evaluation
grants:
  admin-key:
    role: admin
  tokyo-1:
    role: manager
    departments: [営業1部]
    sales_tab: tokyo
    department_key: 営業1部
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "dashboard.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def make_workbook():
    return _make_workbook


@pytest.fixture()
def sales_workbook(temp_workdir: Path, overall_grid, tokyo_grid) -> Path:
    return _make_workbook(
        temp_workdir / "data" / "sales.xlsx",
        {"全体": overall_grid, "東京": tokyo_grid, "大阪": [["【大阪 チーム別サマリー】"]]},
    )


@pytest.fixture()
def evaluation_workbook(temp_workdir: Path, rubric_grid, self_grid, manager_grid, score_grid) -> Path:
    return _make_workbook(
        temp_workdir / "data" / "evaluation.xlsx",
        {
            "シート1": rubric_grid,
            "フォームの回答_自己": self_grid,
            "フォームの回答_部長": manager_grid,
            "計算_部長": score_grid,
        },
    )
