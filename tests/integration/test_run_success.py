from __future__ import annotations

import json
import re
from pathlib import Path

from evaldash.cli import main as cli_main

"""End-to-end run over real .xlsx workbooks: sales + evaluation sources, every
configured sheet present, plus viewer filtering and one employee comparison.
"""

SUMMARY_RE = re.compile(
    r"SUMMARY sheets=(\d+)/(\d+) failed=(\d+) overall=(\d+) regions=(\d+) departments=(\d+) "
    r"questions=(\d+) employees=(\d+) elapsed_sec=\d+(\.\d+)?"
)


def test_full_run(write_config: Path, sales_workbook: Path, evaluation_workbook: Path, capsys):
    code = cli_main([])
    out = capsys.readouterr().out
    assert code == 0, out
    match = SUMMARY_RE.search(out)
    assert match, out
    sheets_ok, sheets_total, failed, overall, regions, departments, questions, employees = map(int, match.groups()[:8])
    assert (sheets_ok, sheets_total, failed) == (7, 7, 0)
    assert overall == 3
    assert regions == 1  # 大阪 has only an empty rollup title
    assert departments == 2
    assert questions == 3
    assert employees == 3
    assert "WARN" in out  # 大阪: team rollup section empty

    logs = list(Path("logs").glob("quality-*.log"))
    assert len(logs) == 1
    records = [json.loads(line) for line in logs[0].read_text(encoding="utf-8").splitlines()]
    assert [(r["sheet"], r["issue_type"]) for r in records] == [("大阪", "SECTION_NOT_FOUND")]


def test_viewer_and_employee_comparison(write_config: Path, sales_workbook: Path, evaluation_workbook: Path, capsys):
    code = cli_main(["--viewer", "tokyo-1", "--employee", "山田太郎"])
    out = capsys.readouterr().out
    assert code == 0, out
    assert "viewer role=manager overall=0 regions=tokyo employees=1" in out
    assert "employee=山田太郎 department=東京 営業1部 total_score=85.5" in out
    assert "Q1 [顧客対応/傾聴] self=達成できている(1.0) manager=一部達成できている(0.7) diff=+0.3" in out
    assert "comparison questions=3" in out


def test_viewer_cannot_see_other_department(write_config: Path, sales_workbook: Path, evaluation_workbook: Path, capsys):
    code = cli_main(["--viewer", "tokyo-1", "--employee", "鈴木一郎"])
    out = capsys.readouterr().out
    assert code == 0
    assert "WARN employee not found or not visible: 鈴木一郎" in out


def test_admin_sees_overall(write_config: Path, sales_workbook: Path, evaluation_workbook: Path, capsys):
    assert cli_main(["--viewer", "admin-key"]) == 0
    assert "viewer role=admin overall=3 regions=tokyo,osaka employees=3" in capsys.readouterr().out


def test_unknown_answer_text_goes_to_quality_log(
    write_config: Path, sales_workbook: Path, make_workbook, rubric_grid, self_grid, manager_grid, score_grid, capsys
):
    self_grid[1][4] = "たぶんできた"
    make_workbook(
        Path("data") / "evaluation.xlsx",
        {
            "シート1": rubric_grid,
            "フォームの回答_自己": self_grid,
            "フォームの回答_部長": manager_grid,
            "計算_部長": score_grid,
        },
    )
    assert cli_main(["--employee", "山田太郎"]) == 0
    out = capsys.readouterr().out
    assert "self=たぶんできた(0.0)" in out

    (log,) = Path("logs").glob("quality-*.log")
    records = [json.loads(line) for line in log.read_text(encoding="utf-8").splitlines()]
    unknown = [r for r in records if r["issue_type"] == "UNKNOWN_EVALUATION_TEXT"]
    assert [(r["source"], r["sheet"], r["row"]) for r in unknown] == [("evaluation", "フォームの回答_自己", -1)]
    assert "Q2" in unknown[0]["detail"]
    assert "たぶんできた" in unknown[0]["detail"]
