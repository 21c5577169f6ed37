from __future__ import annotations

import pytest

from evaldash.extract.evaluation import extract_answers, extract_rubric, extract_total_scores
from evaldash.models.evaluation import AnswerRecord, EmployeeEvaluation, RubricQuestion
from evaldash.services.merge import compare_answers, merge_evaluations, summarize_comparisons, unknown_answers


def _question(no: int, criteria: str = "Did X") -> RubricQuestion:
    return RubricQuestion(
        question_no=no,
        category_no=1,
        major_category="A",
        major_category_desc="",
        minor_category="a",
        criteria=criteria,
    )


def test_merge_with_missing_sources_defaults_to_empty():
    self_map = {"Taro": AnswerRecord(name="Taro", department="Sales", answers=("Fully achieved",))}
    merged = merge_evaluations([], self_map, {}, {})
    taro = merged["Taro"]
    assert taro.manager_answers == ()
    assert taro.total_score == 0
    assert taro.department == "Sales"


def test_merge_identity_union_and_department_resolution(rubric_grid, self_grid, manager_grid, score_grid):
    rubric = extract_rubric(rubric_grid)
    merged = merge_evaluations(
        rubric,
        extract_answers(self_grid),
        extract_answers(manager_grid),
        extract_total_scores(score_grid),
    )
    assert list(merged) == ["山田太郎", "佐藤花子", "鈴木一郎"]
    assert merged["鈴木一郎"].department == "制作部"
    assert merged["鈴木一郎"].self_answers == ()
    assert merged["鈴木一郎"].total_score == 72.0
    assert merged["佐藤花子"].total_score == 0.0
    assert merged["山田太郎"].total_score == 85.5


def test_merge_department_falls_back_to_manager_source():
    self_map = {"Taro": AnswerRecord(name="Taro", department="", answers=())}
    manager_map = {"Taro": AnswerRecord(name="Taro", department="Sales Dept 1", answers=())}
    assert merge_evaluations([], self_map, manager_map, {})["Taro"].department == "Sales Dept 1"


def test_merge_score_only_identity():
    merged = merge_evaluations([], {}, {}, {"Hanako": 50.0})
    assert merged["Hanako"] == EmployeeEvaluation(name="Hanako", department="", total_score=50.0)


def test_compare_answers_scenario():
    answers = ("", "", "", "", "Fully achieved")
    employee = EmployeeEvaluation(
        name="Taro",
        department="Sales",
        self_answers=answers,
        manager_answers=("", "", "", "", "Partially achieved"),
    )
    (comparison,) = list(compare_answers(employee, [_question(5)]))
    assert comparison.self_numeric == 1.0
    assert comparison.manager_numeric == 0.7
    assert comparison.difference == pytest.approx(0.3)


def test_compare_answers_out_of_range_is_empty_text():
    employee = EmployeeEvaluation(name="Taro", department="Sales", self_answers=("達成できている",))
    comparisons = list(compare_answers(employee, [_question(1), _question(9)]))
    assert comparisons[1].self_text == ""
    assert comparisons[1].manager_text == ""
    assert comparisons[1].difference == 0.0
    assert comparisons[0].difference == 1.0


def test_compare_answers_is_lazy():
    employee = EmployeeEvaluation(name="Taro", department="Sales")
    result = compare_answers(employee, [_question(1)])
    assert not isinstance(result, list)
    assert len(list(result)) == 1


def test_summarize_comparisons(rubric_grid, self_grid, manager_grid, score_grid):
    rubric = extract_rubric(rubric_grid)
    merged = merge_evaluations(
        rubric, extract_answers(self_grid), extract_answers(manager_grid), extract_total_scores(score_grid)
    )
    comparisons = list(compare_answers(merged["山田太郎"], rubric))
    summary = summarize_comparisons(comparisons)
    assert summary.question_count == 3
    assert summary.max_abs_difference == pytest.approx(0.3)
    assert summary.mean_abs_difference == pytest.approx(0.1)


def test_summarize_empty():
    summary = summarize_comparisons([])
    assert (summary.question_count, summary.mean_abs_difference, summary.max_abs_difference) == (0, 0.0, 0.0)


def test_unknown_answers_lists_texts_outside_scale():
    employee = EmployeeEvaluation(
        name="Taro",
        department="Sales",
        self_answers=("Fully achieved", "maybe"),
        manager_answers=("???", ""),
    )
    comparisons = list(compare_answers(employee, [_question(1), _question(2)]))
    assert list(unknown_answers(comparisons)) == [("manager", 1, "???"), ("self", 2, "maybe")]
