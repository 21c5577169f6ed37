from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence

from ..extract.evaluation import is_known_score_text, text_to_score
from ..models.evaluation import (
    AnswerRecord,
    ComparisonSummary,
    EmployeeEvaluation,
    QuestionComparison,
    RubricQuestion,
)

"""Merge self / manager / total-score sources into per-employee records.

The identity set is the union of names across the three sources; the rubric
is a shared schema and contributes no identities. A source that failed to
load is passed as an empty mapping and simply contributes nothing.
"""

__all__ = [
    "compare_answers",
    "merge_evaluations",
    "summarize_comparisons",
    "unknown_answers",
]

logger = logging.getLogger(__name__)


def _identities(*sources: Mapping[str, object]) -> list[str]:
    # 挿入順を保ったまま和集合 (self -> manager -> score)
    seen: dict[str, None] = {}
    for source in sources:
        for name in source:
            seen.setdefault(name, None)
    return list(seen)


def merge_evaluations(
    rubric: Sequence[RubricQuestion],
    self_map: Mapping[str, AnswerRecord],
    manager_map: Mapping[str, AnswerRecord],
    score_map: Mapping[str, float],
) -> dict[str, EmployeeEvaluation]:
    merged: dict[str, EmployeeEvaluation] = {}
    for name in _identities(self_map, manager_map, score_map):
        own = self_map.get(name)
        boss = manager_map.get(name)
        department = next((r.department for r in (own, boss) if r is not None and r.department), "")
        merged[name] = EmployeeEvaluation(
            name=name,
            department=department,
            self_answers=own.answers if own is not None else (),
            manager_answers=boss.answers if boss is not None else (),
            total_score=float(score_map.get(name, 0.0)),
        )
    logger.info(
        "merged %d employees (questions=%d self=%d manager=%d scores=%d)",
        len(merged),
        len(rubric),
        len(self_map),
        len(manager_map),
        len(score_map),
    )
    return merged


def compare_answers(
    employee: EmployeeEvaluation,
    rubric: Sequence[RubricQuestion],
    scale: Mapping[str, float] | None = None,
) -> Iterator[QuestionComparison]:
    """Yield the self/manager comparison of one employee, question by question.

    Evaluated lazily for the one employee being viewed.
    """
    for question in rubric:
        self_text = employee.self_answer(question.question_no)
        manager_text = employee.manager_answer(question.question_no)
        yield QuestionComparison(
            question=question,
            self_text=self_text,
            manager_text=manager_text,
            self_numeric=text_to_score(self_text, scale),
            manager_numeric=text_to_score(manager_text, scale),
        )


def summarize_comparisons(comparisons: Sequence[QuestionComparison]) -> ComparisonSummary:
    if not comparisons:
        return ComparisonSummary(question_count=0, mean_abs_difference=0.0, max_abs_difference=0.0)
    diffs = [abs(c.difference) for c in comparisons]
    return ComparisonSummary(
        question_count=len(diffs),
        mean_abs_difference=round(sum(diffs) / len(diffs), 10),
        max_abs_difference=max(diffs),
    )


def unknown_answers(
    comparisons: Sequence[QuestionComparison],
    scale: Mapping[str, float] | None = None,
) -> Iterator[tuple[str, int, str]]:
    """Yield ``(side, question_no, text)`` for answers outside the scale.

    ``side`` is ``"self"`` or ``"manager"``.
    """
    for c in comparisons:
        for side, text in (("self", c.self_text), ("manager", c.manager_text)):
            if not is_known_score_text(text, scale):
                yield side, c.question.question_no, text
