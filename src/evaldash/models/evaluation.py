from __future__ import annotations

from dataclasses import dataclass

"""Evaluation records: rubric questions, per-source answer rows and the
merged per-employee view.

Answer vectors are index-aligned to question numbers:
``answers[question_no - 1]`` is the response to that question.
"""

__all__ = [
    "RubricQuestion",
    "AnswerRecord",
    "EmployeeEvaluation",
    "QuestionComparison",
    "ComparisonSummary",
]


@dataclass(frozen=True)
class RubricQuestion:
    question_no: int  # positive, unique; positional key into answer vectors
    category_no: int | None
    major_category: str
    major_category_desc: str
    minor_category: str
    criteria: str


@dataclass(frozen=True)
class AnswerRecord:
    """One form response row (self or manager evaluation)."""
    name: str
    department: str
    answers: tuple[str, ...]
    timestamp: str = ""


@dataclass(frozen=True)
class EmployeeEvaluation:
    name: str
    department: str
    self_answers: tuple[str, ...] = ()
    manager_answers: tuple[str, ...] = ()
    total_score: float = 0.0

    def self_answer(self, question_no: int) -> str:
        return _answer_at(self.self_answers, question_no)

    def manager_answer(self, question_no: int) -> str:
        return _answer_at(self.manager_answers, question_no)


@dataclass(frozen=True)
class QuestionComparison:
    question: RubricQuestion
    self_text: str
    manager_text: str
    self_numeric: float
    manager_numeric: float

    @property
    def difference(self) -> float:
        return round(self.self_numeric - self.manager_numeric, 10)


@dataclass(frozen=True)
class ComparisonSummary:
    question_count: int
    mean_abs_difference: float
    max_abs_difference: float


def _answer_at(answers: tuple[str, ...], question_no: int) -> str:
    index = question_no - 1
    if index < 0 or index >= len(answers):
        return ""
    return answers[index] or ""
