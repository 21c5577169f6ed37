from __future__ import annotations

import logging
import re
import unicodedata
from collections.abc import Mapping
from dataclasses import dataclass, replace

from ..grid.primitives import (
    CellValue,
    Grid,
    Row,
    cell_text,
    ensure_grid,
    is_blank,
    is_blank_row,
    parse_number,
    parse_rank_token,
    row_cell,
)
from ..models.evaluation import AnswerRecord, RubricQuestion

"""Evaluation sheet extraction (rubric / answer forms / total scores).

Rubric rows carry merged-cell semantics: a blank category / major / minor
cell inherits the nearest preceding non-blank value of the same column.
That state is threaded through the rows as an immutable accumulator
(``RubricCarry``) instead of shared mutable variables.
"""

__all__ = [
    "AnswerLayout",
    "DEFAULT_SCORE_SCALE",
    "RubricCarry",
    "RubricColumns",
    "extract_answers",
    "extract_rubric",
    "extract_total_scores",
    "is_known_score_text",
    "normalize_score_scale",
    "split_major_category",
    "text_to_score",
]

logger = logging.getLogger(__name__)

# ヘッダラベル (部分一致)
RUBRIC_LABELS = {
    "category": "カテゴリNo",
    "question": "設問No",
    "major": "大カテゴリ",
    "minor": "小カテゴリ",
    "criteria": "審査内容",
}
# 説明部分の開始とみなす括弧 (優先順)
OPENING_BRACKETS = ("（", "(", "【", "「", "［", "[")
ANSWER_NAME_LABELS = frozenset({"氏名", "名前", "お名前", "Name", "name"})
SCORE_LOWER_BOUND = 0.0  # exclusive
SCORE_UPPER_BOUND = 1000.0  # exclusive


def _normalize_phrase(text: str) -> str:
    folded = unicodedata.normalize("NFKC", text).casefold()
    return re.sub(r"\s+", " ", folded).strip()


def normalize_score_scale(scale: Mapping[str, float]) -> dict[str, float]:
    """Normalise phrase keys (width / case / whitespace) of a score scale."""
    return {_normalize_phrase(str(k)): float(v) for k, v in scale.items()}


DEFAULT_SCORE_SCALE: dict[str, float] = normalize_score_scale(
    {
        "達成できている": 1.0,
        "Fully achieved": 1.0,
        "一部達成できている": 0.7,
        "Partially achieved": 0.7,
        "一部達成できていない": 0.3,
        "Partially not achieved": 0.3,
        "達成できていない": 0.0,
        "Not achieved": 0.0,
        "該当なし": 0.0,
        "Not applicable": 0.0,
    }
)


def text_to_score(text: CellValue, scale: Mapping[str, float] | None = None) -> float:
    """Map a fixed evaluation phrase to its numeric level.

    Empty text is a missing answer and maps to 0.0 silently. Text outside the
    scale maps to 0.0 and is logged as a data-quality warning.
    """
    phrase = cell_text(text)
    if not phrase:
        return 0.0
    table = DEFAULT_SCORE_SCALE if scale is None else scale
    key = _normalize_phrase(phrase)
    if key in table:
        return table[key]
    logger.warning("unrecognized evaluation text '%s' -> 0", phrase)
    return 0.0


def is_known_score_text(text: CellValue, scale: Mapping[str, float] | None = None) -> bool:
    """True for empty text or a phrase on the scale."""
    phrase = cell_text(text)
    if not phrase:
        return True
    table = DEFAULT_SCORE_SCALE if scale is None else scale
    return _normalize_phrase(phrase) in table


# --- rubric ---------------------------------------------------------------

@dataclass(frozen=True)
class RubricColumns:
    category: int | None = 0
    question: int | None = 1
    major: int | None = 2
    minor: int | None = 3
    criteria: int | None = 4


@dataclass(frozen=True)
class RubricCarry:
    """Carry-over state of the rubric fold."""
    category_no: int | None = None
    major: str = ""
    major_desc: str = ""
    minor: str = ""


def split_major_category(text: str) -> tuple[str, str]:
    """Split a major-category cell into (title, description).

    The split point is the first line break; otherwise the first opening
    bracket found, trying ``（ ( 【 「 ［ [`` in that order. A bracket at
    position 0 does not split. The description keeps its bracket.

    This is lossy: a title that itself contains a bracket is cut there.
    """
    text = (text or "").strip()
    if not text:
        return "", ""
    for sep in ("\r\n", "\n", "\r"):
        if sep in text:
            title, _, desc = text.partition(sep)
            return title.strip(), desc.strip()
    for bracket in OPENING_BRACKETS:
        pos = text.find(bracket)
        if pos > 0:
            return text[:pos].strip(), text[pos:].strip()
    return text, ""


def _is_rubric_header(row: Row | None) -> bool:
    texts = [cell_text(c) for c in row or ()]
    return any(label in t for t in texts for label in RUBRIC_LABELS.values())


def _resolve_rubric_columns(header: Row) -> RubricColumns:
    found: dict[str, int | None] = {}
    texts = [cell_text(c) for c in header]
    for role, label in RUBRIC_LABELS.items():
        found[role] = next((i for i, t in enumerate(texts) if label in t), None)
    if found["criteria"] is None:
        # 審査内容列が見つからないヘッダは既定配置で読む
        logger.warning("rubric header without criteria column; using default layout")
        return RubricColumns()
    return RubricColumns(**found)


def _advance(carry: RubricCarry, row: Row, cols: RubricColumns) -> RubricCarry:
    """One fold step: non-blank label cells replace the carried value."""
    updates: dict[str, object] = {}
    category = row_cell(row, cols.category)
    if not is_blank(category):
        updates["category_no"] = parse_rank_token(category) or None
    major = cell_text(row_cell(row, cols.major))
    if major:
        updates["major"], updates["major_desc"] = split_major_category(major)
    minor = cell_text(row_cell(row, cols.minor))
    if minor:
        updates["minor"] = minor
    return replace(carry, **updates) if updates else carry


def _explicit_question_no(value: CellValue) -> int | None:
    number = parse_number(value)
    if number is None or number <= 0 or not float(number).is_integer():
        return None
    return int(number)


def extract_rubric(grid: Grid) -> tuple[RubricQuestion, ...]:
    """Walk the rubric grid and emit one question per row with criteria text.

    Question numbers come from the 設問No column when positive and unused;
    otherwise the next number after the highest one assigned so far.
    """
    ensure_grid(grid)
    header_idx = next((i for i, row in enumerate(grid) if _is_rubric_header(row)), None)
    if header_idx is None:
        cols = RubricColumns()
        start = 0
        logger.info("rubric header not found; using default column order")
    else:
        cols = _resolve_rubric_columns(grid[header_idx])
        start = header_idx + 1

    carry = RubricCarry()
    questions: list[RubricQuestion] = []
    used: set[int] = set()
    for r in range(start, len(grid)):
        row = grid[r]
        if is_blank_row(row) or _is_rubric_header(row):
            continue
        carry = _advance(carry, row, cols)
        criteria = cell_text(row_cell(row, cols.criteria))
        if not criteria:
            # カテゴリ見出し行
            continue
        qno = _explicit_question_no(row_cell(row, cols.question))
        if qno is None or qno in used:
            if qno is not None:
                logger.warning("duplicate question number %d at row %d; renumbered", qno, r)
            qno = max(used, default=0) + 1
        used.add(qno)
        questions.append(
            RubricQuestion(
                question_no=qno,
                category_no=carry.category_no,
                major_category=carry.major,
                major_category_desc=carry.major_desc,
                minor_category=carry.minor,
                criteria=criteria,
            )
        )
    logger.info("rubric: %d questions", len(questions))
    return tuple(questions)


# --- answers / scores -----------------------------------------------------

@dataclass(frozen=True)
class AnswerLayout:
    timestamp_column: int = 0
    name_column: int = 1
    department_column: int = 2
    answers_start_column: int = 3


def _is_name_echo(name: str) -> bool:
    return not name or name in ANSWER_NAME_LABELS


def extract_answers(grid: Grid, layout: AnswerLayout | None = None) -> dict[str, AnswerRecord]:
    """Read a form-response sheet into ``{name: AnswerRecord}``.

    Row 0 is the form header. ``answers[q - 1]`` is the response to question
    ``q``. A later row for the same name replaces the earlier one.
    """
    ensure_grid(grid)
    lay = layout or AnswerLayout()
    records: dict[str, AnswerRecord] = {}
    for r in range(1, len(grid)):
        row = grid[r] or ()
        name = cell_text(row_cell(row, lay.name_column))
        if _is_name_echo(name):
            continue
        if name in records:
            logger.info("answers: '%s' submitted again (row=%d); later row wins", name, r)
        records[name] = AnswerRecord(
            name=name,
            department=cell_text(row_cell(row, lay.department_column)),
            answers=tuple(cell_text(c) for c in row[lay.answers_start_column:]),
            timestamp=cell_text(row_cell(row, lay.timestamp_column)),
        )
    logger.info("answers: %d respondents", len(records))
    return records


def _backward_score(row: Row, name_column: int) -> float | None:
    for c in range(len(row) - 1, name_column, -1):
        number = parse_number(row[c])
        if number is not None and SCORE_LOWER_BOUND < number < SCORE_UPPER_BOUND:
            return number
    return None


def extract_total_scores(grid: Grid, name_column: int = 1) -> dict[str, float]:
    """Read ``{name: total score}`` from the score sheet.

    The score is the last numeric cell in ``(0, 1000)`` scanning from the end
    of the row back to the column after the name.
    """
    ensure_grid(grid)
    scores: dict[str, float] = {}
    for r in range(1, len(grid)):
        row = grid[r] or ()
        name = cell_text(row_cell(row, name_column))
        if _is_name_echo(name):
            continue
        score = _backward_score(row, name_column)
        if score is None:
            logger.info("total score: no plausible score for '%s' (row=%d)", name, r)
            continue
        scores[name] = score
    logger.info("total score: %d employees", len(scores))
    return scores
