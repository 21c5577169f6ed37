from __future__ import annotations

import math
import re
import unicodedata
from collections.abc import Sequence
from typing import Union

"""Shared cell coercion helpers.

Every helper here is total: a value that cannot be interpreted falls back to a
neutral result (0 / "" / False) instead of raising. Grids come from spreadsheet
exports where a cell is a string, a number or absent.
"""

__all__ = [
    "CellValue",
    "Grid",
    "Row",
    "NAME_EXCLUSIONS",
    "cell_text",
    "ensure_grid",
    "is_blank",
    "is_blank_row",
    "row_cell",
    "parse_amount",
    "parse_percent",
    "parse_rank_token",
    "parse_number",
    "is_plausible_name",
]

CellValue = Union[str, int, float, None]
Row = Sequence[CellValue]
Grid = Sequence[Row]

# ヘッダ/ラベル由来で氏名になり得ない語
NAME_EXCLUSIONS: frozenset[str] = frozenset(
    {
        "氏名",
        "名前",
        "合計",
        "小計",
        "総計",
        "順位",
        "チーム",
        "所属",
        "所属チーム",
        "部署",
        "部門",
        "全体",
        "全社",
        "その他",
        "東京",
        "大阪",
        "名古屋",
        "企画開発",
    }
)

_CURRENCY_CHARS = "¥￥"
_NEGATIVE_MARKS = ("▲", "△", "-", "−")
_RANK_RE = re.compile(r"^\s*(\d+)")
_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)$")
# 数字・記号・通貨・パーセントのみで構成される文字列
_SYMBOLS_ONLY_RE = re.compile(r"^[\d\s.,:;'\"%％¥￥$#@&*+\-=/\\|()（）\[\]［］{}<>_~!?！？・…　-]+$")


def _is_nan(value: object) -> bool:
    return isinstance(value, float) and math.isnan(value)


def is_blank(value: CellValue) -> bool:
    if value is None or _is_nan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def cell_text(value: CellValue) -> str:
    """Render a cell as stripped text; integral floats lose their ``.0``."""
    if is_blank(value):
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def row_cell(row: Row | None, index: int | None) -> CellValue:
    """Safe positional access; out-of-range or ``None`` index yields ``None``."""
    if row is None or index is None or index < 0 or index >= len(row):
        return None
    return row[index]


def is_blank_row(row: Row | None) -> bool:
    if not row:
        return True
    return all(is_blank(c) for c in row)


def _normalize_numeric_text(value: str) -> str:
    return unicodedata.normalize("NFKC", value).strip()


def parse_number(value: CellValue) -> float | None:
    """Parse a plain numeric cell (commas allowed). ``None`` when not numeric."""
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    text = _normalize_numeric_text(str(value)).replace(",", "")
    if not _NUMBER_RE.match(text):
        return None
    return float(text)


def parse_amount(value: CellValue) -> int | float:
    """``"¥1,234,567"`` -> 1234567. Empty or non-numeric -> 0.

    A leading ``▲``/``△``/``-`` or surrounding parentheses mark a negative
    amount (accounting notation).
    """
    if is_blank(value) or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = _normalize_numeric_text(str(value))
        for ch in _CURRENCY_CHARS:
            text = text.replace(ch, "")
        text = re.sub(r"[\s,]", "", text)
        negative = False
        if text.startswith("(") and text.endswith(")"):
            negative = True
            text = text[1:-1]
        if text.startswith(_NEGATIVE_MARKS):
            negative = True
            text = text[1:]
        # 通貨記号が符号の後ろにあるケース (-¥1,000)
        text = text.lstrip(_CURRENCY_CHARS)
        if not _NUMBER_RE.match(text) or text.startswith(("+", "-")):
            return 0
        number = float(text)
        if negative:
            number = -number
    if number.is_integer():
        return int(number)
    return number


def parse_percent(value: CellValue, *, fraction_numbers: bool = True) -> float:
    """Parse a percentage into percentage points.

    - string cells are already percentage points: ``"38.0%"`` -> 38.0
    - numeric cells are fractions and are scaled x100 when ``fraction_numbers``
      is true: ``0.21`` -> 21.0
    """
    if is_blank(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return round(float(value) * 100, 10) if fraction_numbers else float(value)
    text = _normalize_numeric_text(str(value)).replace("%", "").replace(",", "").strip()
    if not _NUMBER_RE.match(text):
        return 0.0
    return float(text)


def parse_rank_token(value: CellValue) -> int:
    """Leading digit run of ``"1"`` / ``"1位"`` / ``"１位"``; 0 when absent."""
    if is_blank(value) or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value) if value > 0 else 0
    match = _RANK_RE.match(_normalize_numeric_text(str(value)))
    return int(match.group(1)) if match else 0


def is_plausible_name(value: CellValue, exclusions: frozenset[str] = NAME_EXCLUSIONS) -> bool:
    """True when a cell could hold a person's name.

    Rejects blanks, strings shorter than 2 characters, strings made only of
    digits/punctuation/currency/percent symbols, strings with no letter at all,
    and known header/label tokens.
    """
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return False
    text = cell_text(value)
    if len(text) < 2:
        return False
    if text in exclusions:
        return False
    if _SYMBOLS_ONLY_RE.match(text):
        return False
    return any(ch.isalpha() for ch in text)


def ensure_grid(grid: object) -> None:
    """Raise ``TypeError`` unless ``grid`` is a sequence of row sequences.

    This is the only structural check the extractors make; everything about
    cell contents is handled leniently.
    """
    if isinstance(grid, (str, bytes)) or not isinstance(grid, Sequence):
        raise TypeError(f"grid must be a sequence of rows, got {type(grid).__name__}")
    for row in grid:
        if row is not None and (isinstance(row, (str, bytes)) or not isinstance(row, Sequence)):
            raise TypeError(f"grid rows must be sequences, got {type(row).__name__}")
