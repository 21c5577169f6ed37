from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Callable

from .primitives import (
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

"""Section / header locator for sales sheets.

A sales sheet is a loose stack of tables. Each table (a *section*) is either a
team rollup or a personal ranking and is found by one of a small chain of
recognizers, tried in priority order at every row not yet claimed by an
earlier section:

1. ``recognize_bracket_section``  - a 【...】 title row followed by a header
2. ``recognize_header_section``   - an unlabeled header row (label set match)
3. ``recognize_headerless_block`` - numbered rows with no header at all

Every recognizer is a pure function ``(grid, row, options) -> Section | None``
and can be tested on its own with literal grids.

A data block runs from the row after its header until a blank row, the next
【...】 title, or a row that repeats header labels. In the last case the
scanner resumes *at* that row so it is reclassified as a new unlabeled
header.
"""

__all__ = [
    "ColumnSchema",
    "LocatorOptions",
    "Section",
    "SectionKind",
    "DEFAULT_PERSONAL_COLUMNS",
    "DEFAULT_TEAM_COLUMNS",
    "classify_title",
    "department_from_title",
    "find_title",
    "is_header_echo",
    "is_personal_header",
    "is_total_row",
    "is_team_header",
    "locate_section",
    "recognize_bracket_section",
    "recognize_header_section",
    "recognize_headerless_block",
    "resolve_columns",
    "scan_sections",
]

logger = logging.getLogger(__name__)

TITLE_OPEN = "【"
TITLE_CLOSE = "】"
TEAM_ROLLUP_KEYWORDS = ("チーム別サマリー", "部門別サマリー")
PERSONAL_RANKING_KEYWORD = "個人ランキング"
RANKING_KEYWORD = "ランキング"
TOTAL_MARKER = "合計"
DEFAULT_REGION_PREFIXES = ("東京", "大阪", "名古屋", "企画開発")
_SPACES = " 　\t"


class SectionKind(Enum):
    TEAM_ROLLUP = "team_rollup"
    PERSONAL_RANKING = "personal_ranking"


@dataclass(frozen=True)
class ColumnSchema:
    """Column index per role; ``None`` when the role is absent."""
    rank: int | None = None
    name: int | None = None
    team: int | None = None
    sales: int | None = None
    expense: int | None = None
    sales_share: int | None = None
    profit: int | None = None
    profit_share: int | None = None
    profit_rate: int | None = None

    def cell(self, row: Row, role: str) -> CellValue:
        return row_cell(row, getattr(self, role))

    def offset(self, base: int) -> ColumnSchema:
        values = {f.name: (None if getattr(self, f.name) is None else getattr(self, f.name) + base) for f in fields(self)}
        return ColumnSchema(**values)


DEFAULT_PERSONAL_COLUMNS = ColumnSchema(
    rank=0, name=1, team=2, sales=3, sales_share=4, profit=5, profit_share=6, profit_rate=7
)
DEFAULT_TEAM_COLUMNS = ColumnSchema(
    rank=0, team=1, sales=2, expense=3, profit=4, profit_rate=5, sales_share=6, profit_share=7
)

# 具体的な (比率・率) ロールを先に解決し、汎用の「売上」「粗利」が比率列を奪わないようにする
ROLE_CANDIDATES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("sales_share", ("部内売上比率", "売上全体比率", "全体売上比率", "支社内売上比率", "売上比率")),
    ("profit_share", ("部内粗利比率", "粗利全体比率", "全体粗利比率", "支社内粗利比率", "粗利比率")),
    ("profit_rate", ("粗利益率", "粗利率")),
    ("rank", ("順位",)),
    ("name", ("氏名", "名前")),
    ("team", ("所属チーム", "所属", "チーム", "部門", "部署")),
    ("sales", ("売上額", "売上高", "売上")),
    ("expense", ("支払高", "支払", "経費")),
    ("profit", ("粗利額", "粗利益額", "粗利益", "粗利")),
)


@dataclass(frozen=True)
class LocatorOptions:
    region_prefixes: tuple[str, ...] = DEFAULT_REGION_PREFIXES


@dataclass(frozen=True)
class Section:
    kind: SectionKind
    title: str | None  # 【...】 title text, None for unlabeled sections
    department: str | None  # department label recovered from the title
    header_row: int | None  # None when the block has no header row
    data_start: int
    data_end: int  # exclusive; scanning resumes here
    columns: ColumnSchema

    @property
    def data_rows(self) -> range:
        return range(self.data_start, self.data_end)


Recognizer = Callable[[Grid, int, LocatorOptions], "Section | None"]


# --- row predicates -------------------------------------------------------

def _texts(row: Row | None) -> list[str]:
    return [cell_text(c) for c in row] if row else []


def find_title(row: Row | None) -> str | None:
    """Return the first 【...】 title cell of a row."""
    for text in _texts(row):
        if text.startswith(TITLE_OPEN) and TITLE_CLOSE in text:
            return text
    return None


def classify_title(title: str) -> SectionKind | None:
    if any(k in title for k in TEAM_ROLLUP_KEYWORDS):
        return SectionKind.TEAM_ROLLUP
    if RANKING_KEYWORD in title:
        return SectionKind.PERSONAL_RANKING
    return None


def is_personal_header(row: Row | None) -> bool:
    texts = _texts(row)
    has_name = "氏名" in texts
    return has_name and any(("売上" in t or "所属" in t or "チーム" in t) for t in texts)


def is_team_header(row: Row | None) -> bool:
    texts = _texts(row)
    return "チーム" in texts and "氏名" not in texts and any("売上" in t for t in texts)


def is_header_echo(row: Row | None) -> bool:
    """A data-block row that repeats header labels (start of a new header)."""
    texts = _texts(row)
    if "氏名" in texts:
        return True
    return "チーム" in texts and any("順位" in t for t in texts)


def is_total_row(row: Row) -> bool:
    return TOTAL_MARKER in cell_text(row_cell(row, 0))


def _looks_like_amount(value: CellValue) -> bool:
    if is_blank(value) or isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    text = cell_text(value)
    if "¥" in text or "￥" in text:
        return True
    return bool(re.fullmatch(r"[\d,]+", text)) and parse_number(text) is not None


# --- column resolution ----------------------------------------------------

def resolve_columns(header: Row, kind: SectionKind) -> ColumnSchema:
    """Classify each header cell into a column role.

    Roles are resolved in ``ROLE_CANDIDATES`` order; per role the candidates
    are tried in order and the first unclaimed cell equal to or containing the
    candidate wins.
    """
    texts = _texts(header)
    claimed: set[int] = set()
    found: dict[str, int] = {}
    for role, candidates in ROLE_CANDIDATES:
        for candidate in candidates:
            idx = next(
                (i for i, t in enumerate(texts) if i not in claimed and t and (t == candidate or candidate in t)),
                None,
            )
            if idx is not None:
                found[role] = idx
                claimed.add(idx)
                break

    if kind is SectionKind.PERSONAL_RANKING:
        if "name" not in found:
            logger.debug("personal header without name column -> default layout: %s", texts)
            return DEFAULT_PERSONAL_COLUMNS
        if "sales" not in found:
            # 隣接規約: 氏名の右に所属・売上・売上比率・粗利・粗利比率・粗利益率が並ぶ
            team = found.get("team", found["name"] + 1)
            found.update(
                team=team,
                sales=team + 1,
                sales_share=team + 2,
                profit=team + 3,
                profit_share=team + 4,
                profit_rate=team + 5,
            )
    elif "team" not in found:
        logger.debug("team header without team column -> default layout: %s", texts)
        return DEFAULT_TEAM_COLUMNS
    return ColumnSchema(**found)


# --- title parsing --------------------------------------------------------

def department_from_title(title: str, region_prefixes: Sequence[str] = DEFAULT_REGION_PREFIXES) -> str | None:
    """Recover the department label of a personal-ranking title.

    ``【東京 制作1部個人ランキング】`` -> ``制作1部``; ``【大阪個人ランキング】`` -> ``大阪``.
    """
    inner = title.strip()
    if inner.startswith(TITLE_OPEN):
        inner = inner[len(TITLE_OPEN):]
    inner = inner.split(TITLE_CLOSE, 1)[0]
    for suffix in (PERSONAL_RANKING_KEYWORD, RANKING_KEYWORD):
        if suffix in inner:
            inner = inner[: inner.index(suffix)]
            break
    content = inner.strip(_SPACES)
    used_region = None
    for region in region_prefixes:
        if content.startswith(region):
            used_region = region
            content = content[len(region):].strip(_SPACES)
            break
    return content or used_region


# --- data block scanning --------------------------------------------------

def _scan_data_end(grid: Grid, start: int) -> int:
    for k in range(start, len(grid)):
        row = grid[k]
        if is_blank_row(row) or find_title(row) is not None or is_header_echo(row):
            return k
    return len(grid)


def _titled_section(grid: Grid, row: int, title: str, kind: SectionKind, options: LocatorOptions) -> Section:
    department = None
    if kind is SectionKind.PERSONAL_RANKING:
        department = department_from_title(title, options.region_prefixes)
    head = row + 1
    if head >= len(grid) or is_blank_row(grid[head]) or find_title(grid[head]) is not None:
        logger.info("section %s has no header/data rows (row=%d)", title, row)
        return Section(kind, title, department, None, head, head, _default_columns(kind))
    if parse_rank_token(row_cell(grid[head], 0)) > 0:
        # タイトル直下が数値行: ヘッダなしブロック
        return Section(kind, title, department, None, head, _scan_data_end(grid, head), _default_columns(kind))
    columns = resolve_columns(grid[head], kind)
    return Section(kind, title, department, head, head + 1, _scan_data_end(grid, head + 1), columns)


def _default_columns(kind: SectionKind) -> ColumnSchema:
    return DEFAULT_TEAM_COLUMNS if kind is SectionKind.TEAM_ROLLUP else DEFAULT_PERSONAL_COLUMNS


# --- recognizers ----------------------------------------------------------

def recognize_bracket_section(grid: Grid, row: int, options: LocatorOptions) -> Section | None:
    title = find_title(grid[row])
    if title is None:
        return None
    kind = classify_title(title)
    if kind is None:
        logger.debug("ignoring unrelated title %s at row %d", title, row)
        return None
    return _titled_section(grid, row, title, kind, options)


def recognize_header_section(grid: Grid, row: int, options: LocatorOptions) -> Section | None:
    header = grid[row]
    if is_personal_header(header):
        kind = SectionKind.PERSONAL_RANKING
    elif is_team_header(header):
        kind = SectionKind.TEAM_ROLLUP
    else:
        return None
    columns = resolve_columns(header, kind)
    return Section(kind, None, None, row, row + 1, _scan_data_end(grid, row + 1), columns)


def recognize_headerless_block(grid: Grid, row: int, options: LocatorOptions) -> Section | None:
    cells = grid[row]
    if parse_rank_token(row_cell(cells, 0)) <= 0:
        return None
    if _looks_like_amount(row_cell(cells, 2)):
        kind = SectionKind.TEAM_ROLLUP
    elif _looks_like_amount(row_cell(cells, 3)):
        kind = SectionKind.PERSONAL_RANKING
    else:
        return None
    logger.debug("headerless %s block at row %d", kind.value, row)
    return Section(kind, None, None, None, row, _scan_data_end(grid, row), _default_columns(kind))


DEFAULT_RECOGNIZERS: tuple[Recognizer, ...] = (
    recognize_bracket_section,
    recognize_header_section,
    recognize_headerless_block,
)


def _carry_department(section: Section, carried: str | None) -> tuple[Section, str | None]:
    if section.kind is SectionKind.TEAM_ROLLUP:
        return section, None
    if section.title is not None:
        return section, section.department
    if section.department is None and carried is not None:
        # 改ページで再掲されたヘッダは直前のタイトル付きセクションの続き
        return replace(section, department=carried), carried
    return section, carried


def scan_sections(
    grid: Grid,
    options: LocatorOptions | None = None,
    recognizers: Sequence[Recognizer] = DEFAULT_RECOGNIZERS,
) -> list[Section]:
    """Discover every section of a sheet, top to bottom.

    An untitled personal-ranking section inherits the department of the most
    recent titled one. A new 【...】 title or a team rollup clears it.
    """
    ensure_grid(grid)
    opts = options or LocatorOptions()
    sections: list[Section] = []
    carried: str | None = None
    row = 0
    while row < len(grid):
        if is_blank_row(grid[row]):
            row += 1
            continue
        for recognize in recognizers:
            section = recognize(grid, row, opts)
            if section is not None:
                section, carried = _carry_department(section, carried)
                sections.append(section)
                # タイトル行のみのセクションでも必ず前進させる
                row = max(section.data_end, row + 1)
                break
        else:
            if find_title(grid[row]) is not None:
                carried = None
            row += 1
    return sections


def locate_section(
    grid: Grid,
    keywords: Sequence[str] = (),
    *,
    title_pattern: str | None = None,
    kind: SectionKind | None = None,
    options: LocatorOptions | None = None,
) -> Section | None:
    """Find one section by title keywords (all must appear) or title regex.

    When the sheet carries no 【...】 title at all, the first unlabeled header
    of ``kind`` (or of any kind) is returned instead. ``None`` means not found.
    """
    ensure_grid(grid)
    opts = options or LocatorOptions()
    has_titles = False
    for i, row in enumerate(grid):
        title = find_title(row)
        if title is None:
            continue
        has_titles = True
        if title_pattern is not None and not re.search(title_pattern, title):
            continue
        if not all(k in title for k in keywords):
            continue
        resolved = classify_title(title) or kind
        if resolved is None:
            head = grid[i + 1] if i + 1 < len(grid) else None
            resolved = SectionKind.PERSONAL_RANKING if is_personal_header(head) else SectionKind.TEAM_ROLLUP
        return _titled_section(grid, i, title, resolved, opts)

    if not has_titles:
        for i in range(len(grid)):
            section = recognize_header_section(grid, i, opts)
            if section is not None and (kind is None or section.kind is kind):
                return section

    logger.info("section not found keywords=%s pattern=%s", list(keywords), title_pattern)
    return None
