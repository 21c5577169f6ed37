from __future__ import annotations

import asyncio
import json
import logging
import math
import re
import threading
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Awaitable, Callable
from urllib.parse import quote

import pandas as pd

from .primitives import CellValue, Grid

"""Grid sources: the seam between a spreadsheet transport and the extractors.

The extractors only ever see ``Grid`` values (rows of str | number | None).
This module turns the two observed source formats into grids:

- a Google Visualization (gviz) JSON response, as returned by the
  ``/gviz/tq?tqx=out:json`` export endpoint
- a local ``.xlsx`` workbook read with pandas (offline runs and tests)

HTTP itself is left to the caller; ``FetchGrid`` is the async primitive the
pipeline consumes.
"""

__all__ = [
    "FetchGrid",
    "MalformedSourceError",
    "SheetNotFoundError",
    "WorkbookSource",
    "decode_gviz_response",
    "extract_spreadsheet_id",
    "gviz_export_url",
    "read_workbook",
]

logger = logging.getLogger(__name__)

FetchGrid = Callable[[str, str], Awaitable[Grid]]

_SPREADSHEET_ID_RE = re.compile(r"/(?:spreadsheets/)?d/([a-zA-Z0-9-_]+)")
_GVIZ_WRAPPER_RE = re.compile(r"google\.visualization\.Query\.setResponse\(([\s\S]*)\);?\s*$")
GVIZ_BASE_URL = "https://docs.google.com/spreadsheets/d"


class MalformedSourceError(ValueError):
    """Raised when a transport response or source identifier cannot be parsed."""


class SheetNotFoundError(MalformedSourceError):
    """Raised when a workbook or a sheet inside it does not exist."""


def extract_spreadsheet_id(url: str) -> str:
    """Return the spreadsheet id embedded in a Google Sheets URL."""
    match = _SPREADSHEET_ID_RE.search(url or "")
    if not match:
        raise MalformedSourceError(f"unrecognized spreadsheet url: {url!r}")
    return match.group(1)


def gviz_export_url(url: str, sheet_name: str) -> str:
    """Build the gviz JSON export URL for one sheet of a spreadsheet."""
    spreadsheet_id = extract_spreadsheet_id(url)
    return f"{GVIZ_BASE_URL}/{spreadsheet_id}/gviz/tq?tqx=out:json&sheet={quote(sheet_name)}"


def decode_gviz_response(text: str) -> Grid:
    """Decode a gviz ``setResponse(...)`` payload into a grid.

    The formatted value ``f`` wins over the raw value ``v`` so that amounts
    and percentages keep the representation shown in the sheet ("¥1,234",
    "38.0%").
    """
    match = _GVIZ_WRAPPER_RE.search(text or "")
    if not match:
        raise MalformedSourceError("response is not a gviz setResponse payload")
    try:
        payload = json.loads(match.group(1))
    except json.JSONDecodeError as e:
        raise MalformedSourceError(f"invalid gviz json: {e}") from e

    if payload.get("status") == "error":
        errors = payload.get("errors") or [{}]
        detail = errors[0].get("detailed_message") or errors[0].get("message") or "unknown error"
        raise MalformedSourceError(f"gviz error: {detail}")

    table = payload.get("table")
    if not isinstance(table, dict):
        raise MalformedSourceError("gviz payload has no table")

    grid: list[list[CellValue]] = []
    for row in table.get("rows") or []:
        cells = (row.get("c") or []) if isinstance(row, dict) else []
        out: list[CellValue] = []
        for cell in cells:
            if not cell:
                out.append(None)
            elif cell.get("f") is not None:
                out.append(cell["f"])
            else:
                out.append(cell.get("v"))
        grid.append(out)
    logger.debug("gviz decoded rows=%d", len(grid))
    return grid


def _to_cell(value: Any) -> CellValue:
    if value is None:
        return None
    if isinstance(value, float) and math.isnan(value):
        return None
    if hasattr(value, "item"):  # numpy scalar
        value = value.item()
    if isinstance(value, float) and math.isnan(value):
        return None
    if isinstance(value, (str, int, float)):
        return value
    # datetime 等 (フォームのタイムスタンプ列) は文字列として扱う
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


def _frame_to_grid(df: pd.DataFrame) -> Grid:
    return [[_to_cell(v) for v in row] for row in df.itertuples(index=False, name=None)]


def read_workbook(path: Path, target_sheets: Iterable[str] | None = None) -> dict[str, Grid]:
    """Read an ``.xlsx`` workbook into grids keyed by sheet name.

    Parameters
    ----------
    path: ワークブックのパス
    target_sheets: 対象シート制限 (None なら全シート)
    """
    if not path.exists():
        raise SheetNotFoundError(f"workbook not found: {path}")
    wanted = set(target_sheets) if target_sheets is not None else None
    grids: dict[str, Grid] = {}
    xls = pd.ExcelFile(path)
    for name in xls.sheet_names:
        if wanted is not None and str(name) not in wanted:
            continue
        # ヘッダなしで生読み (ヘッダ位置はシートごとに推定する)
        # "NA" / "N/A" / "NULL" 等は回答・氏名の文字列として残す
        df = xls.parse(name, header=None, dtype=object, keep_default_na=False, na_values=[""])
        grids[str(name)] = _frame_to_grid(df)
    return grids


class WorkbookSource:
    """``FetchGrid`` implementation backed by local workbooks.

    ``locations`` maps a source id to a workbook path. Each workbook is read
    once and cached for the lifetime of the source.
    """

    def __init__(self, locations: Mapping[str, str | Path]) -> None:
        self._locations = {k: Path(v) for k, v in locations.items()}
        self._cache: dict[str, dict[str, Grid]] = {}
        self._lock = threading.Lock()

    def _load(self, source_id: str) -> dict[str, Grid]:
        with self._lock:
            return self._load_locked(source_id)

    def _load_locked(self, source_id: str) -> dict[str, Grid]:
        if source_id not in self._cache:
            try:
                path = self._locations[source_id]
            except KeyError:
                raise MalformedSourceError(f"unknown source id: {source_id!r}") from None
            self._cache[source_id] = read_workbook(path)
        return self._cache[source_id]

    def read_sheet(self, source_id: str, sheet_name: str) -> Grid:
        sheets = self._load(source_id)
        if sheet_name not in sheets:
            raise SheetNotFoundError(f"sheet '{sheet_name}' not found in source '{source_id}'")
        return sheets[sheet_name]

    async def fetch_grid(self, source_id: str, sheet_name: str) -> Grid:
        return await asyncio.to_thread(self.read_sheet, source_id, sheet_name)

    async def __call__(self, source_id: str, sheet_name: str) -> Grid:
        return await self.fetch_grid(source_id, sheet_name)
