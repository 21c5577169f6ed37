from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.processing_result import SheetStat

"""Progress display over sheet fetches with tqdm (TTY only).

In non-TTY environments (CI, redirected output) no bar is created, so the
labeled log lines stay free of ANSI control sequences.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    return sys.stdout.isatty()


class ProgressTracker:
    """One tqdm bar advancing once per finished sheet fetch.

    ``sheet_done`` matches the pipeline's ``on_sheet_done`` callback.
    """

    def __init__(self, total_sheets: int, *, description: str = "Fetching sheets") -> None:
        self.total_sheets = total_sheets
        self.description = description
        self.done = 0
        self.failed = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_sheets,
                desc=description,
                unit="sheet",
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def sheet_done(self, stat: SheetStat) -> None:
        self.done += 1
        if stat.status != "ok":
            self.failed += 1
        if self.enabled and self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_postfix(sheet=stat.sheet, failed=self.failed)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
