from __future__ import annotations

from unittest.mock import patch

from evaldash.models.processing_result import SheetStat
from evaldash.services.progress import ProgressTracker, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


def test_tracker_with_tty_updates_bar():
    with patch("evaldash.services.progress.is_tty_enabled", return_value=True), patch(
        "evaldash.services.progress.tqdm"
    ) as mock_tqdm:
        with ProgressTracker(2, description="Fetching") as tracker:
            tracker.sheet_done(SheetStat("sales", "東京", "ok", 10, 0.1))
            tracker.sheet_done(SheetStat("sales", "大阪", "failed", 0, 0.1))
        bar = mock_tqdm.return_value
        mock_tqdm.assert_called_once_with(
            total=2, desc="Fetching", unit="sheet", leave=True, position=0, ncols=80, ascii=True
        )
        assert bar.update.call_count == 2
        bar.set_postfix.assert_called_with(sheet="大阪", failed=1)
        bar.close.assert_called_once()
        assert (tracker.done, tracker.failed) == (2, 1)


def test_tracker_without_tty_creates_no_bar():
    with patch("evaldash.services.progress.is_tty_enabled", return_value=False), patch(
        "evaldash.services.progress.tqdm"
    ) as mock_tqdm:
        tracker = ProgressTracker(3)
        tracker.sheet_done(SheetStat("sales", "東京", "ok", 10, 0.1))
        tracker.close()
        mock_tqdm.assert_not_called()
        assert tracker.pbar is None
        assert tracker.done == 1
