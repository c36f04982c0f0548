"""windows モジュールのユニットテスト."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from launchradar.models import Snapshot
from launchradar.windows import compute_windows, summarize_history

AS_OF = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


def _snap(score: float, age: timedelta, handle: str = "moonpad") -> Snapshot:
    """score (%) を持つスナップショット（views=1000 固定）."""
    return Snapshot(
        twitter_username=handle,
        date=AS_OF - age,
        total_engagement=int(score * 10),
        views_count=1000,
        tweet_count=5,
    )


class TestSummarizeHistory:
    """summarize_history のテスト."""

    def test_latest_previous_and_weekly_average(self):
        """10, 20, 30 (2日前, 1日前, 直近) → 24h=30 / +50%, 7d=20 / 0%."""
        history = [
            _snap(10, timedelta(days=2)),
            _snap(20, timedelta(days=1)),
            _snap(30, timedelta(minutes=5)),
        ]
        ms = summarize_history(history, AS_OF)

        assert ms.h24.score == 30.0
        assert ms.h24.change == 50.0
        assert ms.d7.score == 20.0
        assert ms.d7.change == 0

    def test_no_history(self):
        ms = summarize_history([], AS_OF)

        assert ms.to_dict() == {
            "24h": {"score": 0, "change": 0},
            "7d": {"score": 0, "change": 0},
        }

    def test_single_snapshot_has_zero_change(self):
        ms = summarize_history([_snap(12.5, timedelta(hours=2))], AS_OF)

        assert ms.h24.change == 0
        assert ms.d7.change == 0

    def test_recent_only_weekly_equals_daily(self):
        ms = summarize_history([_snap(12.5, timedelta(hours=2))], AS_OF)

        assert ms.d7.score == ms.h24.score == 12.5

    def test_weekly_falls_back_to_latest_when_window_empty(self):
        """直近 7 日に記録がなければ 7d score は最新スコア."""
        history = [_snap(40, timedelta(days=9)), _snap(20, timedelta(days=10))]
        ms = summarize_history(history, AS_OF)

        assert ms.h24.score == 40.0
        assert ms.d7.score == 40.0

    def test_weekly_change_against_previous_window(self):
        history = [
            _snap(30, timedelta(days=1)),
            _snap(10, timedelta(days=3)),
            _snap(10, timedelta(days=8)),
            _snap(5, timedelta(days=12)),
        ]
        ms = summarize_history(history, AS_OF)

        # 直近 7d 平均 20, 直前 7d 平均 7.5 → +166.67%
        assert ms.d7.score == 20.0
        assert ms.d7.change == 166.67

    def test_previous_zero_score_gives_zero_change(self):
        history = [_snap(30, timedelta(hours=1)), _snap(0, timedelta(hours=5))]
        ms = summarize_history(history, AS_OF)

        assert ms.h24.change == 0

    def test_order_of_input_does_not_matter(self):
        history = [
            _snap(30, timedelta(minutes=5)),
            _snap(10, timedelta(days=2)),
            _snap(20, timedelta(days=1)),
        ]
        assert summarize_history(history, AS_OF).h24.change == 50.0

    def test_future_snapshots_are_ignored(self):
        history = [_snap(10, timedelta(hours=1)), _snap(99, timedelta(hours=-1))]
        assert summarize_history(history, AS_OF).h24.score == 10.0

    def test_rounding_only_at_the_end(self):
        # 1/3 % と 2/3 % → +100%
        history = [
            Snapshot("moonpad", AS_OF - timedelta(hours=1), 2, 300, 1),
            Snapshot("moonpad", AS_OF - timedelta(hours=2), 1, 300, 1),
        ]
        ms = summarize_history(history, AS_OF)

        assert ms.h24.score == 0.67
        assert ms.h24.change == 100.0


class TestComputeWindows:
    """compute_windows のテスト."""

    @patch("launchradar.windows.db.find_snapshots_since")
    def test_reads_fourteen_days(self, mock_find):
        mock_find.return_value = [_snap(30, timedelta(hours=1))]

        ms = compute_windows("moonpad", AS_OF)

        mock_find.assert_called_once_with("moonpad", AS_OF - timedelta(days=14))
        assert ms.h24.score == 30.0

    @patch("launchradar.windows.db.find_snapshots_since")
    def test_repeated_reads_are_identical(self, mock_find):
        mock_find.return_value = [
            _snap(10, timedelta(days=2)),
            _snap(20, timedelta(days=1)),
        ]

        assert compute_windows("moonpad", AS_OF) == compute_windows("moonpad", AS_OF)

    @pytest.mark.parametrize("score", [0, 0.0])
    @patch("launchradar.windows.db.find_snapshots_since")
    def test_all_zero_history(self, mock_find, score):
        mock_find.return_value = [_snap(score, timedelta(days=d)) for d in (1, 2, 8)]

        ms = compute_windows("moonpad", AS_OF)
        assert ms.to_dict()["7d"] == {"score": 0, "change": 0}
