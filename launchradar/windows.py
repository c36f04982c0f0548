"""24h / 7d 窓集計モジュール.

スナップショット履歴（生の集計値）から読み出し時にスコアと変化率を算出する。

  24h score  : 最新スナップショットのスコア（なければ 0）
  24h change : 最新 vs 1つ前 の変化率（2件未満なら 0）
  7d score   : [as_of-7d, as_of] の平均（該当なしなら 24h score）
  7d change  : 直近 7d 平均 vs [as_of-14d, as_of-7d) 平均
               （直前窓が空なら直近平均を比較対象とし 0%）

丸め（小数 2 桁）は Mindshare を組み立てる最後にだけ行う。
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from launchradar import db
from launchradar.config import HISTORY_DAYS
from launchradar.models import Mindshare, Snapshot, WindowMetric
from launchradar.scoring import average, mindshare_score, percent_change

logger = logging.getLogger(__name__)

WINDOW_7D = timedelta(days=7)


def snapshot_score(snapshot: Snapshot) -> float:
    return mindshare_score(snapshot.total_engagement, snapshot.views_count)


def history_start(as_of: datetime) -> datetime:
    """両窓と比較対象窓をカバーする読み出し開始時刻."""
    return as_of - timedelta(days=HISTORY_DAYS)


def summarize_history(snapshots: Iterable[Snapshot], as_of: datetime) -> Mindshare:
    """スナップショット履歴から 24h / 7d の窓集計を計算する（副作用なし）."""
    history = sorted(
        (s for s in snapshots if s.date <= as_of),
        key=lambda s: s.date,
        reverse=True,
    )

    latest = snapshot_score(history[0]) if history else 0.0
    previous = snapshot_score(history[1]) if len(history) > 1 else 0.0
    change_24h = percent_change(latest, previous)

    current_start = as_of - WINDOW_7D
    previous_start = current_start - WINDOW_7D
    current_scores = [snapshot_score(s) for s in history if s.date >= current_start]
    previous_scores = [
        snapshot_score(s) for s in history if previous_start <= s.date < current_start
    ]

    current_avg = average(current_scores)
    if current_avg is None:
        current_avg = latest
    previous_avg = average(previous_scores)
    if previous_avg is None:
        previous_avg = current_avg
    change_7d = percent_change(current_avg, previous_avg)

    return Mindshare(
        h24=WindowMetric(score=round(latest, 2), change=round(change_24h, 2)),
        d7=WindowMetric(score=round(current_avg, 2), change=round(change_7d, 2)),
    )


def compute_windows(handle: str, as_of: datetime | None = None) -> Mindshare:
    """指定プロジェクトの履歴を読み出して窓集計する."""
    as_of = as_of or datetime.now(timezone.utc)
    history = db.find_snapshots_since(handle, history_start(as_of))
    logger.debug("%s: 履歴 %d 件", handle, len(history))
    return summarize_history(history, as_of)
