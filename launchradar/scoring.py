"""mindshare スコア計算モジュール.

分母が 0 の場合はすべて 0 を返す（NaN / 例外にしない）。
"""

from __future__ import annotations

from collections.abc import Iterable

from launchradar.models import Post, PostAggregate


def mindshare_score(total_engagement: float, total_views: float) -> float:
    """エンゲージメント / 閲覧数 をパーセントで返す."""
    if total_views <= 0:
        return 0.0
    return total_engagement / total_views * 100


def engagement_rate(total_engagement: float, post_count: int) -> float:
    """1投稿あたりの平均エンゲージメント（表示用）."""
    if post_count <= 0:
        return 0.0
    return total_engagement / post_count


def percent_change(current: float, previous: float) -> float:
    """previous → current の変化率 (%). 丸めは呼び出し側で行う."""
    if previous == 0:
        return 0.0
    return (current - previous) / previous * 100


def average(values: list[float]) -> float | None:
    """平均値。空なら None."""
    if not values:
        return None
    return sum(values) / len(values)


def aggregate_posts(posts: Iterable[Post]) -> PostAggregate:
    """投稿リストを1スナップショット分の合計値にまとめる.

    フォロワー数は先頭（最新）投稿の投稿者のものを使う。
    """
    agg = PostAggregate()
    for post in posts:
        if agg.post_count == 0:
            agg.followers = post.author_followers
        agg.total_engagement += post.engagement
        agg.total_views += post.view_count
        agg.post_count += 1
    return agg
