"""スナップショット収集モジュール.

処理フロー:
  1. ローンチ日時を過ぎたプロジェクトを無効化
  2. active なプロジェクトを取得
  3. プロジェクトごとに直近の投稿を検索・集計（1件ずつ順番に）
  4. 投稿があればスナップショットを追記、フォロワー数を更新
  5. 1プロジェクトの失敗は記録してスキップし、次へ進む
"""

from __future__ import annotations

import logging
import time
from datetime import datetime, timezone

from launchradar import db
from launchradar.config import LOOKBACK_HOURS
from launchradar.errors import ExternalApiError, RateLimited
from launchradar.feed import build_search_query, iter_feed_pages
from launchradar.models import CollectionSummary, Listing, PostAggregate, Snapshot
from launchradar.scoring import aggregate_posts, engagement_rate, mindshare_score

logger = logging.getLogger(__name__)


def collect_posts(handle: str, lookback_hours: int = LOOKBACK_HOURS) -> PostAggregate:
    """検索結果を全ページ取得して集計する.

    Raises:
        ExternalApiError: いずれかのページ取得に失敗した
    """
    query = build_search_query(handle, lookback_hours)
    posts = []
    for page in iter_feed_pages(query):
        posts.extend(page.posts)
    return aggregate_posts(posts)


def collect_snapshot(
    listing: Listing,
    now: datetime | None = None,
    lookback_hours: int = LOOKBACK_HOURS,
) -> tuple[Snapshot | None, PostAggregate]:
    """1プロジェクト分のスナップショットを作成する（保存はしない）.

    Returns:
        (snapshot, aggregate)。投稿 0 件なら snapshot は None。

    Raises:
        ExternalApiError: フィード API の失敗（RateLimited を含む）
    """
    now = now or datetime.now(timezone.utc)
    agg = collect_posts(listing.twitter_username, lookback_hours)
    if agg.post_count == 0:
        return None, agg

    snapshot = Snapshot(
        twitter_username=listing.twitter_username,
        date=now,
        total_engagement=agg.total_engagement,
        views_count=agg.total_views,
        tweet_count=agg.post_count,
        engagement_rate=engagement_rate(agg.total_engagement, agg.post_count),
    )
    logger.info(
        "  %s: tweets=%d, engagement=%d, views=%d, score=%.2f",
        listing.twitter_username, agg.post_count, agg.total_engagement,
        agg.total_views, mindshare_score(agg.total_engagement, agg.total_views),
    )
    return snapshot, agg


def save_snapshot(listing: Listing, snapshot: Snapshot, agg: PostAggregate) -> None:
    """スナップショットを追記し、フォロワー数が取れていれば更新する."""
    db.insert_snapshot(snapshot)
    if agg.followers > 0:
        db.update_listing_followers(listing.twitter_username, agg.followers, snapshot.date)


def run_collection(now: datetime | None = None) -> CollectionSummary:
    """全 active プロジェクトを順番に収集する."""
    start_time = time.time()
    now = now or datetime.now(timezone.utc)
    summary = CollectionSummary()

    summary.deactivated = db.deactivate_expired_listings(now)
    listings = db.get_listings(active_only=True)
    if not listings:
        logger.warning("active なプロジェクトがありません。終了します。")
        return summary

    logger.info("収集対象プロジェクト: %d 件", len(listings))

    for listing in listings:
        summary.processed += 1
        logger.info("収集中: %s", listing.twitter_username)
        try:
            snapshot, agg = collect_snapshot(listing, now=now)
        except RateLimited as e:
            summary.failed += 1
            logger.warning("レート制限のためスキップ: %s (%s)", listing.twitter_username, e)
            continue
        except ExternalApiError as e:
            summary.failed += 1
            logger.error("収集失敗のためスキップ: %s (%s)", listing.twitter_username, e)
            continue

        if snapshot is None:
            summary.no_posts += 1
            logger.info("  %s: 投稿なし。スナップショットは作成しません", listing.twitter_username)
            continue

        try:
            save_snapshot(listing, snapshot, agg)
        except Exception:
            summary.failed += 1
            logger.exception("保存失敗のためスキップ: %s", listing.twitter_username)
            continue
        summary.saved += 1

    elapsed = time.time() - start_time
    logger.info(
        "処理: %d 件, 保存: %d 件, 投稿なし: %d 件, エラー: %d 件, 所要時間: %.1f 秒",
        summary.processed, summary.saved, summary.no_posts, summary.failed, elapsed,
    )
    return summary
