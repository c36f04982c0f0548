"""プロジェクト一覧サービス.

listings と mindshares を結合し、一覧・検索・トレンド・件数・登録・
ローンチ日時更新を提供する。
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from launchradar import db
from launchradar.collector import collect_snapshot
from launchradar.config import CATEGORIES, PAGE_SIZE, TRENDING_LIMIT
from launchradar.errors import (
    InvalidQueryParameter,
    ListingAlreadyExists,
    ListingNotFound,
)
from launchradar.feed import fetch_user_info
from launchradar.models import Listing, RankedListing, RankingResult
from launchradar.ranking import rank, validate_sort
from launchradar.windows import history_start, summarize_history

logger = logging.getLogger(__name__)

TIMEFRAMES = ("24h", "7d")


def build_entries(listings: list[Listing], as_of: datetime) -> list[RankedListing]:
    """各プロジェクトに窓集計を結合する."""
    handles = [listing.twitter_username for listing in listings]
    history = db.find_snapshots_by_handle(handles, history_start(as_of))

    entries = []
    for listing in listings:
        snapshots = history.get(listing.twitter_username, [])
        entries.append(RankedListing(
            listing=listing,
            mindshare=summarize_history(snapshots, as_of),
            latest=snapshots[0] if snapshots else None,
        ))
    return entries


def ranked_listings(
    sort_field: str = "mindshareScore",
    sort_order: str = "desc",
    page: int = 1,
    search: str = "",
    active_only: bool = True,
    page_size: int = PAGE_SIZE,
    as_of: datetime | None = None,
) -> RankingResult:
    """ランキングの1ページを返す."""
    validate_sort(sort_field, sort_order)
    as_of = as_of or datetime.now(timezone.utc)
    entries = build_entries(db.get_listings(active_only=active_only), as_of)
    return rank(
        entries,
        sort_field=sort_field,
        sort_order=sort_order,
        page=page,
        page_size=page_size,
        search=search,
    )


def trending(timeframe: str = "24h", limit: int = TRENDING_LIMIT,
             as_of: datetime | None = None) -> list[dict]:
    """変化率がプラスのプロジェクトを変化率の高い順に返す."""
    if timeframe not in TIMEFRAMES:
        raise InvalidQueryParameter("timeframe", timeframe, TIMEFRAMES)
    as_of = as_of or datetime.now(timezone.utc)

    entries = build_entries(db.get_listings(), as_of)
    rising = [e for e in entries if e.mindshare.window(timeframe).change > 0]
    rising.sort(key=lambda e: e.mindshare.window(timeframe).change, reverse=True)

    return [
        {
            "name": e.listing.screen_name,
            "avatar": e.listing.profile_image_url,
            "percentage": e.mindshare.window(timeframe).change,
        }
        for e in rising[:limit]
    ]


def count_active() -> int:
    return db.count_active_listings()


def create_listing(
    handle: str,
    category: str,
    launch_date: datetime | None,
    telegram_username: str = "",
    description: str = "",
    website: str | None = None,
    platform: str | None = None,
) -> tuple[Listing, bool]:
    """プロジェクトを登録し、投稿があれば初回スナップショットも保存する.

    Returns:
        (listing, 初回スナップショットを保存したか)

    Raises:
        InvalidQueryParameter: カテゴリ不正
        ListingAlreadyExists: 同じハンドルが登録済み
        ExternalApiError: プロフィール取得失敗
    """
    handle = handle.strip().lstrip("@")
    if not handle:
        raise InvalidQueryParameter("twitterUsername", handle)
    if category not in CATEGORIES:
        raise InvalidQueryParameter("category", category, CATEGORIES)
    if db.get_listing(handle) is not None:
        raise ListingAlreadyExists(handle)

    user = fetch_user_info(handle)
    now = datetime.now(timezone.utc)
    launch_date = _as_utc(launch_date)
    listing = Listing(
        twitter_username=user["userName"],
        screen_name=user.get("name") or user["userName"],
        profile_image_url=user.get("profilePicture") or "",
        bio=user.get("description") or "",
        category=category,
        followers=int(user.get("followers") or 0),
        launch_date=launch_date,
        active=launch_date is None or launch_date > now,
        telegram_username=telegram_username,
        description=description,
        website=website,
        platform=platform,
        created_at=now,
        last_updated=now,
    )
    snapshot, _ = collect_snapshot(listing, now=now)
    db.insert_listing(listing)

    if snapshot is None:
        logger.info("%s: 直近の投稿なし。初回スナップショットなしで登録", listing.twitter_username)
        return listing, False
    db.insert_snapshot(snapshot)
    return listing, True


def update_launch_date(handle: str, launch_date: datetime) -> Listing:
    """ローンチ日時を更新する。未来日時なら active に戻す."""
    now = datetime.now(timezone.utc)
    launch_date = _as_utc(launch_date)
    listing = db.update_launch_date(handle, launch_date, launch_date > now, now)
    if listing is None:
        raise ListingNotFound(handle)
    logger.info("ローンチ日時更新: %s → %s", handle, launch_date.isoformat())
    return listing


def _as_utc(value: datetime | None) -> datetime | None:
    """タイムゾーンなしの日時は UTC とみなす."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
