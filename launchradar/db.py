"""Supabase データベース操作モジュール.

全テーブルは launch_radar スキーマ（DB_SCHEMA）に配置。
  - listings:   プロジェクト。twitter_username が一意キー
  - mindshares: スナップショット。追記のみ（更新・削除しない）
"""

from __future__ import annotations

import logging
import re
from collections import defaultdict
from collections.abc import Callable
from datetime import datetime
from functools import lru_cache
from typing import Any

from supabase import create_client

from launchradar.config import DB_SCHEMA, FETCH_PAGE_SIZE, SUPABASE_SECRET_KEY, SUPABASE_URL
from launchradar.models import Listing, Snapshot

logger = logging.getLogger(__name__)

_LISTING_COLUMNS = (
    "twitter_username, screen_name, profile_image_url, bio, category, followers, "
    "launch_date, active, telegram_username, description, website, platform, "
    "created_at, last_updated"
)
_SNAPSHOT_COLUMNS = (
    "twitter_username, date, total_engagement, views_count, tweet_count, engagement_rate"
)


@lru_cache(maxsize=1)
def _get_client():
    return create_client(SUPABASE_URL, SUPABASE_SECRET_KEY)


def _table(name: str):
    """launch_radar スキーマのテーブルを参照する."""
    return _get_client().schema(DB_SCHEMA).table(name)


def _fetch_all(build_query: Callable[[], Any], page_size: int | None = None) -> list[dict]:
    """range 指定で全ページを取得する.

    PostgREST は 1 リクエストあたり max-rows（既定 1000）件までしか返さないため、
    短いページが返るまで取得を続ける。build_query は毎回新しいクエリを返すこと
    （順序が一意に決まる order 付き）。
    """
    page_size = page_size or FETCH_PAGE_SIZE
    rows: list[dict] = []
    start = 0
    while True:
        resp = build_query().range(start, start + page_size - 1).execute()
        page = resp.data or []
        rows.extend(page)
        if len(page) < page_size:
            return rows
        start += page_size


# --- listings ---


def get_listings(active_only: bool = False) -> list[Listing]:
    """プロジェクト一覧を取得する."""

    def build():
        query = _table("listings").select(_LISTING_COLUMNS)
        if active_only:
            query = query.eq("active", True)
        return query.order("twitter_username")

    return [_row_to_listing(row) for row in _fetch_all(build)]


def get_listing(handle: str) -> Listing | None:
    resp = (
        _table("listings")
        .select(_LISTING_COLUMNS)
        .eq("twitter_username", handle)
        .limit(1)
        .execute()
    )
    if not resp.data:
        return None
    return _row_to_listing(resp.data[0])


def count_active_listings() -> int:
    resp = (
        _table("listings")
        .select("twitter_username", count="exact")
        .eq("active", True)
        .execute()
    )
    return resp.count or 0


def insert_listing(listing: Listing) -> None:
    _table("listings").insert(_listing_to_row(listing)).execute()
    logger.info("listings に挿入: %s", listing.twitter_username)


def deactivate_expired_listings(now: datetime) -> int:
    """ローンチ日時を過ぎたプロジェクトを active=false にする.

    Returns:
        無効化した件数
    """
    resp = (
        _table("listings")
        .update({"active": False})
        .eq("active", True)
        .lte("launch_date", now.isoformat())
        .execute()
    )
    count = len(resp.data or [])
    if count:
        logger.info("ローンチ済みのため無効化: %d 件", count)
    return count


def update_listing_followers(handle: str, followers: int, updated_at: datetime) -> None:
    _table("listings").update({
        "followers": followers,
        "last_updated": updated_at.isoformat(),
    }).eq("twitter_username", handle).execute()


def update_launch_date(
    handle: str, launch_date: datetime, active: bool, updated_at: datetime
) -> Listing | None:
    """ローンチ日時を更新する。該当なしなら None."""
    resp = (
        _table("listings")
        .update({
            "launch_date": launch_date.isoformat(),
            "active": active,
            "last_updated": updated_at.isoformat(),
        })
        .eq("twitter_username", handle)
        .execute()
    )
    if not resp.data:
        return None
    return _row_to_listing(resp.data[0])


# --- mindshares ---


def insert_snapshot(snapshot: Snapshot) -> None:
    """スナップショットを1件追記する."""
    _table("mindshares").insert(_snapshot_to_row(snapshot)).execute()
    logger.info(
        "mindshares に挿入: %s (tweets=%d, views=%d)",
        snapshot.twitter_username, snapshot.tweet_count, snapshot.views_count,
    )


def find_snapshots_since(handle: str, since: datetime) -> list[Snapshot]:
    """指定プロジェクトの since 以降のスナップショットを新しい順で返す."""

    def build():
        return (
            _table("mindshares")
            .select(_SNAPSHOT_COLUMNS)
            .eq("twitter_username", handle)
            .gte("date", since.isoformat())
            .order("date", desc=True)
        )

    return [_row_to_snapshot(row) for row in _fetch_all(build)]


def find_snapshots_by_handle(handles: list[str], since: datetime) -> dict[str, list[Snapshot]]:
    """複数プロジェクト分をまとめて取得し、ハンドルごとに新しい順で返す."""
    if not handles:
        return {}

    def build():
        return (
            _table("mindshares")
            .select(_SNAPSHOT_COLUMNS)
            .in_("twitter_username", handles)
            .gte("date", since.isoformat())
            .order("date", desc=True)
            .order("twitter_username")
        )

    grouped: dict[str, list[Snapshot]] = defaultdict(list)
    for row in _fetch_all(build):
        snap = _row_to_snapshot(row)
        grouped[snap.twitter_username].append(snap)
    return dict(grouped)


# --- 変換 ---

# Postgres は秒の小数部の末尾 0 を省く（3.10 の fromisoformat は 3 桁 / 6 桁のみ受け付ける）
_FRACTION = re.compile(r"\.(\d+)")


def _parse_ts(value) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).replace("Z", "+00:00")
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _row_to_listing(row: dict) -> Listing:
    return Listing(
        twitter_username=row["twitter_username"],
        screen_name=row.get("screen_name") or "",
        profile_image_url=row.get("profile_image_url") or "",
        bio=row.get("bio") or "",
        category=row.get("category") or "meme",
        followers=row.get("followers") or 0,
        launch_date=_parse_ts(row.get("launch_date")),
        active=bool(row.get("active", True)),
        telegram_username=row.get("telegram_username") or "",
        description=row.get("description") or "",
        website=row.get("website"),
        platform=row.get("platform"),
        created_at=_parse_ts(row.get("created_at")),
        last_updated=_parse_ts(row.get("last_updated")),
    )


def _listing_to_row(listing: Listing) -> dict:
    row = {
        "twitter_username": listing.twitter_username,
        "screen_name": listing.screen_name,
        "profile_image_url": listing.profile_image_url,
        "bio": listing.bio,
        "category": listing.category,
        "followers": listing.followers,
        "launch_date": _iso(listing.launch_date),
        "active": listing.active,
        "telegram_username": listing.telegram_username,
        "description": listing.description,
        "website": listing.website,
        "platform": listing.platform,
    }
    if listing.created_at:
        row["created_at"] = listing.created_at.isoformat()
    if listing.last_updated:
        row["last_updated"] = listing.last_updated.isoformat()
    return row


def _row_to_snapshot(row: dict) -> Snapshot:
    return Snapshot(
        twitter_username=row["twitter_username"],
        date=_parse_ts(row["date"]),
        total_engagement=row.get("total_engagement") or 0,
        views_count=row.get("views_count") or 0,
        tweet_count=row.get("tweet_count") or 0,
        engagement_rate=row.get("engagement_rate") or 0.0,
    )


def _snapshot_to_row(snapshot: Snapshot) -> dict:
    return {
        "twitter_username": snapshot.twitter_username,
        "date": snapshot.date.isoformat(),
        "total_engagement": snapshot.total_engagement,
        "views_count": snapshot.views_count,
        "tweet_count": snapshot.tweet_count,
        "engagement_rate": snapshot.engagement_rate,
    }
