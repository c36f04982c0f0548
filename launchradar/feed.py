"""フィード検索 API (twitterapi.io) クライアント.

取得戦略:
  1. advanced_search をカーソルで順にページング
  2. 空ページ または has_next_page=false で終了
  3. 2ページ目以降は取得前に 0.5〜1.5 秒ランダムで待機（レート制限対策）
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Iterator

import requests

from launchradar.config import (
    FEED_SEARCH_URL,
    LOOKBACK_HOURS,
    REQUEST_INTERVAL_MAX,
    REQUEST_INTERVAL_MIN,
    REQUEST_TIMEOUT,
    USER_INFO_URL,
    X_API_KEY,
)
from launchradar.errors import ExternalApiError, RateLimited
from launchradar.models import FeedPage, Post

logger = logging.getLogger(__name__)


def build_search_query(handle: str, lookback_hours: int = LOOKBACK_HOURS) -> str:
    """本人の投稿 OR 本人へのメンション（本人以外）、リツイート除外の検索クエリ."""
    return (
        f"(from:{handle} OR (@{handle} -from:{handle})) "
        f"within_time:{lookback_hours}h -filter:retweets"
    )


def _headers() -> dict:
    return {
        "X-API-Key": X_API_KEY,
        "Accept": "application/json",
    }


def _get_json(url: str, params: dict) -> dict:
    """GET して JSON を返す。失敗時は ExternalApiError / RateLimited."""
    try:
        resp = requests.get(url, params=params, headers=_headers(), timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise ExternalApiError(f"request failed: {e}") from e

    if resp.status_code == 429:
        raise RateLimited(f"rate limited: {url}")
    try:
        resp.raise_for_status()
    except requests.HTTPError as e:
        raise ExternalApiError(f"HTTP {resp.status_code}: {e}") from e

    try:
        data = resp.json()
    except ValueError as e:
        raise ExternalApiError(f"malformed JSON from {url}") from e
    if not isinstance(data, dict):
        raise ExternalApiError(f"unexpected payload from {url}")
    return data


def fetch_feed_page(query: str, cursor: str | None = None) -> FeedPage:
    """検索結果を1ページ取得する.

    Args:
        query: 検索クエリ（build_search_query の出力）
        cursor: 前ページの next_cursor。初回は None。

    Raises:
        ExternalApiError: 通信失敗・非 2xx・不正なペイロード
        RateLimited: HTTP 429
    """
    params = {"query": query, "queryType": "Latest"}
    if cursor:
        params["cursor"] = cursor

    data = _get_json(FEED_SEARCH_URL, params)
    tweets = data.get("tweets")
    if tweets is None:
        tweets = []
    if not isinstance(tweets, list):
        raise ExternalApiError("tweets is not a list")
    if not all(isinstance(t, dict) for t in tweets):
        raise ExternalApiError("malformed tweet")

    return FeedPage(
        posts=[parse_post(t) for t in tweets],
        has_next_page=bool(data.get("has_next_page")),
        next_cursor=data.get("next_cursor") or None,
    )


def wait_interval() -> None:
    """リクエスト間隔を 0.5〜1.5 秒ランダムで待機する."""
    interval = random.uniform(REQUEST_INTERVAL_MIN, REQUEST_INTERVAL_MAX)
    logger.debug("次のリクエストまで %.2f 秒待機", interval)
    time.sleep(interval)


def iter_feed_pages(query: str) -> Iterator[FeedPage]:
    """検索結果ページを API の返却順に遅延生成する.

    空ページ、has_next_page=false、カーソルなしのいずれかで終了する。
    取得失敗は例外としてそのまま呼び出し側へ送出する（リトライしない）。
    """
    cursor: str | None = None
    page_no = 0
    while True:
        if page_no > 0:
            wait_interval()
        page_no += 1

        page = fetch_feed_page(query, cursor)
        logger.debug("ページ %d: %d 件", page_no, len(page.posts))
        if not page.posts:
            return
        yield page

        if not page.has_next_page or not page.next_cursor:
            return
        cursor = page.next_cursor


def parse_post(tweet: dict) -> Post:
    """API の tweet オブジェクトを Post に変換する。欠損カウンタは 0 扱い."""
    return Post(
        like_count=_as_int(tweet.get("likeCount")),
        retweet_count=_as_int(tweet.get("retweetCount")),
        reply_count=_as_int(tweet.get("replyCount")),
        bookmark_count=_as_int(tweet.get("bookmarkCount")),
        quote_count=_as_int(tweet.get("quoteCount")),
        view_count=_as_int(tweet.get("viewCount")),
        author_followers=_as_int(_deep_get(tweet, "author", "followers")),
        created_at=tweet.get("createdAt") or "",
    )


def fetch_user_info(handle: str) -> dict:
    """プロフィール情報を取得する.

    Returns:
        {"userName", "name", "profilePicture", "description", "followers", ...}

    Raises:
        ExternalApiError: 通信失敗、または API が status=error を返した
    """
    data = _get_json(USER_INFO_URL, {"userName": handle})
    if data.get("status") == "error":
        raise ExternalApiError(f"Twitter API error: {data.get('msg', '')}")
    user = data.get("data")
    if not isinstance(user, dict) or not user.get("userName"):
        raise ExternalApiError(f"user not found: {handle}")
    return user


def _as_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


def _deep_get(d: dict, *keys: str):
    """ネストされた dict から安全に値を取得する."""
    for key in keys:
        if not isinstance(d, dict):
            return None
        d = d.get(key)
    return d
