"""ランキング・ページングモジュール.

ソートキーは (値なしフラグ, 指定項目, ローンチ日時 昇順) の複合キー。
ZERO_LAST_FIELDS に含まれる項目では値 0 のエントリを並び順に関係なく末尾へ送る。
"""

from __future__ import annotations

import math
from collections.abc import Callable, Iterable

from launchradar.config import PAGE_SIZE, ZERO_LAST_FIELDS
from launchradar.errors import InvalidQueryParameter, PageOutOfRange
from launchradar.models import RankedListing, RankingResult

SORT_ORDERS = ("asc", "desc")


def _launch_ts(entry: RankedListing) -> float | None:
    launch = entry.listing.launch_date
    return launch.timestamp() if launch else None


SORT_FIELDS: dict[str, Callable[[RankedListing], float | None]] = {
    "followers": lambda e: float(e.listing.followers),
    "mindshareScore": lambda e: e.mindshare.h24.score,
    "mindshareChange": lambda e: e.mindshare.h24.change,
    "launchDate": _launch_ts,
}


def validate_sort(sort_field: str | None, sort_order: str | None) -> tuple[str, str]:
    """ソート指定を検証する。不正値は InvalidQueryParameter."""
    if sort_field not in SORT_FIELDS:
        raise InvalidQueryParameter("sortField", sort_field, SORT_FIELDS)
    if sort_order not in SORT_ORDERS:
        raise InvalidQueryParameter("sortOrder", sort_order, SORT_ORDERS)
    return sort_field, sort_order


def parse_page(value) -> int:
    """ページ番号を int に変換する。1 未満は 1 に丸める."""
    if value is None or value == "":
        return 1
    try:
        page = int(value)
    except (TypeError, ValueError):
        raise InvalidQueryParameter("page", value) from None
    return max(1, page)


def matches(entry: RankedListing, search: str) -> bool:
    """表示名またはハンドルに部分一致するか（大文字小文字を区別しない）."""
    if not search:
        return True
    needle = search.lower()
    return (
        needle in entry.listing.screen_name.lower()
        or needle in entry.listing.twitter_username.lower()
    )


def sort_key(
    sort_field: str, sort_order: str, zero_last_fields: Iterable[str] = ZERO_LAST_FIELDS
) -> Callable[[RankedListing], tuple]:
    """複合ソートキー関数を返す."""
    getter = SORT_FIELDS[sort_field]
    zero_last = sort_field in set(zero_last_fields)
    sign = -1 if sort_order == "desc" else 1

    def key(entry: RankedListing) -> tuple:
        value = getter(entry)
        no_value = value is None or (zero_last and value == 0)
        primary = 0.0 if value is None else sign * value
        launch = _launch_ts(entry)
        return (
            no_value,
            primary,
            launch is None,
            launch or 0.0,
            entry.listing.twitter_username,
        )

    return key


def rank(
    entries: Iterable[RankedListing],
    sort_field: str,
    sort_order: str,
    page: int = 1,
    page_size: int = PAGE_SIZE,
    search: str = "",
    zero_last_fields: Iterable[str] = ZERO_LAST_FIELDS,
) -> RankingResult:
    """絞り込み・ソート・ページ切り出しを行う.

    Raises:
        InvalidQueryParameter: ソート指定・ページサイズが不正
        PageOutOfRange: page > 1 で該当データがない
    """
    validate_sort(sort_field, sort_order)
    if page_size < 1:
        raise InvalidQueryParameter("pageSize", page_size)
    page = max(1, page)

    search = (search or "").strip()
    filtered = [e for e in entries if matches(e, search)]
    filtered.sort(key=sort_key(sort_field, sort_order, zero_last_fields))

    total = len(filtered)
    start = (page - 1) * page_size
    sliced = filtered[start:start + page_size]
    if not sliced and page > 1:
        raise PageOutOfRange(page)

    return RankingResult(
        listings=sliced,
        total=total,
        pages=math.ceil(total / page_size),
        current_page=page,
        page_size=page_size,
    )
