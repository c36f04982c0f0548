"""データモデル定義."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Post:
    """フィード検索結果の1投稿を表す."""

    like_count: int
    retweet_count: int
    reply_count: int
    bookmark_count: int
    quote_count: int
    view_count: int
    author_followers: int
    created_at: str = ""

    @property
    def engagement(self) -> int:
        return (
            self.like_count
            + self.retweet_count
            + self.reply_count
            + self.bookmark_count
            + self.quote_count
        )


@dataclass
class FeedPage:
    """フィード検索 API の1ページ分."""

    posts: list[Post]
    has_next_page: bool
    next_cursor: str | None


@dataclass
class PostAggregate:
    """1回の収集サイクルで集計した投稿の合計値."""

    total_engagement: int = 0
    total_views: int = 0
    post_count: int = 0
    followers: int = 0  # 最新投稿の投稿者フォロワー数


@dataclass
class Listing:
    """ローンチ予定プロジェクト (listings テーブルの1行)."""

    twitter_username: str  # 一意キー
    screen_name: str
    profile_image_url: str = ""
    bio: str = ""
    category: str = "meme"
    followers: int = 0
    launch_date: datetime | None = None
    active: bool = True
    telegram_username: str = ""
    description: str = ""
    website: str | None = None
    platform: str | None = None
    created_at: datetime | None = None
    last_updated: datetime | None = None


@dataclass
class Snapshot:
    """mindshares テーブルに追記する生の集計値.

    スコア・窓集計は保存せず、読み出し時に計算する。
    """

    twitter_username: str
    date: datetime
    total_engagement: int
    views_count: int
    tweet_count: int
    engagement_rate: float = 0.0


@dataclass
class WindowMetric:
    """1つの窓のスコアと変化率 (%)."""

    score: float = 0.0
    change: float = 0.0


@dataclass
class Mindshare:
    """24h / 7d 窓の集計結果."""

    h24: WindowMetric = field(default_factory=WindowMetric)
    d7: WindowMetric = field(default_factory=WindowMetric)

    def window(self, timeframe: str) -> WindowMetric:
        if timeframe == "24h":
            return self.h24
        if timeframe == "7d":
            return self.d7
        raise KeyError(timeframe)

    def to_dict(self) -> dict:
        return {
            "24h": {"score": self.h24.score, "change": self.h24.change},
            "7d": {"score": self.d7.score, "change": self.d7.change},
        }


@dataclass
class RankedListing:
    """ランキング対象: プロジェクト × 現在窓の mindshare."""

    listing: Listing
    mindshare: Mindshare
    latest: Snapshot | None = None


@dataclass
class RankingResult:
    """ランキングの1ページ分とページ情報."""

    listings: list[RankedListing]
    total: int
    pages: int
    current_page: int
    page_size: int


@dataclass
class CollectionSummary:
    """収集バッチ1回分の結果."""

    processed: int = 0
    saved: int = 0
    no_posts: int = 0
    failed: int = 0
    deactivated: int = 0
