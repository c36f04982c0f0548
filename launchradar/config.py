"""設定モジュール — 環境変数・定数定義."""

import os
from pathlib import Path

from dotenv import load_dotenv

# .env はプロジェクトルートに配置
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJECT_ROOT / ".env")

# --- Supabase ---
SUPABASE_URL: str = os.environ.get("SUPABASE_URL", "")
SUPABASE_SECRET_KEY: str = os.environ.get("SUPABASE_SECRET_KEY", "")
DB_SCHEMA: str = os.environ.get("DB_SCHEMA", "launch_radar")

# --- フィード検索 API (twitterapi.io) ---
X_API_KEY: str = os.environ.get("X_API_KEY", "")
FEED_API_BASE = os.environ.get("FEED_API_BASE", "https://api.twitterapi.io")
FEED_SEARCH_URL = f"{FEED_API_BASE}/twitter/tweet/advanced_search"
USER_INFO_URL = f"{FEED_API_BASE}/twitter/user/info"

# --- 収集設定 ---
LOOKBACK_HOURS = int(os.environ.get("LOOKBACK_HOURS", "24"))
HISTORY_DAYS = 14  # 7d 窓 + 直前 7d 窓
FETCH_PAGE_SIZE = 1000  # PostgREST の max-rows 既定値

# --- リクエスト設定 ---
REQUEST_INTERVAL_MIN = float(os.environ.get("REQUEST_INTERVAL_MIN", "0.5"))
REQUEST_INTERVAL_MAX = float(os.environ.get("REQUEST_INTERVAL_MAX", "1.5"))
REQUEST_TIMEOUT = int(os.environ.get("REQUEST_TIMEOUT", "15"))  # 秒

# --- 一覧・ランキング ---
PAGE_SIZE = int(os.environ.get("PAGE_SIZE", "10"))
TRENDING_LIMIT = 10
CATEGORIES = ("meme", "utility")

# 値 0 (データ未取得) を並び順に関係なく末尾へ送るソート項目
ZERO_LAST_FIELDS = frozenset(
    f.strip()
    for f in os.environ.get("ZERO_LAST_FIELDS", "mindshareScore,mindshareChange").split(",")
    if f.strip()
)

# --- Twitter OAuth2 (PKCE) ---
TWITTER_CLIENT_ID: str = os.environ.get("TWITTER_CLIENT_ID", "")
TWITTER_CLIENT_SECRET: str = os.environ.get("TWITTER_CLIENT_SECRET", "")
TWITTER_AUTHORIZE_URL = "https://twitter.com/i/oauth2/authorize"
TWITTER_TOKEN_URL = "https://api.twitter.com/2/oauth2/token"
TWITTER_ME_URL = "https://api.twitter.com/2/users/me"
TWITTER_SCOPES = "tweet.read users.read"
APP_URL = os.environ.get("APP_URL", "http://localhost:8000")
STATE_SECRET: str = os.environ.get("STATE_SECRET", "change-me-to-a-long-random-state-secret")
STATE_TTL_SECONDS = 600

# --- ログ ---
LOG_DIR = _PROJECT_ROOT / "logs"
LOG_DIR.mkdir(exist_ok=True)
