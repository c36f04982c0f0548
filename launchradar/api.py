"""
Launch Radar API
================

FastAPI ベースの REST API。

Endpoints:
    GET  /api/listings            - active プロジェクトのランキング
    GET  /api/search              - 名前・ハンドル検索付きランキング
    GET  /api/trending            - 変化率上位
    GET  /api/count               - active プロジェクト数
    POST /api/create              - プロジェクト登録
    PUT  /api/update              - ローンチ日時更新
    POST /api/mindshare           - 収集バッチを1回実行
    GET  /api/auth/twitter        - OAuth2 (PKCE) 開始
    GET  /api/auth/callback/twitter

Usage:
    uvicorn launchradar.api:app --port 8000
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from urllib.parse import quote

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from launchradar import listings, oauth
from launchradar.collector import run_collection
from launchradar.config import STATE_TTL_SECONDS
from launchradar.errors import (
    ExternalApiError,
    InvalidQueryParameter,
    ListingAlreadyExists,
    ListingNotFound,
    OAuthStateError,
    PageOutOfRange,
)
from launchradar.models import RankedListing, RankingResult
from launchradar.ranking import parse_page

logger = logging.getLogger(__name__)

app = FastAPI(title="Launch Radar API", version="1.0.0")


# ============================================================================
# ERROR ENVELOPES
# ============================================================================

def _error(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    body = {"status": "error", "code": code, "message": message}
    body.update(extra)
    return JSONResponse(body, status_code=status_code)


@app.exception_handler(InvalidQueryParameter)
async def _invalid_parameter(request: Request, exc: InvalidQueryParameter):
    return _error(400, "INVALID_PARAMETER", str(exc), validValues=exc.valid_values)


@app.exception_handler(PageOutOfRange)
async def _page_out_of_range(request: Request, exc: PageOutOfRange):
    return _error(404, "NO_RESULTS", str(exc))


@app.exception_handler(ListingAlreadyExists)
async def _listing_exists(request: Request, exc: ListingAlreadyExists):
    return _error(400, "LISTING_EXISTS", "A listing already exists with this account")


@app.exception_handler(ListingNotFound)
async def _listing_not_found(request: Request, exc: ListingNotFound):
    return _error(404, "NOT_FOUND", "Listing not found")


@app.exception_handler(OAuthStateError)
async def _oauth_state(request: Request, exc: OAuthStateError):
    return _error(400, "INVALID_STATE", str(exc))


@app.exception_handler(ExternalApiError)
async def _upstream(request: Request, exc: ExternalApiError):
    logger.error("外部 API エラー: %s", exc)
    return _error(502, "UPSTREAM_ERROR", "Failed to fetch data from Twitter API")


@app.exception_handler(Exception)
async def _unhandled(request: Request, exc: Exception):
    logger.exception("未処理の例外: %s %s", request.method, request.url.path)
    return _error(500, "INTERNAL_SERVER_ERROR", "An error occurred while processing your request")


# ============================================================================
# SERIALIZATION
# ============================================================================

def serialize_listing(entry: RankedListing) -> dict:
    listing = entry.listing
    latest = entry.latest
    return {
        "twitterUsername": listing.twitter_username,
        "screenName": listing.screen_name,
        "profileImageUrl": listing.profile_image_url,
        "bio": listing.bio,
        "followers": listing.followers,
        "category": listing.category,
        "launchDate": listing.launch_date.isoformat() if listing.launch_date else None,
        "engagementRate": round(latest.engagement_rate, 2) if latest else 0,
        "viewsCount": latest.views_count if latest else 0,
        "tweetCount": latest.tweet_count if latest else 0,
        "mindshare": entry.mindshare.to_dict(),
    }


def ranking_envelope(result: RankingResult) -> dict:
    return {
        "status": "success",
        "data": {
            "listings": [serialize_listing(e) for e in result.listings],
            "pagination": {
                "total": result.total,
                "pages": result.pages,
                "currentPage": result.current_page,
                "pageSize": result.page_size,
            },
        },
    }


# ============================================================================
# REQUEST BODIES
# ============================================================================

class CreateListingRequest(BaseModel):
    twitterUsername: str
    category: str
    launchDate: datetime | None = None
    telegramUserName: str = ""
    description: str = ""
    website: str | None = None
    platform: str | None = None


class UpdateLaunchDateRequest(BaseModel):
    twitterUsername: str
    newLaunchDate: datetime


# ============================================================================
# ENDPOINTS
# ============================================================================

@app.get("/healthz", tags=["health"])
def health():
    return {"ok": True, "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/api/listings", tags=["listings"])
def get_listings(
    page: str | None = Query(None),
    sortField: str = Query("mindshareScore"),
    sortOrder: str = Query("desc"),
):
    result = listings.ranked_listings(
        sort_field=sortField,
        sort_order=sortOrder,
        page=parse_page(page),
        active_only=True,
    )
    return ranking_envelope(result)


@app.get("/api/search", tags=["listings"])
def search_listings(
    q: str = Query(""),
    page: str | None = Query(None),
    sortField: str = Query("mindshareScore"),
    sortOrder: str = Query("asc"),
):
    result = listings.ranked_listings(
        sort_field=sortField,
        sort_order=sortOrder,
        page=parse_page(page),
        search=q.strip(),
        active_only=False,
    )
    return ranking_envelope(result)


@app.get("/api/trending", tags=["listings"])
def get_trending(timeframe: str = Query("24h")):
    return {"status": "success", "data": listings.trending(timeframe)}


@app.get("/api/count", tags=["listings"])
def get_count():
    return {"status": "success", "count": listings.count_active()}


@app.post("/api/create", status_code=201, tags=["listings"])
def create_listing(body: CreateListingRequest):
    listing, has_snapshot = listings.create_listing(
        handle=body.twitterUsername,
        category=body.category,
        launch_date=body.launchDate,
        telegram_username=body.telegramUserName,
        description=body.description,
        website=body.website,
        platform=body.platform,
    )
    return {
        "status": "success",
        "message": (
            "Listing created successfully"
            if has_snapshot
            else "Listing created successfully with no recent tweets"
        ),
        "data": {"twitterUsername": listing.twitter_username, "active": listing.active},
    }


@app.put("/api/update", tags=["listings"])
def update_launch_date(body: UpdateLaunchDateRequest):
    listing = listings.update_launch_date(body.twitterUsername, body.newLaunchDate)
    return {
        "status": "success",
        "data": {
            "twitterUsername": listing.twitter_username,
            "launchDate": listing.launch_date.isoformat() if listing.launch_date else None,
            "active": listing.active,
        },
    }


@app.post("/api/mindshare", tags=["mindshare"])
def run_mindshare():
    summary = run_collection()
    return {
        "status": "success",
        "message": "Mindshare calculation completed",
        "processedListings": summary.processed,
        "saved": summary.saved,
        "failed": summary.failed,
    }


@app.get("/api/auth/twitter", tags=["auth"])
def twitter_auth(redirect: str = Query("/create")):
    if not redirect.startswith("/") or redirect.startswith("//"):
        redirect = "/create"
    auth_url, state_token = oauth.start_authorization(redirect)
    response = JSONResponse({"authUrl": auth_url})
    response.set_cookie(
        oauth.STATE_COOKIE, state_token,
        max_age=STATE_TTL_SECONDS, httponly=True, samesite="lax",
    )
    return response


@app.get(oauth.CALLBACK_PATH, tags=["auth"])
def twitter_callback(request: Request, code: str = Query(""), state: str = Query("")):
    claims = oauth.verify_state(request.cookies.get(oauth.STATE_COOKIE), state)
    if not code:
        raise OAuthStateError("Missing code or code_verifier")

    try:
        username = oauth.exchange_code(code, claims["verifier"])
    except ExternalApiError:
        return RedirectResponse(
            f"/create?error={quote('Failed to verify Twitter account')}", status_code=302
        )

    response = RedirectResponse(claims.get("redirect") or "/create", status_code=302)
    response.delete_cookie(oauth.STATE_COOKIE)
    response.set_cookie(
        "twitter_user", username,
        max_age=7200, secure=True, samesite="strict",
    )
    return response
