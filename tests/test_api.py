"""API エンドポイントのテスト."""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from launchradar.api import app
from launchradar.errors import ExternalApiError, ListingAlreadyExists, PageOutOfRange
from launchradar.models import (
    CollectionSummary,
    Listing,
    Mindshare,
    RankedListing,
    RankingResult,
    Snapshot,
    WindowMetric,
)


@pytest.fixture
def client() -> TestClient:
    return TestClient(app, raise_server_exceptions=False)


def _result(entries, total=None, page=1):
    total = len(entries) if total is None else total
    return RankingResult(
        listings=entries, total=total, pages=-(-total // 10), current_page=page, page_size=10,
    )


def _entry():
    launch = datetime(2026, 11, 1, tzinfo=timezone.utc)
    return RankedListing(
        listing=Listing("moonpad", "MoonPad", followers=5000, launch_date=launch),
        mindshare=Mindshare(
            h24=WindowMetric(score=30.0, change=50.0),
            d7=WindowMetric(score=20.0, change=0.0),
        ),
        latest=Snapshot("moonpad", launch, 300, 1000, 15, 20.0),
    )


class TestListingsEndpoint:
    """GET /api/listings のテスト."""

    @patch("launchradar.api.listings.ranked_listings")
    def test_envelope(self, mock_ranked, client):
        mock_ranked.return_value = _result([_entry()])

        r = client.get("/api/listings?page=1")

        assert r.status_code == 200
        body = r.json()
        assert body["status"] == "success"
        item = body["data"]["listings"][0]
        assert item["followers"] == 5000
        assert item["launchDate"] == "2026-11-01T00:00:00+00:00"
        assert item["mindshare"] == {
            "24h": {"score": 30.0, "change": 50.0},
            "7d": {"score": 20.0, "change": 0.0},
        }
        assert item["engagementRate"] == 20.0
        assert item["tweetCount"] == 15
        assert body["data"]["pagination"] == {
            "total": 1, "pages": 1, "currentPage": 1, "pageSize": 10,
        }
        kwargs = mock_ranked.call_args.kwargs
        assert kwargs["sort_field"] == "mindshareScore"
        assert kwargs["sort_order"] == "desc"
        assert kwargs["active_only"] is True

    def test_invalid_sort_field(self, client):
        r = client.get("/api/listings?sortField=volume")

        assert r.status_code == 400
        body = r.json()
        assert body["status"] == "error"
        assert body["code"] == "INVALID_PARAMETER"
        assert "followers" in body["validValues"]

    def test_invalid_page(self, client):
        r = client.get("/api/listings?page=abc")
        assert r.status_code == 400

    @patch("launchradar.api.listings.ranked_listings")
    def test_page_out_of_range(self, mock_ranked, client):
        mock_ranked.side_effect = PageOutOfRange(4)

        r = client.get("/api/listings?page=4")

        assert r.status_code == 404
        assert r.json() == {
            "status": "error",
            "code": "NO_RESULTS",
            "message": "No listings found for this page",
        }

    @patch("launchradar.api.listings.ranked_listings")
    def test_unhandled_error(self, mock_ranked, client):
        mock_ranked.side_effect = RuntimeError("db down")

        r = client.get("/api/listings")

        assert r.status_code == 500
        assert r.json()["code"] == "INTERNAL_SERVER_ERROR"


class TestSearchEndpoint:
    """GET /api/search のテスト."""

    @patch("launchradar.listings.db")
    def test_no_match_is_empty_success(self, mock_db, client):
        mock_db.get_listings.return_value = [Listing("moonpad", "MoonPad")]
        mock_db.find_snapshots_by_handle.return_value = {}

        r = client.get("/api/search?q=zzz_nonexistent")

        assert r.status_code == 200
        assert r.json()["data"] == {
            "listings": [],
            "pagination": {"total": 0, "pages": 0, "currentPage": 1, "pageSize": 10},
        }
        mock_db.get_listings.assert_called_once_with(active_only=False)

    @patch("launchradar.listings.db")
    def test_match(self, mock_db, client):
        mock_db.get_listings.return_value = [Listing("moonpad", "MoonPad"), Listing("sun", "Sun")]
        mock_db.find_snapshots_by_handle.return_value = {}

        r = client.get("/api/search?q=moon&sortField=followers&sortOrder=desc")

        names = [l["twitterUsername"] for l in r.json()["data"]["listings"]]
        assert names == ["moonpad"]


class TestOtherEndpoints:
    """trending / count / create / update / mindshare のテスト."""

    @patch("launchradar.api.listings.trending")
    def test_trending(self, mock_trending, client):
        mock_trending.return_value = [{"name": "MoonPad", "avatar": "", "percentage": 12.5}]

        r = client.get("/api/trending?timeframe=7d")

        assert r.json() == {"status": "success", "data": mock_trending.return_value}
        mock_trending.assert_called_once_with("7d")

    def test_trending_invalid_timeframe(self, client):
        assert client.get("/api/trending?timeframe=1y").status_code == 400

    @patch("launchradar.api.listings.count_active")
    def test_count(self, mock_count, client):
        mock_count.return_value = 3
        assert client.get("/api/count").json() == {"status": "success", "count": 3}

    @patch("launchradar.api.listings.create_listing")
    def test_create(self, mock_create, client):
        mock_create.return_value = (Listing("moonpad", "MoonPad"), False)

        r = client.post("/api/create", json={
            "twitterUsername": "moonpad",
            "category": "meme",
            "launchDate": "2026-11-01T00:00:00Z",
            "telegramUserName": "moon_tg",
        })

        assert r.status_code == 201
        assert r.json()["message"] == "Listing created successfully with no recent tweets"
        assert mock_create.call_args.kwargs["launch_date"] == datetime(2026, 11, 1, tzinfo=timezone.utc)

    @patch("launchradar.api.listings.create_listing")
    def test_create_duplicate(self, mock_create, client):
        mock_create.side_effect = ListingAlreadyExists("moonpad")

        r = client.post("/api/create", json={"twitterUsername": "moonpad", "category": "meme"})

        assert r.status_code == 400
        assert r.json()["code"] == "LISTING_EXISTS"

    @patch("launchradar.api.listings.create_listing")
    def test_create_upstream_error(self, mock_create, client):
        mock_create.side_effect = ExternalApiError("HTTP 500")

        r = client.post("/api/create", json={"twitterUsername": "moonpad", "category": "meme"})

        assert r.status_code == 502

    @patch("launchradar.listings.db")
    def test_update_not_found(self, mock_db, client):
        mock_db.update_launch_date.return_value = None

        r = client.put("/api/update", json={
            "twitterUsername": "ghost", "newLaunchDate": "2026-12-01T00:00:00Z",
        })

        assert r.status_code == 404

    @patch("launchradar.api.run_collection")
    def test_run_mindshare(self, mock_run, client):
        mock_run.return_value = CollectionSummary(processed=4, saved=2, no_posts=1, failed=1)

        r = client.post("/api/mindshare")

        assert r.json()["processedListings"] == 4
        assert r.json()["failed"] == 1
