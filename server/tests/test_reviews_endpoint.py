# ─────────────────────────────────────────────────────────────────────────────
# GET /api/reviews and /api/reviews/pm-onboarding
# ─────────────────────────────────────────────────────────────────────────────

import httpx
import respx
from dirty_equals import IsStr
from pydantic import SecretStr

from bluebunny.config import get_settings
from bluebunny.reviews.common import default_reviews_url
from bluebunny.services.reviews import MISSING_API_KEY_ERROR, ReviewAggregator

V1_DETAILS = "https://places.googleapis.com/v1/places/ChIJtest"


def _reconfigure(client, **updates):
    """Swap in settings (and a matching aggregator) for one test."""
    state = client.app.state
    state.settings = state.settings.model_copy(update=updates)
    state.review_aggregator = ReviewAggregator(state.settings, state.http_client, metrics=state.metrics)


def _review(author: str, publish_time: str) -> dict:
    return {
        "rating": 5,
        "relativePublishTimeDescription": "recently",
        "originalText": {"text": f"{author} left the place spotless."},
        "authorAttribution": {"displayName": author},
        "publishTime": publish_time,
    }


DETAILS_BODY = {
    "rating": 4.9,
    "userRatingCount": 64,
    "googleMapsUri": "https://maps.google.com/?cid=42",
    "reviews": [
        _review("Older", "2024-05-01T00:00:00Z"),
        _review("Newest", "2025-05-01T00:00:00Z"),
        _review("Middle", "2024-11-01T00:00:00Z"),
        _review("Newer", "2025-01-01T00:00:00Z"),
    ],
}


class TestHomeReviews:
    @respx.mock
    def test_camel_case_payload(self, client):
        _reconfigure(client, google_place_id="ChIJtest")
        respx.get(url__startswith=V1_DETAILS).mock(return_value=httpx.Response(200, json=DETAILS_BODY))

        response = client.get("/api/reviews")

        assert response.status_code == 200
        assert response.json() == {
            "rating": 4.9,
            "totalRatings": 64,
            "reviewsUrl": "https://maps.google.com/?cid=42",
            "reviews": [
                {"author": "Older", "rating": 5.0, "text": "Older left the place spotless.", "relativeTime": "recently"},
                {"author": "Newest", "rating": 5.0, "text": "Newest left the place spotless.", "relativeTime": "recently"},
                {"author": "Middle", "rating": 5.0, "text": "Middle left the place spotless.", "relativeTime": "recently"},
            ],
            "error": None,
            "source": "places_v1",
        }

    def test_missing_api_key(self, client):
        _reconfigure(client, google_places_api_key=SecretStr(""))
        with respx.mock(assert_all_called=False) as mock:
            data = client.get("/api/reviews").json()

        assert data == {
            "rating": None,
            "totalRatings": None,
            "reviewsUrl": default_reviews_url("Blue Bunny Turnover Services Orlando"),
            "reviews": [],
            "error": MISSING_API_KEY_ERROR,
            "source": "none",
        }
        assert not mock.calls

    def test_error_hidden_in_production(self, client):
        _reconfigure(client, google_places_api_key=SecretStr(""), environment="production")
        data = client.get("/api/reviews").json()
        assert data["error"] is None
        assert data["reviews"] == []
        assert data["reviewsUrl"] == default_reviews_url("Blue Bunny Turnover Services Orlando")


class TestOnboardingReviews:
    @respx.mock
    def test_newest_first(self, client):
        _reconfigure(client, google_place_id="ChIJtest")
        respx.get(url__startswith=V1_DETAILS).mock(return_value=httpx.Response(200, json=DETAILS_BODY))

        data = client.get("/api/reviews/pm-onboarding").json()
        assert [r["author"] for r in data["reviews"]] == ["Newest", "Newer", "Middle"]

    @respx.mock
    def test_publish_time_not_exposed(self, client):
        _reconfigure(client, google_place_id="ChIJtest")
        respx.get(url__startswith=V1_DETAILS).mock(return_value=httpx.Response(200, json=DETAILS_BODY))

        data = client.get("/api/reviews/pm-onboarding").json()
        assert all("publishTime" not in review for review in data["reviews"])


class TestReviewCaching:
    @respx.mock
    def test_second_request_served_from_cache(self, client, metrics):
        _reconfigure(client, google_place_id="ChIJtest")
        route = respx.get(url__startswith=V1_DETAILS).mock(
            return_value=httpx.Response(200, json=DETAILS_BODY)
        )

        client.get("/api/reviews")
        client.get("/api/reviews")

        assert route.call_count == 1
        assert metrics.reviews_cache_hits == 1
        assert metrics.reviews_by_source == {"places_v1": 2}


class TestReviewsOuterLimit:
    def test_limit_read_from_settings(self, client, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT", "1/minute")
        get_settings.cache_clear()
        _reconfigure(client, google_places_api_key=SecretStr(""))

        assert client.get("/api/reviews").status_code == 200
        blocked = client.get("/api/reviews")

        assert blocked.status_code == 429
        assert blocked.json() == {"success": False, "error": IsStr(regex=r"Rate limit exceeded: .+")}
        assert blocked.headers["retry-after"] == "60"

    def test_routes_limited_separately(self, client, monkeypatch):
        monkeypatch.setenv("RATE_LIMIT", "1/minute")
        get_settings.cache_clear()
        _reconfigure(client, google_places_api_key=SecretStr(""))

        assert client.get("/api/reviews").status_code == 200
        assert client.get("/api/reviews/pm-onboarding").status_code == 200
