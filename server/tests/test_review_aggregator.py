# ─────────────────────────────────────────────────────────────────────────────
# Review aggregator tests: generation choice, fallback, caching
# ─────────────────────────────────────────────────────────────────────────────

import asyncio

import httpx
import pytest
import respx
from pydantic import SecretStr

from bluebunny.config import Settings
from bluebunny.reviews import places_legacy, places_v1
from bluebunny.reviews.common import default_reviews_url, empty_summary
from bluebunny.schemas import Review, ReviewSource, ReviewSummary
from bluebunny.services.metrics import SiteMetrics
from bluebunny.services.reviews import (
    FALLBACK_ERROR,
    MISSING_API_KEY_ERROR,
    ReviewAggregator,
    choose_generation,
)

V1_DETAILS = "https://places.googleapis.com/v1/places/ChIJtest"
DEFAULT_URL = default_reviews_url("Blue Bunny Turnover Services Orlando")


class FakeTimer:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def place_settings(test_settings: Settings) -> Settings:
    return test_settings.model_copy(update={"google_place_id": "ChIJtest"})


def v1_details(*reviews: dict, rating: float | None = 4.9) -> httpx.Response:
    body: dict = {"userRatingCount": 12, "reviews": list(reviews)}
    if rating is not None:
        body["rating"] = rating
    return httpx.Response(200, json=body)


def v1_review(author: str, **overrides) -> dict:
    review = {
        "rating": 5,
        "originalText": {"text": f"{author} was great"},
        "authorAttribution": {"displayName": author},
    }
    review.update(overrides)
    return review


class TestMissingCredentials:
    async def test_empty_summary_without_api_key(
        self, test_settings: Settings, http_client: httpx.AsyncClient
    ):
        settings = test_settings.model_copy(update={"google_places_api_key": SecretStr("")})
        aggregator = ReviewAggregator(settings, http_client)

        with respx.mock(assert_all_called=False) as mock:
            summary = await aggregator.get_reviews_data()

        assert summary.rating is None
        assert summary.total_ratings is None
        assert summary.reviews == []
        assert summary.error == MISSING_API_KEY_ERROR
        assert summary.reviews_url == DEFAULT_URL
        assert not mock.calls


class TestCurrentGeneration:
    @respx.mock
    async def test_drops_review_missing_rating(
        self, place_settings: Settings, http_client: httpx.AsyncClient
    ):
        respx.get(url__startswith=V1_DETAILS).mock(
            return_value=v1_details(v1_review("Ana"), v1_review("Ben", rating=None))
        )
        summary = await ReviewAggregator(place_settings, http_client).get_reviews_data()

        assert len(summary.reviews) == 1
        assert summary.reviews[0].author == "Ana"
        assert summary.source is ReviewSource.places_v1

    @respx.mock
    async def test_rating_only_skips_legacy(self, place_settings: Settings, http_client: httpx.AsyncClient):
        respx.get(url__startswith=V1_DETAILS).mock(return_value=v1_details())
        legacy = respx.get(url__startswith=places_legacy.DETAILS_URL)

        summary = await ReviewAggregator(place_settings, http_client).get_reviews_data()

        assert summary.rating == 4.9
        assert summary.reviews == []
        assert not legacy.called

    @respx.mock
    async def test_truncates_to_configured_count(
        self, place_settings: Settings, http_client: httpx.AsyncClient
    ):
        respx.get(url__startswith=V1_DETAILS).mock(
            return_value=v1_details(*(v1_review(f"Guest {i}") for i in range(5)))
        )
        summary = await ReviewAggregator(place_settings, http_client).get_reviews_data()
        assert [r.author for r in summary.reviews] == ["Guest 0", "Guest 1", "Guest 2"]


class TestLegacyFallback:
    @respx.mock
    async def test_falls_back_when_v1_has_nothing(
        self, place_settings: Settings, http_client: httpx.AsyncClient
    ):
        respx.get(url__startswith=V1_DETAILS).mock(return_value=httpx.Response(403))
        legacy = respx.get(url__startswith=places_legacy.DETAILS_URL).mock(
            return_value=httpx.Response(
                200,
                json={
                    "status": "OK",
                    "result": {
                        "rating": 4.7,
                        "user_ratings_total": 30,
                        "reviews": [{"author_name": "Dee", "rating": 5, "text": "Fast and thorough."}],
                    },
                },
            )
        )

        summary = await ReviewAggregator(place_settings, http_client).get_reviews_data()

        assert legacy.called
        assert legacy.calls.last.request.url.params["place_id"] == "ChIJtest"
        assert summary.source is ReviewSource.places_legacy
        assert summary.rating == 4.7
        assert [r.author for r in summary.reviews] == ["Dee"]

    @respx.mock
    async def test_both_fail_combines_diagnostics(
        self, place_settings: Settings, http_client: httpx.AsyncClient
    ):
        respx.get(url__startswith=V1_DETAILS).mock(return_value=httpx.Response(500))
        respx.get(url__startswith=places_legacy.DETAILS_URL).mock(
            return_value=httpx.Response(200, json={"status": "REQUEST_DENIED", "error_message": "billing"})
        )

        summary = await ReviewAggregator(place_settings, http_client).get_reviews_data()

        assert summary.source is ReviewSource.none
        assert summary.reviews == []
        assert summary.rating is None
        assert summary.reviews_url == DEFAULT_URL
        assert summary.error == (
            "Google Places v1 details request failed (500). | Legacy Places error: billing"
        )

    @respx.mock
    async def test_search_path_when_no_place_id(
        self, test_settings: Settings, http_client: httpx.AsyncClient
    ):
        respx.post(places_v1.SEARCH_URL).mock(
            return_value=httpx.Response(200, json={"places": [{"name": "places/ChIJtest"}]})
        )
        respx.get(url__startswith=V1_DETAILS).mock(return_value=v1_details(v1_review("Eve")))

        summary = await ReviewAggregator(test_settings, http_client).get_reviews_data()
        assert [r.author for r in summary.reviews] == ["Eve"]


class TestChooseGeneration:
    def _with_data(self, source: ReviewSource) -> ReviewSummary:
        return ReviewSummary(
            rating=5,
            reviews_url="u",
            reviews=[Review(author="a", rating=5, text="t")],
            source=source,
        )

    def test_current_preferred(self):
        current = self._with_data(ReviewSource.places_v1)
        legacy = self._with_data(ReviewSource.places_legacy)
        assert choose_generation(current, legacy, "u") is current

    def test_legacy_when_current_empty(self):
        legacy = self._with_data(ReviewSource.places_legacy)
        assert choose_generation(empty_summary("u", "v1 down"), legacy, "u") is legacy

    def test_generic_error_when_no_diagnostics(self):
        chosen = choose_generation(empty_summary("u"), empty_summary("u"), "u")
        assert chosen.error == FALLBACK_ERROR

    def test_legacy_not_attempted(self):
        chosen = choose_generation(empty_summary("u", "v1 down"), None, "u")
        assert chosen.error == "v1 down"


class TestCaching:
    @respx.mock
    async def test_successful_summary_cached_until_ttl(
        self, place_settings: Settings, http_client: httpx.AsyncClient
    ):
        route = respx.get(url__startswith=V1_DETAILS).mock(return_value=v1_details(v1_review("Ana")))
        timer = FakeTimer()
        metrics = SiteMetrics()
        aggregator = ReviewAggregator(place_settings, http_client, metrics=metrics, timer=timer)

        first = await aggregator.get_reviews_data()
        second = await aggregator.get_reviews_data()
        assert second is first
        assert route.call_count == 1
        assert metrics.to_dict()["reviews_cache_hits"] == 1

        timer.now += place_settings.reviews_revalidate_seconds + 1
        await aggregator.get_reviews_data()
        assert route.call_count == 2

    @respx.mock
    async def test_sort_modes_cached_separately(
        self, place_settings: Settings, http_client: httpx.AsyncClient
    ):
        route = respx.get(url__startswith=V1_DETAILS).mock(return_value=v1_details(v1_review("Ana")))
        aggregator = ReviewAggregator(place_settings, http_client)

        await aggregator.get_reviews_data()
        await aggregator.get_reviews_data(sort_by_publish_time=True)
        assert route.call_count == 2

    @respx.mock
    async def test_degraded_summary_held_for_failure_ttl(
        self, place_settings: Settings, http_client: httpx.AsyncClient
    ):
        v1 = respx.get(url__startswith=V1_DETAILS).mock(return_value=httpx.Response(503))
        legacy = respx.get(url__startswith=places_legacy.DETAILS_URL).mock(
            return_value=httpx.Response(200, json={"status": "UNKNOWN_ERROR"})
        )
        timer = FakeTimer()
        aggregator = ReviewAggregator(place_settings, http_client, timer=timer)

        first = await aggregator.get_reviews_data()
        second = await aggregator.get_reviews_data()
        assert second is first
        assert v1.call_count == legacy.call_count == 1

        timer.now += place_settings.reviews_failure_ttl_seconds + 1
        await aggregator.get_reviews_data()
        assert v1.call_count == 2

    @respx.mock
    async def test_recovery_replaces_degraded_summary(
        self, place_settings: Settings, http_client: httpx.AsyncClient
    ):
        respx.get(url__startswith=V1_DETAILS).mock(
            side_effect=[httpx.Response(503), v1_details(v1_review("Ana"))]
        )
        respx.get(url__startswith=places_legacy.DETAILS_URL).mock(
            return_value=httpx.Response(200, json={"status": "UNKNOWN_ERROR"})
        )
        timer = FakeTimer()
        aggregator = ReviewAggregator(place_settings, http_client, timer=timer)

        assert not (await aggregator.get_reviews_data()).has_data
        timer.now += place_settings.reviews_failure_ttl_seconds + 1
        recovered = await aggregator.get_reviews_data()
        assert [r.author for r in recovered.reviews] == ["Ana"]
        assert await aggregator.get_reviews_data() is recovered

    async def test_concurrent_views_share_one_degraded_fetch(
        self, place_settings: Settings, http_client: httpx.AsyncClient
    ):
        with respx.mock() as mock:
            v1 = mock.get(url__startswith=V1_DETAILS).mock(return_value=httpx.Response(503))
            mock.get(url__startswith=places_legacy.DETAILS_URL).mock(
                return_value=httpx.Response(200, json={"status": "UNKNOWN_ERROR"})
            )
            aggregator = ReviewAggregator(place_settings, http_client)
            summaries = await asyncio.gather(*(aggregator.get_reviews_data() for _ in range(5)))

        assert v1.call_count == 1
        assert all(summary is summaries[0] for summary in summaries)

    @respx.mock
    async def test_invalidate(self, place_settings: Settings, http_client: httpx.AsyncClient):
        route = respx.get(url__startswith=V1_DETAILS).mock(return_value=v1_details(v1_review("Ana")))
        aggregator = ReviewAggregator(place_settings, http_client)

        await aggregator.get_reviews_data()
        aggregator.invalidate()
        await aggregator.get_reviews_data()
        assert route.call_count == 2
