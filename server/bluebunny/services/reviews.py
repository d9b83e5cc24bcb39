# Review aggregator: Places v1 first, legacy Places as fallback, one
# normalized summary out. Successful summaries are cached per sort mode for
# REVIEWS_REVALIDATE_SECONDS so page views don't each hit Google. Degraded
# summaries are held for the much shorter REVIEWS_FAILURE_TTL_SECONDS.

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

import httpx
import structlog
from cachetools import TTLCache  # type: ignore[import-untyped]
from opentelemetry import trace

from bluebunny.config import Settings
from bluebunny.reviews import places_legacy, places_v1
from bluebunny.reviews.common import (
    FetchOptions,
    default_reviews_url,
    empty_summary,
    search_queries,
)
from bluebunny.schemas import ReviewSummary
from bluebunny.services.metrics import SiteMetrics

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

MISSING_API_KEY_ERROR = "Missing GOOGLE_PLACES_API_KEY."
FALLBACK_ERROR = "Unable to load Google reviews."


def choose_generation(
    current: ReviewSummary,
    legacy: ReviewSummary | None,
    reviews_url: str,
) -> ReviewSummary:
    """Pick the summary to serve.

    The v1 result wins whenever it has reviews or a rating. Otherwise the
    legacy result wins on the same test. If neither has data, return an
    empty summary carrying both diagnostics.
    """
    if current.has_data:
        return current
    if legacy is not None and legacy.has_data:
        return legacy

    errors = [summary.error for summary in (current, legacy) if summary and summary.error]
    return empty_summary(reviews_url, " | ".join(errors) or FALLBACK_ERROR)


class ReviewAggregator:
    """Builds the testimonials summary for the site's review carousels."""

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient,
        metrics: SiteMetrics | None = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._client = client
        self._metrics = metrics
        self._cache: TTLCache[bool, ReviewSummary] = TTLCache(
            maxsize=2, ttl=settings.reviews_revalidate_seconds, timer=timer
        )
        self._failures: TTLCache[bool, ReviewSummary] = TTLCache(
            maxsize=2, ttl=settings.reviews_failure_ttl_seconds, timer=timer
        )
        # One upstream fetch at a time; concurrent page renders share the result
        self._fetch_lock = asyncio.Lock()

    @property
    def reviews_url(self) -> str:
        return default_reviews_url(self._settings.google_business_query)

    def fetch_options(self, sort_by_publish_time: bool = False) -> FetchOptions:
        return FetchOptions(
            api_key=self._settings.google_places_api_key.get_secret_value().strip(),
            place_id=self._settings.google_place_id,
            queries=search_queries(self._settings.google_business_query),
            default_reviews_url=self.reviews_url,
            limit=self._settings.reviews_to_show,
            sort_by_publish_time=sort_by_publish_time,
        )

    async def get_reviews_data(self, sort_by_publish_time: bool = False) -> ReviewSummary:
        """Return the cached summary, fetching it if stale. Never raises."""
        cached = self._cached(sort_by_publish_time)
        if cached is not None:
            self._record(cached, cached=True)
            return cached

        async with self._fetch_lock:
            cached = self._cached(sort_by_publish_time)
            if cached is not None:
                self._record(cached, cached=True)
                return cached

            summary = await self._fetch(sort_by_publish_time)
            if summary.has_data:
                self._cache[sort_by_publish_time] = summary
                self._failures.pop(sort_by_publish_time, None)
            else:
                self._failures[sort_by_publish_time] = summary

        self._record(summary, cached=False)
        return summary

    def invalidate(self) -> None:
        self._cache.clear()
        self._failures.clear()

    def _cached(self, sort_by_publish_time: bool) -> ReviewSummary | None:
        cached = self._cache.get(sort_by_publish_time)
        return cached if cached is not None else self._failures.get(sort_by_publish_time)

    async def _fetch(self, sort_by_publish_time: bool) -> ReviewSummary:
        options = self.fetch_options(sort_by_publish_time)
        if not options.api_key:
            logger.warning("reviews_missing_api_key")
            return empty_summary(options.default_reviews_url, MISSING_API_KEY_ERROR)

        with tracer.start_as_current_span("reviews_fetch") as span:
            try:
                current = await places_v1.fetch_summary(self._client, options)
                legacy = None
                if not current.has_data:
                    logger.info("reviews_falling_back_to_legacy", error=current.error)
                    legacy = await places_legacy.fetch_summary(self._client, options)
                summary = choose_generation(current, legacy, options.default_reviews_url)
            except Exception:
                logger.exception("reviews_fetch_failed")
                return empty_summary(options.default_reviews_url, FALLBACK_ERROR)

            span.set_attribute("source", summary.source.value)
            span.set_attribute("reviews", len(summary.reviews))

        if summary.has_data:
            logger.info(
                "reviews_fetched",
                source=summary.source.value,
                reviews=len(summary.reviews),
                rating=summary.rating,
                sorted=sort_by_publish_time,
            )
        else:
            logger.warning("reviews_unavailable", error=summary.error)
        return summary

    def _record(self, summary: ReviewSummary, cached: bool) -> None:
        if self._metrics:
            self._metrics.record_reviews(summary.source.value, cached=cached)
