# Legacy Places API: find-place for the place_id, then details/json.
# Success is signalled by the string field status == "OK", not the HTTP code.

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import httpx
import structlog
from opentelemetry import trace
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from bluebunny.reviews.common import (
    FetchOptions,
    NumericOrNone,
    PlaceLookup,
    as_count,
    clamp_review_text,
    empty_summary,
    select_reviews,
)
from bluebunny.reviews.places_v1 import PLACE_PREFIX
from bluebunny.schemas import DEFAULT_RELATIVE_TIME, Review, ReviewSource, ReviewSummary

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

FIND_PLACE_URL = "https://maps.googleapis.com/maps/api/place/findplacefromtext/json"
DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"

STATUS_OK = "OK"
NO_MATCH_ERROR = "Legacy Places search returned no matching place."
NO_REVIEW_TEXT_ERROR = "Legacy Places returned no review text."


# ── Response shapes ──────────────────────────────────────────────────────────


class _LegacyModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class LegacyCandidate(_LegacyModel):
    place_id: str | None = None


class LegacyFindPlaceResponse(_LegacyModel):
    status: str | None = None
    error_message: str | None = None
    candidates: list[LegacyCandidate] = Field(default_factory=list)


class LegacyReview(_LegacyModel):
    author_name: str | None = None
    rating: NumericOrNone = None
    relative_time_description: str | None = None
    text: str | None = None
    time: NumericOrNone = None  # Unix seconds


class LegacyPlaceResult(_LegacyModel):
    rating: NumericOrNone = None
    user_ratings_total: NumericOrNone = None
    url: str | None = None
    reviews: list[Any] = Field(default_factory=list)


class LegacyDetailsResponse(_LegacyModel):
    status: str | None = None
    error_message: str | None = None
    result: LegacyPlaceResult | None = None


# ── Adapter ──────────────────────────────────────────────────────────────────


def normalize_review(raw: Any) -> Review | None:
    """Map a legacy review to the display shape; None if a required field is missing."""
    try:
        review = LegacyReview.model_validate(raw)
    except ValidationError:
        return None

    author = (review.author_name or "").strip()
    text = (review.text or "").strip()
    if not author or not text or review.rating is None:
        return None

    relative_time = (review.relative_time_description or "").strip()
    return Review(
        author=author,
        rating=review.rating,
        text=clamp_review_text(text),
        relative_time=relative_time or DEFAULT_RELATIVE_TIME,
        publish_time=_from_unix(review.time),
    )


def _from_unix(seconds: float | None) -> datetime | None:
    if seconds is None:
        return None
    try:
        return datetime.fromtimestamp(seconds, tz=UTC)
    except (OverflowError, OSError, ValueError):
        return None


def normalize_place_id(place_id: str) -> str:
    place_id = place_id.strip()
    return place_id.removeprefix(PLACE_PREFIX)


# ── Requests ─────────────────────────────────────────────────────────────────


async def resolve_place(client: httpx.AsyncClient, options: FetchOptions) -> PlaceLookup:
    """Configured place id, else the first query whose find-place status is OK."""
    if options.place_id.strip():
        return PlaceLookup(place_ref=normalize_place_id(options.place_id))

    errors: list[str] = []
    for query in options.queries:
        response = await client.get(
            FIND_PLACE_URL,
            params={
                "input": query,
                "inputtype": "textquery",
                "fields": "place_id",
                "key": options.api_key,
            },
        )
        if not response.is_success:
            errors.append(f'legacy find-place HTTP {response.status_code} for "{query}"')
            continue

        payload = LegacyFindPlaceResponse.model_validate(response.json())
        if payload.status != STATUS_OK:
            # ZERO_RESULTS carries no message and is not worth reporting
            if payload.error_message:
                errors.append(f'legacy find-place error for "{query}": {payload.error_message}')
            continue

        place_ref = payload.candidates[0].place_id if payload.candidates else None
        if place_ref:
            logger.debug("places_legacy_place_resolved", query=query, place_id=place_ref)
            return PlaceLookup(place_ref=place_ref)

    return PlaceLookup(place_ref=None, error=" | ".join(errors) if errors else NO_MATCH_ERROR)


async def fetch_summary(client: httpx.AsyncClient, options: FetchOptions) -> ReviewSummary:
    """Rating, count, profile URL and reviews via the legacy API. Never raises."""
    with tracer.start_as_current_span("places_legacy") as span:
        try:
            lookup = await resolve_place(client, options)
            if not lookup.place_ref:
                return empty_summary(options.default_reviews_url, lookup.error or NO_MATCH_ERROR)
            span.set_attribute("place_id", lookup.place_ref)

            response = await client.get(
                DETAILS_URL,
                params={
                    "place_id": lookup.place_ref,
                    "fields": "rating,user_ratings_total,reviews,url",
                    "reviews_sort": "newest",
                    "key": options.api_key,
                },
            )
            if not response.is_success:
                return empty_summary(
                    options.default_reviews_url,
                    f"Legacy Places details request failed ({response.status_code}).",
                )

            payload = LegacyDetailsResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("places_legacy_request_failed", error=str(exc), error_type=type(exc).__name__)
            return empty_summary(
                options.default_reviews_url, "Legacy Places request failed unexpectedly."
            )

        if payload.status != STATUS_OK or payload.result is None:
            error = (
                f"Legacy Places error: {payload.error_message}"
                if payload.error_message
                else f"Legacy Places returned status {payload.status or 'UNKNOWN'}."
            )
            return empty_summary(options.default_reviews_url, error)

        result = payload.result
        normalized = [review for review in map(normalize_review, result.reviews) if review]
        reviews = select_reviews(normalized, options.limit, options.sort_by_publish_time)
        span.set_attribute("reviews", len(reviews))

        return ReviewSummary(
            rating=result.rating,
            total_ratings=as_count(result.user_ratings_total),
            reviews_url=result.url or options.default_reviews_url,
            reviews=reviews,
            error=None if reviews else NO_REVIEW_TEXT_ERROR,
            source=ReviewSource.places_legacy,
        )
