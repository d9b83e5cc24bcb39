# Places API (New): text search for the resource name, then details by
# resource name. Errors arrive as non-2xx status codes or an `error` object.

from __future__ import annotations

from typing import Any

import httpx
import structlog
from opentelemetry import trace
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from bluebunny.reviews.common import (
    FetchOptions,
    NumericOrNone,
    PlaceLookup,
    as_count,
    clamp_review_text,
    empty_summary,
    parse_rfc3339,
    select_reviews,
)
from bluebunny.schemas import DEFAULT_RELATIVE_TIME, Review, ReviewSource, ReviewSummary

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer(__name__)

SEARCH_URL = "https://places.googleapis.com/v1/places:searchText"
DETAILS_URL = "https://places.googleapis.com/v1/{place_ref}"
PLACE_PREFIX = "places/"

SEARCH_FIELD_MASK = "places.name"
DETAILS_FIELD_MASK = ",".join(
    (
        "rating",
        "userRatingCount",
        "reviews",
        "googleMapsUri",
        "reviews.rating",
        "reviews.relativePublishTimeDescription",
        "reviews.text",
        "reviews.originalText",
        "reviews.authorAttribution",
        "reviews.publishTime",
    )
)

NO_MATCH_ERROR = "Google Places v1 search returned no matching place."


# ── Response shapes ──────────────────────────────────────────────────────────


class _V1Model(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class PlacesV1Error(_V1Model):
    message: str | None = None
    status: str | None = None


class LocalizedText(_V1Model):
    text: str | None = None


class AuthorAttribution(_V1Model):
    display_name: str | None = None


class PlacesV1Review(_V1Model):
    rating: NumericOrNone = None
    relative_publish_time_description: str | None = None
    text: LocalizedText | None = None
    original_text: LocalizedText | None = None
    author_attribution: AuthorAttribution | None = None
    publish_time: str | None = None


class PlacesV1Place(_V1Model):
    name: str | None = None
    google_maps_uri: str | None = None


class PlacesV1SearchResponse(_V1Model):
    places: list[PlacesV1Place] = Field(default_factory=list)
    error: PlacesV1Error | None = None


class PlacesV1DetailsResponse(_V1Model):
    rating: NumericOrNone = None
    user_rating_count: NumericOrNone = None
    google_maps_uri: str | None = None
    # Validated one by one so a malformed record drops alone
    reviews: list[Any] = Field(default_factory=list)
    error: PlacesV1Error | None = None


# ── Adapter ──────────────────────────────────────────────────────────────────


def normalize_review(raw: Any) -> Review | None:
    """Map a v1 review to the display shape; None if a required field is missing."""
    try:
        review = PlacesV1Review.model_validate(raw)
    except ValidationError:
        return None

    author = (review.author_attribution.display_name or "").strip() if review.author_attribution else ""
    # originalText is the author's words; text may be a machine translation
    source_text = review.original_text.text if review.original_text else None
    if source_text is None and review.text:
        source_text = review.text.text
    text = (source_text or "").strip()

    if not author or not text or review.rating is None:
        return None

    relative_time = (review.relative_publish_time_description or "").strip()
    return Review(
        author=author,
        rating=review.rating,
        text=clamp_review_text(text),
        relative_time=relative_time or DEFAULT_RELATIVE_TIME,
        publish_time=parse_rfc3339(review.publish_time),
    )


def normalize_place_ref(place_id: str) -> str:
    place_id = place_id.strip()
    return place_id if place_id.startswith(PLACE_PREFIX) else f"{PLACE_PREFIX}{place_id}"


# ── Requests ─────────────────────────────────────────────────────────────────


async def resolve_place(client: httpx.AsyncClient, options: FetchOptions) -> PlaceLookup:
    """Configured place id, else the first search query that returns a place."""
    if options.place_id.strip():
        return PlaceLookup(place_ref=normalize_place_ref(options.place_id))

    errors: list[str] = []
    for query in options.queries:
        response = await client.post(
            SEARCH_URL,
            headers={
                "X-Goog-Api-Key": options.api_key,
                "X-Goog-FieldMask": SEARCH_FIELD_MASK,
            },
            json={"textQuery": query, "maxResultCount": 1, "languageCode": "en"},
        )
        if not response.is_success:
            errors.append(f'v1 search HTTP {response.status_code} for "{query}"')
            continue

        payload = PlacesV1SearchResponse.model_validate(response.json())
        if payload.error and payload.error.message:
            errors.append(f'v1 search error for "{query}": {payload.error.message}')
            continue

        place_ref = payload.places[0].name if payload.places else None
        if place_ref:
            logger.debug("places_v1_place_resolved", query=query, place_ref=place_ref)
            return PlaceLookup(place_ref=place_ref)

    return PlaceLookup(place_ref=None, error=" | ".join(errors) if errors else NO_MATCH_ERROR)


async def fetch_summary(client: httpx.AsyncClient, options: FetchOptions) -> ReviewSummary:
    """Rating, count, profile URL and reviews via the v1 API. Never raises."""
    with tracer.start_as_current_span("places_v1") as span:
        try:
            lookup = await resolve_place(client, options)
            if not lookup.place_ref:
                return empty_summary(options.default_reviews_url, lookup.error or NO_MATCH_ERROR)
            span.set_attribute("place_ref", lookup.place_ref)

            response = await client.get(
                DETAILS_URL.format(place_ref=lookup.place_ref),
                params={"languageCode": "en"},
                headers={
                    "X-Goog-Api-Key": options.api_key,
                    "X-Goog-FieldMask": DETAILS_FIELD_MASK,
                },
            )
            if not response.is_success:
                return empty_summary(
                    options.default_reviews_url,
                    f"Google Places v1 details request failed ({response.status_code}).",
                )

            payload = PlacesV1DetailsResponse.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("places_v1_request_failed", error=str(exc), error_type=type(exc).__name__)
            return empty_summary(
                options.default_reviews_url, "Google Places v1 request failed unexpectedly."
            )

        if payload.error and payload.error.message:
            return empty_summary(
                options.default_reviews_url, f"Google Places v1 error: {payload.error.message}"
            )

        normalized = [review for review in map(normalize_review, payload.reviews) if review]
        reviews = select_reviews(normalized, options.limit, options.sort_by_publish_time)
        span.set_attribute("reviews", len(reviews))

        return ReviewSummary(
            rating=payload.rating,
            total_ratings=as_count(payload.user_rating_count),
            reviews_url=payload.google_maps_uri or options.default_reviews_url,
            reviews=reviews,
            source=ReviewSource.places_v1,
        )
