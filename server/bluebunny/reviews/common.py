# Shared pieces for both Places API generations: lookup options, text
# clamping, numeric coercion, ordering, and the empty summary.

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Annotated, Any
from urllib.parse import quote

from pydantic import BeforeValidator

from bluebunny.schemas import Review, ReviewSummary

DEFAULT_BUSINESS_QUERY = "Blue Bunny Turnover Services Orlando"

# Name variants the profile has been listed under, tried after the configured query.
BUSINESS_QUERY_FALLBACKS: tuple[str, ...] = (
    "Blue Bunny Rental Cleaners Orlando",
    "Blue Bunny Rental Cleaners",
    "Blue Bunny Turnover Services Orlando",
    "Blue Bunny Turnover Services",
)

MAX_REVIEW_LENGTH = 240
ELLIPSIS = "..."

_FRACTION = re.compile(r"(\.\d{6})\d+")


def _numeric_or_none(value: Any) -> Any:
    # bool is an int subclass; upstream never means True as a rating
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    return value


# Upstream numbers of the wrong type read as "absent" instead of failing the payload.
NumericOrNone = Annotated[float | None, BeforeValidator(_numeric_or_none)]


@dataclass(frozen=True)
class PlaceLookup:
    """Result of resolving the business to an upstream place reference."""

    place_ref: str | None
    error: str | None = None


@dataclass(frozen=True)
class FetchOptions:
    """Inputs shared by both generations for one aggregation run."""

    api_key: str
    place_id: str
    queries: tuple[str, ...]
    default_reviews_url: str
    limit: int = 3
    sort_by_publish_time: bool = False


def search_queries(configured_query: str) -> tuple[str, ...]:
    """Configured query first, then the fallbacks; trimmed, non-empty, deduplicated."""
    candidates = (configured_query, *BUSINESS_QUERY_FALLBACKS)
    trimmed = (query.strip() for query in candidates)
    return tuple(dict.fromkeys(query for query in trimmed if query))


def default_reviews_url(business_query: str) -> str:
    """Google search URL used when upstream supplies no canonical profile link."""
    query = business_query.strip() or DEFAULT_BUSINESS_QUERY
    # Same reserved set as JavaScript's encodeURIComponent
    encoded = quote(query, safe="-_.!~*'()")
    return f"https://www.google.com/search?q={encoded}"


def clamp_review_text(text: str, max_length: int = MAX_REVIEW_LENGTH) -> str:
    if len(text) <= max_length:
        return text
    return f"{text[:max_length].rstrip()}{ELLIPSIS}"


def parse_rfc3339(value: str | None) -> datetime | None:
    """Parse upstream timestamps; nanosecond fractions are cut to microseconds."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(_FRACTION.sub(r"\1", value.strip()))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def select_reviews(
    reviews: list[Review], limit: int, sort_by_publish_time: bool = False
) -> list[Review]:
    """Optionally order newest first, then keep the first `limit`.

    The sort is stable, so equal or missing publish times keep upstream order;
    reviews without a publish time go last.
    """
    if sort_by_publish_time:
        reviews = sorted(
            reviews,
            key=lambda review: (
                review.publish_time.timestamp() if review.publish_time else float("-inf")
            ),
            reverse=True,
        )
    return reviews[: max(limit, 0)]


def empty_summary(reviews_url: str, error: str | None = None) -> ReviewSummary:
    return ReviewSummary(
        rating=None,
        total_ratings=None,
        reviews_url=reviews_url,
        reviews=[],
        error=error,
    )


def as_count(value: float | None) -> int | None:
    return int(value) if value is not None else None
