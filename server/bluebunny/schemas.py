# ─────────────────────────────────────────────────────────────────────────────
# Pydantic v2 Response Schemas
# ─────────────────────────────────────────────────────────────────────────────
# Serialized with camelCase aliases (reviewsUrl, totalRatings, relativeTime)
# because the site's carousel component reads those names.
# ─────────────────────────────────────────────────────────────────────────────


from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_RELATIVE_TIME = "Google review"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReviewSource(StrEnum):
    """Which upstream generation produced a review summary."""

    places_v1 = "places_v1"
    places_legacy = "places_legacy"
    none = "none"  # Both generations failed or were skipped


class Review(CamelModel):
    """One normalized review, ready for display."""

    author: str = Field(..., min_length=1)
    rating: float
    text: str = Field(..., min_length=1)
    relative_time: str = DEFAULT_RELATIVE_TIME

    # Used only for ordering; never sent to the browser.
    publish_time: datetime | None = Field(None, exclude=True)


class ReviewSummary(CamelModel):
    """Business rating summary plus the reviews to show.

    error is a diagnostic for developers; routes drop it in production.
    """

    rating: float | None = None
    total_ratings: int | None = None
    reviews_url: str
    reviews: list[Review] = Field(default_factory=list)
    error: str | None = None
    source: ReviewSource = ReviewSource.none

    @property
    def has_data(self) -> bool:
        return bool(self.reviews) or self.rating is not None


class FormKind(StrEnum):
    """Lead forms on the site, sent as the formKind field."""

    quote = "quote"  # Hero section quote request
    pm_onboarding = "pm-onboarding"  # Property-manager landing page


class LeadResponse(BaseModel):
    """Body returned by POST /api/leads on success."""

    success: bool
    error: str | None = None


class LivenessResponse(BaseModel):
    """Liveness probe: minimal, near-zero cost."""

    status: str = "ok"
