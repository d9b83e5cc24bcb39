# ─────────────────────────────────────────────────────────────────────────────
# Review Routes: testimonials for the site's two carousels
# ─────────────────────────────────────────────────────────────────────────────
#   /api/reviews               → home page, upstream order
#   /api/reviews/pm-onboarding → onboarding landing page, newest first
#
# The diagnostic `error` field is dropped in production builds.
# ─────────────────────────────────────────────────────────────────────────────


from fastapi import APIRouter, Depends, Request

from bluebunny.config import Settings, get_settings
from bluebunny.dependencies import get_review_aggregator, get_settings_dep
from bluebunny.rate_limit import limiter
from bluebunny.schemas import ReviewSummary
from bluebunny.services.reviews import ReviewAggregator

router = APIRouter()


def _reviews_rate_limit() -> str:
    """slowapi resolves dynamic limits without the request, so this reads the
    process settings; create_app and the lifespan store that same object on
    app.state."""
    return get_settings().rate_limit


def _public_view(summary: ReviewSummary, settings: Settings) -> ReviewSummary:
    if settings.is_production and summary.error is not None:
        return summary.model_copy(update={"error": None})
    return summary


@router.get("/api/reviews", response_model=ReviewSummary)
@limiter.limit(_reviews_rate_limit)
async def home_reviews(
    request: Request,
    aggregator: ReviewAggregator = Depends(get_review_aggregator),
    settings: Settings = Depends(get_settings_dep),
) -> ReviewSummary:
    """Google rating summary and top reviews in the order Google returns them."""
    summary = await aggregator.get_reviews_data()
    return _public_view(summary, settings)


@router.get("/api/reviews/pm-onboarding", response_model=ReviewSummary)
@limiter.limit(_reviews_rate_limit)
async def onboarding_reviews(
    request: Request,
    aggregator: ReviewAggregator = Depends(get_review_aggregator),
    settings: Settings = Depends(get_settings_dep),
) -> ReviewSummary:
    """Same summary with the most recently published reviews first."""
    summary = await aggregator.get_reviews_data(sort_by_publish_time=True)
    return _public_view(summary, settings)
