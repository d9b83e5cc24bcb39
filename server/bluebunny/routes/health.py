# ─────────────────────────────────────────────────────────────────────────────
# Health + Metrics Routes
# ─────────────────────────────────────────────────────────────────────────────
#   /health  → Liveness probe. Near-zero cost, always 200.
#   /metrics → Lead and review counters as JSON.
# ─────────────────────────────────────────────────────────────────────────────

from typing import Any

from fastapi import APIRouter, Depends

from bluebunny.dependencies import get_lead_rate_limiter, get_metrics
from bluebunny.schemas import LivenessResponse
from bluebunny.services.lead_limiter import LeadRateLimiter
from bluebunny.services.metrics import SiteMetrics

router = APIRouter()


@router.get("/health", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """Liveness probe: is the process alive? No dependencies, no I/O."""
    return LivenessResponse(status="ok")


@router.get("/metrics")
async def metrics_endpoint(
    metrics: SiteMetrics = Depends(get_metrics),
    rate_limiter: LeadRateLimiter = Depends(get_lead_rate_limiter),
) -> dict[str, Any]:
    """Lead outcomes, review cache hit rate, and throttle size."""
    return {**metrics.to_dict(), "rate_limited_identifiers": rate_limiter.tracked_identifiers()}
