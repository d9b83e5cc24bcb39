# ─────────────────────────────────────────────────────────────────────────────
# Prometheus Metrics Endpoint: text exposition format
# ─────────────────────────────────────────────────────────────────────────────
# GET /metrics/prometheus → text/plain Prometheus format
# Bridges SiteMetrics → prometheus-client gauges.
# ─────────────────────────────────────────────────────────────────────────────

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from prometheus_client import (
    CollectorRegistry,
    Gauge,
    generate_latest,
)

from bluebunny.dependencies import get_lead_rate_limiter, get_metrics
from bluebunny.services.lead_limiter import LeadRateLimiter
from bluebunny.services.metrics import SiteMetrics

router = APIRouter()

# ── Prometheus metrics (custom registry to avoid default process metrics) ─────

_registry = CollectorRegistry()

# Gauges mirror SiteMetrics totals; a Counter can't be set from a snapshot.
_leads_total = Gauge(
    "bluebunny_leads_total",
    "Lead submissions by outcome",
    ["outcome"],
    registry=_registry,
)

_reviews_requests_total = Gauge(
    "bluebunny_reviews_requests_total",
    "Review summaries served by upstream source",
    ["source"],
    registry=_registry,
)

_reviews_cache_hit_ratio = Gauge(
    "bluebunny_reviews_cache_hit_ratio",
    "Review summary cache hit ratio (0.0–1.0)",
    registry=_registry,
)

_rate_limited_identifiers = Gauge(
    "bluebunny_rate_limited_identifiers",
    "Identifiers currently tracked by the lead throttle",
    registry=_registry,
)

_LEAD_OUTCOMES = ("forwarded", "rejected_upstream", "rate_limited", "invalid")


def _sync_metrics(metrics: SiteMetrics, rate_limiter: LeadRateLimiter) -> None:
    """Sync SiteMetrics data into Prometheus gauges."""
    data = metrics.to_dict()

    for outcome in _LEAD_OUTCOMES:
        _leads_total.labels(outcome=outcome).set(data[f"leads_{outcome}"])

    for source, count in data["reviews_by_source"].items():
        _reviews_requests_total.labels(source=source).set(count)

    _reviews_cache_hit_ratio.set(data["reviews_cache_hit_rate"])
    _rate_limited_identifiers.set(rate_limiter.tracked_identifiers())


@router.get("/metrics/prometheus")
async def prometheus_metrics(
    metrics: SiteMetrics = Depends(get_metrics),
    rate_limiter: LeadRateLimiter = Depends(get_lead_rate_limiter),
) -> Response:
    """Prometheus text exposition format metrics endpoint."""
    _sync_metrics(metrics, rate_limiter)
    return Response(
        content=generate_latest(_registry),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
