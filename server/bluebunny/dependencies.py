# ─────────────────────────────────────────────────────────────────────────────
# Dependency Injection: FastAPI Depends() providers
# ─────────────────────────────────────────────────────────────────────────────
# State flows: lifespan creates → app.state stores → Depends() injects.
# No module-level stores. Tests swap app.state entries for fresh instances.
# ─────────────────────────────────────────────────────────────────────────────


import httpx
from fastapi import Depends, Request

from bluebunny.config import Settings
from bluebunny.services.lead_limiter import LeadRateLimiter
from bluebunny.services.leads import LeadForwarder
from bluebunny.services.metrics import SiteMetrics
from bluebunny.services.reviews import ReviewAggregator


def get_settings_dep(request: Request) -> Settings:
    """Inject Settings into endpoints via Depends()."""
    return request.app.state.settings  # type: ignore[no-any-return]


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Shared outbound client created in the lifespan."""
    return request.app.state.http_client  # type: ignore[no-any-return]


def get_lead_rate_limiter(request: Request) -> LeadRateLimiter:
    """Inject the process-wide lead throttle via Depends()."""
    return request.app.state.lead_rate_limiter  # type: ignore[no-any-return]


def get_metrics(request: Request) -> SiteMetrics:
    """Inject SiteMetrics into endpoints via Depends()."""
    return request.app.state.metrics  # type: ignore[no-any-return]


def get_review_aggregator(request: Request) -> ReviewAggregator:
    """Inject ReviewAggregator into endpoints via Depends()."""
    return request.app.state.review_aggregator  # type: ignore[no-any-return]


def get_lead_forwarder(
    settings: Settings = Depends(get_settings_dep),
    client: httpx.AsyncClient = Depends(get_http_client),
) -> LeadForwarder:
    """Forwarder bound to the configured form endpoint."""
    return LeadForwarder(client, settings.formspree_endpoint.strip())
