# ─────────────────────────────────────────────────────────────────────────────
# POST /api/leads: lead form relay (THIN)
# ─────────────────────────────────────────────────────────────────────────────
# Order: config check → rate limit → optional validation → forward.
# Errors are exceptions; exceptions.py renders {"success": false, "error"}.
# ─────────────────────────────────────────────────────────────────────────────


import structlog
from fastapi import APIRouter, Depends, Request

from bluebunny.config import Settings
from bluebunny.dependencies import (
    get_lead_forwarder,
    get_lead_rate_limiter,
    get_metrics,
    get_settings_dep,
)
from bluebunny.exceptions import (
    LeadEndpointNotConfiguredError,
    LeadForwardingError,
    LeadRateLimitError,
    LeadValidationError,
)
from bluebunny.rate_limit import client_identifier
from bluebunny.schemas import LeadResponse
from bluebunny.services.lead_forms import validate_lead_form
from bluebunny.services.lead_limiter import LeadRateLimiter
from bluebunny.services.leads import LeadForwarder
from bluebunny.services.metrics import SiteMetrics

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/api/leads", response_model=LeadResponse, response_model_exclude_none=True)
async def submit_lead(
    request: Request,
    settings: Settings = Depends(get_settings_dep),
    rate_limiter: LeadRateLimiter = Depends(get_lead_rate_limiter),
    forwarder: LeadForwarder = Depends(get_lead_forwarder),
    metrics: SiteMetrics = Depends(get_metrics),
) -> LeadResponse:
    """Relay a form-encoded lead submission to the form-processing service."""
    if not settings.lead_endpoint_configured:
        raise LeadEndpointNotConfiguredError()

    identifier = client_identifier(request.headers)
    decision = rate_limiter.check(
        identifier,
        window_ms=settings.lead_rate_limit_window_ms,
        max_requests=settings.lead_rate_limit_max_requests,
    )
    if decision.limited:
        metrics.record_lead("rate_limited")
        logger.warning(
            "lead_rate_limited",
            identifier=identifier,
            retry_after_ms=decision.retry_after_ms,
        )
        raise LeadRateLimitError(decision.retry_after_ms, decision.max_requests, decision.window_ms)

    body = await request.body()

    if settings.lead_validation:
        form = await request.form()
        field_errors = validate_lead_form({key: value for key, value in form.items() if isinstance(value, str)})
        if field_errors:
            metrics.record_lead("invalid")
            raise LeadValidationError(field_errors)

    try:
        latency_ms = await forwarder.forward(body, request.headers.get("content-type"))
    except LeadForwardingError:
        metrics.record_lead("rejected_upstream")
        raise

    metrics.record_lead("forwarded", latency_ms=latency_ms)
    return LeadResponse(success=True)
