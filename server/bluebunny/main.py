# FastAPI application factory with lifespan management.
# Entrypoint: uvicorn bluebunny.main:create_app --factory --host 0.0.0.0 --port 8080

import asyncio
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress
from typing import TYPE_CHECKING

import httpx
import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse

from bluebunny.config import get_settings
from bluebunny.exceptions import register_exception_handlers
from bluebunny.logging_config import configure_logging
from bluebunny.middleware import RequestContextMiddleware
from bluebunny.rate_limit import limiter
from bluebunny.routes import health, leads, reviews, site
from bluebunny.routes import prometheus as prometheus_routes
from bluebunny.services.lead_limiter import LeadRateLimiter
from bluebunny.services.metrics import SiteMetrics
from bluebunny.services.reviews import ReviewAggregator

logger = structlog.get_logger(__name__)


def _parse_retry_after(rate_limit: str) -> str:
    """Extract window duration from slowapi rate limit string."""
    windows = {"second": 1, "minute": 60, "hour": 3600, "day": 86400}
    try:
        _, window = rate_limit.strip().split("/")
        return str(windows.get(window.strip(), 60))
    except (ValueError, AttributeError):
        return "60"


async def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Structured JSON 429 for the slowapi-guarded review routes."""
    settings = get_settings()
    retry_after = _parse_retry_after(settings.rate_limit)
    logger.warning(
        "rate_limit_exceeded",
        path=request.url.path,
        method=request.method,
        detail=str(exc.detail),
    )
    return JSONResponse(
        status_code=429,
        content={"success": False, "error": f"Rate limit exceeded: {exc.detail}"},
        headers={"Retry-After": retry_after},
    )


if TYPE_CHECKING:
    from opentelemetry.sdk.trace import TracerProvider


def _configure_otel(exporter_type: str) -> "TracerProvider | None":
    """Configure OpenTelemetry tracing for the upstream review calls."""
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import BatchSpanProcessor

    if exporter_type != "console":
        logger.warning("unknown_otel_exporter", exporter=exporter_type)
        return None

    from opentelemetry.sdk.trace.export import ConsoleSpanExporter

    provider = TracerProvider()
    provider.add_span_processor(BatchSpanProcessor(ConsoleSpanExporter()))

    from opentelemetry import trace

    trace.set_tracer_provider(provider)
    logger.info("otel_configured", exporter=exporter_type)
    return provider


async def _prune_rate_limits(rate_limiter: LeadRateLimiter, interval_s: float) -> None:
    """Periodically drop identifiers whose window has fully expired."""
    while True:
        await asyncio.sleep(interval_s)
        removed = rate_limiter.prune()
        if removed:
            logger.debug("rate_limit_pruned", identifiers=removed)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create process-scoped state at startup; close the HTTP client on shutdown."""
    settings = get_settings()

    otel_provider = None
    otel_exporter = os.environ.get("OTEL_EXPORTER", "")
    if otel_exporter:
        otel_provider = _configure_otel(otel_exporter)

    http_client = httpx.AsyncClient()
    metrics = SiteMetrics()
    rate_limiter = LeadRateLimiter(
        window_ms=settings.lead_rate_limit_window_ms,
        max_requests=settings.lead_rate_limit_max_requests,
    )

    app.state.settings = settings
    app.state.http_client = http_client
    app.state.metrics = metrics
    app.state.lead_rate_limiter = rate_limiter
    app.state.review_aggregator = ReviewAggregator(settings, http_client, metrics=metrics)

    if not settings.lead_endpoint_configured:
        logger.warning("lead_endpoint_not_configured", hint="Set FORMSPREE_ENDPOINT")
    if not settings.google_places_api_key.get_secret_value():
        logger.warning("reviews_api_key_not_configured", hint="Set GOOGLE_PLACES_API_KEY")

    prune_task = asyncio.create_task(
        _prune_rate_limits(rate_limiter, max(settings.lead_rate_limit_window_ms / 1000, 1.0))
    )
    app.state.prune_task = prune_task

    yield

    prune_task.cancel()
    with suppress(asyncio.CancelledError):
        await prune_task
    await http_client.aclose()

    if otel_provider is not None:
        otel_provider.shutdown()


def _parse_origins(allowed_origins: str) -> list[str]:
    """Parse comma-separated CORS origins. Empty string → deny all."""
    if not allowed_origins.strip():
        logger.warning(
            "cors_no_origins_configured",
            hint="Set ALLOWED_ORIGINS env var. Cross-origin requests will be rejected.",
        )
        return []
    return [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]


def create_app() -> FastAPI:
    """Application factory. Invoked by: uvicorn bluebunny.main:create_app --factory"""
    settings = get_settings()
    configure_logging(log_level=settings.log_level, json_output=settings.log_json)

    app = FastAPI(
        title="Blue Bunny Site",
        description="Lead relay and Google review aggregation for the Blue Bunny website",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

    app.add_middleware(RequestContextMiddleware)

    origins = _parse_origins(settings.allowed_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["POST", "GET", "OPTIONS"],
        allow_headers=["Content-Type"],
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["health"])
    app.include_router(leads.router, tags=["leads"])
    app.include_router(reviews.router, tags=["reviews"])
    app.include_router(site.router, tags=["site"])
    app.include_router(prometheus_routes.router, tags=["prometheus"])

    return app
