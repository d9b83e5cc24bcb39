# ─────────────────────────────────────────────────────────────────────────────
# Custom Exceptions + FastAPI Exception Handlers
# ─────────────────────────────────────────────────────────────────────────────
# Lead endpoint errors render the envelope the site's forms read:
#   {"success": false, "error": "<message>"}
# ─────────────────────────────────────────────────────────────────────────────


import math

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = structlog.get_logger(__name__)


# ── Exception hierarchy ──────────────────────────────────────────────────────


class SiteError(Exception):
    """Base exception for all site server errors."""

    def __init__(self, message: str, status_code: int = 500):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class LeadEndpointNotConfiguredError(SiteError):
    """Raised when FORMSPREE_ENDPOINT is unset or still the placeholder."""

    def __init__(self) -> None:
        super().__init__(
            "Form endpoint is not configured. "
            "Set FORMSPREE_ENDPOINT in your environment variables.",
            status_code=500,
        )


class LeadForwardingError(SiteError):
    """Raised when the form-processing service rejects or fails a submission."""

    def __init__(self, message: str, status_code: int = 500):
        super().__init__(message, status_code=status_code)


class LeadValidationError(SiteError):
    """Raised when a submitted lead form fails server-side validation."""

    def __init__(self, field_errors: dict[str, str]):
        self.field_errors = field_errors
        super().__init__("Please correct the highlighted fields.", status_code=422)


class LeadRateLimitError(SiteError):
    """Raised when an identifier exceeds the lead submission window.

    retry_after_ms comes from the oldest timestamp still in the sliding
    window; the handler converts it to whole seconds for Retry-After.
    """

    def __init__(self, retry_after_ms: int, max_requests: int, window_ms: int):
        self.retry_after_ms = retry_after_ms
        self.max_requests = max_requests
        self.window_ms = window_ms
        super().__init__(
            "Too many submissions. Please wait a few minutes and try again.",
            status_code=429,
        )

    @property
    def retry_after_seconds(self) -> int:
        return max(1, math.ceil(self.retry_after_ms / 1000))


# ── Handler registration ────────────────────────────────────────────────────


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app.

    Endpoints raise SiteError subclasses; these handlers turn them into
    structured JSON so routes stay free of try/except.
    """

    @app.exception_handler(LeadRateLimitError)
    async def lead_rate_limit_handler(request: Request, exc: LeadRateLimitError) -> JSONResponse:
        """429 with Retry-After header."""
        retry_after = exc.retry_after_seconds
        logger.warning(
            "lead_rate_limited_response",
            path=request.url.path,
            retry_after=retry_after,
            max_requests=exc.max_requests,
            window_ms=exc.window_ms,
        )
        return JSONResponse(
            status_code=429,
            content={"success": False, "error": exc.message},
            headers={"Retry-After": str(retry_after)},
        )

    @app.exception_handler(LeadValidationError)
    async def lead_validation_handler(request: Request, exc: LeadValidationError) -> JSONResponse:
        logger.info("lead_validation_failed", fields=sorted(exc.field_errors))
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.message, "fieldErrors": exc.field_errors},
        )

    @app.exception_handler(SiteError)
    async def site_error_handler(request: Request, exc: SiteError) -> JSONResponse:
        logger.error("site_error", error=exc.message, error_type=type(exc).__name__)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.message},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("unhandled_error", error=str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error"},
        )
