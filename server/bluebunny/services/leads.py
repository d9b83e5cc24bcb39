# Relays lead form submissions to the form-processing service (Formspree).
# The body goes upstream byte for byte with its original Content-Type.

from __future__ import annotations

import time
from typing import Any

import httpx
import structlog

from bluebunny.exceptions import LeadForwardingError

logger = structlog.get_logger(__name__)

DEFAULT_UPSTREAM_ERROR = "Unable to submit form at this time."
UNEXPECTED_ERROR = "Unexpected error submitting form."


def upstream_error_message(payload: Any) -> str:
    """Best human-readable message from a Formspree error body.

    Formspree reports field problems as {"errors": [{"message": ...}]} and
    account problems as {"message": ...}.
    """
    if isinstance(payload, dict):
        errors = payload.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            message = errors[0].get("message")
            if isinstance(message, str) and message:
                return message
        message = payload.get("message")
        if isinstance(message, str) and message:
            return message
    return DEFAULT_UPSTREAM_ERROR


class LeadForwarder:
    """Posts one raw form body to the configured endpoint."""

    def __init__(self, client: httpx.AsyncClient, endpoint: str) -> None:
        self._client = client
        self._endpoint = endpoint

    async def forward(self, body: bytes, content_type: str | None) -> float:
        """Forward the submission. Returns upstream latency in ms.

        Raises LeadForwardingError carrying the upstream status on rejection,
        or 500 when the service could not be reached.
        """
        headers = {"Accept": "application/json"}
        if content_type:
            headers["Content-Type"] = content_type

        start = time.perf_counter()
        try:
            response = await self._client.post(self._endpoint, content=body, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("lead_forward_failed", error=str(exc), error_type=type(exc).__name__)
            raise LeadForwardingError(UNEXPECTED_ERROR, status_code=500) from exc
        latency_ms = (time.perf_counter() - start) * 1000

        if not response.is_success:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            message = upstream_error_message(payload)
            logger.warning(
                "lead_rejected_upstream",
                status=response.status_code,
                error=message,
                latency_ms=round(latency_ms, 1),
            )
            raise LeadForwardingError(message, status_code=response.status_code)

        logger.info("lead_forwarded", status=response.status_code, latency_ms=round(latency_ms, 1))
        return latency_ms
