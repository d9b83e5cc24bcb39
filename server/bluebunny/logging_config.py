# ─────────────────────────────────────────────────────────────────────────────
# Logging Configuration: structlog over stdlib logging
# ─────────────────────────────────────────────────────────────────────────────


import logging
import re
import sys
from typing import Any

import structlog

# The legacy Places API authenticates with a `key` query parameter, so request
# URLs and upstream error strings can carry the credential.
_API_KEY_PARAM = re.compile(r"([?&]key=)[^&\s\"']+")
REDACTED = "[REDACTED]"

# Libraries that log each outbound request URL at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore")


def redact_api_keys(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask `key=` query values in any string field of the event."""
    for field, value in event_dict.items():
        if isinstance(value, str) and "key=" in value:
            event_dict[field] = _API_KEY_PARAM.sub(rf"\g<1>{REDACTED}", value)
    return event_dict


def configure_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Route structlog and stdlib records through one formatter on stdout.

    JSON lines for the hosting log collector, console rendering for local
    development. API keys are masked before either renderer sees the event.
    """
    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        redact_api_keys,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )
    # pre_chain only runs here for foreign (stdlib) records
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper()))

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
