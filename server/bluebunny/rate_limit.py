# ─────────────────────────────────────────────────────────────────────────────
# Rate Limiting: client identifiers + shared slowapi instance
# ─────────────────────────────────────────────────────────────────────────────
# Extracted to its own module to avoid circular imports between main.py
# (which imports route modules) and route modules (which need the limiter).
#
# The identifier is a bucketing key, not a verified identity. Clients behind
# a proxy that strips every address header and the user agent share the
# "anonymous" bucket.
# ─────────────────────────────────────────────────────────────────────────────

from collections.abc import Mapping

from slowapi import Limiter
from starlette.requests import Request

# Checked in order; the first non-blank one wins.
ADDRESS_HEADERS: tuple[str, ...] = (
    "x-forwarded-for",
    "x-real-ip",
    "cf-connecting-ip",
    "x-client-ip",
)

# Only this header carries a comma-separated proxy chain (client first).
_MULTI_VALUE_HEADER = "x-forwarded-for"

ANONYMOUS_IDENTIFIER = "anonymous"


def _header_values(headers: Mapping[str, str], name: str) -> list[str]:
    """Every non-blank line of one header, in arrival order."""
    if hasattr(headers, "getlist"):
        lines = headers.getlist(name)
    else:
        lines = [value for key, value in headers.items() if key.lower() == name]
    return [line.strip() for line in lines if line and line.strip()]


def client_identifier(headers: Mapping[str, str]) -> str:
    """Derive the rate-limit bucket key from request headers.

    Repeated header lines are read in arrival order; for x-forwarded-for the
    lines form one chain whose leftmost entry is the originating client.
    """
    for name in ADDRESS_HEADERS:
        values = _header_values(headers, name)
        if not values:
            continue
        if name == _MULTI_VALUE_HEADER:
            value = ",".join(values).split(",")[0].strip()
        else:
            value = values[0]
        if value:
            return value

    user_agents = _header_values(headers, "user-agent")
    return user_agents[0] if user_agents else ANONYMOUS_IDENTIFIER


def request_identifier(request: Request) -> str:
    """slowapi key function: same bucketing as the lead limiter."""
    return client_identifier(request.headers)


limiter = Limiter(key_func=request_identifier)
