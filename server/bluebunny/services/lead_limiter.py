# ─────────────────────────────────────────────────────────────────────────────
# Lead Rate Limiter: per-identifier sliding window
# ─────────────────────────────────────────────────────────────────────────────
# Created once in the app lifespan and stored on app.state; tests build a
# fresh instance. State lives in this process only and is lost on restart.
#
# Thread-safe: sync handlers may run in Starlette's thread pool, so each
# read-modify-write happens under one lock.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field

DEFAULT_WINDOW_MS = 600_000  # 10 minutes
DEFAULT_MAX_REQUESTS = 2


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one check() call."""

    limited: bool
    retry_after_ms: int
    remaining: int
    window_ms: int
    max_requests: int


@dataclass
class LeadRateLimiter:
    """In-memory sliding-window counter keyed by client identifier.

    Rejected attempts are recorded too, so a client hammering the endpoint
    keeps its own window full instead of retrying the moment one slot frees.
    """

    window_ms: int = DEFAULT_WINDOW_MS
    max_requests: int = DEFAULT_MAX_REQUESTS
    clock: Callable[[], int] = field(default=_now_ms, repr=False)

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _requests: dict[str, list[int]] = field(default_factory=dict, repr=False)

    def check(
        self,
        identifier: str,
        window_ms: int | None = None,
        max_requests: int | None = None,
    ) -> RateLimitResult:
        """Record a request for identifier and report whether it is over the limit."""
        window_ms = self.window_ms if window_ms is None else window_ms
        max_requests = self.max_requests if max_requests is None else max_requests

        with self._lock:
            now = self.clock()
            window_start = now - window_ms

            recent = [ts for ts in self._requests.get(identifier, []) if ts >= window_start]
            recent.append(now)

            if recent:
                self._requests[identifier] = recent
            else:
                self._requests.pop(identifier, None)

        limited = len(recent) > max_requests
        retry_after_ms = max(0, window_ms - (now - recent[0])) if limited else 0
        remaining = 0 if limited else max(0, max_requests - len(recent))

        return RateLimitResult(
            limited=limited,
            retry_after_ms=retry_after_ms,
            remaining=remaining,
            window_ms=window_ms,
            max_requests=max_requests,
        )

    def prune(self) -> int:
        """Drop identifiers whose every timestamp has left the default window.

        Returns the number of identifiers removed.
        """
        with self._lock:
            window_start = self.clock() - self.window_ms
            stale = [
                key for key, stamps in self._requests.items() if not stamps or stamps[-1] < window_start
            ]
            for key in stale:
                del self._requests[key]
            return len(stale)

    def tracked_identifiers(self) -> int:
        with self._lock:
            return len(self._requests)

    def reset(self) -> None:
        with self._lock:
            self._requests.clear()
