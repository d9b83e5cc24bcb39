# ─────────────────────────────────────────────────────────────────────────────
# Site Metrics: thread-safe counters for leads and review fetches
# ─────────────────────────────────────────────────────────────────────────────
# Exposed via GET /metrics (JSON) and GET /metrics/prometheus.
# All mutations take the lock; handlers may run in a thread pool.
# ─────────────────────────────────────────────────────────────────────────────

from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any


@dataclass
class SiteMetrics:
    """Thread-safe counters for the lead endpoint and review aggregator."""

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    leads_received: int = 0
    leads_forwarded: int = 0
    leads_rejected_upstream: int = 0
    leads_rate_limited: int = 0
    leads_invalid: int = 0

    reviews_requests: int = 0
    reviews_cache_hits: int = 0
    reviews_by_source: dict[str, int] = field(default_factory=dict)

    # Bounded -- only keeps the last 500 forward latencies
    _forward_latency_ms: deque[float] = field(default_factory=lambda: deque(maxlen=500), repr=False)
    _start_time: float = field(default_factory=time.time, repr=False)

    def record_lead(self, outcome: str, latency_ms: float | None = None) -> None:
        """Record one lead submission outcome.

        outcome: "forwarded", "rejected_upstream", "rate_limited", or "invalid".
        """
        with self._lock:
            self.leads_received += 1
            if outcome == "forwarded":
                self.leads_forwarded += 1
            elif outcome == "rejected_upstream":
                self.leads_rejected_upstream += 1
            elif outcome == "rate_limited":
                self.leads_rate_limited += 1
            elif outcome == "invalid":
                self.leads_invalid += 1
            if latency_ms is not None:
                self._forward_latency_ms.append(latency_ms)

    def record_reviews(self, source: str, cached: bool) -> None:
        """Record a review summary served; source is the generation that produced it."""
        with self._lock:
            self.reviews_requests += 1
            if cached:
                self.reviews_cache_hits += 1
            self.reviews_by_source[source] = self.reviews_by_source.get(source, 0) + 1

    def to_dict(self) -> dict[str, Any]:
        """Serialize metrics for the /metrics endpoint."""
        with self._lock:
            latencies = sorted(self._forward_latency_ms)
            n = len(latencies)
            return {
                "leads_received": self.leads_received,
                "leads_forwarded": self.leads_forwarded,
                "leads_rejected_upstream": self.leads_rejected_upstream,
                "leads_rate_limited": self.leads_rate_limited,
                "leads_invalid": self.leads_invalid,
                "lead_forward_p50_ms": round(latencies[n // 2], 1) if n else 0,
                "lead_forward_p95_ms": round(latencies[int(n * 0.95)], 1) if n else 0,
                "reviews_requests": self.reviews_requests,
                "reviews_cache_hits": self.reviews_cache_hits,
                "reviews_cache_hit_rate": round(
                    self.reviews_cache_hits / max(self.reviews_requests, 1), 3
                ),
                "reviews_by_source": dict(self.reviews_by_source),
                "uptime_seconds": int(time.time() - self._start_time),
            }
