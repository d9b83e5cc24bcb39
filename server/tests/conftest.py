# ─────────────────────────────────────────────────────────────────────────────
# Test Fixtures: shared across all tests
# ─────────────────────────────────────────────────────────────────────────────

import asyncio
from collections.abc import Iterator

import httpx
import pytest
from fastapi.testclient import TestClient

from bluebunny.config import Settings, get_settings
from bluebunny.main import create_app
from bluebunny.rate_limit import limiter
from bluebunny.services.lead_limiter import LeadRateLimiter
from bluebunny.services.metrics import SiteMetrics
from bluebunny.services.reviews import ReviewAggregator

FORM_ENDPOINT = "https://formspree.io/f/test123"
API_KEY = "test-places-key"


class FakeClock:
    """Millisecond clock the tests advance by hand."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with every integration configured: no .env, no real network."""
    return Settings(
        _env_file=None,
        environment="development",
        formspree_endpoint=FORM_ENDPOINT,
        google_places_api_key=API_KEY,
        google_place_id="",
        google_business_query="Blue Bunny Turnover Services Orlando",
        log_json=False,
        log_level="DEBUG",
    )


@pytest.fixture
def lead_rate_limiter(clock: FakeClock) -> LeadRateLimiter:
    """Fresh throttle per test, driven by the fake clock."""
    return LeadRateLimiter(clock=clock)


@pytest.fixture
def metrics() -> SiteMetrics:
    return SiteMetrics()


@pytest.fixture
async def http_client():
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def client(
    test_settings: Settings,
    lead_rate_limiter: LeadRateLimiter,
    metrics: SiteMetrics,
    monkeypatch: pytest.MonkeyPatch,
) -> Iterator[TestClient]:
    """FastAPI TestClient with app.state populated by hand.

    TestClient without a context manager skips the lifespan, so the
    process-scoped objects are built here. Outbound calls go through a
    plain AsyncClient that respx intercepts; it is closed on teardown.
    """
    get_settings.cache_clear()
    limiter.reset()

    env_overrides = {
        "LOG_JSON": "false",
        "LOG_LEVEL": "DEBUG",
        "ALLOWED_ORIGINS": "*",
    }
    for k, v in env_overrides.items():
        monkeypatch.setenv(k, v)

    app = create_app()
    http_client = httpx.AsyncClient()
    app.state.settings = test_settings
    app.state.http_client = http_client
    app.state.metrics = metrics
    app.state.lead_rate_limiter = lead_rate_limiter
    app.state.review_aggregator = ReviewAggregator(test_settings, http_client, metrics=metrics)

    yield TestClient(app)

    asyncio.run(http_client.aclose())
    get_settings.cache_clear()
