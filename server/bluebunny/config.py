# ─────────────────────────────────────────────────────────────────────────────
# Settings: Pydantic v2 BaseSettings
# ─────────────────────────────────────────────────────────────────────────────


from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Placeholder shipped in the Formspree starter snippet; treated as unconfigured.
FORMSPREE_PLACEHOLDER_SUFFIX = "YOUR_FORM_ID"


class Settings(BaseSettings):
    """Server configuration sourced from environment variables.

    Every integration setting is optional. Missing values degrade the
    affected feature (500 on lead submit, empty testimonials) instead of
    failing startup.
    """

    model_config = SettingsConfigDict(env_prefix="", env_file=".env", extra="ignore")

    # ── Runtime ──────────────────────────────────────────────────────────────
    # "production" hides upstream diagnostics from API responses.
    environment: str = "development"
    port: int = 8080

    # ── Lead forwarding ──────────────────────────────────────────────────────
    formspree_endpoint: str = ""
    lead_validation: bool = False  # Validate quote/onboarding forms before forwarding

    # Sliding window on POST /api/leads, keyed by client identifier.
    lead_rate_limit_window_ms: int = 600_000
    lead_rate_limit_max_requests: int = 2

    # ── Google reviews ───────────────────────────────────────────────────────
    # SecretStr keeps the key out of logs and repr().
    google_places_api_key: SecretStr = SecretStr("")
    google_place_id: str = ""  # Skips text search when set ("places/..." or bare id)
    google_business_query: str = "Blue Bunny Turnover Services Orlando"

    reviews_to_show: int = 3
    reviews_revalidate_seconds: int = 60 * 60 * 6
    # Degraded summaries are held briefly so an outage is not re-queried per page view
    reviews_failure_ttl_seconds: int = 60

    # ── Site ─────────────────────────────────────────────────────────────────
    site_url: str = "https://gobluebunny.com"

    # ── Security ─────────────────────────────────────────────────────────────
    # Comma-separated origins for CORS. Empty string = deny all cross-origin requests.
    allowed_origins: str = ""

    # Outer limit on the review routes (slowapi format, e.g. "60/minute").
    rate_limit: str = "60/minute"

    # ── Logging ──────────────────────────────────────────────────────────────
    log_level: str = "INFO"
    log_json: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @property
    def lead_endpoint_configured(self) -> bool:
        endpoint = self.formspree_endpoint.strip()
        return bool(endpoint) and not endpoint.endswith(FORMSPREE_PLACEHOLDER_SUFFIX)


@lru_cache
def get_settings() -> Settings:
    """Cached settings singleton."""
    return Settings()
