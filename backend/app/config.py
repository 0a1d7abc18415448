"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    ``database_url``, ``database_public_key`` and ``identity_url`` have no
    default, so constructing ``Settings`` without them raises a
    ``ValidationError`` before the app starts serving.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Hosted database (required)
    database_url: str
    database_public_key: str
    database_service_role_key: str | None = None

    # Hosted identity provider (required)
    identity_url: str

    # Cache
    redis_url: str | None = None

    # Site
    site_url: str = "http://localhost:8000"
    root_domain: str = "localhost"

    # Payments
    stripe_secret_key: str | None = None
    stripe_publishable_key: str | None = None
    stripe_webhook_secret: str | None = None

    # CAPTCHA
    captcha_secret: str | None = None

    # Session cookie
    session_cookie_name: str = "lms_session"
    session_max_age_seconds: int = 24 * 3600

    # Memoized query cache TTL (seconds)
    cache_ttl_seconds: int = 60

    # Rate limiting (requests per window)
    auth_requests_per_window: int = 5
    api_requests_per_window: int = 30
    general_requests_per_window: int = 60
    report_requests_per_window: int = 5
    rate_limit_window_seconds: int = 60

    # Identity provider HTTP timeout (seconds)
    identity_timeout_seconds: float = 5.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()  # type: ignore[call-arg]
