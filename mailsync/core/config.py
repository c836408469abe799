"""Application configuration (settings and environment).

Single source of truth for all configuration. Uses pydantic-settings
with .env support. Provider credentials and tuning knobs for the sync
engine (rate limits, retry/backoff, batch sizes, sync windows) live here so
they can be overridden per deployment without code changes.
"""

from functools import lru_cache

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from environment and .env.

    Everything has a default so the engine can be constructed in tests;
    validate_tuning rejects values that would make the engine misbehave
    (e.g. zero concurrency or a retry ceiling below the initial delay).
    """

    # App
    app_name: str = "mailsync"
    app_version: str = "1.0.0"
    debug: bool = False

    # Database (PostgreSQL via asyncpg). Engine is created lazily on first use.
    database_url: str = ""
    database_echo: bool = False
    db_pool_size: int | None = None
    db_max_overflow: int | None = None
    db_command_timeout: int | None = None

    # Google OAuth client used for refresh-token grants
    google_client_id: str = ""
    google_client_secret: SecretStr = SecretStr("")
    google_token_uri: str = "https://oauth2.googleapis.com/token"
    oauth_http_timeout_seconds: float = 30.0

    # Push notifications (Gmail users.watch -> Cloud Pub/Sub)
    gcp_project_id: str = ""
    pubsub_topic_name: str = "gmail-notifications"
    watch_label_ids: str = "INBOX"
    # Shared token Pub/Sub appends to the push endpoint (?token=...). Unset = not verified.
    pubsub_webhook_token: SecretStr | None = None
    watch_renewal_lookahead_hours: int = 24

    # Scheduler / admin triggers must send Authorization: Bearer <cron_secret>
    cron_secret: SecretStr | None = None

    # Rate limiting: Gmail allows 250 quota units/user/second; most calls cost 5.
    rate_limit_max_requests: int = 50
    rate_limit_window_seconds: float = 1.0

    # Retry/backoff
    retry_max_retries: int = 3
    retry_initial_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 30.0
    retry_backoff_multiplier: float = 2.0

    # Batch fetch
    batch_size: int = 10
    batch_concurrency: int = 5
    batch_delay_seconds: float = 0.1

    # Sync windows
    token_refresh_buffer_minutes: int = 5
    sync_window_overlap_minutes: int = 10
    sync_default_lookback_days: int = 7
    sync_page_size: int = 50
    history_page_size: int = 100

    # Performance monitor ring size
    performance_max_metrics: int = 1000

    # OpenTelemetry
    telemetry_enabled: bool = False
    telemetry_exporter: str = "console"
    telemetry_otlp_endpoint: str | None = None
    telemetry_sample_rate: float = 1.0
    telemetry_environment: str = "development"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_tuning(self) -> "Settings":
        """Reject tuning values the engine cannot run with."""
        if self.rate_limit_max_requests < 1:
            raise ValueError("RATE_LIMIT_MAX_REQUESTS must be at least 1.")
        if self.rate_limit_window_seconds <= 0:
            raise ValueError("RATE_LIMIT_WINDOW_SECONDS must be positive.")
        if self.batch_size < 1 or self.batch_concurrency < 1:
            raise ValueError("BATCH_SIZE and BATCH_CONCURRENCY must be at least 1.")
        if self.retry_max_retries < 0:
            raise ValueError("RETRY_MAX_RETRIES cannot be negative.")
        if self.retry_max_delay_seconds < self.retry_initial_delay_seconds:
            raise ValueError(
                "RETRY_MAX_DELAY_SECONDS must be >= RETRY_INITIAL_DELAY_SECONDS."
            )
        if self.retry_backoff_multiplier < 1:
            raise ValueError("RETRY_BACKOFF_MULTIPLIER must be >= 1.")
        return self

    @property
    def pubsub_topic(self) -> str:
        """Fully qualified Pub/Sub topic: projects/{project}/topics/{name}."""
        return f"projects/{self.gcp_project_id}/topics/{self.pubsub_topic_name}"

    @property
    def watch_labels(self) -> list[str]:
        return [label.strip() for label in self.watch_label_ids.split(",") if label.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings (single instance per process).

    Validation runs on first call, not at import time. In tests, call
    get_settings.cache_clear() before overriding env vars so the next
    get_settings() uses the new values.
    """
    return Settings()
