from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration using environment variables."""

    # Storage
    database_url: str = Field(default="sqlite:///data/worklogger.db")

    # Slack delivery of reconciliation summaries (disabled when empty)
    slack_bot_token: str = Field(default="")

    # Timezone used for the 09:00 worklog start time
    worklog_timezone: str = Field(default="Etc/UTC")

    # Reconciliation
    reconcile_concurrency: int = Field(default=1, ge=1)
    http_timeout_s: float = Field(default=30.0, gt=0)

    # Retry / backoff
    retry_max_attempts: int = Field(default=3, ge=1)
    retry_base_delay_ms: int = Field(default=1000, ge=0)
    retry_max_delay_ms: int = Field(default=30000, ge=0)
    retry_exponential_base: float = Field(default=2.0, ge=1)
    retry_jitter: bool = Field(default=True)

    # Circuit breaker around the tracker
    breaker_failure_threshold: int = Field(default=5, ge=1)
    breaker_recovery_time_ms: int = Field(default=60000, ge=0)

    # Rate limiter housekeeping
    rate_limit_sweep_interval_s: float = Field(default=300.0, gt=0)

    log_level: str = Field(default="INFO")
    environment: str = Field(default="development")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
