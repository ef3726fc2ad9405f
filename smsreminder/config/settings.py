"""
Application settings with Pydantic v2 validation.

Loads configuration from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageSettings(BaseSettings):
    """Storage configuration."""

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    data_dir: Path = Path("data")
    db_name: str = "reminders.db"

    # SQLite settings
    pool_size: int = 5
    busy_timeout: int = 5000  # ms

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name


class RateLimitSettings(BaseSettings):
    """Intake rate limiting configuration."""

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_")

    redis_url: str | None = None
    max_requests: int = 10
    window_seconds: int = 3600
    key_prefix: str = "sms-reminder"
    timeout: float = 2.0

    # Allow traffic when Redis is unreachable
    fail_open: bool = True


class SMSSettings(BaseSettings):
    """Twilio SMS channel configuration."""

    model_config = SettingsConfigDict(env_prefix="SMS_")

    enabled: bool = False
    account_sid: str | None = None
    auth_token: str | None = None
    from_number: str | None = None
    api_base: str = "https://api.twilio.com/2010-04-01"
    timeout: float = 10.0


class SchedulerSettings(BaseSettings):
    """QStash delayed job configuration."""

    model_config = SettingsConfigDict(env_prefix="QSTASH_")

    url: str = "https://qstash.upstash.io"
    token: str | None = None
    callback_base_url: str | None = None
    callback_path: str = "/api/reminders/deliver"
    max_attempts: int = 3
    timeout: float = 10.0

    # Signature verification
    current_signing_key: str | None = None
    next_signing_key: str | None = None
    clock_tolerance: int = 60  # seconds

    @property
    def callback_url(self) -> str | None:
        if not self.callback_base_url:
            return None
        return self.callback_base_url.rstrip("/") + self.callback_path


class DeliverySettings(BaseSettings):
    """Delivery worker configuration."""

    model_config = SettingsConfigDict(env_prefix="DELIVERY_")

    max_retries: int = 3

    # Lease held by the invocation currently sending
    lease_seconds: int = 60
    claim_wait_seconds: float = 5.0
    claim_poll_interval: float = 0.1


class IntakeSettings(BaseSettings):
    """Reminder intake limits."""

    model_config = SettingsConfigDict(env_prefix="INTAKE_")

    max_message_length: int = 500
    max_horizon_days: int = 365


class TranscriptionSettings(BaseSettings):
    """Speech-to-text configuration."""

    model_config = SettingsConfigDict(env_prefix="STT_")

    api_key: str | None = None
    api_base: str = "https://api.openai.com/v1"
    model: str = "whisper-1"
    language: str | None = None
    max_audio_bytes: int = 10 * 1024 * 1024  # 10 MB
    timeout: float = 30.0


class APISettings(BaseSettings):
    """API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    cors_origins: list[str] = ["*"]

    # Honor X-Forwarded-For / X-Real-IP for client identity
    trust_proxy_headers: bool = True


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "SMS Reminder Service"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Sub-settings
    storage: StorageSettings = Field(default_factory=StorageSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    sms: SMSSettings = Field(default_factory=SMSSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    delivery: DeliverySettings = Field(default_factory=DeliverySettings)
    intake: IntakeSettings = Field(default_factory=IntakeSettings)
    transcription: TranscriptionSettings = Field(default_factory=TranscriptionSettings)
    api: APISettings = Field(default_factory=APISettings)

    @field_validator("storage", mode="before")
    @classmethod
    def ensure_data_dir(cls, v: Any) -> StorageSettings:
        if isinstance(v, dict):
            settings = StorageSettings(**v)
        else:
            settings = v or StorageSettings()
        settings.data_dir.mkdir(parents=True, exist_ok=True)
        return settings

    @property
    def delivery_send_timeout(self) -> float:
        """Upper bound on one channel send, including the HTTP timeout."""
        return self.sms.timeout + 5

    def validate_runtime(self) -> list[str]:
        """
        Check settings that only matter once the service is running.

        Returns a list of problems. In production they are fatal; elsewhere
        the caller logs them as warnings.
        """
        problems = []

        if self.sms.enabled and not (
            self.sms.account_sid and self.sms.auth_token and self.sms.from_number
        ):
            problems.append("SMS_ENABLED is set but Twilio credentials are incomplete")
        if self.environment == "production" and not self.sms.enabled:
            problems.append("SMS channel is disabled in production")

        if not self.scheduler.token:
            problems.append("QSTASH_TOKEN is not set; reminders cannot be scheduled")
        if not self.scheduler.callback_base_url:
            problems.append("QSTASH_CALLBACK_BASE_URL is not set")
        if bool(self.scheduler.current_signing_key) != bool(self.scheduler.next_signing_key):
            problems.append("Both QSTASH signing keys are required for signature checks")
        if self.environment == "production" and not self.scheduler.current_signing_key:
            problems.append("QSTASH signing keys are not set; delivery callbacks are unauthenticated")

        if self.delivery.max_retries < 1:
            problems.append("DELIVERY_MAX_RETRIES must be at least 1")
        if self.delivery.lease_seconds <= self.delivery_send_timeout:
            problems.append(
                f"DELIVERY_LEASE_SECONDS must exceed the send timeout "
                f"({self.delivery_send_timeout:g}s) or duplicates may send twice"
            )

        return problems


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset settings (for testing)."""
    global _settings
    _settings = None
