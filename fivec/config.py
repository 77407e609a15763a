"""
Configuration and environment variables for the 5C Community Group Orchestrator.
"""
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Service Configuration
    app_name: str = "5C Community Group Orchestrator"
    version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"

    # API Configuration
    api_prefix: str = "/api/v1"

    # Host and Port
    host: str = "0.0.0.0"
    port: int = 8000

    # Logging
    log_level: str = "INFO"

    # Supabase Configuration
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    use_in_memory_store: bool = True

    # Email Gateway (Resend)
    resend_api_key: Optional[str] = None
    resend_api_url: str = "https://api.resend.com"
    email_from: str = "5C Community <noreply@5ccommunity.com>"

    # SMS Gateway (Twilio)
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None
    twilio_api_url: str = "https://api.twilio.com/2010-04-01"

    # SMS reply links
    sms_response_base_url: str = "http://localhost:3000"

    # External Compute Services (Supabase edge functions)
    functions_url: Optional[str] = None

    # External Service Timeouts (seconds)
    email_timeout: int = 30
    sms_timeout: int = 30
    match_compute_timeout: int = 120
    export_compute_timeout: int = 120

    # Circuit Breaker Configuration
    email_failure_threshold: int = 5
    sms_failure_threshold: int = 3
    compute_failure_threshold: int = 3
    circuit_breaker_timeout: int = 300  # 5 minutes

    # Retry Configuration
    max_retry_attempts: int = 3
    retry_base_delay_seconds: float = 1.0

    @field_validator("sms_response_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("max_retry_attempts")
    @classmethod
    def validate_retry_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_retry_attempts must be at least 1")
        return v

    @property
    def twilio_configured(self) -> bool:
        return bool(
            self.twilio_account_sid and self.twilio_auth_token and self.twilio_phone_number
        )

    @property
    def resend_configured(self) -> bool:
        return bool(self.resend_api_key)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
