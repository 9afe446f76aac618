"""Configuration management using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TWILIX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    # Credentials
    account_sid: str = Field(
        default="",
        description="Twilio Account SID (AC...)",
    )
    auth_token: SecretStr = Field(
        default=SecretStr(""),
        description="Twilio auth token, used for basic auth and as the webhook signing key",
    )

    # REST API endpoints
    api_base_url: str = Field(
        default="https://api.twilio.com/2010-04-01",
        description="Base URL for the core 2010-04-01 API",
    )
    chat_base_url: str = Field(
        default="https://chat.twilio.com/v2",
        description="Base URL for the Programmable Chat API",
    )
    conversations_base_url: str = Field(
        default="https://conversations.twilio.com/v1",
        description="Base URL for the Conversations API",
    )
    proxy_base_url: str = Field(
        default="https://proxy.twilio.com/v1",
        description="Base URL for the Proxy API",
    )

    # Timeouts / resilience
    http_timeout: float = Field(
        default=30.0,
        description="HTTP request timeout in seconds",
    )
    circuit_failure_threshold: int = Field(
        default=5,
        description="Circuit breaker failures before opening",
    )
    circuit_recovery_timeout: float = Field(
        default=30.0,
        description="Seconds before circuit breaker half-open",
    )
    circuit_half_open_max_calls: int = Field(
        default=3,
        description="Successful calls to close half-open circuit",
    )

    # Webhooks
    webhook_base_url: str | None = Field(
        default=None,
        description="Public scheme+host Twilio uses to call the webhooks (e.g. https://hooks.example.com)",
    )
    signature_header: str = Field(
        default="X-Twilio-Signature",
        description="Header carrying the webhook signature",
    )
    webhook_validation_enabled: bool = Field(
        default=True,
        description="Reject webhook requests without a valid signature",
    )
    webhook_exempt_paths: tuple[str, ...] = Field(
        default=("/health", "/metrics"),
        description="Paths exempt from signature validation",
    )
    webhook_host: str = Field(
        default="0.0.0.0",
        description="Host for the webhook HTTP server",
    )
    webhook_port: int = Field(
        default=8090,
        description="Port for the webhook HTTP server",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Minimum log level",
    )
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (console renderer otherwise)",
    )

    @property
    def account_url(self) -> str:
        """Base URL for resources scoped to the configured account."""
        return f"{self.api_base_url.rstrip('/')}/Accounts/{self.account_sid}"


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
