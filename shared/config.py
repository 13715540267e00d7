"""
Shared configuration management for the request telemetry reporter.
"""

from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_GUID = "com.github.domenp.SimpleRelic"
DEFAULT_ENDPOINT_URL = "https://platform-api.newrelic.com/platform/v1/metrics"


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")


class TelemetryConfig(BaseConfig):
    """Reporter configuration, read from TELEMETRY_* variables."""

    model_config = SettingsConfigDict(
        env_prefix="TELEMETRY_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Identity
    app_name: str = Field(default="application")
    license_key: str = Field(default="")
    guid: str = Field(default=DEFAULT_GUID)
    agent_version: str = Field(default="1.0.0")

    # Delivery
    endpoint_url: str = Field(default=DEFAULT_ENDPOINT_URL)
    reporting_interval_seconds: float = Field(default=60.0)
    request_timeout_seconds: float = Field(default=10.0)
    send_enabled: bool = Field(default=True)
    verbose: bool = Field(default=False)

    # Retention
    max_retained_snapshots: int = Field(default=1440)

    @field_validator("reporting_interval_seconds", "request_timeout_seconds")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be greater than zero")
        return value

    @field_validator("max_retained_snapshots")
    @classmethod
    def _retain_at_least_two(cls, value: int) -> int:
        if value < 2:
            raise ValueError("must retain at least two snapshots")
        return value


def get_config(**overrides: Any) -> TelemetryConfig:
    """Get reporter configuration, with explicit overrides winning over env."""
    return TelemetryConfig(**overrides)
