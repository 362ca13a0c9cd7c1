"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Argus Tripwire application, loading and validating environment variables
at startup.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from argus_tripwire.detector.validation import is_valid_address, is_valid_topic

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"


class MonitoringSettings(BaseSettings):
    """Burst tripwire settings."""

    model_config = SettingsConfigDict(env_prefix="MONITOR_", extra="ignore")

    enabled: bool = Field(
        default=False,
        alias="MONITOR_ENABLED",
        description="Start monitoring on launch",
    )
    target_address: str = Field(
        default="",
        alias="MONITOR_TARGET_ADDRESS",
        description="Contract address whose events are counted",
    )
    topic_filter: str = Field(
        default="",
        alias="MONITOR_TOPIC_FILTER",
        description="Optional topic0 filter (0x + 64 hex chars); empty counts every event",
    )
    burst_threshold: int = Field(
        default=8,
        alias="MONITOR_BURST_THRESHOLD",
        ge=2,
        le=1000,
        description="Events within the window that trigger the tripwire",
    )
    window_seconds: int = Field(
        default=12,
        alias="MONITOR_WINDOW_SECONDS",
        ge=1,
        le=86_400,
        description="Rolling detection window length",
    )
    tick_interval_seconds: float = Field(
        default=1.0,
        alias="MONITOR_TICK_INTERVAL_SECONDS",
        gt=0.0,
        le=60.0,
        description="How often the window is pruned and re-evaluated",
    )

    @field_validator("target_address", "topic_filter")
    @classmethod
    def strip_value(cls, v: str) -> str:
        return v.strip()

    @field_validator("topic_filter")
    @classmethod
    def validate_topic_filter(cls, v: str) -> str:
        """Validate topic filter format."""
        if not is_valid_topic(v):
            raise ValueError("MONITOR_TOPIC_FILTER must be 32-byte hex (0x + 64 hex chars) or empty")
        return v

    @model_validator(mode="after")
    def validate_target(self) -> MonitoringSettings:
        """An enabled monitor needs a valid contract address."""
        if self.enabled and not is_valid_address(self.target_address):
            raise ValueError("MONITOR_TARGET_ADDRESS must be a valid EVM address when monitoring is enabled")
        return self


class StreamSettings(BaseSettings):
    """Live log subscription settings."""

    model_config = SettingsConfigDict(env_prefix="STREAM_", extra="ignore")

    ws_url: str = Field(
        default="wss://dream-rpc.somnia.network/ws",
        alias="STREAM_WS_URL",
        description="JSON-RPC WebSocket endpoint for eth_subscribe",
    )
    initial_reconnect_delay: float = Field(
        default=1.0,
        alias="STREAM_INITIAL_RECONNECT_DELAY",
        gt=0.0,
        le=60.0,
        description="First reconnect delay in seconds",
    )
    max_reconnect_delay: float = Field(
        default=15.0,
        alias="STREAM_MAX_RECONNECT_DELAY",
        gt=0.0,
        le=600.0,
        description="Upper bound for the exponential reconnect delay",
    )
    ping_interval: int = Field(
        default=30,
        alias="STREAM_PING_INTERVAL",
        ge=1,
        le=600,
        description="WebSocket keepalive ping interval in seconds",
    )

    @field_validator("ws_url")
    @classmethod
    def validate_ws_url(cls, v: str) -> str:
        """Validate WebSocket URL format."""
        if not v.startswith(("ws://", "wss://")):
            raise ValueError("WebSocket URL must start with ws:// or wss://")
        return v


class DemoSettings(BaseSettings):
    """Synthetic burst generator settings."""

    model_config = SettingsConfigDict(env_prefix="DEMO_", extra="ignore")

    event_interval_seconds: float = Field(
        default=0.22,
        alias="DEMO_EVENT_INTERVAL_SECONDS",
        gt=0.0,
        le=10.0,
        description="Delay between injected synthetic events",
    )


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files.

    Example:
        ```python
        from argus_tripwire.config import get_settings

        settings = get_settings()
        print(settings.monitor.burst_threshold)
        print(settings.log_level)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    monitor: MonitoringSettings = Field(
        default_factory=lambda: MonitoringSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    stream: StreamSettings = Field(
        default_factory=lambda: StreamSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    demo: DemoSettings = Field(
        default_factory=lambda: DemoSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Record alerts in the feed without sending them to channels",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a printable summary of settings."""
        return {
            "monitor": {
                "enabled": str(self.monitor.enabled),
                "target_address": self.monitor.target_address or "(not set)",
                "topic_filter": self.monitor.topic_filter or "any",
                "burst_threshold": str(self.monitor.burst_threshold),
                "window_seconds": str(self.monitor.window_seconds),
            },
            "stream": {
                "ws_url": self.stream.ws_url,
                "max_reconnect_delay": str(self.stream.max_reconnect_delay),
            },
            "log_level": self.log_level,
            "dry_run": str(self.dry_run),
        }

    def validate_requirements(self, *, command: Literal["run", "demo"]) -> None:
        """Validate command-specific requirements.

        Live monitoring refuses to start without an enabled, addressed
        monitor. The demo only needs a valid address.
        """
        if command == "run" and not self.monitor.enabled:
            raise ValueError("MONITOR_ENABLED must be true for live monitoring")
        if not is_valid_address(self.monitor.target_address):
            raise ValueError("MONITOR_TARGET_ADDRESS must be a valid EVM address")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
