"""Configuration boundary checks for the burst monitor."""

from __future__ import annotations

import re

from web3 import Web3

from argus_tripwire.detector.models import MIN_BURST_THRESHOLD, MonitoringConfig

_TOPIC_RE = re.compile(r"^0x[a-fA-F0-9]{64}$")


class ConfigValidationError(ValueError):
    """Raised when a MonitoringConfig is rejected at the boundary."""


def is_valid_address(value: str | None) -> bool:
    """Check that a value is an EVM address (checksum enforced when mixed-case)."""
    if not value:
        return False
    return bool(Web3.is_address(value.strip()))


def is_valid_topic(value: str | None) -> bool:
    """Check that a topic filter is empty or a 32-byte hex string."""
    if value is None:
        return True
    clean = value.strip()
    return not clean or bool(_TOPIC_RE.match(clean))


def validate_monitoring_config(config: MonitoringConfig) -> MonitoringConfig:
    """Validate a config before it reaches the monitor.

    The target address is only required when monitoring is enabled. Topic
    filters are normalized (blank becomes None).

    Args:
        config: Candidate configuration.

    Returns:
        The normalized configuration.

    Raises:
        ConfigValidationError: With a user-facing message.
    """
    if config.burst_threshold < MIN_BURST_THRESHOLD:
        raise ConfigValidationError(
            f"Burst threshold must be at least {MIN_BURST_THRESHOLD} (got {config.burst_threshold})"
        )
    if config.window_seconds < 1:
        raise ConfigValidationError(
            f"Window must be at least 1 second (got {config.window_seconds})"
        )
    if config.enabled and not is_valid_address(config.target_address):
        raise ConfigValidationError("Contract address is not valid. Use an EVM address (0x...)")
    if not is_valid_topic(config.topic_filter):
        raise ConfigValidationError(
            "Topic filter is not valid. Use 32-byte hex (0x + 64 hex chars) or leave it empty"
        )

    topic = config.topic_filter.strip() if config.topic_filter else None
    return config.with_changes(
        target_address=config.target_address.strip(),
        topic_filter=topic or None,
    )
