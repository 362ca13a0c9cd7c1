"""Tests for configuration boundary validation."""

import pytest

from argus_tripwire.detector.models import MonitoringConfig
from argus_tripwire.detector.validation import (
    ConfigValidationError,
    is_valid_address,
    is_valid_topic,
    validate_monitoring_config,
)

# EIP-55 checksummed address
CHECKSUMMED = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("0x" + "a" * 40, True),
        (CHECKSUMMED, True),
        (CHECKSUMMED.lower(), True),
        ("0x" + "a" * 39, False),
        ("0x" + "g" * 40, False),
        ("", False),
        (None, False),
    ],
)
def test_is_valid_address(value: str | None, expected: bool) -> None:
    assert is_valid_address(value) is expected


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, True),
        ("", True),
        ("   ", True),
        ("0x" + "d" * 64, True),
        ("0x" + "D" * 64, True),
        ("0x" + "d" * 63, False),
        ("d" * 64, False),
        ("0xzz" + "d" * 62, False),
    ],
)
def test_is_valid_topic(value: str | None, expected: bool) -> None:
    assert is_valid_topic(value) is expected


class TestValidateMonitoringConfig:
    def test_normalizes_fields(self, sample_address: str) -> None:
        config = MonitoringConfig(enabled=True, target_address=f"  {sample_address} ", topic_filter="  ")
        result = validate_monitoring_config(config)
        assert result.target_address == sample_address
        assert result.topic_filter is None

    def test_disabled_config_needs_no_address(self) -> None:
        result = validate_monitoring_config(MonitoringConfig(enabled=False))
        assert result.target_address == ""

    def test_enabled_config_needs_address(self) -> None:
        with pytest.raises(ConfigValidationError, match="Contract address"):
            validate_monitoring_config(MonitoringConfig(enabled=True, target_address="0x1234"))

    def test_rejects_bad_topic(self, sample_address: str) -> None:
        config = MonitoringConfig(enabled=True, target_address=sample_address, topic_filter="0x1234")
        with pytest.raises(ConfigValidationError, match="Topic filter"):
            validate_monitoring_config(config)

    @pytest.mark.parametrize("threshold", [-1, 0, 1])
    def test_rejects_low_threshold(self, threshold: int) -> None:
        with pytest.raises(ConfigValidationError, match="Burst threshold"):
            validate_monitoring_config(MonitoringConfig(burst_threshold=threshold))

    def test_rejects_empty_window(self) -> None:
        with pytest.raises(ConfigValidationError, match="Window"):
            validate_monitoring_config(MonitoringConfig(window_seconds=0))

    def test_is_value_error(self) -> None:
        assert issubclass(ConfigValidationError, ValueError)
