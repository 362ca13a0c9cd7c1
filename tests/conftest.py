"""Pytest configuration and fixtures."""

from datetime import UTC, datetime, timedelta

import pytest

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced clock for window and debounce tests."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now += timedelta(seconds=seconds)
        return self.now


@pytest.fixture
def sample_address() -> str:
    """Sample contract address for testing."""
    return "0x" + "a" * 40


@pytest.fixture
def sample_topic() -> str:
    """Sample 32-byte topic for testing."""
    return "0x" + "d" * 64


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()
