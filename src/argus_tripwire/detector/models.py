"""Data models for the detector module."""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING

from argus_tripwire.ingestor.models import Event, EventOrigin

if TYPE_CHECKING:
    from argus_tripwire.config import MonitoringSettings

# Defaults match the out-of-the-box tripwire configuration
DEFAULT_BURST_THRESHOLD = 8
DEFAULT_WINDOW_SECONDS = 12
MIN_BURST_THRESHOLD = 2
WARNING_RATIO = 0.6


def warning_threshold_for(burst_threshold: int) -> int:
    """Return the warning threshold derived from a burst threshold."""
    return max(MIN_BURST_THRESHOLD, math.ceil(burst_threshold * WARNING_RATIO))


class Status(str, Enum):
    """Monitor status. TRIGGERED is sticky until explicitly resolved."""

    SAFE = "safe"
    MONITORING = "monitoring"
    TRIGGERED = "triggered"


class BurstLevel(str, Enum):
    """Per-observation rate classification."""

    NORMAL = "normal"
    SUSPICIOUS = "suspicious"
    BLOCKED = "blocked"


class AlertLevel(str, Enum):
    """Severity of an outbound alert."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"
    SUCCESS = "success"


@dataclass(frozen=True)
class MonitoringConfig:
    """Tripwire configuration for one monitoring session.

    Attributes:
        enabled: Whether the monitor accepts observations.
        target_address: Contract address being watched.
        topic_filter: Optional topic0; when set only matching events count.
        burst_threshold: Event count that forces TRIGGERED status.
        window_seconds: Rolling window length in seconds.
    """

    enabled: bool = False
    target_address: str = ""
    topic_filter: str | None = None
    burst_threshold: int = DEFAULT_BURST_THRESHOLD
    window_seconds: int = DEFAULT_WINDOW_SECONDS

    @property
    def warning_threshold(self) -> int:
        """Count at which the window is considered suspicious."""
        return warning_threshold_for(self.burst_threshold)

    def matches_topic(self, topic: str) -> bool:
        """Return True if an event topic passes the topic filter."""
        if not self.topic_filter:
            return True
        return topic.lower() == self.topic_filter.lower()

    def with_changes(self, **changes: object) -> MonitoringConfig:
        """Return a copy with the given fields replaced."""
        return dataclasses.replace(self, **changes)  # type: ignore[arg-type]

    @classmethod
    def from_settings(cls, settings: MonitoringSettings) -> MonitoringConfig:
        """Build a config from the MONITOR_* settings group."""
        return cls(
            enabled=settings.enabled,
            target_address=settings.target_address,
            topic_filter=settings.topic_filter or None,
            burst_threshold=settings.burst_threshold,
            window_seconds=settings.window_seconds,
        )

    def to_dict(self) -> dict[str, object]:
        """Serialize to dictionary."""
        return {
            "enabled": self.enabled,
            "target_address": self.target_address,
            "topic_filter": self.topic_filter,
            "burst_threshold": self.burst_threshold,
            "warning_threshold": self.warning_threshold,
            "window_seconds": self.window_seconds,
        }


@dataclass(frozen=True)
class IncidentRecord:
    """Snapshot of the window at the moment the tripwire fired."""

    detected_at: datetime
    target_address: str
    topic_filter: str | None
    event_count_at_detection: int
    window_seconds: int

    def to_dict(self) -> dict[str, object]:
        """Serialize to dictionary."""
        return {
            "detected_at": self.detected_at.isoformat(),
            "target_address": self.target_address,
            "topic_filter": self.topic_filter or "any",
            "event_count_at_detection": self.event_count_at_detection,
            "window_seconds": self.window_seconds,
        }


@dataclass(frozen=True)
class Alert:
    """Outbound notification for alerting collaborators."""

    level: AlertLevel
    message: str
    channel: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, object]:
        """Serialize to dictionary."""
        return {
            "level": self.level.value,
            "message": self.message,
            "channel": self.channel,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class LogEntry:
    """An observed event tagged with the level computed when it arrived."""

    event: Event
    level: BurstLevel
    count: int

    @property
    def timestamp(self) -> datetime:
        return self.event.timestamp

    @property
    def origin(self) -> EventOrigin:
        return self.event.origin


@dataclass(frozen=True)
class MetricPoint:
    """One sample of the rolling count, taken on tick."""

    timestamp: datetime
    count: int


@dataclass(frozen=True)
class ObservationResult:
    """Outcome of feeding one event to the monitor.

    Attributes:
        level: Classification of the window after this event.
        count: Events in the window after pruning.
        status: Monitor status after this event.
        new_incident: Incident created by this event, if any.
        entry: Event log entry, None when the event was filtered out.
        alerts: Alerts emitted by this event.
        counted: False when the topic filter rejected the event.
    """

    level: BurstLevel
    count: int
    status: Status
    new_incident: IncidentRecord | None = None
    entry: LogEntry | None = None
    alerts: tuple[Alert, ...] = ()
    counted: bool = True


@dataclass(frozen=True)
class TickResult:
    """Outcome of a periodic window re-evaluation."""

    timestamp: datetime
    count: int
    status: Status
    point: MetricPoint


@dataclass(frozen=True)
class MonitorSnapshot:
    """Read-only view of monitor state for UI collaborators."""

    status: Status
    incident: IncidentRecord | None
    count: int
    burst_threshold: int
    warning_threshold: int
    window_seconds: int
    event_log: tuple[LogEntry, ...]
    metrics: tuple[MetricPoint, ...]

    @property
    def threshold_usage(self) -> float:
        """Current count as a percentage of the burst threshold."""
        if self.burst_threshold <= 0:
            return 0.0
        return self.count / self.burst_threshold * 100.0
