"""Sliding-window burst detector.

This module provides the BurstWindowMonitor class that counts contract events
inside a rolling time window, classifies the rate against a warning and a
burst threshold, and drives the safe -> monitoring -> triggered status
machine with debounced alerts.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from argus_tripwire.detector.models import (
    Alert,
    AlertLevel,
    BurstLevel,
    IncidentRecord,
    LogEntry,
    MetricPoint,
    MonitoringConfig,
    MonitorSnapshot,
    ObservationResult,
    Status,
    TickResult,
)
from argus_tripwire.detector.validation import validate_monitoring_config
from argus_tripwire.ingestor.models import Event, shorten_address

logger = logging.getLogger(__name__)

# Alert cool-downs
CRITICAL_COOLDOWN = timedelta(seconds=6)
WARNING_COOLDOWN = timedelta(seconds=8)

# Bounded history sizes
EVENT_LOG_LIMIT = 25
METRICS_LIMIT = 45

CHANNEL_LIVE = "Reactivity"
CHANNEL_DEMO = "Demo"

# Fields whose change invalidates the current window
_MATERIAL_FIELDS = ("target_address", "topic_filter", "window_seconds")

Clock = Callable[[], datetime]
AlertCallback = Callable[[Alert], None]
StatusCallback = Callable[[Status, Status], None]


class BurstMonitorError(Exception):
    """Base exception for burst monitor errors."""


class MonitorDisabledError(BurstMonitorError):
    """Raised when an event is observed while monitoring is disabled."""


def _utcnow() -> datetime:
    return datetime.now(UTC)


class BurstWindowMonitor:
    """Rolling-window burst tripwire.

    Each observed event is appended to the window, stale timestamps are
    pruned, and the remaining count is classified:

    - count >= burst_threshold: BLOCKED, status forced to TRIGGERED
    - count >= warning_threshold: SUSPICIOUS, status MONITORING
    - otherwise: NORMAL, status SAFE

    TRIGGERED is sticky: only resolve_incident() or reset() leave it. Periodic
    ticks re-evaluate against the warning threshold only and never raise the
    status to TRIGGERED.

    All mutable state sits behind one lock; callbacks run after the lock is
    released and their failures are logged, never propagated.

    Example:
        ```python
        config = MonitoringConfig(enabled=True, target_address=address)
        monitor = BurstWindowMonitor(config, on_alert=dispatcher.send)

        result = monitor.observe(event)
        if result.new_incident is not None:
            print(f"Tripwire fired at {result.count} events")
        ```
    """

    def __init__(
        self,
        config: MonitoringConfig,
        *,
        clock: Clock | None = None,
        on_alert: AlertCallback | None = None,
        on_status_change: StatusCallback | None = None,
    ) -> None:
        """Initialize the monitor.

        Args:
            config: Monitoring configuration, validated on entry.
            clock: Time source for tick(); defaults to UTC wall clock.
            on_alert: Called with each emitted alert.
            on_status_change: Called with (old, new) on every status change.

        Raises:
            ConfigValidationError: If the configuration is rejected.
        """
        self._config = validate_monitoring_config(config)
        self._clock = clock or _utcnow
        self._on_alert = on_alert
        self._on_status_change = on_status_change

        self._lock = threading.Lock()
        self._window: list[datetime] = []
        self._log: deque[LogEntry] = deque(maxlen=EVENT_LOG_LIMIT)
        self._metrics: deque[MetricPoint] = deque(maxlen=METRICS_LIMIT)
        self._status = Status.SAFE
        self._incident: IncidentRecord | None = None
        self._last_warning_at: datetime | None = None
        self._last_critical_at: datetime | None = None

    @property
    def config(self) -> MonitoringConfig:
        return self._config

    @property
    def status(self) -> Status:
        return self._status

    @property
    def incident(self) -> IncidentRecord | None:
        return self._incident

    @property
    def count(self) -> int:
        """Timestamps currently held in the window (as of the last prune)."""
        return len(self._window)

    @property
    def warning_threshold(self) -> int:
        return self._config.warning_threshold

    @property
    def event_log(self) -> tuple[LogEntry, ...]:
        """Observed events, most recent first."""
        with self._lock:
            return tuple(reversed(self._log))

    @property
    def metrics(self) -> tuple[MetricPoint, ...]:
        """Tick samples, oldest first."""
        with self._lock:
            return tuple(self._metrics)

    def classify(self, count: int) -> BurstLevel:
        """Classify a window count against the configured thresholds."""
        if count >= self._config.burst_threshold:
            return BurstLevel.BLOCKED
        if count >= self._config.warning_threshold:
            return BurstLevel.SUSPICIOUS
        return BurstLevel.NORMAL

    def observe(self, event: Event) -> ObservationResult:
        """Feed one event into the window.

        The event timestamp is taken as the detection time.

        Args:
            event: The observed event.

        Returns:
            ObservationResult describing the classification and side effects.

        Raises:
            MonitorDisabledError: If monitoring is disabled.
        """
        if not self._config.enabled:
            raise MonitorDisabledError("Cannot observe events while monitoring is disabled")

        now = event.timestamp
        alerts: list[Alert] = []
        transitions: list[tuple[Status, Status]] = []
        new_incident: IncidentRecord | None = None

        with self._lock:
            cfg = self._config

            if not cfg.matches_topic(event.topic):
                self._prune(now)
                count = len(self._window)
                logger.debug("Ignoring event with topic %s (filter %s)", event.topic, cfg.topic_filter)
                return ObservationResult(
                    level=self.classify(count),
                    count=count,
                    status=self._status,
                    counted=False,
                )

            self._window.append(now)
            self._prune(now)
            count = len(self._window)
            level = self.classify(count)

            channel = CHANNEL_DEMO if event.is_synthetic else CHANNEL_LIVE
            prefix = "[Demo] " if event.is_synthetic else ""

            if level == BurstLevel.BLOCKED:
                self._transition(Status.TRIGGERED, transitions)
                if self._cooldown_elapsed(self._last_critical_at, now, CRITICAL_COOLDOWN):
                    self._last_critical_at = now
                    new_incident = IncidentRecord(
                        detected_at=now,
                        target_address=cfg.target_address,
                        topic_filter=cfg.topic_filter,
                        event_count_at_detection=count,
                        window_seconds=cfg.window_seconds,
                    )
                    self._incident = new_incident
                    alerts.append(
                        Alert(
                            level=AlertLevel.CRITICAL,
                            channel=channel,
                            message=(
                                f"{prefix}Tripwire triggered: {count} events/{cfg.window_seconds}s "
                                f"on {shorten_address(cfg.target_address)}."
                            ),
                            timestamp=now,
                        )
                    )
            elif level == BurstLevel.SUSPICIOUS and self._status != Status.TRIGGERED:
                self._transition(Status.MONITORING, transitions)
                if self._cooldown_elapsed(self._last_warning_at, now, WARNING_COOLDOWN):
                    self._last_warning_at = now
                    alerts.append(
                        Alert(
                            level=AlertLevel.WARNING,
                            channel=channel,
                            message=(
                                f"{prefix}Burst detected: {count}/{cfg.burst_threshold} "
                                "events in active window."
                            ),
                            timestamp=now,
                        )
                    )
            elif level == BurstLevel.NORMAL and self._status != Status.TRIGGERED:
                self._transition(Status.SAFE, transitions)

            entry = LogEntry(event=event, level=level, count=count)
            self._log.append(entry)
            status = self._status

        logger.debug(
            "Observed %s event from %s: count=%d level=%s",
            event.origin.value,
            shorten_address(event.source_address),
            count,
            level.value,
        )
        if new_incident is not None:
            logger.warning(
                "Tripwire triggered: target=%s, count=%d, window=%ds",
                new_incident.target_address,
                new_incident.event_count_at_detection,
                new_incident.window_seconds,
            )

        self._notify(transitions, alerts)
        return ObservationResult(
            level=level,
            count=count,
            status=status,
            new_incident=new_incident,
            entry=entry,
            alerts=tuple(alerts),
        )

    def tick(self, now: datetime | None = None) -> TickResult:
        """Prune the window and re-evaluate status without a new event.

        Only the warning threshold is consulted: a tick can move between SAFE
        and MONITORING but never into TRIGGERED.

        Args:
            now: Evaluation time; defaults to the injected clock.

        Returns:
            TickResult with the sampled metric point.
        """
        now = now or self._clock()
        transitions: list[tuple[Status, Status]] = []

        with self._lock:
            self._prune(now)
            count = len(self._window)
            if self._status != Status.TRIGGERED:
                if count >= self._config.warning_threshold:
                    self._transition(Status.MONITORING, transitions)
                else:
                    self._transition(Status.SAFE, transitions)
            point = MetricPoint(timestamp=now, count=count)
            self._metrics.append(point)
            status = self._status

        self._notify(transitions, [])
        return TickResult(timestamp=now, count=count, status=status, point=point)

    def reconfigure(self, **changes: object) -> bool:
        """Replace configuration fields.

        The existing window is not reclassified. When the target address,
        topic filter or window length changes, or monitoring is disabled, the
        monitor is reset in the same critical section as the swap.

        Args:
            **changes: MonitoringConfig fields to replace.

        Returns:
            True if the change caused a reset.

        Raises:
            ConfigValidationError: If the resulting configuration is rejected.
        """
        transitions: list[tuple[Status, Status]] = []
        with self._lock:
            previous = self._config
            candidate = validate_monitoring_config(previous.with_changes(**changes))
            material = any(
                getattr(candidate, name) != getattr(previous, name) for name in _MATERIAL_FIELDS
            ) or (previous.enabled and not candidate.enabled)
            self._config = candidate
            if material:
                self._clear(transitions)

        logger.info("Monitor reconfigured (reset=%s): %s", material, candidate.to_dict())
        self._notify(transitions, [])
        return material

    def resolve_incident(self) -> bool:
        """Leave TRIGGERED status after an incident has been handled.

        Clears the incident record and both debounce stamps so a new episode
        alerts immediately. A no-op unless the status is TRIGGERED.

        Returns:
            True if an incident was resolved.
        """
        transitions: list[tuple[Status, Status]] = []
        with self._lock:
            if self._status != Status.TRIGGERED:
                return False
            self._incident = None
            self._last_warning_at = None
            self._last_critical_at = None
            self._transition(Status.SAFE, transitions)

        logger.info("Incident resolved for %s", self._config.target_address)
        self._notify(transitions, [])
        return True

    def reset(self) -> None:
        """Clear all rolling state and return to SAFE."""
        transitions: list[tuple[Status, Status]] = []
        with self._lock:
            self._clear(transitions)

        logger.info("Monitor state reset")
        self._notify(transitions, [])

    def snapshot(self) -> MonitorSnapshot:
        """Return a read-only copy of the current state."""
        with self._lock:
            cfg = self._config
            return MonitorSnapshot(
                status=self._status,
                incident=self._incident,
                count=len(self._window),
                burst_threshold=cfg.burst_threshold,
                warning_threshold=cfg.warning_threshold,
                window_seconds=cfg.window_seconds,
                event_log=tuple(reversed(self._log)),
                metrics=tuple(self._metrics),
            )

    def _prune(self, now: datetime) -> None:
        # Per-element test; arrivals may interleave out of order.
        cutoff = now - timedelta(seconds=self._config.window_seconds)
        self._window = [ts for ts in self._window if ts >= cutoff]

    @staticmethod
    def _cooldown_elapsed(last: datetime | None, now: datetime, cooldown: timedelta) -> bool:
        return last is None or now - last > cooldown

    def _clear(self, transitions: list[tuple[Status, Status]]) -> None:
        # Caller holds the lock.
        self._window.clear()
        self._log.clear()
        self._metrics.clear()
        self._last_warning_at = None
        self._last_critical_at = None
        self._incident = None
        self._transition(Status.SAFE, transitions)

    def _transition(self, new_status: Status, transitions: list[tuple[Status, Status]]) -> None:
        if self._status != new_status:
            transitions.append((self._status, new_status))
            self._status = new_status

    def _notify(self, transitions: list[tuple[Status, Status]], alerts: list[Alert]) -> None:
        for old, new in transitions:
            logger.info("Monitor status: %s -> %s", old.value, new.value)
            if self._on_status_change:
                try:
                    self._on_status_change(old, new)
                except Exception as e:
                    logger.error("Error in status change callback: %s", e)

        for alert in alerts:
            if self._on_alert:
                try:
                    self._on_alert(alert)
                except Exception as e:
                    logger.error("Error in alert callback: %s", e)
