"""Alert fan-out to delivery channels.

Delivery is fire-and-forget from the monitor's point of view: a failing
channel is logged and counted, and never affects monitor state.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Protocol

from argus_tripwire.alerter.models import ChannelResult, DispatchResult, FormattedAlert
from argus_tripwire.detector.models import Alert, AlertLevel

logger = logging.getLogger(__name__)

DEFAULT_FEED_LIMIT = 120

_LOG_LEVELS = {
    AlertLevel.INFO: logging.INFO,
    AlertLevel.SUCCESS: logging.INFO,
    AlertLevel.WARNING: logging.WARNING,
    AlertLevel.CRITICAL: logging.CRITICAL,
}


class AlertChannel(Protocol):
    """A delivery target for formatted alerts."""

    name: str

    async def send(self, alert: FormattedAlert) -> bool: ...


class AlertFeed:
    """Bounded in-memory alert list, most recent first."""

    def __init__(self, limit: int = DEFAULT_FEED_LIMIT) -> None:
        self._alerts: deque[Alert] = deque(maxlen=limit)

    def publish(self, alert: Alert) -> None:
        self._alerts.append(alert)

    def latest(self, n: int | None = None) -> list[Alert]:
        items = list(reversed(self._alerts))
        return items if n is None else items[:n]

    def clear(self) -> None:
        self._alerts.clear()

    def __len__(self) -> int:
        return len(self._alerts)


class LoggingChannel:
    """Writes plain-text alerts to the application log."""

    name = "log"

    def __init__(self, logger_name: str = "argus_tripwire.alerts") -> None:
        self._logger = logging.getLogger(logger_name)

    async def send(self, alert: FormattedAlert) -> bool:
        self._logger.log(_LOG_LEVELS[alert.alert.level], "%s", alert.plain_text)
        return True


class AlertDispatcher:
    """Dispatches formatted alerts to all channels concurrently.

    Example:
        ```python
        dispatcher = AlertDispatcher([LoggingChannel()])
        result = await dispatcher.dispatch(formatter.format(alert))
        if not result.all_succeeded:
            print(f"{result.failure_count} channels failed")
        ```
    """

    def __init__(self, channels: list[AlertChannel] | None = None) -> None:
        self._channels: list[AlertChannel] = list(channels or [])
        self.failures = 0

    @property
    def channels(self) -> list[AlertChannel]:
        return list(self._channels)

    def add_channel(self, channel: AlertChannel) -> None:
        self._channels.append(channel)

    async def dispatch(self, alert: FormattedAlert) -> DispatchResult:
        """Send an alert to every channel.

        Args:
            alert: The formatted alert.

        Returns:
            DispatchResult with one entry per channel.
        """
        if not self._channels:
            return DispatchResult()

        results = await asyncio.gather(
            *(self._send_one(channel, alert) for channel in self._channels)
        )
        return DispatchResult(results=tuple(results))

    async def _send_one(self, channel: AlertChannel, alert: FormattedAlert) -> ChannelResult:
        try:
            ok = await channel.send(alert)
        except Exception as e:
            self.failures += 1
            logger.warning("Alert channel %s failed: %s", channel.name, e)
            return ChannelResult(channel=channel.name, success=False, error=str(e))

        if not ok:
            self.failures += 1
            logger.warning("Alert channel %s rejected alert", channel.name)
        return ChannelResult(channel=channel.name, success=ok)
