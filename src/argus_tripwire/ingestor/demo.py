"""Synthetic event generator for tripwire demos."""

from __future__ import annotations

import asyncio
import logging
import random
import time
from collections.abc import Callable
from datetime import UTC, datetime

from argus_tripwire.detector.burst import BurstWindowMonitor
from argus_tripwire.detector.models import Alert, AlertLevel, ObservationResult, Status
from argus_tripwire.ingestor.models import TRANSFER_TOPIC, Event, EventOrigin

logger = logging.getLogger(__name__)

DEFAULT_EVENT_INTERVAL = 0.22  # seconds between injected events
ALERT_CHANNEL = "Demo"

AlertCallback = Callable[[Alert], None]


def random_address(rng: random.Random) -> str:
    return f"0x{rng.getrandbits(160):040x}"


class SyntheticBurstGenerator:
    """Injects synthetic events into a monitor.

    A burst run injects enough events to cross the burst threshold and stops
    early once the monitor reports TRIGGERED.
    """

    def __init__(
        self,
        monitor: BurstWindowMonitor,
        *,
        interval: float = DEFAULT_EVENT_INTERVAL,
        on_alert: AlertCallback | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._monitor = monitor
        self._interval = interval
        self._on_alert = on_alert
        self._rng = rng or random.Random()
        self._clock = clock or (lambda: datetime.now(UTC))
        self._task: asyncio.Task[int] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def burst_size(self) -> int:
        """Number of events a burst run injects."""
        cfg = self._monitor.config
        return max(cfg.burst_threshold + 1, cfg.warning_threshold + 2)

    def make_event(self) -> Event:
        topic = self._monitor.config.topic_filter or TRANSFER_TOPIC
        payload = f"0x{int(time.time() * 1000):x}{self._rng.randrange(0xFFFFF):05x}"
        return Event(
            timestamp=self._clock(),
            source_address=random_address(self._rng),
            topic=topic,
            payload_preview=payload,
            origin=EventOrigin.SYNTHETIC,
        )

    def inject_event(self) -> ObservationResult:
        """Feed one synthetic event to the monitor."""
        return self._monitor.observe(self.make_event())

    def start_burst(self) -> bool:
        """Schedule a burst run on the running event loop.

        Returns:
            False if a run is already active or the monitor is TRIGGERED.
        """
        if self.is_running or self._monitor.status == Status.TRIGGERED:
            logger.debug("Burst demo not started (running=%s, status=%s)", self.is_running, self._monitor.status.value)
            return False
        self._task = asyncio.get_running_loop().create_task(self.run_burst())
        return True

    async def run_burst(self) -> int:
        """Inject a burst of events at the configured interval.

        Returns:
            Number of events injected.
        """
        target = self.burst_size()
        self._emit_alert(f"Burst demo started. Injecting {target} synthetic events into active window.")
        logger.info("Burst demo: injecting %d events every %.2fs", target, self._interval)

        emitted = 0
        while emitted < target:
            result = self.inject_event()
            emitted += 1
            if result.status == Status.TRIGGERED:
                break
            await asyncio.sleep(self._interval)

        logger.info("Burst demo finished after %d events", emitted)
        return emitted

    async def stop(self) -> None:
        if self._task is None:
            return
        task, self._task = self._task, None
        if not task.done():
            task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            logger.debug("Burst demo cancelled")

    def _emit_alert(self, message: str) -> None:
        if self._on_alert:
            try:
                self._on_alert(Alert(level=AlertLevel.INFO, message=message, channel=ALERT_CHANNEL))
            except Exception as e:  # pragma: no cover
                logger.error("Error in alert callback: %s", e)
