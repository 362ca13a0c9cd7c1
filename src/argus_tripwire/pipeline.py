"""Main pipeline orchestrator for Argus Tripwire.

This module provides the Pipeline class that wires the event sources, the
burst monitor and the alerting components together, and drives the periodic
window re-evaluation.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from argus_tripwire.alerter.dispatcher import AlertChannel, AlertDispatcher, AlertFeed, LoggingChannel
from argus_tripwire.alerter.formatter import AlertFormatter
from argus_tripwire.alerter.models import FormattedAlert
from argus_tripwire.config import Settings, get_settings
from argus_tripwire.detector.burst import BurstWindowMonitor
from argus_tripwire.detector.models import (
    Alert,
    AlertLevel,
    MonitoringConfig,
    MonitorSnapshot,
    ObservationResult,
)
from argus_tripwire.ingestor.demo import SyntheticBurstGenerator
from argus_tripwire.ingestor.log_stream import LogStreamHandler
from argus_tripwire.ingestor.models import Event

logger = logging.getLogger(__name__)

CHANNEL_SYSTEM = "System"
CHANNEL_RECOVERY = "Recovery"
CHANNEL_DEMO = "Demo"


class PipelineState(str, Enum):
    """Pipeline lifecycle states."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


@dataclass
class PipelineStats:
    """Statistics for the pipeline."""

    started_at: datetime | None = None
    events_processed: int = 0
    events_filtered: int = 0
    incidents: int = 0
    alerts_emitted: int = 0
    alerts_sent: int = 0
    ticks: int = 0
    errors: int = 0
    last_event_time: datetime | None = None
    last_error: str | None = None


class Pipeline:
    """Main pipeline orchestrator for Argus Tripwire.

    Pipeline flow:
        Log Stream / Demo Generator → BurstWindowMonitor → Alert Feed → Dispatcher

    Example:
        ```python
        from argus_tripwire.config import get_settings
        from argus_tripwire.pipeline import Pipeline

        pipeline = Pipeline(get_settings())
        await pipeline.start()
        # Pipeline runs until stop() is called
        await pipeline.stop()
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        live: bool = True,
        dry_run: bool | None = None,
        channels: list[AlertChannel] | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Application settings. If not provided, uses get_settings().
            live: Subscribe to the live log stream when monitoring is enabled.
            dry_run: If True, alerts only go to the feed. Overrides settings.dry_run.
            channels: Alert channels; defaults to a LoggingChannel.

        Raises:
            ConfigValidationError: If the monitoring settings are rejected.
        """
        self._settings = settings or get_settings()
        self._live = live
        self._dry_run = dry_run if dry_run is not None else self._settings.dry_run

        self._state = PipelineState.STOPPED
        self._stats = PipelineStats()

        config = MonitoringConfig.from_settings(self._settings.monitor)
        self._monitor = BurstWindowMonitor(
            config,
            on_alert=self._handle_alert,
        )
        self._feed = AlertFeed()
        self._formatter = AlertFormatter(target_address=config.target_address)
        self._dispatcher = AlertDispatcher(channels if channels is not None else [LoggingChannel()])
        self._demo = SyntheticBurstGenerator(
            self._monitor,
            interval=self._settings.demo.event_interval_seconds,
            on_alert=self._handle_alert,
        )
        self._log_stream: LogStreamHandler | None = None

        # Synchronization
        self._stop_event: asyncio.Event | None = None
        self._tick_task: asyncio.Task[None] | None = None
        self._stream_task: asyncio.Task[None] | None = None
        self._dispatch_tasks: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> PipelineState:
        """Current pipeline state."""
        return self._state

    @property
    def stats(self) -> PipelineStats:
        """Current pipeline statistics."""
        return self._stats

    @property
    def is_running(self) -> bool:
        """Check if pipeline is running."""
        return self._state == PipelineState.RUNNING

    @property
    def monitor(self) -> BurstWindowMonitor:
        return self._monitor

    @property
    def feed(self) -> AlertFeed:
        return self._feed

    @property
    def demo(self) -> SyntheticBurstGenerator:
        return self._demo

    def snapshot(self) -> MonitorSnapshot:
        return self._monitor.snapshot()

    async def start(self) -> None:
        """Start the pipeline.

        Raises:
            RuntimeError: If pipeline is already running.
        """
        if self._state != PipelineState.STOPPED:
            raise RuntimeError(f"Cannot start pipeline in state {self._state}")

        self._state = PipelineState.STARTING
        self._stop_event = asyncio.Event()
        logger.info("Starting pipeline...")

        try:
            self._tick_task = asyncio.create_task(self._run_tick_loop())
            if self._live and self._monitor.config.enabled:
                self._log_stream = self._build_log_stream()
                self._stream_task = asyncio.create_task(self._run_log_stream())
            self._stats.started_at = datetime.now(UTC)
            self._state = PipelineState.RUNNING
            self._handle_alert(
                Alert(
                    level=AlertLevel.INFO,
                    channel=CHANNEL_SYSTEM,
                    message="Argus initialized. Monitoring "
                    + ("live events." if self._stream_task else "synthetic events only."),
                )
            )
            logger.info("Pipeline started successfully")
        except Exception as e:
            self._state = PipelineState.ERROR
            self._stats.last_error = str(e)
            logger.error("Failed to start pipeline: %s", e)
            await self._cleanup()
            raise

    async def stop(self) -> None:
        """Stop the pipeline and wait for background tasks."""
        if self._state in (PipelineState.STOPPED, PipelineState.STOPPING):
            return

        self._state = PipelineState.STOPPING
        logger.info("Stopping pipeline...")
        if self._stop_event:
            self._stop_event.set()
        await self._cleanup()
        self._state = PipelineState.STOPPED
        logger.info("Pipeline stopped")

    async def run(self) -> None:
        """Start the pipeline and run until stopped."""
        await self.start()

        try:
            if self._stop_event:
                await self._stop_event.wait()
        except asyncio.CancelledError:
            pass
        finally:
            await self.stop()

    async def __aenter__(self) -> Pipeline:
        """Async context manager entry."""
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        """Async context manager exit."""
        await self.stop()

    async def process_event(self, event: Event) -> ObservationResult | None:
        """Feed one event from any source into the monitor."""
        try:
            result = self._monitor.observe(event)
        except Exception as e:
            self._stats.errors += 1
            self._stats.last_error = str(e)
            logger.error("Failed to process event from %s: %s", event.source_address, e)
            return None

        if not result.counted:
            self._stats.events_filtered += 1
            return result

        self._stats.events_processed += 1
        self._stats.last_event_time = event.timestamp
        if result.new_incident is not None:
            self._stats.incidents += 1
        return result

    def resolve_incident(self) -> bool:
        """Resolve the active incident and resume monitoring."""
        if not self._monitor.resolve_incident():
            return False
        self._handle_alert(
            Alert(
                level=AlertLevel.SUCCESS,
                channel=CHANNEL_RECOVERY,
                message="Incident resolved. Protocol status returned to SAFE.",
            )
        )
        return True

    async def reset(self) -> None:
        """Stop any demo run and clear all rolling monitor state."""
        await self._demo.stop()
        self._monitor.reset()
        self._handle_alert(
            Alert(
                level=AlertLevel.INFO,
                channel=CHANNEL_DEMO,
                message="Demo state reset. Activity log and rolling counters cleared.",
            )
        )

    def _build_log_stream(self) -> LogStreamHandler:
        cfg = self._monitor.config
        stream = self._settings.stream
        return LogStreamHandler(
            host=stream.ws_url,
            address=cfg.target_address,
            topic_filter=cfg.topic_filter,
            on_event=self.process_event,
            on_alert=self._handle_alert,
            ping_interval=stream.ping_interval,
            initial_reconnect_delay=stream.initial_reconnect_delay,
            max_reconnect_delay=stream.max_reconnect_delay,
        )

    async def _run_tick_loop(self) -> None:
        if not self._stop_event:
            return

        interval = self._settings.monitor.tick_interval_seconds
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                break
            except TimeoutError:
                pass

            try:
                self._monitor.tick()
                self._stats.ticks += 1
            except Exception as e:
                self._stats.errors += 1
                self._stats.last_error = str(e)
                logger.warning("Tick loop error: %s", e)

    async def _run_log_stream(self) -> None:
        """Run the log stream in a task."""
        if not self._log_stream:
            return

        try:
            await self._log_stream.start()
        except asyncio.CancelledError:
            logger.debug("Log stream task cancelled")
        except Exception as e:
            logger.error("Log stream error: %s", e)
            self._stats.last_error = str(e)
            self._stats.errors += 1

    def _handle_alert(self, alert: Alert) -> None:
        self._feed.publish(alert)
        self._stats.alerts_emitted += 1

        incident = self._monitor.incident if alert.level == AlertLevel.CRITICAL else None
        formatted = self._formatter.format(alert, incident)

        if self._dry_run:
            logger.info("[DRY RUN] Would send alert: %s", formatted.title)
            return

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; alert kept in feed only")
            return

        task = loop.create_task(self._dispatch(formatted))
        self._dispatch_tasks.add(task)
        task.add_done_callback(self._dispatch_tasks.discard)

    async def _dispatch(self, formatted: FormattedAlert) -> None:
        result = await self._dispatcher.dispatch(formatted)
        if result.all_succeeded:
            self._stats.alerts_sent += 1
        else:
            logger.warning(
                "Alert partially failed: %d/%d channels succeeded",
                result.success_count,
                result.success_count + result.failure_count,
            )

    async def _cleanup(self) -> None:
        await self._demo.stop()

        if self._log_stream:
            await self._log_stream.stop()

        for task in (self._stream_task, self._tick_task):
            if task and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._stream_task = None
        self._tick_task = None
        self._log_stream = None

        if self._dispatch_tasks:
            await asyncio.gather(*self._dispatch_tasks, return_exceptions=True)
