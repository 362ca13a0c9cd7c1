"""Tests for the main pipeline orchestrator."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from argus_tripwire.alerter.models import FormattedAlert
from argus_tripwire.config import Settings
from argus_tripwire.detector.models import Alert, AlertLevel, Status
from argus_tripwire.ingestor.log_stream import LogStreamHandler
from argus_tripwire.ingestor.models import TRANSFER_TOPIC, Event, EventOrigin
from argus_tripwire.pipeline import Pipeline, PipelineState

T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)
TARGET = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"


class RecordingChannel:
    name = "recording"

    def __init__(self) -> None:
        self.sent: list[FormattedAlert] = []

    async def send(self, alert: FormattedAlert) -> bool:
        self.sent.append(alert)
        return True


@pytest.fixture
def mock_settings():
    """Create mock settings for testing."""
    monitor = MagicMock()
    monitor.enabled = True
    monitor.target_address = TARGET
    monitor.topic_filter = ""
    monitor.burst_threshold = 8
    monitor.window_seconds = 12
    monitor.tick_interval_seconds = 0.01

    stream = MagicMock()
    stream.ws_url = "wss://rpc.example/ws"
    stream.ping_interval = 30
    stream.initial_reconnect_delay = 1.0
    stream.max_reconnect_delay = 15.0

    demo = MagicMock()
    demo.event_interval_seconds = 0.0

    settings = MagicMock(spec=Settings)
    settings.monitor = monitor
    settings.stream = stream
    settings.demo = demo
    settings.dry_run = True
    return settings


def create_event(offset: float = 0.0, topic: str = TRANSFER_TOPIC) -> Event:
    return Event(
        timestamp=T0 + timedelta(seconds=offset),
        source_address="0x" + "1" * 40,
        topic=topic,
        payload_preview="0x",
        origin=EventOrigin.LIVE,
    )


async def trigger(pipeline: Pipeline, n: int = 8) -> None:
    for i in range(n):
        await pipeline.process_event(create_event(i * 0.1))


class TestPipelineInit:
    """Tests for pipeline initialization."""

    def test_initial_state(self, mock_settings):
        pipeline = Pipeline(mock_settings)

        assert pipeline.state == PipelineState.STOPPED
        assert not pipeline.is_running
        assert pipeline.stats.events_processed == 0
        assert pipeline.monitor.config.target_address == TARGET
        assert pipeline.monitor.config.topic_filter is None
        assert pipeline.monitor.status == Status.SAFE
        assert len(pipeline.feed) == 0

    def test_dry_run_override(self, mock_settings):
        pipeline = Pipeline(mock_settings, dry_run=False)
        assert pipeline._dry_run is False

    def test_invalid_monitor_settings_rejected(self, mock_settings):
        mock_settings.monitor.burst_threshold = 1
        with pytest.raises(ValueError):
            Pipeline(mock_settings)


class TestProcessEvent:
    """Tests for event processing."""

    @pytest.mark.asyncio
    async def test_counts_events(self, mock_settings):
        pipeline = Pipeline(mock_settings)

        result = await pipeline.process_event(create_event())

        assert result is not None
        assert result.count == 1
        assert pipeline.stats.events_processed == 1
        assert pipeline.stats.last_event_time == T0

    @pytest.mark.asyncio
    async def test_filtered_events(self, mock_settings):
        mock_settings.monitor.topic_filter = "0x" + "d" * 64
        pipeline = Pipeline(mock_settings)

        result = await pipeline.process_event(create_event())

        assert result is not None
        assert not result.counted
        assert pipeline.stats.events_filtered == 1
        assert pipeline.stats.events_processed == 0

    @pytest.mark.asyncio
    async def test_disabled_monitor_errors_are_contained(self, mock_settings):
        mock_settings.monitor.enabled = False
        pipeline = Pipeline(mock_settings)

        assert await pipeline.process_event(create_event()) is None
        assert pipeline.stats.errors == 1
        assert "disabled" in pipeline.stats.last_error

    @pytest.mark.asyncio
    async def test_burst_reaches_feed(self, mock_settings):
        pipeline = Pipeline(mock_settings)

        await trigger(pipeline)

        assert pipeline.monitor.status == Status.TRIGGERED
        assert pipeline.stats.incidents == 1
        levels = [a.level for a in pipeline.feed.latest()]
        assert levels == [AlertLevel.CRITICAL, AlertLevel.WARNING]
        assert pipeline.feed.latest(1)[0].message == (
            "Tripwire triggered: 8 events/12s on 0x5aAe...eAed."
        )


class TestIncidentHandling:
    """Tests for resolve and reset."""

    @pytest.mark.asyncio
    async def test_resolve_incident(self, mock_settings):
        pipeline = Pipeline(mock_settings)
        await trigger(pipeline)

        assert pipeline.resolve_incident() is True

        assert pipeline.monitor.status == Status.SAFE
        assert pipeline.snapshot().incident is None
        latest = pipeline.feed.latest(1)[0]
        assert latest.level == AlertLevel.SUCCESS
        assert latest.channel == "Recovery"
        assert latest.message == "Incident resolved. Protocol status returned to SAFE."

    def test_resolve_without_incident(self, mock_settings):
        pipeline = Pipeline(mock_settings)

        assert pipeline.resolve_incident() is False
        assert len(pipeline.feed) == 0

    @pytest.mark.asyncio
    async def test_reset(self, mock_settings):
        pipeline = Pipeline(mock_settings)
        await trigger(pipeline, 5)

        await pipeline.reset()

        assert pipeline.monitor.count == 0
        assert pipeline.snapshot().event_log == ()
        latest = pipeline.feed.latest(1)[0]
        assert latest.channel == "Demo"
        assert latest.message == "Demo state reset. Activity log and rolling counters cleared."

    def test_alert_without_event_loop_stays_in_feed(self, mock_settings):
        """Alerts raised outside an event loop are kept in the feed only."""
        pipeline = Pipeline(mock_settings, dry_run=False)
        pipeline._handle_alert(Alert(level=AlertLevel.INFO, message="hello", channel="System"))

        assert len(pipeline.feed) == 1
        assert pipeline.stats.alerts_sent == 0


class TestDispatch:
    """Tests for alert delivery."""

    @pytest.mark.asyncio
    async def test_alerts_sent_to_channels(self, mock_settings):
        channel = RecordingChannel()
        pipeline = Pipeline(mock_settings, dry_run=False, channels=[channel])

        await trigger(pipeline)
        await asyncio.sleep(0.01)

        assert [a.alert.level for a in channel.sent] == [AlertLevel.WARNING, AlertLevel.CRITICAL]
        assert "INCIDENT REPORT" in channel.sent[1].plain_text
        assert pipeline.stats.alerts_sent == 2
        assert pipeline.stats.alerts_emitted == 2

    @pytest.mark.asyncio
    async def test_dry_run_skips_channels(self, mock_settings):
        channel = RecordingChannel()
        pipeline = Pipeline(mock_settings, channels=[channel])

        await trigger(pipeline)
        await asyncio.sleep(0.01)

        assert channel.sent == []
        assert pipeline.stats.alerts_emitted == 2
        assert pipeline.stats.alerts_sent == 0


class TestPipelineLifecycle:
    """Tests for start/stop."""

    @pytest.mark.asyncio
    async def test_start_and_stop_offline(self, mock_settings):
        pipeline = Pipeline(mock_settings, live=False)

        await pipeline.start()
        assert pipeline.state == PipelineState.RUNNING
        assert pipeline.stats.started_at is not None
        assert pipeline.feed.latest(1)[0].message == (
            "Argus initialized. Monitoring synthetic events only."
        )

        await pipeline.stop()
        assert pipeline.state == PipelineState.STOPPED

    @pytest.mark.asyncio
    async def test_start_twice_raises(self, mock_settings):
        pipeline = Pipeline(mock_settings, live=False)
        await pipeline.start()
        try:
            with pytest.raises(RuntimeError):
                await pipeline.start()
        finally:
            await pipeline.stop()

    @pytest.mark.asyncio
    async def test_stop_when_stopped_is_noop(self, mock_settings):
        pipeline = Pipeline(mock_settings, live=False)
        await pipeline.stop()
        assert pipeline.state == PipelineState.STOPPED

    @pytest.mark.asyncio
    async def test_live_start_uses_log_stream(self, mock_settings):
        with (
            patch.object(LogStreamHandler, "start", AsyncMock()) as start,
            patch.object(LogStreamHandler, "stop", AsyncMock()) as stop,
        ):
            async with Pipeline(mock_settings) as pipeline:
                await asyncio.sleep(0)
                assert pipeline.feed.latest(1)[0].message == (
                    "Argus initialized. Monitoring live events."
                )

        start.assert_awaited_once()
        stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_tick_loop_samples_metrics(self, mock_settings):
        async with Pipeline(mock_settings, live=False) as pipeline:
            await asyncio.sleep(0.05)

        assert pipeline.stats.ticks >= 1
        assert len(pipeline.snapshot().metrics) == pipeline.stats.ticks

    @pytest.mark.asyncio
    async def test_demo_burst_triggers(self, mock_settings):
        async with Pipeline(mock_settings, live=False) as pipeline:
            injected = await pipeline.demo.run_burst()

            assert injected == 8
            assert pipeline.monitor.status == Status.TRIGGERED
            messages = [a.message for a in pipeline.feed.latest()]
            assert messages[0].startswith("[Demo] Tripwire triggered: 8 events/12s")
            assert any(m.startswith("Burst demo started.") for m in messages)
