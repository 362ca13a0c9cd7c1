"""JSON-RPC WebSocket client for contract log subscriptions.

Subscribes to ``eth_subscribe("logs")`` for the monitored contract and turns
each notification into an Event. Connection drops are retried with
exponential backoff; the burst monitor only ever sees the parsed events.
"""

from __future__ import annotations

import asyncio
import contextlib
import itertools
import json
import logging
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import websockets
from websockets.asyncio.client import ClientConnection

from argus_tripwire.detector.models import Alert, AlertLevel
from argus_tripwire.ingestor.models import Event, EventOrigin, StreamStats, shorten_address

logger = logging.getLogger(__name__)

DEFAULT_PING_INTERVAL = 30  # seconds
DEFAULT_MAX_RECONNECT_DELAY = 15  # seconds
DEFAULT_INITIAL_RECONNECT_DELAY = 1  # seconds

ALERT_CHANNEL = "Reactivity"


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class LogStreamError(Exception):
    """Base exception for log stream errors."""


class StreamConnectionError(LogStreamError):
    """Raised when connection or subscription fails."""


EventCallback = Callable[[Event], Awaitable[None]]
StateCallback = Callable[[ConnectionState], Awaitable[None]]
AlertCallback = Callable[[Alert], None]


def reconnect_delay(attempt: int, *, initial: float, maximum: float) -> float:
    """Backoff delay for the given 1-based reconnect attempt."""
    return min(maximum, initial * (2 ** max(0, attempt - 1)))


class LogStreamHandler:
    """WebSocket client for contract log notifications."""

    def __init__(
        self,
        *,
        host: str,
        address: str,
        topic_filter: str | None = None,
        on_event: EventCallback | None = None,
        on_state_change: StateCallback | None = None,
        on_alert: AlertCallback | None = None,
        ping_interval: int = DEFAULT_PING_INTERVAL,
        max_reconnect_delay: float = DEFAULT_MAX_RECONNECT_DELAY,
        initial_reconnect_delay: float = DEFAULT_INITIAL_RECONNECT_DELAY,
    ) -> None:
        self._host = host
        self._address = address
        self._topic_filter = topic_filter
        self._on_event = on_event
        self._on_state_change = on_state_change
        self._on_alert = on_alert
        self._ping_interval = ping_interval
        self._max_reconnect_delay = max_reconnect_delay
        self._initial_reconnect_delay = initial_reconnect_delay

        self._state = ConnectionState.DISCONNECTED
        self._stats = StreamStats()
        self._request_ids = itertools.count(1)
        self._subscription_id: str | None = None

        self._ws: ClientConnection | None = None
        self._running = False
        self._stop_event: asyncio.Event | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def stats(self) -> StreamStats:
        return self._stats

    def subscription_request(self) -> dict[str, Any]:
        """Build the eth_subscribe request for the monitored contract."""
        params: dict[str, Any] = {"address": self._address}
        if self._topic_filter:
            params["topics"] = [self._topic_filter]
        return {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": "eth_subscribe",
            "params": ["logs", params],
        }

    async def _set_state(self, new_state: ConnectionState) -> None:
        if self._state != new_state:
            old = self._state
            self._state = new_state
            logger.info("Log stream state: %s -> %s", old.value, new_state.value)
            if self._on_state_change:
                try:
                    await self._on_state_change(new_state)
                except Exception as e:  # pragma: no cover
                    logger.error("Error in state change callback: %s", e)

    def _emit_alert(self, level: AlertLevel, message: str) -> None:
        if not self._on_alert:
            return
        try:
            self._on_alert(Alert(level=level, message=message, channel=ALERT_CHANNEL))
        except Exception as e:  # pragma: no cover
            logger.error("Error in alert callback: %s", e)

    async def _connect(self) -> ClientConnection:
        await self._set_state(ConnectionState.CONNECTING)
        try:
            ws = await websockets.connect(
                self._host,
                ping_interval=self._ping_interval,
                ping_timeout=self._ping_interval * 2,
            )
        except Exception as e:
            self._stats.last_error = str(e)
            raise StreamConnectionError(f"Failed to connect to {self._host}: {e}") from e

        try:
            subscription_id = await self._subscribe(ws)
        except (TimeoutError, ValueError) as e:
            await ws.close()
            raise StreamConnectionError(f"Subscription handshake failed: {e!r}") from e
        except BaseException:
            await ws.close()
            raise

        self._subscription_id = subscription_id
        await self._set_state(ConnectionState.CONNECTED)
        self._stats.connected_since = time.time()
        logger.info("Subscribed to logs for %s (subscription %s)", self._address, self._subscription_id)
        self._emit_alert(AlertLevel.INFO, f"Subscription live for {shorten_address(self._address)}.")
        return ws

    async def _subscribe(self, ws: ClientConnection) -> str:
        """Send eth_subscribe and return the subscription id from the reply."""
        await ws.send(json.dumps(self.subscription_request()))
        reply = json.loads(await asyncio.wait_for(ws.recv(), timeout=10.0))
        if not isinstance(reply, dict) or "error" in reply or "result" not in reply:
            error = reply.get("error") if isinstance(reply, dict) else None
            message = error.get("message") if isinstance(error, dict) else error
            raise StreamConnectionError(f"Subscription rejected: {message or reply}")
        return str(reply["result"])

    async def handle_message(self, message: str) -> Event | None:
        """Parse one notification and forward the resulting event.

        Returns:
            The parsed Event, or None for messages that are not log
            notifications for the active subscription.
        """
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            self._stats.parse_errors += 1
            logger.warning("Invalid JSON message on log stream")
            return None

        if not isinstance(data, dict):
            self._stats.parse_errors += 1
            logger.warning("Unexpected %s message on log stream", type(data).__name__)
            return None

        if data.get("method") != "eth_subscription":
            logger.debug("Ignoring non-notification message: %s", data.get("id"))
            return None

        params = data.get("params") or {}
        if not isinstance(params, dict):
            self._stats.parse_errors += 1
            logger.warning("Log notification with malformed params")
            return None

        if self._subscription_id and params.get("subscription") != self._subscription_id:
            logger.debug("Ignoring notification for subscription %s", params.get("subscription"))
            return None

        result = params.get("result")
        if not isinstance(result, dict):
            self._stats.parse_errors += 1
            logger.warning("Log notification without result payload")
            return None

        event = Event.from_log_message(result, fallback_address=self._address, origin=EventOrigin.LIVE)
        self._stats.events_received += 1
        self._stats.last_message_time = time.time()
        if self._on_event:
            await self._on_event(event)
        return event

    async def _listen(self, ws: ClientConnection) -> None:
        try:
            while self._running:
                try:
                    message = await asyncio.wait_for(ws.recv(), timeout=1.0)
                except TimeoutError:
                    continue

                if isinstance(message, str):
                    await self.handle_message(message)
                else:
                    logger.debug("Ignoring non-text log stream message")
        except websockets.ConnectionClosed as e:
            logger.warning("Log stream connection closed: %s", e)
            raise

    async def start(self) -> None:
        """Connect and stream until stop() is called."""
        if self._running:
            raise RuntimeError("Log stream already running")
        self._running = True
        self._stop_event = asyncio.Event()

        attempt = 0
        while self._running and not self._stop_event.is_set():
            try:
                self._ws = await self._connect()
                attempt = 0
                await self._listen(self._ws)
            except Exception as e:
                if not self._running:
                    break
                attempt += 1
                delay = reconnect_delay(
                    attempt,
                    initial=self._initial_reconnect_delay,
                    maximum=self._max_reconnect_delay,
                )
                self._stats.reconnect_count += 1
                self._stats.last_error = str(e)
                await self._set_state(ConnectionState.RECONNECTING)
                self._emit_alert(
                    AlertLevel.WARNING,
                    f"Stream interrupted: {e}. Reconnecting in {round(delay)}s.",
                )
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            finally:
                with contextlib.suppress(Exception):
                    if self._ws:
                        await self._ws.close()
                self._ws = None
                self._subscription_id = None

        await self._set_state(ConnectionState.DISCONNECTED)

    async def stop(self) -> None:
        self._running = False
        if self._stop_event:
            self._stop_event.set()
        if self._ws:
            with contextlib.suppress(Exception):
                await self._ws.close()
