"""Data models for the ingestor module."""

import contextlib
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

_TOPIC_RE = re.compile(r"^0x[a-f0-9]{64}$")

# keccak256("Transfer(address,address,uint256)")
TRANSFER_TOPIC = "0xddf252ad1be2c89b69c2b068fc378daa952ba7f163c4a11628f55a4df523b3ef"


class EventOrigin(str, Enum):
    """Where an event came from."""

    LIVE = "live"
    SYNTHETIC = "synthetic"


def shorten_address(address: str, chars: int = 4) -> str:
    """Truncate an address to 0x1234...5678 format."""
    if len(address) < chars * 2 + 4:
        return address
    return f"{address[: chars + 2]}...{address[-chars:]}"


def address_from_topic(topic: str | None) -> str | None:
    """Extract an address from a 32-byte indexed topic.

    Indexed address arguments are left-padded to 32 bytes, so the address is
    the last 20 bytes of the topic.
    """
    if not topic:
        return None
    clean = topic.lower()
    if not _TOPIC_RE.match(clean):
        return None
    return f"0x{clean[-40:]}"


@dataclass(frozen=True)
class Event:
    """A single contract event occurrence fed to the burst monitor.

    Address and topic fields are carried as-is; they are only validated at
    the configuration boundary, never here.
    """

    timestamp: datetime
    source_address: str
    topic: str
    payload_preview: str
    origin: EventOrigin = EventOrigin.LIVE
    block_number: int | None = None
    transaction_hash: str = ""

    @classmethod
    def from_log_message(
        cls,
        data: dict[str, Any],
        *,
        fallback_address: str,
        origin: EventOrigin = EventOrigin.LIVE,
        received_at: datetime | None = None,
    ) -> "Event":
        """Create an Event from an ``eth_subscription`` log result.

        Args:
            data: The ``params.result`` payload of a ``logs`` subscription.
            fallback_address: Address used when no indexed address topic exists.
            origin: Event origin tag.
            received_at: Detection time; defaults to now (UTC).

        Returns:
            Event instance.
        """
        topics = [str(t) for t in (data.get("topics") or [])]
        topic0 = topics[0] if topics else "0x"
        source = (
            address_from_topic(topics[1] if len(topics) > 1 else None)
            or address_from_topic(topics[2] if len(topics) > 2 else None)
            or fallback_address
        )

        block_number = None
        raw_block = data.get("blockNumber")
        if isinstance(raw_block, str):
            with contextlib.suppress(ValueError):
                block_number = int(raw_block, 16)
        elif isinstance(raw_block, int):
            block_number = raw_block

        return cls(
            timestamp=received_at or datetime.now(UTC),
            source_address=source,
            topic=topic0,
            payload_preview=str(data.get("data") or "0x"),
            origin=origin,
            block_number=block_number,
            transaction_hash=str(data.get("transactionHash") or ""),
        )

    @property
    def is_synthetic(self) -> bool:
        """Return True if this event was produced by the demo generator."""
        return self.origin == EventOrigin.SYNTHETIC

    def to_dict(self) -> dict[str, object]:
        """Serialize to a plain dictionary."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "source_address": self.source_address,
            "topic": self.topic,
            "payload_preview": self.payload_preview,
            "origin": self.origin.value,
            "block_number": self.block_number,
            "transaction_hash": self.transaction_hash,
        }


@dataclass
class StreamStats:
    """Counters for the live log stream."""

    events_received: int = 0
    parse_errors: int = 0
    reconnect_count: int = 0
    last_message_time: float | None = None
    connected_since: float | None = None
    last_error: str | None = None
