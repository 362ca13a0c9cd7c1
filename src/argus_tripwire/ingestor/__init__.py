"""Event ingestion layer - live log subscriptions and synthetic bursts."""

from argus_tripwire.ingestor.models import (
    TRANSFER_TOPIC,
    Event,
    EventOrigin,
    StreamStats,
    address_from_topic,
    shorten_address,
)

__all__ = [
    "TRANSFER_TOPIC",
    "Event",
    "EventOrigin",
    "StreamStats",
    "address_from_topic",
    "shorten_address",
]
