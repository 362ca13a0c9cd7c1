"""Data models for the alerter module."""

from __future__ import annotations

from dataclasses import dataclass, field

from argus_tripwire.detector.models import Alert


@dataclass(frozen=True)
class FormattedAlert:
    """An alert rendered for every supported channel format."""

    alert: Alert
    title: str
    body: str
    plain_text: str
    telegram_markdown: str
    discord_embed: dict[str, object]
    links: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ChannelResult:
    """Delivery outcome for one channel."""

    channel: str
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class DispatchResult:
    """Aggregate delivery outcome for one alert."""

    results: tuple[ChannelResult, ...] = ()

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def all_succeeded(self) -> bool:
        return self.failure_count == 0
