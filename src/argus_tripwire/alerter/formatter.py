"""Alert message formatter for multi-channel delivery.

This module turns monitor Alerts and IncidentRecords into human-readable
messages for Discord, Telegram and plain-text channels.
"""

from __future__ import annotations

from argus_tripwire.alerter.models import FormattedAlert
from argus_tripwire.detector.models import Alert, AlertLevel, IncidentRecord
from argus_tripwire.ingestor.models import shorten_address

EXPLORER_ADDRESS_URL = "https://shannon-explorer.somnia.network/address/{address}"

# Discord embed colors (decimal values)
COLOR_CRITICAL = 15158332  # Red (#E74C3C)
COLOR_WARNING = 15105570  # Orange (#E67E22)
COLOR_SUCCESS = 3066993  # Green (#2ECC71)
COLOR_INFO = 3447003  # Blue (#3498DB)

LEVEL_COLORS = {
    AlertLevel.CRITICAL: COLOR_CRITICAL,
    AlertLevel.WARNING: COLOR_WARNING,
    AlertLevel.SUCCESS: COLOR_SUCCESS,
    AlertLevel.INFO: COLOR_INFO,
}

LEVEL_ICONS = {
    AlertLevel.CRITICAL: "🚨",
    AlertLevel.WARNING: "⚠️",
    AlertLevel.SUCCESS: "✅",
    AlertLevel.INFO: "ℹ️",
}

_TELEGRAM_SPECIAL_CHARS = "_*[]()~`>#+-=|{}.!"


def truncate_hex(value: str, length: int) -> str:
    """Shorten a hex string for table display."""
    if len(value) > length:
        return f"{value[:length]}..."
    return value


def escape_telegram_markdown(text: str) -> str:
    """Escape special Telegram MarkdownV2 characters."""
    for char in _TELEGRAM_SPECIAL_CHARS:
        text = text.replace(char, f"\\{char}")
    return text


def format_incident_report(incident: IncidentRecord | None) -> str:
    """Render an incident as a plain-text report."""
    if incident is None:
        return "No active incident"
    lines = [
        "INCIDENT REPORT",
        "=" * 30,
        f"Detection Time: {incident.detected_at.isoformat()}",
        f"Event Count: {incident.event_count_at_detection} events",
        f"Burst Window: {incident.window_seconds}s",
        f"Contract Address: {incident.target_address}",
        f"Filtered Topic0: {incident.topic_filter or 'any'}",
    ]
    return "\n".join(lines)


class AlertFormatter:
    """Formats monitor alerts into multi-channel messages.

    An optional incident attached to a critical alert is rendered into the
    detailed formats. LoggingChannel reads plain_text; the Telegram MarkdownV2
    and Discord embed renderings are payloads for external delivery channels
    registered on the AlertDispatcher.
    """

    def __init__(self, *, target_address: str = "") -> None:
        self.target_address = target_address

    def format(self, alert: Alert, incident: IncidentRecord | None = None) -> FormattedAlert:
        """Format an alert into every channel format.

        Args:
            alert: Alert emitted by the monitor or a collaborator.
            incident: Incident to include, typically with critical alerts.

        Returns:
            FormattedAlert with all channel formats.
        """
        icon = LEVEL_ICONS[alert.level]
        title = f"{icon} {alert.level.value.upper()} - {alert.channel}"
        links = self._build_links(incident)

        return FormattedAlert(
            alert=alert,
            title=title,
            body=alert.message,
            plain_text=self._build_plain_text(alert, incident, links),
            telegram_markdown=self._build_telegram_markdown(alert, incident, links),
            discord_embed=self._build_discord_embed(alert, incident, links),
            links=links,
        )

    def _build_links(self, incident: IncidentRecord | None) -> dict[str, str]:
        address = incident.target_address if incident else self.target_address
        if not address:
            return {}
        return {"contract": EXPLORER_ADDRESS_URL.format(address=address)}

    def _build_plain_text(
        self,
        alert: Alert,
        incident: IncidentRecord | None,
        links: dict[str, str],
    ) -> str:
        time_str = alert.timestamp.strftime("%H:%M:%S")
        lines = [f"[{time_str}] {alert.level.value.upper()} ({alert.channel}): {alert.message}"]
        if incident is not None:
            lines.append("")
            lines.append(format_incident_report(incident))
        if "contract" in links:
            lines.append(f"Contract: {links['contract']}")
        return "\n".join(lines)

    def _build_telegram_markdown(
        self,
        alert: Alert,
        incident: IncidentRecord | None,
        links: dict[str, str],
    ) -> str:
        icon = LEVEL_ICONS[alert.level]
        lines = [
            f"{icon} *{escape_telegram_markdown(alert.level.value.upper())}* \\| "
            f"{escape_telegram_markdown(alert.channel)}",
            "",
            escape_telegram_markdown(alert.message),
        ]
        if incident is not None:
            topic = incident.topic_filter or "any"
            lines.append("")
            lines.append(f"*Event Count:* {incident.event_count_at_detection}")
            lines.append(f"*Burst Window:* {incident.window_seconds}s")
            lines.append(f"*Contract:* `{shorten_address(incident.target_address)}`")
            lines.append(f"*Topic0:* `{truncate_hex(topic, 14)}`")
        if "contract" in links:
            lines.append("")
            lines.append(f"[View Contract]({links['contract']})")
        return "\n".join(lines)

    def _build_discord_embed(
        self,
        alert: Alert,
        incident: IncidentRecord | None,
        links: dict[str, str],
    ) -> dict[str, object]:
        fields: list[dict[str, object]] = [
            {"name": "Level", "value": alert.level.value.upper(), "inline": True},
            {"name": "Channel", "value": alert.channel, "inline": True},
        ]
        if incident is not None:
            fields.append(
                {
                    "name": "Burst",
                    "value": f"{incident.event_count_at_detection} events / {incident.window_seconds}s",
                    "inline": True,
                }
            )
            fields.append(
                {
                    "name": "Contract",
                    "value": f"`{shorten_address(incident.target_address)}`",
                    "inline": False,
                }
            )
            fields.append(
                {
                    "name": "Topic0",
                    "value": f"`{truncate_hex(incident.topic_filter or 'any', 14)}`",
                    "inline": False,
                }
            )

        embed: dict[str, object] = {
            "title": f"{LEVEL_ICONS[alert.level]} {alert.message}",
            "color": LEVEL_COLORS[alert.level],
            "fields": fields,
            "timestamp": alert.timestamp.isoformat(),
            "footer": {"text": "Argus Tripwire"},
        }
        if "contract" in links:
            embed["url"] = links["contract"]
        return embed
