"""Alerting layer - formatting and fan-out of monitor alerts."""

from argus_tripwire.alerter.dispatcher import (
    AlertChannel,
    AlertDispatcher,
    AlertFeed,
    LoggingChannel,
)
from argus_tripwire.alerter.formatter import AlertFormatter, format_incident_report
from argus_tripwire.alerter.models import ChannelResult, DispatchResult, FormattedAlert

__all__ = [
    "AlertChannel",
    "AlertDispatcher",
    "AlertFeed",
    "AlertFormatter",
    "ChannelResult",
    "DispatchResult",
    "FormattedAlert",
    "LoggingChannel",
    "format_incident_report",
]
