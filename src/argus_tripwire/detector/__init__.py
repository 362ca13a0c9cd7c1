"""Detection layer - sliding-window burst tripwire."""

from argus_tripwire.detector.burst import (
    BurstMonitorError,
    BurstWindowMonitor,
    MonitorDisabledError,
)
from argus_tripwire.detector.models import (
    Alert,
    AlertLevel,
    BurstLevel,
    IncidentRecord,
    MonitoringConfig,
    MonitorSnapshot,
    ObservationResult,
    Status,
    TickResult,
)
from argus_tripwire.detector.validation import ConfigValidationError

__all__ = [
    "Alert",
    "AlertLevel",
    "BurstLevel",
    "BurstMonitorError",
    "BurstWindowMonitor",
    "ConfigValidationError",
    "IncidentRecord",
    "MonitorDisabledError",
    "MonitorSnapshot",
    "MonitoringConfig",
    "ObservationResult",
    "Status",
    "TickResult",
]
