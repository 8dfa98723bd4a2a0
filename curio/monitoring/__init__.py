"""Generation monitoring module."""

from curio.monitoring.monitor import (
    Alert,
    AlertLevel,
    GenerationEvent,
    GenerationMonitor,
    RunOutcome,
)

__all__ = [
    "Alert",
    "AlertLevel",
    "GenerationEvent",
    "GenerationMonitor",
    "RunOutcome",
]
