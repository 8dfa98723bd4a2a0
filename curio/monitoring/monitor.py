"""Monitoring of recommendation generation runs."""

import json
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

import numpy as np
from loguru import logger

from curio.data.schemas import RecommendationAlgorithm, utcnow


class AlertLevel(Enum):
    """Alert severity levels."""
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class RunOutcome(Enum):
    """How a generation run ended."""
    COMMITTED = "committed"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass
class Alert:
    """Represents a monitoring alert."""
    level: AlertLevel
    metric: str
    message: str
    value: float
    threshold: float
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "level": self.level.value,
            "metric": self.metric,
            "message": self.message,
            "value": self.value,
            "threshold": self.threshold,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class GenerationEvent:
    """One finished generation run."""
    user_id: str
    outcome: RunOutcome
    duration_seconds: float
    algorithm_counts: dict[str, int] = field(default_factory=dict)
    error: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)

    @property
    def is_cold_start(self) -> bool:
        """Committed with popularity rows only."""
        popularity = self.algorithm_counts.get(RecommendationAlgorithm.POPULARITY.value, 0)
        return popularity > 0 and popularity == sum(self.algorithm_counts.values())

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "user_id": self.user_id,
            "outcome": self.outcome.value,
            "duration_seconds": self.duration_seconds,
            "algorithm_counts": self.algorithm_counts,
            "error": self.error,
            "timestamp": self.timestamp.isoformat(),
        }


class GenerationMonitor:
    """
    Tracks generation runs in a rolling window and raises alerts.

    Example:
        monitor = GenerationMonitor(failure_rate_threshold=0.2)
        orchestrator = RecommendationOrchestrator(..., monitor=monitor)

        for alert in monitor.check_alerts():
            print(f"{alert.level}: {alert.message}")
    """

    def __init__(
        self,
        max_size: int = 10000,
        failure_rate_threshold: float = 0.2,
        cold_start_rate_threshold: float = 0.5,
        min_runs: int = 10,
        alert_callbacks: Optional[list[Callable[[Alert], None]]] = None,
    ) -> None:
        """
        Initialize the monitor.

        Args:
            max_size: Maximum number of runs kept in memory
            failure_rate_threshold: Failure rate above which a critical alert fires
            cold_start_rate_threshold: Popularity-only share above which a warning fires
            min_runs: Runs required before rates are evaluated
            alert_callbacks: Functions to call when alerts are generated
        """
        self.failure_rate_threshold = failure_rate_threshold
        self.cold_start_rate_threshold = cold_start_rate_threshold
        self.min_runs = min_runs
        self.alert_callbacks = alert_callbacks or []
        self._events: deque = deque(maxlen=max_size)
        self._lock = threading.Lock()

    def record(self, event: GenerationEvent) -> None:
        """Log a finished run."""
        with self._lock:
            self._events.append(event)

    def get_events(
        self,
        since: Optional[datetime] = None,
        outcome: Optional[RunOutcome] = None,
    ) -> list[GenerationEvent]:
        """Runs recorded at or after ``since``, optionally filtered by outcome."""
        with self._lock:
            events = list(self._events)
        return [
            e for e in events
            if (since is None or e.timestamp >= since)
            and (outcome is None or e.outcome == outcome)
        ]

    def summary(self, since: Optional[datetime] = None) -> dict:
        """
        Aggregate run statistics.

        Returns:
            Dict with run counts, failure_rate, cold_start_rate and mean/p95 duration
        """
        events = self.get_events(since)
        committed = [e for e in events if e.outcome == RunOutcome.COMMITTED]
        failed = [e for e in events if e.outcome != RunOutcome.COMMITTED]
        durations = np.array([e.duration_seconds for e in events]) if events else np.array([])

        return {
            "runs": len(events),
            "committed": len(committed),
            "failed": sum(1 for e in failed if e.outcome == RunOutcome.FAILED),
            "timeouts": sum(1 for e in failed if e.outcome == RunOutcome.TIMEOUT),
            "failure_rate": len(failed) / len(events) if events else 0.0,
            "cold_start_rate": (
                sum(1 for e in committed if e.is_cold_start) / len(committed)
                if committed else 0.0
            ),
            "mean_duration_seconds": float(durations.mean()) if durations.size else 0.0,
            "p95_duration_seconds": (
                float(np.percentile(durations, 95)) if durations.size else 0.0
            ),
        }

    def check_alerts(self, since: Optional[datetime] = None) -> list[Alert]:
        """Evaluate thresholds and notify callbacks for each alert."""
        summary = self.summary(since)
        alerts: list[Alert] = []

        if summary["runs"] < self.min_runs:
            return alerts

        if summary["failure_rate"] > self.failure_rate_threshold:
            alerts.append(Alert(
                level=AlertLevel.CRITICAL,
                metric="failure_rate",
                message=(
                    f"{summary['failure_rate']:.1%} of generation runs failed "
                    f"(threshold {self.failure_rate_threshold:.1%})"
                ),
                value=summary["failure_rate"],
                threshold=self.failure_rate_threshold,
            ))

        if summary["cold_start_rate"] > self.cold_start_rate_threshold:
            alerts.append(Alert(
                level=AlertLevel.WARNING,
                metric="cold_start_rate",
                message=(
                    f"{summary['cold_start_rate']:.1%} of committed runs fell back "
                    "to popularity"
                ),
                value=summary["cold_start_rate"],
                threshold=self.cold_start_rate_threshold,
            ))

        for alert in alerts:
            logger.warning(f"[{alert.level.value}] {alert.message}")
            for callback in self.alert_callbacks:
                try:
                    callback(alert)
                except Exception as e:
                    logger.error(f"Alert callback failed: {e}")

        return alerts

    def save(self, path: str) -> None:
        """Write the recorded runs to a JSON file."""
        output = Path(path)
        output.parent.mkdir(parents=True, exist_ok=True)
        events = self.get_events()
        with open(output, "w") as f:
            json.dump([e.to_dict() for e in events], f, indent=2)
        logger.info(f"Saved {len(events)} generation events to {output}")
