"""Background sweep that regenerates expired recommendations."""

import threading
from typing import Optional

from loguru import logger

from curio.service.orchestrator import RecommendationOrchestrator


class RefreshScheduler:
    """
    Periodically calls :meth:`RecommendationOrchestrator.refresh_expired_recommendations`.

    The sweep runs in a daemon thread. ``start`` and ``stop`` are safe to
    call more than once.
    """

    def __init__(
        self,
        orchestrator: RecommendationOrchestrator,
        interval_seconds: float = 300.0,
        batch_size: Optional[int] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.orchestrator = orchestrator
        self.interval_seconds = interval_seconds
        self.batch_size = batch_size
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.sweeps = 0

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def run_once(self) -> int:
        """Run one sweep in the calling thread. Returns users regenerated."""
        regenerated = self.orchestrator.refresh_expired_recommendations(self.batch_size)
        self.sweeps += 1
        return regenerated

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            name="recommendation-refresh",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Refresh scheduler started (interval={self.interval_seconds}s)")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        if self._thread is None:
            return
        self._stop_event.set()
        self._thread.join(timeout)
        self._thread = None
        logger.info("Refresh scheduler stopped")

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.run_once()
            except Exception:
                # Keep the loop alive; the next sweep retries
                logger.exception("Refresh sweep failed")
