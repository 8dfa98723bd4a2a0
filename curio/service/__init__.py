"""Recommendation generation and refresh services."""

from curio.service.orchestrator import RecommendationOrchestrator, UserState
from curio.service.scheduler import RefreshScheduler

__all__ = ["RecommendationOrchestrator", "UserState", "RefreshScheduler"]
