"""Recommendation persistence."""

from curio.store.recommendation_store import RecommendationStore

__all__ = ["RecommendationStore"]
