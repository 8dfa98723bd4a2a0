"""Base class for recommendation scorers."""

from collections.abc import Iterable
from typing import NamedTuple

from curio.data.schemas import RecommendationAlgorithm


class ScoredProduct(NamedTuple):
    """One scored candidate produced by a recommender."""

    product_id: str
    score: float
    reason: str


class BaseRecommender:
    """
    Common behaviour of the scoring signals.

    Scorers are pure: they read their inputs, never mutate them, and hold no
    cross-request state beyond explicitly injected caches.
    """

    algorithm: RecommendationAlgorithm

    def __init__(self, name: str) -> None:
        self.name = name

    @staticmethod
    def rank(scored: Iterable[ScoredProduct]) -> list[ScoredProduct]:
        """Sort by score descending, product id ascending on ties."""
        return sorted(scored, key=lambda item: (-item.score, item.product_id))

    @staticmethod
    def clip(score: float) -> float:
        """Clamp to [0, 1], absorbing float rounding at the edges."""
        return min(1.0, max(0.0, float(score)))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"
