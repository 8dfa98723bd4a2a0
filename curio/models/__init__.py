"""Recommendation scorers for Curio."""

from curio.models.base import BaseRecommender, ScoredProduct
from curio.models.content_based import PreferenceRecommender
from curio.models.collaborative import NeighborIndex, UserKNNRecommender
from curio.models.popularity import PopularityRecommender
from curio.models.hybrid import HybridCombiner

__all__ = [
    # Base
    "BaseRecommender",
    "ScoredProduct",
    # Content-Based
    "PreferenceRecommender",
    # Collaborative Filtering
    "NeighborIndex",
    "UserKNNRecommender",
    # Popularity
    "PopularityRecommender",
    # Hybrid
    "HybridCombiner",
]
