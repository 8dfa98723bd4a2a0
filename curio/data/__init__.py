"""Data handling and schemas for Curio."""

from curio.data.schemas import (
    Interaction,
    InteractionType,
    PriceRange,
    Product,
    Recommendation,
    RecommendationAlgorithm,
    UserPreferences,
)
from curio.data.catalog import InMemoryProductCatalog, ProductCatalog
from curio.data.interaction_log import InteractionLog
from curio.data.preferences import InMemoryPreferenceStore, UserPreferenceLookup
from curio.data.loader import SeedLoader

__all__ = [
    "Interaction",
    "InteractionType",
    "PriceRange",
    "Product",
    "Recommendation",
    "RecommendationAlgorithm",
    "UserPreferences",
    "InMemoryProductCatalog",
    "ProductCatalog",
    "InteractionLog",
    "InMemoryPreferenceStore",
    "UserPreferenceLookup",
    "SeedLoader",
]
