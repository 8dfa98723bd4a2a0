"""Content-based scoring against declared preferences."""

from collections.abc import Sequence
from typing import Optional

import numpy as np
from loguru import logger

from curio.data.schemas import PriceRange, Product, RecommendationAlgorithm, UserPreferences
from curio.models.base import BaseRecommender, ScoredProduct

DEFAULT_WEIGHTS = {
    "category": 0.35,
    "brand": 0.25,
    "price": 0.25,
    "style": 0.15,
}


class PreferenceRecommender(BaseRecommender):
    """
    Scores candidate products by how well they match a user's preferences.

    Each product gets four factors in [0, 1]:

    - category: 1 if the category is a preferred one
    - brand: 1 if the brand is a preferred one
    - price: 1 inside the preferred range, decaying linearly to 0 at
      twice the range width beyond either bound
    - style: 1 if the product style is a preferred one

    The final score is the weighted sum of the factors. Weights must sum to 1,
    so scores already lie in [0, 1].
    """

    algorithm = RecommendationAlgorithm.CONTENT_BASED

    def __init__(
        self,
        name: str = "content_based",
        weights: Optional[dict[str, float]] = None,
    ) -> None:
        """
        Initialize the preference recommender.

        Args:
            name: Model name
            weights: Factor weights keyed by category/brand/price/style
        """
        super().__init__(name=name)
        weights = {**DEFAULT_WEIGHTS, **(weights or {})}
        unknown = set(weights) - set(DEFAULT_WEIGHTS)
        if unknown:
            raise ValueError(f"Unknown content factors: {sorted(unknown)}")
        if any(w < 0 for w in weights.values()):
            raise ValueError("Content weights must be non-negative")
        total = sum(weights.values())
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"Content weights must sum to 1.0, got {total:.4f}")

        self.weights = weights
        self._weight_vector = np.array(
            [weights["category"], weights["brand"], weights["price"], weights["style"]]
        )

    @staticmethod
    def price_fit(prices: np.ndarray, price_range: PriceRange) -> np.ndarray:
        """
        Price factor for each price.

        A degenerate range (zero width) expresses no price preference and
        yields 0 for every product.
        """
        if price_range.is_degenerate:
            return np.zeros_like(prices, dtype=float)

        width = price_range.width
        below = np.clip(price_range.min - prices, 0.0, None)
        above = np.clip(prices - price_range.max, 0.0, None)
        distance = below + above
        return np.clip(1.0 - distance / (2.0 * width), 0.0, 1.0)

    def score_by_preferences(
        self,
        preferences: UserPreferences,
        candidates: Sequence[Product],
    ) -> list[ScoredProduct]:
        """
        Score candidates against preferences.

        Args:
            preferences: The user's declared preferences
            candidates: Available products the user has not interacted with

        Returns:
            (product_id, score, reason) for every product scoring above 0,
            ranked by score descending then product id. Empty preferences
            return an empty list (cold start).
        """
        if preferences.is_empty() or not candidates:
            return []

        categories = {c.casefold() for c in preferences.categories}
        brands = {b.casefold() for b in preferences.brands}
        styles = {s.casefold() for s in preferences.style_preferences}

        category_match = np.array(
            [p.category.casefold() in categories for p in candidates], dtype=float
        )
        brand_match = np.array([p.brand.casefold() in brands for p in candidates], dtype=float)
        style_match = np.array(
            [p.style is not None and p.style.casefold() in styles for p in candidates],
            dtype=float,
        )
        prices = np.array([p.price for p in candidates], dtype=float)
        price_match = self.price_fit(prices, preferences.price_range)

        factors = np.column_stack([category_match, brand_match, price_match, style_match])
        scores = factors @ self._weight_vector

        results = []
        for idx, product in enumerate(candidates):
            score = self.clip(scores[idx])
            if score <= 0:
                continue
            reason = self._reason(product, factors[idx])
            results.append(ScoredProduct(product.product_id, score, reason))

        logger.debug(
            f"Content scoring for user {preferences.user_id}: "
            f"{len(results)}/{len(candidates)} candidates matched"
        )
        return self.rank(results)

    @staticmethod
    def _reason(product: Product, factors: np.ndarray) -> str:
        category, brand, price, style = factors
        parts = []
        if category > 0:
            parts.append(f"category {product.category}")
        if brand > 0:
            parts.append(f"brand {product.brand}")
        if price >= 1.0:
            parts.append("price within your range")
        elif price > 0:
            parts.append("price close to your range")
        if style > 0:
            parts.append(f"style {product.style}")
        return "Matches your preferences: " + ", ".join(parts)
