"""Popularity-based fallback signal."""

from collections.abc import Iterable, Mapping
from typing import Optional

import numpy as np

from curio.data.schemas import RecommendationAlgorithm
from curio.models.base import BaseRecommender, ScoredProduct


class PopularityRecommender(BaseRecommender):
    """
    Popularity-based recommender.

    Scores products by their global interaction count over a recent window,
    normalized by the most popular candidate. Used for cold-start users.
    """

    algorithm = RecommendationAlgorithm.POPULARITY

    def __init__(self, name: str = "popularity") -> None:
        super().__init__(name=name)

    def score_by_popularity(
        self,
        counts: Mapping[str, int],
        candidate_ids: Optional[Iterable[str]] = None,
    ) -> list[ScoredProduct]:
        """
        Normalize interaction counts to [0, 1].

        Args:
            counts: product_id -> interaction count in the recent window
            candidate_ids: Restrict output to these products

        Returns:
            (product_id, score, reason) ranked by score descending then product id
        """
        allowed = None if candidate_ids is None else set(candidate_ids)
        product_ids = sorted(
            pid
            for pid, count in counts.items()
            if count > 0 and (allowed is None or pid in allowed)
        )
        if not product_ids:
            return []

        raw = np.array([counts[pid] for pid in product_ids], dtype=float)
        scores = raw / raw.max()

        return self.rank(
            ScoredProduct(
                pid,
                self.clip(score),
                f"Popular with other shoppers ({int(count)} recent interactions)",
            )
            for pid, score, count in zip(product_ids, scores, raw)
        )
