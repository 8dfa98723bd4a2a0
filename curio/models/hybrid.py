"""Hybrid combination of content, collaborative and popularity signals."""

from collections.abc import Sequence
from datetime import datetime, timedelta
from typing import Optional
from uuid import uuid4

from loguru import logger

from curio.data.schemas import Confidence, Recommendation, RecommendationAlgorithm, utcnow
from curio.errors import ValidationError
from curio.models.base import BaseRecommender, ScoredProduct


class HybridCombiner(BaseRecommender):
    """
    Merges per-product signals into persisted-ready recommendations.

    - Both content and collaborative scores present: weighted average,
      tagged ``hybrid``.
    - Only one present: that score as-is, tagged with its signal.
    - Neither signal produced anything for the user: popularity scores,
      tagged ``popularity``.
    """

    algorithm = RecommendationAlgorithm.HYBRID

    def __init__(
        self,
        name: str = "hybrid",
        content_weight: float = 0.5,
        collaborative_weight: float = 0.5,
        ttl: timedelta = timedelta(hours=24),
        high_confidence: float = 0.7,
        medium_confidence: float = 0.4,
    ) -> None:
        """
        Initialize Hybrid combiner.

        Args:
            name: Model name
            content_weight: Weight for content scores
            collaborative_weight: Weight for collaborative scores
            ttl: Lifetime of generated recommendations
            high_confidence: Minimum score for "high" confidence
            medium_confidence: Minimum score for "medium" confidence
        """
        super().__init__(name=name)
        total = content_weight + collaborative_weight
        if content_weight < 0 or collaborative_weight < 0 or total <= 0:
            raise ValueError("Hybrid weights must be non-negative and not both zero")
        if ttl <= timedelta(0):
            raise ValueError("ttl must be positive")
        if not 0 < medium_confidence < high_confidence <= 1:
            raise ValueError("Confidence thresholds must satisfy 0 < medium < high <= 1")

        # Normalize so a hybrid score stays in [0, 1]
        self.content_weight = content_weight / total
        self.collaborative_weight = collaborative_weight / total
        self.ttl = ttl
        self.high_confidence = high_confidence
        self.medium_confidence = medium_confidence

    def classify_confidence(self, score: float) -> Confidence:
        if score >= self.high_confidence:
            return Confidence.HIGH
        if score >= self.medium_confidence:
            return Confidence.MEDIUM
        return Confidence.LOW

    def merge(
        self,
        content_scores: Sequence[ScoredProduct],
        collaborative_scores: Sequence[ScoredProduct],
        popularity_scores: Sequence[ScoredProduct],
    ) -> list[tuple[ScoredProduct, RecommendationAlgorithm]]:
        """Combine the signals into ranked (candidate, algorithm) pairs."""
        if not content_scores and not collaborative_scores:
            return [
                (item, RecommendationAlgorithm.POPULARITY)
                for item in self.rank(popularity_scores)
            ]

        content = {item.product_id: item for item in content_scores}
        collaborative = {item.product_id: item for item in collaborative_scores}

        merged = []
        for product_id in content.keys() | collaborative.keys():
            by_content = content.get(product_id)
            by_neighbors = collaborative.get(product_id)

            if by_content is not None and by_neighbors is not None:
                score = (
                    self.content_weight * by_content.score
                    + self.collaborative_weight * by_neighbors.score
                )
                reason = f"{by_content.reason}; {by_neighbors.reason}"
                algorithm = RecommendationAlgorithm.HYBRID
            elif by_content is not None:
                score, reason = by_content.score, by_content.reason
                algorithm = RecommendationAlgorithm.CONTENT_BASED
            else:
                score, reason = by_neighbors.score, by_neighbors.reason
                algorithm = RecommendationAlgorithm.COLLABORATIVE

            merged.append((ScoredProduct(product_id, self.clip(score), reason), algorithm))

        return sorted(merged, key=lambda pair: (-pair[0].score, pair[0].product_id))

    def combine(
        self,
        user_id: str,
        content_scores: Sequence[ScoredProduct],
        collaborative_scores: Sequence[ScoredProduct],
        popularity_scores: Sequence[ScoredProduct],
        limit: int,
        now: Optional[datetime] = None,
        run_id: Optional[str] = None,
    ) -> list[Recommendation]:
        """
        Build the final recommendation list for one user.

        Args:
            user_id: User the recommendations are for
            content_scores: Output of the content-based scorer
            collaborative_scores: Output of the collaborative scorer
            popularity_scores: Output of the popularity scorer (cold-start fallback)
            limit: Maximum number of recommendations
            now: Creation time shared by every row
            run_id: Generation run id shared by every row

        Returns:
            Recommendations sorted by score descending, product id ascending
        """
        if limit < 1:
            raise ValidationError("limit must be at least 1", details={"limit": limit})

        now = now or utcnow()
        run_id = run_id or uuid4().hex
        expires_at = now + self.ttl

        ranked = self.merge(content_scores, collaborative_scores, popularity_scores)[:limit]
        recommendations = [
            Recommendation(
                user_id=user_id,
                product_id=item.product_id,
                score=item.score,
                algorithm=algorithm,
                confidence=self.classify_confidence(item.score),
                reason=item.reason,
                created_at=now,
                expires_at=expires_at,
                run_id=run_id,
            )
            for item, algorithm in ranked
        ]

        logger.debug(
            f"Combined {len(content_scores)} content / {len(collaborative_scores)} "
            f"collaborative / {len(popularity_scores)} popularity signals into "
            f"{len(recommendations)} recommendations for user {user_id}"
        )
        return recommendations
