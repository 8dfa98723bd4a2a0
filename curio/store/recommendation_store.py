"""Persistence of generated recommendations with expiry."""

import threading
from collections.abc import Iterable
from datetime import datetime, timedelta
from itertools import groupby
from typing import Callable, Optional

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from curio.data.schemas import (
    ExpirationStats,
    Recommendation,
    RecommendationBatch,
    RecommendationStats,
    utcnow,
)
from curio.errors import ValidationError

EXPIRING_SOON_WINDOW = timedelta(hours=1)


class RecommendationStore:
    """
    Thread-safe recommendation store, one batch per user.

    Writes replace a user's whole batch at once: readers see either the
    previous batch or the new one, never a mix. A batch with no rows is
    still recorded so its expiry schedules the next refresh.
    """

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._lock = threading.RLock()
        self._batches: dict[str, RecommendationBatch] = {}

    def __len__(self) -> int:
        """Number of stored rows across all users."""
        with self._lock:
            return sum(len(b.recommendations) for b in self._batches.values())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_user_batch(self, batch: RecommendationBatch) -> int:
        """Replace a single user's recommendations. Returns rows written."""
        with self._lock:
            previous = self._batches.get(batch.user_id)
            self._batches[batch.user_id] = batch

        superseded = previous.run_id if previous is not None else None
        logger.debug(
            f"Stored {len(batch.recommendations)} recommendations for user "
            f"{batch.user_id} (run {batch.run_id}, superseded {superseded})"
        )
        return len(batch.recommendations)

    def upsert_batch(self, recommendations: Iterable[Recommendation]) -> int:
        """
        Replace recommendations per user, all-or-nothing.

        Rows are grouped by user; each group must come from a single run.
        Every group is validated before anything is written, so an invalid
        group leaves the store untouched.

        Returns:
            Number of rows written
        """
        rows = sorted(recommendations, key=lambda r: r.user_id)
        batches = []
        for user_id, group in groupby(rows, key=lambda r: r.user_id):
            group = list(group)
            first = group[0]
            try:
                batches.append(
                    RecommendationBatch(
                        user_id=user_id,
                        run_id=first.run_id,
                        created_at=first.created_at,
                        expires_at=first.expires_at,
                        recommendations=tuple(group),
                    )
                )
            except PydanticValidationError as exc:
                raise ValidationError.from_pydantic(exc, f"batch for user '{user_id}'") from exc

        with self._lock:
            for batch in batches:
                self._batches[batch.user_id] = batch

        written = sum(len(b.recommendations) for b in batches)
        logger.debug(f"Upserted {written} recommendations for {len(batches)} users")
        return written

    def delete_user(self, user_id: str) -> bool:
        with self._lock:
            return self._batches.pop(user_id, None) is not None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_batch(self, user_id: str) -> Optional[RecommendationBatch]:
        with self._lock:
            return self._batches.get(user_id)

    def get_recommendations(
        self,
        user_id: str,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[Recommendation]:
        """Current (non-expired) rows for a user, best first."""
        now = now or self._clock()
        batch = self.get_batch(user_id)
        if batch is None:
            return []

        current = [r for r in batch.recommendations if not r.is_expired(now)]
        current.sort(key=lambda r: (-r.score, r.product_id))
        return current[:limit] if limit is not None else current

    def get_score(
        self,
        user_id: str,
        product_id: str,
        now: Optional[datetime] = None,
    ) -> Optional[float]:
        """Current score for the pair, or None when absent or expired."""
        now = now or self._clock()
        batch = self.get_batch(user_id)
        if batch is None:
            return None

        for rec in batch.recommendations:
            if rec.product_id == product_id:
                return None if rec.is_expired(now) else rec.score
        return None

    def has_current(self, user_id: str, now: Optional[datetime] = None) -> bool:
        """True when the user has at least one non-expired recommendation."""
        return bool(self.get_recommendations(user_id, now=now))

    def needs_refresh(self, user_id: str, now: Optional[datetime] = None) -> bool:
        """True when the user's batch has expired or holds an expired row."""
        now = now or self._clock()
        batch = self.get_batch(user_id)
        if batch is None:
            return False
        return batch.is_expired(now) or any(r.is_expired(now) for r in batch.recommendations)

    def find_expired(
        self,
        now: Optional[datetime] = None,
        batch_size: int = 100,
        after: Optional[str] = None,
    ) -> list[str]:
        """
        Users whose recommendations need a refresh, in user id order.

        Args:
            now: Reference time
            batch_size: Page size
            after: Return only user ids sorted after this one (pagination cursor)
        """
        if batch_size < 1:
            raise ValidationError("batch_size must be at least 1", details={"batch_size": batch_size})

        now = now or self._clock()
        with self._lock:
            user_ids = sorted(self._batches)

        expired = []
        for user_id in user_ids:
            if after is not None and user_id <= after:
                continue
            if self.needs_refresh(user_id, now):
                expired.append(user_id)
                if len(expired) >= batch_size:
                    break
        return expired

    def stats(self, user_id: str, now: Optional[datetime] = None) -> RecommendationStats:
        """Summary of a user's recommendations."""
        now = now or self._clock()
        stats = RecommendationStats(user_id=user_id)
        batch = self.get_batch(user_id)
        if batch is None:
            return stats

        expiration = ExpirationStats()
        for rec in batch.recommendations:
            if rec.is_expired(now):
                expiration.expired += 1
            elif rec.expires_at <= now + EXPIRING_SOON_WINDOW:
                expiration.expiring_soon += 1
            else:
                expiration.active += 1
        stats.expiration_stats = expiration

        current = [r for r in batch.recommendations if not r.is_expired(now)]
        if not current:
            return stats

        stats.total = len(current)
        stats.average_score = sum(r.score for r in current) / len(current)
        for rec in current:
            stats.algorithm_distribution[rec.algorithm.value] += 1
            stats.confidence_distribution[rec.confidence.value] += 1
        return stats
