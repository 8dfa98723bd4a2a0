"""Public entry point of the recommendation core."""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import contextmanager
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Iterator, Optional
from uuid import uuid4

from loguru import logger

from curio.config import Settings
from curio.data.catalog import ProductCatalog
from curio.data.interaction_log import InteractionLog
from curio.data.preferences import UserPreferenceLookup
from curio.data.schemas import (
    InteractionType,
    Recommendation,
    RecommendationBatch,
    RecommendationStats,
    utcnow,
)
from curio.errors import CurioError, GenerationTimeoutError, TransientIOError, ValidationError
from curio.models.collaborative import NeighborIndex, UserKNNRecommender
from curio.models.content_based import PreferenceRecommender
from curio.models.hybrid import HybridCombiner
from curio.models.popularity import PopularityRecommender
from curio.monitoring.monitor import GenerationEvent, GenerationMonitor, RunOutcome
from curio.store.recommendation_store import RecommendationStore


class UserState(str, Enum):
    """Lifecycle of a user's recommendations."""

    FRESH = "fresh"
    STALE = "stale"
    REGENERATING = "regenerating"


class _UserLock:
    __slots__ = ("lock", "users")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.users = 0


class RecommendationOrchestrator:
    """
    Generates, persists, scores and reports recommendations.

    Per user, generation is serialized by a lock keyed on the user id;
    different users generate independently. A run reads preferences,
    history and catalog in parallel, scores content and collaborative
    signals in parallel, and commits one batch to the store. Any failure
    or timeout before the commit leaves the stored batch untouched.
    """

    def __init__(
        self,
        preferences: UserPreferenceLookup,
        catalog: ProductCatalog,
        interaction_log: InteractionLog,
        store: RecommendationStore,
        content_recommender: Optional[PreferenceRecommender] = None,
        collaborative_recommender: Optional[UserKNNRecommender] = None,
        popularity_recommender: Optional[PopularityRecommender] = None,
        combiner: Optional[HybridCombiner] = None,
        popularity_window: timedelta = timedelta(days=7),
        default_limit: int = 10,
        max_limit: int = 100,
        refresh_batch_size: int = 100,
        generation_timeout: float = 10.0,
        max_workers: int = 4,
        monitor: Optional[GenerationMonitor] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            preferences: User lookup returning declared preferences
            catalog: Product catalog listing available products
            interaction_log: Interaction history of every user
            store: Recommendation store, the only mutable shared resource
            content_recommender: Content-based scorer
            collaborative_recommender: Collaborative scorer
            popularity_recommender: Cold-start scorer
            combiner: Hybrid combiner (owns TTL and confidence policy)
            popularity_window: How far back popularity counts reach
            default_limit: Recommendations per run when no limit is given
            max_limit: Largest accepted limit
            refresh_batch_size: Users per refresh sweep when none is given
            generation_timeout: Seconds a run may take before it is aborted
            max_workers: Threads used for parallel lookups and scoring
            monitor: Optional run monitor
            clock: Source of "now"
        """
        self.preferences = preferences
        self.catalog = catalog
        self.interaction_log = interaction_log
        self.store = store
        self.content_recommender = content_recommender or PreferenceRecommender()
        self.collaborative_recommender = collaborative_recommender or UserKNNRecommender(
            neighbor_index=NeighborIndex()
        )
        self.popularity_recommender = popularity_recommender or PopularityRecommender()
        self.combiner = combiner or HybridCombiner()
        self.popularity_window = popularity_window
        self.default_limit = default_limit
        self.max_limit = max_limit
        self.refresh_batch_size = refresh_batch_size
        self.generation_timeout = generation_timeout
        self.monitor = monitor
        self._clock = clock

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="curio-generation"
        )
        self._locks_guard = threading.Lock()
        self._user_locks: dict[str, _UserLock] = {}
        self._regenerating: set[str] = set()
        self._refresh_cursor: Optional[str] = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        preferences: UserPreferenceLookup,
        catalog: ProductCatalog,
        interaction_log: InteractionLog,
        store: RecommendationStore,
        monitor: Optional[GenerationMonitor] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> "RecommendationOrchestrator":
        """Wire the scorers from configuration."""
        return cls(
            preferences=preferences,
            catalog=catalog,
            interaction_log=interaction_log,
            store=store,
            content_recommender=PreferenceRecommender(
                weights={
                    "category": settings.category_weight,
                    "brand": settings.brand_weight,
                    "price": settings.price_weight,
                    "style": settings.style_weight,
                }
            ),
            collaborative_recommender=UserKNNRecommender(
                k=settings.neighbor_k,
                interaction_weights={
                    InteractionType.PURCHASE: settings.purchase_weight,
                    InteractionType.LIKE: settings.like_weight,
                },
                neighbor_index=NeighborIndex(),
            ),
            combiner=HybridCombiner(
                content_weight=settings.content_weight,
                collaborative_weight=settings.collaborative_weight,
                ttl=timedelta(hours=settings.recommendation_ttl_hours),
                high_confidence=settings.high_confidence,
                medium_confidence=settings.medium_confidence,
            ),
            popularity_window=timedelta(days=settings.popularity_window_days),
            default_limit=settings.default_limit,
            max_limit=settings.max_limit,
            refresh_batch_size=settings.refresh_batch_size,
            generation_timeout=settings.generation_timeout_seconds,
            max_workers=settings.max_workers,
            monitor=monitor,
            clock=clock,
        )

    def shutdown(self) -> None:
        """Stop the worker pool; queued lookups are cancelled."""
        self._executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def generate_recommendations(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[Recommendation]:
        """
        Regenerate and persist recommendations for a user.

        Raises:
            NotFoundError: The user does not resolve
            ValidationError: Invalid limit
            TransientIOError: A lookup or the store failed
            GenerationTimeoutError: The run exceeded its time budget
        """
        limit = self._check_limit(limit)
        with self._user_lock(user_id):
            return self._regenerate(user_id, limit)

    def get_recommendations(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[Recommendation]:
        """Current recommendations, generated on demand when none are current."""
        limit = self._check_limit(limit)
        current = self._read_store(lambda: self.store.get_recommendations(user_id, limit=limit))
        if current:
            return current
        return self.generate_recommendations(user_id, limit)

    def get_recommendation_score(self, user_id: str, product_id: str) -> float:
        """Current score for the pair, 0.0 when there is none."""
        score = self._read_store(lambda: self.store.get_score(user_id, product_id))
        return 0.0 if score is None else score

    def stats(self, user_id: str) -> RecommendationStats:
        return self._read_store(lambda: self.store.stats(user_id))

    def user_state(self, user_id: str) -> UserState:
        with self._locks_guard:
            if user_id in self._regenerating:
                return UserState.REGENERATING
        if self.store.has_current(user_id):
            return UserState.FRESH
        return UserState.STALE

    def refresh_expired_recommendations(self, batch_size: Optional[int] = None) -> int:
        """
        Regenerate users whose recommendations expired.

        Users currently being regenerated elsewhere are skipped, and a user
        refreshed since the page was read is not regenerated again. A failure
        for one user is logged and does not stop the sweep.

        Each sweep resumes after the last user the previous sweep visited and
        wraps around to the start, so users that keep failing or are locked
        never hold the head of every page.

        Returns:
            Number of users regenerated
        """
        if batch_size is None:
            batch_size = self.refresh_batch_size
        user_ids = self._next_expired_page(batch_size)
        if not user_ids:
            logger.debug("Refresh sweep: nothing expired")
            return 0

        regenerated = 0
        failed = 0
        for user_id in user_ids:
            with self._user_lock(user_id, blocking=False) as acquired:
                if not acquired:
                    logger.debug(f"Refresh sweep: user {user_id} already regenerating, skipped")
                    continue
                try:
                    if not self.store.needs_refresh(user_id):
                        continue
                    self._regenerate(user_id, self.default_limit)
                    regenerated += 1
                except CurioError as e:
                    failed += 1
                    logger.warning(f"Refresh failed for user {user_id}, will retry next sweep: {e}")

        logger.info(
            f"Refresh sweep: {regenerated} regenerated, {failed} failed "
            f"out of {len(user_ids)} expired users"
        )
        return regenerated

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    def _check_limit(self, limit: Optional[int]) -> int:
        limit = self.default_limit if limit is None else limit
        if not 1 <= limit <= self.max_limit:
            raise ValidationError(
                f"limit must be between 1 and {self.max_limit}",
                details={"limit": limit},
            )
        return limit

    def _next_expired_page(self, batch_size: int) -> list[str]:
        with self._locks_guard:
            cursor = self._refresh_cursor

        user_ids = self._read_store(
            lambda: self.store.find_expired(batch_size=batch_size, after=cursor)
        )
        if cursor is not None and len(user_ids) < batch_size:
            wrapped = self._read_store(
                lambda: self.store.find_expired(batch_size=batch_size - len(user_ids))
            )
            seen = set(user_ids)
            user_ids += [u for u in wrapped if u not in seen]

        with self._locks_guard:
            self._refresh_cursor = user_ids[-1] if user_ids else None
        return user_ids

    @contextmanager
    def _user_lock(self, user_id: str, blocking: bool = True) -> Iterator[bool]:
        """
        Hold the user's generation lock.

        Entries are reference counted and dropped once no thread holds or
        waits on them. Yields whether the lock was acquired.
        """
        with self._locks_guard:
            entry = self._user_locks.get(user_id)
            if entry is None:
                entry = self._user_locks[user_id] = _UserLock()
            entry.users += 1

        acquired = entry.lock.acquire(blocking=blocking)
        try:
            yield acquired
        finally:
            if acquired:
                entry.lock.release()
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._user_locks[user_id]

    def _regenerate(self, user_id: str, limit: int) -> list[Recommendation]:
        """Run one generation; the caller holds the user's lock."""
        with self._locks_guard:
            self._regenerating.add(user_id)

        started = time.monotonic()
        outcome = RunOutcome.FAILED
        error: Optional[str] = None
        recommendations: list[Recommendation] = []
        try:
            batch = self._build_batch(user_id, limit, deadline=started + self.generation_timeout)
            self._commit(batch)
            recommendations = list(batch.recommendations)
            outcome = RunOutcome.COMMITTED
            return recommendations
        except GenerationTimeoutError as e:
            outcome, error = RunOutcome.TIMEOUT, str(e)
            logger.error(f"Generation aborted for user {user_id}: {e}")
            raise
        except CurioError as e:
            error = str(e)
            logger.error(f"Generation failed for user {user_id}: {e}")
            raise
        finally:
            with self._locks_guard:
                self._regenerating.discard(user_id)
            self._report(user_id, outcome, time.monotonic() - started, recommendations, error)

    def _build_batch(self, user_id: str, limit: int, deadline: float) -> RecommendationBatch:
        now = self._clock()
        run_id = uuid4().hex
        pending: list[Future] = []
        # Read before the profiles so a cached snapshot is never older than its key
        version = self.interaction_log.version

        def submit(fn, *args) -> Future:
            future = self._executor.submit(fn, *args)
            pending.append(future)
            return future

        try:
            preferences_f = submit(self.preferences.get, user_id)
            history_f = submit(self.interaction_log.get_user_interactions, user_id)
            profiles_f = submit(self.interaction_log.get_all_users_positive_profiles)
            popularity_f = submit(
                self.interaction_log.popularity_counts, now - self.popularity_window
            )
            preferences = self._await(preferences_f, user_id, deadline)
            history = self._await(history_f, user_id, deadline)
            interacted = {i.product_id for i in history}

            candidates = self._await(
                submit(self.catalog.list_available, interacted), user_id, deadline
            )
            candidate_ids = {p.product_id for p in candidates}
            profiles = self._await(profiles_f, user_id, deadline)

            content_f = submit(
                self.content_recommender.score_by_preferences, preferences, candidates
            )
            collaborative_f = submit(
                self.collaborative_recommender.score_by_neighbors,
                user_id,
                history,
                profiles,
                None,
                candidate_ids,
                version,
            )
            content = self._await(content_f, user_id, deadline)
            collaborative = self._await(collaborative_f, user_id, deadline)

            popularity = []
            if not content and not collaborative:
                counts = self._await(popularity_f, user_id, deadline)
                popularity = self.popularity_recommender.score_by_popularity(
                    counts, candidate_ids
                )

            recommendations = self.combiner.combine(
                user_id,
                content,
                collaborative,
                popularity,
                limit,
                now=now,
                run_id=run_id,
            )
        finally:
            for future in pending:
                future.cancel()

        if time.monotonic() >= deadline:
            raise GenerationTimeoutError(user_id, self.generation_timeout)

        return RecommendationBatch(
            user_id=user_id,
            run_id=run_id,
            created_at=now,
            expires_at=now + self.combiner.ttl,
            recommendations=tuple(recommendations),
        )

    def _await(self, future: Future, user_id: str, deadline: float):
        """Wait for a lookup within the run's deadline, translating failures."""
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise GenerationTimeoutError(user_id, self.generation_timeout)
        try:
            return future.result(timeout=remaining)
        except CurioError:
            raise
        except TimeoutError as e:
            if not future.done():
                raise GenerationTimeoutError(user_id, self.generation_timeout) from e
            raise TransientIOError(
                f"Lookup timed out for user '{user_id}': {e}",
                details={"user_id": user_id},
            ) from e
        except Exception as e:
            raise TransientIOError(
                f"Lookup failed for user '{user_id}': {e}",
                details={"user_id": user_id, "error_type": type(e).__name__},
            ) from e

    def _commit(self, batch: RecommendationBatch) -> None:
        try:
            self.store.upsert_user_batch(batch)
        except CurioError:
            raise
        except Exception as e:
            raise TransientIOError(
                f"Store write failed for user '{batch.user_id}': {e}",
                details={"user_id": batch.user_id, "error_type": type(e).__name__},
            ) from e

        logger.info(
            f"Committed {len(batch.recommendations)} recommendations for user "
            f"{batch.user_id} (run {batch.run_id})"
        )

    def _read_store(self, read: Callable):
        try:
            return read()
        except CurioError:
            raise
        except Exception as e:
            raise TransientIOError(
                f"Store read failed: {e}",
                details={"error_type": type(e).__name__},
            ) from e

    def _report(
        self,
        user_id: str,
        outcome: RunOutcome,
        duration: float,
        recommendations: list[Recommendation],
        error: Optional[str],
    ) -> None:
        if self.monitor is None:
            return
        counts: dict[str, int] = {}
        for rec in recommendations:
            counts[rec.algorithm.value] = counts.get(rec.algorithm.value, 0) + 1
        self.monitor.record(GenerationEvent(
            user_id=user_id,
            outcome=outcome,
            duration_seconds=duration,
            algorithm_counts=counts,
            error=error,
        ))
