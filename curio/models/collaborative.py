"""User-based collaborative filtering over positive interaction sets."""

import threading
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Optional

import numpy as np
from loguru import logger
from scipy.sparse import csr_matrix

from curio.data.schemas import (
    POSITIVE_INTERACTIONS,
    Interaction,
    InteractionType,
    RecommendationAlgorithm,
)
from curio.models.base import BaseRecommender, ScoredProduct

DEFAULT_INTERACTION_WEIGHTS = {
    InteractionType.PURCHASE: 1.0,
    InteractionType.LIKE: 0.6,
}


@dataclass(frozen=True)
class NeighborSnapshot:
    """User x product matrices built from every user's positive profile."""

    user_ids: list[str]
    product_ids: list[str]
    user_index: dict[str, int]
    product_index: dict[str, int]
    binary: csr_matrix
    weighted: csr_matrix
    set_sizes: np.ndarray

    @property
    def n_users(self) -> int:
        return len(self.user_ids)


def build_snapshot(
    profiles: Mapping[str, Mapping[str, InteractionType]],
    interaction_weights: Mapping[InteractionType, float],
) -> NeighborSnapshot:
    """
    Build the sparse matrices used for neighbor search.

    Users and products are indexed in sorted id order so the result does not
    depend on the iteration order of ``profiles``.
    """
    user_ids = sorted(user_id for user_id, products in profiles.items() if products)
    product_ids = sorted({pid for uid in user_ids for pid in profiles[uid]})
    user_index = {uid: idx for idx, uid in enumerate(user_ids)}
    product_index = {pid: idx for idx, pid in enumerate(product_ids)}

    rows, cols, values = [], [], []
    for uid in user_ids:
        for pid, interaction_type in sorted(profiles[uid].items()):
            rows.append(user_index[uid])
            cols.append(product_index[pid])
            values.append(interaction_weights[interaction_type])

    shape = (len(user_ids), len(product_ids))
    if values:
        weighted = csr_matrix((np.array(values, dtype=float), (rows, cols)), shape=shape)
    else:
        weighted = csr_matrix(shape, dtype=float)
    binary = weighted.copy()
    binary.data = np.ones_like(binary.data)
    set_sizes = np.asarray(binary.sum(axis=1)).flatten()

    return NeighborSnapshot(
        user_ids=user_ids,
        product_ids=product_ids,
        user_index=user_index,
        product_index=product_index,
        binary=binary,
        weighted=weighted,
        set_sizes=set_sizes,
    )


class NeighborIndex:
    """
    Invalidatable cache of the neighbor snapshot, keyed by interaction-log version.

    Injected into :class:`UserKNNRecommender`; a snapshot is rebuilt only
    when asked for a version it has not seen.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._version: Optional[int] = None
        self._snapshot: Optional[NeighborSnapshot] = None
        self.builds = 0

    def get(
        self,
        version: int,
        profiles: Mapping[str, Mapping[str, InteractionType]],
        interaction_weights: Mapping[InteractionType, float],
    ) -> NeighborSnapshot:
        with self._lock:
            if self._snapshot is not None and self._version == version:
                return self._snapshot

            snapshot = build_snapshot(profiles, interaction_weights)
            self._version = version
            self._snapshot = snapshot
            self.builds += 1
            logger.debug(
                f"Built neighbor snapshot v{version}: "
                f"{snapshot.n_users} users x {len(snapshot.product_ids)} products"
            )
            return snapshot

    def invalidate(self) -> None:
        with self._lock:
            self._version = None
            self._snapshot = None


class UserKNNRecommender(BaseRecommender):
    """
    User-based K-Nearest Neighbors collaborative filtering.

    Similarity between two users is the Jaccard index of their positive
    (liked or purchased) product sets. Candidates are scored by summing
    ``similarity x interaction weight`` over the top-k neighbors that hold
    them, then normalized by the best candidate's score.
    """

    algorithm = RecommendationAlgorithm.COLLABORATIVE

    def __init__(
        self,
        name: str = "user_knn",
        k: int = 20,
        interaction_weights: Optional[Mapping[InteractionType, float]] = None,
        neighbor_index: Optional[NeighborIndex] = None,
    ) -> None:
        """
        Initialize User KNN recommender.

        Args:
            name: Model name
            k: Number of similar users to consider
            interaction_weights: Weight of purchase and like in score accumulation
            neighbor_index: Optional snapshot cache shared across requests
        """
        super().__init__(name=name)
        if k < 1:
            raise ValueError("k must be at least 1")
        self.k = k
        self.interaction_weights = dict(DEFAULT_INTERACTION_WEIGHTS)
        if interaction_weights:
            self.interaction_weights.update(interaction_weights)
        self.neighbor_index = neighbor_index

    def _snapshot(
        self,
        profiles: Mapping[str, Mapping[str, InteractionType]],
        version: Optional[int],
    ) -> NeighborSnapshot:
        if self.neighbor_index is not None and version is not None:
            return self.neighbor_index.get(version, profiles, self.interaction_weights)
        return build_snapshot(profiles, self.interaction_weights)

    def find_neighbors(
        self,
        user_id: str,
        positive_set: set[str],
        snapshot: NeighborSnapshot,
        k: int,
    ) -> list[tuple[int, float]]:
        """
        Top-k most similar users.

        Returns:
            (user row index, Jaccard similarity) pairs, most similar first,
            ties broken by user id
        """
        if not positive_set or snapshot.n_users == 0:
            return []

        target = np.zeros(len(snapshot.product_ids))
        for pid in positive_set:
            idx = snapshot.product_index.get(pid)
            if idx is not None:
                target[idx] = 1.0

        intersections = snapshot.binary @ target
        unions = len(positive_set) + snapshot.set_sizes - intersections
        similarities = np.divide(
            intersections,
            unions,
            out=np.zeros_like(intersections, dtype=float),
            where=unions > 0,
        )

        own_idx = snapshot.user_index.get(user_id)
        if own_idx is not None:
            similarities[own_idx] = 0.0

        candidates = np.flatnonzero(similarities > 0)
        if len(candidates) == 0:
            return []

        # Row order equals user id order, so lexsort on (row, -similarity)
        # ranks by similarity and breaks ties by user id.
        order = np.lexsort((candidates, -similarities[candidates]))
        top = candidates[order][:k]
        return [(int(idx), float(similarities[idx])) for idx in top]

    def score_by_neighbors(
        self,
        user_id: str,
        interactions: Sequence[Interaction],
        all_users_interactions: Mapping[str, Mapping[str, InteractionType]],
        k: Optional[int] = None,
        candidate_ids: Optional[Iterable[str]] = None,
        version: Optional[int] = None,
    ) -> list[ScoredProduct]:
        """
        Score products liked or purchased by similar users.

        Args:
            user_id: Target user
            interactions: The target user's interactions (all types)
            all_users_interactions: user_id -> product_id -> strongest positive type
            k: Number of neighbors (defaults to ``self.k``)
            candidate_ids: Restrict output to these products (e.g. available ones)
            version: Interaction-log version, used as the snapshot cache key

        Returns:
            (product_id, score, reason) with scores normalized to [0, 1],
            ranked by score descending then product id. Empty when there
            is no collaborative signal.
        """
        k = k or self.k
        positive_set = {
            i.product_id for i in interactions if i.interaction_type in POSITIVE_INTERACTIONS
        }
        interacted = {i.product_id for i in interactions}

        snapshot = self._snapshot(all_users_interactions, version)
        neighbors = self.find_neighbors(user_id, positive_set, snapshot, k)
        if not neighbors:
            return []

        rows = [idx for idx, _ in neighbors]
        sims = np.array([sim for _, sim in neighbors])

        accumulated = np.asarray(snapshot.weighted[rows].T @ sims).flatten()
        holders = np.asarray(snapshot.binary[rows].sum(axis=0)).flatten()

        allowed = None if candidate_ids is None else set(candidate_ids)
        eligible = [
            idx
            for idx, pid in enumerate(snapshot.product_ids)
            if pid not in interacted
            and accumulated[idx] > 0
            and (allowed is None or pid in allowed)
        ]
        if not eligible:
            return []

        max_score = accumulated[eligible].max()
        if max_score <= 0:
            return []

        results = []
        for idx in eligible:
            n_users = int(holders[idx])
            noun = "user" if n_users == 1 else "users"
            results.append(
                ScoredProduct(
                    snapshot.product_ids[idx],
                    self.clip(accumulated[idx] / max_score),
                    f"Liked by {n_users} similar {noun}",
                )
            )

        logger.debug(
            f"Collaborative scoring for user {user_id}: "
            f"{len(neighbors)} neighbors, {len(results)} candidates"
        )
        return self.rank(results)
