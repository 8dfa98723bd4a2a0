"""Append-only interaction log read by the recommenders."""

import threading
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Callable, Optional, Union

import pandas as pd
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from curio.data.schemas import (
    POSITIVE_INTERACTIONS,
    Interaction,
    InteractionStats,
    InteractionType,
    ProductInteractionStats,
    utcnow,
)
from curio.errors import ValidationError

FRAME_COLUMNS = ["interaction_id", "user_id", "product_id", "interaction_type", "occurred_at"]

# Interactions that count towards product popularity
POPULARITY_INTERACTIONS = frozenset(
    {InteractionType.VIEW, InteractionType.LIKE, InteractionType.PURCHASE}
)


class InteractionLog:
    """
    Thread-safe, in-memory, append-only interaction log.

    Interactions are created or deleted, never updated. Every write bumps
    :attr:`version`, which downstream caches use as a snapshot key.
    """

    def __init__(
        self,
        user_exists: Optional[Callable[[str], bool]] = None,
        product_exists: Optional[Callable[[str], bool]] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initialize the log.

        Args:
            user_exists: Predicate resolving user ids; unresolved ids are rejected
            product_exists: Predicate resolving product ids; unresolved ids are rejected
            clock: Source of "now" for windowed queries
        """
        self._user_exists = user_exists
        self._product_exists = product_exists
        self._clock = clock
        self._lock = threading.RLock()
        self._interactions: dict[str, Interaction] = {}
        self._version = 0

    @property
    def version(self) -> int:
        """Monotonic counter bumped on every write."""
        with self._lock:
            return self._version

    def __len__(self) -> int:
        with self._lock:
            return len(self._interactions)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def record_interaction(self, interaction: Union[Interaction, Mapping]) -> Interaction:
        """
        Validate and append an interaction.

        Args:
            interaction: An :class:`Interaction` or a mapping of its fields

        Returns:
            The stored interaction

        Raises:
            ValidationError: Malformed payload, unknown user/product or duplicate id
        """
        if not isinstance(interaction, Interaction):
            try:
                interaction = Interaction.model_validate(interaction)
            except PydanticValidationError as exc:
                raise ValidationError.from_pydantic(exc, "interaction") from exc

        if self._user_exists is not None and not self._user_exists(interaction.user_id):
            raise ValidationError(
                f"Unknown user '{interaction.user_id}'",
                details={"user_id": interaction.user_id},
            )
        if self._product_exists is not None and not self._product_exists(interaction.product_id):
            raise ValidationError(
                f"Unknown product '{interaction.product_id}'",
                details={"product_id": interaction.product_id},
            )

        with self._lock:
            if interaction.interaction_id in self._interactions:
                raise ValidationError(
                    f"Interaction '{interaction.interaction_id}' already recorded",
                    details={"interaction_id": interaction.interaction_id},
                )
            self._interactions[interaction.interaction_id] = interaction
            self._version += 1

        logger.debug(
            f"Recorded {interaction.interaction_type.value} by {interaction.user_id} "
            f"on {interaction.product_id}"
        )
        return interaction

    def delete_interaction(self, interaction_id: str) -> bool:
        """Remove an interaction; returns False when it does not exist."""
        with self._lock:
            removed = self._interactions.pop(interaction_id, None)
            if removed is None:
                return False
            self._version += 1
        logger.debug(f"Deleted interaction {interaction_id}")
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _snapshot(self) -> list[Interaction]:
        with self._lock:
            return list(self._interactions.values())

    def get_user_interactions(self, user_id: str) -> list[Interaction]:
        """All interactions of a user, oldest first."""
        interactions = [i for i in self._snapshot() if i.user_id == user_id]
        return sorted(interactions, key=lambda i: (i.occurred_at, i.interaction_id))

    def get_interacted_products(self, user_id: str) -> set[str]:
        """Products the user touched with any interaction type."""
        return {i.product_id for i in self._snapshot() if i.user_id == user_id}

    def get_positive_set(self, user_id: str) -> set[str]:
        """Products the user liked or purchased."""
        return {
            i.product_id
            for i in self._snapshot()
            if i.user_id == user_id and i.interaction_type in POSITIVE_INTERACTIONS
        }

    def get_all_users_positive_profiles(self) -> dict[str, dict[str, InteractionType]]:
        """
        Strongest positive interaction per (user, product).

        A purchase outranks a like. Users without positive interactions are omitted.
        """
        profiles: dict[str, dict[str, InteractionType]] = {}
        for interaction in self._snapshot():
            if interaction.interaction_type not in POSITIVE_INTERACTIONS:
                continue
            products = profiles.setdefault(interaction.user_id, {})
            current = products.get(interaction.product_id)
            if current != InteractionType.PURCHASE:
                products[interaction.product_id] = interaction.interaction_type
        return profiles

    def get_all_users_positive_sets(self) -> dict[str, set[str]]:
        """User id -> set of liked or purchased product ids."""
        return {
            user_id: set(products)
            for user_id, products in self.get_all_users_positive_profiles().items()
        }

    def to_frame(self) -> pd.DataFrame:
        """Export the log as a DataFrame (one row per interaction)."""
        rows = [
            {
                "interaction_id": i.interaction_id,
                "user_id": i.user_id,
                "product_id": i.product_id,
                "interaction_type": i.interaction_type.value,
                "occurred_at": i.occurred_at,
            }
            for i in self._snapshot()
        ]
        df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
        df["occurred_at"] = pd.to_datetime(df["occurred_at"], utc=True)
        return df

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------

    def popularity_counts(self, since: Optional[datetime] = None) -> dict[str, int]:
        """
        Count views, likes and purchases per product.

        Args:
            since: Only count interactions at or after this time

        Returns:
            Dict mapping product_id to interaction count
        """
        df = self.to_frame()
        allowed = [t.value for t in POPULARITY_INTERACTIONS]
        df = df[df["interaction_type"].isin(allowed)]
        if since is not None:
            df = df[df["occurred_at"] >= pd.Timestamp(since)]

        if df.empty:
            return {}

        counts = df.groupby("product_id").size()
        return {str(product_id): int(count) for product_id, count in counts.items()}

    def top_products(
        self,
        limit: int = 10,
        window: timedelta = timedelta(days=7),
        now: Optional[datetime] = None,
    ) -> list[tuple[str, int]]:
        """Most-interacted products within a window, most popular first."""
        now = now or self._clock()
        counts = self.popularity_counts(since=now - window)
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return ranked[:limit]

    def user_stats(self, user_id: str) -> InteractionStats:
        """Interaction analytics for a single user."""
        df = self.to_frame()
        df = df[df["user_id"] == user_id]

        if df.empty:
            return InteractionStats(user_id=user_id)

        type_counts = df["interaction_type"].value_counts()
        total = len(df)
        purchases = int(type_counts.get(InteractionType.PURCHASE.value, 0))

        return InteractionStats(
            user_id=user_id,
            total_interactions=total,
            views=int(type_counts.get(InteractionType.VIEW.value, 0)),
            likes=int(type_counts.get(InteractionType.LIKE.value, 0)),
            dislikes=int(type_counts.get(InteractionType.DISLIKE.value, 0)),
            purchases=purchases,
            unique_products=int(df["product_id"].nunique()),
            active_days=int(df["occurred_at"].dt.date.nunique()),
            conversion_rate=purchases / total,
        )

    def get_product_interactions(self, product_id: str) -> list[Interaction]:
        """All interactions on a product, oldest first."""
        interactions = [i for i in self._snapshot() if i.product_id == product_id]
        return sorted(interactions, key=lambda i: (i.occurred_at, i.interaction_id))

    def product_stats(self, product_id: str) -> ProductInteractionStats:
        """Interaction analytics for a single product."""
        df = self.to_frame()
        df = df[df["product_id"] == product_id]

        if df.empty:
            return ProductInteractionStats(product_id=product_id)

        type_counts = df["interaction_type"].value_counts()
        total = len(df)
        purchases = int(type_counts.get(InteractionType.PURCHASE.value, 0))

        return ProductInteractionStats(
            product_id=product_id,
            total_interactions=total,
            views=int(type_counts.get(InteractionType.VIEW.value, 0)),
            likes=int(type_counts.get(InteractionType.LIKE.value, 0)),
            dislikes=int(type_counts.get(InteractionType.DISLIKE.value, 0)),
            purchases=purchases,
            unique_users=int(df["user_id"].nunique()),
            conversion_rate=purchases / total,
        )
