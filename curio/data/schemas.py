"""Data schemas and models for Curio."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Union
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

MAX_PRICE = 999999.99
MAX_METADATA_KEYS = 20
MAX_METADATA_KEY_LENGTH = 64

MetadataValue = Union[bool, int, float, str]


def utcnow() -> datetime:
    """Timezone-aware current time; every timestamp in Curio is UTC."""
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class InteractionType(str, Enum):
    """Closed set of user-product events."""

    VIEW = "view"
    LIKE = "like"
    DISLIKE = "dislike"
    PURCHASE = "purchase"


# Types that put a product in a user's positive set
POSITIVE_INTERACTIONS = frozenset({InteractionType.LIKE, InteractionType.PURCHASE})


class RecommendationAlgorithm(str, Enum):
    """Signal a recommendation was derived from."""

    CONTENT_BASED = "content-based"
    COLLABORATIVE = "collaborative"
    HYBRID = "hybrid"
    POPULARITY = "popularity"


class Confidence(str, Enum):
    """Score bucket shown to shoppers."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Interaction(BaseModel):
    """Immutable user-product interaction event."""

    model_config = ConfigDict(frozen=True)

    interaction_id: str = Field(
        default_factory=lambda: uuid4().hex,
        min_length=1,
        description="Unique interaction identifier",
    )
    user_id: str = Field(..., min_length=1, description="User identifier")
    product_id: str = Field(..., min_length=1, description="Product identifier")
    interaction_type: InteractionType = Field(..., description="view, like, dislike or purchase")
    metadata: dict[str, MetadataValue] = Field(
        default_factory=dict,
        description="Bounded string -> primitive map (e.g. source page, quantity)",
    )
    occurred_at: datetime = Field(default_factory=utcnow, description="When the interaction occurred")

    @field_validator("metadata")
    @classmethod
    def _bound_metadata(cls, value: dict[str, MetadataValue]) -> dict[str, MetadataValue]:
        if len(value) > MAX_METADATA_KEYS:
            raise ValueError(f"metadata may hold at most {MAX_METADATA_KEYS} keys")
        for key in value:
            if not key or len(key) > MAX_METADATA_KEY_LENGTH:
                raise ValueError(
                    f"metadata keys must be 1-{MAX_METADATA_KEY_LENGTH} characters, got {key!r}"
                )
        return value

    @field_validator("occurred_at")
    @classmethod
    def _normalize_time(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @property
    def is_positive(self) -> bool:
        return self.interaction_type in POSITIVE_INTERACTIONS


class PriceRange(BaseModel):
    """Inclusive price window a shopper is comfortable with."""

    model_config = ConfigDict(frozen=True)

    min: float = Field(default=0.0, ge=0, le=MAX_PRICE)
    max: float = Field(default=0.0, ge=0, le=MAX_PRICE)

    @model_validator(mode="after")
    def _check_order(self) -> "PriceRange":
        if self.max < self.min:
            raise ValueError("Maximum price must be greater than or equal to minimum price")
        return self

    @property
    def width(self) -> float:
        return self.max - self.min

    @property
    def is_degenerate(self) -> bool:
        return self.width <= 0


def _clean_labels(value):
    """Strip labels and drop duplicates; empty labels are rejected."""
    if value is None:
        return frozenset()
    if isinstance(value, str):
        value = [value]
    cleaned = []
    for item in value:
        if not isinstance(item, str) or not item.strip():
            raise ValueError("entries must be non-empty strings")
        cleaned.append(item.strip())
    return frozenset(cleaned)


class UserPreferences(BaseModel):
    """Declared shopping preferences for one user."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1, description="User identifier")
    categories: frozenset[str] = Field(default_factory=frozenset, max_length=20)
    brands: frozenset[str] = Field(default_factory=frozenset, max_length=20)
    style_preferences: frozenset[str] = Field(default_factory=frozenset, max_length=10)
    price_range: PriceRange = Field(default_factory=PriceRange)

    @field_validator("categories", "brands", "style_preferences", mode="before")
    @classmethod
    def _normalize_labels(cls, value):
        return _clean_labels(value)

    def is_empty(self) -> bool:
        """True when nothing has been declared (the content-based cold-start signal)."""
        return (
            not self.categories
            and not self.brands
            and not self.style_preferences
            and self.price_range.is_degenerate
        )


class Product(BaseModel):
    """Catalog product as seen by the recommendation core."""

    model_config = ConfigDict(frozen=True)

    product_id: str = Field(..., min_length=1, description="Unique product identifier")
    name: str = Field(..., min_length=1, description="Product name (unique in the catalog)")
    category: str = Field(..., min_length=1, description="Product category")
    brand: str = Field(..., min_length=1, description="Brand name")
    price: float = Field(..., ge=0, description="Product price")
    style: Optional[str] = Field(default=None, description="Style label, e.g. 'minimalist'")
    availability: bool = Field(default=True, description="Whether product can be bought")


class Recommendation(BaseModel):
    """A persisted, expiring suggestion of one product for one user."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    user_id: str = Field(..., min_length=1)
    product_id: str = Field(..., min_length=1)
    score: float = Field(..., ge=0, le=1)
    algorithm: RecommendationAlgorithm
    confidence: Confidence
    reason: str
    created_at: datetime
    expires_at: datetime
    run_id: str = Field(..., min_length=1, description="Generation run that wrote this row")

    @field_validator("created_at", "expires_at")
    @classmethod
    def _normalize_time(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_expiry(self) -> "Recommendation":
        if self.expires_at <= self.created_at:
            raise ValueError("Expires at must be after created at")
        return self

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class RecommendationBatch(BaseModel):
    """Every row written for one user by one generation run."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1)
    run_id: str = Field(..., min_length=1)
    created_at: datetime
    expires_at: datetime
    recommendations: tuple[Recommendation, ...] = ()

    @field_validator("created_at", "expires_at")
    @classmethod
    def _normalize_time(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_consistency(self) -> "RecommendationBatch":
        if self.expires_at <= self.created_at:
            raise ValueError("Expires at must be after created at")

        seen: set[str] = set()
        for rec in self.recommendations:
            if rec.user_id != self.user_id or rec.run_id != self.run_id:
                raise ValueError(
                    f"Recommendation for product '{rec.product_id}' belongs to another user or run"
                )
            if rec.created_at != self.created_at or rec.expires_at != self.expires_at:
                raise ValueError("All rows of a batch must share created_at and expires_at")
            if rec.product_id in seen:
                raise ValueError(f"Duplicate product '{rec.product_id}' in batch")
            seen.add(rec.product_id)
        return self

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class ExpirationStats(BaseModel):
    """Row counts by expiry status."""

    expired: int = 0
    expiring_soon: int = 0
    active: int = 0


class RecommendationStats(BaseModel):
    """Summary of a user's current recommendations."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    total: int = 0
    average_score: float = 0.0
    algorithm_distribution: dict[str, int] = Field(
        default_factory=lambda: {algo.value: 0 for algo in RecommendationAlgorithm}
    )
    confidence_distribution: dict[str, int] = Field(
        default_factory=lambda: {level.value: 0 for level in Confidence}
    )
    expiration_stats: ExpirationStats = Field(default_factory=ExpirationStats)


class InteractionStats(BaseModel):
    """Per-user interaction analytics."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    total_interactions: int = 0
    views: int = 0
    likes: int = 0
    dislikes: int = 0
    purchases: int = 0
    unique_products: int = 0
    active_days: int = 0
    conversion_rate: float = 0.0


class ProductInteractionStats(BaseModel):
    """Per-product interaction analytics."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: str
    total_interactions: int = 0
    views: int = 0
    likes: int = 0
    dislikes: int = 0
    purchases: int = 0
    unique_users: int = 0
    conversion_rate: float = 0.0
