"""Runtime configuration for Curio."""

from functools import lru_cache
from typing import Optional

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings loaded from ``CURIO_*`` environment variables (or a ``.env`` file)."""

    model_config = SettingsConfigDict(
        env_prefix="CURIO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Lifecycle
    recommendation_ttl_hours: float = Field(default=24.0, gt=0)
    generation_timeout_seconds: float = Field(default=10.0, gt=0)
    max_workers: int = Field(default=4, ge=1)
    refresh_batch_size: int = Field(default=100, ge=1)
    refresh_interval_seconds: float = Field(default=300.0, gt=0)

    # Request limits
    default_limit: int = Field(default=10, ge=1)
    max_limit: int = Field(default=100, ge=1)

    # Collaborative filtering
    neighbor_k: int = Field(default=20, ge=1)
    purchase_weight: float = Field(default=1.0, gt=0, le=1)
    like_weight: float = Field(default=0.6, gt=0, le=1)

    # Popularity fallback
    popularity_window_days: float = Field(default=7.0, gt=0)

    # Content-based scoring policy
    category_weight: float = Field(default=0.35, ge=0)
    brand_weight: float = Field(default=0.25, ge=0)
    price_weight: float = Field(default=0.25, ge=0)
    style_weight: float = Field(default=0.15, ge=0)

    # Hybrid combination
    content_weight: float = Field(default=0.5, ge=0)
    collaborative_weight: float = Field(default=0.5, ge=0)

    # Confidence buckets
    high_confidence: float = Field(default=0.7, gt=0, le=1)
    medium_confidence: float = Field(default=0.4, gt=0, le=1)

    # Monitoring
    failure_rate_threshold: float = Field(default=0.2, ge=0, le=1)
    cold_start_rate_threshold: float = Field(default=0.5, ge=0, le=1)

    # Ambient
    log_level: str = "INFO"
    json_logs: bool = False
    data_path: Optional[str] = None

    @model_validator(mode="after")
    def _check_weights(self) -> "Settings":
        content_total = (
            self.category_weight + self.brand_weight + self.price_weight + self.style_weight
        )
        if abs(content_total - 1.0) > 1e-6:
            raise ValueError(f"Content weights must sum to 1.0, got {content_total:.4f}")

        hybrid_total = self.content_weight + self.collaborative_weight
        if abs(hybrid_total - 1.0) > 1e-6:
            raise ValueError(f"Hybrid weights must sum to 1.0, got {hybrid_total:.4f}")

        if self.medium_confidence >= self.high_confidence:
            raise ValueError("medium_confidence must be below high_confidence")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings, read once from the environment."""
    return Settings()
