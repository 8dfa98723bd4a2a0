"""Tests for data schemas and the error taxonomy."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError as PydanticValidationError

from curio.data.schemas import (
    Confidence,
    Interaction,
    InteractionType,
    PriceRange,
    Recommendation,
    RecommendationAlgorithm,
    RecommendationBatch,
    RecommendationStats,
    UserPreferences,
)
from curio.errors import GenerationTimeoutError, NotFoundError, TransientIOError, ValidationError

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_recommendation(product_id="p1", run_id="run-1", user_id="u1", score=0.5):
    return Recommendation(
        user_id=user_id,
        product_id=product_id,
        score=score,
        algorithm=RecommendationAlgorithm.CONTENT_BASED,
        confidence=Confidence.MEDIUM,
        reason="Matches your preferences: category books",
        created_at=NOW,
        expires_at=NOW + timedelta(hours=24),
        run_id=run_id,
    )


class TestInteraction:
    """Tests for Interaction schema."""

    def test_valid_interaction(self):
        """Test valid interaction creation."""
        interaction = Interaction(
            user_id="u1",
            product_id="p1",
            interaction_type="purchase",
            metadata={"quantity": 2, "source": "search"},
        )

        assert interaction.interaction_type == InteractionType.PURCHASE
        assert interaction.is_positive
        assert interaction.interaction_id

    def test_invalid_interaction_type(self):
        """Test that types outside the closed set are rejected."""
        with pytest.raises(PydanticValidationError):
            Interaction(user_id="u1", product_id="p1", interaction_type="click")

    def test_view_and_dislike_are_not_positive(self):
        for kind in ("view", "dislike"):
            interaction = Interaction(user_id="u1", product_id="p1", interaction_type=kind)
            assert not interaction.is_positive

    def test_metadata_key_limit(self):
        """Test metadata is bounded."""
        metadata = {f"key_{i}": i for i in range(21)}
        with pytest.raises(PydanticValidationError):
            Interaction(user_id="u1", product_id="p1", interaction_type="view", metadata=metadata)

    def test_metadata_rejects_nested_values(self):
        with pytest.raises(PydanticValidationError):
            Interaction(
                user_id="u1",
                product_id="p1",
                interaction_type="view",
                metadata={"nested": {"a": 1}},
            )

    def test_naive_timestamp_is_utc(self):
        interaction = Interaction(
            user_id="u1",
            product_id="p1",
            interaction_type="view",
            occurred_at=datetime(2024, 1, 1, 8, 30),
        )
        assert interaction.occurred_at.tzinfo == timezone.utc


class TestUserPreferences:
    """Tests for UserPreferences schema."""

    def test_defaults_are_empty(self):
        preferences = UserPreferences(user_id="u1")

        assert preferences.is_empty()
        assert preferences.price_range.is_degenerate

    def test_labels_are_stripped_and_deduplicated(self):
        preferences = UserPreferences(
            user_id="u1",
            categories=[" electronics", "electronics", "books "],
        )
        assert preferences.categories == frozenset({"electronics", "books"})
        assert not preferences.is_empty()

    def test_empty_label_rejected(self):
        with pytest.raises(PydanticValidationError):
            UserPreferences(user_id="u1", brands=["Apple", "  "])

    def test_category_bound(self):
        """Test at most 20 categories."""
        with pytest.raises(PydanticValidationError):
            UserPreferences(user_id="u1", categories=[f"c{i}" for i in range(21)])

    def test_style_bound(self):
        """Test at most 10 style preferences."""
        UserPreferences(user_id="u1", style_preferences=[f"s{i}" for i in range(10)])
        with pytest.raises(PydanticValidationError):
            UserPreferences(user_id="u1", style_preferences=[f"s{i}" for i in range(11)])

    def test_price_range_only_is_not_empty(self):
        preferences = UserPreferences(user_id="u1", price_range={"min": 10, "max": 50})
        assert not preferences.is_empty()


class TestPriceRange:
    """Tests for PriceRange schema."""

    def test_max_below_min_rejected(self):
        with pytest.raises(PydanticValidationError):
            PriceRange(min=100, max=50)

    def test_negative_rejected(self):
        with pytest.raises(PydanticValidationError):
            PriceRange(min=-1, max=50)

    def test_upper_bound(self):
        PriceRange(min=0, max=999999.99)
        with pytest.raises(PydanticValidationError):
            PriceRange(min=0, max=1000000)

    def test_width(self):
        assert PriceRange(min=500, max=1500).width == 1000


class TestRecommendation:
    """Tests for Recommendation schema."""

    def test_score_bounds(self):
        with pytest.raises(PydanticValidationError):
            make_recommendation(score=1.2)
        with pytest.raises(PydanticValidationError):
            make_recommendation(score=-0.1)

    def test_expiry_must_follow_creation(self):
        with pytest.raises(PydanticValidationError):
            Recommendation(
                user_id="u1",
                product_id="p1",
                score=0.5,
                algorithm="hybrid",
                confidence="medium",
                reason="",
                created_at=NOW,
                expires_at=NOW,
                run_id="run-1",
            )

    def test_is_expired(self):
        rec = make_recommendation()

        assert not rec.is_expired(NOW)
        assert rec.is_expired(NOW + timedelta(hours=24))

    def test_camel_case_serialization(self):
        """Test the API field names."""
        data = make_recommendation().model_dump(by_alias=True, mode="json")

        assert data["productId"] == "p1"
        assert data["algorithm"] == "content-based"
        assert data["confidence"] == "medium"
        assert "expiresAt" in data


class TestRecommendationBatch:
    """Tests for RecommendationBatch schema."""

    def test_valid_batch(self):
        batch = RecommendationBatch(
            user_id="u1",
            run_id="run-1",
            created_at=NOW,
            expires_at=NOW + timedelta(hours=24),
            recommendations=(make_recommendation("p1"), make_recommendation("p2")),
        )
        assert len(batch.recommendations) == 2

    def test_rows_from_another_run_rejected(self):
        with pytest.raises(PydanticValidationError):
            RecommendationBatch(
                user_id="u1",
                run_id="run-1",
                created_at=NOW,
                expires_at=NOW + timedelta(hours=24),
                recommendations=(make_recommendation("p1"), make_recommendation("p2", "run-2")),
            )

    def test_duplicate_products_rejected(self):
        with pytest.raises(PydanticValidationError):
            RecommendationBatch(
                user_id="u1",
                run_id="run-1",
                created_at=NOW,
                expires_at=NOW + timedelta(hours=24),
                recommendations=(make_recommendation("p1"), make_recommendation("p1")),
            )


class TestRecommendationStats:
    def test_distributions_zero_filled(self):
        stats = RecommendationStats(user_id="u1")

        assert stats.algorithm_distribution == {
            "content-based": 0,
            "collaborative": 0,
            "hybrid": 0,
            "popularity": 0,
        }
        assert stats.confidence_distribution == {"low": 0, "medium": 0, "high": 0}


class TestErrors:
    """Tests for the error taxonomy."""

    def test_not_found(self):
        error = NotFoundError("user", "u9")

        assert error.status_code == 404
        assert error.to_dict() == {
            "error": "NotFoundError",
            "message": "User 'u9' not found",
            "details": {"kind": "user", "id": "u9"},
        }

    def test_from_pydantic_lists_fields(self):
        with pytest.raises(PydanticValidationError) as exc_info:
            Interaction(user_id="", product_id="p1", interaction_type="click")

        error = ValidationError.from_pydantic(exc_info.value, "interaction")

        assert error.status_code == 422
        fields = {e["field"] for e in error.details["errors"]}
        assert {"user_id", "interaction_type"} <= fields

    def test_timeout_is_transient(self):
        error = GenerationTimeoutError("u1", 2.0)

        assert isinstance(error, TransientIOError)
        assert error.status_code == 504
        assert error.details["timeout_seconds"] == 2.0
