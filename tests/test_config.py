"""Tests for runtime configuration and logging setup."""

import sys
from datetime import timedelta

import pytest
from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from curio.config import Settings, get_settings
from curio.data.catalog import InMemoryProductCatalog
from curio.data.interaction_log import InteractionLog
from curio.data.preferences import InMemoryPreferenceStore
from curio.log_config import configure_logging
from curio.service.orchestrator import RecommendationOrchestrator
from curio.store.recommendation_store import RecommendationStore


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        settings = Settings()

        assert settings.recommendation_ttl_hours == 24
        assert settings.neighbor_k == 20
        assert settings.popularity_window_days == 7
        assert settings.default_limit == 10
        assert settings.like_weight == 0.6

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("CURIO_NEIGHBOR_K", "5")
        monkeypatch.setenv("CURIO_RECOMMENDATION_TTL_HOURS", "12")

        settings = Settings()

        assert settings.neighbor_k == 5
        assert settings.recommendation_ttl_hours == 12

    def test_content_weights_must_sum_to_one(self):
        with pytest.raises(PydanticValidationError):
            Settings(category_weight=0.5)

    def test_hybrid_weights_must_sum_to_one(self):
        with pytest.raises(PydanticValidationError):
            Settings(content_weight=0.7, collaborative_weight=0.7)

    def test_confidence_order(self):
        with pytest.raises(PydanticValidationError):
            Settings(high_confidence=0.4, medium_confidence=0.5)

    def test_get_settings_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()

    def test_orchestrator_from_settings(self):
        settings = Settings(neighbor_k=3, recommendation_ttl_hours=6, default_limit=5)
        preferences = InMemoryPreferenceStore()
        catalog = InMemoryProductCatalog()

        orchestrator = RecommendationOrchestrator.from_settings(
            settings,
            preferences=preferences,
            catalog=catalog,
            interaction_log=InteractionLog(),
            store=RecommendationStore(),
        )
        try:
            assert orchestrator.collaborative_recommender.k == 3
            assert orchestrator.combiner.ttl == timedelta(hours=6)
            assert orchestrator.default_limit == 5
            assert orchestrator.content_recommender.weights["category"] == 0.35
        finally:
            orchestrator.shutdown()


class TestLogging:
    def test_json_logs(self, capsys):
        configure_logging("INFO", json_logs=True)
        try:
            logger.info("generation committed")
            captured = capsys.readouterr()
            assert '"message": "generation committed"' in captured.err
        finally:
            logger.remove()
            logger.add(sys.__stderr__, level="INFO")
