"""Tests for the interaction log."""

from datetime import datetime, timedelta, timezone

import pytest

from curio.data.interaction_log import FRAME_COLUMNS, InteractionLog
from curio.data.schemas import Interaction, InteractionType
from curio.errors import ValidationError

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def log():
    users = {"u1", "u2", "u3"}
    products = {"p1", "p2", "p3"}
    return InteractionLog(
        user_exists=users.__contains__,
        product_exists=products.__contains__,
        clock=lambda: NOW,
    )


def record(log, user_id, product_id, kind, hours_ago=1, **kwargs):
    return log.record_interaction(
        Interaction(
            user_id=user_id,
            product_id=product_id,
            interaction_type=kind,
            occurred_at=NOW - timedelta(hours=hours_ago),
            **kwargs,
        )
    )


class TestRecording:
    """Tests for writes."""

    def test_record_and_read(self, log):
        record(log, "u1", "p1", "view", hours_ago=2)
        record(log, "u1", "p2", "like", hours_ago=1)

        interactions = log.get_user_interactions("u1")

        assert [i.product_id for i in interactions] == ["p1", "p2"]
        assert len(log) == 2

    def test_record_from_mapping(self, log):
        stored = log.record_interaction(
            {"user_id": "u1", "product_id": "p1", "interaction_type": "purchase"}
        )
        assert stored.interaction_type == InteractionType.PURCHASE

    def test_malformed_payload(self, log):
        with pytest.raises(ValidationError) as exc_info:
            log.record_interaction(
                {"user_id": "u1", "product_id": "p1", "interaction_type": "click"}
            )

        assert exc_info.value.details["errors"][0]["field"] == "interaction_type"
        assert len(log) == 0

    def test_unknown_user_rejected(self, log):
        with pytest.raises(ValidationError):
            record(log, "ghost", "p1", "view")
        assert len(log) == 0

    def test_unknown_product_rejected(self, log):
        with pytest.raises(ValidationError):
            record(log, "u1", "p404", "view")
        assert len(log) == 0

    def test_duplicate_id_rejected(self, log):
        record(log, "u1", "p1", "view", interaction_id="i1")
        with pytest.raises(ValidationError):
            record(log, "u1", "p2", "view", interaction_id="i1")

    def test_version_bumps_on_writes(self, log):
        assert log.version == 0
        stored = record(log, "u1", "p1", "view")
        assert log.version == 1

        assert log.delete_interaction(stored.interaction_id)
        assert log.version == 2
        assert not log.delete_interaction(stored.interaction_id)
        assert log.version == 2


class TestReads:
    """Tests for per-user and global reads."""

    def test_interacted_and_positive_sets(self, log):
        record(log, "u1", "p1", "view")
        record(log, "u1", "p2", "like")
        record(log, "u1", "p3", "dislike")

        assert log.get_interacted_products("u1") == {"p1", "p2", "p3"}
        assert log.get_positive_set("u1") == {"p2"}

    def test_purchase_outranks_like(self, log):
        record(log, "u1", "p1", "purchase", hours_ago=3)
        record(log, "u1", "p1", "like", hours_ago=1)
        record(log, "u2", "p1", "like", hours_ago=2)
        record(log, "u2", "p1", "purchase", hours_ago=1)

        profiles = log.get_all_users_positive_profiles()

        assert profiles["u1"]["p1"] == InteractionType.PURCHASE
        assert profiles["u2"]["p1"] == InteractionType.PURCHASE

    def test_users_without_positive_interactions_omitted(self, log):
        record(log, "u1", "p1", "view")
        record(log, "u2", "p2", "like")

        assert log.get_all_users_positive_sets() == {"u2": {"p2"}}

    def test_to_frame(self, log):
        record(log, "u1", "p1", "view")
        df = log.to_frame()

        assert list(df.columns) == FRAME_COLUMNS
        assert len(df) == 1
        assert str(df["occurred_at"].dt.tz) == "UTC"

    def test_empty_frame(self, log):
        df = log.to_frame()
        assert df.empty
        assert list(df.columns) == FRAME_COLUMNS


class TestAggregates:
    """Tests for popularity and analytics."""

    def test_popularity_counts_exclude_dislikes(self, log):
        record(log, "u1", "p1", "purchase")
        record(log, "u2", "p1", "view")
        record(log, "u3", "p2", "dislike")

        assert log.popularity_counts() == {"p1": 2}

    def test_popularity_window(self, log):
        record(log, "u1", "p1", "purchase", hours_ago=24 * 10)
        record(log, "u2", "p2", "purchase", hours_ago=1)

        assert log.popularity_counts(since=NOW - timedelta(days=7)) == {"p2": 1}

    def test_top_products(self, log):
        record(log, "u1", "p2", "view")
        record(log, "u2", "p2", "like")
        record(log, "u3", "p1", "view")
        record(log, "u3", "p3", "view")

        assert log.top_products(limit=2) == [("p2", 2), ("p1", 1)]

    def test_user_stats(self, log):
        record(log, "u1", "p1", "view", hours_ago=30)
        record(log, "u1", "p1", "purchase", hours_ago=1)
        record(log, "u1", "p2", "like", hours_ago=1)
        record(log, "u1", "p3", "dislike", hours_ago=1)

        stats = log.user_stats("u1")

        assert stats.total_interactions == 4
        assert stats.views == 1
        assert stats.likes == 1
        assert stats.dislikes == 1
        assert stats.purchases == 1
        assert stats.unique_products == 3
        assert stats.active_days == 2
        assert stats.conversion_rate == pytest.approx(0.25)

    def test_product_stats(self, log):
        record(log, "u1", "p1", "view", hours_ago=3)
        record(log, "u1", "p1", "purchase", hours_ago=2)
        record(log, "u2", "p1", "dislike", hours_ago=1)
        record(log, "u2", "p2", "like")

        stats = log.product_stats("p1")

        assert stats.total_interactions == 3
        assert stats.views == 1
        assert stats.purchases == 1
        assert stats.dislikes == 1
        assert stats.likes == 0
        assert stats.unique_users == 2
        assert stats.conversion_rate == pytest.approx(1 / 3)
        assert [i.interaction_type for i in log.get_product_interactions("p1")] == [
            InteractionType.VIEW,
            InteractionType.PURCHASE,
            InteractionType.DISLIKE,
        ]

    def test_product_stats_empty(self, log):
        stats = log.product_stats("p9")

        assert stats.total_interactions == 0
        assert stats.conversion_rate == 0.0

    def test_user_stats_empty(self, log):
        stats = log.user_stats("u1")

        assert stats.total_interactions == 0
        assert stats.conversion_rate == 0.0
