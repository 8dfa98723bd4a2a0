"""Tests for seed data loading."""

import pandas as pd
import pytest

from curio.data.catalog import InMemoryProductCatalog
from curio.data.interaction_log import InteractionLog
from curio.data.loader import SeedLoader, read_frame
from curio.data.preferences import InMemoryPreferenceStore
from curio.data.schemas import InteractionType
from curio.errors import NotFoundError, ValidationError


@pytest.fixture
def loader():
    preferences = InMemoryPreferenceStore()
    catalog = InMemoryProductCatalog()
    log = InteractionLog(user_exists=preferences.exists, product_exists=catalog.exists)
    return SeedLoader(catalog, preferences, log)


@pytest.fixture
def products_df():
    return pd.DataFrame({
        "product_id": ["p1", "p2", "p3"],
        "name": ["iPhone", "Air Max", "Dune"],
        "category": ["electronics", "shoes", "books"],
        "brand": ["Apple", "Nike", "Ace"],
        "price": [999.99, 129.0, 12.0],
        "style": [None, "sporty", None],
    })


@pytest.fixture
def interactions_df():
    return pd.DataFrame({
        "user_id": ["u1", "u1", "u2"],
        "product_id": ["p1", "p2", "p1"],
        "interaction_type": ["view", "purchase", "like"],
        "timestamp": ["2024-01-02 10:00:00", "2024-01-01 10:00:00", "2024-01-03 10:00:00"],
    })


class TestSeedLoader:
    """Tests for SeedLoader."""

    def test_load_products(self, loader, products_df):
        assert loader.load_products(df=products_df) == 3

        assert loader.catalog.get("p2").style == "sporty"
        assert loader.catalog.get("p1").style is None

    def test_load_users_and_preferences(self, loader):
        loader.load_users(df=pd.DataFrame({"user_id": ["u1", "u2"]}))
        loader.load_preferences(df=pd.DataFrame({
            "user_id": ["u1"],
            "categories": ["electronics|books"],
            "brands": ["Apple"],
            "price_min": [500],
            "price_max": [1500],
        }))

        u1 = loader.preferences.get("u1")
        assert u1.categories == frozenset({"electronics", "books"})
        assert u1.brands == frozenset({"Apple"})
        assert u1.price_range.max == 1500
        assert loader.preferences.get("u2").is_empty()

    def test_numeric_ids_become_strings(self, loader):
        loader.load_users(df=pd.DataFrame({"user_id": [7]}))
        assert loader.preferences.exists("7")

    def test_numeric_interaction_ids_become_strings(self, loader, products_df):
        loader.load_products(df=products_df)
        loader.load_users(df=pd.DataFrame({"user_id": [7]}))

        loaded = loader.load_interactions(df=pd.DataFrame({
            "interaction_id": [1, 2],
            "user_id": [7, 7],
            "product_id": ["p1", "p2"],
            "interaction_type": ["view", "like"],
        }))

        assert loaded == 2
        history = loader.interaction_log.get_user_interactions("7")
        assert sorted(i.interaction_id for i in history) == ["1", "2"]

    def test_load_interactions(self, loader, products_df, interactions_df):
        loader.load_products(df=products_df)
        loader.load_users(df=pd.DataFrame({"user_id": ["u1", "u2"]}))

        assert loader.load_interactions(df=interactions_df) == 3

        history = loader.interaction_log.get_user_interactions("u1")
        assert [i.interaction_type for i in history] == [
            InteractionType.PURCHASE,
            InteractionType.VIEW,
        ]

    def test_unknown_user_aborts_at_row(self, loader, products_df, interactions_df):
        loader.load_products(df=products_df)
        loader.load_users(df=pd.DataFrame({"user_id": ["u1"]}))

        with pytest.raises(ValidationError) as exc_info:
            loader.load_interactions(df=interactions_df)

        assert "row 2" in exc_info.value.message
        assert len(loader.interaction_log) == 2

    def test_invalid_product_row(self, loader, products_df):
        products_df.loc[1, "price"] = -5

        with pytest.raises(ValidationError) as exc_info:
            loader.load_products(df=products_df)

        assert exc_info.value.details["row"] == 1
        with pytest.raises(NotFoundError):
            loader.catalog.get("p2")

    def test_missing_columns(self, loader):
        with pytest.raises(ValidationError):
            loader.load_products(df=pd.DataFrame({"product_id": ["p1"]}))

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / "products.json"
        path.write_text("[]")

        with pytest.raises(ValueError):
            read_frame(path)

    def test_requires_source(self):
        with pytest.raises(ValueError):
            read_frame()

    def test_load_directory(self, loader, products_df, interactions_df, tmp_path):
        products_df.to_csv(tmp_path / "products.csv", index=False)
        pd.DataFrame({"user_id": ["u1", "u2"]}).to_csv(tmp_path / "users.csv", index=False)
        pd.DataFrame({
            "user_id": ["u2"],
            "categories": ["books"],
        }).to_csv(tmp_path / "preferences.csv", index=False)
        interactions_df.to_csv(tmp_path / "interactions.csv", index=False)

        counts = loader.load_directory(tmp_path)

        assert counts == {"products": 3, "users": 2, "preferences": 1, "interactions": 3}
        assert loader.preferences.get("u2").categories == frozenset({"books"})
        assert loader.interaction_log.get_positive_set("u1") == {"p2"}
