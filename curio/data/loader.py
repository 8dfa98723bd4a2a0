"""Bulk seed loading of products, users, preferences and interactions."""

from collections.abc import Callable
from pathlib import Path
from typing import Any, Optional

import pandas as pd
from loguru import logger

from curio.data.catalog import InMemoryProductCatalog
from curio.data.interaction_log import InteractionLog
from curio.data.preferences import InMemoryPreferenceStore
from curio.errors import CurioError, ValidationError

# Separator for list-valued preference columns in flat files
LIST_SEPARATOR = "|"

PRODUCT_COLUMNS = ["product_id", "name", "category", "brand", "price"]
PREFERENCE_COLUMNS = ["user_id"]
INTERACTION_COLUMNS = ["user_id", "product_id", "interaction_type"]


def read_frame(
    filepath: Optional[str | Path] = None,
    df: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """Read a CSV or parquet file, or copy a DataFrame."""
    if df is not None:
        return df.copy()
    if filepath is None:
        raise ValueError("Either filepath or df must be provided")

    filepath = Path(filepath)
    if filepath.suffix == ".csv":
        return pd.read_csv(filepath)
    if filepath.suffix == ".parquet":
        return pd.read_parquet(filepath)
    raise ValueError(f"Unsupported file format: {filepath.suffix}")


def _require_columns(df: pd.DataFrame, required: list[str], subject: str) -> None:
    missing = set(required) - set(df.columns)
    if missing:
        raise ValidationError(
            f"Missing required {subject} columns: {sorted(missing)}",
            details={"missing": sorted(missing)},
        )


def _records(df: pd.DataFrame) -> list[dict[str, Any]]:
    """Rows as dicts with missing cells dropped."""
    records = []
    for row in df.to_dict(orient="records"):
        records.append({key: value for key, value in row.items() if not _is_missing(value)})
    return records


def _is_missing(value: Any) -> bool:
    return pd.api.types.is_scalar(value) and bool(pd.isna(value))


def _split_labels(value: Any) -> list[str]:
    if isinstance(value, str):
        return [part for part in value.split(LIST_SEPARATOR) if part.strip()]
    return list(value)


class SeedLoader:
    """
    Load seed data into the in-memory collaborators.

    Every row goes through the pydantic schemas. The first invalid row
    aborts the load with a ``ValidationError`` naming the file and row;
    rows before it stay loaded.

    Expected columns:
        products: product_id, name, category, brand, price [, style, availability]
        users: user_id
        preferences: user_id [, categories, brands, style_preferences, price_min, price_max]
        interactions: user_id, product_id, interaction_type [, interaction_id, occurred_at]
    """

    def __init__(
        self,
        catalog: InMemoryProductCatalog,
        preferences: InMemoryPreferenceStore,
        interaction_log: InteractionLog,
    ) -> None:
        self.catalog = catalog
        self.preferences = preferences
        self.interaction_log = interaction_log

    def _load_rows(
        self,
        rows: list[dict[str, Any]],
        subject: str,
        load_row: Callable[[dict[str, Any]], Any],
    ) -> int:
        for position, row in enumerate(rows):
            try:
                load_row(row)
            except CurioError as e:
                raise ValidationError(
                    f"Invalid {subject} row {position}: {e.message}",
                    details={"row": position, **e.details},
                ) from e
        logger.info(f"Loaded {len(rows)} {subject}")
        return len(rows)

    def load_products(
        self,
        filepath: Optional[str | Path] = None,
        df: Optional[pd.DataFrame] = None,
    ) -> int:
        frame = read_frame(filepath, df)
        _require_columns(frame, PRODUCT_COLUMNS, "product")
        frame["product_id"] = frame["product_id"].astype(str)
        return self._load_rows(_records(frame), "products", self.catalog.add)

    def load_users(
        self,
        filepath: Optional[str | Path] = None,
        df: Optional[pd.DataFrame] = None,
    ) -> int:
        frame = read_frame(filepath, df)
        _require_columns(frame, ["user_id"], "user")
        frame["user_id"] = frame["user_id"].astype(str)
        return self._load_rows(
            _records(frame),
            "users",
            lambda row: self.preferences.register_user(row["user_id"]),
        )

    def load_preferences(
        self,
        filepath: Optional[str | Path] = None,
        df: Optional[pd.DataFrame] = None,
    ) -> int:
        frame = read_frame(filepath, df)
        _require_columns(frame, PREFERENCE_COLUMNS, "preference")
        frame["user_id"] = frame["user_id"].astype(str)

        def load_row(row: dict[str, Any]) -> None:
            payload: dict[str, Any] = {"user_id": row["user_id"]}
            for column in ("categories", "brands", "style_preferences"):
                if column in row:
                    payload[column] = _split_labels(row[column])
            if "price_min" in row or "price_max" in row:
                payload["price_range"] = {
                    "min": row.get("price_min", 0.0),
                    "max": row.get("price_max", 0.0),
                }
            self.preferences.put(payload)

        return self._load_rows(_records(frame), "preferences", load_row)

    def load_interactions(
        self,
        filepath: Optional[str | Path] = None,
        df: Optional[pd.DataFrame] = None,
    ) -> int:
        frame = read_frame(filepath, df)
        if "occurred_at" not in frame.columns and "timestamp" in frame.columns:
            frame = frame.rename(columns={"timestamp": "occurred_at"})
        _require_columns(frame, INTERACTION_COLUMNS, "interaction")

        frame["user_id"] = frame["user_id"].astype(str)
        frame["product_id"] = frame["product_id"].astype(str)
        if "interaction_id" in frame.columns:
            frame["interaction_id"] = frame["interaction_id"].astype(str)
        if "occurred_at" in frame.columns:
            frame["occurred_at"] = pd.to_datetime(frame["occurred_at"], utc=True)
            frame = frame.sort_values("occurred_at")

        return self._load_rows(
            _records(frame), "interactions", self.interaction_log.record_interaction
        )

    def load_directory(self, directory: str | Path) -> dict[str, int]:
        """
        Load every seed file found in a directory.

        Files are looked up as ``<name>.parquet`` then ``<name>.csv`` for
        products, users, preferences and interactions, in that order.
        """
        directory = Path(directory)
        loaders = [
            ("products", self.load_products),
            ("users", self.load_users),
            ("preferences", self.load_preferences),
            ("interactions", self.load_interactions),
        ]

        counts: dict[str, int] = {}
        for name, load in loaders:
            for suffix in (".parquet", ".csv"):
                path = directory / f"{name}{suffix}"
                if path.exists():
                    counts[name] = load(filepath=path)
                    break

        logger.info(f"Seeded from {directory}: {counts}")
        return counts
