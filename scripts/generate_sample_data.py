#!/usr/bin/env python3
"""Generate sample seed data for local development of the Curio API."""

import random
from datetime import datetime, timedelta, timezone
from pathlib import Path

import numpy as np
import pandas as pd

CATEGORIES = [
    "electronics", "clothing", "home", "sports", "books",
    "beauty", "toys", "grocery", "automotive", "health",
]
BRANDS = ["Apple", "Samsung", "Nike", "Adidas", "Ikea", "Lego", "Sony", "Generic"]
STYLES = ["minimalist", "classic", "sporty", "vintage", "modern"]
INTERACTION_TYPES = ["view", "like", "dislike", "purchase"]
INTERACTION_WEIGHTS = [0.65, 0.18, 0.05, 0.12]  # Views most common


def generate_sample_data(
    n_users: int = 200,
    n_products: int = 300,
    n_interactions: int = 5000,
    output_dir: str = "data/sample",
    seed: int = 42,
) -> dict[str, pd.DataFrame]:
    """
    Generate synthetic shop data readable by ``SeedLoader.load_directory``.

    Creates realistic patterns:
    - Power-law distribution for product popularity
    - User activity varies (some users more active)
    - Recent interactions are more frequent
    - About a third of users declare no preferences (cold start)

    Args:
        n_users: Number of users
        n_products: Number of products
        n_interactions: Total number of interactions
        output_dir: Directory to save CSV files
        seed: Random seed for reproducibility

    Returns:
        Dict of products, users, preferences and interactions DataFrames
    """
    random.seed(seed)
    np.random.seed(seed)

    output_path = Path(output_dir)
    output_path.mkdir(parents=True, exist_ok=True)

    products = []
    for i in range(n_products):
        category = random.choice(CATEGORIES)
        products.append({
            "product_id": f"prod_{i:05d}",
            "name": f"Product {i} - {category}",
            "category": category,
            "brand": random.choice(BRANDS),
            "price": round(random.uniform(5, 1500), 2),
            "style": random.choice(STYLES) if random.random() > 0.2 else None,
            "availability": random.random() > 0.05,  # 95% in stock
        })
    products_df = pd.DataFrame(products)

    users_df = pd.DataFrame({"user_id": [f"user_{i:05d}" for i in range(n_users)]})

    preferences = []
    for user_id in users_df["user_id"]:
        if random.random() < 0.33:
            continue
        low = round(random.uniform(0, 500), 2)
        preferences.append({
            "user_id": user_id,
            "categories": "|".join(random.sample(CATEGORIES, random.randint(1, 3))),
            "brands": "|".join(random.sample(BRANDS, random.randint(0, 2))),
            "style_preferences": "|".join(random.sample(STYLES, random.randint(0, 2))),
            "price_min": low,
            "price_max": round(low + random.uniform(50, 1000), 2),
        })
    preferences_df = pd.DataFrame(preferences)

    # Product popularity and user activity follow power laws
    product_popularity = np.random.pareto(1.5, n_products) + 1
    product_popularity = product_popularity / product_popularity.sum()
    user_activity = np.random.pareto(1.2, n_users) + 1
    user_activity = user_activity / user_activity.sum()

    now = datetime.now(timezone.utc)
    interactions = []
    for _ in range(n_interactions):
        user_idx = np.random.choice(n_users, p=user_activity)
        product_idx = np.random.choice(n_products, p=product_popularity)
        days_ago = min(int(np.random.exponential(10)), 60)

        interactions.append({
            "user_id": f"user_{user_idx:05d}",
            "product_id": f"prod_{product_idx:05d}",
            "interaction_type": random.choices(INTERACTION_TYPES, weights=INTERACTION_WEIGHTS)[0],
            "occurred_at": (
                now - timedelta(days=days_ago, minutes=random.randint(0, 1439))
            ).isoformat(),
        })
    interactions_df = pd.DataFrame(interactions)
    interactions_df = interactions_df.sort_values("occurred_at").reset_index(drop=True)

    frames = {
        "products": products_df,
        "users": users_df,
        "preferences": preferences_df,
        "interactions": interactions_df,
    }
    for name, frame in frames.items():
        frame.to_csv(output_path / f"{name}.csv", index=False)

    print(f"Generated data saved to {output_path}/")
    for name, frame in frames.items():
        print(f"  - {len(frame)} {name}")
    print("\nInteraction type distribution:")
    print(interactions_df["interaction_type"].value_counts())

    return frames


if __name__ == "__main__":
    generate_sample_data()
