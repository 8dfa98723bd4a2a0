#!/usr/bin/env python3
"""
Quickstart example for Curio.

This script demonstrates:
1. Seeding the in-memory catalog, users and interactions
2. Generating recommendations (content-based, collaborative, popularity)
3. Reading scores and stats
4. Refreshing expired recommendations
"""

import sys
from datetime import timedelta
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import pandas as pd

from curio.data.catalog import InMemoryProductCatalog
from curio.data.interaction_log import InteractionLog
from curio.data.loader import SeedLoader
from curio.data.preferences import InMemoryPreferenceStore
from curio.data.schemas import utcnow
from curio.monitoring.monitor import GenerationMonitor
from curio.service.orchestrator import RecommendationOrchestrator
from curio.store.recommendation_store import RecommendationStore


def demo_frames() -> dict[str, pd.DataFrame]:
    """Small hand-made shop."""
    products = pd.DataFrame([
        {"product_id": "p1", "name": "iPhone", "category": "electronics", "brand": "Apple", "price": 999.99},
        {"product_id": "p2", "name": "Galaxy", "category": "electronics", "brand": "Samsung", "price": 899.0},
        {"product_id": "p3", "name": "Air Max", "category": "shoes", "brand": "Nike", "price": 129.0, "style": "sporty"},
        {"product_id": "p4", "name": "Ultraboost", "category": "shoes", "brand": "Adidas", "price": 179.0, "style": "sporty"},
        {"product_id": "p5", "name": "Billy", "category": "home", "brand": "Ikea", "price": 59.0, "style": "minimalist"},
    ])
    users = pd.DataFrame({"user_id": ["alice", "bob", "carol", "dave"]})
    preferences = pd.DataFrame([
        {"user_id": "alice", "categories": "electronics", "brands": "Apple", "price_min": 500, "price_max": 1500},
    ])
    interactions = pd.DataFrame([
        {"user_id": "bob", "product_id": "p3", "interaction_type": "purchase"},
        {"user_id": "bob", "product_id": "p4", "interaction_type": "like"},
        {"user_id": "carol", "product_id": "p3", "interaction_type": "like"},
        {"user_id": "carol", "product_id": "p5", "interaction_type": "purchase"},
        {"user_id": "dave", "product_id": "p5", "interaction_type": "view"},
    ])
    return {
        "products": products,
        "users": users,
        "preferences": preferences,
        "interactions": interactions,
    }


def main():
    print("=" * 60)
    print(" Curio Recommendations - Quickstart Demo")
    print("=" * 60)

    # Step 1: Seed collaborators
    print("\n[1/4] Seeding data...")
    preferences = InMemoryPreferenceStore()
    catalog = InMemoryProductCatalog()
    interaction_log = InteractionLog(user_exists=preferences.exists, product_exists=catalog.exists)
    loader = SeedLoader(catalog, preferences, interaction_log)

    frames = demo_frames()
    loader.load_products(df=frames["products"])
    loader.load_users(df=frames["users"])
    loader.load_preferences(df=frames["preferences"])
    loader.load_interactions(df=frames["interactions"])

    # A movable clock lets the demo expire recommendations without waiting a day
    now = [utcnow()]
    store = RecommendationStore(clock=lambda: now[0])
    monitor = GenerationMonitor()
    orchestrator = RecommendationOrchestrator(
        preferences=preferences,
        catalog=catalog,
        interaction_log=interaction_log,
        store=store,
        monitor=monitor,
        clock=lambda: now[0],
    )

    # Step 2: Generate
    print("\n[2/4] Generating recommendations...")
    for user_id in preferences.users():
        recs = orchestrator.generate_recommendations(user_id, limit=3)
        print(f"\n  {user_id}:")
        for rec in recs:
            print(
                f"    {rec.product_id}: {rec.score:.3f} "
                f"[{rec.algorithm.value}, {rec.confidence.value}] {rec.reason}"
            )

    # Step 3: Scores and stats
    print("\n[3/4] Scores and stats...")
    print(f"  alice/p1 score: {orchestrator.get_recommendation_score('alice', 'p1'):.3f}")
    stats = orchestrator.stats("carol")
    print(f"  carol: {stats.total} current, average {stats.average_score:.3f}")
    print(f"  carol algorithms: {stats.algorithm_distribution}")

    # Step 4: Expire and refresh
    print("\n[4/4] Expiring and refreshing...")
    now[0] = now[0] + timedelta(hours=25)
    print(f"  alice/p1 score after expiry: {orchestrator.get_recommendation_score('alice', 'p1'):.3f}")
    refreshed = orchestrator.refresh_expired_recommendations()
    print(f"  Refreshed {refreshed} users")
    print(f"  alice/p1 score after refresh: {orchestrator.get_recommendation_score('alice', 'p1'):.3f}")

    print(f"\n  Generation summary: {monitor.summary()}")
    orchestrator.shutdown()

    print("\n" + "=" * 60)
    print(" Demo complete!")
    print("=" * 60)


if __name__ == "__main__":
    main()
