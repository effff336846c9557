"""Seed a database with synthetic marketplace data for development.

Creates items with generated names and descriptions (embedded through the
normal write path, so the stored vectors match what the API would produce)
and random likes.

Example:
    Run the script directly to seed the default database:
        $ python scripts/seed_demo_data.py

    Or with custom sizes:
        $ python scripts/seed_demo_data.py --num-items 200 --num-users 30
"""

import argparse
import random
import sys
from pathlib import Path
from typing import List

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.config import ServiceConfig
from src.marketplace.items import ItemWriteService
from src.recommender.cache import EmbeddingCache
from src.recommender.embed import HashingTextEmbedder
from src.store.db import create_db_engine, init_db
from src.store.item_store import ItemStore
from src.store.like_store import LikeStore
from src.store.models import ItemCreateRequest

# Default configuration constants
DEFAULT_NUM_USERS = 20
DEFAULT_NUM_ITEMS = 100
DEFAULT_LIKES_PER_USER = 5
DEFAULT_RANDOM_SEED = 42

CATEGORIES = [
    "camera", "jacket", "sneakers", "novel", "headphones",
    "backpack", "watch", "guitar", "lamp", "board game",
]
ATTRIBUTES = [
    "vintage", "like new", "leather", "wireless", "handmade",
    "compact", "limited edition", "waterproof", "wooden", "retro",
]


def generate_item_requests(num_items: int, rng: random.Random) -> List[ItemCreateRequest]:
    """Generate synthetic item listings.

    Args:
        num_items: Number of listings to generate. Must be positive.
        rng: Random source.

    Returns:
        List of create requests, each with one placeholder image.

    Raises:
        ValueError: If num_items is not positive.
    """
    if num_items <= 0:
        raise ValueError("num_items must be positive")

    requests = []
    for n in range(num_items):
        category = rng.choice(CATEGORIES)
        attributes = rng.sample(ATTRIBUTES, k=rng.randint(1, 3))
        requests.append(
            ItemCreateRequest(
                name=f"{' '.join(attributes)} {category}",
                price=rng.randint(5, 500) * 100,
                description=f"Selling my {category}. {', '.join(attributes)}.",
                image_urls=[f"https://example.com/images/{n}.jpg"],
            )
        )
    return requests


def main() -> None:
    """Seed the database configured by DATABASE_URL (or --database-url)."""
    parser = argparse.ArgumentParser(description="Seed synthetic marketplace data")
    parser.add_argument("--database-url", type=str, default=None)
    parser.add_argument("--num-items", type=int, default=DEFAULT_NUM_ITEMS)
    parser.add_argument("--num-users", type=int, default=DEFAULT_NUM_USERS)
    parser.add_argument("--likes-per-user", type=int, default=DEFAULT_LIKES_PER_USER)
    parser.add_argument("--seed", type=int, default=DEFAULT_RANDOM_SEED)
    args = parser.parse_args()

    config = ServiceConfig.from_env()
    engine = create_db_engine(args.database_url or config.database_url)
    init_db(engine)

    item_store = ItemStore(engine)
    like_store = LikeStore(engine)
    service = ItemWriteService(
        item_store=item_store,
        like_store=like_store,
        cache=EmbeddingCache(item_store),
        embedder=HashingTextEmbedder(embedding_dim=config.embedding_dim),
    )

    rng = random.Random(args.seed)
    user_ids = [f"user{n}" for n in range(1, args.num_users + 1)]

    print(f"Generating {args.num_items} items for {args.num_users} users...")

    try:
        requests = generate_item_requests(args.num_items, rng)
    except ValueError as e:
        print(f"Error generating data: {e}")
        return

    item_ids = [
        service.register_item(rng.choice(user_ids), request) for request in requests
    ]

    num_likes = 0
    for user_id in user_ids:
        for item_id in rng.sample(item_ids, k=min(args.likes_per_user, len(item_ids))):
            like_store.toggle_like(user_id, item_id)
            num_likes += 1

    print(f"\nData generated successfully!")
    print(f"  Items: {len(item_ids)}")
    print(f"  Users: {len(user_ids)}")
    print(f"  Likes: {num_likes}")


if __name__ == "__main__":
    main()
