"""CLI script for getting item recommendations.

Useful for testing and evaluation. Loads the embedding cache straight from
the database, runs a similar-items or personalized query, and prints the
results to the console.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.config import ServiceConfig
from src.exceptions import MarketRecException
from src.recommender.cache import EmbeddingCache
from src.recommender.service import RecommendationService
from src.store.db import create_db_engine
from src.store.item_store import ItemStore
from src.store.like_store import LikeStore
from src.store.models import ItemDisplayRecord

# Setup logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)


def build_service(database_url: str) -> RecommendationService:
    """Wire a RecommendationService against the given database."""
    engine = create_db_engine(database_url)
    item_store = ItemStore(engine)
    cache = EmbeddingCache.from_store(item_store)
    return RecommendationService(cache, item_store, LikeStore(engine))


def print_items(title: str, items: List[ItemDisplayRecord]) -> None:
    print(f"\n{title}")
    if not items:
        print("  (no recommendations available)")
        return
    for rank, item in enumerate(items, start=1):
        print(f"  {rank:>2}. {item.id}  {item.name}  ({item.price}, {item.status})")


def main() -> None:
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="Get item recommendations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/recommend_cli.py --item 3f2a9c
  python scripts/recommend_cli.py --item 3f2a9c --limit 10
  python scripts/recommend_cli.py --user u42
        """
    )

    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--item",
        type=str,
        help="Item ID to find similar items for"
    )
    target.add_argument(
        "--user",
        type=str,
        help="User ID to build personalized recommendations for"
    )

    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Number of recommendations to return"
    )

    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL)"
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    config = ServiceConfig.from_env()

    try:
        service = build_service(args.database_url or config.database_url)

        if args.item:
            limit = args.limit or config.similar_items_limit
            items = service.get_similar_items(args.item, limit)
            title = f"Items similar to {args.item}:"
        else:
            limit = args.limit or config.personalized_limit
            items = service.get_personalized_recommendations(args.user, limit)
            title = f"Recommendations for user {args.user}:"
    except MarketRecException as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)

    print_items(title, items)
    print()


if __name__ == "__main__":
    main()
