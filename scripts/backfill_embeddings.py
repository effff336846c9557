"""Generate embeddings for items that do not have one yet.

Items listed while the embedding provider was unavailable are stored with a
NULL embedding and never show up in recommendations. This script embeds them
and writes the vectors back. Running services pick the new vectors up on
their next cache reload (POST /admin/cache/reload).

Usage:
    python scripts/backfill_embeddings.py
    python scripts/backfill_embeddings.py --database-url sqlite:///data/marketrec.db
    python scripts/backfill_embeddings.py --dry-run
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Tuple

import numpy as np

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.config import ServiceConfig
from src.exceptions import EmbeddingError, MarketRecException
from src.recommender.embed import HashingTextEmbedder, build_item_text
from src.store.db import create_db_engine, init_db
from src.store.item_store import ItemStore

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def backfill_embeddings(
    item_store: ItemStore,
    embedder: HashingTextEmbedder,
    dry_run: bool = False,
) -> Tuple[int, int]:
    """Embed and store every item whose embedding is NULL.

    Args:
        item_store: Store to read from and write to.
        embedder: Text embedder.
        dry_run: Compute embeddings but do not write them.

    Returns:
        Tuple of (success count, failure count).
    """
    pending = item_store.load_items_missing_embeddings()
    logger.info(f"Found {len(pending)} items without embeddings")

    success_count = 0
    fail_count = 0

    for i, (item_id, name, description) in enumerate(pending, start=1):
        logger.info(f"[{i}/{len(pending)}] Processing item: {name} (ID: {item_id})")

        try:
            embedding = embedder.embed(build_item_text(name, description))
        except EmbeddingError as e:
            logger.warning(f"  Failed to generate embedding: {e.message}")
            fail_count += 1
            continue

        embedding = np.asarray(embedding, dtype=np.float32).ravel()
        if embedding.size == 0 or not np.all(np.isfinite(embedding)):
            logger.warning("  Embedding provider returned an empty or non-finite vector")
            fail_count += 1
            continue

        if not dry_run:
            item_store.write_embedding(item_id, embedding)
        success_count += 1

    return success_count, fail_count


def main() -> None:
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="Generate embeddings for items that are missing one",
    )

    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="SQLAlchemy database URL (default: DATABASE_URL or sqlite:///data/marketrec.db)",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute embeddings without writing them",
    )

    args = parser.parse_args()

    config = ServiceConfig.from_env()
    engine = create_db_engine(args.database_url or config.database_url)
    init_db(engine)

    try:
        success_count, fail_count = backfill_embeddings(
            ItemStore(engine),
            HashingTextEmbedder(embedding_dim=config.embedding_dim),
            dry_run=args.dry_run,
        )
    except MarketRecException as e:
        print(f"Error: {e.message}", file=sys.stderr)
        sys.exit(1)

    print(f"\nBackfill finished{' (dry run)' if args.dry_run else ''}:")
    print(f"  Succeeded: {success_count}")
    print(f"  Failed: {fail_count}")

    if fail_count:
        sys.exit(2)


if __name__ == "__main__":
    main()
