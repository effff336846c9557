"""Recommendation service.

Answers the two read-side recommendation queries:

* item-to-item: items whose embeddings are closest to a target item's;
* user-to-item: items closest to the mean embedding of everything a user liked.

Both run the ranking against a snapshot of the embedding cache and finish
with one bulk fetch of display records, reordered to match the ranking.
A missing vector is not an error: it yields an empty list. Store failures
propagate as StoreError.
"""

import logging
import time
from typing import Dict, List, Optional, Sequence

import numpy as np

from src.recommender.cache import EmbeddingCache
from src.recommender.similarity import ItemScore, rank_candidates
from src.store.item_store import ItemStore
from src.store.like_store import LikeStore
from src.store.models import ItemDisplayRecord

# Configure module logger
logger = logging.getLogger(__name__)


def build_preference_vector(
    liked_item_ids: Sequence[str],
    snapshot: Dict[str, np.ndarray],
) -> Optional[np.ndarray]:
    """Average the embeddings of a user's liked items.

    Liked items without a cached embedding are skipped and do not count toward
    the mean. Vectors whose dimension differs from the first contributing
    vector are skipped as well.

    Args:
        liked_item_ids: IDs of the items the user liked.
        snapshot: Cache snapshot to read vectors from.

    Returns:
        The mean vector, or None if no liked item contributed.
    """
    contributing = []
    for item_id in dict.fromkeys(liked_item_ids):
        vector = snapshot.get(item_id)
        if vector is None or len(vector) == 0:
            continue
        if contributing and vector.shape != contributing[0].shape:
            logger.debug(
                "Skipping liked item with mismatched embedding dimension",
                extra={"item_id": item_id},
            )
            continue
        contributing.append(vector)

    if not contributing:
        return None

    return np.mean(np.vstack(contributing).astype(np.float64), axis=0)


class RecommendationService:
    """Embedding-based item recommendations."""

    def __init__(
        self,
        cache: EmbeddingCache,
        item_store: ItemStore,
        like_store: LikeStore,
    ):
        self.cache = cache
        self.item_store = item_store
        self.like_store = like_store

    def get_similar_items(self, item_id: str, limit: int) -> List[ItemDisplayRecord]:
        """Items most similar to ``item_id``, best first.

        The target's vector comes from the cache, or from the store when the
        item is not cached (for example because it has been sold).

        Args:
            item_id: Target item.
            limit: Maximum number of results.

        Returns:
            Display records in rank order. Empty if the target has no
            embedding anywhere.

        Raises:
            StoreError: If the fallback lookup or hydration fails.
        """
        start_time = time.time()
        snapshot = self.cache.snapshot()

        query = snapshot.get(item_id)
        if query is None:
            logger.debug(
                "Target item not cached, falling back to store",
                extra={"item_id": item_id},
            )
            query = self.item_store.load_one_embedding(item_id)
            if query is None:
                logger.info(
                    "No embedding available for target item",
                    extra={"item_id": item_id},
                )
                return []

        ranked = rank_candidates(query, snapshot, limit, exclude=[item_id])
        results = self._hydrate(ranked)

        logger.info(
            "Similar items generated",
            extra={
                "item_id": item_id,
                "num_candidates": len(snapshot),
                "num_recommendations": len(results),
                "total_time_ms": round((time.time() - start_time) * 1000, 2),
            },
        )
        return results

    def get_personalized_recommendations(
        self, user_id: str, limit: int
    ) -> List[ItemDisplayRecord]:
        """Items closest to the mean embedding of the user's likes.

        Items the user already liked are never recommended.

        Args:
            user_id: User to recommend for.
            limit: Maximum number of results.

        Returns:
            Display records in rank order. Empty if the user has no likes or
            none of the liked items has a cached embedding.

        Raises:
            StoreError: If reading likes or hydration fails.
        """
        start_time = time.time()

        liked_item_ids = self.like_store.load_liked_item_ids(user_id)
        if not liked_item_ids:
            logger.info("User has no likes", extra={"user_id": user_id})
            return []

        snapshot = self.cache.snapshot()

        preference = build_preference_vector(liked_item_ids, snapshot)
        if preference is None:
            logger.info(
                "No liked item has an embedding",
                extra={"user_id": user_id, "num_liked": len(liked_item_ids)},
            )
            return []

        ranked = rank_candidates(preference, snapshot, limit, exclude=liked_item_ids)
        results = self._hydrate(ranked)

        logger.info(
            "Personalized recommendations generated",
            extra={
                "user_id": user_id,
                "num_liked": len(liked_item_ids),
                "num_recommendations": len(results),
                "total_time_ms": round((time.time() - start_time) * 1000, 2),
            },
        )
        return results

    def _hydrate(self, ranked: List[ItemScore]) -> List[ItemDisplayRecord]:
        """Fetch display records and put them back in rank order."""
        if not ranked:
            return []

        ranked_ids = [entry.item_id for entry in ranked]
        records = self.item_store.bulk_load_items_by_ids(ranked_ids)
        by_id = {record.id: record for record in records}

        missing = [item_id for item_id in ranked_ids if item_id not in by_id]
        if missing:
            logger.debug(
                "Dropping ranked items missing from the store",
                extra={"missing_item_ids": missing},
            )

        return [by_id[item_id] for item_id in ranked_ids if item_id in by_id]
