"""Item write-path use-cases.

The store is the source of truth; the embedding cache is written through after
every successful store write:

* register / update -> ``cache.set`` with the freshly computed embedding
* purchase          -> ``cache.delete`` once the item is marked sold

Embedding generation is best-effort. If it fails, or the provider returns NaN
or inf, the item is still saved, a warning is logged, and ``cache.set``
receives None (a no-op).

Update and purchase of the same item hold a per-item lock across their store
write and cache call, so the cache applies them in commit order and a sold
item is never cached once its purchase returns.
"""

import logging
import threading
import uuid
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Optional

import numpy as np

from src.exceptions import (
    EmbeddingError,
    InvalidItemRequestError,
    ItemNotFoundError,
    ItemNotOnSaleError,
)
from src.recommender.cache import EmbeddingCache
from src.recommender.embed import HashingTextEmbedder, build_item_text
from src.store.db import STATUS_ON_SALE
from src.store.item_store import ItemStore
from src.store.like_store import LikeStore
from src.store.models import Item, ItemCreateRequest, ItemUpdateRequest

# Configure module logger
logger = logging.getLogger(__name__)

# Number of lock stripes guarding per-item store and cache writes
DEFAULT_LOCK_STRIPES = 64


class ItemWriteService:
    """Item mutations that keep the embedding cache synchronized."""

    def __init__(
        self,
        item_store: ItemStore,
        like_store: LikeStore,
        cache: EmbeddingCache,
        embedder: HashingTextEmbedder,
        lock_stripes: int = DEFAULT_LOCK_STRIPES,
    ):
        self.item_store = item_store
        self.like_store = like_store
        self.cache = cache
        self.embedder = embedder
        self._item_locks = [threading.Lock() for _ in range(max(1, lock_stripes))]

    @contextmanager
    def _item_locked(self, item_id: str) -> Iterator[None]:
        with self._item_locks[hash(item_id) % len(self._item_locks)]:
            yield

    def _generate_embedding(
        self, item_id: str, name: str, description: str
    ) -> Optional[np.ndarray]:
        try:
            embedding = self.embedder.embed(build_item_text(name, description))
        except EmbeddingError as e:
            logger.warning(
                f"Failed to generate embedding: {e.message}",
                extra={"item_id": item_id},
            )
            return None

        embedding = np.asarray(embedding, dtype=np.float32).ravel()
        if embedding.size == 0 or not np.all(np.isfinite(embedding)):
            logger.warning(
                "Embedding provider returned an empty or non-finite vector",
                extra={"item_id": item_id},
            )
            return None
        return embedding

    def register_item(self, user_id: str, request: ItemCreateRequest) -> str:
        """List a new item for sale.

        Args:
            user_id: Seller.
            request: Item fields.

        Returns:
            The new item's ID.

        Raises:
            InvalidItemRequestError: If the request fails validation.
            StoreError: If the insert fails.
        """
        reason = request.validation_error()
        if reason is not None:
            raise InvalidItemRequestError(reason)

        item_id = uuid.uuid4().hex
        embedding = self._generate_embedding(item_id, request.name, request.description)

        now = datetime.now()
        item = Item(
            id=item_id,
            user_id=user_id,
            name=request.name,
            price=request.price,
            description=request.description,
            image_urls=request.image_urls,
            status=STATUS_ON_SALE,
            created_at=now,
            updated_at=now,
        )
        self.item_store.insert_item(item, embedding)

        self.cache.set(item_id, embedding)

        logger.info(
            "Item registered",
            extra={"item_id": item_id, "user_id": user_id, "has_embedding": embedding is not None},
        )
        return item_id

    def update_item(self, item_id: str, user_id: str, request: ItemUpdateRequest) -> None:
        """Edit an item's name, price and description and re-embed it.

        Raises:
            InvalidItemRequestError: If the request fails validation.
            ItemNotFoundError: If the item does not exist.
            NotAuthorizedError: If ``user_id`` is not the seller.
            CannotUpdateSoldItemError: If the item has been sold.
            StoreError: If the update fails.
        """
        reason = request.validation_error()
        if reason is not None:
            raise InvalidItemRequestError(reason)

        embedding = self._generate_embedding(item_id, request.name, request.description)

        with self._item_locked(item_id):
            self.item_store.update_item(
                item_id=item_id,
                user_id=user_id,
                name=request.name,
                price=request.price,
                description=request.description,
                embedding=embedding,
            )
            self.cache.set(item_id, embedding)

        logger.info("Item updated", extra={"item_id": item_id, "user_id": user_id})

    def purchase_item(self, item_id: str, buyer_id: str) -> None:
        """Buy an on-sale item and drop it from the recommendation pool.

        Raises:
            ItemNotFoundError: If the item does not exist.
            ItemNotOnSaleError: If it is already sold.
            StoreError: If the update fails.
        """
        item = self.item_store.get_item(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        if item.status != STATUS_ON_SALE:
            raise ItemNotOnSaleError(item_id)

        with self._item_locked(item_id):
            self.item_store.purchase_item(item_id, buyer_id)
            self.cache.delete(item_id)

        logger.info(
            "Item purchased",
            extra={"item_id": item_id, "buyer_id": buyer_id, "seller_id": item.user_id},
        )

    def toggle_like(self, user_id: str, item_id: str) -> bool:
        """Like or unlike an item.

        Returns:
            True if the item is now liked.

        Raises:
            ItemNotFoundError: If the item does not exist.
            StoreError: If a query fails.
        """
        if self.item_store.get_item(item_id) is None:
            raise ItemNotFoundError(item_id)
        return self.like_store.toggle_like(user_id, item_id)
