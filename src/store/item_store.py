"""Item data-access layer.

All item and embedding queries live here. Embeddings are stored as JSON
arrays in the nullable ``items.embedding`` column and decoded into read-only
``float32`` numpy arrays on the way out.

Connectivity and query failures surface as :class:`StoreError`. Bad stored
data does not: a malformed embedding is skipped (bulk load) or treated as
absent (single lookup), and a warning is logged.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import Engine

from src.exceptions import (
    CannotUpdateSoldItemError,
    ItemNotFoundError,
    ItemNotOnSaleError,
    NotAuthorizedError,
)
from src.store.db import STATUS_ON_SALE, STATUS_SOLD, item_images, items, store_errors
from src.store.models import Item, ItemDisplayRecord

# Configure module logger
logger = logging.getLogger(__name__)


class MalformedEmbeddingError(ValueError):
    """Raised when a stored embedding cannot be decoded into a vector."""


@dataclass(frozen=True)
class SkippedRow:
    """A stored embedding that was left out of a bulk load."""

    item_id: str
    reason: str


@dataclass
class EmbeddingLoadResult:
    """Outcome of a bulk embedding load.

    Attributes:
        embeddings: Item ID to decoded vector for every row that parsed.
        skipped: Rows that were left out, with the reason for each.
    """

    embeddings: Dict[str, np.ndarray] = field(default_factory=dict)
    skipped: List[SkippedRow] = field(default_factory=list)


def encode_embedding(embedding: Optional[Sequence[float]]) -> Optional[str]:
    """Serialize a vector for the embedding column. Empty or None maps to NULL."""
    if embedding is None or len(embedding) == 0:
        return None
    return json.dumps([float(v) for v in embedding])


def decode_embedding(raw: str) -> np.ndarray:
    """Parse a stored embedding.

    Args:
        raw: JSON text from the embedding column.

    Returns:
        1-D float32 array.

    Raises:
        MalformedEmbeddingError: If the value is not a non-empty JSON array of
            finite numbers.
    """
    try:
        values = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise MalformedEmbeddingError(f"invalid JSON: {e}") from e

    if not isinstance(values, list) or not values:
        raise MalformedEmbeddingError("expected a non-empty JSON array")

    if any(isinstance(v, bool) or not isinstance(v, (int, float)) for v in values):
        raise MalformedEmbeddingError("array must contain only numbers")

    vector = np.asarray(values, dtype=np.float32)
    if not np.all(np.isfinite(vector)):
        raise MalformedEmbeddingError("array contains non-finite values")

    return vector


class ItemStore:
    """Queries against the items and item_images tables."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def load_all_on_sale_embeddings(self) -> EmbeddingLoadResult:
        """Load the embedding of every on-sale item that has one.

        Returns:
            EmbeddingLoadResult with the decoded vectors and the rows that
            could not be decoded.

        Raises:
            StoreError: If the query fails.
        """
        stmt = select(items.c.id, items.c.embedding).where(
            items.c.status == STATUS_ON_SALE,
            items.c.embedding.is_not(None),
        )

        with store_errors("load_all_on_sale_embeddings"):
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).all()

        result = EmbeddingLoadResult()
        for item_id, raw in rows:
            try:
                result.embeddings[item_id] = decode_embedding(raw)
            except MalformedEmbeddingError as e:
                logger.warning(
                    f"Skipping malformed embedding for item {item_id}: {e}",
                    extra={"item_id": item_id},
                )
                result.skipped.append(SkippedRow(item_id=item_id, reason=str(e)))

        logger.info(
            "Loaded on-sale embeddings",
            extra={
                "num_loaded": len(result.embeddings),
                "num_skipped": len(result.skipped),
            },
        )
        return result

    def load_one_embedding(self, item_id: str) -> Optional[np.ndarray]:
        """Load one item's embedding regardless of its sale status.

        Returns:
            The vector, or None if the item is missing, has no embedding, or
            its stored embedding is malformed.

        Raises:
            StoreError: If the query fails.
        """
        stmt = select(items.c.embedding).where(items.c.id == item_id)

        with store_errors("load_one_embedding"):
            with self.engine.connect() as conn:
                raw = conn.execute(stmt).scalar_one_or_none()

        if raw is None:
            return None

        try:
            return decode_embedding(raw)
        except MalformedEmbeddingError as e:
            logger.warning(
                f"Ignoring malformed embedding for item {item_id}: {e}",
                extra={"item_id": item_id},
            )
            return None

    def bulk_load_items_by_ids(self, item_ids: Sequence[str]) -> List[ItemDisplayRecord]:
        """Fetch display records for the given IDs in a single query.

        The result order is not guaranteed to match ``item_ids`` and unknown
        IDs are simply absent.
        """
        unique_ids = list(dict.fromkeys(item_ids))
        if not unique_ids:
            return []

        stmt = (
            select(
                items.c.id,
                items.c.name,
                items.c.price,
                items.c.status,
                func.coalesce(func.min(item_images.c.image_url), "").label("image_url"),
            )
            .select_from(items.outerjoin(item_images, items.c.id == item_images.c.item_id))
            .where(items.c.id.in_(unique_ids))
            .group_by(items.c.id, items.c.name, items.c.price, items.c.status)
        )

        with store_errors("bulk_load_items_by_ids"):
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).all()

        return [
            ItemDisplayRecord(
                id=row.id,
                name=row.name,
                price=row.price,
                status=row.status,
                image_url=row.image_url,
            )
            for row in rows
        ]

    def get_item(self, item_id: str) -> Optional[Item]:
        """Fetch a full item record, or None if it does not exist."""
        item_stmt = select(items).where(items.c.id == item_id)
        image_stmt = (
            select(item_images.c.image_url)
            .where(item_images.c.item_id == item_id)
            .order_by(item_images.c.id)
        )

        with store_errors("get_item"):
            with self.engine.connect() as conn:
                row = conn.execute(item_stmt).first()
                if row is None:
                    return None
                image_urls = list(conn.execute(image_stmt).scalars())

        return Item(
            id=row.id,
            user_id=row.user_id,
            name=row.name,
            price=row.price,
            description=row.description or "",
            image_urls=image_urls,
            status=row.status,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def insert_item(self, item: Item, embedding: Optional[Sequence[float]]) -> None:
        """Insert an item and its images in one transaction."""
        with store_errors("insert_item"):
            with self.engine.begin() as conn:
                conn.execute(
                    insert(items).values(
                        id=item.id,
                        user_id=item.user_id,
                        name=item.name,
                        description=item.description,
                        price=item.price,
                        status=item.status,
                        embedding=encode_embedding(embedding),
                        created_at=item.created_at,
                        updated_at=item.updated_at,
                    )
                )
                if item.image_urls:
                    conn.execute(
                        insert(item_images),
                        [
                            {
                                "item_id": item.id,
                                "image_url": url,
                                "created_at": item.created_at,
                            }
                            for url in item.image_urls
                        ],
                    )

        logger.info(
            "Inserted item",
            extra={"item_id": item.id, "has_embedding": embedding is not None},
        )

    def update_item(
        self,
        item_id: str,
        user_id: str,
        name: str,
        price: int,
        description: str,
        embedding: Optional[Sequence[float]],
    ) -> None:
        """Update an item's editable fields.

        When ``embedding`` is None the stored embedding is left as it was.

        Raises:
            ItemNotFoundError: If the item does not exist.
            NotAuthorizedError: If ``user_id`` does not own the item.
            CannotUpdateSoldItemError: If the item has been sold.
            StoreError: If a query fails.
        """
        with store_errors("update_item"):
            with self.engine.begin() as conn:
                row = conn.execute(
                    select(items.c.user_id, items.c.status).where(items.c.id == item_id)
                ).first()

                if row is None:
                    raise ItemNotFoundError(item_id)
                if row.user_id != user_id:
                    raise NotAuthorizedError(item_id, user_id)
                if row.status == STATUS_SOLD:
                    raise CannotUpdateSoldItemError(item_id)

                values = {
                    "name": name,
                    "price": price,
                    "description": description,
                    "updated_at": datetime.now(),
                }
                encoded = encode_embedding(embedding)
                if encoded is not None:
                    values["embedding"] = encoded

                conn.execute(update(items).where(items.c.id == item_id).values(**values))

    def purchase_item(self, item_id: str, buyer_id: str) -> None:
        """Mark an on-sale item as sold to ``buyer_id``.

        Raises:
            ItemNotOnSaleError: If no on-sale item with this ID exists.
            StoreError: If the update fails.
        """
        now = datetime.now()
        stmt = (
            update(items)
            .where(items.c.id == item_id, items.c.status == STATUS_ON_SALE)
            .values(status=STATUS_SOLD, buyer_id=buyer_id, purchased_at=now, updated_at=now)
        )

        with store_errors("purchase_item"):
            with self.engine.begin() as conn:
                result = conn.execute(stmt)
                if result.rowcount == 0:
                    raise ItemNotOnSaleError(item_id)

    def load_items_missing_embeddings(self) -> List[Tuple[str, str, str]]:
        """List ``(id, name, description)`` for items without an embedding."""
        stmt = (
            select(items.c.id, items.c.name, items.c.description)
            .where(items.c.embedding.is_(None))
            .order_by(items.c.created_at)
        )

        with store_errors("load_items_missing_embeddings"):
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).all()

        return [(row.id, row.name, row.description or "") for row in rows]

    def write_embedding(self, item_id: str, embedding: Sequence[float]) -> None:
        """Overwrite one item's stored embedding.

        Raises:
            ItemNotFoundError: If the item does not exist.
            StoreError: If the update fails.
        """
        stmt = (
            update(items)
            .where(items.c.id == item_id)
            .values(embedding=encode_embedding(embedding))
        )

        with store_errors("write_embedding"):
            with self.engine.begin() as conn:
                if conn.execute(stmt).rowcount == 0:
                    raise ItemNotFoundError(item_id)
