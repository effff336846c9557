"""Like data-access layer."""

import logging
from datetime import datetime
from typing import List

from sqlalchemy import delete, insert, select
from sqlalchemy.engine import Engine

from src.store.db import likes, store_errors

# Configure module logger
logger = logging.getLogger(__name__)


class LikeStore:
    """Queries against the likes table."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def load_liked_item_ids(self, user_id: str) -> List[str]:
        """Return the IDs of items ``user_id`` has liked, newest first."""
        stmt = (
            select(likes.c.item_id)
            .where(likes.c.user_id == user_id)
            .order_by(likes.c.created_at.desc(), likes.c.item_id)
        )

        with store_errors("load_liked_item_ids"):
            with self.engine.connect() as conn:
                return list(conn.execute(stmt).scalars())

    def toggle_like(self, user_id: str, item_id: str) -> bool:
        """Like the item, or remove the like if it already exists.

        Returns:
            True if the item is liked after the call, False if it was unliked.
        """
        where = (likes.c.user_id == user_id) & (likes.c.item_id == item_id)

        with store_errors("toggle_like"):
            with self.engine.begin() as conn:
                exists = conn.execute(select(likes.c.item_id).where(where)).first()
                if exists is not None:
                    conn.execute(delete(likes).where(where))
                    liked = False
                else:
                    conn.execute(
                        insert(likes).values(
                            user_id=user_id, item_id=item_id, created_at=datetime.now()
                        )
                    )
                    liked = True

        logger.debug(
            "Toggled like",
            extra={"user_id": user_id, "item_id": item_id, "liked": liked},
        )
        return liked
