"""Database engine and schema definitions."""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from src.exceptions import StoreError

# Configure module logger
logger = logging.getLogger(__name__)

STATUS_ON_SALE = "ON_SALE"
STATUS_SOLD = "SOLD"

metadata = MetaData()

items = Table(
    "items",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("user_id", String(64), nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("description", Text, nullable=False, default=""),
    Column("price", Integer, nullable=False),
    Column("status", String(16), nullable=False, default=STATUS_ON_SALE, index=True),
    # JSON array of floats; NULL until an embedding has been generated
    Column("embedding", Text, nullable=True),
    Column("buyer_id", String(64), nullable=True),
    Column("purchased_at", DateTime, nullable=True),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

item_images = Table(
    "item_images",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("item_id", String(64), ForeignKey("items.id"), nullable=False, index=True),
    Column("image_url", Text, nullable=False),
    Column("created_at", DateTime, nullable=False),
)

likes = Table(
    "likes",
    metadata,
    Column("user_id", String(64), primary_key=True),
    Column("item_id", String(64), ForeignKey("items.id"), primary_key=True),
    Column("created_at", DateTime, nullable=False),
)


def create_db_engine(database_url: str) -> Engine:
    """Create a SQLAlchemy engine for the given URL.

    SQLite file databases get their parent directory created, and SQLite
    connections are allowed to cross threads since requests are served from
    a thread pool.

    Args:
        database_url: SQLAlchemy database URL.

    Returns:
        Configured Engine.
    """
    url = make_url(database_url)
    connect_args = {}

    if url.get_backend_name() == "sqlite":
        connect_args["check_same_thread"] = False
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Creating database engine for {url.render_as_string(hide_password=True)}")
    return create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)


def init_db(engine: Engine) -> None:
    """Create any missing tables."""
    metadata.create_all(engine)
    logger.info("Database schema initialized")


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate SQLAlchemy failures inside the block into StoreError."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(
            "Store operation failed",
            extra={
                "operation": operation,
                "error": str(e),
                "error_type": type(e).__name__,
            },
        )
        raise StoreError(operation, e) from e
