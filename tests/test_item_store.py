"""Tests for the SQLAlchemy-backed item and like stores.

Each test gets its own SQLite database file under pytest's tmp_path.
"""

import sys
from datetime import datetime
from pathlib import Path

import numpy as np
import pytest
from sqlalchemy import update

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.exceptions import (
    CannotUpdateSoldItemError,
    ItemNotFoundError,
    ItemNotOnSaleError,
    NotAuthorizedError,
    StoreError,
)
from src.store.db import STATUS_ON_SALE, STATUS_SOLD, create_db_engine, init_db, items
from src.store.item_store import (
    ItemStore,
    MalformedEmbeddingError,
    SkippedRow,
    decode_embedding,
    encode_embedding,
)
from src.store.like_store import LikeStore
from src.store.models import Item


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'store.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def item_store(engine):
    return ItemStore(engine)


def make_item(item_id, user_id="seller", name=None, image_urls=None, created_at=None):
    now = created_at or datetime(2024, 1, 1, 12, 0, 0)
    return Item(
        id=item_id,
        user_id=user_id,
        name=name or f"Item {item_id}",
        price=1000,
        description=f"Description of {item_id}",
        image_urls=image_urls if image_urls is not None else [f"https://img/{item_id}/1.jpg"],
        created_at=now,
        updated_at=now,
    )


def set_raw_embedding(engine, item_id, raw):
    with engine.begin() as conn:
        conn.execute(update(items).where(items.c.id == item_id).values(embedding=raw))


class TestEmbeddingCodec:
    def test_encode_none_and_empty(self):
        assert encode_embedding(None) is None
        assert encode_embedding([]) is None

    def test_encode_numpy_array(self):
        assert encode_embedding(np.array([0.5, -1.0], dtype=np.float32)) == "[0.5, -1.0]"

    def test_decode_valid(self):
        vector = decode_embedding("[0.5, -1, 2.25]")

        assert vector.dtype == np.float32
        assert vector.tolist() == [0.5, -1.0, 2.25]

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "{}",
            '{"a": 1}',
            "[]",
            "3.5",
            '[1, "two", 3]',
            "[true, false]",
            "[1, null]",
            "[[1, 2], [3, 4]]",
            "[1, NaN]",
            "[Infinity]",
        ],
    )
    def test_decode_malformed(self, raw):
        with pytest.raises(MalformedEmbeddingError):
            decode_embedding(raw)


class TestLoadEmbeddings:
    def test_loads_only_on_sale_items_with_embeddings(self, engine, item_store):
        item_store.insert_item(make_item("a"), [1.0, 0.0])
        item_store.insert_item(make_item("b"), [0.0, 1.0])
        item_store.insert_item(make_item("no-embedding"), None)
        item_store.insert_item(make_item("sold"), [1.0, 1.0])
        item_store.purchase_item("sold", "buyer")

        result = item_store.load_all_on_sale_embeddings()

        assert {k: v.tolist() for k, v in result.embeddings.items()} == {
            "a": [1.0, 0.0],
            "b": [0.0, 1.0],
        }
        assert result.skipped == []

    def test_malformed_rows_skipped_not_fatal(self, engine, item_store):
        item_store.insert_item(make_item("good"), [1.0, 0.0])
        item_store.insert_item(make_item("bad"), None)
        item_store.insert_item(make_item("empty"), None)
        set_raw_embedding(engine, "bad", "{corrupt")
        set_raw_embedding(engine, "empty", "[]")

        result = item_store.load_all_on_sale_embeddings()

        assert list(result.embeddings) == ["good"]
        assert sorted(row.item_id for row in result.skipped) == ["bad", "empty"]
        assert all(isinstance(row, SkippedRow) and row.reason for row in result.skipped)

    def test_load_one_ignores_status(self, item_store):
        item_store.insert_item(make_item("sold"), [0.25, 0.75])
        item_store.purchase_item("sold", "buyer")

        assert item_store.load_one_embedding("sold").tolist() == [0.25, 0.75]

    def test_load_one_absent(self, engine, item_store):
        item_store.insert_item(make_item("no-embedding"), None)
        item_store.insert_item(make_item("bad"), None)
        set_raw_embedding(engine, "bad", "oops")

        assert item_store.load_one_embedding("missing") is None
        assert item_store.load_one_embedding("no-embedding") is None
        assert item_store.load_one_embedding("bad") is None

    def test_query_failure_raises_store_error(self, tmp_path):
        # No schema: every query fails
        store = ItemStore(create_db_engine(f"sqlite:///{tmp_path / 'empty.db'}"))

        with pytest.raises(StoreError) as exc_info:
            store.load_all_on_sale_embeddings()

        assert exc_info.value.status_code == 503
        assert exc_info.value.details["operation"] == "load_all_on_sale_embeddings"

        with pytest.raises(StoreError):
            store.load_one_embedding("a")


class TestBulkLoad:
    def test_returns_display_records(self, item_store):
        item_store.insert_item(
            make_item("a", image_urls=["https://img/a/1.jpg", "https://img/a/2.jpg"]), None
        )
        item_store.insert_item(make_item("b", image_urls=[]), None)

        records = {r.id: r for r in item_store.bulk_load_items_by_ids(["a", "b"])}

        assert records["a"].name == "Item a"
        assert records["a"].price == 1000
        assert records["a"].status == STATUS_ON_SALE
        assert records["a"].image_url == "https://img/a/1.jpg"
        assert records["b"].image_url == ""

    def test_unknown_and_duplicate_ids(self, item_store):
        item_store.insert_item(make_item("a"), None)

        records = item_store.bulk_load_items_by_ids(["a", "missing", "a"])

        assert [r.id for r in records] == ["a"]

    def test_empty_input(self, item_store):
        assert item_store.bulk_load_items_by_ids([]) == []


class TestWrites:
    def test_insert_and_get_item(self, item_store):
        item_store.insert_item(
            make_item("a", image_urls=["https://img/1.jpg", "https://img/2.jpg"]), [1.0]
        )

        item = item_store.get_item("a")

        assert item.user_id == "seller"
        assert item.image_urls == ["https://img/1.jpg", "https://img/2.jpg"]
        assert item.status == STATUS_ON_SALE
        assert item_store.get_item("missing") is None

    def test_update_item_replaces_embedding(self, item_store):
        item_store.insert_item(make_item("a"), [1.0, 0.0])

        item_store.update_item("a", "seller", "Renamed", 2500, "new text", [0.0, 1.0])

        item = item_store.get_item("a")
        assert item.name == "Renamed"
        assert item.price == 2500
        assert item.description == "new text"
        assert item_store.load_one_embedding("a").tolist() == [0.0, 1.0]

    def test_update_without_embedding_keeps_stored_one(self, item_store):
        item_store.insert_item(make_item("a"), [1.0, 0.0])

        item_store.update_item("a", "seller", "Renamed", 2500, "", None)

        assert item_store.load_one_embedding("a").tolist() == [1.0, 0.0]

    def test_update_errors(self, item_store):
        item_store.insert_item(make_item("a"), None)
        item_store.insert_item(make_item("sold"), None)
        item_store.purchase_item("sold", "buyer")

        with pytest.raises(ItemNotFoundError):
            item_store.update_item("missing", "seller", "x", 1, "", None)
        with pytest.raises(NotAuthorizedError):
            item_store.update_item("a", "someone-else", "x", 1, "", None)
        with pytest.raises(CannotUpdateSoldItemError):
            item_store.update_item("sold", "seller", "x", 1, "", None)

        assert item_store.get_item("a").name == "Item a"

    def test_purchase_item(self, item_store):
        item_store.insert_item(make_item("a"), [1.0])

        item_store.purchase_item("a", "buyer")

        assert item_store.get_item("a").status == STATUS_SOLD
        with pytest.raises(ItemNotOnSaleError):
            item_store.purchase_item("a", "buyer2")
        with pytest.raises(ItemNotOnSaleError):
            item_store.purchase_item("missing", "buyer")

    def test_backfill_helpers(self, item_store):
        item_store.insert_item(make_item("old", created_at=datetime(2024, 1, 1)), None)
        item_store.insert_item(make_item("new", created_at=datetime(2024, 2, 1)), None)
        item_store.insert_item(make_item("done"), [1.0])

        pending = item_store.load_items_missing_embeddings()
        assert [row[0] for row in pending] == ["old", "new"]
        assert pending[0] == ("old", "Item old", "Description of old")

        item_store.write_embedding("old", [0.5, 0.5])
        assert item_store.load_one_embedding("old").tolist() == [0.5, 0.5]
        assert [row[0] for row in item_store.load_items_missing_embeddings()] == ["new"]

        with pytest.raises(ItemNotFoundError):
            item_store.write_embedding("missing", [1.0])


class TestLikeStore:
    def test_toggle_and_load(self, engine, item_store):
        for item_id in ("a", "b"):
            item_store.insert_item(make_item(item_id), None)
        like_store = LikeStore(engine)

        assert like_store.load_liked_item_ids("u1") == []
        assert like_store.toggle_like("u1", "a") is True
        assert like_store.toggle_like("u1", "b") is True
        assert sorted(like_store.load_liked_item_ids("u1")) == ["a", "b"]

        assert like_store.toggle_like("u1", "a") is False
        assert like_store.load_liked_item_ids("u1") == ["b"]
        assert like_store.load_liked_item_ids("u2") == []
