"""Tests for the item write paths and their cache write-through."""

import sys
import threading
from pathlib import Path

import numpy as np
import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.exceptions import (
    EmbeddingError,
    InvalidItemRequestError,
    ItemNotFoundError,
    ItemNotOnSaleError,
    NotAuthorizedError,
)
from src.marketplace.items import ItemWriteService
from src.recommender.cache import EmbeddingCache
from src.store.db import STATUS_SOLD, create_db_engine, init_db
from src.store.item_store import ItemStore
from src.store.like_store import LikeStore
from src.store.models import ItemCreateRequest, ItemUpdateRequest


class KeywordEmbedder:
    """Deterministic two-dimensional embedder for tests.

    "camera" maps to [1, 0], "guitar" to [0, 1]; text containing "fail"
    raises EmbeddingError and "broken" yields a NaN vector.
    """

    def embed(self, text):
        if "fail" in text:
            raise EmbeddingError("provider unavailable")
        if "broken" in text:
            return np.array([np.nan, 1.0], dtype=np.float32)
        if "camera" in text:
            return np.array([1.0, 0.0], dtype=np.float32)
        if "guitar" in text:
            return np.array([0.0, 1.0], dtype=np.float32)
        return np.array([0.5, 0.5], dtype=np.float32)


@pytest.fixture
def engine(tmp_path):
    engine = create_db_engine(f"sqlite:///{tmp_path / 'items.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def item_store(engine):
    return ItemStore(engine)


@pytest.fixture
def cache(item_store):
    return EmbeddingCache.from_store(item_store)


@pytest.fixture
def service(engine, item_store, cache):
    return ItemWriteService(
        item_store=item_store,
        like_store=LikeStore(engine),
        cache=cache,
        embedder=KeywordEmbedder(),
    )


def create_request(name="camera", **overrides):
    fields = {
        "name": name,
        "price": 1500,
        "description": "",
        "image_urls": ["https://img/1.jpg"],
    }
    fields.update(overrides)
    return ItemCreateRequest(**fields)


class TestRegisterItem:
    def test_register_stores_item_and_sets_cache(self, service, item_store, cache):
        item_id = service.register_item("seller", create_request("old camera"))

        assert item_store.get_item(item_id).name == "old camera"
        assert item_store.load_one_embedding(item_id).tolist() == [1.0, 0.0]
        assert cache.snapshot()[item_id].tolist() == [1.0, 0.0]

    def test_generated_ids_are_unique(self, service):
        ids = {service.register_item("seller", create_request()) for _ in range(5)}
        assert len(ids) == 5

    def test_embedding_failure_still_saves_item(self, service, item_store, cache):
        """The item is listed without an embedding and the cache is untouched."""
        item_id = service.register_item("seller", create_request("fail camera"))

        assert item_store.get_item(item_id) is not None
        assert item_store.load_one_embedding(item_id) is None
        assert item_id not in cache.snapshot()
        assert [row[0] for row in item_store.load_items_missing_embeddings()] == [item_id]

    def test_non_finite_embedding_treated_as_failure(self, service, item_store, cache):
        item_id = service.register_item("seller", create_request("broken camera"))

        assert item_store.get_item(item_id) is not None
        assert item_store.load_one_embedding(item_id) is None
        assert item_id not in cache.snapshot()

    @pytest.mark.parametrize(
        "overrides",
        [
            {"name": "   "},
            {"price": -1},
            {"image_urls": []},
            {"image_urls": [f"https://img/{n}.jpg" for n in range(10)]},
        ],
    )
    def test_invalid_request_rejected(self, service, cache, overrides):
        with pytest.raises(InvalidItemRequestError):
            service.register_item("seller", create_request(**overrides))
        assert cache.count() == 0


class TestUpdateItem:
    def test_update_replaces_cached_embedding(self, service, item_store, cache):
        item_id = service.register_item("seller", create_request("camera"))

        service.update_item(item_id, "seller", ItemUpdateRequest(name="guitar", price=900))

        assert cache.snapshot()[item_id].tolist() == [0.0, 1.0]
        assert item_store.load_one_embedding(item_id).tolist() == [0.0, 1.0]
        assert item_store.get_item(item_id).price == 900

    def test_update_embedding_failure_keeps_previous_vector(self, service, item_store, cache):
        item_id = service.register_item("seller", create_request("camera"))

        service.update_item(
            item_id, "seller", ItemUpdateRequest(name="fail", price=900, description="x")
        )

        assert item_store.get_item(item_id).name == "fail"
        assert cache.snapshot()[item_id].tolist() == [1.0, 0.0]
        assert item_store.load_one_embedding(item_id).tolist() == [1.0, 0.0]

    def test_rejected_update_leaves_cache_alone(self, service, cache):
        item_id = service.register_item("seller", create_request("camera"))

        with pytest.raises(NotAuthorizedError):
            service.update_item(item_id, "intruder", ItemUpdateRequest(name="guitar", price=1))
        with pytest.raises(InvalidItemRequestError):
            service.update_item(item_id, "seller", ItemUpdateRequest(name="guitar", price=0))

        assert cache.snapshot()[item_id].tolist() == [1.0, 0.0]


class TestPurchaseItem:
    def test_purchase_during_update_leaves_item_uncached(
        self, service, item_store, cache, monkeypatch
    ):
        """A purchase committed right after an update's store write wins in the cache."""
        item_id = service.register_item("seller", create_request("camera"))
        real_update = item_store.update_item
        purchased = threading.Event()
        buyers = []

        def buy():
            service.purchase_item(item_id, "buyer")
            purchased.set()

        def update_then_race(**kwargs):
            real_update(**kwargs)
            buyer = threading.Thread(target=buy)
            buyer.start()
            buyers.append(buyer)
            # The purchase must wait for this update to reach the cache
            assert not purchased.wait(timeout=0.2)

        monkeypatch.setattr(item_store, "update_item", update_then_race)

        service.update_item(item_id, "seller", ItemUpdateRequest(name="guitar", price=900))
        for buyer in buyers:
            buyer.join(timeout=5)

        assert purchased.is_set()
        assert item_store.get_item(item_id).status == STATUS_SOLD
        assert item_id not in cache.snapshot()

    def test_purchase_deletes_from_cache(self, service, item_store, cache):
        item_id = service.register_item("seller", create_request("camera"))
        other_id = service.register_item("seller", create_request("guitar"))

        service.purchase_item(item_id, "buyer")

        assert item_store.get_item(item_id).status == STATUS_SOLD
        assert item_id not in cache.snapshot()
        assert other_id in cache.snapshot()
        # Stored embedding survives for item-to-item fallback
        assert item_store.load_one_embedding(item_id).tolist() == [1.0, 0.0]

    def test_purchase_twice_rejected(self, service, cache):
        item_id = service.register_item("seller", create_request())
        service.purchase_item(item_id, "buyer")

        with pytest.raises(ItemNotOnSaleError):
            service.purchase_item(item_id, "buyer2")

    def test_purchase_missing_item(self, service):
        with pytest.raises(ItemNotFoundError):
            service.purchase_item("missing", "buyer")

    def test_reload_after_purchase_excludes_sold_item(self, service, cache):
        item_id = service.register_item("seller", create_request())
        service.purchase_item(item_id, "buyer")

        cache.reload()

        assert item_id not in cache.snapshot()


class TestToggleLike:
    def test_toggle_like(self, service):
        item_id = service.register_item("seller", create_request())

        assert service.toggle_like("u1", item_id) is True
        assert service.toggle_like("u1", item_id) is False

    def test_like_missing_item(self, service):
        with pytest.raises(ItemNotFoundError):
            service.toggle_like("u1", "missing")
