"""In-memory embedding cache.

Holds the current embedding of every on-sale item so that ranking never has
to read vectors from the database. The cache is loaded in bulk from the item
store and then kept in step by the write paths: item creation and update call
``set``, purchase calls ``delete``.

Concurrency model:
    A readers/writer lock guards the mapping. ``snapshot`` and ``count`` share
    the lock; ``set``, ``delete`` and the swap step of ``reload`` take it
    exclusively. The store read in ``reload`` happens before the lock is taken,
    so no caller ever waits on I/O while holding it.

Stored vectors are read-only ``float32`` arrays. A snapshot is a new dict over
those arrays, so callers can add or remove keys freely while writes into the
vectors themselves raise ``ValueError``.
"""

import logging
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Union

import numpy as np

from src.exceptions import StoreError
from src.store.item_store import ItemStore, SkippedRow

# Configure module logger
logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Writer-preferring readers/writer lock.

    Any number of readers may hold the lock together. A writer holds it alone,
    and once a writer is waiting no new readers are admitted.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


@dataclass
class ReloadReport:
    """Summary of a completed reload.

    Attributes:
        loaded: Number of entries now in the cache.
        skipped: Stored rows that could not be decoded.
        duration_ms: Wall time of the store read plus swap.
    """

    loaded: int
    skipped: List[SkippedRow] = field(default_factory=list)
    duration_ms: float = 0.0


def _frozen_vector(
    embedding: Optional[Union[np.ndarray, Sequence[float]]]
) -> Optional[np.ndarray]:
    """Copy an embedding into a read-only float32 array.

    None if the embedding is empty or holds NaN or inf.
    """
    if embedding is None:
        return None
    vector = np.array(embedding, dtype=np.float32).ravel()
    if vector.size == 0 or not np.all(np.isfinite(vector)):
        return None
    vector.flags.writeable = False
    return vector


class EmbeddingCache:
    """Thread-safe item ID to embedding mapping mirrored from the item store."""

    def __init__(self, store: ItemStore):
        self._store = store
        self._lock = ReadWriteLock()
        self._data: Dict[str, np.ndarray] = {}

    @classmethod
    def from_store(cls, store: ItemStore) -> "EmbeddingCache":
        """Create a cache and populate it from the store.

        A failed load leaves the cache empty instead of raising, so the service
        can start and serve degraded results until a later reload succeeds.
        """
        cache = cls(store)
        try:
            report = cache.reload()
        except StoreError as e:
            logger.error(
                "Failed to load embeddings on startup; starting with an empty cache",
                extra={"error": e.message},
            )
        else:
            logger.info(
                f"Embedding cache initialized with {report.loaded} items",
                extra={"num_loaded": report.loaded, "num_skipped": len(report.skipped)},
            )
        return cache

    def reload(self) -> ReloadReport:
        """Replace the whole mapping with a fresh load from the store.

        Readers see either the old mapping or the new one, never a mix.

        Returns:
            ReloadReport describing the new contents.

        Raises:
            StoreError: If the store read fails. The previous mapping is kept.
        """
        start_time = time.time()

        result = self._store.load_all_on_sale_embeddings()

        new_data: Dict[str, np.ndarray] = {}
        for item_id, embedding in result.embeddings.items():
            vector = _frozen_vector(embedding)
            if vector is not None:
                new_data[item_id] = vector

        with self._lock.write_locked():
            self._data = new_data

        duration_ms = round((time.time() - start_time) * 1000, 2)
        logger.info(
            f"Embedding cache reloaded: {len(new_data)} items",
            extra={
                "num_loaded": len(new_data),
                "num_skipped": len(result.skipped),
                "duration_ms": duration_ms,
            },
        )

        return ReloadReport(
            loaded=len(new_data),
            skipped=list(result.skipped),
            duration_ms=duration_ms,
        )

    def snapshot(self) -> Dict[str, np.ndarray]:
        """Return a point-in-time copy of the mapping."""
        with self._lock.read_locked():
            return dict(self._data)

    def set(
        self,
        item_id: str,
        embedding: Optional[Union[np.ndarray, Sequence[float]]],
    ) -> bool:
        """Insert or replace one item's embedding.

        A None, empty or non-finite embedding is ignored and any existing
        entry is kept.

        Returns:
            True if the entry was written.
        """
        vector = _frozen_vector(embedding)
        if vector is None:
            logger.debug("Ignoring empty or non-finite embedding", extra={"item_id": item_id})
            return False

        with self._lock.write_locked():
            self._data[item_id] = vector

        logger.info(f"Cache updated for item: {item_id}", extra={"item_id": item_id})
        return True

    def delete(self, item_id: str) -> bool:
        """Remove one item's embedding. Missing IDs are ignored.

        Returns:
            True if an entry was removed.
        """
        with self._lock.write_locked():
            removed = self._data.pop(item_id, None) is not None

        if removed:
            logger.info(f"Cache deleted for item: {item_id}", extra={"item_id": item_id})
        return removed

    def count(self) -> int:
        """Number of cached embeddings."""
        with self._lock.read_locked():
            return len(self._data)
