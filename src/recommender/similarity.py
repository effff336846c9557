"""Cosine similarity and top-N ranking over embedding vectors.

Everything here is pure and in-memory. Degenerate inputs score 0.0 instead
of raising: empty or zero vectors, vectors holding NaN or inf, and vectors
whose dimension differs from the query. A bad vector can only push an item
down the ranking, never break it.
"""

import logging
from typing import Iterable, List, Mapping, NamedTuple, Sequence, Union

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity as pairwise_cosine_similarity

# Configure module logger
logger = logging.getLogger(__name__)

Vector = Union[np.ndarray, Sequence[float]]


class ItemScore(NamedTuple):
    """An item ID with its similarity to the query vector."""

    item_id: str
    score: float


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Cosine similarity of two vectors.

    Args:
        a: First vector.
        b: Second vector.

    Returns:
        Similarity in [-1, 1]. 0.0 when the vectors differ in length, either
        one is empty, or either one has zero magnitude.

    Example:
        >>> round(cosine_similarity([1, 0], [0.9, 0.1]), 3)
        0.994
    """
    a = np.asarray(a, dtype=np.float64).ravel()
    b = np.asarray(b, dtype=np.float64).ravel()

    if a.size == 0 or a.size != b.size:
        return 0.0

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0

    similarity = float(np.dot(a, b) / (norm_a * norm_b))
    if not np.isfinite(similarity):
        return 0.0
    return min(1.0, max(-1.0, similarity))


def rank_candidates(
    query: Vector,
    candidates: Mapping[str, Vector],
    limit: int,
    exclude: Iterable[str] = (),
) -> List[ItemScore]:
    """Rank candidates by cosine similarity to the query.

    Candidates in ``exclude`` are dropped before scoring. Scores are sorted
    in descending order; equal scores are ordered by ascending item ID.

    Args:
        query: Query vector.
        candidates: Item ID to vector.
        limit: Maximum number of results.
        exclude: Item IDs that must not appear in the output.

    Returns:
        Up to ``limit`` ItemScore entries, best first. Empty if ``limit`` is
        not positive or no candidate remains after exclusion.
    """
    if limit <= 0:
        return []

    excluded = set(exclude)
    item_ids = sorted(item_id for item_id in candidates if item_id not in excluded)
    if not item_ids:
        return []

    query = np.asarray(query, dtype=np.float64).ravel()
    scores = np.zeros(len(item_ids), dtype=np.float64)

    # Only finite candidates with the query's dimension can score above zero
    matching = []
    rows = []
    for idx, item_id in enumerate(item_ids):
        row = np.asarray(candidates[item_id], dtype=np.float64).ravel()
        if row.shape == query.shape and np.all(np.isfinite(row)):
            matching.append(idx)
            rows.append(row)

    query_usable = (
        query.size > 0 and np.all(np.isfinite(query)) and np.linalg.norm(query) > 0
    )

    if query_usable and matching:
        matrix = np.vstack(rows)
        # Zero rows are normalized to zero and score 0.0
        scores[matching] = pairwise_cosine_similarity(query.reshape(1, -1), matrix)[0]

    scores = np.clip(np.nan_to_num(scores, nan=0.0, posinf=0.0, neginf=0.0), -1.0, 1.0)

    # Stable sort keeps ascending-ID order among equal scores
    order = np.argsort(-scores, kind="stable")[:limit]

    logger.debug(
        "Ranked candidates",
        extra={
            "num_candidates": len(item_ids),
            "num_unscorable": len(item_ids) - len(matching),
            "num_results": len(order),
        },
    )

    return [ItemScore(item_ids[idx], float(scores[idx])) for idx in order]
