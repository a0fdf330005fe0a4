"""
Cosine-similarity ranking over an id -> embedding corpus.

Zero-norm vectors score 0.0 against everything (scikit-learn normalises them
to the zero vector), so no NaN ever reaches the ranking. Equal scores keep the
corpus iteration order; there is no secondary sort key.
"""
from __future__ import annotations

from typing import Callable, Hashable, Mapping, NamedTuple, Optional, Sequence

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity as _pairwise_cosine

from ..errors import ItemNotFoundError, SimilarityInputError

WeightFn = Callable[[Hashable], float]


class ScoredItem(NamedTuple):
    id: Hashable
    score: float


def _as_vector(values: Sequence[float], what: str) -> np.ndarray:
    vector = np.asarray(values, dtype=np.float64)
    if vector.ndim != 1 or vector.size == 0:
        raise SimilarityInputError(f"{what} must be a non-empty 1-D vector")
    return vector


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Returns:
        Value in [-1, 1]; 0.0 if either vector has zero norm

    Raises:
        SimilarityInputError: If the dimensions differ
    """
    va = _as_vector(a, "first vector")
    vb = _as_vector(b, "second vector")
    if va.shape != vb.shape:
        raise SimilarityInputError(f"Dimension mismatch: {va.size} != {vb.size}")
    return float(_pairwise_cosine(va.reshape(1, -1), vb.reshape(1, -1))[0, 0])


def rank(
    query: Sequence[float],
    corpus: Mapping[Hashable, Sequence[float]],
    k: int = 10,
    weight: Optional[WeightFn] = None,
    exclude: Optional[Hashable] = None,
) -> list[ScoredItem]:
    """
    Rank corpus items by cosine similarity to ``query``.

    Args:
        query: Query embedding
        corpus: Item id -> embedding, all of the query's dimensionality
        k: Maximum number of results (the whole corpus if larger)
        weight: Optional multiplier per item id applied to the similarity
        exclude: Item id never returned (the query item itself)

    Returns:
        Up to ``k`` ScoredItems, highest score first

    Raises:
        SimilarityInputError: Empty corpus, k < 1, or mismatched dimensions
    """
    if k < 1:
        raise SimilarityInputError(f"k must be at least 1, got {k}")
    if not corpus:
        raise SimilarityInputError("Corpus is empty")

    q = _as_vector(query, "query")

    ids = [item_id for item_id in corpus if item_id != exclude]
    if not ids:
        return []

    rows = []
    for item_id in ids:
        vector = np.asarray(corpus[item_id], dtype=np.float64)
        if vector.shape != q.shape:
            raise SimilarityInputError(
                f"Dimension mismatch for item {item_id!r}: {vector.size} != {q.size}"
            )
        rows.append(vector)

    scores = _pairwise_cosine(q.reshape(1, -1), np.vstack(rows))[0]

    if weight is not None:
        scores = scores * np.array([weight(item_id) for item_id in ids], dtype=np.float64)

    # Stable sort keeps corpus order among equal scores
    order = np.argsort(-scores, kind="stable")[:k]
    return [ScoredItem(ids[i], float(scores[i])) for i in order]


def similar_to(
    item_id: Hashable,
    corpus: Mapping[Hashable, Sequence[float]],
    k: int = 10,
    weight: Optional[WeightFn] = None,
) -> list[ScoredItem]:
    """
    Find the items most similar to a corpus member, excluding itself.

    Raises:
        ItemNotFoundError: If ``item_id`` has no embedding in the corpus
    """
    if item_id not in corpus:
        raise ItemNotFoundError(f"No embeddings found for item {item_id}")
    return rank(corpus[item_id], corpus, k=k, weight=weight, exclude=item_id)


def popularity_weight(
    player_counts: Mapping[Hashable, Optional[int]],
    saturation: float = 500.0,
    floor: float = 0.8,
) -> WeightFn:
    """
    Popularity multiplier in ``[floor, 1.0]``.

    ``floor + min(1 - floor, players / saturation)``: unpopular or unknown
    items keep ``floor`` of their similarity, items with ``saturation *
    (1 - floor)`` players or more keep all of it.
    """
    headroom = 1.0 - floor

    def weight(item_id: Hashable) -> float:
        players = player_counts.get(item_id) or 0
        return floor + min(headroom, max(0.0, players / saturation))

    return weight
