"""
Unit tests for game_scout/retrieval/similarity.py
"""
import math

import numpy as np
import pytest

from game_scout.errors import ItemNotFoundError, SimilarityInputError
from game_scout.retrieval.similarity import (
    cosine_similarity,
    popularity_weight,
    rank,
    similar_to,
)


def test_cosine_similarity_basic():
    assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
    assert cosine_similarity([1, 0], [0, 1]) == pytest.approx(0.0)
    assert cosine_similarity([1, 0], [-1, 0]) == pytest.approx(-1.0)
    assert cosine_similarity([1, 1], [2, 2]) == pytest.approx(1.0)


def test_cosine_similarity_zero_vector_is_zero():
    score = cosine_similarity([0, 0], [1, 0])
    assert score == 0.0
    assert not math.isnan(score)


def test_cosine_similarity_dimension_mismatch():
    with pytest.raises(SimilarityInputError):
        cosine_similarity([1, 0], [1, 0, 0])


def test_rank_excluding_query_item():
    corpus = {"a": [1, 0], "b": [0, 1], "c": [1, 0]}

    results = rank([1, 0], corpus, k=2, exclude="a")

    assert [r.id for r in results] == ["c", "b"]
    assert [r.score for r in results] == pytest.approx([1.0, 0.0])


def test_rank_orders_by_similarity():
    corpus = {"a": [1, 0], "b": [0, 1], "c": [1, 0]}

    results = rank([1, 0], corpus, k=2)

    assert [r.id for r in results] == ["a", "c"]
    assert [r.score for r in results] == pytest.approx([1.0, 1.0])


def test_rank_k_larger_than_corpus_returns_each_once():
    corpus = {"a": [1, 0], "b": [0, 1], "c": [1, 1]}

    results = rank([1, 0], corpus, k=10)

    assert sorted(r.id for r in results) == ["a", "b", "c"]
    scores = [r.score for r in results]
    assert scores == sorted(scores, reverse=True)


def test_rank_scores_non_increasing(tiny_vectors):
    corpus = {i: v for i, v in enumerate(tiny_vectors)}

    results = rank(tiny_vectors[0], corpus, k=len(corpus))

    scores = [r.score for r in results]
    assert all(x >= y for x, y in zip(scores, scores[1:]))
    assert results[0].id == 0


def test_rank_ties_keep_corpus_order():
    corpus = {"z": [1, 0], "y": [2, 0], "x": [3, 0]}
    assert [r.id for r in rank([1, 0], corpus, k=3)] == ["z", "y", "x"]


def test_rank_zero_vectors_score_zero():
    corpus = {"zero": [0, 0], "one": [1, 0]}

    results = rank([1, 0], corpus)

    assert [r.id for r in results] == ["one", "zero"]
    assert results[1].score == 0.0


def test_rank_excludes_item():
    corpus = {"a": [1, 0], "b": [0.9, 0.1]}
    assert [r.id for r in rank([1, 0], corpus, exclude="a")] == ["b"]
    assert rank([1, 0], {"a": [1, 0]}, exclude="a") == []


def test_rank_weight_applies_multiplier():
    corpus = {"a": [1, 0], "b": [0.9, 0.1]}
    weights = {"a": 0.5, "b": 1.0}

    results = rank([1, 0], corpus, weight=weights.get)

    assert results[0].id == "b"
    assert results[1].score == pytest.approx(0.5)


def test_rank_weighting_is_monotonic():
    """Raising one item's weight never lowers its position."""
    corpus = {"a": [1, 0], "b": [0.8, 0.6], "c": [0.6, 0.8]}
    low = rank([1, 0], corpus, weight=lambda i: 0.5 if i == "c" else 1.0)
    high = rank([1, 0], corpus, weight=lambda i: 2.0 if i == "c" else 1.0)

    pos_low = [r.id for r in low].index("c")
    pos_high = [r.id for r in high].index("c")
    assert pos_high <= pos_low


def test_rank_accepts_numpy_vectors():
    corpus = {1: np.array([1.0, 0.0]), 2: np.array([0.0, 1.0])}
    assert rank(np.array([0.0, 1.0]), corpus, k=1)[0].id == 2


@pytest.mark.parametrize("k", [0, -1])
def test_rank_rejects_bad_k(k):
    with pytest.raises(SimilarityInputError):
        rank([1, 0], {"a": [1, 0]}, k=k)


def test_rank_rejects_empty_corpus():
    with pytest.raises(SimilarityInputError):
        rank([1, 0], {})


def test_rank_rejects_mismatched_dimensions():
    with pytest.raises(SimilarityInputError, match="b"):
        rank([1, 0], {"a": [1, 0], "b": [1, 0, 0]})


def test_similar_to_excludes_self():
    corpus = {1: [1, 0], 2: [0.9, 0.1], 3: [0, 1]}

    results = similar_to(1, corpus, k=5)

    assert [r.id for r in results] == [2, 3]


def test_similar_to_missing_item():
    with pytest.raises(ItemNotFoundError) as exc_info:
        similar_to(99, {1: [1, 0]})
    assert str(exc_info.value) == "No embeddings found for item 99"


def test_popularity_weight_bounds():
    weight = popularity_weight({"none": None, "zero": 0, "some": 50, "many": 10_000})

    assert weight("missing") == pytest.approx(0.8)
    assert weight("none") == pytest.approx(0.8)
    assert weight("zero") == pytest.approx(0.8)
    assert weight("some") == pytest.approx(0.9)
    assert weight("many") == pytest.approx(1.0)


def test_popularity_weight_custom_floor():
    weight = popularity_weight({"a": 100}, saturation=100.0, floor=0.5)
    assert weight("a") == pytest.approx(1.0)
    assert weight("b") == pytest.approx(0.5)
