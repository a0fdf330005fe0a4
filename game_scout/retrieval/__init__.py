"""Similarity ranking and keyword search over the game corpus."""

from .similarity import ScoredItem, cosine_similarity, rank, similar_to, popularity_weight
from .keyword_search import KeywordHit, keyword_search

__all__ = [
    "ScoredItem",
    "cosine_similarity",
    "rank",
    "similar_to",
    "popularity_weight",
    "KeywordHit",
    "keyword_search",
]
