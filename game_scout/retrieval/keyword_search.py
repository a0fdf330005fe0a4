"""Case-insensitive keyword search over game titles and descriptions."""
from __future__ import annotations

from typing import List, NamedTuple, Optional

from ..corpus import Game


class KeywordHit(NamedTuple):
    game: Game
    match_type: str      # title | description | gameplayDescription
    relevance_score: float


def _word_coverage(text: str, query: str) -> float:
    """Fraction of query words that occur inside some word of ``text``."""
    words = text.lower().split()
    query_words = query.split()
    found = sum(1 for qw in query_words if any(qw in w for w in words))
    return found / len(query_words)


def _score(game: Game, query: str) -> Optional[tuple[str, float]]:
    name = (game.name or "").lower()
    if query in name:
        score = 100.0
        if name == query:
            score += 50
        elif name.startswith(query):
            score += 25
        return "title", score

    description = game.description or ""
    if query in description.lower():
        return "description", 50 + _word_coverage(description, query) * 20

    gameplay = game.gameplay_description or ""
    if query in gameplay.lower():
        return "gameplayDescription", 25 + _word_coverage(gameplay, query) * 15

    return None


def keyword_search(games: List[Game], query: str, limit: int = 10) -> List[KeywordHit]:
    """
    Search games by title, then description, then gameplay description.

    Title hits score 100 (+50 exact, +25 prefix), description hits 50-70 and
    gameplay description hits 25-40 depending on how many query words occur.
    Only the best matching field counts per game.

    Args:
        games: Games to search
        query: Search text (case-insensitive substring)
        limit: Maximum number of hits

    Returns:
        Hits sorted by relevance (highest first), scores rounded to 2 places
    """
    normalized = query.strip().lower()
    if not normalized:
        raise ValueError("Search query is required")

    hits = []
    for game in games:
        match = _score(game, normalized)
        if match is not None:
            hits.append(KeywordHit(game, match[0], match[1]))

    hits.sort(key=lambda h: h.relevance_score, reverse=True)
    return [
        KeywordHit(h.game, h.match_type, round(h.relevance_score, 2))
        for h in hits[:limit]
    ]
