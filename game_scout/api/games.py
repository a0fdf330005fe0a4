"""
Game corpus endpoints: listing, similarity, vector search, keyword search, coverage.

These are the synchronous read path; they never touch the job manager.
Handlers are plain ``def`` so FastAPI runs the file loading off the loop.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ..config.settings import Settings
from ..corpus import Game, corpus_coverage, load_embeddings, load_games
from ..errors import CorpusNotReadyError
from ..ops.embed_worker import load_embedding_model
from ..retrieval.keyword_search import keyword_search
from ..retrieval.similarity import ScoredItem, popularity_weight, rank, similar_to
from .deps import get_settings
from .schemas import ApiResponse, CorpusStatsOut, GameOut, SearchHitOut, SimilarGameOut, ok

router = APIRouter(prefix="/games", tags=["games"])


def _with_details(scored: List[ScoredItem], games: List[Game]) -> List[Dict[str, Any]]:
    """Attach game details; ids missing from games.json are skipped."""
    by_id = {g.universe_id: g for g in games}
    out = []
    for item in scored:
        game = by_id.get(item.id)
        if game is not None:
            out.append({**game.to_summary(), "similarity": item.score})
    return out


def _get_encoder(request: Request, settings: Settings) -> Any:
    encoder = getattr(request.app.state, "encoder", None)
    if encoder is None:
        encoder = load_embedding_model(settings.embed.model_name)
        request.app.state.encoder = encoder
    return encoder


@router.get("", response_model=ApiResponse[List[GameOut]])
def list_games(
    limit: Optional[int] = Query(None, ge=1, description="Maximum number of games to return"),
    settings: Settings = Depends(get_settings),
):
    """All gathered games ordered by name."""
    games = sorted(load_games(settings.paths.games_json), key=lambda g: (g.name.casefold(), g.name))
    if limit is not None:
        games = games[:limit]
    return ok([g.to_summary() for g in games])


@router.get("/search", response_model=ApiResponse[List[SearchHitOut]])
def search_games(
    q: str = Query(..., min_length=1, description="Search text"),
    limit: int = Query(10, ge=1, le=100),
    settings: Settings = Depends(get_settings),
):
    """Keyword search over titles, descriptions and gameplay descriptions."""
    if not q.strip():
        raise HTTPException(status_code=400, detail="Search query (q) is required")
    games = load_games(settings.paths.games_json)
    hits = keyword_search(games, q, limit)
    return ok([
        {**h.game.to_summary(), "matchType": h.match_type, "relevanceScore": h.relevance_score}
        for h in hits
    ])


@router.get("/vector-search", response_model=ApiResponse[List[SimilarGameOut]])
def vector_search(
    request: Request,
    q: str = Query(..., min_length=1, description="Free-text description to match"),
    limit: int = Query(10, ge=1, le=100),
    settings: Settings = Depends(get_settings),
):
    """
    Embed ``q`` and rank games by popularity-weighted cosine similarity.
    """
    embeddings = load_embeddings(settings.paths.embeddings_json)
    games = load_games(settings.paths.games_json)

    encoder = _get_encoder(request, settings)
    query_vector = encoder.encode([q], convert_to_numpy=True)[0]

    weight = popularity_weight(
        {g.universe_id: g.player_count for g in games},
        saturation=settings.search.popularity_saturation,
        floor=settings.search.popularity_floor,
    )
    scored = rank(query_vector, embeddings, k=limit, weight=weight)
    return ok(_with_details(scored, games))


@router.get("/{universe_id}/similar", response_model=ApiResponse[List[SimilarGameOut]])
def similar_games(
    universe_id: int,
    limit: int = Query(10, ge=1, le=100),
    popularity: bool = Query(False, description="Weight similarity by player count"),
    settings: Settings = Depends(get_settings),
):
    """Games most similar to ``universe_id`` by embedding, excluding itself."""
    embeddings = load_embeddings(settings.paths.embeddings_json)
    games = load_games(settings.paths.games_json)

    weight = None
    if popularity:
        weight = popularity_weight(
            {g.universe_id: g.player_count for g in games},
            saturation=settings.search.popularity_saturation,
            floor=settings.search.popularity_floor,
        )
    scored = similar_to(universe_id, embeddings, k=limit, weight=weight)
    return ok(_with_details(scored, games))


stats_router = APIRouter(tags=["games"])


@stats_router.get("/stats", response_model=ApiResponse[CorpusStatsOut])
def corpus_stats(settings: Settings = Depends(get_settings)):
    """How many games still lack each enrichment."""
    games = load_games(settings.paths.games_json)
    try:
        embeddings = load_embeddings(settings.paths.embeddings_json)
    except CorpusNotReadyError:
        embeddings = {}
    return ok(CorpusStatsOut.from_stats(corpus_coverage(games, embeddings)).model_dump())
