"""
Async embedding worker - encodes game descriptions with progress tracking.

Registered as the ``generateEmbeddings`` command.
"""

import asyncio
from typing import TYPE_CHECKING, Any, Callable, Optional

import structlog

from ..config.settings import Settings
from ..corpus import load_embeddings, load_games, save_embeddings
from ..errors import CorpusNotReadyError

if TYPE_CHECKING:
    from .jobs import JobManager

logger = structlog.get_logger(__name__)

GENERATE_EMBEDDINGS = "generateEmbeddings"

ProgressFn = Callable[[int, int, Optional[str]], Any]


def load_embedding_model(model_name: str) -> Any:
    from sentence_transformers import SentenceTransformer

    return SentenceTransformer(model_name)


async def run_generate_embeddings(
    settings: Settings,
    progress: ProgressFn,
    encoder: Optional[Any] = None,
) -> dict:
    """
    Embed every game that has text but no embedding yet.

    Steps:
        1. Load games and existing embeddings
        2. Load the embedding model (skipped when ``encoder`` is given)
        3. Encode in batches, reporting progress after each batch
        4. Write embeddings.json

    Args:
        settings: Paths and embedding model configuration
        progress: Called as ``progress(current, total, message)``
        encoder: SentenceTransformer-compatible object with ``encode``

    Returns:
        Summary payload stored as the job result
    """
    paths = settings.paths
    games = load_games(paths.games_json)

    try:
        embeddings = load_embeddings(paths.embeddings_json)
    except CorpusNotReadyError:
        embeddings = {}

    pending = []
    for game in games:
        text = (game.gameplay_description or game.description or "").strip()
        if text and game.universe_id not in embeddings:
            pending.append((game.universe_id, text))

    total = len(pending)
    progress(0, total, f"Found {total} games to embed")
    if not pending:
        return {"message": "All games already have embeddings", "count": 0}

    if encoder is None:
        progress(0, total, f"Loading embedding model: {settings.embed.model_name}")
        encoder = await asyncio.to_thread(load_embedding_model, settings.embed.model_name)

    batch_size = settings.embed.batch_size
    for start in range(0, total, batch_size):
        batch = pending[start:start + batch_size]
        vectors = await asyncio.to_thread(
            encoder.encode,
            [text for _, text in batch],
            batch_size=batch_size,
            show_progress_bar=False,
            convert_to_numpy=True,
        )
        for (universe_id, _), vector in zip(batch, vectors):
            embeddings[universe_id] = [float(x) for x in vector]

        done = start + len(batch)
        progress(done, total, f"Encoded {done}/{total} games")

    await asyncio.to_thread(save_embeddings, paths.embeddings_json, embeddings)
    logger.info("embeddings_written", count=total, path=str(paths.embeddings_json))

    return {"message": "Embeddings generated successfully", "count": total}


def register_default_commands(manager: "JobManager", settings: Settings) -> None:
    """Register the commands this package implements on ``manager``'s registry."""
    manager.registry.register(
        GENERATE_EMBEDDINGS,
        lambda: run_generate_embeddings(settings, manager.report_progress),
    )
