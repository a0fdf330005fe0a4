"""
Game corpus files.

``games.json`` holds a list of game objects (camelCase keys as gathered),
``embeddings.json`` maps universe ID (as a string key) to its vector.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

from .errors import CorpusNotReadyError


@dataclass
class Game:
    """One game experience."""

    universe_id: int
    root_place_id: int
    name: str
    description: Optional[str] = None
    gameplay_description: Optional[str] = None
    player_count: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Game":
        return cls(
            universe_id=int(data["universeId"]),
            root_place_id=int(data["rootPlaceId"]),
            name=data.get("name", ""),
            description=data.get("description"),
            gameplay_description=data.get("gameplayDescription"),
            player_count=data.get("playerCount"),
        )

    def to_summary(self) -> dict:
        """Public fields returned by search endpoints."""
        return {
            "universeId": self.universe_id,
            "rootPlaceId": self.root_place_id,
            "name": self.name,
            "description": self.description,
            "gameplayDescription": self.gameplay_description,
        }


@dataclass
class CorpusStats:
    """How much of the corpus each enrichment step has covered."""

    total_games: int
    games_lacking_descriptions: int
    games_lacking_gameplay_descriptions: int
    games_lacking_embeddings: int


def load_games(path: Path) -> List[Game]:
    """
    Load gathered games.

    Raises:
        CorpusNotReadyError: If the file does not exist yet
    """
    path = Path(path)
    if not path.exists():
        raise CorpusNotReadyError("Games data not found. Run gatherGames first.")
    with open(path, "r", encoding="utf-8") as f:
        return [Game.from_dict(item) for item in json.load(f)]


def load_embeddings(path: Path) -> Dict[int, List[float]]:
    """
    Load game embeddings keyed by universe ID.

    Raises:
        CorpusNotReadyError: If the file does not exist yet
    """
    path = Path(path)
    if not path.exists():
        raise CorpusNotReadyError("Embeddings not found. Run generateEmbeddings first.")
    with open(path, "r", encoding="utf-8") as f:
        raw = json.load(f)
    return {int(key): vector for key, vector in raw.items()}


def save_embeddings(path: Path, embeddings: Dict[int, List[float]]) -> None:
    """Write embeddings atomically (temp file + rename)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        json.dump({str(key): vector for key, vector in embeddings.items()}, f)
    tmp.replace(path)


def corpus_coverage(games: List[Game], embeddings: Dict[int, List[float]]) -> CorpusStats:
    """Count games still missing each kind of enrichment."""
    return CorpusStats(
        total_games=len(games),
        games_lacking_descriptions=sum(1 for g in games if not g.description),
        games_lacking_gameplay_descriptions=sum(
            1 for g in games if not (g.gameplay_description or "").strip()
        ),
        games_lacking_embeddings=sum(1 for g in games if not embeddings.get(g.universe_id)),
    )
