"""Test configuration and fixtures."""

import json
from pathlib import Path

import pytest

from game_scout.config.settings import Paths, Settings


@pytest.fixture
def settings(tmp_path):
    """Settings with every path under a temp data dir."""
    return Settings(paths=Paths.under(tmp_path / "data"))


@pytest.fixture
def sample_games():
    return [
        {
            "universeId": 1,
            "rootPlaceId": 101,
            "name": "Tower Defense Simulator",
            "description": "Defend your base against waves of zombies",
            "gameplayDescription": "Place towers to stop enemies",
            "playerCount": 1000,
        },
        {
            "universeId": 2,
            "rootPlaceId": 102,
            "name": "Zombie Tower",
            "description": "Survive the zombie apocalypse",
            "gameplayDescription": None,
            "playerCount": 10,
        },
        {
            "universeId": 3,
            "rootPlaceId": 103,
            "name": "Pet Simulator",
            "description": None,
            "gameplayDescription": "Hatch eggs and collect pets",
            "playerCount": 0,
        },
        {
            "universeId": 4,
            "rootPlaceId": 104,
            "name": "Obby",
            "description": "",
            "gameplayDescription": "   ",
        },
    ]


@pytest.fixture
def sample_embeddings():
    return {
        1: [1.0, 0.0, 0.0],
        2: [0.9, 0.1, 0.0],
        3: [0.0, 1.0, 0.0],
    }


@pytest.fixture
def corpus_files(settings, sample_games, sample_embeddings):
    """Write games.json and embeddings.json under the settings paths."""
    games_path = settings.paths.games_json
    emb_path = settings.paths.embeddings_json

    Path(games_path).parent.mkdir(parents=True, exist_ok=True)
    Path(games_path).write_text(json.dumps(sample_games), encoding="utf-8")
    Path(emb_path).write_text(
        json.dumps({str(k): v for k, v in sample_embeddings.items()}),
        encoding="utf-8",
    )
    return settings
