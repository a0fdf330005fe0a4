"""Application settings and configuration schema."""

import os
from pathlib import Path

from pydantic import BaseModel


class Paths(BaseModel):
    """File and directory paths configuration."""
    data_dir: str = "data"
    jobs_db: str = "data/jobs.db"
    games_json: str = "data/games/games.json"
    embeddings_json: str = "data/games/embeddings.json"

    @classmethod
    def under(cls, data_dir: str | Path) -> "Paths":
        """Build the default layout rooted at ``data_dir``."""
        root = Path(data_dir)
        return cls(
            data_dir=str(root),
            jobs_db=str(root / "jobs.db"),
            games_json=str(root / "games" / "games.json"),
            embeddings_json=str(root / "games" / "embeddings.json"),
        )


class JobsCfg(BaseModel):
    """Background job bookkeeping."""
    retention_days: int = 30
    fail_orphaned_on_startup: bool = True
    list_limit_default: int = 100
    list_limit_max: int = 1000


class SearchCfg(BaseModel):
    """Similarity and keyword search limits."""
    default_limit: int = 10
    max_limit: int = 100
    popularity_saturation: float = 500.0
    popularity_floor: float = 0.8


class EmbedCfg(BaseModel):
    """Embedding model used by the generateEmbeddings command."""
    model_name: str = "BAAI/bge-large-en-v1.5"
    batch_size: int = 32


class Settings(BaseModel):
    """Main application settings."""
    paths: Paths = Paths()
    jobs: JobsCfg = JobsCfg()
    search: SearchCfg = SearchCfg()
    embed: EmbedCfg = EmbedCfg()
    log_level: str = "INFO"
    log_json: bool = False

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Build settings from defaults overlaid with ``GAME_SCOUT_*`` variables.

        Recognised: GAME_SCOUT_DATA_DIR, GAME_SCOUT_LOG_LEVEL,
        GAME_SCOUT_LOG_JSON, GAME_SCOUT_RETENTION_DAYS, GAME_SCOUT_EMBED_MODEL.
        """
        settings = cls()

        data_dir = os.getenv("GAME_SCOUT_DATA_DIR")
        if data_dir:
            settings.paths = Paths.under(data_dir)

        settings.log_level = os.getenv("GAME_SCOUT_LOG_LEVEL", settings.log_level).upper()
        settings.log_json = os.getenv("GAME_SCOUT_LOG_JSON", "false").lower() == "true"

        retention = os.getenv("GAME_SCOUT_RETENTION_DAYS")
        if retention:
            settings.jobs.retention_days = int(retention)

        model = os.getenv("GAME_SCOUT_EMBED_MODEL")
        if model:
            settings.embed.model_name = model

        return settings
