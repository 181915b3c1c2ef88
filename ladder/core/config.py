from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict
import os


class SeasonWindow(BaseModel):
    """A closed leaderboard season: [start, end) or a frozen archive file."""
    name: str
    start: datetime
    end: datetime
    archive_path: Optional[str] = None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./ladder.db"
    )
    DEBUG: bool = os.getenv("DEBUG", "True") == "True"

    # Cache / notification
    CACHE_BACKEND: str = "memory"  # memory, database, redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Leaderboard
    LEADERBOARD_CACHE_TTL: int = 180  # seconds
    SNAPSHOT_LIMIT_MAX: int = 100
    RANKING_SOURCE_URL: Optional[str] = None
    RANKING_SOURCE_TIMEOUT: float = 5.0
    SEASONS: List[SeasonWindow] = []

    # Rating engine
    DEFAULT_RATING: int = 1000
    K_FACTOR: int = 32
    PROVISIONAL_K_FACTOR: int = 64
    PROVISIONAL_THRESHOLD: int = 10

    GAME_MODES: List[str] = ["standard", "vanilla", "badlatro"]

    # Maintenance
    STALE_QUEUE_MINUTES: int = 30


settings = Settings()
