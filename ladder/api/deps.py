"""
Dependency injection for API endpoints.
"""
from typing import Generator

from ladder.core.database import SessionLocal
from ladder.services.cache import CacheBackend, cache
from ladder.services.matchmaking_service import QueueService, queue_service
from ladder.services.player_state import PlayerStateStore, player_state_store


def get_db() -> Generator:
    """
    Database dependency that ensures proper session cleanup.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_cache() -> CacheBackend:
    return cache


def get_state_store() -> PlayerStateStore:
    return player_state_store


def get_queue_service() -> QueueService:
    return queue_service
