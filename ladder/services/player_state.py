"""
Player activity state (idle / queuing / in_game) with change notification.

State lives in the cache only; the queue and match tables stay authoritative,
so a lost or evicted state simply reads back as idle.
"""
import json
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import redis

from ladder.core.config import settings
from ladder.core.exceptions import UpstreamUnavailable
from ladder.services.cache import CacheBackend, cache

logger = logging.getLogger(__name__)


class PlayerStatus(str, Enum):
    IDLE = "idle"
    QUEUING = "queuing"
    IN_GAME = "in_game"


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class PlayerState:
    status: PlayerStatus = PlayerStatus.IDLE
    queue_start_time: Optional[int] = None  # epoch ms
    current_match: Optional[Dict[str, Any]] = None  # {"opponent_id", "start_time"}

    @classmethod
    def idle(cls) -> "PlayerState":
        return cls()

    @classmethod
    def queuing(cls, started_at: Optional[int] = None) -> "PlayerState":
        return cls(status=PlayerStatus.QUEUING, queue_start_time=started_at or now_ms())

    @classmethod
    def in_game(cls, opponent_id: int, started_at: Optional[int] = None) -> "PlayerState":
        return cls(
            status=PlayerStatus.IN_GAME,
            current_match={"opponent_id": opponent_id, "start_time": started_at or now_ms()}
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "queue_start_time": self.queue_start_time,
            "current_match": self.current_match,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlayerState":
        return cls(
            status=PlayerStatus(data.get("status", PlayerStatus.IDLE.value)),
            queue_start_time=data.get("queue_start_time"),
            current_match=data.get("current_match"),
        )


class StatePublisher:
    """Fire-and-forget notification of state changes."""

    def publish(self, player_id: int, state: PlayerState) -> None:
        raise NotImplementedError


class LoggingStatePublisher(StatePublisher):
    """Default publisher: records transitions in the log for pollers to pick up."""

    def publish(self, player_id: int, state: PlayerState) -> None:
        logger.info(f"Player {player_id} state -> {state.status.value}")


class RedisStatePublisher(StatePublisher):
    """Publishes JSON state on ``state-change:{player_id}``."""

    def __init__(self, url: str = None, client: "redis.Redis" = None):
        self.client = client or redis.Redis.from_url(url or settings.REDIS_URL, decode_responses=True)

    def publish(self, player_id: int, state: PlayerState) -> None:
        self.client.publish(f"state-change:{player_id}", json.dumps(state.to_dict()))


class PlayerStateStore:
    """Last-write-wins state per player, published on every write."""

    def __init__(self, cache: CacheBackend, publisher: StatePublisher = None):
        self.cache = cache
        self.publisher = publisher or LoggingStatePublisher()

    @staticmethod
    def _key(player_id: int) -> str:
        return f"player:{player_id}:state"

    def set_state(self, player_id: int, state: PlayerState) -> None:
        """Overwrite the player's state and notify. Failures are logged, never raised."""
        try:
            self.cache.set(self._key(player_id), state.to_dict())
        except UpstreamUnavailable as e:
            logger.error(f"Failed to store state for player {player_id}: {e}")

        try:
            self.publisher.publish(player_id, state)
        except Exception as e:
            logger.error(f"Failed to publish state for player {player_id}: {e}")

    def get_state(self, player_id: int) -> PlayerState:
        """Current state, or idle when nothing is stored."""
        try:
            data = self.cache.get(self._key(player_id))
        except UpstreamUnavailable as e:
            logger.error(f"Failed to read state for player {player_id}: {e}")
            return PlayerState.idle()

        if not data:
            return PlayerState.idle()
        return PlayerState.from_dict(data)


def build_publisher(backend: str = None) -> StatePublisher:
    backend = backend or settings.CACHE_BACKEND
    if backend == "redis":
        return RedisStatePublisher(settings.REDIS_URL)
    return LoggingStatePublisher()


player_state_store = PlayerStateStore(cache, build_publisher())
