import json

from ladder.core.exceptions import UpstreamUnavailable
from ladder.services.cache import MemoryCache
from ladder.services.player_state import (
    PlayerState, PlayerStateStore, PlayerStatus, LoggingStatePublisher, RedisStatePublisher
)


class UnreachableCache(MemoryCache):
    def get(self, key):
        raise UpstreamUnavailable("cache down")

    def set(self, key, value, ttl=None):
        raise UpstreamUnavailable("cache down")


class ExplodingPublisher(LoggingStatePublisher):
    def publish(self, player_id, state):
        raise RuntimeError("channel closed")


class FakeRedisClient:
    def __init__(self):
        self.messages = []

    def publish(self, channel, message):
        self.messages.append((channel, message))


def test_unknown_player_is_idle(state_store):
    state = state_store.get_state(12345)
    assert state.status == PlayerStatus.IDLE
    assert state.current_match is None


def test_last_write_wins(state_store, publisher):
    state_store.set_state(1, PlayerState.queuing(started_at=1700000000000))
    state_store.set_state(1, PlayerState.in_game(opponent_id=2, started_at=1700000005000))

    state = state_store.get_state(1)
    assert state.status == PlayerStatus.IN_GAME
    assert state.current_match == {"opponent_id": 2, "start_time": 1700000005000}
    assert state.queue_start_time is None
    assert publisher.statuses_for(1) == ["queuing", "in_game"]


def test_players_are_independent(state_store):
    state_store.set_state(1, PlayerState.queuing())
    assert state_store.get_state(2).status == PlayerStatus.IDLE


def test_state_dict_round_trip():
    state = PlayerState.in_game(opponent_id=7, started_at=42)
    assert PlayerState.from_dict(state.to_dict()) == state


def test_cache_outage_reads_idle_and_still_publishes(publisher):
    store = PlayerStateStore(UnreachableCache(), publisher)

    store.set_state(1, PlayerState.queuing())

    assert store.get_state(1).status == PlayerStatus.IDLE
    assert publisher.statuses_for(1) == ["queuing"]


def test_publisher_failure_does_not_lose_state():
    store = PlayerStateStore(MemoryCache(), ExplodingPublisher())
    store.set_state(1, PlayerState.queuing())
    assert store.get_state(1).status == PlayerStatus.QUEUING


def test_redis_publisher_channel():
    client = FakeRedisClient()
    RedisStatePublisher(client=client).publish(9, PlayerState.idle())

    channel, message = client.messages[0]
    assert channel == "state-change:9"
    assert json.loads(message)["status"] == "idle"
