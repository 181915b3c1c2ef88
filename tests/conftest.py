import os
import tempfile

# Point the app at a throwaway database before any ladder module reads settings
db_fd, db_path = tempfile.mkstemp(suffix=".db")
os.environ["DATABASE_URL"] = f"sqlite:///{db_path}"
os.environ["DEBUG"] = "False"
os.environ["CACHE_BACKEND"] = "memory"

import pytest
from fastapi.testclient import TestClient

from ladder.api.deps import get_db, get_cache, get_state_store, get_queue_service
from ladder.core.database import Base, engine, SessionLocal
from ladder.core.startup import initialize_database
from ladder.models.player import Player
from ladder.services.cache import MemoryCache
from ladder.services.leaderboard_service import clear_season_cache
from ladder.services.matchmaking_service import QueueService
from ladder.services.player_state import PlayerStateStore, StatePublisher
from main import app


class RecordingStatePublisher(StatePublisher):
    """Keeps every published event, in publish order."""

    def __init__(self):
        self.events = []

    def publish(self, player_id, state):
        self.events.append((player_id, state))

    def statuses_for(self, player_id):
        return [state.status.value for pid, state in self.events if pid == player_id]


@pytest.fixture(scope="session")
def test_db():
    initialize_database()
    yield SessionLocal
    engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture(autouse=True)
def clean_tables(test_db):
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    clear_season_cache()


@pytest.fixture
def db_session(test_db):
    session = test_db()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def memory_cache():
    return MemoryCache()


@pytest.fixture
def publisher():
    return RecordingStatePublisher()


@pytest.fixture
def state_store(memory_cache, publisher):
    return PlayerStateStore(memory_cache, publisher)


@pytest.fixture
def queue(state_store, memory_cache):
    return QueueService(state_store=state_store, cache=memory_cache)


@pytest.fixture
def make_player(db_session):
    def _make(username):
        player = Player(username=username)
        db_session.add(player)
        db_session.commit()
        return player
    return _make


@pytest.fixture
def client(db_session, memory_cache, state_store, queue):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: memory_cache
    app.dependency_overrides[get_state_store] = lambda: state_store
    app.dependency_overrides[get_queue_service] = lambda: queue
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
