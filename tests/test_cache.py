from datetime import datetime, timedelta

import pytest
import redis

from ladder.core.database import SessionLocal
from ladder.core.exceptions import UpstreamUnavailable
from ladder.models.leaderboard import CacheEntry
from ladder.services import cache as cache_module
from ladder.services.cache import MemoryCache, DatabaseCache, RedisCache, build_cache


class TestMemoryCache:

    def test_set_get_delete(self):
        cache = MemoryCache()
        cache.set("k", [{"id": "1"}])
        assert cache.get("k") == [{"id": "1"}]

        cache.delete("k", "missing")
        assert cache.get("k") is None

    def test_expiry(self, monkeypatch):
        clock = [1000.0]
        monkeypatch.setattr(cache_module.time, "monotonic", lambda: clock[0])
        cache = MemoryCache()
        cache.set("k", 1, ttl=180)
        cache.hset("h", {"mmr": 1000}, ttl=180)

        clock[0] += 179
        assert cache.get("k") == 1
        clock[0] += 1
        assert cache.get("k") is None
        assert cache.hgetall("h") == {}

    def test_hash_fields_merge(self):
        cache = MemoryCache()
        cache.hset("user:1:standard", {"id": "1", "mmr": 1000})
        cache.hset("user:1:standard", {"rank": 3})
        assert cache.hgetall("user:1:standard") == {"id": "1", "mmr": 1000, "rank": 3}
        assert cache.hgetall("user:2:standard") == {}

    def test_values_are_copies(self):
        cache = MemoryCache()
        value = {"id": "1"}
        cache.set("k", value)
        value["id"] = "changed"
        assert cache.get("k") == {"id": "1"}


class TestDatabaseCache:

    def test_round_trip(self, test_db):
        cache = DatabaseCache(SessionLocal)
        cache.set("raw:leaderboard:standard", [{"id": "1"}], ttl=60)
        cache.set("raw:leaderboard:standard", [{"id": "2"}], ttl=60)
        assert cache.get("raw:leaderboard:standard") == [{"id": "2"}]

        cache.hset("user:1:standard", {"mmr": 1000})
        cache.hset("user:1:standard", {"rank": 1})
        assert cache.hgetall("user:1:standard") == {"mmr": 1000, "rank": 1}

        cache.delete("raw:leaderboard:standard", "user:1:standard")
        assert cache.get("raw:leaderboard:standard") is None
        assert cache.hgetall("user:1:standard") == {}

    def test_expired_rows_are_misses(self, db_session):
        db_session.add(CacheEntry(
            cache_key="old", data="[1]", expires_at=datetime.utcnow() - timedelta(seconds=1)
        ))
        db_session.commit()

        assert DatabaseCache(SessionLocal).get("old") is None

    def test_failures_surface_as_upstream_unavailable(self):
        def broken_session():
            raise RuntimeError("no database")

        cache = DatabaseCache(broken_session)
        with pytest.raises(UpstreamUnavailable):
            cache.get("k")
        with pytest.raises(UpstreamUnavailable):
            cache.set("k", 1)


class BrokenRedis:
    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise redis.ConnectionError("connection refused")
        return fail


class FakePipeline:
    def __init__(self, store):
        self.store = store
        self.ops = []

    def hset(self, key, mapping):
        self.ops.append(("hset", key, mapping))

    def expire(self, key, ttl):
        self.ops.append(("expire", key, ttl))

    def execute(self):
        for op, key, arg in self.ops:
            if op == "hset":
                self.store.setdefault(key, {}).update(arg)
        return [True] * len(self.ops)


class FakeRedis:
    def __init__(self):
        self.store = {}
        self.pipelines = []

    def get(self, key):
        return self.store.get(key)

    def set(self, key, value, ex=None):
        self.store[key] = value

    def hgetall(self, key):
        return dict(self.store.get(key, {}))

    def pipeline(self):
        pipe = FakePipeline(self.store)
        self.pipelines.append(pipe)
        return pipe


class TestRedisCache:

    def test_hset_uses_pipeline_with_expire(self):
        client = FakeRedis()
        cache = RedisCache(client=client)

        cache.hset("user:1:standard", {"mmr": 1032, "name": "ann"}, ttl=180)

        ops = [op for op, _, _ in client.pipelines[0].ops]
        assert ops == ["hset", "expire"]
        assert cache.hgetall("user:1:standard") == {"mmr": 1032, "name": "ann"}

    def test_json_values(self):
        cache = RedisCache(client=FakeRedis())
        cache.set("raw:leaderboard:standard", [{"id": "1", "mmr": 1000}], ttl=180)
        assert cache.get("raw:leaderboard:standard") == [{"id": "1", "mmr": 1000}]
        assert cache.get("missing") is None

    @pytest.mark.parametrize("call", [
        lambda c: c.get("k"),
        lambda c: c.set("k", 1, ttl=10),
        lambda c: c.delete("k"),
        lambda c: c.hgetall("k"),
        lambda c: c.hset("k", {"a": 1}, ttl=10),
    ])
    def test_connection_errors_become_upstream_unavailable(self, call):
        with pytest.raises(UpstreamUnavailable):
            call(RedisCache(client=BrokenRedis()))


def test_build_cache():
    assert isinstance(build_cache("memory"), MemoryCache)
    assert isinstance(build_cache("database"), DatabaseCache)
    with pytest.raises(ValueError):
        build_cache("memcached")
