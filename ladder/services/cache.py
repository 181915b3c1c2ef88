"""
Cache backends for leaderboard lists, per-user rank hashes and player state.

The cache is a derived view: everything stored here can be rebuilt from the
database or the leaderboard backup, so a miss never means the data is absent.
Values are JSON-encoded; hash fields are JSON-encoded individually.
"""
import json
import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import redis
from sqlalchemy import or_

from ladder.core.config import settings
from ladder.core.database import SessionLocal
from ladder.core.exceptions import UpstreamUnavailable
from ladder.models.leaderboard import CacheEntry

logger = logging.getLogger(__name__)


class CacheBackend:
    """Key/value store with per-key expiry and hash-style multi-field values."""

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        raise NotImplementedError

    def delete(self, *keys: str) -> None:
        raise NotImplementedError

    def hgetall(self, key: str) -> Dict[str, Any]:
        """All fields of a hash; empty dict when the key is missing."""
        raise NotImplementedError

    def hset(self, key: str, mapping: Dict[str, Any], ttl: Optional[int] = None) -> None:
        raise NotImplementedError


class MemoryCache(CacheBackend):
    """Process-local cache. Thread-safe; expiry is checked on read."""

    def __init__(self):
        self._data: Dict[str, Any] = {}
        self._expires: Dict[str, float] = {}
        self._lock = threading.Lock()

    def _alive(self, key: str) -> bool:
        expires_at = self._expires.get(key)
        if expires_at is not None and expires_at <= time.monotonic():
            self._data.pop(key, None)
            self._expires.pop(key, None)
            return False
        return key in self._data

    def _store(self, key: str, value: Any, ttl: Optional[int]) -> None:
        self._data[key] = value
        if ttl:
            self._expires[key] = time.monotonic() + ttl
        else:
            self._expires.pop(key, None)

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            if not self._alive(key):
                return None
            return json.loads(self._data[key])

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        with self._lock:
            self._store(key, json.dumps(value), ttl)

    def delete(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)
                self._expires.pop(key, None)

    def hgetall(self, key: str) -> Dict[str, Any]:
        with self._lock:
            if not self._alive(key):
                return {}
            return {field: json.loads(value) for field, value in self._data[key].items()}

    def hset(self, key: str, mapping: Dict[str, Any], ttl: Optional[int] = None) -> None:
        with self._lock:
            current = dict(self._data[key]) if self._alive(key) else {}
            current.update({field: json.dumps(value) for field, value in mapping.items()})
            self._store(key, current, ttl)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._expires.clear()


class DatabaseCache(CacheBackend):
    """
    Cache rows in the ``cache_entries`` table.

    Each call opens its own session so cache writes never join (or roll back)
    the caller's transaction.
    """

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    def _session(self):
        try:
            return self.session_factory()
        except Exception as e:
            raise UpstreamUnavailable(f"Database cache unavailable: {e}") from e

    def _read(self, key: str) -> Optional[str]:
        db = self._session()
        try:
            entry = db.query(CacheEntry).filter(
                CacheEntry.cache_key == key,
                or_(CacheEntry.expires_at.is_(None), CacheEntry.expires_at > datetime.utcnow())
            ).first()
            return entry.data if entry else None
        except Exception as e:
            raise UpstreamUnavailable(f"Database cache read failed for {key}: {e}") from e
        finally:
            db.close()

    def _write(self, key: str, data: str, ttl: Optional[int]) -> None:
        expires_at = datetime.utcnow() + timedelta(seconds=ttl) if ttl else None
        db = self._session()
        try:
            existing = db.get(CacheEntry, key)
            if existing:
                existing.data = data
                existing.expires_at = expires_at
            else:
                db.add(CacheEntry(cache_key=key, data=data, expires_at=expires_at))
            db.commit()
        except Exception as e:
            db.rollback()
            raise UpstreamUnavailable(f"Database cache write failed for {key}: {e}") from e
        finally:
            db.close()

    def get(self, key: str) -> Optional[Any]:
        data = self._read(key)
        return json.loads(data) if data is not None else None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        self._write(key, json.dumps(value), ttl)

    def delete(self, *keys: str) -> None:
        db = self._session()
        try:
            db.query(CacheEntry).filter(CacheEntry.cache_key.in_(keys)).delete(synchronize_session=False)
            db.commit()
        except Exception as e:
            db.rollback()
            raise UpstreamUnavailable(f"Database cache delete failed: {e}") from e
        finally:
            db.close()

    def hgetall(self, key: str) -> Dict[str, Any]:
        data = self._read(key)
        return json.loads(data) if data is not None else {}

    def hset(self, key: str, mapping: Dict[str, Any], ttl: Optional[int] = None) -> None:
        current = self.hgetall(key)
        current.update(mapping)
        self._write(key, json.dumps(current), ttl)


class RedisCache(CacheBackend):
    """Cache backed by a redis server."""

    def __init__(self, url: str = None, client: "redis.Redis" = None):
        self.client = client or redis.Redis.from_url(url or settings.REDIS_URL, decode_responses=True)

    def get(self, key: str) -> Optional[Any]:
        try:
            data = self.client.get(key)
        except redis.RedisError as e:
            raise UpstreamUnavailable(f"Redis get failed for {key}: {e}") from e
        return json.loads(data) if data is not None else None

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        try:
            self.client.set(key, json.dumps(value), ex=ttl)
        except redis.RedisError as e:
            raise UpstreamUnavailable(f"Redis set failed for {key}: {e}") from e

    def delete(self, *keys: str) -> None:
        if not keys:
            return
        try:
            self.client.delete(*keys)
        except redis.RedisError as e:
            raise UpstreamUnavailable(f"Redis delete failed: {e}") from e

    def hgetall(self, key: str) -> Dict[str, Any]:
        try:
            data = self.client.hgetall(key)
        except redis.RedisError as e:
            raise UpstreamUnavailable(f"Redis hgetall failed for {key}: {e}") from e
        return {field: json.loads(value) for field, value in data.items()}

    def hset(self, key: str, mapping: Dict[str, Any], ttl: Optional[int] = None) -> None:
        try:
            pipe = self.client.pipeline()
            pipe.hset(key, mapping={field: json.dumps(value) for field, value in mapping.items()})
            if ttl:
                pipe.expire(key, ttl)
            pipe.execute()
        except redis.RedisError as e:
            raise UpstreamUnavailable(f"Redis hset failed for {key}: {e}") from e


def build_cache(backend: str = None) -> CacheBackend:
    """Cache backend selected by ``CACHE_BACKEND``."""
    backend = backend or settings.CACHE_BACKEND

    if backend == "memory":
        return MemoryCache()
    if backend == "database":
        return DatabaseCache()
    if backend == "redis":
        return RedisCache(settings.REDIS_URL)

    raise ValueError(f"Unknown cache backend: {backend}")


cache = build_cache()
