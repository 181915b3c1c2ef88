"""
Leaderboard cache with stale-backup fallback.

Read path:
    cache -> refresh from the ranking source -> latest backup row -> []

Only the first two tiers produce fresh data. Anything served from the backup
is flagged ``is_stale``. Reads never raise: upstream and cache failures are
logged and absorbed here.
"""
import json
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests
from sqlalchemy.orm import Session

from ladder.core.config import settings, SeasonWindow
from ladder.core.exceptions import UpstreamUnavailable, SeasonNotFound
from ladder.models.leaderboard import LeaderboardSnapshot, LeaderboardBackup
from ladder.models.player import Player
from ladder.models.rating import PlayerRating
from ladder.services.cache import CacheBackend, cache as default_cache

logger = logging.getLogger(__name__)

# Season views are frozen, so they are loaded once per process
_season_cache: Dict[Tuple[str, str], List[Dict[str, Any]]] = {}
_season_lock = threading.Lock()

# One HTTP source per process so requests reuse its connection pool
_http_sources: Dict[str, "HttpRankingSource"] = {}
_http_sources_lock = threading.Lock()


def raw_key(queue_id: str) -> str:
    return f"raw:leaderboard:{queue_id}"


def user_key(user_id: str, queue_id: str) -> str:
    return f"user:{user_id}:{queue_id}"


def invalidate_leaderboard(cache: CacheBackend, queue_id: str, user_ids: Iterable = ()) -> None:
    """
    Drop the cached list and the given per-user hashes.

    Per-user hashes are only trusted while the list is cached, so dropping
    the list also retires every other user's cached rank.
    """
    keys = [raw_key(queue_id)] + [user_key(str(uid), queue_id) for uid in user_ids]
    try:
        cache.delete(*keys)
    except UpstreamUnavailable as e:
        logger.error(f"Failed to invalidate leaderboard {queue_id}: {e}")


@dataclass
class LeaderboardResult:
    data: Any
    is_stale: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"data": self.data, "is_stale": self.is_stale}


def rank_entries(entries: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Sort by mmr descending and assign 1-based ranks.

    Ties keep their incoming order. Any rank already on an entry is ignored.
    """
    ordered = sorted(entries, key=lambda entry: float(entry.get("mmr") or 0), reverse=True)
    return [{**entry, "rank": position} for position, entry in enumerate(ordered, start=1)]


def _find_entry(entries: List[Dict[str, Any]], user_id: str) -> Optional[Dict[str, Any]]:
    for entry in entries:
        if str(entry.get("id")) == user_id:
            return entry
    return None


class RatingTableSource:
    """Ranks players straight from the ``player_ratings`` table; queue ids are game modes."""

    def __init__(self, db: Session):
        self.db = db

    def fetch(self, queue_id: str) -> List[Dict[str, Any]]:
        try:
            rows = self.db.query(PlayerRating, Player.username).join(
                Player, Player.id == PlayerRating.player_id
            ).filter(
                PlayerRating.game_mode == queue_id
            ).order_by(
                PlayerRating.rating.desc(),
                PlayerRating.player_id.asc()
            ).all()
        except Exception as e:
            self.db.rollback()
            raise UpstreamUnavailable(f"Rating table query failed for {queue_id}: {e}") from e

        entries = []
        for rating, username in rows:
            winrate = round(rating.wins / rating.games_played * 100, 1) if rating.games_played else 0.0
            entries.append({
                "id": str(rating.player_id),
                "name": username,
                "mmr": int(rating.rating),
                "wins": rating.wins,
                "losses": rating.losses,
                "draws": rating.draws,
                "totalgames": rating.games_played,
                "peak_mmr": int(rating.peak_rating),
                "winrate": winrate,
                "gameMode": rating.game_mode,
            })
        return entries


class HttpRankingSource:
    """External ranking service: ``GET {base_url}/leaderboard/{queue_id}``."""

    def __init__(self, base_url: str, timeout: float = None, session: requests.Session = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or settings.RANKING_SOURCE_TIMEOUT
        self.session = session or requests.Session()

    def fetch(self, queue_id: str) -> List[Dict[str, Any]]:
        url = f"{self.base_url}/leaderboard/{queue_id}"
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise UpstreamUnavailable(f"Ranking source request failed for {queue_id}: {e}") from e

        # Accept a bare list or {"data": [...]}
        if isinstance(payload, dict):
            payload = payload.get("data")
        if not isinstance(payload, list) or not all(
            isinstance(entry, dict) and "id" in entry and _is_number(entry.get("mmr")) for entry in payload
        ):
            raise UpstreamUnavailable(f"Malformed ranking payload for {queue_id}")

        return [{**entry, "id": str(entry["id"])} for entry in payload]


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class LeaderboardService:
    """Per-request leaderboard manager; ``db`` holds snapshots and backups."""

    def __init__(self, db: Session, cache: CacheBackend = None, source=None):
        self.db = db
        self.cache = cache or default_cache
        self.source = source or self._default_source(db)
        self.ttl = settings.LEADERBOARD_CACHE_TTL

    @staticmethod
    def _default_source(db: Session):
        url = settings.RANKING_SOURCE_URL
        if not url:
            return RatingTableSource(db)
        with _http_sources_lock:
            if url not in _http_sources:
                _http_sources[url] = HttpRankingSource(url)
            return _http_sources[url]

    raw_key = staticmethod(raw_key)
    user_key = staticmethod(user_key)

    def get_leaderboard(self, queue_id: str) -> LeaderboardResult:
        """Cached leaderboard, refreshed on a miss, backup on failure."""
        try:
            cached = self.cache.get(self.raw_key(queue_id))
        except UpstreamUnavailable as e:
            logger.warning(f"Leaderboard cache read failed for {queue_id}: {e}")
            cached = None

        if cached is not None:
            logger.debug(f"Cache hit for leaderboard {queue_id}")
            return LeaderboardResult(data=cached, is_stale=False)

        logger.debug(f"Cache miss for leaderboard {queue_id} - refreshing")
        return self.refresh_leaderboard(queue_id)

    def refresh_leaderboard(self, queue_id: str) -> LeaderboardResult:
        """Fetch, cache and back up a fresh leaderboard."""
        try:
            fresh = rank_entries(self.source.fetch(queue_id))
        except (UpstreamUnavailable, TypeError, ValueError) as e:
            logger.error(f"Error refreshing leaderboard {queue_id}: {e}")
            return self._fallback(queue_id)

        self._store_in_cache(queue_id, fresh)
        self._persist(queue_id, fresh)

        logger.info(f"Refreshed leaderboard {queue_id} with {len(fresh)} entries")
        return LeaderboardResult(data=fresh, is_stale=False)

    def get_user_rank(self, queue_id: str, user_id) -> Optional[LeaderboardResult]:
        """A single user's entry, or None when no source knows the user."""
        user_id = str(user_id)

        # A user's hash is only as current as the list it was written with
        try:
            listing = self.cache.get(self.raw_key(queue_id))
            cached = self.cache.hgetall(self.user_key(user_id, queue_id)) if listing is not None else {}
        except UpstreamUnavailable as e:
            logger.warning(f"User rank cache read failed for {user_id}: {e}")
            listing, cached = None, {}

        if cached:
            return LeaderboardResult(data=cached, is_stale=False)
        if listing is not None:
            entry = _find_entry(listing, user_id)
            if entry:
                return LeaderboardResult(data=entry, is_stale=False)

        result = self.refresh_leaderboard(queue_id)
        entry = _find_entry(result.data, user_id)
        if entry:
            return LeaderboardResult(data=entry, is_stale=result.is_stale)

        if not result.is_stale:
            backup = self._load_backup(queue_id)
            entry = _find_entry(backup, user_id) if backup else None
            if entry:
                logger.info(f"Using backup leaderboard data for user {user_id}")
                return LeaderboardResult(data=entry, is_stale=True)

        return None

    def invalidate(self, queue_id: str, user_ids: Iterable = ()) -> None:
        """Drop the cached list and per-user hashes so the next read refreshes."""
        invalidate_leaderboard(self.cache, queue_id, user_ids)

    def get_leaderboard_snapshots(self, queue_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        """History, most recent first."""
        limit = max(1, min(limit, settings.SNAPSHOT_LIMIT_MAX))
        try:
            snapshots = self.db.query(LeaderboardSnapshot).filter(
                LeaderboardSnapshot.queue_id == queue_id
            ).order_by(
                LeaderboardSnapshot.timestamp.desc(),
                LeaderboardSnapshot.id.desc()
            ).limit(limit).all()
        except Exception as e:
            logger.error(f"Error getting leaderboard snapshots for {queue_id}: {e}")
            self.db.rollback()
            return []

        return [
            {
                "queue_id": snapshot.queue_id,
                "timestamp": snapshot.timestamp.isoformat(),
                "data": json.loads(snapshot.data),
            }
            for snapshot in snapshots
        ]

    def get_season_leaderboard(self, season: str, queue_id: str) -> List[Dict[str, Any]]:
        """Frozen leaderboard for a past season, re-ranked."""
        return rank_entries(self._load_season(self._season(season), queue_id))

    def get_season_user_rank(self, season: str, queue_id: str, user_id) -> Optional[Dict[str, Any]]:
        return _find_entry(self.get_season_leaderboard(season, queue_id), str(user_id))

    def _store_in_cache(self, queue_id: str, entries: List[Dict[str, Any]]) -> None:
        try:
            self.cache.set(self.raw_key(queue_id), entries, ttl=self.ttl)
            for entry in entries:
                self.cache.hset(self.user_key(entry["id"], queue_id), entry, ttl=self.ttl)
        except UpstreamUnavailable as e:
            logger.error(f"Error writing leaderboard {queue_id} to cache: {e}")

    def _persist(self, queue_id: str, entries: List[Dict[str, Any]]) -> None:
        """Append a history snapshot and overwrite the backup row in one commit."""
        timestamp = datetime.utcnow()
        data = json.dumps(entries)
        try:
            self.db.add(LeaderboardSnapshot(queue_id=queue_id, timestamp=timestamp, data=data))

            backup = self.db.get(LeaderboardBackup, queue_id)
            if backup:
                backup.timestamp = timestamp
                backup.data = data
            else:
                self.db.add(LeaderboardBackup(queue_id=queue_id, timestamp=timestamp, data=data))

            self.db.commit()
        except Exception as e:
            logger.error(f"Error persisting leaderboard {queue_id}: {e}")
            self.db.rollback()

    def _load_backup(self, queue_id: str) -> Optional[List[Dict[str, Any]]]:
        try:
            backup = self.db.get(LeaderboardBackup, queue_id)
            if backup is None:
                return None
            entries = json.loads(backup.data)
        except Exception as e:
            logger.error(f"Error reading leaderboard backup for {queue_id}: {e}")
            self.db.rollback()
            return None

        logger.info(f"Using backup leaderboard {queue_id} from {backup.timestamp}")
        return entries

    def _fallback(self, queue_id: str) -> LeaderboardResult:
        backup = self._load_backup(queue_id)
        if backup is not None:
            return LeaderboardResult(data=backup, is_stale=True)

        logger.warning(f"No backup leaderboard for {queue_id}, returning empty list")
        return LeaderboardResult(data=[], is_stale=True)

    @staticmethod
    def _season(name: str) -> SeasonWindow:
        for season in settings.SEASONS:
            if season.name == name:
                return season
        raise SeasonNotFound(f"Season {name} not found")

    def _load_season(self, season: SeasonWindow, queue_id: str) -> List[Dict[str, Any]]:
        key = (season.name, queue_id)
        with _season_lock:
            if key in _season_cache:
                return _season_cache[key]

        try:
            if season.archive_path:
                entries = _read_archive(season.archive_path)
            else:
                entries = self._latest_snapshot_in_window(season, queue_id)
        except Exception as e:
            logger.error(f"Error loading season {season.name} for {queue_id}: {e}")
            return []

        with _season_lock:
            _season_cache[key] = entries
        return entries

    def _latest_snapshot_in_window(self, season: SeasonWindow, queue_id: str) -> List[Dict[str, Any]]:
        snapshot = self.db.query(LeaderboardSnapshot).filter(
            LeaderboardSnapshot.queue_id == queue_id,
            LeaderboardSnapshot.timestamp >= season.start,
            LeaderboardSnapshot.timestamp < season.end
        ).order_by(LeaderboardSnapshot.timestamp.desc()).first()

        if not snapshot:
            logger.warning(f"No {season.name} snapshot found for {queue_id}")
            return []

        return json.loads(snapshot.data)


def _read_archive(path: str) -> List[Dict[str, Any]]:
    """Entries from an end-of-season export: {"alltime": [{"id", "name", "data": {...}}]}."""
    with open(path, encoding="utf-8") as f:
        payload = json.load(f)

    entries = []
    for item in payload.get("alltime", []):
        data = item.get("data", {})
        entries.append({
            "id": str(item["id"]),
            "name": item.get("name"),
            "mmr": data.get("mmr"),
            "wins": data.get("wins"),
            "losses": data.get("losses"),
            "streak": data.get("streak"),
            "totalgames": data.get("totalgames"),
            "peak_mmr": data.get("peak_mmr"),
            "peak_streak": data.get("peak_streak"),
            "winrate": data.get("winrate"),
        })
    return entries


def clear_season_cache() -> None:
    with _season_lock:
        _season_cache.clear()
