"""
Leaderboard persistence: history snapshots, the latest-good backup and cache rows.
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, Text, DateTime, Index
from sqlalchemy.sql import func

from ladder.core.database import Base


class LeaderboardSnapshot(Base):
    """Append-only history of materialized leaderboards."""
    __tablename__ = "leaderboard_snapshots"

    id = Column(Integer, primary_key=True)
    queue_id = Column(String(64), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    data = Column(Text, nullable=False)  # JSON list of entries

    __table_args__ = (
        Index('idx_snapshots_queue_time', 'queue_id', 'timestamp'),
    )


class LeaderboardBackup(Base):
    """Latest successfully fetched leaderboard per queue; overwritten on every refresh."""
    __tablename__ = "leaderboard_backups"

    queue_id = Column(String(64), primary_key=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    data = Column(Text, nullable=False)  # JSON list of entries


class CacheEntry(Base):
    """Key/value rows backing the database cache tier."""
    __tablename__ = "cache_entries"

    cache_key = Column(String(200), primary_key=True)
    data = Column(Text, nullable=False)  # JSON data
    expires_at = Column(DateTime(timezone=True))  # NULL = no expiry
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __init__(self, cache_key: str, data: str, expires_at: datetime = None):
        self.cache_key = cache_key
        self.data = data
        self.expires_at = expires_at
