"""
Matchmaking queue rows.
"""
from datetime import datetime
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from ladder.core.database import Base


class QueueStatus(str, Enum):
    WAITING = "waiting"
    MATCHED = "matched"
    CANCELLED = "cancelled"


class QueueEntry(Base):
    """A player's intent to be matched. Terminal once matched or cancelled."""
    __tablename__ = "queue_entries"

    id = Column(Integer, primary_key=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    game_mode = Column(String(32), nullable=False)
    status = Column(String(16), nullable=False, default=QueueStatus.WAITING.value)
    match_id = Column(Integer, ForeignKey("matches.id"))

    joined_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)

    player = relationship("Player")
    match = relationship("Match")

    # Indexes for FIFO pairing and the per-player waiting lookup
    __table_args__ = (
        Index('idx_queue_mode_waiting', 'game_mode', 'status', 'joined_at', 'id'),
        Index('idx_queue_player_status', 'player_id', 'status'),
        # At most one waiting entry per player
        Index(
            'uq_queue_player_waiting', 'player_id', unique=True,
            sqlite_where=text("status = 'waiting'"),
            postgresql_where=text("status = 'waiting'"),
        ),
    )
