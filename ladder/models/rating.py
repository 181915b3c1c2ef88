"""
Per-mode skill rating rows.
"""
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship

from ladder.core.database import Base


class PlayerRating(Base):
    """A player's rating in one game mode. Created on first match, never deleted."""
    __tablename__ = "player_ratings"

    id = Column(Integer, primary_key=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    game_mode = Column(String(32), nullable=False)

    rating = Column(Float, nullable=False, default=1000)
    games_played = Column(Integer, nullable=False, default=0)
    wins = Column(Integer, nullable=False, default=0)
    losses = Column(Integer, nullable=False, default=0)
    draws = Column(Integer, nullable=False, default=0)
    peak_rating = Column(Float, nullable=False, default=1000)
    last_played = Column(DateTime(timezone=True), default=datetime.utcnow)

    player = relationship("Player")

    __table_args__ = (
        UniqueConstraint('player_id', 'game_mode', name='unique_player_mode_rating'),
        Index('idx_rating_mode_rating', 'game_mode', 'rating'),
    )
