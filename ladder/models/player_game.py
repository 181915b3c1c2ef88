from sqlalchemy import Column, Integer, String, DateTime, Float, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship

from ladder.core.database import Base


class PlayerGame(Base):
    """One row per player per completed match, with the rating change it caused."""
    __tablename__ = "player_games"

    id = Column(Integer, primary_key=True)
    player_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    match_id = Column(Integer, ForeignKey("matches.id"), nullable=False)
    game_number = Column(Integer, nullable=False)
    game_mode = Column(String(32), nullable=False)
    game_time = Column(DateTime(timezone=True), nullable=False)

    opponent_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    result = Column(String(8), nullable=False)  # win, loss, draw
    rating_before = Column(Float, nullable=False)
    rating_after = Column(Float, nullable=False)
    rating_change = Column(Float, nullable=False)
    opponent_rating = Column(Float, nullable=False)

    opponent = relationship("Player", foreign_keys=[opponent_id])

    __table_args__ = (
        UniqueConstraint('player_id', 'game_number', name='unique_game_number_per_player'),
        Index('idx_player_games_player', 'player_id', 'game_number'),
    )
