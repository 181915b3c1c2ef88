"""
Match rows and the game-number sequence.
"""
from datetime import datetime
from enum import Enum

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Index, func, update
from sqlalchemy.orm import relationship, Session

from ladder.core.database import Base

MATCH_SEQUENCE = "match_game_number"


class MatchStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Match(Base):
    __tablename__ = "matches"

    id = Column(Integer, primary_key=True, index=True)
    game_mode = Column(String(32), nullable=False)
    game_number = Column(Integer, nullable=False, unique=True)
    player1_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    player2_id = Column(Integer, ForeignKey("players.id"), nullable=False)
    winner_id = Column(Integer, ForeignKey("players.id"))  # NULL on a completed match = draw
    status = Column(String(16), nullable=False, default=MatchStatus.IN_PROGRESS.value)
    started_at = Column(DateTime(timezone=True), nullable=False, default=datetime.utcnow)
    completed_at = Column(DateTime(timezone=True))

    player1 = relationship("Player", foreign_keys=[player1_id])
    player2 = relationship("Player", foreign_keys=[player2_id])
    winner = relationship("Player", foreign_keys=[winner_id])

    __table_args__ = (
        Index('idx_matches_status_started', 'status', 'started_at'),
        Index('idx_matches_player1', 'player1_id'),
        Index('idx_matches_player2', 'player2_id'),
    )

    @property
    def players(self):
        return [self.player1_id, self.player2_id]


class MatchSequence(Base):
    """Named counter; incremented in place so allocation is atomic in the database."""
    __tablename__ = "match_sequences"

    name = Column(String(50), primary_key=True)
    value = Column(Integer, nullable=False, default=0)


def ensure_match_sequence(db: Session) -> None:
    """Create the game-number counter, seeded from any matches already stored."""
    if db.get(MatchSequence, MATCH_SEQUENCE) is None:
        current = db.query(func.max(Match.game_number)).scalar() or 0
        db.add(MatchSequence(name=MATCH_SEQUENCE, value=current))
        db.commit()


def next_game_number(db: Session) -> int:
    """
    Allocate the next game number inside the caller's transaction.

    The single-statement increment takes the row's write lock, so two
    transactions can never read the same value; the caller commits.
    """
    result = db.execute(
        update(MatchSequence)
        .where(MatchSequence.name == MATCH_SEQUENCE)
        .values(value=MatchSequence.value + 1)
    )
    if result.rowcount == 0:
        # First allocation on a fresh database
        db.add(MatchSequence(name=MATCH_SEQUENCE, value=1))
        db.flush()
        return 1

    return db.query(MatchSequence.value).filter(
        MatchSequence.name == MATCH_SEQUENCE
    ).scalar()
