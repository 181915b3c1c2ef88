"""
Queue and match lifecycle for ranked play.

Per player per queue entry:
    waiting --(pairing)--> matched
    waiting --(leave)----> cancelled
Entries are terminal once they leave ``waiting``; joining again creates a new row.
"""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import update, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ladder.core.config import settings
from ladder.core.exceptions import (
    PlayerNotFound, MatchNotFound, InvalidMatchState, InvalidWinner,
    InvalidGameMode, PairingConflict
)
from ladder.models.match import Match, MatchStatus, next_game_number
from ladder.models.player import Player
from ladder.models.queue_entry import QueueEntry, QueueStatus
from ladder.services import rating_engine
from ladder.services.cache import CacheBackend, cache as default_cache
from ladder.services.leaderboard_service import invalidate_leaderboard
from ladder.services.player_state import PlayerState, PlayerStateStore, player_state_store
from ladder.services.rating_service import RatingService, RatingUpdate, rating_service

logger = logging.getLogger(__name__)

MAX_PAIRING_ATTEMPTS = 5


@dataclass
class MatchCompletion:
    """A completed match and the rating changes it produced"""
    match: Match
    ratings: RatingUpdate


def get_game_modes() -> List[str]:
    return list(settings.GAME_MODES)


class QueueService:
    """Owns queue membership, pairing and match completion"""

    def __init__(
        self,
        state_store: PlayerStateStore = None,
        cache: CacheBackend = None,
        ratings: RatingService = None,
        max_pairing_attempts: int = MAX_PAIRING_ATTEMPTS
    ):
        self.state_store = state_store or player_state_store
        self.cache = cache or default_cache
        self.ratings = ratings or rating_service
        self.max_pairing_attempts = max_pairing_attempts
        self._mode_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def join_queue(self, db: Session, player_id: int, game_mode: str) -> QueueEntry:
        """Add player to the queue, then try to pair the mode."""
        if game_mode not in settings.GAME_MODES:
            raise InvalidGameMode(f"Unknown game mode: {game_mode}")

        if not db.get(Player, player_id):
            raise PlayerNotFound(f"Player with ID {player_id} not found")

        # Check if player is already in queue
        existing_entry = self._waiting_entry(db, player_id)
        if existing_entry:
            logger.info(f"Player {player_id} already in queue")
            return existing_entry

        entry = QueueEntry(
            player_id=player_id,
            game_mode=game_mode,
            status=QueueStatus.WAITING.value,
            joined_at=datetime.utcnow()
        )
        db.add(entry)
        try:
            db.commit()
        except IntegrityError:
            # A concurrent join for the same player won the unique waiting slot
            db.rollback()
            logger.info(f"Player {player_id} joined concurrently; returning existing entry")
            existing_entry = self._waiting_entry(db, player_id)
            if existing_entry is None:
                raise
            return existing_entry

        logger.info(f"Player {player_id} joined {game_mode} queue (entry {entry.id})")
        self.state_store.set_state(player_id, PlayerState.queuing())

        self.match_players(db, game_mode)

        db.refresh(entry)
        return entry

    def leave_queue(self, db: Session, player_id: int) -> bool:
        """Cancel the player's waiting entry. False when there was none."""
        try:
            result = db.execute(
                update(QueueEntry)
                .where(
                    QueueEntry.player_id == player_id,
                    QueueEntry.status == QueueStatus.WAITING.value
                )
                .values(status=QueueStatus.CANCELLED.value)
                .execution_options(synchronize_session=False)
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        if result.rowcount == 0:
            return False

        logger.info(f"Player {player_id} left the queue")
        self.state_store.set_state(player_id, PlayerState.idle())
        return True

    def match_players(self, db: Session, game_mode: str) -> Optional[Match]:
        """
        Pair the two longest-waiting entries of a mode.

        Serialized per mode in-process; across processes the guarded claim
        makes a lost race roll back and retry instead of double-matching.
        """
        with self._lock_for(game_mode):
            match = None
            for attempt in range(1, self.max_pairing_attempts + 1):
                try:
                    match = self._pair_once(db, game_mode)
                    break
                except (PairingConflict, IntegrityError) as e:
                    db.rollback()
                    logger.warning(f"Pairing attempt {attempt} for {game_mode} lost a race: {e}")
            else:
                logger.error(f"Gave up pairing {game_mode} after {self.max_pairing_attempts} attempts")
                return None

        if match is None:
            return None

        logger.info(
            f"Created match {match.id} (game #{match.game_number}) in {game_mode}: "
            f"{match.player1_id} vs {match.player2_id}"
        )

        self.state_store.set_state(match.player1_id, PlayerState.in_game(match.player2_id))
        self.state_store.set_state(match.player2_id, PlayerState.in_game(match.player1_id))

        return match

    def complete_match(self, db: Session, match_id: int, winner_id: Optional[int]) -> MatchCompletion:
        """
        Record the result and update both ratings in one transaction.

        ``winner_id`` None is a draw.
        """
        match = db.get(Match, match_id)
        if not match:
            raise MatchNotFound(f"Match {match_id} not found")

        if match.status != MatchStatus.IN_PROGRESS.value:
            raise InvalidMatchState(f"Match {match_id} is {match.status}, not in progress")

        try:
            result = rating_engine.actual_score(match.player1_id, match.player2_id, winner_id)
        except ValueError as e:
            raise InvalidWinner(str(e)) from e

        try:
            claimed = db.execute(
                update(Match)
                .where(
                    Match.id == match_id,
                    Match.status == MatchStatus.IN_PROGRESS.value
                )
                .values(
                    status=MatchStatus.COMPLETED.value,
                    winner_id=winner_id,
                    completed_at=datetime.utcnow()
                )
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                raise InvalidMatchState(f"Match {match_id} was completed concurrently")

            db.refresh(match)
            ratings = self.ratings.apply_result(
                db,
                match.player1_id,
                match.player2_id,
                match.game_mode,
                result,
                match=match
            )
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Completed match {match_id}, winner {winner_id if winner_id is not None else 'draw'}")

        for player_id in match.players:
            self.state_store.set_state(player_id, PlayerState.idle())

        invalidate_leaderboard(self.cache, match.game_mode, match.players)

        return MatchCompletion(match=match, ratings=ratings)

    def get_queue_entries(self, db: Session, game_mode: str = None) -> List[QueueEntry]:
        """Waiting entries with their players, oldest first."""
        query = db.query(QueueEntry).options(joinedload(QueueEntry.player)).filter(
            QueueEntry.status == QueueStatus.WAITING.value
        )
        if game_mode:
            query = query.filter(QueueEntry.game_mode == game_mode)
        return query.order_by(QueueEntry.joined_at.asc(), QueueEntry.id.asc()).all()

    def get_active_matches(self, db: Session) -> List[Match]:
        return db.query(Match).options(
            joinedload(Match.player1),
            joinedload(Match.player2)
        ).filter(
            Match.status == MatchStatus.IN_PROGRESS.value
        ).order_by(Match.started_at.desc(), Match.id.desc()).all()

    def get_player_matches(self, db: Session, player_id: int) -> List[Match]:
        return db.query(Match).filter(
            or_(Match.player1_id == player_id, Match.player2_id == player_id)
        ).order_by(Match.started_at.desc(), Match.id.desc()).all()

    def get_match(self, db: Session, match_id: int) -> Match:
        match = db.query(Match).options(
            joinedload(Match.player1),
            joinedload(Match.player2),
            joinedload(Match.winner)
        ).filter(Match.id == match_id).first()

        if not match:
            raise MatchNotFound(f"Match {match_id} not found")
        return match

    def _waiting_entry(self, db: Session, player_id: int) -> Optional[QueueEntry]:
        return db.query(QueueEntry).filter(
            QueueEntry.player_id == player_id,
            QueueEntry.status == QueueStatus.WAITING.value
        ).first()

    def _lock_for(self, game_mode: str) -> threading.Lock:
        with self._locks_guard:
            if game_mode not in self._mode_locks:
                self._mode_locks[game_mode] = threading.Lock()
            return self._mode_locks[game_mode]

    def _pair_once(self, db: Session, game_mode: str) -> Optional[Match]:
        waiting = db.query(QueueEntry).filter(
            QueueEntry.game_mode == game_mode,
            QueueEntry.status == QueueStatus.WAITING.value
        ).order_by(QueueEntry.joined_at.asc(), QueueEntry.id.asc()).limit(2).all()

        if len(waiting) < 2:
            return None

        first, second = waiting

        match = Match(
            game_mode=game_mode,
            game_number=next_game_number(db),
            player1_id=first.player_id,
            player2_id=second.player_id,
            status=MatchStatus.IN_PROGRESS.value,
            started_at=datetime.utcnow()
        )
        db.add(match)
        db.flush()

        # Both entries must still be waiting, otherwise another pairing took one
        claimed = db.execute(
            update(QueueEntry)
            .where(
                QueueEntry.id.in_([first.id, second.id]),
                QueueEntry.status == QueueStatus.WAITING.value
            )
            .values(status=QueueStatus.MATCHED.value, match_id=match.id)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 2:
            raise PairingConflict(
                f"Entries {first.id}/{second.id} were claimed by another pairing"
            )

        db.commit()
        db.refresh(match)
        return match


queue_service = QueueService()
