"""
Rating persistence: the only write path for PlayerRating rows.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ladder.core.exceptions import PlayerNotFound
from ladder.models.match import Match
from ladder.models.player import Player
from ladder.models.player_game import PlayerGame
from ladder.models.rating import PlayerRating
from ladder.services import rating_engine

logger = logging.getLogger(__name__)

VALID_RESULTS = (rating_engine.WIN, rating_engine.DRAW, rating_engine.LOSS)


@dataclass
class RatingUpdate:
    """New ratings produced by one result"""
    player1_new_rating: int
    player2_new_rating: int
    player1_change: float
    player2_change: float

    def to_dict(self) -> dict:
        return {
            "player1_new_rating": self.player1_new_rating,
            "player2_new_rating": self.player2_new_rating,
            "player1_change": self.player1_change,
            "player2_change": self.player2_change,
        }


class RatingService:
    """Reads and updates per-mode ratings"""

    def get_player_rating(self, db: Session, player_id: int, game_mode: str) -> Optional[PlayerRating]:
        return db.query(PlayerRating).filter(
            PlayerRating.player_id == player_id,
            PlayerRating.game_mode == game_mode
        ).first()

    def get_or_create_rating(self, db: Session, player_id: int, game_mode: str) -> PlayerRating:
        """Get existing rating or create a default one; flushes, never commits."""
        rating = self.get_player_rating(db, player_id, game_mode)

        if not rating:
            rating = PlayerRating(
                player_id=player_id,
                game_mode=game_mode,
                rating=rating_engine.DEFAULT_RATING,
                games_played=0,
                wins=0,
                losses=0,
                draws=0,
                peak_rating=rating_engine.DEFAULT_RATING,
                last_played=datetime.utcnow()
            )
            db.add(rating)
            db.flush()  # Get ID without committing

        return rating

    def get_player_ratings(self, db: Session, player_id: int) -> List[PlayerRating]:
        return db.query(PlayerRating).filter(
            PlayerRating.player_id == player_id
        ).order_by(PlayerRating.game_mode).all()

    def get_rating_leaderboard(self, db: Session, game_mode: str, limit: int = 100) -> List[PlayerRating]:
        """Rating rows for a mode, highest first."""
        return db.query(PlayerRating).filter(
            PlayerRating.game_mode == game_mode
        ).order_by(
            PlayerRating.rating.desc(),
            PlayerRating.player_id.asc()
        ).limit(limit).all()

    def apply_result(
        self,
        db: Session,
        player1_id: int,
        player2_id: int,
        game_mode: str,
        result: float,
        match: Optional[Match] = None
    ) -> RatingUpdate:
        """
        Update both players' ratings for one result inside the caller's transaction.

        ``result`` is from player 1's perspective (1 win, 0.5 draw, 0 loss).
        When ``match`` is given a PlayerGame history row is written per player.
        The caller commits.
        """
        if result not in VALID_RESULTS:
            raise ValueError(f"Result must be one of {VALID_RESULTS}, got {result}")

        player1_rating = self.get_or_create_rating(db, player1_id, game_mode)
        player2_rating = self.get_or_create_rating(db, player2_id, game_mode)

        old1 = player1_rating.rating
        old2 = player2_rating.rating

        # K-factor uses the game count before this match is added
        new1, new2 = rating_engine.rate_pair(
            old1,
            old2,
            player1_rating.games_played,
            player2_rating.games_played,
            result
        )

        now = datetime.utcnow()
        self._update_rating_record(player1_rating, new1, result, now)
        self._update_rating_record(player2_rating, new2, 1.0 - result, now)

        if match is not None:
            self._record_games(db, match, player1_rating, player2_rating, old1, old2, result, now)

        logger.info(
            f"Rating change ({game_mode}): "
            f"player {player1_id} {old1:.0f} -> {new1}, "
            f"player {player2_id} {old2:.0f} -> {new2}"
        )

        return RatingUpdate(
            player1_new_rating=new1,
            player2_new_rating=new2,
            player1_change=new1 - old1,
            player2_change=new2 - old2
        )

    def update_ratings(
        self,
        db: Session,
        player1_id: int,
        player2_id: int,
        game_mode: str,
        result: float
    ) -> RatingUpdate:
        """Apply and commit a result that did not come through the queue."""
        for player_id in (player1_id, player2_id):
            if not db.get(Player, player_id):
                raise PlayerNotFound(f"Player {player_id} not found")

        try:
            update = self.apply_result(db, player1_id, player2_id, game_mode, result)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return update

    def get_player_games(self, db: Session, player_id: int, limit: int = 50) -> List[PlayerGame]:
        return db.query(PlayerGame).filter(
            PlayerGame.player_id == player_id
        ).order_by(PlayerGame.game_number.desc()).limit(limit).all()

    def _update_rating_record(
        self,
        rating: PlayerRating,
        new_value: int,
        score: float,
        played_at: datetime
    ) -> None:
        rating.rating = new_value
        rating.games_played += 1

        if score == rating_engine.WIN:
            rating.wins += 1
        elif score == rating_engine.LOSS:
            rating.losses += 1
        else:
            rating.draws += 1

        rating.peak_rating = max(rating.peak_rating, new_value)
        rating.last_played = played_at

    def _record_games(
        self,
        db: Session,
        match: Match,
        rating1: PlayerRating,
        rating2: PlayerRating,
        old1: float,
        old2: float,
        result: float,
        played_at: datetime
    ) -> None:
        outcome = {rating_engine.WIN: "win", rating_engine.DRAW: "draw", rating_engine.LOSS: "loss"}

        for rating, before, opponent_before, opponent_id, score in (
            (rating1, old1, old2, match.player2_id, result),
            (rating2, old2, old1, match.player1_id, 1.0 - result),
        ):
            db.add(PlayerGame(
                player_id=rating.player_id,
                match_id=match.id,
                game_number=match.game_number,
                game_mode=match.game_mode,
                game_time=played_at,
                opponent_id=opponent_id,
                result=outcome[score],
                rating_before=before,
                rating_after=rating.rating,
                rating_change=rating.rating - before,
                opponent_rating=opponent_before
            ))


rating_service = RatingService()
