import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ladder.core.exceptions import PlayerNotFound
from ladder.models.player import Player

logger = logging.getLogger(__name__)


class PlayerService:

    def create_player(self, db: Session, username: str) -> Player:
        """Create a new player."""
        # Check if username already exists
        existing = db.query(Player).filter(Player.username == username).first()
        if existing:
            return existing  # Return existing player instead of error

        player = Player(username=username)
        db.add(player)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            return db.query(Player).filter(Player.username == username).one()
        db.refresh(player)

        logger.info(f"Created player {player.id} with username '{username}'")
        return player

    def get_player(self, db: Session, player_id: int) -> Player:
        player = db.get(Player, player_id)
        if not player:
            raise PlayerNotFound(f"Player {player_id} not found")
        return player


player_service = PlayerService()
