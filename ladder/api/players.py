"""
Player-related API endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ladder.api.deps import get_db, get_state_store
from ladder.core.exceptions import PlayerNotFound
from ladder.schemas import player as player_schemas
from ladder.services.player_service import player_service
from ladder.services.player_state import PlayerStateStore

router = APIRouter(
    prefix="/players",
    tags=["players"],
    responses={404: {"description": "Player not found"}}
)


@router.post("", response_model=player_schemas.PlayerResponse)
def create_player(
        player: player_schemas.PlayerCreate,
        db: Session = Depends(get_db)
):
    """
    Create a new player.

    Username must be unique. If username already exists,
    returns the existing player instead of creating a duplicate.
    """
    return player_service.create_player(db, player.username)


@router.get("/{player_id}", response_model=player_schemas.PlayerResponse)
def get_player(
        player_id: int,
        db: Session = Depends(get_db)
):
    try:
        return player_service.get_player(db, player_id)
    except PlayerNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/{player_id}/state", response_model=player_schemas.PlayerStateResponse)
def get_player_state(
        player_id: int,
        state_store: PlayerStateStore = Depends(get_state_store)
):
    """
    Current activity state for polling clients.

    Returns idle when nothing is known about the player.
    """
    state = state_store.get_state(player_id)
    return player_schemas.PlayerStateResponse(player_id=player_id, **state.to_dict())
