"""
Rating API endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List

from ladder.api.deps import get_db
from ladder.core.config import settings
from ladder.schemas.rating import (
    RatingResponse, RatingUpdateRequest, RatingUpdateResponse,
    PlayerGameResponse, WinProbabilityResponse
)
from ladder.services import rating_engine
from ladder.services.rating_service import rating_service

router = APIRouter(
    prefix="/ratings",
    tags=["ratings"],
    responses={404: {"description": "Rating not found"}}
)


@router.get("/players/{player_id}", response_model=List[RatingResponse])
def get_player_ratings(player_id: int, db: Session = Depends(get_db)):
    """All of a player's ratings, one per game mode played."""
    return rating_service.get_player_ratings(db, player_id)


@router.get("/players/{player_id}/games", response_model=List[PlayerGameResponse])
def get_player_games(
    player_id: int,
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db)
):
    return rating_service.get_player_games(db, player_id, limit)


@router.get("/players/{player_id}/{game_mode}", response_model=RatingResponse)
def get_player_rating(player_id: int, game_mode: str, db: Session = Depends(get_db)):
    rating = rating_service.get_player_rating(db, player_id, game_mode)
    if not rating:
        raise HTTPException(status_code=404, detail=f"No {game_mode} rating for player {player_id}")
    return rating


@router.get("/leaderboard/{game_mode}", response_model=List[RatingResponse])
def get_rating_leaderboard(
    game_mode: str,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db)
):
    """Raw rating rows for a mode, highest first."""
    if game_mode not in settings.GAME_MODES:
        raise HTTPException(status_code=404, detail=f"Unknown game mode: {game_mode}")
    return rating_service.get_rating_leaderboard(db, game_mode, limit)


@router.post("/results", response_model=RatingUpdateResponse)
def record_result(request: RatingUpdateRequest, db: Session = Depends(get_db)):
    """Apply a result that was not played through the queue."""
    if request.player1_id == request.player2_id:
        raise HTTPException(status_code=400, detail="A player cannot play themselves")

    update = rating_service.update_ratings(
        db, request.player1_id, request.player2_id, request.game_mode, request.result
    )
    return update.to_dict()


@router.get("/predict", response_model=WinProbabilityResponse)
def predict(rating1: float, rating2: float):
    return rating_engine.predict_match_outcome(rating1, rating2)
