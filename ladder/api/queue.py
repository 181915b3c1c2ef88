"""
Ranked queue and match API endpoints.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional

from ladder.api.deps import get_db, get_queue_service
from ladder.schemas.queue import (
    JoinQueueRequest, LeaveQueueRequest, LeaveQueueResponse, QueueEntryResponse,
    MatchResponse, MatchDetailResponse, CompleteMatchRequest, CompleteMatchResponse
)
from ladder.services.matchmaking_service import QueueService, get_game_modes

router = APIRouter(
    prefix="/queue",
    tags=["queue"],
    responses={404: {"description": "Not found"}}
)


@router.get("/modes", response_model=List[str])
def list_game_modes():
    return get_game_modes()


@router.post("/join", response_model=QueueEntryResponse)
def join_queue(
    request: JoinQueueRequest,
    db: Session = Depends(get_db),
    service: QueueService = Depends(get_queue_service)
):
    """
    Join the ranked queue for a game mode.

    Joining while already waiting returns the existing entry. A pairing
    attempt runs right after the join, so the returned entry may already
    be matched.
    """
    return service.join_queue(db, request.player_id, request.game_mode)


@router.post("/leave", response_model=LeaveQueueResponse)
def leave_queue(
    request: LeaveQueueRequest,
    db: Session = Depends(get_db),
    service: QueueService = Depends(get_queue_service)
):
    return LeaveQueueResponse(left=service.leave_queue(db, request.player_id))


@router.get("/entries", response_model=List[QueueEntryResponse])
def get_queue_entries(
    game_mode: Optional[str] = None,
    db: Session = Depends(get_db),
    service: QueueService = Depends(get_queue_service)
):
    """Waiting entries, oldest first."""
    return service.get_queue_entries(db, game_mode)


@router.get("/matches/active", response_model=List[MatchDetailResponse])
def get_active_matches(
    db: Session = Depends(get_db),
    service: QueueService = Depends(get_queue_service)
):
    return service.get_active_matches(db)


@router.get("/players/{player_id}/matches", response_model=List[MatchResponse])
def get_player_matches(
    player_id: int,
    db: Session = Depends(get_db),
    service: QueueService = Depends(get_queue_service)
):
    return service.get_player_matches(db, player_id)


@router.get("/matches/{match_id}", response_model=MatchDetailResponse)
def get_match(
    match_id: int,
    db: Session = Depends(get_db),
    service: QueueService = Depends(get_queue_service)
):
    return service.get_match(db, match_id)


@router.post("/matches/{match_id}/complete", response_model=CompleteMatchResponse)
def complete_match(
    match_id: int,
    request: CompleteMatchRequest,
    db: Session = Depends(get_db),
    service: QueueService = Depends(get_queue_service)
):
    """
    Report a result. Omitting winner_id records a draw.

    Both ratings are updated in the same transaction as the match row.
    """
    completion = service.complete_match(db, match_id, request.winner_id)
    return CompleteMatchResponse(
        match=MatchResponse.model_validate(completion.match),
        ratings=completion.ratings.to_dict()
    )
