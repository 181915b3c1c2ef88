"""
Pydantic schemas for the queue and match API.
"""
from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime

from ladder.core.config import settings
from ladder.schemas.player import PlayerResponse
from ladder.schemas.rating import RatingUpdateResponse


def _check_game_mode(v: str) -> str:
    if v not in settings.GAME_MODES:
        raise ValueError(f"Game mode must be one of: {', '.join(settings.GAME_MODES)}")
    return v


class JoinQueueRequest(BaseModel):
    """Request to join a ranked queue"""
    player_id: int = Field(..., description="ID of the player joining the queue")
    game_mode: str = Field("standard", description="Game mode to queue for")

    @field_validator("game_mode")
    @classmethod
    def validate_game_mode(cls, v):
        return _check_game_mode(v)


class LeaveQueueRequest(BaseModel):
    player_id: int


class LeaveQueueResponse(BaseModel):
    left: bool


class QueueEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    player_id: int
    game_mode: str
    status: str
    match_id: Optional[int] = None
    joined_at: datetime
    player: Optional[PlayerResponse] = None


class MatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    game_mode: str
    game_number: int
    player1_id: int
    player2_id: int
    winner_id: Optional[int] = None
    status: str
    started_at: datetime
    completed_at: Optional[datetime] = None


class MatchDetailResponse(MatchResponse):
    """Match with both players and winner identity"""
    player1: Optional[PlayerResponse] = None
    player2: Optional[PlayerResponse] = None
    winner: Optional[PlayerResponse] = None


class CompleteMatchRequest(BaseModel):
    winner_id: Optional[int] = Field(None, description="Winning player; omit for a draw")


class CompleteMatchResponse(BaseModel):
    match: MatchResponse
    ratings: RatingUpdateResponse
