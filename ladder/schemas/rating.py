from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Optional
from datetime import datetime

from ladder.core.config import settings


class RatingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    player_id: int
    game_mode: str
    rating: float
    games_played: int
    wins: int
    losses: int
    draws: int
    peak_rating: float
    last_played: Optional[datetime] = None


class RatingUpdateRequest(BaseModel):
    """A result imported outside the queue"""
    player1_id: int
    player2_id: int
    game_mode: str
    result: float = Field(..., description="Player 1's score: 1 win, 0.5 draw, 0 loss")

    @field_validator("game_mode")
    @classmethod
    def validate_game_mode(cls, v):
        if v not in settings.GAME_MODES:
            raise ValueError(f"Game mode must be one of: {', '.join(settings.GAME_MODES)}")
        return v

    @field_validator("result")
    @classmethod
    def validate_result(cls, v):
        if v not in (0.0, 0.5, 1.0):
            raise ValueError("Result must be 1, 0.5 or 0")
        return v


class RatingUpdateResponse(BaseModel):
    player1_new_rating: int
    player2_new_rating: int
    player1_change: float
    player2_change: float


class PlayerGameResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    match_id: int
    game_number: int
    game_mode: str
    game_time: datetime
    opponent_id: int
    result: str
    rating_before: float
    rating_after: float
    rating_change: float
    opponent_rating: float


class WinProbabilityResponse(BaseModel):
    player1_win_probability: float
    player2_win_probability: float
    rating_difference: float
