from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, Any
from datetime import datetime


class PlayerCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=50, description="Unique username")


class PlayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    created_at: Optional[datetime] = None


class PlayerStateResponse(BaseModel):
    """Latest activity state; pollers only need the most recent one"""
    player_id: int
    status: str  # idle, queuing, in_game
    queue_start_time: Optional[int] = None  # epoch ms
    current_match: Optional[Dict[str, Any]] = None
