"""
Leaderboard payloads. Entries stay loose dicts: an external ranking
source may carry fields beyond the ones listed here.
"""
from pydantic import BaseModel, ConfigDict
from typing import List, Optional


class LeaderboardEntry(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: Optional[str] = None
    mmr: float
    wins: Optional[int] = None
    losses: Optional[int] = None
    draws: Optional[int] = None
    totalgames: Optional[int] = None
    peak_mmr: Optional[float] = None
    rank: int
    winrate: Optional[float] = None
    gameMode: Optional[str] = None


class LeaderboardResponse(BaseModel):
    data: List[LeaderboardEntry]
    is_stale: bool


class UserRankResponse(BaseModel):
    data: LeaderboardEntry
    is_stale: bool


class LeaderboardSnapshotResponse(BaseModel):
    queue_id: str
    timestamp: str
    data: List[LeaderboardEntry]
