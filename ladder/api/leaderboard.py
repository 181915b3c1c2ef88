"""
Leaderboard API endpoints.

Live reads never fail because of the ranking source or the cache;
``is_stale`` tells the client it is looking at backup data.
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List

from ladder.api.deps import get_db, get_cache
from ladder.schemas.leaderboard import (
    LeaderboardEntry, LeaderboardResponse, UserRankResponse, LeaderboardSnapshotResponse
)
from ladder.services.cache import CacheBackend
from ladder.services.leaderboard_service import LeaderboardService

router = APIRouter(
    prefix="/leaderboard",
    tags=["leaderboard"],
    responses={404: {"description": "Not found"}}
)


def get_leaderboard_service(
    db: Session = Depends(get_db),
    cache: CacheBackend = Depends(get_cache)
) -> LeaderboardService:
    return LeaderboardService(db, cache=cache)


@router.get("/{queue_id}", response_model=LeaderboardResponse)
def get_leaderboard(queue_id: str, service: LeaderboardService = Depends(get_leaderboard_service)):
    return service.get_leaderboard(queue_id).to_dict()


@router.get("/{queue_id}/users/{user_id}", response_model=UserRankResponse)
def get_user_rank(
    queue_id: str,
    user_id: str,
    service: LeaderboardService = Depends(get_leaderboard_service)
):
    result = service.get_user_rank(queue_id, user_id)
    if result is None:
        raise HTTPException(status_code=404, detail=f"User {user_id} is not ranked in {queue_id}")
    return result.to_dict()


@router.get("/{queue_id}/snapshots", response_model=List[LeaderboardSnapshotResponse])
def get_leaderboard_snapshots(
    queue_id: str,
    limit: int = Query(100, ge=1),
    service: LeaderboardService = Depends(get_leaderboard_service)
):
    """Historical leaderboards, most recent first."""
    return service.get_leaderboard_snapshots(queue_id, limit)


@router.get("/seasons/{season}/{queue_id}", response_model=List[LeaderboardEntry])
def get_season_leaderboard(
    season: str,
    queue_id: str,
    service: LeaderboardService = Depends(get_leaderboard_service)
):
    return service.get_season_leaderboard(season, queue_id)


@router.get("/seasons/{season}/{queue_id}/users/{user_id}", response_model=LeaderboardEntry)
def get_season_user_rank(
    season: str,
    queue_id: str,
    user_id: str,
    service: LeaderboardService = Depends(get_leaderboard_service)
):
    entry = service.get_season_user_rank(season, queue_id, user_id)
    if entry is None:
        raise HTTPException(status_code=404, detail=f"User {user_id} is not ranked in {season}")
    return entry
