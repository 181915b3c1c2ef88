"""
Router registration for the ranked ladder API.
"""
from fastapi import FastAPI

from ladder.api import players, queue, ratings, leaderboard


def include_routers(app: FastAPI) -> None:
    """Include all API routers with the FastAPI application."""
    app.include_router(players.router, prefix="/api/v1", tags=["players"])
    app.include_router(queue.router, prefix="/api/v1", tags=["queue"])
    app.include_router(ratings.router, prefix="/api/v1", tags=["ratings"])
    app.include_router(leaderboard.router, prefix="/api/v1", tags=["leaderboard"])
