"""
Application startup and shutdown logic for the ranked ladder API.
"""
import logging
from sqlalchemy import text

from ladder.core.database import engine, Base, SessionLocal

logger = logging.getLogger(__name__)


def initialize_database() -> None:
    """Create tables, seed the match sequence and warm up the connection pool."""
    # Register every table on Base.metadata before create_all
    from ladder.models import player, rating, queue_entry, player_game, leaderboard  # noqa: F401
    from ladder.models.match import ensure_match_sequence

    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created/verified")

        with SessionLocal() as db:
            ensure_match_sequence(db)

        # Warm up the connection pool
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection pool initialized")

    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


def shutdown_database() -> None:
    """Clean up database connections."""
    try:
        engine.dispose()
        logger.info("Database connections closed")
    except Exception as e:
        logger.error(f"Error during database shutdown: {e}")
        # Don't re-raise during shutdown
