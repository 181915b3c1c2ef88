#!/usr/bin/env python3
"""
Maintenance jobs for the ranked ladder.
Run as cron jobs or scheduled tasks.

Usage:
    python scripts/background_jobs.py refresh-leaderboards
    python scripts/background_jobs.py validate-integrity
    python scripts/background_jobs.py cancel-stale-entries
    python scripts/background_jobs.py cleanup-cache
    python scripts/background_jobs.py system-stats
"""

import sys
import logging
from datetime import datetime
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from sqlalchemy import func

from ladder.core.config import settings
from ladder.core.database import SessionLocal
from ladder.core.startup import initialize_database
from ladder.models.leaderboard import CacheEntry, LeaderboardSnapshot
from ladder.models.match import Match, MatchStatus
from ladder.models.player import Player
from ladder.models.queue_entry import QueueEntry, QueueStatus
from ladder.services.consistency_manager import ConsistencyManager
from ladder.services.leaderboard_service import LeaderboardService

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler('background_jobs.log'),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)


def refresh_leaderboards():
    """Every few minutes: rebuild each mode's leaderboard, snapshot and backup."""
    logger.info("=== REFRESHING LEADERBOARDS ===")

    with SessionLocal() as db:
        service = LeaderboardService(db)
        stale_modes = []

        for game_mode in settings.GAME_MODES:
            result = service.refresh_leaderboard(game_mode)
            if result.is_stale:
                stale_modes.append(game_mode)
                logger.warning(f"  {game_mode}: refresh failed, backup served")
            else:
                logger.info(f"  {game_mode}: {len(result.data)} entries")

        return not stale_modes


def validate_data_integrity():
    """Weekly job: Comprehensive data integrity validation."""
    logger.info("=== STARTING DATA INTEGRITY VALIDATION ===")

    with SessionLocal() as db:
        consistency_manager = ConsistencyManager(db)

        try:
            results = consistency_manager.validate_data_integrity()

            logger.info(f"Integrity validation completed:")
            logger.info(f"  Total issues found: {results['total_issues']}")

            for issue_type, issues in results['issues'].items():
                if issues:
                    logger.warning(f"  {issue_type}: {len(issues)} issues")
                    for issue in issues[:5]:  # Log first 5 issues
                        logger.warning(f"    {issue}")
                    if len(issues) > 5:
                        logger.warning(f"    ... and {len(issues) - 5} more")
                else:
                    logger.info(f"  {issue_type}: No issues found")

            return results['total_issues'] == 0

        except Exception as e:
            logger.error(f"Error in integrity validation: {e}")
            return False


def cancel_stale_entries():
    """Hourly job: Cancel queue entries nobody was paired with."""
    logger.info("=== CANCELLING STALE QUEUE ENTRIES ===")

    with SessionLocal() as db:
        consistency_manager = ConsistencyManager(db)

        try:
            cancelled = consistency_manager.cancel_stale_queue_entries()
            logger.info(f"Cancelled {cancelled} entries older than {settings.STALE_QUEUE_MINUTES} minutes")
            return True

        except Exception as e:
            logger.error(f"Error cancelling stale entries: {e}")
            return False


def cleanup_cache():
    """Daily job: Clean up expired cache entries."""
    logger.info("=== STARTING CACHE CLEANUP ===")

    with SessionLocal() as db:
        consistency_manager = ConsistencyManager(db)

        try:
            deleted_count = consistency_manager.cleanup_expired_cache_entries()
            logger.info(f"Cache cleanup completed: {deleted_count} entries removed")
            return True

        except Exception as e:
            logger.error(f"Error in cache cleanup: {e}")
            return False


def show_system_stats():
    """Show current system statistics."""
    logger.info("=== SYSTEM STATISTICS ===")

    with SessionLocal() as db:
        try:
            total_players = db.query(func.count(Player.id)).scalar()

            waiting = db.query(
                QueueEntry.game_mode, func.count(QueueEntry.id)
            ).filter(
                QueueEntry.status == QueueStatus.WAITING.value
            ).group_by(QueueEntry.game_mode).all()

            active_matches = db.query(func.count(Match.id)).filter(
                Match.status == MatchStatus.IN_PROGRESS.value
            ).scalar()
            completed_matches = db.query(func.count(Match.id)).filter(
                Match.status == MatchStatus.COMPLETED.value
            ).scalar()

            snapshots = db.query(func.count(LeaderboardSnapshot.id)).scalar()
            cache_entries = db.query(func.count(CacheEntry.cache_key)).scalar()

            logger.info(f"Players: {total_players} total")
            logger.info(f"Waiting: {dict(waiting) or 'nobody'}")
            logger.info(f"Matches: {active_matches} in progress, {completed_matches} completed")
            logger.info(f"Leaderboard snapshots: {snapshots}")
            logger.info(f"Database cache rows: {cache_entries}")

            return True

        except Exception as e:
            logger.error(f"Error getting system stats: {e}")
            return False


COMMANDS = {
    "refresh-leaderboards": refresh_leaderboards,
    "validate-integrity": validate_data_integrity,
    "cancel-stale-entries": cancel_stale_entries,
    "cleanup-cache": cleanup_cache,
    "system-stats": show_system_stats,
}


def main():
    """Main CLI entry point."""
    if len(sys.argv) != 2:
        print(__doc__)
        sys.exit(1)

    command = sys.argv[1]
    job = COMMANDS.get(command)
    if job is None:
        logger.error(f"Unknown command: {command}")
        print(__doc__)
        sys.exit(1)

    initialize_database()

    start_time = datetime.now()
    success = job()

    duration = datetime.now() - start_time
    logger.info(f"Command '{command}' completed in {duration}")

    if success:
        logger.info("Job completed successfully")
        sys.exit(0)
    else:
        logger.error("Job failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
