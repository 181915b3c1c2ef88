"""
Background consistency jobs for the ladder tables.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, Any, List

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from ladder.core.config import settings
from ladder.models.leaderboard import CacheEntry
from ladder.models.match import Match
from ladder.models.queue_entry import QueueEntry, QueueStatus
from ladder.models.rating import PlayerRating
from ladder.services.player_state import PlayerState, PlayerStateStore, player_state_store

logger = logging.getLogger(__name__)


class ConsistencyManager:
    """Manages background jobs for data consistency and integrity."""

    def __init__(self, db: Session, state_store: PlayerStateStore = None):
        self.db = db
        self.state_store = state_store or player_state_store

    def validate_data_integrity(self) -> Dict[str, Any]:
        """Run comprehensive data integrity checks."""
        logger.info("Starting data integrity validation")

        issues = {
            "rating_count_mismatches": self._check_rating_counts(),
            "peak_below_rating": self._check_peak_ratings(),
            "duplicate_waiting_entries": self._check_duplicate_waiting_entries(),
            "orphaned_matched_entries": self._check_orphaned_matched_entries(),
        }

        total_issues = sum(len(issue_list) for issue_list in issues.values())

        logger.info(f"Data integrity check completed: {total_issues} total issues found")

        return {
            "timestamp": datetime.utcnow(),
            "total_issues": total_issues,
            "issues": issues
        }

    def _check_rating_counts(self) -> List[dict]:
        """games_played must equal wins + losses + draws."""
        rows = self.db.query(PlayerRating).filter(
            PlayerRating.games_played != PlayerRating.wins + PlayerRating.losses + PlayerRating.draws
        ).all()

        issues = [
            {
                "player_id": r.player_id,
                "game_mode": r.game_mode,
                "games_played": r.games_played,
                "recorded_results": r.wins + r.losses + r.draws
            }
            for r in rows
        ]

        if issues:
            logger.warning(f"Found {len(issues)} ratings with mismatched game counts")

        return issues

    def _check_peak_ratings(self) -> List[dict]:
        rows = self.db.query(PlayerRating).filter(
            PlayerRating.peak_rating < PlayerRating.rating
        ).all()

        issues = [
            {"player_id": r.player_id, "game_mode": r.game_mode, "rating": r.rating, "peak_rating": r.peak_rating}
            for r in rows
        ]

        if issues:
            logger.warning(f"Found {len(issues)} ratings above their recorded peak")

        return issues

    def _check_duplicate_waiting_entries(self) -> List[dict]:
        rows = self.db.query(
            QueueEntry.player_id,
            func.count(QueueEntry.id).label("waiting")
        ).filter(
            QueueEntry.status == QueueStatus.WAITING.value
        ).group_by(QueueEntry.player_id).having(func.count(QueueEntry.id) > 1).all()

        issues = [{"player_id": player_id, "waiting_entries": waiting} for player_id, waiting in rows]

        if issues:
            logger.warning(f"Found {len(issues)} players waiting more than once")

        return issues

    def _check_orphaned_matched_entries(self) -> List[dict]:
        """Matched entries must point at an existing match."""
        rows = self.db.query(QueueEntry.id, QueueEntry.match_id).outerjoin(
            Match, QueueEntry.match_id == Match.id
        ).filter(
            QueueEntry.status == QueueStatus.MATCHED.value,
            Match.id.is_(None)
        ).all()

        issues = [{"entry_id": entry_id, "match_id": match_id} for entry_id, match_id in rows]

        if issues:
            logger.warning(f"Found {len(issues)} matched entries without a match")

        return issues

    def cancel_stale_queue_entries(self, minutes: int = None) -> int:
        """Cancel waiting entries older than the cutoff and reset those players to idle."""
        minutes = minutes or settings.STALE_QUEUE_MINUTES
        cutoff = datetime.utcnow() - timedelta(minutes=minutes)

        stale = self.db.query(QueueEntry).filter(
            QueueEntry.status == QueueStatus.WAITING.value,
            QueueEntry.joined_at < cutoff
        ).all()

        if not stale:
            return 0

        stale_ids = [entry.id for entry in stale]
        try:
            result = self.db.execute(
                update(QueueEntry)
                .where(
                    QueueEntry.id.in_(stale_ids),
                    QueueEntry.status == QueueStatus.WAITING.value
                )
                .values(status=QueueStatus.CANCELLED.value)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
        except Exception as e:
            logger.error(f"Error cancelling stale queue entries: {e}")
            self.db.rollback()
            raise

        # Entries paired between the read and the update keep their in_game state
        player_ids = [
            player_id for player_id, in self.db.query(QueueEntry.player_id).filter(
                QueueEntry.id.in_(stale_ids),
                QueueEntry.status == QueueStatus.CANCELLED.value
            )
        ]
        for player_id in player_ids:
            self.state_store.set_state(player_id, PlayerState.idle())

        logger.info(f"Cancelled {result.rowcount} stale queue entries older than {minutes} minutes")
        return result.rowcount

    def cleanup_expired_cache_entries(self) -> int:
        """Clean up expired cache rows to prevent table bloat."""
        deleted_count = self.db.query(CacheEntry).filter(
            CacheEntry.expires_at.isnot(None),
            CacheEntry.expires_at < datetime.utcnow()
        ).delete(synchronize_session=False)

        self.db.commit()

        logger.info(f"Cleaned up {deleted_count} expired cache entries")
        return deleted_count
