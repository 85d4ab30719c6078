"""
Atomic lease operations over the games backlog.

ClaimCoordinator is the only code path that sets or clears Game.lease_owner /
Game.lease_at. Every operation runs in its own short transaction on a session
from the injected session factory.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import aliased, sessionmaker

from detail_scraper.completeness import pending_clause
from detail_scraper.config import MAX_ATTEMPTS
from detail_scraper.const import BACKOFF_BASE_SECONDS, BACKOFF_MAX_SECONDS, STATUS_FAILED
from detail_scraper.errors import StoreUnavailable
from detail_scraper.models import Game

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClaimedGame:
    """Identity and locator of a leased game; the payload is not loaded"""
    id: int
    bgg_url: str
    name: str


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def backoff_delay(attempts: int) -> timedelta:
    """Exponential backoff after the given number of failed attempts, capped"""
    seconds = BACKOFF_BASE_SECONDS * (2 ** max(attempts - 1, 0))
    return timedelta(seconds=min(seconds, BACKOFF_MAX_SECONDS))


class ClaimCoordinator:
    def __init__(self, session_factory: sessionmaker, max_attempts: int = MAX_ATTEMPTS):
        self.session_factory = session_factory
        self.max_attempts = max_attempts

    def claim_batch(self, worker_id: str, batch_size: int) -> List[ClaimedGame]:
        """
        Lease up to batch_size pending, unleased games to worker_id.

        Selection and assignment happen in a single UPDATE statement. The
        outer `lease_owner IS NULL` check makes the write a per-row
        compare-and-set, and PostgreSQL additionally skips rows locked by a
        concurrent claim. An empty result means the backlog is drained.
        """
        if batch_size <= 0:
            return []

        now = utcnow()
        db = self.session_factory()
        try:
            candidate = aliased(Game, name="candidate")
            candidates = (
                select(candidate.id)
                .where(
                    candidate.lease_owner.is_(None),
                    pending_clause(candidate),
                    candidate.scrape_attempts < self.max_attempts,
                    or_(
                        candidate.next_attempt_at.is_(None),
                        candidate.next_attempt_at <= now,
                    ),
                )
                .order_by(candidate.id)
                .limit(batch_size)
            )
            if db.get_bind().dialect.name == "postgresql":
                candidates = candidates.with_for_update(skip_locked=True, of=candidate)

            stmt = (
                update(Game)
                .where(Game.id.in_(candidates), Game.lease_owner.is_(None))
                .values(lease_owner=worker_id, lease_at=now)
                .returning(Game.id, Game.bgg_url, Game.name)
                .execution_options(synchronize_session=False)
            )
            rows = db.execute(stmt).all()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreUnavailable(f"claim_batch failed for {worker_id}: {str(e)}") from e
        finally:
            db.close()

        # RETURNING order is not guaranteed
        claimed = sorted(
            (ClaimedGame(id=row.id, bgg_url=row.bgg_url, name=row.name) for row in rows),
            key=lambda game: game.id,
        )
        logger.debug(f"[{worker_id}] Claimed {len(claimed)} games: {[g.id for g in claimed]}")
        return claimed

    def claim_item(self, worker_id: str, game_id: int) -> Optional[ClaimedGame]:
        """
        Lease one specific game regardless of completeness.
        Returns None if the game does not exist or is leased by someone else.
        """
        db = self.session_factory()
        try:
            row = db.execute(
                update(Game)
                .where(Game.id == game_id, Game.lease_owner.is_(None))
                .values(lease_owner=worker_id, lease_at=utcnow())
                .returning(Game.id, Game.bgg_url, Game.name)
                .execution_options(synchronize_session=False)
            ).first()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreUnavailable(f"claim_item failed for game {game_id}: {str(e)}") from e
        finally:
            db.close()

        if row is None:
            return None
        return ClaimedGame(id=row.id, bgg_url=row.bgg_url, name=row.name)

    def release_worker(self, worker_id: str) -> int:
        """Clear every lease held by worker_id. Safe to call with zero leases."""
        count = self._clear_leases(Game.lease_owner == worker_id, f"release_worker({worker_id})")
        if count:
            logger.info(f"[{worker_id}] 🔓 Released {count} claimed games")
        return count

    def release_all(self) -> int:
        """Clear every lease regardless of owner. Returns the number cleared."""
        count = self._clear_leases(Game.lease_owner.is_not(None), "release_all")
        logger.info(f"🧹 Released {count} claimed games from previous runs")
        return count

    def release_expired(self, ttl_seconds: int) -> int:
        """Clear leases taken more than ttl_seconds ago"""
        cutoff = utcnow() - timedelta(seconds=ttl_seconds)
        count = self._clear_leases(
            Game.lease_owner.is_not(None) & (Game.lease_at < cutoff),
            "release_expired",
        )
        if count:
            logger.warning(f"⏰ Released {count} leases older than {ttl_seconds}s")
        return count

    def record_failure(self, game_id: int, error: str, status: str = STATUS_FAILED) -> int:
        """
        Count a failed (or incomplete) attempt and push the game's next
        eligible claim time out. Returns the new attempt count.
        """
        db = self.session_factory()
        try:
            game = db.get(Game, game_id)
            if game is None:
                return 0
            attempts = (game.scrape_attempts or 0) + 1
            game.scrape_attempts = attempts
            game.next_attempt_at = utcnow() + backoff_delay(attempts)
            game.last_scrape_error = error
            game.detail_scrape_status = status
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreUnavailable(f"record_failure failed for game {game_id}: {str(e)}") from e
        finally:
            db.close()

        if attempts >= self.max_attempts:
            logger.warning(
                f"☠️  Game {game_id} reached {attempts} attempts and will no longer be claimed"
            )
        return attempts

    def _clear_leases(self, condition, operation: str) -> int:
        db = self.session_factory()
        try:
            result = db.execute(
                update(Game)
                .where(condition)
                .values(lease_owner=None, lease_at=None)
                .execution_options(synchronize_session=False)
            )
            db.commit()
            return result.rowcount
        except SQLAlchemyError as e:
            db.rollback()
            raise StoreUnavailable(f"{operation} failed: {str(e)}") from e
        finally:
            db.close()
