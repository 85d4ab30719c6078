"""
Query and persistence layer for games and their detail data.

Lease fields are never written here; see ClaimCoordinator.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from detail_scraper.completeness import is_pending, pending_clause
from detail_scraper.config import MAX_ATTEMPTS
from detail_scraper.const import STATUS_COMPLETED, STATUS_FAILED, STATUS_INCOMPLETE
from detail_scraper.coordinator import ClaimedGame, utcnow
from detail_scraper.errors import LeaseLost, PersistenceFailure, StoreUnavailable
from detail_scraper.models import (
    Category,
    CommunityAgeRating,
    CommunityPlayerRating,
    Family,
    Game,
    GameCategory,
    GameFamily,
    GameMechanism,
    LanguageDependence,
    Mechanism,
)
from detail_scraper.schemas import SCALAR_FIELDS, GameDetails

logger = logging.getLogger(__name__)


def _insert(db: Session, model):
    """Dialect-specific INSERT so ON CONFLICT clauses are available"""
    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert(model)
    return sqlite.insert(model)


class GameRepository:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def upsert_lookup(self, db: Session, model, key: str, value: str) -> int:
        """Find-or-create a lookup row by its natural key and return its id"""
        db.execute(
            _insert(db, model)
            .values({key: value})
            .on_conflict_do_nothing(index_elements=[key])
        )
        return db.execute(
            select(model.id).where(getattr(model, key) == value)
        ).scalar_one()

    def _link(self, db: Session, model, game_id: int, **ids) -> None:
        db.execute(
            _insert(db, model)
            .values(game_id=game_id, **ids)
            .on_conflict_do_nothing()
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save_details(self, game_id: int, details: GameDetails, worker_id: str) -> bool:
        """
        Persist scraped details for a game leased by worker_id.

        The lease is re-checked inside the write transaction; a worker whose
        lease was swept gets LeaseLost instead of overwriting another
        worker's data. Returns True when the game is complete afterwards.
        """
        db = self.session_factory()
        try:
            game = db.execute(
                select(Game).where(Game.id == game_id).with_for_update()
            ).scalar_one_or_none()
            if game is None:
                raise PersistenceFailure(game_id, "game not found")
            if game.lease_owner != worker_id:
                raise LeaseLost(game_id, worker_id)

            for field in SCALAR_FIELDS:
                value = getattr(details, field)
                if value is not None:
                    setattr(game, field, value)

            if details.language_dependence_text:
                game.language_dependence_id = self.upsert_lookup(
                    db, LanguageDependence, "text", details.language_dependence_text
                )

            for name in details.categories:
                category_id = self.upsert_lookup(db, Category, "name", name)
                self._link(db, GameCategory, game_id, category_id=category_id)
            for name in details.mechanisms:
                mechanism_id = self.upsert_lookup(db, Mechanism, "name", name)
                self._link(db, GameMechanism, game_id, mechanism_id=mechanism_id)
            for name in details.families:
                family_id = self.upsert_lookup(db, Family, "name", name)
                self._link(db, GameFamily, game_id, family_id=family_id)

            self._save_community_data(db, game_id, details)

            game.scraped_at = utcnow()
            db.flush()

            complete = not is_pending(db, game_id)
            if complete:
                game.detail_scrape_status = STATUS_COMPLETED
                game.scrape_attempts = 0
                game.next_attempt_at = None
                game.last_scrape_error = None

            db.commit()
            return complete

        except PersistenceFailure:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceFailure(game_id, str(e)) from e
        finally:
            db.close()

    def _save_community_data(self, db: Session, game_id: int, details: GameDetails) -> None:
        for rating in details.community_player_ratings:
            values = {
                "best_percentage": rating.best_percentage,
                "recommended_percentage": rating.recommended_percentage,
                "not_recommended_percentage": rating.not_recommended_percentage,
                "total_votes": rating.total_votes,
            }
            db.execute(
                _insert(db, CommunityPlayerRating)
                .values(game_id=game_id, player_count=rating.player_count, **values)
                .on_conflict_do_update(index_elements=["game_id", "player_count"], set_=values)
            )

        for rating in details.community_age_ratings:
            values = {"percentage": rating.percentage, "vote_count": rating.vote_count}
            db.execute(
                _insert(db, CommunityAgeRating)
                .values(game_id=game_id, age=rating.age, **values)
                .on_conflict_do_update(index_elements=["game_id", "age"], set_=values)
            )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_id(self, game_id: int) -> Optional[ClaimedGame]:
        db = self.session_factory()
        try:
            row = db.execute(
                select(Game.id, Game.bgg_url, Game.name).where(Game.id == game_id)
            ).first()
        finally:
            db.close()
        if row is None:
            return None
        return ClaimedGame(id=row.id, bgg_url=row.bgg_url, name=row.name)

    def find_pending(self, limit: Optional[int] = None) -> List[ClaimedGame]:
        """Pending, unleased games ordered by id"""
        db = self.session_factory()
        try:
            stmt = (
                select(Game.id, Game.bgg_url, Game.name)
                .where(Game.lease_owner.is_(None), pending_clause(Game))
                .order_by(Game.id)
            )
            if limit is not None:
                stmt = stmt.limit(limit)
            rows = db.execute(stmt).all()
        finally:
            db.close()
        return [ClaimedGame(id=r.id, bgg_url=r.bgg_url, name=r.name) for r in rows]

    def list_leases(self) -> List[Dict[str, Any]]:
        db = self.session_factory()
        try:
            rows = db.execute(
                select(Game.id, Game.name, Game.lease_owner, Game.lease_at)
                .where(Game.lease_owner.is_not(None))
                .order_by(Game.lease_owner, Game.id)
            ).all()
        except SQLAlchemyError as e:
            raise StoreUnavailable(str(e)) from e
        finally:
            db.close()
        return [
            {
                "id": r.id,
                "name": r.name,
                "lease_owner": r.lease_owner,
                "lease_at": r.lease_at.isoformat() if r.lease_at else None,
            }
            for r in rows
        ]

    def get_stats(self, max_attempts: int = MAX_ATTEMPTS) -> Dict[str, int]:
        """
        Get statistics about detail scraping progress.
        """
        db = self.session_factory()
        try:
            def count(*conditions) -> int:
                return db.execute(
                    select(func.count()).select_from(Game).where(*conditions)
                ).scalar_one()

            total_games = count()
            games_with_community_data = db.execute(
                select(func.count(func.distinct(CommunityPlayerRating.game_id)))
            ).scalar_one()

            return {
                "total_games": total_games,
                "games_with_details": count(Game.weight.is_not(None)),
                "games_with_community_data": games_with_community_data,
                "pending_details": count(pending_clause(Game)),
                "leased": count(Game.lease_owner.is_not(None)),
                "failed": count(Game.detail_scrape_status == STATUS_FAILED),
                "incomplete": count(Game.detail_scrape_status == STATUS_INCOMPLETE),
                "poisoned": count(pending_clause(Game), Game.scrape_attempts >= max_attempts),
            }
        except SQLAlchemyError as e:
            raise StoreUnavailable(str(e)) from e
        finally:
            db.close()
