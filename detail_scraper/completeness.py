"""
Completeness predicate for games.

A game still needs its detail page scraped when its weight is missing, or when
it has no categories, no mechanisms and no families at all. Persistence only
ever fills in fields and adds relationship rows, so once a game is complete it
stays complete.
"""
from sqlalchemy import and_, exists, or_, select
from sqlalchemy.orm import Session

from detail_scraper.models import Game, GameCategory, GameFamily, GameMechanism


def pending_clause(game=Game):
    """
    SQL expression that is true for games that still need details.

    Pass an aliased Game when the clause is embedded in a statement that
    already targets the games table (e.g. the claim UPDATE).
    """
    return or_(
        game.weight.is_(None),
        and_(
            ~exists().where(GameCategory.game_id == game.id),
            ~exists().where(GameMechanism.game_id == game.id),
            ~exists().where(GameFamily.game_id == game.id),
        ),
    )


def is_pending(session: Session, game_id: int) -> bool:
    row = session.execute(
        select(Game.id).where(Game.id == game_id, pending_clause(Game))
    ).first()
    return row is not None
