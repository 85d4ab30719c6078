"""Shared pytest fixtures for the detail scraper tests.

Fixture summary
---------------
engine          — SQLite database file under tmp_path with all tables created.
session_factory — sessionmaker bound to ``engine``.
coordinator     — ClaimCoordinator over ``session_factory``.
repository      — GameRepository over ``session_factory``.
add_games       — Callable inserting N pending games with ids 1..N.
FakeExtractor   — In-memory stand-in for the scraper service client.
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional, Set

import pytest

from detail_scraper.coordinator import ClaimCoordinator
from detail_scraper.database import Base, build_engine, build_session_factory
from detail_scraper.errors import ExtractionFailure
from detail_scraper.models import Game
from detail_scraper.repository import GameRepository
from detail_scraper.schemas import GameDetails


def game_url(game_id: int) -> str:
    return f"https://boardgamegeek.com/boardgame/{game_id}/game-{game_id}"


def complete_details(**overrides) -> GameDetails:
    values = {
        "year": 2017,
        "min_players": 1,
        "max_players": 4,
        "min_playing_time": 60,
        "max_playing_time": 120,
        "weight": 3.86,
        "official_age": 14,
        "language_dependence_text": "Moderate in-game text",
        "categories": ["Adventure", "Fantasy"],
        "mechanisms": ["Hand Management"],
        "families": ["Campaign Games"],
    }
    values.update(overrides)
    return GameDetails(**values)


class FakeExtractor:
    """Returns canned details per URL and records every call"""

    def __init__(
        self,
        failing: Optional[Set[str]] = None,
        details: Optional[Dict[str, GameDetails]] = None,
        errors: Optional[Dict[str, Exception]] = None,
    ):
        self.failing = failing or set()
        self.details = details or {}
        self.errors = errors or {}
        self.calls: List[str] = []
        self.started = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    async def aclose(self) -> None:
        self.closed = True

    async def extract(self, url: str) -> GameDetails:
        self.calls.append(url)
        if url in self.errors:
            raise self.errors[url]
        if url in self.failing:
            raise ExtractionFailure(url, "Scraper returned status 500")
        return self.details.get(url) or complete_details()


@pytest.fixture
def engine(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'backlog.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def coordinator(session_factory) -> ClaimCoordinator:
    return ClaimCoordinator(session_factory, max_attempts=3)


@pytest.fixture
def repository(session_factory) -> GameRepository:
    return GameRepository(session_factory)


@pytest.fixture
def add_games(session_factory) -> Callable[[int], List[int]]:
    def _add(count: int) -> List[int]:
        db = session_factory()
        try:
            for game_id in range(1, count + 1):
                db.add(Game(id=game_id, rank=game_id, name=f"Game {game_id}", bgg_url=game_url(game_id)))
            db.commit()
        finally:
            db.close()
        return list(range(1, count + 1))

    return _add


@pytest.fixture
def fetch_games(session_factory) -> Callable[[], List[Game]]:
    def _fetch() -> List[Game]:
        db = session_factory()
        try:
            games = db.query(Game).order_by(Game.id).all()
            db.expunge_all()
            return games
        finally:
            db.close()

    return _fetch
