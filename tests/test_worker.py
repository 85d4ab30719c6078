"""Tests for the WorkerLoop state machine.

The scraper service is replaced by FakeExtractor; the backlog is a real SQLite
database so claim/release behaviour is exercised end to end.
"""

from __future__ import annotations

import asyncio

import pytest

from conftest import FakeExtractor, complete_details, game_url
from detail_scraper.const import STATUS_COMPLETED, STATUS_FAILED, STATUS_INCOMPLETE
from detail_scraper.errors import (
    AuthenticationRequired,
    LeaseLost,
    PersistenceFailure,
    StoreUnavailable,
)
from detail_scraper.models import Game
from detail_scraper.rate_limiter import RateLimiter
from detail_scraper.repository import GameRepository
from detail_scraper.worker import WorkerLoop, WorkerState


def _worker(worker_id, coordinator, repository, extractor, batch_size=5):
    return WorkerLoop(
        worker_id=worker_id,
        coordinator=coordinator,
        repository=repository,
        extractor=extractor,
        rate_limiter=RateLimiter(0, 0),
        batch_size=batch_size,
        batch_pause=0,
    )


@pytest.mark.asyncio
async def test_two_workers_process_each_game_exactly_once(
    coordinator, repository, add_games, fetch_games
):
    add_games(7)
    extractor_1 = FakeExtractor()
    extractor_2 = FakeExtractor()

    results = await asyncio.gather(
        _worker("worker-1", coordinator, repository, extractor_1).run(),
        _worker("worker-2", coordinator, repository, extractor_2).run(),
    )

    assert sum(r.processed for r in results) == 7
    calls = extractor_1.calls + extractor_2.calls
    assert sorted(calls) == sorted(game_url(i) for i in range(1, 8))
    games = fetch_games()
    assert all(g.lease_owner is None and g.lease_at is None for g in games)
    assert all(g.detail_scrape_status == STATUS_COMPLETED for g in games)
    assert repository.get_stats()["pending_details"] == 0


@pytest.mark.asyncio
async def test_batches_are_processed_in_id_order(coordinator, repository, add_games):
    add_games(4)
    extractor = FakeExtractor()

    result = await _worker("worker-1", coordinator, repository, extractor, batch_size=3).run()

    assert extractor.calls == [game_url(i) for i in (1, 2, 3, 4)]
    assert result.batches == 2


@pytest.mark.asyncio
async def test_item_failure_does_not_abort_batch(coordinator, repository, add_games, fetch_games):
    add_games(3)
    extractor = FakeExtractor(failing={game_url(2)})
    worker = _worker("worker-1", coordinator, repository, extractor)

    result = await worker.run()

    assert result.processed == 2
    assert result.failed == 1
    failed = fetch_games()[1]
    assert failed.lease_owner is None
    assert failed.scrape_attempts == 1
    assert failed.detail_scrape_status == STATUS_FAILED
    assert "500" in failed.last_scrape_error
    # Still pending, but backing off, so the run terminates
    assert [g.id for g in repository.find_pending()] == [2]
    assert worker.state == WorkerState.DONE


class FlakyRepository(GameRepository):
    """Fails the write for selected games the way a broken store would"""

    def __init__(self, session_factory, failing_ids):
        super().__init__(session_factory)
        self.failing_ids = set(failing_ids)

    def save_details(self, game_id, details, worker_id):
        if game_id in self.failing_ids:
            raise PersistenceFailure(game_id, "deadlock detected")
        return super().save_details(game_id, details, worker_id)


class LeaseStealingRepository(GameRepository):
    """Hands one game's lease to another worker just before the write"""

    def __init__(self, session_factory, stolen_id, thief):
        super().__init__(session_factory)
        self.stolen_id = stolen_id
        self.thief = thief

    def save_details(self, game_id, details, worker_id):
        if game_id == self.stolen_id:
            db = self.session_factory()
            try:
                db.get(Game, game_id).lease_owner = self.thief
                db.commit()
            finally:
                db.close()
        return super().save_details(game_id, details, worker_id)


@pytest.mark.asyncio
async def test_persistence_failure_does_not_abort_batch(
    coordinator, session_factory, add_games, fetch_games
):
    add_games(3)
    repository = FlakyRepository(session_factory, failing_ids={2})

    result = await _worker("worker-1", coordinator, repository, FakeExtractor()).run()

    assert result.processed == 2
    assert result.failed == 1
    games = fetch_games()
    assert [g.detail_scrape_status for g in games] == [STATUS_COMPLETED, STATUS_FAILED, STATUS_COMPLETED]
    assert all(g.lease_owner is None for g in games)
    assert games[1].scrape_attempts == 1
    assert "deadlock detected" in games[1].last_scrape_error


@pytest.mark.asyncio
async def test_lost_lease_is_an_item_failure(coordinator, session_factory, add_games, fetch_games):
    add_games(3)
    repository = LeaseStealingRepository(session_factory, stolen_id=2, thief="worker-9")

    result = await _worker("worker-1", coordinator, repository, FakeExtractor()).run()

    assert result.processed == 2
    assert result.failed == 1
    games = fetch_games()
    # Nothing was written over the other worker's claim
    assert games[1].weight is None
    assert games[1].lease_owner == "worker-9"
    assert games[1].scrape_attempts == 1
    assert LeaseLost(2, "worker-1").args[0] in games[1].last_scrape_error
    assert games[0].lease_owner is None and games[2].lease_owner is None


@pytest.mark.asyncio
async def test_incomplete_details_are_distinguished_from_failures(
    coordinator, repository, add_games, fetch_games
):
    add_games(2)
    extractor = FakeExtractor(details={game_url(1): complete_details(weight=None)})

    result = await _worker("worker-1", coordinator, repository, extractor).run()

    assert result.incomplete == 1
    assert result.processed == 1
    first = fetch_games()[0]
    assert first.detail_scrape_status == STATUS_INCOMPLETE
    assert first.scrape_attempts == 1
    assert first.lease_owner is None


@pytest.mark.asyncio
async def test_fatal_auth_error_stops_worker_and_releases_leases(
    coordinator, repository, add_games, fetch_games
):
    add_games(4)
    extractor = FakeExtractor(
        errors={game_url(2): AuthenticationRequired("BGG login required")}
    )
    worker = _worker("worker-1", coordinator, repository, extractor)

    with pytest.raises(AuthenticationRequired):
        await worker.run()

    assert worker.state == WorkerState.DONE
    assert extractor.closed
    assert all(g.lease_owner is None for g in fetch_games())
    assert [g.id for g in repository.find_pending()] == [2, 3, 4]


@pytest.mark.asyncio
async def test_init_releases_leases_from_previous_crash(coordinator, repository, add_games):
    add_games(3)
    # Same worker id crashed earlier while holding game 1
    coordinator.claim_batch("worker-1", 1)
    extractor = FakeExtractor()

    result = await _worker("worker-1", coordinator, repository, extractor).run()

    assert result.processed == 3
    assert game_url(1) in extractor.calls


@pytest.mark.asyncio
async def test_store_unavailable_is_fatal(repository, add_games):
    add_games(1)

    class DownCoordinator:
        def __init__(self):
            self.released = []

        def release_worker(self, worker_id):
            self.released.append(worker_id)
            return 0

        def claim_batch(self, worker_id, batch_size):
            raise StoreUnavailable("connection refused")

    down = DownCoordinator()
    worker = _worker("worker-1", down, repository, FakeExtractor())

    with pytest.raises(StoreUnavailable):
        await worker.run()

    # INIT and DONE both release
    assert down.released == ["worker-1", "worker-1"]


@pytest.mark.asyncio
async def test_run_single_scrapes_one_game(coordinator, repository, add_games, fetch_games):
    add_games(3)
    extractor = FakeExtractor()

    ok = await _worker("single-2", coordinator, repository, extractor).run_single(2)

    assert ok
    assert extractor.calls == [game_url(2)]
    games = fetch_games()
    assert games[1].weight == pytest.approx(3.86)
    assert all(g.lease_owner is None for g in games)


@pytest.mark.asyncio
async def test_run_single_unknown_or_leased_game(coordinator, repository, add_games):
    add_games(1)
    coordinator.claim_batch("worker-9", 1)

    assert not await _worker("single-1", coordinator, repository, FakeExtractor()).run_single(1)
    assert not await _worker("single-5", coordinator, repository, FakeExtractor()).run_single(5)
