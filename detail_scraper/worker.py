"""
Per-worker processing loop.

    INIT -> CLAIM -> (empty) DONE
                  -> (batch) PROCESS -> CLAIM

A worker claims a batch, sends each game through its own rate limiter
(extract, then persist), releases its leases and claims again until the
backlog is drained. Whatever ends the loop, the DONE step releases every lease
the worker still holds.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Optional

from detail_scraper.const import (
    BATCH_PAUSE_SECONDS,
    DEFAULT_BATCH_SIZE,
    DETAIL_MAX_DELAY,
    DETAIL_MIN_DELAY,
    STATUS_FAILED,
    STATUS_INCOMPLETE,
)
from detail_scraper.coordinator import ClaimCoordinator, ClaimedGame
from detail_scraper.errors import ExtractionFailure, PersistenceFailure, StoreUnavailable
from detail_scraper.rate_limiter import RateLimiter
from detail_scraper.repository import GameRepository

logger = logging.getLogger(__name__)


class WorkerState(enum.Enum):
    INIT = "init"
    CLAIM = "claim"
    PROCESS = "process"
    DONE = "done"


@dataclass
class WorkerResult:
    worker_id: str
    batches: int = 0
    processed: int = 0
    incomplete: int = 0
    failed: int = 0


class WorkerLoop:
    def __init__(
        self,
        worker_id: str,
        coordinator: ClaimCoordinator,
        repository: GameRepository,
        extractor,
        rate_limiter: Optional[RateLimiter] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_pause: float = BATCH_PAUSE_SECONDS,
    ):
        self.worker_id = worker_id
        self.coordinator = coordinator
        self.repository = repository
        self.extractor = extractor
        self.rate_limiter = rate_limiter or RateLimiter(DETAIL_MIN_DELAY, DETAIL_MAX_DELAY)
        self.batch_size = batch_size
        self.batch_pause = batch_pause
        self.state = WorkerState.INIT
        self.result = WorkerResult(worker_id=worker_id)

    async def run(self) -> WorkerResult:
        """
        Drain the backlog. Item-level failures are logged and recorded;
        AuthenticationRequired and StoreUnavailable end the loop and propagate.
        """
        self.state = WorkerState.INIT
        try:
            # A previous run under the same id may have crashed holding leases
            self.coordinator.release_worker(self.worker_id)
            await self.extractor.start()

            logger.info(f"🚀 Starting parallel scraper worker: {self.worker_id}")

            while True:
                self.state = WorkerState.CLAIM
                batch = self.coordinator.claim_batch(self.worker_id, self.batch_size)
                if not batch:
                    logger.info(f"✅ No more games to process. Worker {self.worker_id} finished.")
                    break

                self.state = WorkerState.PROCESS
                self.result.batches += 1
                logger.info(
                    f"📦 [{self.worker_id}] Batch {self.result.batches}: Processing {len(batch)} games"
                )
                for game in batch:
                    await self._process(game)

                self.coordinator.release_worker(self.worker_id)
                if self.batch_pause:
                    await asyncio.sleep(self.batch_pause)

            logger.info(
                f"🎉 Worker {self.worker_id} completed! "
                f"Processed: {self.result.processed}, incomplete: {self.result.incomplete}, "
                f"failed: {self.result.failed}"
            )
            return self.result

        except Exception as e:
            logger.error(f"❌ Worker {self.worker_id} error: {str(e)}")
            raise
        finally:
            await self._shutdown()

    async def run_single(self, game_id: int) -> bool:
        """
        Scrape one specific game, complete or not. Returns True on success.
        """
        self.state = WorkerState.INIT
        try:
            self.coordinator.release_worker(self.worker_id)

            game = self.coordinator.claim_item(self.worker_id, game_id)
            if game is None:
                if self.repository.find_by_id(game_id) is None:
                    logger.error(f"Game with ID {game_id} not found in database")
                else:
                    logger.error(f"Game with ID {game_id} is currently claimed by another worker")
                return False

            await self.extractor.start()
            self.state = WorkerState.PROCESS
            await self._process(game)
            return self.result.failed == 0

        finally:
            await self._shutdown()

    async def _process(self, game: ClaimedGame) -> None:
        try:
            complete = await self.rate_limiter.throttle(lambda: self._scrape(game))
        except (ExtractionFailure, PersistenceFailure) as e:
            self.result.failed += 1
            logger.error(f"❌ [{self.worker_id}] Failed to scrape {game.name}: {str(e)}")
            self._record_failure(game, str(e), STATUS_FAILED)
            return

        if complete:
            self.result.processed += 1
            logger.info(
                f"✅ [{self.worker_id}] Completed {self.result.processed} games - {game.name}"
            )
        else:
            self.result.incomplete += 1
            logger.warning(
                f"⚠️ [{self.worker_id}] Details for {game.name} are still incomplete after scraping"
            )
            self._record_failure(game, "Details incomplete after scrape", STATUS_INCOMPLETE)

    async def _scrape(self, game: ClaimedGame) -> bool:
        logger.debug(f"Scraping details for: {game.name} ({game.bgg_url})")
        details = await self.extractor.extract(game.bgg_url)
        return self.repository.save_details(game.id, details, self.worker_id)

    def _record_failure(self, game: ClaimedGame, error: str, status: str) -> None:
        try:
            self.coordinator.record_failure(game.id, error, status)
        except StoreUnavailable as e:
            logger.warning(f"[{self.worker_id}] Could not record failure for game {game.id}: {str(e)}")

    async def _shutdown(self) -> None:
        self.state = WorkerState.DONE
        try:
            self.coordinator.release_worker(self.worker_id)
        except StoreUnavailable as e:
            logger.error(f"[{self.worker_id}] Failed to release claimed games: {str(e)}")
        await self.rate_limiter.close()
        await self.extractor.aclose()
