"""
Supervisor for a fixed pool of detail scraper workers.

Before any worker starts, every lease left behind by a previous (possibly
crashed) run is released. Workers then run as independent units, either as
separate OS processes or as asyncio tasks in this process, and share nothing
but the database. While they run, leases older than the configured TTL are
swept periodically. Failed workers are reported, not restarted.
"""
import asyncio
import logging
import multiprocessing
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from detail_scraper.config import (
    BGG_PASSWORD,
    BGG_USERNAME,
    DATABASE_URL,
    LEASE_SWEEP_INTERVAL_SECONDS,
    LEASE_TTL_SECONDS,
    MAX_ATTEMPTS,
    SCRAPER_TIMEOUT,
    SCRAPER_URL,
)
from detail_scraper.const import DEFAULT_BATCH_SIZE, DETAIL_MAX_DELAY, DETAIL_MIN_DELAY
from detail_scraper.coordinator import ClaimCoordinator
from detail_scraper.database import build_engine, build_session_factory
from detail_scraper.errors import StoreUnavailable
from detail_scraper.extractor import HttpExtractor
from detail_scraper.logs import configure_logging
from detail_scraper.rate_limiter import RateLimiter
from detail_scraper.repository import GameRepository
from detail_scraper.worker import WorkerLoop

logger = logging.getLogger(__name__)


@dataclass
class WorkerOptions:
    """Plain settings handed to each worker; must stay picklable"""
    database_url: str = DATABASE_URL
    scraper_url: str = SCRAPER_URL
    scraper_timeout: float = SCRAPER_TIMEOUT
    username: Optional[str] = BGG_USERNAME
    password: Optional[str] = BGG_PASSWORD
    batch_size: int = DEFAULT_BATCH_SIZE
    min_delay: float = DETAIL_MIN_DELAY
    max_delay: float = DETAIL_MAX_DELAY
    max_attempts: int = MAX_ATTEMPTS
    debug: bool = False


@dataclass
class SupervisorReport:
    released_at_start: int = 0
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class WorkerFailed(Exception):
    pass


def build_worker(worker_id: str, options: WorkerOptions, session_factory=None) -> WorkerLoop:
    """Wire a WorkerLoop with its own limiter, extractor and store handles"""
    if session_factory is None:
        session_factory = build_session_factory(build_engine(options.database_url))
    return WorkerLoop(
        worker_id=worker_id,
        coordinator=ClaimCoordinator(session_factory, max_attempts=options.max_attempts),
        repository=GameRepository(session_factory),
        extractor=HttpExtractor(
            scraper_url=options.scraper_url,
            timeout=options.scraper_timeout,
            username=options.username,
            password=options.password,
            debug=options.debug,
        ),
        rate_limiter=RateLimiter(options.min_delay, options.max_delay),
        batch_size=options.batch_size,
    )


def worker_process_main(worker_id: str, options: WorkerOptions) -> None:
    """Entry point of a worker process; exit code 0 means the worker succeeded"""
    configure_logging(options.debug)
    engine = build_engine(options.database_url)
    try:
        worker = build_worker(worker_id, options, build_session_factory(engine))
        asyncio.run(worker.run())
    except Exception as e:
        logger.error(f"❌ Worker {worker_id} failed: {str(e)}")
        raise SystemExit(1)
    finally:
        engine.dispose()


class ProcessLauncher:
    """Runs each worker in its own OS process"""

    def __init__(self, options: WorkerOptions):
        self.options = options
        self._context = multiprocessing.get_context("spawn")

    async def run(self, worker_id: str) -> None:
        process = self._context.Process(
            target=worker_process_main,
            args=(worker_id, self.options),
            name=worker_id,
        )
        process.start()
        await asyncio.to_thread(process.join)
        if process.exitcode != 0:
            raise WorkerFailed(f"Worker {worker_id} failed with code {process.exitcode}")


class TaskLauncher:
    """Runs each worker as an asyncio task in the current process"""

    def __init__(self, worker_factory: Callable[[str], WorkerLoop]):
        self.worker_factory = worker_factory

    async def run(self, worker_id: str) -> None:
        await self.worker_factory(worker_id).run()


class Supervisor:
    def __init__(
        self,
        coordinator: ClaimCoordinator,
        launcher,
        lease_ttl: int = LEASE_TTL_SECONDS,
        sweep_interval: float = LEASE_SWEEP_INTERVAL_SECONDS,
    ):
        self.coordinator = coordinator
        self.launcher = launcher
        self.lease_ttl = lease_ttl
        self.sweep_interval = sweep_interval

    async def run(self, worker_count: int) -> SupervisorReport:
        report = SupervisorReport()
        worker_ids = [f"worker-{i}" for i in range(1, worker_count + 1)]

        logger.info(f"[Supervisor] 🚀 Starting {worker_count} parallel detail scrapers...")

        logger.info("[Supervisor] 🧹 Releasing all claimed games from previous runs...")
        try:
            report.released_at_start = self.coordinator.release_all()
        except StoreUnavailable as e:
            logger.error(f"[Supervisor] ⚠️ Failed to release claimed games: {str(e)}")
            logger.info("[Supervisor] Continuing anyway...")

        sweeper = None
        if self.lease_ttl > 0:
            sweeper = asyncio.create_task(self._sweep_expired_leases())

        try:
            outcomes = await asyncio.gather(*(self._run_unit(w) for w in worker_ids))
        finally:
            if sweeper is not None:
                sweeper.cancel()
                await asyncio.gather(sweeper, return_exceptions=True)

        for worker_id, error in outcomes:
            if error is None:
                report.succeeded.append(worker_id)
            else:
                report.failed[worker_id] = error

        if report.ok:
            logger.info("[Supervisor] 🎉 All workers completed successfully!")
        else:
            logger.error(f"[Supervisor] ❌ Some workers failed: {sorted(report.failed)}")
        return report

    async def _run_unit(self, worker_id: str):
        logger.info(f"[Supervisor] 🚀 Starting worker {worker_id}...")
        try:
            await self.launcher.run(worker_id)
        except Exception as e:
            logger.error(f"[Supervisor] ❌ Worker {worker_id} failed: {str(e)}")
            return worker_id, str(e) or type(e).__name__
        logger.info(f"[Supervisor] ✅ Worker {worker_id} completed successfully")
        return worker_id, None

    async def _sweep_expired_leases(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            try:
                self.coordinator.release_expired(self.lease_ttl)
            except StoreUnavailable as e:
                logger.warning(f"[Supervisor] Lease sweep failed: {str(e)}")
