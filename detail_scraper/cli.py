#!/usr/bin/env python
"""
Command line entry points

    detail-scrape [gameId|workerId] [--debug]
        no argument   release all leases, then drain the backlog with one worker
        gameId        scrape one specific game
        workerId      run as a parallel worker (worker-N, or WORKER_ID env)

    detail-scrape-parallel [numWorkers] [--debug] [--single-process]
        run 1-20 workers (default 5, or WORKERS env) under the supervisor
"""
import argparse
import asyncio
import logging
import time
import uuid
from typing import List, Optional

from detail_scraper import config
from detail_scraper.const import DEFAULT_WORKERS, MAX_WORKERS, MIN_WORKERS
from detail_scraper.coordinator import ClaimCoordinator
from detail_scraper.database import build_engine, build_session_factory
from detail_scraper.logs import configure_logging
from detail_scraper.supervisor import (
    ProcessLauncher,
    Supervisor,
    TaskLauncher,
    WorkerOptions,
    build_worker,
)

logger = logging.getLogger(__name__)


def _single_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="detail-scrape",
        description="Scrape BGG detail pages for games that still need details",
    )
    parser.add_argument(
        "target",
        nargs="?",
        help="game id to scrape a single game, or worker id (worker-N) to run as a parallel worker",
    )
    parser.add_argument("--debug", action="store_true", help="verbose logging and scraper debug artifacts")
    return parser


def _parallel_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="detail-scrape-parallel",
        description="Run several detail scraper workers against the shared backlog",
    )
    parser.add_argument(
        "workers",
        nargs="?",
        help=f"number of workers ({MIN_WORKERS}-{MAX_WORKERS}, default {DEFAULT_WORKERS})",
    )
    parser.add_argument("--debug", action="store_true", help="verbose logging and scraper debug artifacts")
    parser.add_argument(
        "--single-process",
        action="store_true",
        help="run all workers as tasks in this process (for debugging)",
    )
    return parser


def parse_worker_count(parser: argparse.ArgumentParser, value: Optional[str]) -> int:
    if value is None:
        if config.WORKERS:
            try:
                count = int(config.WORKERS)
            except ValueError:
                count = 0
            if MIN_WORKERS <= count <= MAX_WORKERS:
                return count
            logger.warning(
                f"Ignoring invalid WORKERS={config.WORKERS!r}, "
                f"expected {MIN_WORKERS}-{MAX_WORKERS}; using {DEFAULT_WORKERS}"
            )
        return DEFAULT_WORKERS

    try:
        count = int(value)
    except ValueError:
        count = 0
    if count < MIN_WORKERS or count > MAX_WORKERS:
        parser.error(f"Number of workers must be between {MIN_WORKERS} and {MAX_WORKERS}")
    return count


def main(argv: Optional[List[str]] = None) -> int:
    parser = _single_parser()
    args = parser.parse_args(argv)
    debug = args.debug or config.DEBUG
    configure_logging(debug)
    if debug:
        logger.info("🐛 Debug mode enabled - scraper will save debug artifacts")

    game_id = None
    worker_id = None
    if args.target is not None and (args.target.startswith("worker-") or config.WORKER_ID):
        worker_id = args.target
    elif args.target is not None:
        try:
            game_id = int(args.target)
        except ValueError:
            parser.error("Game ID must be a valid number")
    elif config.WORKER_ID:
        worker_id = config.WORKER_ID

    options = WorkerOptions(debug=debug)
    engine = build_engine(options.database_url)
    session_factory = build_session_factory(engine)

    try:
        if worker_id is not None:
            logger.info(f"🔍 Starting worker {worker_id} for parallel scraping")
            worker = build_worker(worker_id, options, session_factory)
            asyncio.run(worker.run())

        elif game_id is not None:
            logger.info(f"🎯 Scraping details for specific game ID: {game_id}")
            worker = build_worker(f"single-{game_id}", options, session_factory)
            if not asyncio.run(worker.run_single(game_id)):
                return 1

        else:
            logger.info("🔍 Scraping details for all games that need detailed information")
            ClaimCoordinator(session_factory).release_all()
            standalone_id = f"worker-{int(time.time())}-{uuid.uuid4().hex[:8]}"
            worker = build_worker(standalone_id, options, session_factory)
            asyncio.run(worker.run())

        logger.info("✅ Detail scraping completed successfully!")
        return 0

    except Exception as e:
        logger.error(f"❌ Detail scraping failed: {str(e)}")
        return 1
    finally:
        engine.dispose()


def main_parallel(argv: Optional[List[str]] = None) -> int:
    parser = _parallel_parser()
    args = parser.parse_args(argv)
    worker_count = parse_worker_count(parser, args.workers)
    debug = args.debug or config.DEBUG
    configure_logging(debug)

    options = WorkerOptions(debug=debug)
    engine = build_engine(options.database_url)
    session_factory = build_session_factory(engine)

    if args.single_process:
        launcher = TaskLauncher(lambda wid: build_worker(wid, options, session_factory))
    else:
        launcher = ProcessLauncher(options)

    supervisor = Supervisor(
        ClaimCoordinator(session_factory, max_attempts=options.max_attempts),
        launcher,
    )
    try:
        report = asyncio.run(supervisor.run(worker_count))
    finally:
        engine.dispose()
    return 0 if report.ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
