"""
Error taxonomy for the detail scraper.

Item-local failures (ExtractionFailure, PersistenceFailure) are caught by the
worker loop and never abort a batch. AuthenticationRequired and
StoreUnavailable are fatal to the worker that raised them.
"""


class DetailScrapeError(Exception):
    """Base class for detail scraper errors"""


class ExtractionFailure(DetailScrapeError):
    """The scraper service could not produce details for a page"""

    def __init__(self, url: str, message: str):
        super().__init__(f"{message} ({url})")
        self.url = url


class PersistenceFailure(DetailScrapeError):
    """Writing scraped details to the store failed for one game"""

    def __init__(self, game_id: int, message: str):
        super().__init__(f"Game {game_id}: {message}")
        self.game_id = game_id


class LeaseLost(PersistenceFailure):
    """The writing worker no longer holds the game's lease"""

    def __init__(self, game_id: int, worker_id: str):
        super().__init__(game_id, f"lease is not held by {worker_id}")
        self.worker_id = worker_id


class AuthenticationRequired(DetailScrapeError):
    """A login is required and no credentials are configured"""


class StoreUnavailable(DetailScrapeError):
    """The backlog store could not be reached"""
