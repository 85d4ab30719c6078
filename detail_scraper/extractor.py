"""
Client for the scraper service that renders and parses BGG detail pages.

The browser, the DOM selectors and the BGG login form all live in the scraper
service. This module only knows its HTTP contract:

    POST /login          {"username", "password"}        -> {"sessionToken"}
    POST /scrape-detail  {"url", "sessionToken", "debug"} -> {"result": {...}}

A 401 from /scrape-detail (or a result with "loginRequired": true) means the
BGG session expired; the extractor logs in again and retries once.
"""
import logging
import time
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from detail_scraper.config import BGG_PASSWORD, BGG_USERNAME, SCRAPER_TIMEOUT, SCRAPER_URL
from detail_scraper.errors import AuthenticationRequired, ExtractionFailure
from detail_scraper.schemas import GameDetails

logger = logging.getLogger(__name__)


class SessionManager:
    """Holds the scraper service session token and knows how to renew it"""

    def __init__(self, client: httpx.AsyncClient, username: Optional[str], password: Optional[str]):
        self.client = client
        self.username = username
        self.password = password
        self.token: Optional[str] = None

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    async def start(self) -> None:
        if not self.has_credentials:
            logger.warning(
                "⚠️ BGG credentials not found in environment. "
                "Continuing without login (may fail on later pages)."
            )
            return
        logger.info("🔐 Performing initial BGG login...")
        await self.login()
        logger.info("✅ Initial login successful - ready to scrape")

    async def refresh(self) -> None:
        if not self.has_credentials:
            raise AuthenticationRequired(
                "BGG login required but BGG_USERNAME and BGG_PASSWORD are not set"
            )
        await self.login()

    async def login(self) -> None:
        try:
            response = await self.client.post(
                "/login",
                json={"username": self.username, "password": self.password},
            )
        except httpx.HTTPError as e:
            raise AuthenticationRequired(f"Login request failed: {str(e)}") from e

        if response.status_code != 200:
            raise AuthenticationRequired(f"Login failed with status {response.status_code}")
        try:
            body = response.json()
        except ValueError as e:
            raise AuthenticationRequired("Login returned invalid JSON") from e

        token = body.get("sessionToken") if isinstance(body, dict) else None
        if not token:
            raise AuthenticationRequired("Login response has no session token")
        self.token = token


class HttpExtractor:
    def __init__(
        self,
        scraper_url: str = SCRAPER_URL,
        timeout: float = SCRAPER_TIMEOUT,
        username: Optional[str] = BGG_USERNAME,
        password: Optional[str] = BGG_PASSWORD,
        debug: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.debug = debug
        self.client = httpx.AsyncClient(base_url=scraper_url, timeout=timeout, transport=transport)
        self.session = SessionManager(self.client, username, password)

    async def start(self) -> None:
        await self.session.start()

    async def aclose(self) -> None:
        await self.client.aclose()

    async def extract(self, url: str) -> GameDetails:
        """
        Scrape one detail page (main page, polls and credits) and return the
        parsed details. Raises ExtractionFailure for anything item-local and
        AuthenticationRequired when a login is needed but impossible.
        """
        start_time = time.monotonic()

        response = await self._post_detail(url)
        if self._login_required(response):
            logger.warning("⚠️ Login session expired, re-authenticating...")
            await self.session.refresh()
            response = await self._post_detail(url)
            if self._login_required(response):
                raise AuthenticationRequired(f"Still not authenticated after login ({url})")

        if response.status_code != 200:
            raise ExtractionFailure(url, f"Scraper returned status {response.status_code}")

        result = self._result(response, url)
        if result.get("scrapeSuccess") is False:
            raise ExtractionFailure(url, result.get("scrapeError") or "Scrape reported failure")

        try:
            details = GameDetails.model_validate(result)
        except ValidationError as e:
            raise ExtractionFailure(url, f"Malformed detail payload: {str(e)}") from e

        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.debug(
            f"Scraped details in {duration_ms}ms - "
            f"categories={len(details.categories)}, mechanisms={len(details.mechanisms)}, "
            f"families={len(details.families)}"
        )
        return details

    async def _post_detail(self, url: str) -> httpx.Response:
        try:
            return await self.client.post(
                "/scrape-detail",
                json={"url": url, "sessionToken": self.session.token, "debug": self.debug},
            )
        except httpx.TimeoutException as e:
            raise ExtractionFailure(url, f"Timeout after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ExtractionFailure(url, str(e)) from e

    @staticmethod
    def _result(response: httpx.Response, url: str) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            raise ExtractionFailure(url, "Scraper returned invalid JSON") from e
        result = body.get("result")
        if not isinstance(result, dict):
            raise ExtractionFailure(url, "Scraper response has no result")
        return result

    @staticmethod
    def _login_required(response: httpx.Response) -> bool:
        if response.status_code == 401:
            return True
        if response.status_code != 200:
            return False
        try:
            result = response.json().get("result") or {}
        except ValueError:
            return False
        return isinstance(result, dict) and bool(result.get("loginRequired"))
