"""
Shop Radar — Conditional Fetcher

Issues a single GET against the tracked page. When a validator token (ETag)
from a previous fetch is known and the call is not forced, it is sent as
If-None-Match and a 304 short-circuits without reading a body.

The fetcher never touches PollState; the change detector owns that.
"""

from __future__ import annotations

import asyncio
from typing import Any, Literal, Union

import httpx
import structlog
from pydantic import BaseModel

from src.config import settings
from src.scraper.errors import FetchError

logger = structlog.get_logger(__name__)


class NotModified(BaseModel):
    status: Literal["not-modified"] = "not-modified"


class FetchedPage(BaseModel):
    status: Literal["ok"] = "ok"
    body: str
    validator: str | None = None


FetchOutcome = Union[NotModified, FetchedPage]


class StockFetcher:
    """
    Async conditional-GET client for the tracked shop page.

    Usage:
        async with StockFetcher() as fetcher:
            outcome = await fetcher.fetch(force=False, validator=state.last_validator)
    """

    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
    ):
        self._url = url or settings.SOURCE_URL
        self._timeout = timeout if timeout is not None else settings.FETCH_TIMEOUT_SECONDS
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> StockFetcher:
        self._client = httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=True,
        )
        return self

    async def __aexit__(self, *args: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    @property
    def url(self) -> str:
        return self._url

    async def fetch(self, force: bool = False, validator: str | None = None) -> FetchOutcome:
        """
        Fetch the tracked page once.

        Args:
            force: Ignore the validator token and always download the body.
            validator: ETag from the previous successful fetch, if any.

        Returns:
            NotModified on a 304 (unforced), otherwise FetchedPage.

        Raises:
            FetchError: On timeout, transport failure or any other non-2xx status.
        """
        assert self._client is not None, "Fetcher not initialized. Use 'async with'."

        headers: dict[str, str] = {}
        if validator and not force:
            headers["If-None-Match"] = validator

        # httpx times each phase separately; wait_for caps the whole request
        try:
            response = await asyncio.wait_for(
                self._client.get(self._url, headers=headers),
                timeout=self._timeout,
            )
        except (httpx.TimeoutException, asyncio.TimeoutError) as e:
            logger.warning("fetch_timeout", url=self._url, error=str(e), source="fetcher")
            raise FetchError(f"fetch timed out after {self._timeout}s", timeout=True) from e
        except httpx.RequestError as e:
            logger.warning("fetch_request_error", url=self._url, error=str(e), source="fetcher")
            raise FetchError(f"fetch failed: {e}") from e

        if response.status_code == 304 and not force:
            logger.debug("fetch_not_modified", url=self._url, source="fetcher")
            return NotModified()

        if not response.is_success:
            logger.warning(
                "fetch_bad_status",
                url=self._url,
                status_code=response.status_code,
                source="fetcher",
            )
            raise FetchError(
                f"fetch failed {response.status_code}",
                status_code=response.status_code,
            )

        etag = response.headers.get("etag")
        logger.debug(
            "fetch_ok",
            url=self._url,
            status_code=response.status_code,
            etag=etag,
            bytes=len(response.content),
            source="fetcher",
        )
        return FetchedPage(body=response.text, validator=etag)
