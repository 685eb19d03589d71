"""
Tests for the conditional fetcher (src/scraper/fetcher.py).

Covers:
- If-None-Match handling (sent, suppressed by force, absent without token)
- 304 short-circuit
- FetchError on bad status, transport failure and timeout
"""

from __future__ import annotations

import asyncio
import time
from unittest.mock import patch

import httpx
import pytest
import respx

from src.scraper.errors import FetchError
from src.scraper.fetcher import FetchedPage, NotModified, StockFetcher

URL = "https://shop.example.com/"


@pytest.mark.asyncio
async def test_fetch_returns_body_and_etag() -> None:
    """200 returns the body and the ETag as validator."""
    with respx.mock:
        respx.get(URL).mock(
            return_value=httpx.Response(200, text="<html>ok</html>", headers={"ETag": '"abc"'})
        )

        async with StockFetcher(url=URL) as fetcher:
            outcome = await fetcher.fetch()

    assert isinstance(outcome, FetchedPage)
    assert outcome.body == "<html>ok</html>"
    assert outcome.validator == '"abc"'


@pytest.mark.asyncio
async def test_fetch_without_etag_has_no_validator() -> None:
    with respx.mock:
        respx.get(URL).mock(return_value=httpx.Response(200, text="<html></html>"))

        async with StockFetcher(url=URL) as fetcher:
            outcome = await fetcher.fetch()

    assert isinstance(outcome, FetchedPage)
    assert outcome.validator is None


@pytest.mark.asyncio
async def test_fetch_sends_if_none_match() -> None:
    """A known validator is sent as If-None-Match when not forced."""
    with respx.mock:
        route = respx.get(URL).mock(return_value=httpx.Response(304))

        async with StockFetcher(url=URL) as fetcher:
            outcome = await fetcher.fetch(force=False, validator='"abc"')

    assert isinstance(outcome, NotModified)
    assert route.calls.last.request.headers["If-None-Match"] == '"abc"'


@pytest.mark.asyncio
async def test_forced_fetch_omits_if_none_match() -> None:
    with respx.mock:
        route = respx.get(URL).mock(return_value=httpx.Response(200, text="<html></html>"))

        async with StockFetcher(url=URL) as fetcher:
            await fetcher.fetch(force=True, validator='"abc"')

    assert "If-None-Match" not in route.calls.last.request.headers


@pytest.mark.asyncio
async def test_no_validator_no_header() -> None:
    with respx.mock:
        route = respx.get(URL).mock(return_value=httpx.Response(200, text="<html></html>"))

        async with StockFetcher(url=URL) as fetcher:
            await fetcher.fetch(validator=None)

    assert "If-None-Match" not in route.calls.last.request.headers


@pytest.mark.asyncio
async def test_bad_status_raises_fetch_error() -> None:
    """Non-success statuses raise FetchError carrying the code."""
    with respx.mock:
        respx.get(URL).mock(return_value=httpx.Response(503))

        async with StockFetcher(url=URL) as fetcher:
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch()

    assert exc_info.value.status_code == 503
    assert exc_info.value.timeout is False


@pytest.mark.asyncio
async def test_forced_304_is_an_error() -> None:
    """A 304 is only meaningful for a conditional request."""
    with respx.mock:
        respx.get(URL).mock(return_value=httpx.Response(304))

        async with StockFetcher(url=URL) as fetcher:
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch(force=True)

    assert exc_info.value.status_code == 304


@pytest.mark.asyncio
async def test_timeout_raises_fetch_error() -> None:
    with respx.mock:
        respx.get(URL).mock(side_effect=httpx.ReadTimeout("timed out"))

        async with StockFetcher(url=URL) as fetcher:
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch()

    assert exc_info.value.timeout is True
    assert exc_info.value.status_code is None


@pytest.mark.asyncio
async def test_connection_error_raises_fetch_error() -> None:
    with respx.mock:
        respx.get(URL).mock(side_effect=httpx.ConnectError("refused"))

        async with StockFetcher(url=URL) as fetcher:
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch()

    assert exc_info.value.timeout is False


def test_fetcher_defaults_from_settings() -> None:
    from src.config import settings

    fetcher = StockFetcher()
    assert fetcher.url == settings.SOURCE_URL
    assert fetcher._timeout == settings.FETCH_TIMEOUT_SECONDS
    assert fetcher._client is None


@pytest.mark.asyncio
async def test_slow_body_hits_overall_ceiling() -> None:
    """A response trickling in past the timeout raises instead of running on."""

    async def trickle(*args, **kwargs):
        await asyncio.sleep(1.0)
        return httpx.Response(200, text="<html>late</html>")

    async with StockFetcher(url=URL, timeout=0.05) as fetcher:
        with patch.object(fetcher._client, "get", side_effect=trickle):
            started = time.monotonic()
            with pytest.raises(FetchError) as exc_info:
                await fetcher.fetch(force=True)
            elapsed = time.monotonic() - started

    assert exc_info.value.timeout is True
    assert elapsed < 0.5
