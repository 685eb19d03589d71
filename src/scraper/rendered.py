"""
Shop Radar — Rendered-DOM Extractor

The shop fills its tiles client-side, so the server HTML can come back with
empty containers. This strategy loads the page in the shared headless
browser, waits for tiles to appear (once, then once more after a short
pause), snapshots the live DOM and runs the same field extraction over it.

Any failure here (navigation timeout, crashed page, bad markup) means
"rendering produced nothing"; the pipeline moves on to salvage. The only
exception allowed through is SessionInitError from the session manager.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from src.config import settings
from src.scraper import Section, StrategyResult
from src.scraper.browser import BrowserSessionManager
from src.scraper.structural import container_selector, extract_items

logger = structlog.get_logger(__name__)


def tile_wait_selector() -> str:
    """Selector matching a tile in either section container."""
    return ", ".join(
        f"{container_selector(section)} {settings.ITEM_TILE_SELECTOR}"
        for section in Section
    )


async def render_and_extract(
    sessions: BrowserSessionManager,
    url: str,
    pending: list[Section],
) -> StrategyResult:
    """
    Render the tracked page and extract the still-empty sections.

    Args:
        sessions: Shared browser session manager.
        url: Page to render.
        pending: Sections that earlier strategies left empty.

    Returns:
        StrategyResult with items per pending section and the rendered markup;
        an empty result when no browser is available or rendering failed.

    Raises:
        SessionInitError: Propagated from the session manager.
    """
    browser = await sessions.get_browser()
    if browser is None:
        logger.warning("rendered_no_browser", url=url, source="rendered")
        return StrategyResult()

    context: Any = None
    try:
        context = await browser.new_context(
            user_agent=settings.RENDER_USER_AGENT,
            viewport={
                "width": settings.RENDER_VIEWPORT_WIDTH,
                "height": settings.RENDER_VIEWPORT_HEIGHT,
            },
        )
        page = await context.new_page()
        _attach_diagnostics(page)

        logger.info("rendered_navigating", url=url, source="rendered")
        await page.goto(
            url,
            wait_until="networkidle",
            timeout=settings.RENDER_NAVIGATION_TIMEOUT_MS,
        )

        await _wait_for_tiles(page)

        rendered_html = await page.content()
        items = extract_items(rendered_html, pending, base_url=url)

        logger.info(
            "rendered_extracted",
            **{f"{section.value}_count": len(found) for section, found in items.items()},
            source="rendered",
        )
        return StrategyResult(items=items, rendered_html=rendered_html)

    except Exception as e:
        logger.error(
            "rendered_extraction_failed",
            url=url,
            error=str(e),
            error_type=type(e).__name__,
            source="rendered",
        )
        return StrategyResult()

    finally:
        if context is not None:
            try:
                await context.close()
            except Exception as e:
                logger.warning("rendered_context_close_failed", error=str(e), source="rendered")


async def _wait_for_tiles(page: Any) -> bool:
    """
    Wait for at least one tile, retrying once after a short pause.

    Returns False if both waits time out; the caller extracts anyway since a
    partially rendered page may still hold usable tiles.
    """
    selector = tile_wait_selector()
    try:
        await page.wait_for_selector(
            selector,
            state="attached",
            timeout=settings.RENDER_SELECTOR_TIMEOUT_MS,
        )
        return True
    except Exception as e:
        logger.info("rendered_wait_timed_out_retrying", error=str(e), source="rendered")

    await asyncio.sleep(settings.RENDER_SELECTOR_RETRY_PAUSE_SECONDS)
    try:
        await page.wait_for_selector(
            selector,
            state="attached",
            timeout=settings.RENDER_SELECTOR_RETRY_TIMEOUT_MS,
        )
        return True
    except Exception as e:
        logger.info("rendered_secondary_wait_timed_out", error=str(e), source="rendered")
        return False


def _attach_diagnostics(page: Any) -> None:
    """Log page console output, script errors and failed requests."""
    page.on(
        "console",
        lambda message: logger.debug("page_console", text=message.text, source="rendered"),
    )
    page.on(
        "pageerror",
        lambda error: logger.debug("page_error", error=str(error), source="rendered"),
    )
    page.on(
        "requestfailed",
        lambda request: logger.debug(
            "page_request_failed",
            url=request.url,
            failure=request.failure,
            source="rendered",
        ),
    )
