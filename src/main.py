"""
Shop Radar — Application Entrypoint

Configures structlog, builds the process-scoped state (PollState, browser
session, snapshot store, subscriber hub) and starts the poll scheduler.

Run via:
    python -m src.main
"""

from __future__ import annotations

import asyncio
import logging
import sys

import structlog

from src.config import settings
from src.pipeline.broadcast import SubscriberHub
from src.pipeline.scheduler import run_scheduler
from src.pipeline.snapshot import SnapshotStore
from src.scraper.browser import PLAYWRIGHT_AVAILABLE, BrowserSessionManager, rendering_supported
from src.scraper.change_detect import PollState
from src.scraper.fetcher import StockFetcher
from src.scraper.runner import StockPipeline


# ---------------------------------------------------------------------------
# Structlog Configuration
# ---------------------------------------------------------------------------


def _configure_logging(log_level: str = "INFO") -> None:
    """
    Set up structured logging with JSON output.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
    """
    # Configure stdlib logging first (for third-party libraries)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Configure structlog with JSON output
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Application Startup
# ---------------------------------------------------------------------------


async def main() -> None:
    """
    Application entrypoint.

    Execution order:
    1. Configure logging (structlog JSON)
    2. Create process-scoped state: PollState, browser session, snapshot, hub
    3. Open the HTTP client and start the scheduler (runs until a shutdown signal)
    4. Close the browser on the way out
    """
    _configure_logging(log_level=settings.LOG_LEVEL)
    logger = structlog.get_logger(__name__)

    logger.info("shop_radar_startup_begin", version="0.1.0", source_url=settings.SOURCE_URL)

    if settings.ENABLE_RENDERING and not PLAYWRIGHT_AVAILABLE:
        logger.warning("config_playwright_missing", note="rendered fallback disabled")

    state = PollState()
    sessions = BrowserSessionManager() if rendering_supported() else None
    store = SnapshotStore()
    hub = SubscriberHub(store)

    logger.info(
        "shop_radar_startup_complete",
        rendering_enabled=sessions is not None,
        poll_interval_seconds=settings.POLL_INTERVAL_SECONDS,
    )

    try:
        async with StockFetcher() as fetcher:
            pipeline = StockPipeline(fetcher, state, sessions)
            await run_scheduler(pipeline, store, hub, sessions)
    except KeyboardInterrupt:
        logger.info("shop_radar_interrupted_by_user")
    except Exception as e:
        logger.error(
            "shop_radar_fatal_error",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise
    finally:
        if sessions is not None:
            await sessions.close()
        logger.info("shop_radar_shutdown_complete")


# ---------------------------------------------------------------------------
# CLI Entry
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    asyncio.run(main())
