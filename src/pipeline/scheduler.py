"""
Shop Radar — Polling Scheduler

Drives the stock pipeline on a fixed cadence (5 seconds by default), plus
operator-triggered forced refreshes. Each successful tick replaces the
current snapshot and pushes it to every subscriber.

Ticks never overlap: the timer and manual refreshes share one lock, so two
ticks can't race to launch a second browser or interleave PollState writes.

Failure handling per tick:
- FetchError: logged, snapshot kept, next tick runs on schedule.
- SessionInitError: rendering is switched off for the rest of the process
  and the tick is re-run once, forced, without it.
- Anything else: logged, loop continues.
"""

from __future__ import annotations

import asyncio
import signal
from typing import Any

import structlog

from src.config import settings
from src.pipeline.broadcast import SubscriberHub
from src.pipeline.snapshot import SnapshotStore, StockSnapshot, new_item_names
from src.scraper import FetchResult
from src.scraper.browser import BrowserSessionManager
from src.scraper.errors import FetchError, SessionInitError
from src.scraper.runner import StockPipeline

logger = structlog.get_logger(__name__)


class Scheduler:
    """
    Async poll loop around a StockPipeline.

    Owns no scraping state itself: PollState and the browser session live in
    the pipeline, the latest snapshot in the SnapshotStore.
    """

    def __init__(
        self,
        pipeline: StockPipeline,
        store: SnapshotStore,
        hub: SubscriberHub,
        interval_seconds: float | None = None,
        sessions: BrowserSessionManager | None = None,
    ):
        self.pipeline = pipeline
        self.store = store
        self.hub = hub
        self.sessions = sessions
        self._interval = (
            interval_seconds if interval_seconds is not None else settings.POLL_INTERVAL_SECONDS
        )
        self._shutdown_event = asyncio.Event()
        self._poll_lock = asyncio.Lock()

    async def shutdown(self) -> None:
        """
        Signal graceful shutdown to the scheduler loop.

        The browser is closed right away rather than after the in-flight
        tick; a render cut short degrades to "produced nothing".
        """
        logger.info("scheduler_shutdown_requested")
        self._shutdown_event.set()
        if self.sessions is not None:
            self.pipeline.disable_rendering()
            await self.sessions.close()

    async def poll_once(self, force: bool = False) -> StockSnapshot | None:
        """
        Run a single pipeline tick and publish its result.

        Args:
            force: Bypass conditional-fetch and change detection.

        Returns:
            The new snapshot, or None if the tick was skipped or failed.
        """
        async with self._poll_lock:
            try:
                result = await self._run_pipeline(force)
            except FetchError as e:
                logger.error(
                    "scheduler_fetch_failed",
                    error=str(e),
                    status_code=e.status_code,
                    timeout=e.timeout,
                )
                return None

            if result is None:
                return None
            return self._publish(result)

    async def refresh(self) -> dict[str, Any]:
        """
        Operator force-refresh.

        Returns:
            The current snapshot payload: the new one on success, the stale
            one if the forced tick failed.
        """
        logger.info("scheduler_manual_refresh")
        await self.poll_once(force=True)
        return self.store.current.to_payload()

    async def _run_pipeline(self, force: bool) -> FetchResult | None:
        try:
            return await self.pipeline.run_poll(force=force)
        except SessionInitError as e:
            logger.error(
                "scheduler_browser_init_failed",
                error=str(e),
                note="continuing without rendering",
            )
            self.pipeline.disable_rendering()
            return await self.pipeline.run_poll(force=True)

    def _publish(self, result: FetchResult) -> StockSnapshot:
        previous = self.store.current
        snapshot = self.store.replace(result)

        if previous.last_updated is not None:
            added = new_item_names(previous, snapshot)
            if added:
                logger.info("stock_new_items", names=added)

        delivered = self.hub.publish(snapshot)
        logger.info(
            "scheduler_snapshot_updated",
            seeds=len(snapshot.seeds),
            gear=len(snapshot.gear),
            used_rendered_path=result.used_rendered_path,
            subscribers=delivered,
        )
        return snapshot

    async def run(self) -> None:
        """
        Main scheduler loop. Runs indefinitely until shutdown is signaled.

        The first tick is forced so a fresh process always publishes stock.
        """
        logger.info("scheduler_started", poll_interval_seconds=self._interval)

        force = True
        try:
            while not self._shutdown_event.is_set():
                try:
                    await self.poll_once(force=force)
                    force = False
                except Exception as e:
                    logger.error(
                        "scheduler_unknown_error",
                        error=str(e),
                        error_type=type(e).__name__,
                    )

                # Sleep before next tick
                try:
                    await asyncio.wait_for(
                        self._shutdown_event.wait(),
                        timeout=self._interval,
                    )
                except asyncio.TimeoutError:
                    # Expected: timeout means no shutdown signal, continue loop
                    continue

        except asyncio.CancelledError:
            logger.info("scheduler_cancelled")
            raise
        finally:
            logger.info("scheduler_stopped")


async def run_scheduler(
    pipeline: StockPipeline,
    store: SnapshotStore,
    hub: SubscriberHub,
    sessions: BrowserSessionManager | None = None,
) -> None:
    """
    Initialize and run the scheduler with graceful shutdown handling.

    Registers SIGTERM/SIGINT handlers to trigger shutdown (which closes the
    headless browser immediately), and closes it again before returning in
    case the interrupted tick relaunched it.

    Args:
        pipeline: Configured stock pipeline.
        store: Snapshot holder shared with readers.
        hub: Subscriber registry to publish to.
        sessions: Browser session to close on shutdown.
    """
    scheduler = Scheduler(pipeline, store, hub, sessions=sessions)

    # Register signal handlers for graceful shutdown
    def handle_signal(_signum: int, _frame: Any) -> None:
        """Called by SIGTERM/SIGINT."""
        logger.info("scheduler_signal_received")
        asyncio.create_task(scheduler.shutdown())

    loop = asyncio.get_running_loop()

    # Platform-dependent signal handling
    try:
        loop.add_signal_handler(signal.SIGTERM, handle_signal, signal.SIGTERM, None)
        loop.add_signal_handler(signal.SIGINT, handle_signal, signal.SIGINT, None)
    except NotImplementedError:
        # Windows doesn't support add_signal_handler for all signals
        logger.warning("signal_handlers_not_supported_on_platform")

    try:
        await scheduler.run()
    except Exception as e:
        logger.error("scheduler_fatal_error", error=str(e), error_type=type(e).__name__)
        raise
    finally:
        if sessions is not None:
            await sessions.close()
