"""
Shop Radar — Poll Pipeline (orchestrator)

One call per poll tick:

    conditional fetch -> change detection -> extraction chain

The extraction chain tries three strategies in order, each only for the
sections still empty after the previous one:
1. Structural (server HTML, BeautifulSoup)   PRIMARY
2. Rendered DOM (headless Chromium)          BACKUP, only if rendering is available
3. Pattern salvage (regex over raw HTML)     EMERGENCY

Returns a FetchResult, or None when the tick is skipped (304, unchanged body).
"""

from __future__ import annotations

from typing import Awaitable, Callable

import structlog
from pydantic import BaseModel, Field

from src.scraper import FetchResult, Item, Section, StrategyResult
from src.scraper.browser import BrowserSessionManager, rendering_supported
from src.scraper.change_detect import PollState, detect_change
from src.scraper.fetcher import NotModified, StockFetcher
from src.scraper.rendered import render_and_extract
from src.scraper.salvage import scrape_salvage
from src.scraper.structural import scrape_structural

logger = structlog.get_logger(__name__)

Strategy = Callable[[list[Section]], Awaitable[StrategyResult]]


class ChainOutcome(BaseModel):
    items: dict[Section, list[Item]] = Field(default_factory=dict)
    produced_by: dict[Section, str] = Field(default_factory=dict)
    rendered_html: str | None = None


async def run_strategy_chain(
    strategies: list[tuple[str, Strategy]],
    sections: list[Section],
) -> ChainOutcome:
    """
    Try each strategy in turn for the sections nothing has produced yet.

    A strategy "produces" a section when it returns a non-empty list for it.
    Later strategies are never consulted for a section once it is produced.
    """
    outcome = ChainOutcome(items={section: [] for section in sections})

    for name, strategy in strategies:
        pending = [section for section in sections if section not in outcome.produced_by]
        if not pending:
            break

        result = await strategy(pending)
        if result.rendered_html is not None:
            outcome.rendered_html = result.rendered_html

        for section in pending:
            found = result.items.get(section) or []
            if found:
                outcome.items[section] = list(found)
                outcome.produced_by[section] = name

    return outcome


class StockPipeline:
    """
    Runs the fetch / detect / extract pipeline for the tracked page.

    Usage:
        async with StockFetcher() as fetcher:
            pipeline = StockPipeline(fetcher, PollState(), BrowserSessionManager())
            result = await pipeline.run_poll(force=False)
    """

    def __init__(
        self,
        fetcher: StockFetcher,
        state: PollState,
        sessions: BrowserSessionManager | None = None,
        rendering_enabled: bool | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.state = state
        self.sessions = sessions
        self._rendering_enabled = (
            rendering_supported() if rendering_enabled is None else rendering_enabled
        )

    @property
    def rendering_available(self) -> bool:
        return self.sessions is not None and self._rendering_enabled

    def disable_rendering(self) -> None:
        """Stop using the browser path for the rest of the process lifetime."""
        if self._rendering_enabled:
            logger.warning("pipeline_rendering_disabled", source="pipeline")
        self._rendering_enabled = False

    async def run_poll(self, force: bool = False) -> FetchResult | None:
        """
        Run one poll tick.

        Args:
            force: Bypass the validator token and the unchanged-body check.

        Returns:
            FetchResult, or None when the tick was skipped.

        Raises:
            FetchError: The page could not be fetched; PollState is untouched.
            SessionInitError: The browser failed to launch for an unknown reason.
        """
        outcome = await self.fetcher.fetch(force=force, validator=self.state.last_validator)
        if isinstance(outcome, NotModified):
            logger.debug("pipeline_skipped", reason="not_modified", source="pipeline")
            return None

        html = outcome.body
        decision = detect_change(
            html,
            outcome.validator,
            self.state,
            force=force,
            rendering_available=self.rendering_available,
        )
        if not decision.proceed:
            logger.debug("pipeline_skipped", reason=decision.reason, source="pipeline")
            return None

        strategies: list[tuple[str, Strategy]] = []
        if not decision.rendered_only:
            strategies.append(("structural", lambda pending: scrape_structural(html, pending)))
        if self.rendering_available:
            strategies.append(("rendered", self._render))
        strategies.append(("salvage", lambda pending: scrape_salvage(html, pending)))

        chain = await run_strategy_chain(strategies, list(Section))
        used_rendered_path = "rendered" in chain.produced_by.values()

        # Identical server document and the browser found nothing new: keep the snapshot
        if decision.rendered_only and not used_rendered_path:
            logger.debug("pipeline_skipped", reason="unchanged_render_empty", source="pipeline")
            return None

        result = FetchResult(
            seeds=tuple(chain.items[Section.SEEDS]),
            gear=tuple(chain.items[Section.GEAR]),
            raw_html=html,
            rendered_html=chain.rendered_html,
            used_rendered_path=used_rendered_path,
            produced_by=chain.produced_by,
        )

        logger.info(
            "pipeline_poll_complete",
            reason=decision.reason,
            seeds=len(result.seeds),
            gear=len(result.gear),
            used_rendered_path=used_rendered_path,
            produced_by={section.value: name for section, name in chain.produced_by.items()},
            source="pipeline",
        )
        return result

    async def _render(self, pending: list[Section]) -> StrategyResult:
        assert self.sessions is not None
        return await render_and_extract(self.sessions, self.fetcher.url, pending)
