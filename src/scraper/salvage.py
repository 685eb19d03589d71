"""
Shop Radar — Pattern Salvage (last resort)

When neither the server HTML nor the rendered DOM yields tiles for a section,
scan the raw markup for known item names or generic "seed"/"gear" mentions.
Each match becomes a SalvageRecord: partial recall, no field breakdown.
"""

from __future__ import annotations

import re

import structlog

from src.config import settings
from src.scraper import Section, SalvageRecord, StrategyResult

logger = structlog.get_logger(__name__)

# Up to 50 word/space/punctuation chars after the keyword
_TAIL = r"[\w\s\-,:]{0,50}"


def _seed_pattern() -> re.Pattern[str]:
    names = [re.escape(name) for name in settings.SALVAGE_SEED_NAMES]
    return re.compile("|".join(names + [rf"\bseed\b{_TAIL}"]), re.IGNORECASE)


_GEAR_PATTERN = re.compile(rf"gear{_TAIL}", re.IGNORECASE)


def salvage_section(html: str, section: Section) -> list[SalvageRecord]:
    """Return one SalvageRecord per pattern match, in document order."""
    pattern = _seed_pattern() if section is Section.SEEDS else _GEAR_PATTERN
    records = []
    for match in pattern.finditer(html or ""):
        text = match.group().strip()
        if text:
            records.append(SalvageRecord(text=text))
    return records


async def scrape_salvage(html: str, pending: list[Section]) -> StrategyResult:
    """Strategy adapter: pattern salvage over the raw server HTML."""
    items = {section: salvage_section(html, section) for section in pending}
    for section, found in items.items():
        if found:
            logger.warning(
                "salvage_used",
                section=section.value,
                matches=len(found),
                source="salvage",
            )
    return StrategyResult(items=items)
