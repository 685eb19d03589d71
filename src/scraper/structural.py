"""
Shop Radar — Structural Extractor

Parses shop markup into ItemRecords using the fixed container/tile schema:

    #seedsList .item-tile    #gearList .item-tile
        .item-image[src]  .item-name  .item-rarity  .item-stock
        .price-usd  .price-robux

Used twice per poll at most: on the raw server HTML, and on the rendered
DOM captured by the browser path. A missing container gives an empty list,
a missing field gives None, and a failure in one section never stops the
other.
"""

from __future__ import annotations

from typing import Iterable
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup, Tag

from src.config import settings
from src.scraper import ItemRecord, Section, StrategyResult

logger = structlog.get_logger(__name__)

_NBSP = "\u00a0"


def container_selector(section: Section) -> str:
    if section is Section.SEEDS:
        return settings.SEEDS_CONTAINER_SELECTOR
    return settings.GEAR_CONTAINER_SELECTOR


def parse_document(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def extract_section(
    soup: BeautifulSoup,
    section: Section,
    base_url: str | None = None,
) -> list[ItemRecord]:
    """
    Extract every tile inside one section container.

    Args:
        soup: Parsed document.
        section: Which container to read.
        base_url: Origin that relative image paths are resolved against.

    Returns:
        ItemRecords in document order; empty when the container is absent
        or holds no tiles.
    """
    container = soup.select_one(container_selector(section))
    if container is None:
        return []

    base = base_url or settings.SOURCE_URL
    return [
        _extract_tile(tile, base)
        for tile in container.select(settings.ITEM_TILE_SELECTOR)
    ]


def extract_items(
    html: str | BeautifulSoup,
    sections: Iterable[Section] = tuple(Section),
    base_url: str | None = None,
) -> dict[Section, list[ItemRecord]]:
    """Extract the requested sections, isolating failures per section."""
    soup = html if isinstance(html, BeautifulSoup) else parse_document(html)

    results: dict[Section, list[ItemRecord]] = {}
    for section in sections:
        try:
            results[section] = extract_section(soup, section, base_url)
        except Exception as e:
            logger.error(
                "structural_section_failed",
                section=section.value,
                error=str(e),
                source="structural",
            )
            results[section] = []
    return results


async def scrape_structural(html: str, pending: list[Section]) -> StrategyResult:
    """Strategy adapter: structural extraction over the raw server HTML."""
    items = extract_items(html, pending)
    logger.info(
        "structural_parsed",
        **{f"{section.value}_count": len(found) for section, found in items.items()},
        source="structural",
    )
    return StrategyResult(items=items)


def _extract_tile(tile: Tag, base_url: str) -> ItemRecord:
    """Read all six fields of a tile; missing sub-elements become None."""
    return ItemRecord(
        name=_text(tile, ".item-name"),
        rarity=_text(tile, ".item-rarity"),
        stock_label=_text(tile, ".item-stock"),
        price_usd=_price(tile, ".price-usd"),
        price_robux=_price(tile, ".price-robux"),
        image_url=_image(tile, base_url),
    )


def _text(tile: Tag, selector: str) -> str | None:
    element = tile.select_one(selector)
    if element is None:
        return None
    return element.get_text().strip()


def _price(tile: Tag, selector: str) -> str | None:
    element = tile.select_one(selector)
    if element is None:
        return None
    return element.get_text().replace(_NBSP, " ").strip()


def _image(tile: Tag, base_url: str) -> str | None:
    element = tile.select_one(".item-image")
    if element is None:
        return None
    src = element.get("src")
    if not src:
        return None
    return absolutize(str(src), base_url)


def absolutize(src: str, base_url: str | None = None) -> str:
    """Resolve a possibly relative image path against the tracked site."""
    return urljoin(base_url or settings.SOURCE_URL, src.strip())
