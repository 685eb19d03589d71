"""Shop Radar — Scraper Layer (data model)"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class Section(str, Enum):
    """The two item classes listed on the shop page."""
    SEEDS = "seeds"
    GEAR = "gear"


class ItemRecord(BaseModel):
    """A structured shop tile. Every field is best-effort."""

    model_config = {
        "frozen": True,
        "alias_generator": to_camel,
        "populate_by_name": True,
    }

    kind: Literal["structured"] = "structured"
    name: str | None = None
    rarity: str | None = None
    stock_label: str | None = None
    price_usd: str | None = None
    price_robux: str | None = None
    image_url: str | None = None


class SalvageRecord(BaseModel):
    """A bare text fragment recovered by pattern matching."""

    model_config = {"frozen": True}

    kind: Literal["salvaged"] = "salvaged"
    text: str


Item = Annotated[Union[ItemRecord, SalvageRecord], Field(discriminator="kind")]


class StrategyResult(BaseModel):
    """What one extraction strategy produced for the sections it was asked about."""

    items: dict[Section, list[Item]] = Field(default_factory=dict)
    rendered_html: str | None = None


class FetchResult(BaseModel):
    """Outcome of one non-skipped poll. Immutable once returned."""

    model_config = {"frozen": True}

    seeds: tuple[Item, ...] = ()
    gear: tuple[Item, ...] = ()
    raw_html: str
    rendered_html: str | None = None
    used_rendered_path: bool = False
    produced_by: dict[Section, str] = Field(default_factory=dict)
