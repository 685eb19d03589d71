"""
Shop Radar — Current Stock Snapshot

Holds the latest stock seen by the poller. Only the newest snapshot is kept;
replacing it is a single reference swap, so readers always see either the
old or the new snapshot, never a mix.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel

from src.scraper import FetchResult, Item, ItemRecord


class StockSnapshot(BaseModel):
    model_config = {"frozen": True}

    seeds: tuple[Item, ...] = ()
    gear: tuple[Item, ...] = ()
    last_updated: datetime | None = None

    def item_names(self) -> set[str]:
        """Lower-cased names of every structured item."""
        return {
            item.name.lower()
            for item in (*self.seeds, *self.gear)
            if isinstance(item, ItemRecord) and item.name
        }

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready form pushed to subscribers and served to readers."""
        return {
            "seeds": [item.model_dump(mode="json", by_alias=True) for item in self.seeds],
            "gear": [item.model_dump(mode="json", by_alias=True) for item in self.gear],
            "lastUpdated": self.last_updated.isoformat() if self.last_updated else None,
        }


class SnapshotStore:
    """Process-wide holder of the current StockSnapshot."""

    def __init__(self) -> None:
        self._current = StockSnapshot()

    @property
    def current(self) -> StockSnapshot:
        return self._current

    def replace(self, result: FetchResult, now: datetime | None = None) -> StockSnapshot:
        """Swap in a freshly stamped snapshot built from a poll result."""
        snapshot = StockSnapshot(
            seeds=result.seeds,
            gear=result.gear,
            last_updated=now or datetime.now(timezone.utc),
        )
        self._current = snapshot
        return snapshot


def new_item_names(previous: StockSnapshot, current: StockSnapshot) -> list[str]:
    """Names present in current but not in previous, sorted."""
    return sorted(current.item_names() - previous.item_names())
