"""
Shop Radar — Subscriber Fan-out

Keeps one bounded queue of encoded Server-Sent-Events frames per connected
subscriber. The HTTP layer drains a Subscription's queue onto its socket.

Delivery is best-effort: a subscriber that falls a full queue behind has new
frames dropped, and nothing is replayed after a disconnect.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from typing import Any

import structlog

from src.config import settings
from src.pipeline.snapshot import SnapshotStore, StockSnapshot

logger = structlog.get_logger(__name__)


def encode_event(data: Any, event: str | None = None) -> str:
    """Encode one SSE frame."""
    frame = f"event: {event}\n" if event else ""
    return frame + f"data: {json.dumps(data)}\n\n"


class Subscription:
    def __init__(self, client_id: str, maxsize: int) -> None:
        self.client_id = client_id
        self.queue: asyncio.Queue[str] = asyncio.Queue(maxsize=maxsize)

    async def next_event(self) -> str:
        return await self.queue.get()


class SubscriberHub:
    """
    Registry of live subscribers.

    Usage:
        hub = SubscriberHub(store)
        sub = hub.subscribe()
        frame = await sub.next_event()
        ...
        hub.unsubscribe(sub.client_id)
    """

    def __init__(self, store: SnapshotStore, queue_size: int | None = None) -> None:
        self._store = store
        self._queue_size = queue_size or settings.SUBSCRIBER_QUEUE_SIZE
        self._subscribers: dict[str, Subscription] = {}

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, client_id: str | None = None) -> Subscription:
        """Register a subscriber and queue the current snapshot plus its client id."""
        client_id = client_id or uuid.uuid4().hex[:8]
        subscription = Subscription(client_id, self._queue_size)
        self._subscribers[client_id] = subscription

        self._offer(subscription, encode_event(self._store.current.to_payload()))
        self._offer(subscription, encode_event({"clientId": client_id}, event="clientId"))

        logger.info("subscriber_added", client_id=client_id, total=self.subscriber_count)
        return subscription

    def unsubscribe(self, client_id: str) -> None:
        if self._subscribers.pop(client_id, None) is not None:
            logger.info("subscriber_removed", client_id=client_id, total=self.subscriber_count)

    def publish(self, snapshot: StockSnapshot) -> int:
        """
        Push a snapshot to every subscriber.

        Returns:
            Number of subscribers the frame was queued for.
        """
        frame = encode_event(snapshot.to_payload())
        delivered = sum(
            1 for subscription in list(self._subscribers.values())
            if self._offer(subscription, frame)
        )
        logger.debug(
            "snapshot_published",
            delivered=delivered,
            subscribers=self.subscriber_count,
        )
        return delivered

    def _offer(self, subscription: Subscription, frame: str) -> bool:
        try:
            subscription.queue.put_nowait(frame)
            return True
        except asyncio.QueueFull:
            logger.warning("subscriber_queue_full_dropped", client_id=subscription.client_id)
            return False
