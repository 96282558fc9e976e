"""Event Dispatcher: turn record and user events into webhook deliveries."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from ahoi.events.subscriptions import SubscriptionStore

logger = logging.getLogger(__name__)

ITEM_CREATED = "item.created"
ITEM_UPDATED = "item.updated"
ITEM_DELETED = "item.deleted"
USER_CREATED = "user.created"


@dataclass(frozen=True)
class DeliveryTask:
    """One webhook POST waiting to be sent. ``body`` is the encoded JSON payload."""

    subscription_id: int
    target_url: str
    event: str
    body: str

    @property
    def payload(self) -> dict[str, Any]:
        return json.loads(self.body)


class DeliverySink(Protocol):
    def submit(self, task: DeliveryTask) -> None: ...


def build_payload(
    event: str, structure_slug: str | None, record: Mapping[str, Any], timestamp: int
) -> dict[str, Any]:
    return {"event": event, "structure": structure_slug, "data": dict(record), "timestamp": timestamp}


class EventDispatcher:
    """Selects matching subscriptions and hands deliveries to a sink.

    The sink (normally a :class:`~ahoi.events.worker.DeliveryWorker`) sends
    them in the background; :meth:`trigger` never waits for delivery.
    """

    def __init__(
        self,
        subscriptions: SubscriptionStore,
        sink: DeliverySink | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._subscriptions = subscriptions
        self._sink = sink
        self._clock = clock

    def trigger(self, event: str, structure_slug: str | None, record: Mapping[str, Any]) -> list[DeliveryTask]:
        """Enqueue one delivery per active matching subscription.

        Returns:
            The enqueued tasks (empty when nothing subscribes to the event)
        """
        subscriptions = self._subscriptions.matching(event, structure_slug)
        if not subscriptions:
            return []

        payload = build_payload(event, structure_slug, record, int(self._clock()))
        body = json.dumps(payload, default=str)
        tasks = [
            DeliveryTask(subscription_id=s.id, target_url=s.target_url, event=event, body=body)
            for s in subscriptions
        ]
        if self._sink is not None:
            for task in tasks:
                self._sink.submit(task)
        logger.info(f"Queued {len(tasks)} webhook delivery(ies) for {event} on {structure_slug or '*'}")
        return tasks

    def fire(self, event: str, structure_slug: str | None, record: Mapping[str, Any]) -> list[DeliveryTask]:
        """Like :meth:`trigger`, but failures are logged and never raised."""
        try:
            return self.trigger(event, structure_slug, record)
        except Exception as e:
            logger.error(f"Dispatching {event} for {structure_slug or '*'} failed: {e}", exc_info=True)
            return []
