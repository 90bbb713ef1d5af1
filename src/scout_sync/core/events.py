# src/scout_sync/core/events.py

from __future__ import annotations

"""
Named-event broadcast channel.

Delivery guarantees:
- synchronous: publish() returns after every listener has run
- ordered: listeners run in subscription order, events in publish order
- a listener removed during delivery does not receive the rest of that publish
- a listener added during delivery does not receive the event being delivered

A listener that raises is logged; the remaining listeners still run.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

QUEUE_UPDATED_EVENT = "upload_queue_updated"
QUEUE_ITEM_SUCCEEDED_EVENT = "upload_queue_item_succeeded"
QUEUE_ITEM_FAILED_EVENT = "upload_queue_item_failed"
CONNECTION_STATUS_CHANGED_EVENT = "connection_status_changed"
CONNECTION_CHECKING_EVENT = "connection_checking"
COMPETITION_CHANGED_EVENT = "competition_changed"

Listener = Callable[[Any], None]


@dataclass(frozen=True, slots=True)
class ItemSucceeded:
    id: str
    kind: str


@dataclass(frozen=True, slots=True)
class ItemFailed:
    id: str
    kind: str
    error: str
    attempts: int
    # "rejected" (permanent) or "gave_up" (retries exhausted)
    reason: str


class Subscription:
    """Handle returned by subscribe(); call remove() to stop receiving events."""

    __slots__ = ("_channel", "event", "listener", "active")

    def __init__(self, channel: BroadcastChannel, event: str, listener: Listener) -> None:
        self._channel = channel
        self.event = event
        self.listener = listener
        self.active = True

    def remove(self) -> None:
        self._channel.unsubscribe(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: object) -> None:
        self.remove()


class BroadcastChannel:
    def __init__(self) -> None:
        self._listeners: dict[str, list[Subscription]] = {}

    def subscribe(self, event: str, listener: Listener) -> Subscription:
        sub = Subscription(self, event, listener)
        self._listeners.setdefault(event, []).append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        sub.active = False
        subs = self._listeners.get(sub.event)
        if not subs:
            return
        try:
            subs.remove(sub)
        except ValueError:
            return
        if not subs:
            del self._listeners[sub.event]

    def publish(self, event: str, payload: Any = None) -> int:
        """Deliver payload to the current listeners of event. Returns the delivery count."""
        snapshot = list(self._listeners.get(event, ()))
        delivered = 0
        for sub in snapshot:
            if not sub.active:
                continue
            try:
                sub.listener(payload)
            except Exception:
                logger.exception("Listener failed event=%s listener=%r", event, sub.listener)
            delivered += 1
        return delivered

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, ()))
