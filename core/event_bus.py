"""
Event bus for dispatch domain events.

Synchronous in-process pub/sub: a webhook that completes a task or an edit
that reshuffles drivers publishes, and the SMS and payout handlers run
before the request returns. Handler errors are logged with the request id
but never propagate; the task, order or appointment write has already
committed, and the provider must not redeliver because a text failed.
"""

import logging
from typing import Callable, Dict, List

from core.events import DispatchEvent
from utils.request_context import current_request_id

logger = logging.getLogger(__name__)


def known_event_names(base: type = DispatchEvent) -> set[str]:
    """Class names of every event type derived from base."""
    names = set()
    for subclass in base.__subclasses__():
        names.add(subclass.__name__)
        names |= known_event_names(subclass)
    return names


class EventBus:
    """
    Subscribe by event class name, publish by event instance.

    Handlers are called in subscription order.
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}

    def subscribe(self, event_type: str, callback: Callable):
        """
        Args:
            event_type: Event class name, e.g. 'StorageTaskCompleted'
            callback: Called with the event instance

        Raises:
            ValueError: no dispatch event has that name, so the handler could never run
        """
        if event_type not in known_event_names():
            raise ValueError(f"Unknown dispatch event {event_type!r}")
        self._subscribers.setdefault(event_type, []).append(callback)

    def publish(self, event: DispatchEvent):
        event_type = event.__class__.__name__
        callbacks = self._subscribers.get(event_type, [])
        logger.debug(f"Publishing {event_type} ({event.event_id}) to {len(callbacks)} handlers")

        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Handler %s failed for %s (event_id=%s, request_id=%s)",
                    getattr(callback, "__name__", repr(callback)),
                    event_type,
                    event.event_id,
                    current_request_id(),
                )
