"""
Event bus for billing domain events.

Synchronous in-process pub/sub. Handlers run immediately in the publishing
thread, after the document or settings write has committed. Handler errors
are logged and never propagate: a failed alert e-mail must not undo an
issued invoice number.
"""

import logging
from typing import Callable, Dict, List

from core.events import BillingEvent

logger = logging.getLogger(__name__)


def _handler_name(callback: Callable) -> str:
    return getattr(callback, "__name__", repr(callback))


class EventBus:
    """
    In-process event bus for billing domain events.

    Subscribe by event class or class name, publish by event instance.
    Handlers are called synchronously in subscription order.

    Usage:
        bus = EventBus()
        bus.subscribe(MarginDepleted, handle_margin_depleted(email_client))
        bus.publish(MarginDepleted.create(tenant_id, project_id, finance, email))
    """

    def __init__(self):
        self._subscribers: Dict[str, List[Callable]] = {}

    @staticmethod
    def _key(event_type: str | type) -> str:
        return event_type if isinstance(event_type, str) else event_type.__name__

    def subscribe(self, event_type: str | type, callback: Callable):
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Event class or its name (e.g. 'DocumentIssued')
            callback: Function to call when event is published
        """
        self._subscribers.setdefault(self._key(event_type), []).append(callback)

    def unsubscribe(self, event_type: str | type, callback: Callable) -> bool:
        """Remove a callback. Returns False if it wasn't subscribed."""
        callbacks = self._subscribers.get(self._key(event_type), [])
        if callback not in callbacks:
            return False
        callbacks.remove(callback)
        return True

    def subscriber_count(self, event_type: str | type) -> int:
        return len(self._subscribers.get(self._key(event_type), []))

    def publish(self, event: BillingEvent):
        """
        Publish an event to all subscribers of its type.

        Args:
            event: BillingEvent instance to publish
        """
        event_type = event.__class__.__name__

        for callback in list(self._subscribers.get(event_type, [])):
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "Handler %s failed for %s (event_id=%s, tenant_id=%s)",
                    _handler_name(callback),
                    event_type,
                    event.event_id,
                    event.tenant_id,
                )
