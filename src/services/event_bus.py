"""
Event Bus Service - synchronous dispatch for a single-threaded event loop

Key behaviors (tested in tests/test_services/test_event_bus.py):
- Weak references for automatic subscriber cleanup
- No locks held during callback execution (re-entrant publish is safe)
- Callback ID tracking for proper unsubscribe
- A failing callback is logged and counted; other subscribers still run
"""

import logging
import threading
import weakref
from collections.abc import Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


def _callback_id(callback: Callable) -> Any:
    """Stable identity; bound methods are recreated on every attribute access"""
    if hasattr(callback, "__self__") and hasattr(callback, "__func__"):
        return (id(callback.__self__), id(callback.__func__))
    return id(callback)


class Events(Enum):
    """Event names published by the core"""

    # Bet round events
    ROUND_STATE_CHANGED = "round.state_changed"
    ROUND_SETTLED = "round.settled"
    ROUND_FAILED = "round.failed"

    # History events
    REFRESH_REQUESTED = "history.refresh_requested"
    HISTORY_REFRESHED = "history.refreshed"
    STATS_UPDATED = "history.stats_updated"

    # Session events (account / network change)
    SESSION_CHANGED = "session.changed"


class EventBus:
    """
    Event bus that delivers events on the publisher's thread.

    Publishing from inside a callback is allowed; the nested event is
    delivered before the outer publish() returns.
    """

    def __init__(self):
        # Subscribers stored as (callback_id, weak_ref_or_callback) tuples
        self._subscribers: dict[Events, list[tuple[Any, Any]]] = {}

        # Track callbacks by ID for proper unsubscribe (no strong refs for weak subscriptions)
        self._callback_ids: dict[Events, dict[Any, Any]] = {}

        # Lock only for subscription management, not during callback execution
        self._sub_lock = threading.RLock()

        self._stats = {
            "events_published": 0,
            "events_processed": 0,
            "errors": 0,
        }

    def subscribe(self, event: Events, callback: Callable, weak: bool = True):
        """
        Subscribe to an event.

        Args:
            event: Event to subscribe to
            callback: Callable receiving {"name": ..., "data": ...}
            weak: Use weak reference for automatic cleanup (default True)
        """
        with self._sub_lock:
            subscribers = self._subscribers.setdefault(event, [])
            ids = self._callback_ids.setdefault(event, {})

            cb_id = _callback_id(callback)

            existing = ids.get(cb_id)
            if existing is not None:
                if self._resolve_callback(existing) is not None:
                    logger.debug(f"Already subscribed to {event.value}, skipping duplicate")
                    return
                # Stale weakref entry: drop it and re-subscribe.
                ids.pop(cb_id, None)
                subscribers[:] = [(cid, ref) for cid, ref in subscribers if cid != cb_id]

            if weak:
                try:
                    if hasattr(callback, "__self__") and hasattr(callback, "__func__"):
                        ref = weakref.WeakMethod(callback)
                    else:
                        ref = weakref.ref(callback)
                except TypeError:
                    # Not weak-referenceable, store directly
                    ref = callback
            else:
                ref = callback

            subscribers.append((cb_id, ref))
            ids[cb_id] = ref
            logger.debug(f"Subscribed to {event.value}")

    def unsubscribe(self, event: Events, callback: Callable):
        """Unsubscribe from an event using callback ID matching."""
        with self._sub_lock:
            if event not in self._subscribers:
                logger.debug(f"No subscribers for {event.value}, nothing to unsubscribe")
                return

            cb_id = _callback_id(callback)
            self._callback_ids.get(event, {}).pop(cb_id, None)
            self._subscribers[event] = [
                (cid, ref) for cid, ref in self._subscribers[event] if cid != cb_id
            ]
            if not self._subscribers[event]:
                self._subscribers.pop(event, None)
                self._callback_ids.pop(event, None)
            logger.debug(f"Unsubscribed from {event.value}")

    def publish(self, event: Events, data: Any = None):
        """Publish an event to all live subscribers."""
        self._stats["events_published"] += 1

        callbacks_to_call = []
        with self._sub_lock:
            alive_entries = []
            for cb_id, ref in self._subscribers.get(event, []):
                callback = self._resolve_callback(ref)
                if callback is not None:
                    callbacks_to_call.append(callback)
                    alive_entries.append((cb_id, ref))
                else:
                    self._callback_ids.get(event, {}).pop(cb_id, None)
            if event in self._subscribers:
                self._subscribers[event] = alive_entries

        for callback in callbacks_to_call:
            try:
                callback({"name": event.value, "data": data})
                self._stats["events_processed"] += 1
            except Exception as e:
                self._stats["errors"] += 1
                logger.error(f"Error in callback for {event.value}: {e}", exc_info=True)

    def _resolve_callback(self, ref):
        """Resolve weak or direct callback reference"""
        if isinstance(ref, weakref.ReferenceType):
            return ref()
        if callable(ref):
            return ref
        return None

    def get_stats(self) -> dict[str, Any]:
        """Get event bus statistics including processing counters."""
        with self._sub_lock:
            stats = {
                "subscriber_count": sum(len(entries) for entries in self._subscribers.values()),
                "event_types": len(self._subscribers),
            }
            stats.update(self._stats)
            return stats

    def has_subscribers(self, event: Events) -> bool:
        """Return True if there are any live subscribers for an event."""
        with self._sub_lock:
            entries = self._subscribers.get(event, [])
            return any(self._resolve_callback(ref) is not None for _, ref in entries)

    def clear_all(self):
        """Clear all subscribers (for testing/cleanup)."""
        with self._sub_lock:
            self._subscribers.clear()
            self._callback_ids.clear()
            logger.debug("All subscribers cleared")


# Global instance
event_bus = EventBus()
