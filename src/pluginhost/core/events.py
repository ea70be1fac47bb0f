"""Notification bus shared by the host, the application and extensions.

Why This Module Exists
----------------------
Extension code fails in ways the caller must not see: a decorator that
raises is bypassed, a subscriber that raises triggers fallback, a component
that cannot initialize is skipped. Those failures are still observable,
because the host publishes a structured ``Event`` for each one on this bus.
Surrounding tooling subscribes to what it cares about; nothing requires a
subscriber to exist.

Delivery is synchronous and in-process. A handler that raises is logged
and skipped; delivery to the remaining handlers continues.

Usage::

    from pluginhost.core.events import EventBus, SUBSCRIBER_FAILED

    bus = EventBus()

    def on_failure(event):
        print(event.payload["channel"], event.payload["error"])

    sub_id = bus.subscribe(SUBSCRIBER_FAILED, on_failure)
    bus.subscribe("app.*", lambda event: print(event.event_type))
"""

from __future__ import annotations

import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pluginhost.core.logging import get_logger

log = get_logger(__name__)

# ── Topics ───────────────────────────────────────────────────────────────

ERROR = "error"
DECORATOR_FAILED = "channel.decorator_failed"
SUBSCRIBER_FAILED = "channel.subscriber_failed"
COMPONENT_ADDED = "app.component_added"
COMPONENT_INITIALIZED = "app.component_initialized"
COMPONENT_INIT_FAILED = "app.component_init_failed"
COMPONENT_DESTROY_FAILED = "app.component_destroy_failed"
COMPONENT_REMOVED = "app.component_removed"
READY = "app.ready"
DESTROYED = "app.destroyed"


# ── Event Model ──────────────────────────────────────────────────────────


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class Event:
    """Notification payload.

    Attributes:
        event_type: Dot-separated topic (e.g. ``channel.subscriber_failed``)
        source: Origin (``host``, ``app`` or an extension name)
        payload: Topic-specific data
        timestamp: When the event occurred (UTC)
        event_id: Unique event identifier
    """

    event_type: str
    source: str
    payload: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utc_now)
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def matches(self, pattern: str) -> bool:
        """Check if event type matches a pattern (supports wildcards).

        Examples:
            - ``app.*`` matches ``app.ready``, ``app.component_added``
            - ``*`` matches everything
            - ``error`` matches exactly ``error``
        """
        if pattern == "*":
            return True
        if pattern.endswith(".*"):
            prefix = pattern[:-2]
            return self.event_type.startswith(prefix + ".")
        return self.event_type == pattern


EventHandler = Callable[[Event], Any]


@dataclass
class Subscription:
    """Internal subscription record."""

    id: str
    pattern: str
    handler: EventHandler
    once: bool = False


class EventBus:
    """Synchronous publish/subscribe bus with wildcard patterns.

    Example::

        bus = EventBus()
        bus.subscribe("*", lambda event: print(event.event_type))
        bus.emit("app.ready", source="app")
        # Output: app.ready
    """

    def __init__(self) -> None:
        self._subscriptions: dict[str, Subscription] = {}
        self._closed = False

    def subscribe(self, pattern: str, handler: EventHandler) -> str:
        """Subscribe to events matching a pattern.

        Args:
            pattern: Topic to match (supports ``*`` and ``prefix.*``)
            handler: Callback receiving the ``Event``

        Returns:
            Subscription ID
        """
        return self._add(pattern, handler, once=False)

    def once(self, pattern: str, handler: EventHandler) -> str:
        """Subscribe for the next matching event only."""
        return self._add(pattern, handler, once=True)

    def _add(self, pattern: str, handler: EventHandler, *, once: bool) -> str:
        if not callable(handler):
            raise TypeError("Event handler must be callable")

        sub_id = f"sub_{uuid.uuid4().hex[:12]}"
        self._subscriptions[sub_id] = Subscription(id=sub_id, pattern=pattern, handler=handler, once=once)
        return sub_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription. Returns False when it did not exist."""
        return self._subscriptions.pop(subscription_id, None) is not None

    def publish(self, event: Event) -> None:
        """Deliver ``event`` to every matching subscriber, in subscription order."""
        if self._closed:
            return

        matching = [sub for sub in self._subscriptions.values() if event.matches(sub.pattern)]

        for sub in matching:
            if sub.once:
                if self._subscriptions.pop(sub.id, None) is None:
                    continue
            elif sub.id not in self._subscriptions:
                # Unsubscribed by an earlier handler of this same event
                continue

            try:
                sub.handler(event)
            except Exception as e:
                log.warning(
                    "event_handler_error",
                    subscription_id=sub.id,
                    event_type=event.event_type,
                    error=str(e),
                )

    def emit(self, event_type: str, source: str, **payload: Any) -> Event:
        """Build an ``Event`` from keyword payload, publish it and return it."""
        event = Event(event_type=event_type, source=source, payload=payload)
        self.publish(event)
        return event

    def clear(self) -> None:
        """Drop every subscription."""
        self._subscriptions.clear()

    def close(self) -> None:
        """Mark bus as closed and clear subscriptions."""
        self._closed = True
        self._subscriptions.clear()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def subscription_count(self) -> int:
        """Number of active subscriptions."""
        return len(self._subscriptions)


__all__ = [
    "Event",
    "EventBus",
    "EventHandler",
    "Subscription",
    "ERROR",
    "DECORATOR_FAILED",
    "SUBSCRIBER_FAILED",
    "COMPONENT_ADDED",
    "COMPONENT_INITIALIZED",
    "COMPONENT_INIT_FAILED",
    "COMPONENT_DESTROY_FAILED",
    "COMPONENT_REMOVED",
    "READY",
    "DESTROYED",
]
