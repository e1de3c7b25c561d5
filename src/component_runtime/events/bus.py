"""Synchronous event bus for decoupled component notifications.

Usage:
    bus = EventBus()

    def on_refresh(topic, payload):
        print(f"{topic}: {payload}")

    subscription = bus.subscribe("component:refresh", on_refresh)
    bus.publish("component:refresh", {"uuid": "c1"})
    subscription.unsubscribe()
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
import logging
from typing import Any

LOGGER = logging.getLogger(__name__)

TopicCallback = Callable[[str, Any], None]


class Subscription:
    """Handle returned by ``subscribe``; cancelling it is idempotent."""

    __slots__ = ("_entries", "callback", "_active")

    def __init__(self, entries: list[Subscription], callback: Callable[..., Any]) -> None:
        self._entries = entries
        self.callback = callback
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Stop future deliveries. Safe to call repeatedly or from the callback."""
        if not self._active:
            return
        self._active = False
        try:
            self._entries.remove(self)
        except ValueError:
            pass

    def __call__(self) -> None:
        self.unsubscribe()


class ListenerList:
    """Ordered callbacks notified with snapshot semantics."""

    def __init__(self, name: str = "") -> None:
        self.name = name
        self._entries: list[Subscription] = []

    def __len__(self) -> int:
        return len(self._entries)

    def add(self, callback: Callable[..., Any]) -> Subscription:
        subscription = Subscription(self._entries, callback)
        self._entries.append(subscription)
        return subscription

    def notify(self, *args: Any) -> int:
        """Call every registered callback in registration order.

        The callback list is captured before the first call, so callbacks
        added or cancelled while notifying do not change this round.
        Returns the number of callbacks invoked.
        """
        snapshot = tuple(self._entries)
        for entry in snapshot:
            try:
                entry.callback(*args)
            except Exception as exc:  # noqa: BLE001 - one listener must not block the rest.
                LOGGER.error(
                    "bus.listener.failed",
                    extra={
                        "event": "bus.listener.failed",
                        "topic": self.name,
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                )
        return len(snapshot)

    def clear(self) -> None:
        for entry in tuple(self._entries):
            entry.unsubscribe()


class EventBus:
    """Publish/subscribe channel keyed by arbitrary string topics."""

    def __init__(self) -> None:
        self._topics: defaultdict[str, ListenerList] = defaultdict(ListenerList)
        self._any = ListenerList("*")

    def subscribe(self, topic: str, callback: TopicCallback) -> Subscription:
        """Register ``callback(topic, payload)`` for ``topic``.

        Args:
            topic: Topic to listen to (e.g. ``"component:refresh"``)
            callback: Function called synchronously on each publish
        """
        listeners = self._topics[topic]
        listeners.name = topic
        LOGGER.debug("bus.subscribed", extra={"event": "bus.subscribed", "topic": topic})
        return listeners.add(callback)

    def subscribe_all(self, callback: TopicCallback) -> Subscription:
        """Register a callback that receives every published topic."""
        return self._any.add(callback)

    def unsubscribe(self, topic: str, callback: TopicCallback) -> None:
        """Remove every subscription of ``callback`` on ``topic``."""
        listeners = self._topics.get(topic)
        if listeners is None:
            return
        for entry in tuple(listeners._entries):
            if entry.callback is callback:
                entry.unsubscribe()

    def publish(self, topic: str, payload: Any = None) -> int:
        """Deliver ``payload`` to the topic's subscribers, then to catch-all ones.

        Returns the number of topic subscribers that were called.
        """
        listeners = self._topics.get(topic)
        delivered = listeners.notify(topic, payload) if listeners is not None else 0
        if not delivered:
            LOGGER.debug(
                "bus.publish.unheard", extra={"event": "bus.publish.unheard", "topic": topic}
            )
        self._any.notify(topic, payload)
        return delivered

    def subscriber_count(self, topic: str) -> int:
        listeners = self._topics.get(topic)
        return len(listeners) if listeners is not None else 0

    def clear(self, topic: str | None = None) -> None:
        """Clear subscribers.

        Args:
            topic: Specific topic to clear, or None for all
        """
        if topic:
            listeners = self._topics.pop(topic, None)
            if listeners is not None:
                listeners.clear()
            return
        for listeners in self._topics.values():
            listeners.clear()
        self._topics.clear()
        self._any.clear()
