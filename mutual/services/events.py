"""In-process event hub with optional Redis fan-out between instances.

Topics are ``match:<id>`` (message created/updated) and ``user:<id>``
(match status changes). Delivery is best-effort and at-least-once: clients
de-duplicate by message id and re-fetch on reconnect.
"""

from __future__ import annotations

import inspect
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from .. import redis_bus

LOGGER = logging.getLogger("uvicorn.error")

EVENTS_TOPIC = "events"

Event = Dict[str, Any]
Handler = Callable[[Event], Union[Awaitable[None], None]]


class Subscription:
    """Handle returned by :meth:`EventHub.subscribe`.

    Closing is idempotent and removes the handler from the hub, so an
    abandoned stream does not keep a reference alive.
    """

    def __init__(self, hub: "EventHub", topic: str, key: int) -> None:
        self._hub = hub
        self.topic = topic
        self._key = key
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._hub._remove(self.topic, self._key)

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class EventHub:
    def __init__(self, instance_id: Optional[str] = None) -> None:
        self.instance_id = instance_id or uuid.uuid4().hex
        self._handlers: Dict[str, Dict[int, Handler]] = {}
        self._next_key = 0

    def subscribe(self, topic: str, handler: Handler) -> Subscription:
        self._next_key += 1
        key = self._next_key
        self._handlers.setdefault(topic, {})[key] = handler
        return Subscription(self, topic, key)

    def _remove(self, topic: str, key: int) -> None:
        handlers = self._handlers.get(topic)
        if not handlers:
            return
        handlers.pop(key, None)
        if not handlers:
            self._handlers.pop(topic, None)

    def subscriber_count(self, topic: Optional[str] = None) -> int:
        if topic is not None:
            return len(self._handlers.get(topic, {}))
        return sum(len(handlers) for handlers in self._handlers.values())

    async def deliver(self, topic: str, event: Event) -> int:
        """Invoke local handlers for ``topic``; returns how many were called."""

        handlers = list(self._handlers.get(topic, {}).values())
        for handler in handlers:
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                LOGGER.error("Event handler failed on %s: %s", topic, exc)
        return len(handlers)

    async def publish(self, topic: str, event: Event) -> None:
        await self.deliver(topic, event)
        await redis_bus.publish(
            EVENTS_TOPIC,
            {"origin": self.instance_id, "topic": topic, "event": event},
        )

    async def handle_remote(self, channel: str, payload: Dict[str, Any]) -> None:
        """Redis consumer entry point: re-dispatch events from other instances."""

        if not channel.endswith(EVENTS_TOPIC):
            return
        if payload.get("origin") == self.instance_id:
            return
        topic = payload.get("topic")
        event = payload.get("event")
        if not isinstance(topic, str) or not isinstance(event, dict):
            return
        await self.deliver(topic, event)


hub = EventHub()


def get_event_hub() -> EventHub:
    return hub


__all__ = ["EventHub", "Subscription", "get_event_hub", "hub"]
