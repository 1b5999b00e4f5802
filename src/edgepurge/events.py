"""Typed event bus for host lifecycle events.

Listeners subscribe to an event class and run in ascending ``Priority``
order, ties broken by subscription order. ``Priority.LAST`` is how the
purge flush is guaranteed to see every URL registered by earlier
save-time listeners.
"""

from __future__ import annotations

import inspect
import itertools
from dataclasses import dataclass
from enum import IntEnum
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    Handler = Callable[[Any], Awaitable[Any] | Any]

log = structlog.get_logger()


class Priority(IntEnum):
    FIRST = 0
    NORMAL = 100
    LAST = 1000


@dataclass(frozen=True)
class _Subscription:
    event_type: type
    handler: Handler
    priority: int
    seq: int


class EventBus:
    """Dispatches events to listeners, synchronous or async, in priority order."""

    def __init__(self) -> None:
        self._subscriptions: list[_Subscription] = []
        self._seq = itertools.count()

    def subscribe(
        self,
        event_type: type,
        handler: Handler,
        priority: int = Priority.NORMAL,
    ) -> None:
        self._subscriptions.append(
            _Subscription(event_type, handler, int(priority), next(self._seq))
        )

    def listeners(self, event: object) -> list[Handler]:
        matching = [s for s in self._subscriptions if isinstance(event, s.event_type)]
        matching.sort(key=lambda s: (s.priority, s.seq))
        return [s.handler for s in matching]

    async def publish(self, event: object) -> None:
        """Run every listener for ``event``. Listener exceptions propagate."""
        handlers = self.listeners(event)
        log.debug("event_published", event_type=type(event).__name__, listeners=len(handlers))
        for handler in handlers:
            result = handler(event)
            if inspect.isawaitable(result):
                await result
