"""Unit tests for edgepurge.events."""

from __future__ import annotations

import pytest

from edgepurge.events import EventBus, Priority
from edgepurge.models.events import AllCleared, PageSaved


class TestEventBus:
    async def test_listeners_run_in_priority_order(self) -> None:
        bus = EventBus()
        order: list[str] = []

        bus.subscribe(PageSaved, lambda e: order.append("last"), priority=Priority.LAST)
        bus.subscribe(PageSaved, lambda e: order.append("normal"))
        bus.subscribe(PageSaved, lambda e: order.append("first"), priority=Priority.FIRST)

        await bus.publish(PageSaved())

        assert order == ["first", "normal", "last"]

    async def test_ties_keep_subscription_order(self) -> None:
        bus = EventBus()
        order: list[int] = []
        for i in range(3):
            bus.subscribe(PageSaved, lambda e, i=i: order.append(i))

        await bus.publish(PageSaved())

        assert order == [0, 1, 2]

    async def test_async_listeners_awaited(self) -> None:
        bus = EventBus()
        seen: list[object] = []

        async def listener(event: PageSaved) -> None:
            seen.append(event)

        bus.subscribe(PageSaved, listener)
        event = PageSaved()
        await bus.publish(event)

        assert seen == [event]

    async def test_only_matching_type_dispatched(self) -> None:
        bus = EventBus()
        seen: list[str] = []
        bus.subscribe(AllCleared, lambda e: seen.append("all"))
        bus.subscribe(PageSaved, lambda e: seen.append("saved"))

        await bus.publish(AllCleared())

        assert seen == ["all"]

    async def test_publish_without_listeners(self) -> None:
        await EventBus().publish(PageSaved())

    async def test_listener_exception_propagates(self) -> None:
        bus = EventBus()

        def boom(event: PageSaved) -> None:
            raise RuntimeError("listener failed")

        bus.subscribe(PageSaved, boom)

        with pytest.raises(RuntimeError, match="listener failed"):
            await bus.publish(PageSaved())

    def test_listeners_lookup(self) -> None:
        bus = EventBus()

        def handler(event: object) -> None:
            return None

        bus.subscribe(object, handler)
        assert bus.listeners(PageSaved()) == [handler]
