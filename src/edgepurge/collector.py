"""Request-scoped collection of URLs to purge.

One ``PurgeCollector`` (with its own ``PurgeSet``) lives for exactly one host
request. Cache-clear events add URLs; the save events flush them as a single
purge once every other save-time listener has run. Nothing survives past the
request: a set still populated when the scope closes is discarded.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal

import structlog

from edgepurge.events import EventBus, Priority
from edgepurge.models.events import (
    AcceleratorClearExecuted,
    AcceleratorClearSubmitted,
    AllCleared,
    FieldSaved,
    PagesCleared,
    PageSaved,
)
from edgepurge.stackpath import FULL_SITE

if TYPE_CHECKING:
    from edgepurge.protocols import PageProtocol
    from edgepurge.stackpath import PurgeTarget, StackPathClient
    from edgepurge.state import AppState

log = structlog.get_logger()


class PurgeSet:
    """De-duplicating, insertion-ordered batch of purge targets.

    Maps each URL to itself. The whole-site marker is stored as
    ``"/" -> FULL_SITE`` and replaces every URL entry; once set, further
    URLs are ignored until the next flush.
    """

    ROOT_KEY = "/"

    def __init__(self) -> None:
        self._entries: dict[str, str | Literal[True]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    @property
    def is_full_site(self) -> bool:
        return self._entries.get(self.ROOT_KEY) is FULL_SITE

    def add(self, url: str) -> None:
        if self.is_full_site:
            return
        self._entries[url] = url

    def mark_full_site(self) -> None:
        self._entries = {self.ROOT_KEY: FULL_SITE}

    def values(self) -> list[PurgeTarget]:
        return list(self._entries.values())

    def flush(self) -> list[PurgeTarget]:
        """Return the pending targets and leave the set empty."""
        values = self.values()
        self._entries.clear()
        return values


class PurgeCollector:
    """Translates host events into PurgeSet entries and flushes them after save."""

    def __init__(
        self,
        client: StackPathClient,
        *,
        admin_root_page_id: int = 2,
        purge_set: PurgeSet | None = None,
    ) -> None:
        self._client = client
        self._admin_root_page_id = admin_root_page_id
        self.purge_set = purge_set if purge_set is not None else PurgeSet()
        # Responses of every purge sent during this scope, in order
        self.dispatched: list[dict[str, Any] | None] = []

    @classmethod
    def for_request(cls, state: AppState) -> PurgeCollector:
        if state.stackpath is None:
            raise RuntimeError("StackPath client not initialized")
        return cls(state.stackpath, admin_root_page_id=state.settings.site.admin_root_page_id)

    def register(self, bus: EventBus) -> None:
        bus.subscribe(PagesCleared, self.on_pages_cleared)
        bus.subscribe(AllCleared, self.on_all_cleared)
        bus.subscribe(AcceleratorClearSubmitted, self.on_accelerator_clear_submitted)
        bus.subscribe(AcceleratorClearExecuted, self.on_accelerator_clear_executed)
        bus.subscribe(PageSaved, self.on_saved, priority=Priority.LAST)
        bus.subscribe(FieldSaved, self.on_saved, priority=Priority.LAST)

    # ------------------------------------------------------------------
    # Collection
    # ------------------------------------------------------------------

    def is_admin_page(self, page: PageProtocol) -> bool:
        return page.id == self._admin_root_page_id or page.has_ancestor(self._admin_root_page_id)

    def add_page(self, page: PageProtocol) -> bool:
        """Queue a page's public URL. Returns False when the page is skipped."""
        if not page.url or self.is_admin_page(page):
            log.debug("purge_page_skipped", page_id=page.id)
            return False
        self.purge_set.add(page.url)
        return True

    def on_pages_cleared(self, event: PagesCleared) -> None:
        for page in [event.page, *event.pages]:
            self.add_page(page)

    def on_all_cleared(self, event: AllCleared) -> None:
        self.purge_set.mark_full_site()

    async def on_accelerator_clear_submitted(self, event: AcceleratorClearSubmitted) -> None:
        await self._purge_now(FULL_SITE, trigger="accelerator_clear_submitted")

    async def on_accelerator_clear_executed(self, event: AcceleratorClearExecuted) -> None:
        if event.cleared_anything:
            await self._purge_now(FULL_SITE, trigger="accelerator_clear_executed")

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def on_saved(self, event: PageSaved | FieldSaved) -> None:
        await self.flush()

    async def flush(self) -> dict[str, Any] | None:
        """Send everything collected so far as one purge. No-op when empty."""
        if not self.purge_set:
            return None
        targets = self.purge_set.flush()
        return await self._purge_now(targets, trigger="save")

    async def _purge_now(
        self, targets: PurgeTarget | list[PurgeTarget], *, trigger: str
    ) -> dict[str, Any] | None:
        log.info("purge_triggered", trigger=trigger)
        response = await self._client.purge_cache(targets)
        self.dispatched.append(response)
        return response

    def close(self) -> int:
        """End the request scope. Returns how many pending targets were dropped."""
        dropped = len(self.purge_set)
        if dropped:
            log.warning("purge_set_discarded", pending=dropped)
            self.purge_set.flush()
        return dropped


def open_request_scope(state: AppState) -> tuple[EventBus, PurgeCollector]:
    """Create the event bus and collector for one host request."""
    bus = EventBus()
    collector = PurgeCollector.for_request(state)
    collector.register(bus)
    return bus, collector
