"""Background scheduler coroutine for cache maintenance."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from edgepurge.state import AppState

log = structlog.get_logger()


async def run_cache_cleanup_scheduler(state: AppState) -> None:
    """Drop expired token and stack rows at startup and then on the configured interval."""
    interval_hours = state.settings.cache.cleanup_interval_hours

    while True:
        if state.cache is not None:
            try:
                await state.cache.cleanup_if_due(interval_hours)
            except Exception:
                log.warning("cache_cleanup_scheduler_error", exc_info=True)
        await asyncio.sleep(interval_hours * 3600)
