from __future__ import annotations

from edgepurge.models.cache import CacheEntry
from edgepurge.models.events import (
    AcceleratorClearExecuted,
    AcceleratorClearSubmitted,
    AllCleared,
    EventBatch,
    FieldSaved,
    HostEvent,
    PageRef,
    PagesCleared,
    PageSaved,
    PurgeCommand,
)
from edgepurge.models.stackpath import PurgeItem, PurgeRequest, TokenRequest

__all__ = [
    # cache
    "CacheEntry",
    # host events
    "PageRef",
    "PagesCleared",
    "AllCleared",
    "PageSaved",
    "FieldSaved",
    "AcceleratorClearSubmitted",
    "AcceleratorClearExecuted",
    "HostEvent",
    "EventBatch",
    "PurgeCommand",
    # stackpath
    "PurgeItem",
    "PurgeRequest",
    "TokenRequest",
]
