"""Application state container.

AppState is created once at server startup (inside the Starlette lifespan)
and shared by every webhook request. Request-scoped objects (event bus,
PurgeCollector) are never stored here.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from edgepurge.config import Settings
    from edgepurge.protocols import CacheProtocol
    from edgepurge.stackpath import StackPathClient


@dataclass
class AppState:
    """Holds all shared runtime state."""

    settings: Settings
    cache: CacheProtocol | None = None
    stackpath: StackPathClient | None = None
