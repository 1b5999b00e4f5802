"""Protocol interfaces for swappable components.

The StackPath client and the collector reference these protocols, not the
concrete implementations. This allows:
- Tests to use lightweight in-memory implementations
- Hosts to hand in their own page objects without converting to PageRef
- Future backends (e.g. Redis cache) to be swapped without changing callers
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from edgepurge.models.cache import CacheEntry


class CacheProtocol(Protocol):
    """Interface for the TTL key/value cache store."""

    async def get(self, key: str) -> CacheEntry | None: ...

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None: ...

    async def get_or_compute(
        self,
        key: str,
        ttl_seconds: int,
        compute: Callable[[], Awaitable[Any]],
        *,
        cache_none: bool = True,
    ) -> Any: ...

    async def cleanup_if_due(self, interval_hours: int) -> None: ...

    async def cleanup_expired(self) -> None: ...


class GatewayProtocol(Protocol):
    """Interface for the authenticated JSON gateway helper."""

    async def request(
        self,
        endpoint: str,
        data: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | str | None = None,
        method: str = "GET",
    ) -> dict[str, Any] | None: ...


class PageProtocol(Protocol):
    """What the collector needs to know about a host page."""

    @property
    def id(self) -> int: ...

    @property
    def url(self) -> str | None: ...

    def has_ancestor(self, page_id: int) -> bool: ...
