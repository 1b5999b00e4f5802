"""SQLite key/value cache with per-entry TTL.

Holds the memoised StackPath access token and stack listing. All cache
operations catch ``aiosqlite.Error`` internally and degrade gracefully:
read failures return ``None`` (treated as a miss by callers), write failures
are logged and ignored (the computed value is still returned). A broken
cache store therefore costs extra gateway calls, never a failed purge.

``get_or_compute`` is single-flight per key within a process: concurrent
misses on the same key wait on one ``asyncio.Lock`` and only the first
caller runs ``compute``.
"""

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import aiosqlite
import structlog

from edgepurge.models.cache import CacheEntry

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

log = structlog.get_logger()

_CREATE_KV_TABLE = """
CREATE TABLE IF NOT EXISTS kv_cache (
    key         TEXT PRIMARY KEY,
    value       TEXT NOT NULL,
    stored_at   TEXT NOT NULL,
    expires_at  TEXT NOT NULL
)
"""

_CREATE_KV_INDEX = "CREATE INDEX IF NOT EXISTS idx_kv_expires ON kv_cache(expires_at)"

_CREATE_METADATA_TABLE = """
CREATE TABLE IF NOT EXISTS server_metadata (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
)
"""


class Cache:
    """SQLite-backed TTL cache implementing CacheProtocol."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db
        self._locks: dict[str, asyncio.Lock] = {}

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_KV_TABLE)
        await self._db.execute(_CREATE_KV_INDEX)
        await self._db.execute(_CREATE_METADATA_TABLE)
        await self._db.commit()

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    async def get(self, key: str) -> CacheEntry | None:
        """Read a live entry. Returns ``None`` on miss, expiry or read failure."""
        try:
            cursor = await self._db.execute(
                "SELECT key, value, stored_at, expires_at FROM kv_cache WHERE key = ?",
                (key,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None

            expires_at = datetime.fromisoformat(row[3])
            if datetime.now(UTC) >= expires_at:
                return None

            return CacheEntry(
                key=row[0],
                value=json.loads(row[1]),
                stored_at=datetime.fromisoformat(row[2]),
                expires_at=expires_at,
            )
        except aiosqlite.Error:
            log.warning("cache_read_error", key=key, exc_info=True)
            return None

    async def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        """Write an entry. Non-fatal on failure."""
        try:
            now = datetime.now(UTC)
            expires_at = now + timedelta(seconds=ttl_seconds)
            await self._db.execute(
                "INSERT OR REPLACE INTO kv_cache (key, value, stored_at, expires_at) "
                "VALUES (?, ?, ?, ?)",
                (key, json.dumps(value), now.isoformat(), expires_at.isoformat()),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_write_error", key=key, exc_info=True)

    async def get_or_compute(
        self,
        key: str,
        ttl_seconds: int,
        compute: Callable[[], Awaitable[Any]],
        *,
        cache_none: bool = True,
    ) -> Any:
        """Return the cached value for ``key``, computing and storing it on a miss.

        A cached ``None`` counts as a hit. When ``cache_none`` is false a
        ``None`` result from ``compute`` is returned but not stored, so the
        next call computes again.
        """
        entry = await self.get(key)
        if entry is not None:
            return entry.value

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another caller may have filled the entry while we waited
            entry = await self.get(key)
            if entry is not None:
                log.debug("cache_hit_after_wait", key=key)
                return entry.value

            value = await compute()
            if value is not None or cache_none:
                await self.set(key, value, ttl_seconds)
            return value

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def cleanup_if_due(self, interval_hours: int) -> None:
        """Run cleanup only if interval_hours have elapsed since the last run.

        Reads and writes ``last_cleanup_at`` from the ``server_metadata`` table.
        Falls through to run cleanup if the metadata row is missing or unreadable.
        Non-fatal on failure.
        """
        try:
            cursor = await self._db.execute(
                "SELECT value FROM server_metadata WHERE key = 'last_cleanup_at'"
            )
            row = await cursor.fetchone()
            if row is not None:
                last_run = datetime.fromisoformat(row[0])
                if datetime.now(UTC) - last_run < timedelta(hours=interval_hours):
                    log.debug("cache_cleanup_skipped", reason="not_due")
                    return
        except aiosqlite.Error:
            log.warning("cache_metadata_read_error", exc_info=True)

        await self.cleanup_expired()

        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO server_metadata (key, value) VALUES ('last_cleanup_at', ?)",
                (datetime.now(UTC).isoformat(),),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("cache_metadata_write_error", exc_info=True)

    async def cleanup_expired(self) -> None:
        """Delete expired entries. Non-fatal on failure."""
        try:
            cutoff = datetime.now(UTC).isoformat()
            cursor = await self._db.execute("DELETE FROM kv_cache WHERE expires_at < ?", (cutoff,))
            deleted = cursor.rowcount
            await self._db.commit()
            log.info("cache_cleanup_complete", deleted=deleted)
        except aiosqlite.Error:
            log.warning("cache_cleanup_error", exc_info=True)
