"""Shared test fixtures for the edgepurge test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite
import httpx
import pytest

from edgepurge.cache import Cache
from edgepurge.config import Settings
from edgepurge.gateway import Gateway
from edgepurge.stackpath import StackPathClient
from edgepurge.state import AppState

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable


def _make_settings(**stackpath: str) -> Settings:
    credentials = {"client_id": "cid", "client_secret": "csecret", "stack_id": "stack-1"}
    credentials.update(stackpath)
    return Settings(
        stackpath=credentials,
        site={"root_url": "https://example.com/"},
        server={"auth_enabled": False},
    )


@pytest.fixture()
def make_settings() -> Callable[..., Settings]:
    """Factory for Settings with working credentials unless overridden."""
    return _make_settings


@pytest.fixture()
def settings() -> Settings:
    return _make_settings()


@pytest.fixture()
async def cache() -> AsyncGenerator[Cache, None]:
    """Cache backed by an in-memory SQLite database."""
    async with aiosqlite.connect(":memory:") as db:
        cache = Cache(db)
        await cache.init_db()
        yield cache


@pytest.fixture()
async def http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture()
def gateway(http_client: httpx.AsyncClient) -> Gateway:
    return Gateway(http_client)


@pytest.fixture()
def stackpath(gateway: Gateway, cache: Cache, settings: Settings) -> StackPathClient:
    return StackPathClient.from_settings(gateway, cache, settings)


@pytest.fixture()
def app_state(
    settings: Settings,
    cache: Cache,
    stackpath: StackPathClient,
) -> AppState:
    """Fully wired AppState with in-memory cache and a real (mockable) client."""
    return AppState(
        settings=settings,
        cache=cache,
        stackpath=stackpath,
    )
