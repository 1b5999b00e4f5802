"""Integration test fixtures.

Serves the webhook app over httpx's ASGI transport against a fully wired
AppState (tests/conftest.py). StackPath itself is mocked with respx per test.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from edgepurge.webhook import create_app

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from edgepurge.state import AppState


@pytest.fixture()
async def webhook_client(app_state: AppState) -> AsyncGenerator[httpx.AsyncClient, None]:
    app = create_app(app_state)
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://cms.local",
    ) as client:
        yield client
