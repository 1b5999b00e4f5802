"""Webhook server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the Starlette lifespan context manager
- Start the HTTP transport
"""

from __future__ import annotations

import asyncio
import logging
import sys
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog

from edgepurge import __version__
from edgepurge.cache import Cache
from edgepurge.config import Settings
from edgepurge.gateway import Gateway, build_http_client
from edgepurge.schedulers import run_cache_cleanup_scheduler
from edgepurge.stackpath import StackPathClient
from edgepurge.state import AppState
from edgepurge.transport import run_http_server
from edgepurge.webhook import create_app

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from starlette.applications import Starlette

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called once at startup before any log statements."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [*shared_processors, structlog.processors.JSONRenderer()]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def build_lifespan(settings: Settings):
    """Return a lifespan that wires AppState for ``settings``."""

    @asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncGenerator[None, None]:
        log.info("server_starting", version=__version__)

        http_client = build_http_client()
        gateway = Gateway(http_client, settings.stackpath.gateway_url)

        db_path = Path(settings.cache.db_path).expanduser()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        db = await aiosqlite.connect(str(db_path))
        cache = Cache(db)
        await cache.init_db()

        state = AppState(
            settings=settings,
            cache=cache,
            stackpath=StackPathClient.from_settings(gateway, cache, settings),
        )
        app.state.edgepurge = state

        if not settings.stackpath.stack_id:
            log.warning("stack_not_configured", hint="GET /stacks lists the available stacks")

        cache_cleanup_task = asyncio.create_task(run_cache_cleanup_scheduler(state))

        log.info(
            "server_started",
            version=__version__,
            host=settings.server.host,
            port=settings.server.port,
        )

        try:
            yield
        finally:
            cache_cleanup_task.cancel()
            with suppress(asyncio.CancelledError):
                await cache_cleanup_task
            await http_client.aclose()
            await db.close()
            log.info("server_stopping")

    return lifespan


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()
    _setup_logging(settings)
    app = create_app(lifespan=build_lifespan(settings))
    run_http_server(app, settings)


if __name__ == "__main__":
    main()
