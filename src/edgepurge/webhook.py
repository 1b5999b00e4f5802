"""Starlette routes through which a CMS forwards its lifecycle events.

Routes:
- ``POST /events``  one host request's events; one PurgeCollector per call
- ``POST /purge``   direct purge of URLs or the whole site
- ``GET  /stacks``  stacks visible to the configured credentials
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route

from edgepurge.collector import open_request_scope
from edgepurge.errors import ErrorCode, EdgePurgeError
from edgepurge.models.events import EventBatch, PurgeCommand
from edgepurge.stackpath import FULL_SITE

if TYPE_CHECKING:
    from collections.abc import Callable
    from contextlib import AbstractAsyncContextManager

    from starlette.requests import Request

    from edgepurge.state import AppState

log = structlog.get_logger()

_STATUS_BY_CODE = {
    ErrorCode.INVALID_INPUT: 422,
    ErrorCode.INVALID_PURGE_TARGET: 422,
    ErrorCode.UNAUTHORIZED: 401,
}


def _state(request: Request) -> AppState:
    return request.app.state.edgepurge


async def _read_json(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise EdgePurgeError(
            code=ErrorCode.INVALID_INPUT,
            message=f"Request body is not valid JSON: {exc}",
            suggestion="Send a JSON object with Content-Type: application/json.",
            recoverable=False,
        ) from exc


def _invalid_payload(exc: ValidationError, suggestion: str) -> EdgePurgeError:
    return EdgePurgeError(
        code=ErrorCode.INVALID_INPUT,
        message=str(exc),
        suggestion=suggestion,
        recoverable=False,
    )


async def events(request: Request) -> JSONResponse:
    """Publish a batch of host events inside a fresh collection scope."""
    route_log = structlog.get_logger().bind(route="events")
    try:
        batch = EventBatch.model_validate(await _read_json(request))
    except ValidationError as exc:
        raise _invalid_payload(
            exc, "Send {'events': [...]} with each event carrying a known 'type'."
        ) from exc

    route_log.info("events_received", count=len(batch.events))
    bus, collector = open_request_scope(_state(request))
    try:
        for event in batch.events:
            await bus.publish(event)
    finally:
        discarded = collector.close()

    route_log.info("events_processed", purges=len(collector.dispatched), discarded=discarded)
    return JSONResponse({"purges": collector.dispatched, "discarded": discarded})


async def purge(request: Request) -> JSONResponse:
    """Purge the given URLs, or the whole site, immediately."""
    try:
        command = PurgeCommand.model_validate(await _read_json(request))
    except ValidationError as exc:
        raise _invalid_payload(exc, "Send {'urls': [...]} or {'all': true}.") from exc

    if not command.all and not command.urls:
        raise EdgePurgeError(
            code=ErrorCode.INVALID_PURGE_TARGET,
            message="Nothing to purge.",
            suggestion="Send {'urls': [...]} or {'all': true}.",
            recoverable=False,
        )

    state = _state(request)
    if state.stackpath is None:
        raise RuntimeError("StackPath client not initialized")
    result = await state.stackpath.purge_cache(FULL_SITE if command.all else command.urls)
    return JSONResponse({"result": result})


async def stacks(request: Request) -> JSONResponse:
    """List stacks so an operator can pick ``stackpath.stack_id``."""
    state = _state(request)
    if state.stackpath is None:
        raise RuntimeError("StackPath client not initialized")
    token = await state.stackpath.get_token()
    available = await state.stackpath.get_stacks(token)
    return JSONResponse(
        {
            "authenticated": token is not None,
            "selected": state.stackpath.stack_id or None,
            "stacks": available,
        }
    )


async def _handle_error(request: Request, exc: EdgePurgeError) -> JSONResponse:
    log.warning(
        "request_error",
        path=request.url.path,
        code=exc.code,
        message=exc.message,
        recoverable=exc.recoverable,
    )
    return JSONResponse(exc.to_dict(), status_code=_STATUS_BY_CODE.get(exc.code, 400))


def create_app(
    state: AppState | None = None,
    lifespan: Callable[[Starlette], AbstractAsyncContextManager[None]] | None = None,
) -> Starlette:
    """Build the webhook app.

    Pass ``state`` to serve an already wired AppState (tests), or a
    ``lifespan`` that builds one and stores it on ``app.state.edgepurge``.
    """
    app = Starlette(
        routes=[
            Route("/events", events, methods=["POST"]),
            Route("/purge", purge, methods=["POST"]),
            Route("/stacks", stacks, methods=["GET"]),
        ],
        exception_handlers={EdgePurgeError: _handle_error},
        lifespan=lifespan,
    )
    if state is not None:
        app.state.edgepurge = state
    return app
