"""HTTP transport and auth middleware for the webhook app."""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.datastructures import Headers
from starlette.responses import JSONResponse

from edgepurge.errors import EdgePurgeError, ErrorCode

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Receive, Scope, Send

    from edgepurge.config import Settings

log = structlog.get_logger()

_UNAUTHORIZED = EdgePurgeError(
    code=ErrorCode.UNAUTHORIZED,
    message="Missing or invalid webhook key.",
    suggestion="Send Authorization: Bearer <server.auth_key>.",
    recoverable=False,
)


class WebhookAuthMiddleware:
    """Pure ASGI middleware enforcing an optional shared bearer key.

    The CMS forwarding its events holds the key; anything else gets 401
    before reaching a route, so no purge can be triggered anonymously.
    Lifespan messages pass through untouched.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        auth_enabled: bool,
        auth_key: str | None = None,
    ) -> None:
        self.app = app
        self.auth_enabled = auth_enabled
        self.auth_key = auth_key

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http" and self.auth_enabled:
            headers = Headers(scope=scope)
            auth_header = headers.get("authorization", "")
            supplied = auth_header[7:] if auth_header.startswith("Bearer ") else ""
            if not self.auth_key or not secrets.compare_digest(supplied, self.auth_key):
                response = JSONResponse(_UNAUTHORIZED.to_dict(), status_code=401)
                await response(scope, receive, send)
                return

        await self.app(scope, receive, send)


def resolve_auth_key(settings: Settings) -> str | None:
    """Return the configured key, generating one when auth is on without a key."""
    http_log = log.bind(transport="http")
    auth_key: str | None = settings.server.auth_key or None

    if settings.server.auth_enabled and not auth_key:
        auth_key = secrets.token_urlsafe(32)
        http_log.warning("http_auth_key_auto_generated", auth_key=auth_key)

    if not settings.server.auth_enabled:
        http_log.warning("http_auth_disabled")

    return auth_key


def run_http_server(app: ASGIApp, settings: Settings) -> None:
    """Serve the webhook app behind the auth middleware."""
    secured_app = WebhookAuthMiddleware(
        app,
        auth_enabled=settings.server.auth_enabled,
        auth_key=resolve_auth_key(settings),
    )

    uvicorn.run(
        secured_app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # Disable uvicorn's default logging; structlog handles it
    )
