"""Authenticated JSON requests against the StackPath API gateway.

All network I/O to StackPath goes through a single Gateway instance. The
Gateway receives an httpx.AsyncClient via constructor injection; the
lifespan owns the client lifecycle.

Failures never raise: network errors, non-2xx statuses and bodies that are
not a JSON object all come back as ``None``, and callers null-check the
fields they need (``access_token``, ``results``). Every request and response
body is logged with credentials masked; the log is the only record of what
the CDN was told.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
import structlog

from edgepurge import __version__
from edgepurge.errors import ErrorCode, EdgePurgeError

if TYPE_CHECKING:
    from collections.abc import Mapping

log = structlog.get_logger()

DEFAULT_GATEWAY_URL = "https://gateway.stackpath.com"

_SUPPORTED_METHODS = frozenset({"GET", "POST"})
_REDACTED_FIELDS = frozenset({"client_secret", "access_token"})


def build_http_client() -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(30.0),
        headers={"User-Agent": f"edgepurge/{__version__}"},
        limits=httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        ),
    )


def _redact(data: Mapping[str, Any] | None) -> dict[str, Any] | None:
    if data is None:
        return None
    return {k: ("********" if k in _REDACTED_FIELDS else v) for k, v in data.items()}


def _build_headers(headers: Mapping[str, str] | str | None) -> dict[str, str]:
    """Merge caller headers over the JSON defaults.

    A plain string is shorthand for a bearer token.
    """
    result = {
        "Accept": "application/json",
        "Content-Type": "application/json",
    }
    if isinstance(headers, str):
        result["Authorization"] = f"Bearer {headers}"
    elif headers:
        result.update(headers)
    return result


class Gateway:
    """JSON request helper bound to one gateway base URL."""

    def __init__(self, client: httpx.AsyncClient, base_url: str = DEFAULT_GATEWAY_URL) -> None:
        self._client = client
        self._base_url = base_url.rstrip("/")

    def url_for(self, endpoint: str) -> str:
        return f"{self._base_url}/{endpoint.lstrip('/')}"

    async def request(
        self,
        endpoint: str,
        data: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | str | None = None,
        method: str = "GET",
    ) -> dict[str, Any] | None:
        """Send a JSON request and return the decoded response object.

        ``data`` is sent as the JSON body for POST and ignored for GET.
        Returns ``None`` on network errors, non-2xx statuses and responses
        whose body is not a JSON object.
        """
        method = method.upper()
        if method not in _SUPPORTED_METHODS:
            raise EdgePurgeError(
                code=ErrorCode.INVALID_INPUT,
                message=f"Unsupported gateway method: {method}",
                suggestion="Use GET or POST.",
                recoverable=False,
            )

        url = self.url_for(endpoint)
        body = dict(data) if data is not None and method == "POST" else None
        log.info("gateway_request", endpoint=endpoint, body=_redact(body), method=method)

        try:
            response = await self._client.request(
                method,
                url,
                headers=_build_headers(headers),
                json=body,
            )
        except httpx.HTTPError as exc:
            log.warning("gateway_network_error", endpoint=endpoint, error=str(exc))
            return None

        try:
            decoded = response.json()
        except ValueError:
            decoded = None

        log.info(
            "gateway_response",
            endpoint=endpoint,
            status_code=response.status_code,
            body=_redact(decoded) if isinstance(decoded, dict) else response.text,
        )

        if not response.is_success:
            log.warning("gateway_error_status", endpoint=endpoint, status_code=response.status_code)
            return None

        if decoded is None:
            log.warning("gateway_invalid_json", endpoint=endpoint)
            return None

        if not isinstance(decoded, dict):
            log.warning(
                "gateway_unexpected_body", endpoint=endpoint, body_type=type(decoded).__name__
            )
            return None
        return decoded
