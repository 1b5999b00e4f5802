"""StackPath token exchange, stack lookup and purge dispatch.

Token and stack listing are memoised in the cache store for one TTL window
each. The windows are independent, so the two entries may expire at
different moments. Neither entry inspects the token's real lifetime.

Every precondition failure (missing credentials, missing stack id, failed
exchange) is a silent no-op returning ``None`` or ``{}``. Only invalid purge
targets raise, since those are caller bugs rather than CDN conditions.
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Literal

import structlog

from edgepurge.errors import ErrorCode, EdgePurgeError
from edgepurge.models.stackpath import PurgeItem, PurgeRequest, TokenRequest

if TYPE_CHECKING:
    from edgepurge.config import Settings, StackPathSettings
    from edgepurge.protocols import CacheProtocol, GatewayProtocol

log = structlog.get_logger()

# Stands for "the whole site" wherever a purge target URL is expected
FULL_SITE: Literal[True] = True

PurgeTarget = str | Literal[True]

TOKEN_ENDPOINT = "identity/v1/oauth2/token"
STACKS_ENDPOINT = "stack/v1/stacks"
PURGE_ENDPOINT = "cdn/v1/stacks/{stack_id}/purge"

_CACHE_NAMESPACE = "stackpath"


class StackPathClient:
    """Memoised StackPath API calls needed to purge the CDN edge cache."""

    def __init__(
        self,
        gateway: GatewayProtocol,
        cache: CacheProtocol,
        settings: StackPathSettings,
        *,
        site_root_url: str | None = None,
        ttl_seconds: int = 3600,
        cache_failures: bool = True,
    ) -> None:
        self._gateway = gateway
        self._cache = cache
        self._settings = settings
        self._site_root_url = site_root_url
        self._ttl_seconds = ttl_seconds
        self._cache_failures = cache_failures

    @classmethod
    def from_settings(
        cls, gateway: GatewayProtocol, cache: CacheProtocol, settings: Settings
    ) -> StackPathClient:
        return cls(
            gateway,
            cache,
            settings.stackpath,
            site_root_url=settings.site.root_url,
            ttl_seconds=settings.cache.ttl_seconds,
            cache_failures=settings.cache.cache_failures,
        )

    @property
    def stack_id(self) -> str:
        return self._settings.stack_id

    def _cache_key(self, name: str) -> str:
        # Changing either credential must miss entries stored under the old pair
        secret = self._settings.client_secret.get_secret_value()
        credentials = f"{self._settings.client_id}\0{secret}".encode()
        return f"{_CACHE_NAMESPACE}.{name}:{hashlib.sha256(credentials).hexdigest()[:16]}"

    # ------------------------------------------------------------------
    # Token
    # ------------------------------------------------------------------

    async def get_token(self) -> str | None:
        """Return the cached bearer token, exchanging credentials on a miss."""
        return await self._cache.get_or_compute(
            self._cache_key("access_token"),
            self._ttl_seconds,
            self._fetch_token,
            cache_none=self._cache_failures,
        )

    async def _fetch_token(self) -> str | None:
        client_id = self._settings.client_id
        client_secret = self._settings.client_secret.get_secret_value()
        if not client_id or not client_secret:
            log.info("token_unavailable", reason="missing_credentials")
            return None

        payload = TokenRequest(client_id=client_id, client_secret=client_secret)
        response = await self._gateway.request(
            TOKEN_ENDPOINT, data=payload.model_dump(), method="POST"
        )
        token = (response or {}).get("access_token")
        if not isinstance(token, str) or not token:
            log.warning("token_unavailable", reason="exchange_failed")
            return None
        return token

    # ------------------------------------------------------------------
    # Stacks
    # ------------------------------------------------------------------

    async def get_stacks(self, access_token: str | None) -> dict[str, str]:
        """Return the ``{stack_id: stack_name}`` map visible to these credentials."""

        async def compute() -> dict[str, str] | None:
            if not access_token:
                return None
            response = await self._gateway.request(STACKS_ENDPOINT, headers=access_token)
            if response is None:
                return None
            return _parse_stacks(response.get("results"))

        stacks = await self._cache.get_or_compute(
            self._cache_key("stacks"),
            self._ttl_seconds,
            compute,
            cache_none=self._cache_failures,
        )
        return stacks or {}

    # ------------------------------------------------------------------
    # Purge
    # ------------------------------------------------------------------

    def build_purge_items(self, items: PurgeTarget | Sequence[PurgeTarget]) -> list[PurgeItem]:
        """Normalise purge targets into request items, keeping order and duplicates."""
        if isinstance(items, str) or items is True:
            targets: Sequence[Any] = [items]
        elif isinstance(items, Sequence):
            targets = items
        else:
            raise _invalid_target(items)

        result: list[PurgeItem] = []
        for target in targets:
            if target is True:
                if not self._site_root_url:
                    log.warning("purge_item_skipped", reason="site_root_url_not_configured")
                    continue
                result.append(PurgeItem(url=self._site_root_url, recursive=True))
            elif isinstance(target, str) and target:
                result.append(PurgeItem(url=target))
            else:
                raise _invalid_target(target)
        return result

    async def purge_cache(
        self, items: PurgeTarget | Sequence[PurgeTarget]
    ) -> dict[str, Any] | None:
        """Send one purge request for ``items``.

        ``items`` is a URL, a list of URLs, or ``FULL_SITE`` (alone or inside
        the list) for a recursive purge of the site root. Returns the decoded
        response, or ``None`` when nothing was sent or the request failed.
        """
        purge_items = self.build_purge_items(items)
        if not purge_items:
            log.info("purge_skipped", reason="no_items")
            return None

        if not self.stack_id:
            log.info("purge_skipped", reason="stack_not_configured")
            return None

        token = await self.get_token()
        if not token:
            log.info("purge_skipped", reason="no_token")
            return None

        body = PurgeRequest(items=purge_items).to_body()
        response = await self._gateway.request(
            PURGE_ENDPOINT.format(stack_id=self.stack_id),
            data=body,
            headers=token,
            method="POST",
        )
        log.info(
            "purge_dispatched",
            stack_id=self.stack_id,
            item_count=len(purge_items),
            ok=response is not None,
        )
        return response


def _parse_stacks(results: Any) -> dict[str, str]:
    if not isinstance(results, list):
        return {}
    stacks: dict[str, str] = {}
    for stack in results:
        if isinstance(stack, dict) and stack.get("id"):
            stacks[str(stack["id"])] = str(stack.get("name", ""))
    return stacks


def _invalid_target(target: object) -> EdgePurgeError:
    return EdgePurgeError(
        code=ErrorCode.INVALID_PURGE_TARGET,
        message=f"Invalid purge target: {target!r}",
        suggestion="Pass a non-empty URL string, a list of URLs, or FULL_SITE.",
        recoverable=False,
    )
