"""Cached, single-flight retrieval of the provider's JWKS signing keys."""

import asyncio
import re
import time
from collections.abc import Callable
from typing import Any

import httpx
import jwt

from noteauth.auth.types import SigningKey
from noteauth.core.errors import ConfigurationError, ProviderError
from noteauth.core.logging import get_logger

logger = get_logger(__name__)

JWKS_TTL_DEFAULT = 600
JWKS_TTL_MIN = 60
JWKS_TTL_MAX = 86_400
MIN_REFRESH_INTERVAL_DEFAULT = 30
FETCH_TIMEOUT_DEFAULT = 5.0
SYMMETRIC_KEY_TYPES = frozenset({"oct"})

_MAX_AGE = re.compile(r"max-age\s*=\s*(\d+)")


class KeyNotFoundError(LookupError):
    """No key with the requested id exists in the current key set."""


def ttl_from_headers(headers: httpx.Headers, default: int) -> int:
    """Cache lifetime from ``Cache-Control: max-age``, clamped to sane bounds."""
    match = _MAX_AGE.search(headers.get("cache-control", ""))
    if match is None:
        return default
    return max(JWKS_TTL_MIN, min(int(match.group(1)), JWKS_TTL_MAX))


def parse_jwks(
    document: Any, *, fetched_at: float, expires_at: float
) -> dict[str, SigningKey]:
    """Convert a JWKS document into signing keys indexed by key id.

    Entries without a ``kid``, encryption keys and symmetric keys are skipped.
    Raises ValueError when nothing usable remains.
    """
    entries = document.get("keys") if isinstance(document, dict) else None
    if not isinstance(entries, list):
        raise ValueError("JWKS document has no keys array")

    keys: dict[str, SigningKey] = {}
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        kid = entry.get("kid")
        if not isinstance(kid, str) or not kid:
            continue
        if entry.get("use", "sig") != "sig" or entry.get("kty") in SYMMETRIC_KEY_TYPES:
            continue
        try:
            jwk = jwt.PyJWK(entry)
        except (jwt.PyJWKError, jwt.InvalidKeyError, ValueError):
            logger.warning("jwks_key_skipped", kid=kid, kty=entry.get("kty"))
            continue
        keys[kid] = SigningKey(
            key_id=kid,
            algorithm=jwk.algorithm_name,
            key=jwk.key,
            fetched_at=fetched_at,
            expires_at=expires_at,
        )

    if not keys:
        raise ValueError("JWKS document contains no usable signing keys")
    return keys


class KeyCache:
    """Process-wide cache of the provider's public signing keys.

    Readers never block each other. A refresh runs as one shared task: callers
    arriving while it is in flight await that task instead of fetching again.
    A failed refresh leaves the previous keys in place. Unknown key ids retry on
    the next request; expired keys keep being served without another attempt
    until ``min_refresh_interval`` has passed since the failure.
    """

    def __init__(
        self,
        jwks_url: str,
        http_client: httpx.AsyncClient,
        *,
        ttl: int = JWKS_TTL_DEFAULT,
        min_refresh_interval: float = MIN_REFRESH_INTERVAL_DEFAULT,
        fetch_timeout: float = FETCH_TIMEOUT_DEFAULT,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not jwks_url:
            raise ConfigurationError("JWKS URL is not configured")
        self._jwks_url = jwks_url
        self._http = http_client
        self._ttl = ttl
        self._min_refresh_interval = min_refresh_interval
        self._fetch_timeout = fetch_timeout
        self._clock = clock

        self._keys: dict[str, SigningKey] = {}
        self._refreshed_at: float | None = None
        self._failed_at: float | None = None
        self._expires_at = 0.0
        self._inflight: asyncio.Task[None] | None = None
        self._lock = asyncio.Lock()

    @property
    def jwks_url(self) -> str:
        return self._jwks_url

    @property
    def key_ids(self) -> frozenset[str]:
        return frozenset(self._keys)

    async def get_key(self, kid: str) -> SigningKey:
        """Resolve a key by id, refreshing the set when it is stale or lacks the id.

        Raises KeyNotFoundError when the key is absent after a permitted
        refresh, and ProviderError when a needed refresh fails or times out.
        """
        now = self._clock()
        cached = self._keys.get(kid)
        if cached is not None:
            if now < self._expires_at:
                return cached
            if (
                self._failed_at is not None
                and now - self._failed_at < self._min_refresh_interval
            ):
                return cached
            try:
                await self.refresh()
            except ProviderError:
                self._failed_at = self._clock()
                logger.warning("jwks_serving_stale_key", kid=kid)
                return cached
            return self._lookup(kid)

        if (
            self._refreshed_at is not None
            and now - self._refreshed_at < self._min_refresh_interval
        ):
            raise KeyNotFoundError(kid)

        await self.refresh()
        return self._lookup(kid)

    async def refresh(self) -> None:
        """Fetch the key set, joining a fetch that is already in flight."""
        async with self._lock:
            task = self._inflight
            if task is None:
                task = asyncio.create_task(self._fetch())
                task.add_done_callback(self._on_fetch_done)
                self._inflight = task

        try:
            await asyncio.wait_for(asyncio.shield(task), timeout=self._fetch_timeout)
        except TimeoutError as exc:
            logger.warning("jwks_fetch_timeout", url=self._jwks_url)
            raise ProviderError("Timed out fetching signing keys") from exc

    def _lookup(self, kid: str) -> SigningKey:
        key = self._keys.get(kid)
        if key is None:
            raise KeyNotFoundError(kid)
        return key

    async def _fetch(self) -> None:
        try:
            response = await self._http.get(self._jwks_url, timeout=self._fetch_timeout)
            response.raise_for_status()
            document = response.json()
            fetched_at = self._clock()
            ttl = ttl_from_headers(response.headers, self._ttl)
            keys = parse_jwks(
                document, fetched_at=fetched_at, expires_at=fetched_at + ttl
            )
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "jwks_fetch_failed", url=self._jwks_url, error=type(exc).__name__
            )
            raise ProviderError("Unable to fetch signing keys") from exc

        self._keys = keys
        self._refreshed_at = fetched_at
        self._failed_at = None
        self._expires_at = fetched_at + ttl
        logger.info("jwks_refreshed", url=self._jwks_url, keys=len(keys), ttl=ttl)

    def _on_fetch_done(self, task: asyncio.Task[None]) -> None:
        if self._inflight is task:
            self._inflight = None
        if not task.cancelled():
            # Mark the outcome retrieved even if every waiter already timed out.
            task.exception()
