"""Signing key sources for token validation.

Two key sets implement the same interface:

1. **CachingJWKSProvider**: fetches the identity provider's JSON Web Key Set
   over HTTP (via OIDC discovery) and caches it for a fixed TTL.
2. **StaticKeySet**: a fixed JWKS document, for tests and deployments that
   pin their keys.
"""

from __future__ import annotations

import asyncio
import logging
import time
import urllib.parse
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
from jwt import PyJWK, PyJWKSet
from jwt.exceptions import PyJWKError, PyJWKSetError

from auth0_api.exceptions import JWKSFetchError, KeyNotFoundError

logger = logging.getLogger(__name__)

DISCOVERY_PATH = ".well-known/openid-configuration"


class KeySet(Protocol):
    """Protocol for signing key sources."""

    async def get_signing_key(self, kid: str | None) -> PyJWK:
        """Return the key for ``kid``. Raises KeyNotFoundError if absent."""
        ...


def parse_jwks(data: Any) -> PyJWKSet:
    """Parse a JWKS document, keeping only keys usable for signatures.

    Raises JWKSFetchError if the document holds no usable keys.
    """
    if not isinstance(data, dict) or not isinstance(data.get("keys"), list):
        raise JWKSFetchError("JWKS document has no 'keys' list")

    try:
        jwk_set = PyJWKSet.from_dict(data)
    except (PyJWKSetError, PyJWKError) as e:
        raise JWKSFetchError(f"invalid JWKS document: {e}") from e

    signing_keys = [k for k in jwk_set.keys if k.public_key_use in ("sig", None)]
    if not signing_keys:
        raise JWKSFetchError("JWKS document has no signing keys")
    jwk_set.keys = signing_keys
    return jwk_set


def select_key(jwk_set: PyJWKSet, kid: str | None) -> PyJWK:
    """Pick the key matching ``kid`` from a parsed key set."""
    if kid is None:
        if len(jwk_set.keys) == 1:
            return jwk_set.keys[0]
        raise KeyNotFoundError("token has no kid and the key set has several keys")

    for key in jwk_set.keys:
        if key.key_id == kid:
            return key
    raise KeyNotFoundError(f"no signing key found for kid '{kid}'")


@dataclass
class StaticKeySet:
    """Key set backed by a fixed JWKS document. Never touches the network."""

    jwks: dict
    _jwk_set: PyJWKSet = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._jwk_set = parse_jwks(self.jwks)

    @property
    def key_ids(self) -> list[str | None]:
        return [k.key_id for k in self._jwk_set.keys]

    async def get_signing_key(self, kid: str | None) -> PyJWK:
        return select_key(self._jwk_set, kid)


@dataclass
class CachingJWKSProvider:
    """Fetches and caches the identity provider's signing keys.

    The JWKS location is discovered from the issuer's OpenID configuration
    unless ``jwks_uri`` is given. Keys are refetched once ``cache_ttl``
    seconds have passed; concurrent refreshes are serialized. After a failed
    refresh, callers get the same error without a new fetch for
    ``retry_backoff`` seconds.

    Usage:
        provider = CachingJWKSProvider(issuer_url="https://tenant.auth0.com/")
        key = await provider.get_signing_key(kid)
    """

    issuer_url: str
    cache_ttl: float = 300.0
    timeout: float = 10.0
    jwks_uri: str | None = None
    retry_backoff: float = 5.0
    _jwk_set: PyJWKSet | None = field(default=None, init=False, repr=False)
    _expires_at: float = field(default=0.0, init=False, repr=False)
    _retry_at: float = field(default=0.0, init=False, repr=False)
    _last_error: JWKSFetchError | None = field(default=None, init=False, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    @property
    def discovery_url(self) -> str:
        base = self.issuer_url if self.issuer_url.endswith("/") else self.issuer_url + "/"
        return urllib.parse.urljoin(base, DISCOVERY_PATH)

    async def _discover_jwks_uri(self, client: httpx.AsyncClient) -> str:
        resp = await client.get(self.discovery_url)
        if resp.status_code != 200:
            raise JWKSFetchError(
                f"OpenID configuration HTTP {resp.status_code} from {self.discovery_url}"
            )
        jwks_uri = resp.json().get("jwks_uri")
        if not isinstance(jwks_uri, str) or not jwks_uri:
            raise JWKSFetchError(
                f"OpenID configuration at {self.discovery_url} has no jwks_uri"
            )
        return jwks_uri

    async def fetch(self) -> PyJWKSet:
        """Download and parse the key set, bypassing the cache."""
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                headers={"Accept": "application/json"},
            ) as client:
                jwks_uri = self.jwks_uri or await self._discover_jwks_uri(client)
                resp = await client.get(jwks_uri)
                if resp.status_code != 200:
                    raise JWKSFetchError(f"JWKS HTTP {resp.status_code} from {jwks_uri}")
                jwk_set = parse_jwks(resp.json())
        except httpx.HTTPError as e:
            raise JWKSFetchError(f"could not fetch JWKS for {self.issuer_url}: {e}") from e
        except ValueError as e:
            raise JWKSFetchError(f"malformed JSON from {self.issuer_url}: {e}") from e

        logger.info(f"Fetched {len(jwk_set.keys)} signing key(s) from {jwks_uri}")
        return jwk_set

    async def get_keys(self) -> PyJWKSet:
        """Return the cached key set, refreshing it if the TTL has passed."""
        async with self._lock:
            if self._jwk_set is None or time.monotonic() >= self._expires_at:
                if self._last_error is not None and time.monotonic() < self._retry_at:
                    raise JWKSFetchError(
                        f"{self._last_error} (next attempt in "
                        f"{self._retry_at - time.monotonic():.1f}s)"
                    )
                try:
                    self._jwk_set = await self.fetch()
                except JWKSFetchError as e:
                    logger.warning(f"JWKS refresh failed: {e}")
                    self._last_error = e
                    self._retry_at = time.monotonic() + self.retry_backoff
                    raise
                self._last_error = None
                self._expires_at = time.monotonic() + self.cache_ttl
            return self._jwk_set

    async def get_signing_key(self, kid: str | None) -> PyJWK:
        return select_key(await self.get_keys(), kid)
