"""Bearer token authentication for the Auth0 API server.

Protected endpoints are plain async functions that take the request and the
caller's validated claims:

    @requires_auth(validator)
    async def profile(request: Request, claims: ValidatedClaims) -> Response:
        ...

``requires_auth`` turns such a function into an ordinary Starlette endpoint.
It extracts the bearer token, validates it, and only calls the wrapped
function once claims are available, so handlers never see a request without
them.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

import jwt
from pydantic import ValidationError
from starlette.datastructures import Headers
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from auth0_api.exceptions import (
    AuthError,
    ClaimsMissingError,
    InvalidTokenError,
    JWKSFetchError,
    KeyNotFoundError,
    MissingTokenError,
)
from auth0_api.jwks import CachingJWKSProvider
from auth0_api.models import ValidatedClaims

if TYPE_CHECKING:
    from auth0_api.jwks import KeySet
    from auth0_api.models import Settings

logger = logging.getLogger(__name__)

BEARER_SCHEME = "Bearer "
REQUIRED_CLAIMS = ["exp", "iss", "aud", "sub"]

Endpoint = Callable[[Request], Awaitable[Response]]
ClaimsEndpoint = Callable[[Request, ValidatedClaims], Awaitable[Response]]


def extract_bearer_token(headers: Mapping[str, str]) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header.

    The scheme must be exactly "Bearer " (case-sensitive, one space) and be
    followed by at least one character. Anything else yields None. Header
    names are matched case-insensitively, so plain dicts work too.
    """
    if not isinstance(headers, Headers):
        headers = Headers(headers)
    auth_header = headers.get("authorization")
    if auth_header is None:
        return None
    if len(auth_header) > len(BEARER_SCHEME) and auth_header.startswith(BEARER_SCHEME):
        return auth_header[len(BEARER_SCHEME):]
    return None


class TokenValidator(Protocol):
    """Protocol for token validation strategies."""

    async def validate(self, token: str) -> ValidatedClaims:
        """Validate a token. Raises InvalidTokenError on any failure."""
        ...


@dataclass
class JWTValidator:
    """Validates RS256 access tokens issued by an OIDC identity provider.

    Checks, in order: the header algorithm, the signing key (looked up by
    ``kid`` in ``key_set``), the signature, and the ``iss``/``aud``/``exp``
    claims with ``leeway`` seconds of allowed clock skew.
    """

    key_set: KeySet
    issuer: str
    audience: list[str]
    algorithms: list[str] = field(default_factory=lambda: ["RS256"])
    leeway: float = 60

    @classmethod
    def from_settings(
        cls, settings: Settings, key_set: KeySet | None = None
    ) -> JWTValidator:
        """Build a validator for the configured tenant.

        Without an explicit ``key_set`` the tenant's published JWKS is used.
        """
        if key_set is None:
            key_set = CachingJWKSProvider(
                issuer_url=settings.issuer_url,
                cache_ttl=settings.jwks_cache_ttl,
            )
        return cls(
            key_set=key_set,
            issuer=settings.issuer_url,
            audience=[settings.auth0_audience],
            leeway=settings.allowed_clock_skew,
        )

    async def validate(self, token: str) -> ValidatedClaims:
        try:
            header = jwt.get_unverified_header(token)
        except jwt.PyJWTError as e:
            raise InvalidTokenError(f"could not parse the token: {e}") from e

        alg = header.get("alg")
        if alg not in self.algorithms:
            raise InvalidTokenError(
                f"expected {' or '.join(self.algorithms)} signing algorithm "
                f"but token specified {alg}"
            )

        kid = header.get("kid")
        if kid is not None and not isinstance(kid, str):
            raise InvalidTokenError("kid header must be a string")

        try:
            signing_key = await self.key_set.get_signing_key(kid)
        except (KeyNotFoundError, JWKSFetchError) as e:
            raise InvalidTokenError(f"could not get the signing key: {e}") from e

        try:
            payload = jwt.decode(
                token,
                signing_key.key,
                algorithms=self.algorithms,
                audience=self.audience,
                issuer=self.issuer,
                leeway=self.leeway,
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.PyJWTError as e:
            raise InvalidTokenError(str(e)) from e

        try:
            return ValidatedClaims.model_validate(payload)
        except ValidationError as e:
            fields = ", ".join(str(err["loc"][0]) for err in e.errors() if err["loc"])
            raise InvalidTokenError(f"malformed claims: {fields}") from e


def auth_error_response(exc: AuthError) -> JSONResponse:
    """Render an auth failure as JSON."""
    headers = {}
    if exc.status_code == 401:
        headers["WWW-Authenticate"] = "Bearer"
    return JSONResponse(
        {"error": exc.error, "message": exc.message},
        status_code=exc.status_code,
        headers=headers,
    )


def requires_auth(validator: TokenValidator) -> Callable[[ClaimsEndpoint], Endpoint]:
    """Decorator that gates a claims-aware handler behind token validation."""

    def decorator(handler: ClaimsEndpoint) -> Endpoint:
        @functools.wraps(handler)
        async def endpoint(request: Request) -> Response:
            try:
                token = extract_bearer_token(request.headers)
                if not token:
                    raise MissingTokenError()

                claims = await validator.validate(token)
                if claims is None:
                    raise ClaimsMissingError()
            except AuthError as e:
                logger.info(
                    f"Rejected {request.method} {request.url.path}: {e.message}"
                )
                return auth_error_response(e)

            return await handler(request, claims)

        return endpoint

    return decorator
