"""ASGI application for the Auth0 API server.

Routes:
- GET /                   - API banner
- GET /public             - public endpoint, no authentication
- GET /protected/profile  - caller's subject and claims (bearer token required)
- GET /protected/admin    - caller's subject and scope (bearer token required)
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route

from auth0_api.auth import JWTValidator, requires_auth

if TYPE_CHECKING:
    from auth0_api.auth import TokenValidator
    from auth0_api.models import Settings, ValidatedClaims

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and duration of every request."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.exception(
                f"{request.method} {request.url.path} failed after {elapsed_ms:.1f}ms"
            )
            raise

        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{request.method} {request.url.path} {response.status_code} "
            f"{elapsed_ms:.1f}ms"
        )
        return response


async def root(request: Request) -> JSONResponse:
    return JSONResponse({"message": "Auth0 Backend API"})


async def public(request: Request) -> JSONResponse:
    return JSONResponse(
        {"message": "This is a public endpoint accessible without authentication"}
    )


async def profile(request: Request, claims: ValidatedClaims) -> JSONResponse:
    return JSONResponse(
        {
            "message": "This is a protected endpoint",
            "user_id": claims.subject,
            "claims": claims.to_json(),
        }
    )


async def admin(request: Request, claims: ValidatedClaims) -> JSONResponse:
    return JSONResponse(
        {
            "message": "This is a protected admin endpoint",
            "user_id": claims.subject,
            "scope": claims.scope,
        }
    )


def create_app(
    settings: Settings,
    validator: TokenValidator | None = None,
    debug: bool = False,
) -> Starlette:
    """Create the ASGI app.

    Args:
        settings: Loaded server settings
        validator: Token validator for protected routes; defaults to a
            JWTValidator backed by the tenant's published JWKS
        debug: Return tracebacks for unhandled errors

    Returns:
        Starlette application. Middleware runs in order: error recovery
        (built in), request logging, CORS, then per-route authentication.
    """
    if validator is None:
        validator = JWTValidator.from_settings(settings)

    authenticated = requires_auth(validator)

    routes = [
        Route("/", root, methods=["GET"]),
        Route("/public", public, methods=["GET"]),
        Mount(
            "/protected",
            routes=[
                Route("/profile", authenticated(profile), methods=["GET"]),
                Route("/admin", authenticated(admin), methods=["GET"]),
            ],
        ),
    ]

    middleware = [
        Middleware(RequestLoggingMiddleware),
        Middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_methods=["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE"],
            allow_headers=["Authorization", "Content-Type"],
        ),
    ]

    return Starlette(debug=debug, routes=routes, middleware=middleware)
