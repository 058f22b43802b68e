"""Auth0 API - HTTP API with public routes and JWT-protected routes."""

from auth0_api.app import create_app
from auth0_api.auth import JWTValidator, extract_bearer_token, requires_auth
from auth0_api.jwks import CachingJWKSProvider, StaticKeySet
from auth0_api.models import Settings, ValidatedClaims

__all__ = [
    "CachingJWKSProvider",
    "JWTValidator",
    "Settings",
    "StaticKeySet",
    "ValidatedClaims",
    "create_app",
    "extract_bearer_token",
    "requires_auth",
]
