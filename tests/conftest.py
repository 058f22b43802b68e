"""Pytest fixtures for auth0_api tests."""

import json
import time

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm
from starlette.testclient import TestClient

from auth0_api.app import create_app
from auth0_api.auth import JWTValidator
from auth0_api.jwks import StaticKeySet
from auth0_api.models import Settings

KID = "test-key-1"


def _public_jwk(private_key, kid: str) -> dict:
    jwk = json.loads(RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk.update({"kid": kid, "use": "sig", "alg": "RS256"})
    return jwk


@pytest.fixture(scope="session")
def rsa_private_key():
    """Signing key shared by all tests; RSA generation is slow."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_private_key():
    """A key the server does not trust."""
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def make_jwk():
    """Public JWK for a private key, tagged with a kid."""
    return _public_jwk


@pytest.fixture
def jwks(rsa_private_key) -> dict:
    return {"keys": [_public_jwk(rsa_private_key, KID)]}


@pytest.fixture
def settings() -> Settings:
    return Settings(
        auth0_domain="tenant.example.com",
        auth0_audience="https://api.example.com",
    )


@pytest.fixture
def validator(settings, jwks) -> JWTValidator:
    return JWTValidator.from_settings(settings, key_set=StaticKeySet(jwks))


@pytest.fixture
def make_token(rsa_private_key, settings):
    """Factory for signed access tokens.

    Keyword arguments override payload claims; a value of None drops the
    claim. ``key``, ``kid`` and ``algorithm`` control the signature.
    """

    def _make(key=None, kid=KID, algorithm="RS256", **claims):
        now = int(time.time())
        payload = {
            "iss": settings.issuer_url,
            "aud": [settings.auth0_audience],
            "sub": "auth0|user-123",
            "iat": now,
            "exp": now + 3600,
            "scope": "read:profile read:admin",
        }
        payload.update(claims)
        payload = {k: v for k, v in payload.items() if v is not None}

        headers = {"kid": kid} if kid is not None else {}
        return jwt.encode(
            payload,
            key if key is not None else rsa_private_key,
            algorithm=algorithm,
            headers=headers,
        )

    return _make


@pytest.fixture
def client(settings, validator) -> TestClient:
    return TestClient(create_app(settings, validator=validator))
