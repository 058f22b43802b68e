"""Exceptions raised by the Auth0 API server."""


class AuthError(Exception):
    """Base class for errors that end a request before the handler runs."""

    status_code = 401
    error = "unauthorized"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class MissingTokenError(AuthError):
    """No usable bearer token in the Authorization header."""

    def __init__(self, message: str = "missing or invalid token"):
        super().__init__(message)


class InvalidTokenError(AuthError):
    """The token failed signature, issuer, audience or expiry checks.

    ``detail`` is the validator's failure reason; ``message`` is what the
    client sees.
    """

    def __init__(self, detail: str):
        super().__init__(f"invalid token: {detail}")
        self.detail = detail

    def __str__(self) -> str:
        return self.detail


class ClaimsMissingError(AuthError):
    """The validator accepted a token but produced no claims."""

    status_code = 500
    error = "internal_error"

    def __init__(self, message: str = "failed to get user claims"):
        super().__init__(message)


class JWKSFetchError(Exception):
    """Raised when the identity provider's key set cannot be fetched."""


class KeyNotFoundError(Exception):
    """Raised when no key in the key set matches a token's kid."""


class ConfigError(Exception):
    """Raised when required settings are missing or malformed."""
