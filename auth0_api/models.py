"""Configuration and claims models for the Auth0 API server."""

import urllib.parse

from pydantic import BaseModel, ConfigDict, Field, field_validator

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseModel):
    """Server settings. Immutable once loaded."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    auth0_domain: str
    auth0_audience: str
    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)
    cors_allow_origins: list[str] = ["*"]
    jwks_cache_ttl: float = Field(default=300.0, gt=0)
    allowed_clock_skew: int = Field(default=60, ge=0)
    log_level: str = "INFO"

    @field_validator("auth0_domain", "auth0_audience")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v

    @field_validator("auth0_domain")
    @classmethod
    def _bare_host(cls, v: str) -> str:
        # The domain is a host name; the issuer URL is built from it.
        parsed = urllib.parse.urlparse(f"https://{v}/")
        if (
            not parsed.hostname
            or parsed.netloc != v
            or parsed.path != "/"
            or parsed.username is not None
        ):
            raise ValueError(
                f"'{v}' is not a bare host name (expected e.g. 'tenant.auth0.com')"
            )
        return v

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, v: str) -> str:
        v = v.upper()
        if v not in LOG_LEVELS:
            raise ValueError(f"must be one of: {', '.join(LOG_LEVELS)}")
        return v

    @property
    def issuer_url(self) -> str:
        """Issuer the identity provider stamps into its tokens."""
        return f"https://{self.auth0_domain}/"


class ValidatedClaims(BaseModel):
    """Claims of a token that passed signature and claim checks.

    Built from the decoded JWT payload, so fields are populated by their
    registered claim names (``iss``, ``sub``, ...).
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    issuer: str = Field(alias="iss")
    subject: str = Field(alias="sub")
    audience: list[str] = Field(alias="aud")
    # NumericDate values may be fractional
    expiry: int | float = Field(alias="exp")
    issued_at: int | float | None = Field(default=None, alias="iat")
    not_before: int | float | None = Field(default=None, alias="nbf")
    token_id: str | None = Field(default=None, alias="jti")
    scope: str = ""

    @field_validator("audience", mode="before")
    @classmethod
    def _audience_as_list(cls, v):
        if isinstance(v, str):
            return [v]
        return v

    def to_json(self) -> dict:
        """Claims keyed by their registered names, omitting absent ones."""
        return self.model_dump(by_alias=True, exclude_none=True)
