"""Configuration loading for the Auth0 API server."""

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from auth0_api.exceptions import ConfigError
from auth0_api.models import Settings

logger = logging.getLogger(__name__)

# Settings field -> environment variable
ENV_VARS = {
    "auth0_domain": "AUTH0_DOMAIN",
    "auth0_audience": "AUTH0_AUDIENCE",
    "host": "HOST",
    "port": "PORT",
    "cors_allow_origins": "CORS_ALLOW_ORIGINS",
    "jwks_cache_ttl": "JWKS_CACHE_TTL",
    "allowed_clock_skew": "ALLOWED_CLOCK_SKEW",
    "log_level": "LOG_LEVEL",
}

REQUIRED_ENV_VARS = ("AUTH0_DOMAIN", "AUTH0_AUDIENCE")


def _split_csv(value: str) -> list[str]:
    return [p.strip() for p in value.split(",") if p.strip()]


def load_env_file(path: str | Path = ".env") -> bool:
    """Load variables from a .env file into the process environment.

    A missing file is not an error; real environment variables still apply.
    Existing variables are not overridden.
    """
    path = Path(path)
    if not path.is_file():
        logger.warning(f"No .env file at {path}, using process environment only")
        return False
    return load_dotenv(path)


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from environment variables.

    Raises ConfigError if a required variable is missing or any value is
    invalid.
    """
    if environ is None:
        environ = os.environ

    missing = [name for name in REQUIRED_ENV_VARS if not environ.get(name)]
    if missing:
        raise ConfigError(
            f"{' and '.join(missing)} environment variable"
            f"{'s are' if len(missing) > 1 else ' is'} required"
        )

    data: dict = {
        field: environ[var] for field, var in ENV_VARS.items() if environ.get(var)
    }
    if "cors_allow_origins" in data:
        data["cors_allow_origins"] = _split_csv(data["cors_allow_origins"])

    try:
        return Settings(**data)
    except ValidationError as e:
        raise _config_error(e) from e


def apply_overrides(settings: Settings, overrides: Mapping[str, object]) -> Settings:
    """Return a copy of settings with overrides applied and re-validated."""
    try:
        return Settings.model_validate({**settings.model_dump(), **overrides})
    except ValidationError as e:
        raise _config_error(e) from e


def _config_error(e: ValidationError) -> ConfigError:
    errors = []
    for err in e.errors():
        field = str(err["loc"][0]) if err["loc"] else ""
        errors.append(f"{ENV_VARS.get(field, field)}: {err['msg']}")
    return ConfigError("Invalid configuration: " + "; ".join(errors))
