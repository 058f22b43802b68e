"""CLI commands for auth0-api."""

import asyncio
import json
import logging

import click
import yaml

from auth0_api.config import apply_overrides, load_env_file, load_settings
from auth0_api.exceptions import ConfigError, JWKSFetchError
from auth0_api.models import LOG_LEVELS, Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def run_async(coro):
    """Run an async coroutine from sync CLI code."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def get_settings(env_file: str) -> Settings:
    """Load .env then settings, exiting with a message on bad config."""
    load_env_file(env_file)
    try:
        return load_settings()
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


def env_file_option():
    """Decorator for --env-file option."""
    return click.option(
        "--env-file", "-e",
        default=".env",
        type=click.Path(),
        help="Path to .env file (default: .env)"
    )


@click.group()
def main():
    """Auth0-protected API server CLI."""
    pass


@main.command()
@env_file_option()
@click.option("--host", default=None, help="Bind address (default: HOST or 0.0.0.0)")
@click.option("--port", "-p", default=None, type=int, help="Port (default: PORT or 8080)")
@click.option(
    "--log-level", "-l",
    default=None,
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    help="Log level (default: LOG_LEVEL or INFO)",
)
@click.option("--debug", is_flag=True, help="Return tracebacks for unhandled errors")
def serve(
    env_file: str, host: str | None, port: int | None, log_level: str | None, debug: bool
):
    """Start the API server."""
    import uvicorn

    from auth0_api.app import create_app

    settings = get_settings(env_file)
    overrides = {
        k: v
        for k, v in {"host": host, "port": port, "log_level": log_level}.items()
        if v is not None
    }
    if overrides:
        try:
            settings = apply_overrides(settings, overrides)
        except ConfigError as e:
            click.echo(f"Error: {e}", err=True)
            raise SystemExit(1)

    configure_logging(settings.log_level)
    logging.getLogger(__name__).info(
        f"Server starting on {settings.host}:{settings.port} "
        f"(issuer {settings.issuer_url}, audience {settings.auth0_audience})"
    )

    app = create_app(settings, debug=debug)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        access_log=False,
    )


@main.command("config")
@env_file_option()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def config_cmd(env_file: str, as_json: bool):
    """Show resolved configuration."""
    settings = get_settings(env_file)
    data = settings.model_dump()
    data["issuer_url"] = settings.issuer_url

    if as_json:
        click.echo(json.dumps(data, indent=2))
    else:
        click.echo(yaml.dump(data, default_flow_style=False, sort_keys=False))


@main.command()
@env_file_option()
def check(env_file: str):
    """Check that the identity provider's signing keys can be fetched."""
    from auth0_api.jwks import CachingJWKSProvider

    settings = get_settings(env_file)
    provider = CachingJWKSProvider(issuer_url=settings.issuer_url)

    click.echo(f"Fetching signing keys for {settings.issuer_url} ...")
    try:
        jwk_set = run_async(provider.fetch())
    except JWKSFetchError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"Found {len(jwk_set.keys)} signing key(s):")
    for key in jwk_set.keys:
        click.echo(f"  - kid={key.key_id} alg={key.algorithm_name}")
