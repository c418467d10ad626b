"""Command-line interface for Verbio.

This module provides the CLI commands for running and managing
the Verbio authentication service.
"""

import asyncio
from typing import NoReturn

import click

from verbio import __version__
from verbio.core.config import get_settings
from verbio.core.logging import configure_logging, get_logger


@click.group()
@click.version_option(version=__version__, prog_name="Verbio")
def cli() -> None:
    """Verbio - Sign in with Apple and session tokens for the Verbio app.

    Settings are read from VERBIO_* environment variables and .env files.
    """


@cli.command()
@click.option(
    "--host",
    type=str,
    default=None,
    help="Host to bind to (overrides config)",
)
@click.option(
    "--port",
    type=int,
    default=None,
    help="Port to bind to (overrides config)",
)
@click.option(
    "--workers",
    type=int,
    default=None,
    help="Number of worker processes (overrides config)",
)
@click.option(
    "--reload",
    is_flag=True,
    default=False,
    help="Enable auto-reload for development",
)
def serve(host: str | None, port: int | None, workers: int | None, reload: bool) -> None:
    """Start the Verbio server."""
    import uvicorn

    settings = get_settings()

    bind_host = host or settings.host
    bind_port = port or settings.port
    bind_workers = workers or settings.workers

    if bind_workers > 1 and settings.database_url.startswith("sqlite"):
        click.echo(
            "Error: SQLite does not support multiple worker processes. "
            "Use --workers 1 or switch to PostgreSQL.",
            err=True,
        )
        raise SystemExit(1)

    configure_logging(settings)

    logger = get_logger(__name__)
    logger.info(
        "Starting Verbio server",
        host=bind_host,
        port=bind_port,
        workers=bind_workers,
        reload=reload,
        environment=settings.environment,
    )

    uvicorn.run(
        "verbio.infrastructure.api.app:app",
        host=bind_host,
        port=bind_port,
        workers=1 if reload else bind_workers,
        reload=reload,
        log_level=settings.log_level.lower(),
        access_log=True,
    )


@cli.command()
@click.option(
    "--force",
    is_flag=True,
    help="Skip confirmation prompt",
)
def init_db(force: bool) -> None:
    """Initialize the database.

    Creates the users and refresh_tokens tables if they do not exist.
    """
    from verbio.infrastructure.persistence.database import get_db_manager

    settings = get_settings()
    configure_logging(settings)

    if not force:
        click.confirm(
            "This will create all database tables. Continue?",
            abort=True,
            default=False,
        )

    async def initialize():
        db = get_db_manager()
        try:
            await db.create_tables()
            click.echo("Database initialized successfully.")
        finally:
            await db.disconnect()

    asyncio.run(initialize())


@cli.command()
@click.option(
    "--older-than-days",
    type=click.IntRange(min=0),
    default=None,
    help="Delete tokens expired more than this many days ago (defaults to config)",
)
def purge_tokens(older_than_days: int | None) -> None:
    """Delete expired refresh tokens.

    Revoked tokens are kept until they expire so that reuse of a consumed
    token can still be detected.
    """
    from verbio.application.services import SessionService
    from verbio.core.exceptions import InternalFailure
    from verbio.infrastructure.persistence.database import get_db_manager

    settings = get_settings()
    configure_logging(settings)

    async def purge() -> int:
        db = get_db_manager()
        try:
            async with db.session() as session:
                return await SessionService(session).purge_expired(older_than_days)
        finally:
            await db.disconnect()

    try:
        purged = asyncio.run(purge())
    except InternalFailure as e:
        click.echo(f"ERROR: {e}", err=True)
        raise SystemExit(1)

    click.echo(f"Purged {purged} expired refresh token(s).")


@cli.command()
def generate_keys() -> None:
    """Print a new ES256 (EC P-256) key pair for signing access tokens.

    Set the output as VERBIO_JWT_PRIVATE_KEY and VERBIO_JWT_PUBLIC_KEY.
    """
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import ec

    private_key = ec.generate_private_key(ec.SECP256R1())
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )

    click.echo(private_pem.decode("utf-8").rstrip())
    click.echo(public_pem.decode("utf-8").rstrip())


@cli.command()
def info() -> None:
    """Display Verbio configuration and system information."""
    settings = get_settings()

    audiences = ", ".join(settings.apple_audiences) or "(none configured)"
    signing_key = "configured" if settings.jwt_private_key else "missing"

    click.echo(f"""
Verbio v{settings.app_version}
{'=' * 40}

Environment:    {settings.environment}
Debug Mode:     {settings.debug}
API Prefix:     {settings.api_prefix}

Server:
  Host:         {settings.host}
  Port:         {settings.port}
  Workers:      {settings.workers}

Database:
  URL:          {settings.database_url}

Tokens:
  Issuer:       {settings.jwt_issuer}
  Audience:     {settings.jwt_audience}
  Signing Key:  {signing_key}
  Access TTL:   {settings.access_token_expire_seconds} seconds
  Refresh TTL:  {settings.refresh_token_expire_days} days

Sign in with Apple:
  Audiences:    {audiences}
  Keys URL:     {settings.apple_keys_url}

Logging:
  Level:        {settings.log_level}
  Format:       {settings.log_format}
""")


def main() -> NoReturn:
    """Main entry point for the CLI.

    This function is called when the `verbio` command is run
    or when using `python -m verbio`.
    """
    cli()


if __name__ == "__main__":
    main()
