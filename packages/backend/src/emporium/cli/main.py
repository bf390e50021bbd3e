"""Emporium CLI — run the server, prepare the database, read the chat.

Usage:
    emporium serve                        # FORK mode, one process
    emporium serve --mode cluster         # one worker per CPU, re-forked on exit
    emporium serve --port 4000            # same as PORT=4000 emporium serve
    emporium migrate                      # create the SQL store's tables
    emporium history                      # print the chat log of a running server
"""

from __future__ import annotations

import asyncio
import os
import sys
from typing import Optional

import click
import httpx

from emporium import __version__
from emporium import config
from emporium.config import Settings
from emporium.errors import InvalidMode, StoreUnavailable
from emporium.logs import configure_logging

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:3000"


def _api_url() -> str:
    return os.environ.get("EMPORIUM_API_URL", DEFAULT_API_URL).rstrip("/")


def _export(**values) -> None:
    """Put CLI overrides into the environment so worker processes see them too."""
    for key, value in values.items():
        if value is not None:
            os.environ[f"EMPORIUM_{key.upper()}"] = str(value)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="emporium")
def main():
    """Emporium — storefront backend with realtime chat."""


# ---------------------------------------------------------------------------
# emporium serve
# ---------------------------------------------------------------------------


@main.command()
@click.argument("mode_arg", metavar="[MODE]", required=False)
@click.option("--mode", "-m", help="FORK (default) or CLUSTER, case-insensitive")
@click.option("--host", help="Interface to bind (default 0.0.0.0)")
@click.option("--port", "-p", type=int, help="Port to bind (default $PORT or 3000)")
@click.option("--workers", "-w", type=click.IntRange(min=1), help="CLUSTER workers (default: CPU count)")
def serve(mode_arg: Optional[str], mode: Optional[str], host: Optional[str],
          port: Optional[int], workers: Optional[int]):
    """Start the HTTP listener and chat channel.

    MODE may also be given positionally: `emporium serve cluster`.
    """
    from emporium.supervisor import Mode, Role, Supervisor, parse_mode

    try:
        topology = parse_mode(mode or mode_arg or os.environ.get("EMPORIUM_MODE"))
    except InvalidMode as e:
        raise click.BadParameter(str(e), param_hint="MODE") from None

    _export(mode=topology.value, host=host, port=port, workers=workers)
    try:
        settings = Settings()
    except ValueError as e:
        raise click.ClickException(str(e)) from None
    config.settings = settings

    role = Role.SINGLETON if topology is Mode.FORK else Role.PRIMARY
    configure_logging(settings.log_level, role=role.value)

    supervisor = Supervisor(settings, topology, workers=workers)
    sys.exit(supervisor.run())


# ---------------------------------------------------------------------------
# emporium migrate
# ---------------------------------------------------------------------------


@main.command()
def migrate():
    """Create the chat_messages table in EMPORIUM_DATABASE_URL."""
    from emporium.store.sql import SqlMessageStore

    settings = Settings()
    store = SqlMessageStore(settings.database_url, echo=settings.debug)

    async def _migrate():
        try:
            await store.create_schema()
        finally:
            await store.close()

    try:
        asyncio.run(_migrate())
    except StoreUnavailable as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)
    click.secho("chat_messages ready", fg="green")


# ---------------------------------------------------------------------------
# emporium history
# ---------------------------------------------------------------------------


@main.command()
@click.option("--url", default=None, help="Server URL (or set EMPORIUM_API_URL)")
@click.option("--limit", "-n", type=int, default=None, help="Only show the last N messages")
def history(url: Optional[str], limit: Optional[int]):
    """Print the chat log of a running server, oldest first."""
    base = (url or _api_url()).rstrip("/")
    try:
        r = httpx.get(f"{base}/api/v1/messages", timeout=10.0)
        r.raise_for_status()
    except httpx.HTTPError as e:
        click.secho(f"Error: could not fetch history from {base}: {e}", fg="red", err=True)
        sys.exit(1)

    snapshot = r.json()
    ids = snapshot["ids"]
    if limit is not None:
        ids = ids[-limit:] if limit > 0 else []
    if not ids:
        click.echo("No messages yet.")
        return

    for message_id in ids:
        m = snapshot["entities"][message_id]
        stamp = click.style(f"[{m['timestamp']}]", fg="cyan")
        author = click.style(m["author"], bold=True)
        click.echo(f"{stamp} {author}: {m['text']}")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    main()
