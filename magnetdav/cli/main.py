"""Command line interface for magnetdav."""

from __future__ import annotations

import asyncio
from typing import Any

import aiohttp
import click
from rich.console import Console
from rich.table import Table

from magnetdav import APP_NAME, __version__
from magnetdav.config.config import ConfigManager
from magnetdav.utils.exceptions import ConfigurationError

console = Console()


@click.group()
@click.version_option(__version__, prog_name=APP_NAME)
def cli() -> None:
    """Stream magnet links over WebDAV."""


@cli.command()
@click.option("--config", "config_file", type=click.Path(dir_okay=False), help="Config file")
@click.option("--host", default=None, help="Bind address")
@click.option("--port", type=int, default=None, help="HTTP port")
def serve(config_file: str | None, host: str | None, port: int | None) -> None:
    """Run the server until interrupted."""
    from magnetdav.daemon.main import main as daemon_main

    try:
        exit_code = daemon_main(config_file, host=host, port=port)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise SystemExit(2) from e
    raise SystemExit(exit_code)


async def _post_magnet(url: str, uri: str) -> tuple[int, dict[str, Any]]:
    timeout = aiohttp.ClientTimeout(total=10.0)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.post(
            f"{url.rstrip('/')}/api/magnets", json={"magnet_uri": uri}
        ) as resp:
            return resp.status, await resp.json()


@cli.command()
@click.argument("uri")
@click.option("--url", default="http://127.0.0.1:3000", show_default=True, help="Server URL")
def add(uri: str, url: str) -> None:
    """Submit a magnet link to a running server."""
    try:
        status, body = asyncio.run(_post_magnet(url, uri))
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        console.print(f"[red]Could not reach {url}:[/red] {e}")
        raise SystemExit(1) from e

    if status >= 400:
        console.print(f"[red]Error {status}:[/red] {body.get('error', body)}")
        raise SystemExit(1)

    table = Table(show_header=False, box=None)
    table.add_row("ID", body["id"])
    table.add_row("Status", body["status"])
    if body.get("name"):
        table.add_row("Name", body["name"])
    table.add_row("WebDAV", f"{url.rstrip('/')}/webdav/{body['id']}/")
    console.print(table)


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("show")
@click.option("--config", "config_file", type=click.Path(dir_okay=False), help="Config file")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["toml", "json"]),
    default="toml",
    show_default=True,
)
def config_show(config_file: str | None, fmt: str) -> None:
    """Print the effective configuration."""
    try:
        manager = ConfigManager(config_file)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise SystemExit(2) from e
    source = manager.config_file or "defaults"
    console.print(f"[dim]# source: {source}[/dim]")
    click.echo(manager.export(fmt))


@cli.command()
def version() -> None:
    """Print the version."""
    console.print(f"{APP_NAME} [bold]{__version__}[/bold]")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
