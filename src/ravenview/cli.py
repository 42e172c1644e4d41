"""Click CLI for ravenview — query a Raven fleet from the terminal."""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ravenview.config.hierarchy import load_config_hierarchy
from ravenview.errors.exceptions import RavenViewError

console = Console()
error_console = Console(stderr=True)

T = TypeVar("T")


def _setup_logging(verbosity: int, default_level: str = "WARNING") -> None:
    """Configure logging; -v/-vv override the configured level."""
    level = logging.getLevelName(str(default_level).upper())
    if not isinstance(level, int):
        level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_time=False, show_path=False)],
    )


@click.group()
@click.version_option(package_name="ravenview")
@click.option("--api-url", type=str, default=None, help="Raven API root URL.")
@click.option("--api-key", type=str, default=None, help="Raven API key.")
@click.option("--api-secret", type=str, default=None, help="Raven API secret.")
@click.option("--show-api-log", is_flag=True, default=False, help="Print the API exchange log.")
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug).")
@click.pass_context
def cli(
    ctx: click.Context,
    api_url: str | None,
    api_key: str | None,
    api_secret: str | None,
    show_api_log: bool,
    verbose: int,
) -> None:
    """ravenview — Raven fleet telematics from the command line."""
    config = load_config_hierarchy(api_url=api_url, api_key=api_key, api_secret=api_secret)
    _setup_logging(verbose, config.get("log_level", "WARNING"))
    ctx.obj = {
        "config": config,
        "show_api_log": show_api_log,
    }


def _run(ctx: click.Context, operation: Callable[[Any], Awaitable[T]]) -> T:
    """Log in, run *operation* against a RavenView, and exit 1 on failure."""
    from ravenview.core import RavenView

    async def _main() -> T:
        view = RavenView.from_config(ctx.obj["config"])
        try:
            async with view:
                return await operation(view)
        finally:
            if ctx.obj["show_api_log"]:
                _print_api_log(view)

    try:
        return asyncio.run(_main())
    except RavenViewError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


@cli.command("ravens")
@click.option("--no-vehicle-info", is_flag=True, default=False, help="Skip VIN decoding.")
@click.pass_context
def list_ravens(ctx: click.Context, no_vehicle_info: bool) -> None:
    """List every raven with its status."""
    ravens = _run(ctx, lambda view: view.fetch_fleet(include_vehicle_info=not no_vehicle_info))

    table = Table(title="Ravens", show_header=True)
    table.add_column("UUID", style="cyan")
    table.add_column("Name")
    table.add_column("Online")
    table.add_column("Engine")
    table.add_column("Vehicle")
    table.add_column("Last location")

    for raven in ravens:
        vehicle = "-"
        if raven.vehicle_info:
            info = raven.vehicle_info
            vehicle = f"{info.year} {info.make} {info.model}"
        location = "-"
        if raven.last_known_location:
            loc = raven.last_known_location
            location = f"{loc.latitude:.5f}, {loc.longitude:.5f}"
        table.add_row(
            raven.uuid,
            raven.name,
            _yes_no(raven.online),
            _yes_no(raven.engine_on),
            vehicle,
            location,
        )

    console.print(table)


@cli.command("details")
@click.argument("uuid")
@click.pass_context
def raven_details(ctx: click.Context, uuid: str) -> None:
    """Show the raw detail fields for one raven."""
    details = _run(ctx, lambda view: view.client.get_raven_details(uuid))

    table = Table(title=f"Raven {uuid}", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    for key, value in details.items():
        table.add_row(key, str(value))
    console.print(table)


@cli.command("events")
@click.argument("uuid")
@click.option("--start", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@click.option("--end", type=click.DateTime(formats=["%Y-%m-%d"]), default=None)
@click.pass_context
def raven_events(
    ctx: click.Context,
    uuid: str,
    start: datetime | None,
    end: datetime | None,
) -> None:
    """List events for one raven, optionally within a date range."""
    events = _run(ctx, lambda view: view.client.get_raven_events(uuid, start, end))

    table = Table(title=f"Events for {uuid}", show_header=True)
    table.add_column("Time", style="cyan")
    table.add_column("Type")
    table.add_column("Road media")
    table.add_column("Cabin media")
    for event in events:
        table.add_row(
            event.event_timestamp,
            event.event_type,
            ", ".join(event.road_media_ids or []) or "-",
            ", ".join(event.cabin_media_ids or []) or "-",
        )
    console.print(table)


@cli.command("geofences")
@click.pass_context
def list_geofences(ctx: click.Context) -> None:
    """List geofences."""
    geofences = _run(ctx, lambda view: view.client.get_geofences())

    table = Table(title="Geofences", show_header=True)
    table.add_column("UUID", style="cyan")
    table.add_column("Name")
    table.add_column("Shape")
    table.add_column("Notification")
    table.add_column("Ends")
    for geofence in geofences:
        table.add_row(
            geofence.uuid,
            geofence.name,
            geofence.shape_type.value,
            geofence.notification or "-",
            geofence.end or "never",
        )
    console.print(table)


@cli.command("media")
@click.argument("uuid")
@click.argument("media_ids", nargs=-1, required=True)
@click.option("-o", "--output-dir", type=click.Path(), default=".", help="Where to save files.")
@click.pass_context
def download_media(
    ctx: click.Context,
    uuid: str,
    media_ids: tuple[str, ...],
    output_dir: str,
) -> None:
    """Download event media; failures are reported per item."""
    results = _run(ctx, lambda view: view.fetch_event_media(uuid, list(media_ids)))

    out_dir = Path(output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    for media_id, result in zip(media_ids, results, strict=True):
        if not result.ok:
            error_console.print(f"[yellow]{media_id}:[/yellow] {result.error}")
            continue
        media = result.value
        path = out_dir / f"{media_id}{_extension(media.content_type)}"
        path.write_bytes(media.data)
        console.print(f"[green]Written to {path}[/green]")


@cli.command("message")
@click.argument("text")
@click.option("--duration", type=int, default=5, show_default=True, help="Minutes to display.")
@click.option("--raven", "ravens", multiple=True, help="Target raven UUID (default: all).")
@click.pass_context
def send_message(ctx: click.Context, text: str, duration: int, ravens: tuple[str, ...]) -> None:
    """Show a message on drivers' devices."""

    async def operation(view: Any) -> Any:
        targets = list(ravens) or [r.uuid for r in await view.client.get_ravens()]
        return await view.bulk_send_driver_message(targets, text, duration)

    result = _run(ctx, operation)
    console.print(f"[green]Sent:[/green] {result.success}  [red]Failed:[/red] {result.error}")
    for uuid in result.failed_ids:
        error_console.print(f"  - {uuid}")


def _print_api_log(view: Any) -> None:
    table = Table(title="API Log", show_header=True)
    table.add_column("#")
    table.add_column("Method")
    table.add_column("Endpoint", style="cyan")
    table.add_column("Status")
    for entry in view.session.api_log.entries:
        status = str(entry.response.status)
        table.add_row(
            str(entry.id),
            entry.request.method,
            entry.endpoint,
            status if entry.response.ok else f"[red]{status}[/red]",
        )
    error_console.print(table)


def _yes_no(value: bool | None) -> str:
    if value is None:
        return "-"
    return "yes" if value else "no"


def _extension(content_type: str) -> str:
    return {
        "image/jpeg": ".jpg",
        "image/png": ".png",
        "video/mp4": ".mp4",
    }.get(content_type.split(";")[0].strip(), "")


def main() -> None:
    """Entry point for the CLI."""
    cli()
