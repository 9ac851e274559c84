"""
Main CLI application using Typer.
"""

import logging
from pathlib import Path
from typing import Annotated, Callable, Optional

import pendulum
import typer
from pendulum import DateTime
from rich.console import Console
from rich.table import Table

from ..config import AppConfig, load_config
from ..domain.exceptions import SchedulingError
from ..services.scheduling_engine import SchedulingEngine

app = typer.Typer(
    name="slotkeeper",
    help="Manage provider availability and client reservations",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log engine activity to stderr.")] = False,
):
    """
    Provider availability and reservation engine.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s"
        )


def _load(config_file: Optional[Path]) -> tuple[AppConfig, SchedulingEngine]:
    try:
        config = load_config(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    try:
        engine = SchedulingEngine.from_config(config)
    except SchedulingError as e:
        _fail(e)
    return config, engine


def _parse_time(value: str, tz: str) -> DateTime:
    """Parse an ISO-8601 timestamp; naive values are read in the configured timezone."""
    try:
        parsed = pendulum.parse(value, tz=tz)
    except Exception as e:
        console.print(f"[red]Cannot parse timestamp '{value}': {e}[/red]")
        raise typer.Exit(1)

    if not isinstance(parsed, DateTime):
        console.print(f"[red]'{value}' is not a date and time[/red]")
        raise typer.Exit(1)
    return parsed


def _fail(error: SchedulingError):
    console.print(f"[bold red]{error.kind}:[/bold red] {error}")
    raise typer.Exit(1)


def _utc_now() -> DateTime:
    return pendulum.now("UTC")


# Source of "now" for reserve and cleanup. Replaced in tests.
clock: Callable[[], DateTime] = _utc_now


def _display(dt: DateTime, tz: str) -> str:
    return dt.in_timezone(tz).format("YYYY-MM-DD HH:mm")


@app.command("add-availability")
def add_availability(
    provider_id: Annotated[int, typer.Argument(help="Provider identifier")],
    start: Annotated[str, typer.Argument(help="Window start (ISO-8601)")],
    end: Annotated[str, typer.Argument(help="Window end (ISO-8601)")],
    config_file: ConfigOption = None,
):
    """
    Declare an availability window for a provider.

    Example:

        slotkeeper add-availability 1 2025-03-10T09:00 2025-03-10T12:00
    """
    config, engine = _load(config_file)
    window_start = _parse_time(start, config.timezone)
    window_end = _parse_time(end, config.timezone)

    try:
        window_id = engine.add_availability(provider_id, window_start, window_end)
    except SchedulingError as e:
        _fail(e)

    console.print(f"[green]✓ Availability added[/green] (window {window_id})")


@app.command()
def slots(
    provider_id: Annotated[int, typer.Argument(help="Provider identifier")],
    config_file: ConfigOption = None,
):
    """
    List the bookable slots derived from a provider's availability.
    """
    config, engine = _load(config_file)

    try:
        statuses = engine.slot_status(provider_id)
    except SchedulingError as e:
        _fail(e)

    if not statuses:
        console.print(f"[yellow]No availability declared for provider {provider_id}.[/yellow]")
        return

    table = Table(
        title=f"Slots for provider {provider_id}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Start", style="bold")
    table.add_column("End")
    table.add_column("Confirmed reservation", style="dim")

    for status in statuses:
        table.add_row(
            _display(status.slot.start, config.timezone),
            _display(status.slot.end, config.timezone),
            str(status.reservation_id) if status.is_confirmed else "-"
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def reserve(
    provider_id: Annotated[int, typer.Argument(help="Provider identifier")],
    client_name: Annotated[str, typer.Argument(help="Client name")],
    start: Annotated[str, typer.Argument(help="Reservation start (ISO-8601)")],
    end: Annotated[str, typer.Argument(help="Reservation end (ISO-8601)")],
    config_file: ConfigOption = None,
):
    """
    Request a reservation. It stays unconfirmed until confirmed.
    """
    config, engine = _load(config_file)
    reservation_start = _parse_time(start, config.timezone)
    reservation_end = _parse_time(end, config.timezone)

    try:
        reservation_id = engine.request_reservation(
            provider_id=provider_id,
            client_name=client_name,
            start=reservation_start,
            end=reservation_end,
            now=clock()
        )
    except SchedulingError as e:
        _fail(e)

    console.print(f"[green]✓ Reservation created[/green] (id {reservation_id})")
    console.print(
        f"Confirm within {config.scheduling.grace_minutes} minutes: "
        f"[bold]slotkeeper confirm {reservation_id}[/bold]"
    )


@app.command()
def confirm(
    reservation_id: Annotated[int, typer.Argument(help="Reservation identifier")],
    config_file: ConfigOption = None,
):
    """
    Confirm a pending reservation.
    """
    _, engine = _load(config_file)

    try:
        engine.confirm_reservation(reservation_id)
    except SchedulingError as e:
        _fail(e)

    console.print(f"[green]✓ Reservation {reservation_id} confirmed[/green]")


@app.command()
def cleanup(
    config_file: ConfigOption = None,
):
    """
    Remove unconfirmed reservations older than the grace period.
    """
    _, engine = _load(config_file)

    try:
        removed = engine.run_cleanup(clock())
    except SchedulingError as e:
        _fail(e)

    console.print(f"[green]✓ Expired reservations cleaned up[/green] ({removed} removed)")


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotkeeper[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
