"""
Main CLI application using Typer.
"""

import json
import logging
from pathlib import Path
from typing import NoReturn, Optional, Annotated

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..adapters.provider_directory import ProviderDirectory
from ..adapters.sql_booking_store import SqlBookingStore
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import (
    NoticeWindowViolation,
    SchedulingError,
    SlotUnavailable,
)
from ..domain.interval_math import format_time
from ..domain.models import SlotStatus
from ..services.availability import AvailabilityService
from ..services.booking import BookingService

app = typer.Typer(
    name="slotengine",
    help="Compute bookable appointment slots and manage reservations",
    add_completion=False
)

console = Console()

STATUS_STYLES = {
    SlotStatus.AVAILABLE: "green",
    SlotStatus.BOOKED: "yellow",
    SlotStatus.BLOCKED: "red",
    SlotStatus.UNAVAILABLE: "dim",
}

ConfigOption = Annotated[Optional[Path], typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    Availability and booking tools for a single business timezone.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    return AppConfig.load_from_yaml(config_path)


def _build_services(config: AppConfig):
    """Wire adapters and services from configuration."""
    providers = ProviderDirectory.from_config(config)
    store = SqlBookingStore.from_url(config.database_url)
    policy = config.offering.to_policy()

    availability = AvailabilityService(
        providers=providers,
        bookings=store,
        timezone=config.timezone,
        default_policy=policy,
        max_range_days=config.max_range_days,
    )
    booking = BookingService(
        providers=providers,
        store=store,
        timezone=config.timezone,
        default_policy=policy,
        notice_window=config.notice_window(),
    )
    return availability, booking


def _fail(message: str) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {message}")
    raise typer.Exit(1)


@app.command()
def slots(
    provider: Annotated[str, typer.Argument(help="Provider id as configured")],
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD). Defaults to today")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD). Defaults to start + 6 days")] = None,
    available_only: Annotated[bool, typer.Option("--available-only", help="Hide booked, blocked and unavailable entries.")] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print the raw slot list as JSON.")] = False,
):
    """
    Show the slots of a provider over a date range.

    Examples:

        slotengine slots dr-meier

        slotengine slots dr-meier --start 2025-12-15 --end 2025-12-19

        slotengine slots dr-meier --available-only --json
    """
    try:
        config = _load_config(config_file)
        availability, _ = _build_services(config)

        today = pendulum.now(config.timezone)
        start_date = start or today.format("YYYY-MM-DD")
        if end:
            end_date = end
        else:
            end_date = pendulum.from_format(start_date, "YYYY-MM-DD").add(days=6).format("YYYY-MM-DD")

        result = availability.get_slots(provider, start_date, end_date)
    except (FileNotFoundError, SchedulingError, ValueError) as e:
        _fail(str(e))

    if available_only:
        result = [slot for slot in result if slot.status == SlotStatus.AVAILABLE]

    if as_json:
        console.print_json(json.dumps([slot.to_dict() for slot in result]))
        return

    if not result:
        console.print("[yellow]⚠ No slots found in this range.[/yellow]")
        return

    table = Table(
        title=f"Slots for {provider} ({start_date} - {end_date})",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Date", style="bold")
    table.add_column("Session")
    table.add_column("Break", style="dim")
    table.add_column("Status")
    table.add_column("Booking", style="dim")

    for slot in result:
        style = STATUS_STYLES[slot.status]
        if slot.status == SlotStatus.UNAVAILABLE:
            session, pause = "-", "-"
        else:
            session = f"{format_time(slot.session_start)} - {format_time(slot.session_end)}"
            pause = f"{format_time(slot.break_start)} - {format_time(slot.break_end)}"
        table.add_row(
            slot.date.strftime("%a %d.%m.%Y"),
            session,
            pause,
            f"[{style}]{slot.status.value}[/{style}]",
            slot.booking_ref or "",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def book(
    provider: Annotated[str, typer.Argument(help="Provider id as configured")],
    date: Annotated[str, typer.Argument(help="Appointment date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="Session start (HH:MM)")],
    name: Annotated[Optional[str], typer.Option("--name", help="Patient name")] = None,
    email: Annotated[Optional[str], typer.Option("--email", help="Patient email")] = None,
    config_file: ConfigOption = None,
):
    """
    Reserve a slot. The session end is derived from the configured offering.
    """
    try:
        config = _load_config(config_file)
        _, booking_service = _build_services(config)
        booking = booking_service.reserve(
            provider, date, time, patient_name=name, patient_email=email,
        )
    except SlotUnavailable as e:
        _fail(f"{e}. Please pick another slot.")
    except (FileNotFoundError, SchedulingError, ValueError) as e:
        _fail(str(e))

    console.print(f"\n[bold green]✓ Booked[/bold green] {booking.date.isoformat()} "
                  f"{format_time(booking.start_time)} - {format_time(booking.end_time)}")
    console.print(f"   Booking: {booking.booking_id}")
    console.print(f"   Cancellation token: {booking.cancellation_token}\n")


@app.command()
def cancel(
    ref: Annotated[str, typer.Argument(help="Booking reference, or cancellation token with --token")],
    token: Annotated[bool, typer.Option("--token", help="Treat REF as a cancellation token.")] = False,
    config_file: ConfigOption = None,
):
    """
    Cancel a booking, subject to the notice window.
    """
    try:
        config = _load_config(config_file)
        _, booking_service = _build_services(config)
        if token:
            booking = booking_service.cancel_by_token(ref)
        else:
            booking = booking_service.cancel(ref)
    except NoticeWindowViolation as e:
        _fail(f"{e}. Please contact the provider directly.")
    except (FileNotFoundError, SchedulingError, ValueError) as e:
        _fail(str(e))

    console.print(f"\n[green]✓ Booking {booking.booking_id} cancelled.[/green]\n")


@app.command()
def reschedule(
    ref: Annotated[str, typer.Argument(help="Booking reference")],
    date: Annotated[str, typer.Argument(help="New date (YYYY-MM-DD)")],
    time: Annotated[str, typer.Argument(help="New session start (HH:MM)")],
    config_file: ConfigOption = None,
):
    """
    Move a confirmed booking to another slot.
    """
    try:
        config = _load_config(config_file)
        _, booking_service = _build_services(config)
        booking = booking_service.reschedule(ref, date, time)
    except (FileNotFoundError, SchedulingError, ValueError) as e:
        _fail(str(e))

    console.print(f"\n[green]✓ Booking {booking.booking_id} moved to "
                  f"{booking.date.isoformat()} {format_time(booking.start_time)}.[/green]\n")


@app.command()
def providers(
    config_file: ConfigOption = None,
):
    """
    List all configured providers.
    """
    try:
        config = _load_config(config_file)
    except (FileNotFoundError, SchedulingError) as e:
        _fail(str(e))

    if not config.providers:
        console.print("[yellow]No providers defined in the config file.[/yellow]")
        return

    table = Table(
        title="Configured providers",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Id", style="bold yellow")
    table.add_column("Name")
    table.add_column("Weekly rules", justify="right")
    table.add_column("Blocks", justify="right", style="dim")

    for provider in config.providers:
        table.add_row(
            provider.id,
            provider.display_name(),
            str(len(provider.weekly_availability)),
            str(len(provider.blocked_intervals)),
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]slotengine[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
