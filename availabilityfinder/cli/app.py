"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..adapters.base import SecretStore, TokenPair
from ..adapters.secret_store import InMemorySecretStore
from ..config import AppConfig, Person, get_default_config_path
from ..domain.exceptions import (
    AvailabilityError,
    CredentialNotFoundError,
    CredentialRevokedError,
    is_retryable,
)
from ..domain.models import AvailabilityPolicy, AvailabilityRequest, AvailabilityResult
from ..services.availability_service import AvailabilityService
from ..services.factory import build_provider, build_secret_store, build_service
from ..services.schemas import AvailabilityQuery

app = typer.Typer(
    name="availabilityfinder",
    help="Find genuinely free working time across a person's calendars",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    config_path = config_file or get_default_config_path()
    try:
        return AppConfig.load_from_yaml(config_path)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)


def _mock_secret_store(people: List[Person]) -> SecretStore:
    """Mock mode accepts any token, so every person gets a dummy pair."""
    return InMemorySecretStore(
        {
            person.person_id: TokenPair("mock_access_token", "mock_refresh_token")
            for person in people
        }
    )


def _build_request(
    config: AppConfig,
    person: Person,
    *,
    start: Optional[str],
    end: Optional[str],
    min_hours: Optional[float],
    required_hours: Optional[float],
    policy: Optional[AvailabilityPolicy],
) -> AvailabilityRequest:
    """Turn CLI options into a domain request, via the same payload path as the service."""
    prefs = person.preferences(config.defaults)
    payload = {
        "personId": person.person_id,
        "calendarIds": person.calendar_ids,
        "startDate": start,
        "endDate": end,
        "preferences": {
            "timezone": prefs.timezone,
            "workingHoursStart": prefs.working_hours_start,
            "workingHoursEnd": prefs.working_hours_end,
            "offDays": sorted(prefs.off_days),
        },
        "minHoursPerDay": min_hours,
        "requiredHours": required_hours,
        "policy": policy,
    }
    return AvailabilityQuery.parse(payload).to_request(config.defaults)


def _error_hint(error: AvailabilityError) -> str:
    if isinstance(error, CredentialRevokedError):
        return "The person must sign in again."
    if isinstance(error, CredentialNotFoundError):
        return "Store credentials first with 'set-credentials'."
    if is_retryable(error):
        return "Try again later."
    return ""


def _print_error(label: str, error: AvailabilityError) -> None:
    hint = _error_hint(error)
    console.print(f"[bold red]✗ {label}[/bold red] [{error.code}] {error}")
    if hint:
        console.print(f"  [dim]{hint}[/dim]")


def _print_result(person: Person, request: AvailabilityRequest, result: AvailabilityResult) -> None:
    tz = request.preferences.timezone
    status = "[bold green]✓ available[/bold green]" if result.is_available else "[bold yellow]✗ not available[/bold yellow]"

    console.print(f"\n[bold cyan]{person.display_name()}[/bold cyan] ({tz}): {status}")
    console.print(
        f"   Range: {request.start_date.to_date_string()} - {request.end_date.to_date_string()}"
        f" | Working days: {result.working_days}"
        f" | Free: {result.total_free_hours:.2f} h"
        f" | Bar: {request.min_hours_per_day:g} h/day ({request.policy.value})"
    )

    if result.hours_per_day:
        qualifying = set(result.qualifying_days(request.min_hours_per_day))
        table = Table(show_header=True, header_style="bold cyan")
        table.add_column("Date", style="bold")
        table.add_column("Free hours", justify="right")
        for day, hours in result.hours_per_day.items():
            style = "green" if day in qualifying else "yellow"
            table.add_row(day.to_date_string(), f"[{style}]{hours:.2f}[/{style}]")
        console.print(table)

    for slot in result.free_slots:
        console.print(f"  {slot.format_display(tz)}")


@app.command()
def check(
    people: Annotated[List[str], typer.Argument(help="Configured names or person ids")],
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD), defaults to tomorrow")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD), inclusive")] = None,
    min_hours: Annotated[Optional[float], typer.Option("--min-hours", help="Free hours required per working day")] = None,
    required_hours: Annotated[Optional[float], typer.Option("--required-hours", help="Free hours required in total")] = None,
    policy: Annotated[Optional[AvailabilityPolicy], typer.Option("--policy", help="How daily hours combine into a verdict")] = None,
    mock: Annotated[bool, typer.Option("--mock", help="Use mock calendar data and skip real credentials.")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    Check availability for one or more people.

    Examples:

        availabilityfinder check alice
        availabilityfinder check alice bob --start 2026-11-02 --end 2026-11-06
        availabilityfinder check alice --required-hours 20 --policy total_only
        availabilityfinder check alice --mock
    """
    _configure_logging(verbose)
    config = _load_config(config_file)

    try:
        selected = [config.resolve_person(identifier) for identifier in people]
        requests = [
            _build_request(
                config,
                person,
                start=start,
                end=end,
                min_hours=min_hours,
                required_hours=required_hours,
                policy=policy,
            )
            for person in selected
        ]
    except (ValueError, AvailabilityError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    if mock:
        console.print("[yellow]⚠  MOCK MODE: using test data[/yellow]")

    exit_code = _run_and_report(config, selected, requests, mock=mock)
    console.print()
    raise typer.Exit(exit_code)


@app.command()
def roster(
    config_file: ConfigOption = None,
    start: Annotated[Optional[str], typer.Option("--start", help="Start date (YYYY-MM-DD)")] = None,
    end: Annotated[Optional[str], typer.Option("--end", help="End date (YYYY-MM-DD)")] = None,
    required_hours: Annotated[Optional[float], typer.Option("--required-hours", help="Free hours required in total")] = None,
    concurrency: Annotated[int, typer.Option("--concurrency", help="People checked in parallel")] = 5,
    mock: Annotated[bool, typer.Option("--mock", help="Use mock calendar data.")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show debug logging.")] = False,
):
    """
    Check every configured person concurrently and list who is available.
    """
    _configure_logging(verbose)
    config = _load_config(config_file)

    if not config.people:
        console.print("[yellow]No people defined in the config file.[/yellow]")
        return

    try:
        requests = [
            _build_request(
                config,
                person,
                start=start,
                end=end,
                min_hours=None,
                required_hours=required_hours,
                policy=None,
            )
            for person in config.people
        ]
        service = _service(config, config.people, mock)
    except (ValueError, AvailabilityError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    outcomes = asyncio.run(service.check_roster(requests, max_concurrency=concurrency))

    table = Table(title="Roster availability", show_header=True, header_style="bold cyan")
    table.add_column("Name", style="bold yellow")
    table.add_column("Available")
    table.add_column("Free hours", justify="right")
    table.add_column("Working days", justify="right")
    table.add_column("Error", style="dim")

    for person in config.people:
        outcome = outcomes[person.person_id]
        if isinstance(outcome, AvailabilityError):
            table.add_row(person.name, "[red]?[/red]", "-", "-", f"{outcome.code}: {_error_hint(outcome)}")
        else:
            table.add_row(
                person.name,
                "[green]yes[/green]" if outcome.is_available else "[yellow]no[/yellow]",
                f"{outcome.total_free_hours:.2f}",
                str(outcome.working_days),
                "",
            )

    console.print()
    console.print(table)
    console.print()


def _service(config: AppConfig, people: List[Person], mock: bool) -> AvailabilityService:
    secret_store = _mock_secret_store(people) if mock else None
    return build_service(config, mock=mock, secret_store=secret_store)


def _run_and_report(
    config: AppConfig,
    people: List[Person],
    requests: List[AvailabilityRequest],
    *,
    mock: bool,
) -> int:
    try:
        service = _service(config, people, mock)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        return 1

    outcomes = asyncio.run(service.check_roster(requests))

    exit_code = 0
    for person, request in zip(people, requests):
        outcome = outcomes[person.person_id]
        if isinstance(outcome, AvailabilityError):
            _print_error(person.display_name(), outcome)
            exit_code = 1
        else:
            _print_result(person, request, outcome)

    return exit_code


@app.command("list-people")
def list_people(config_file: ConfigOption = None):
    """
    List all configured people.
    """
    config = _load_config(config_file)

    if not config.people:
        console.print("[yellow]No people defined in the config file.[/yellow]")
        return

    table = Table(
        title="Configured people",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Name (Alias)", style="bold yellow")
    table.add_column("Person id", style="dim")
    table.add_column("Timezone")
    table.add_column("Calendars")

    for person in config.people:
        prefs = person.preferences(config.defaults)
        table.add_row(
            person.name,
            person.person_id,
            prefs.timezone,
            ", ".join(person.calendar_ids),
        )

    console.print()
    console.print(table)
    console.print()


@app.command("set-credentials")
def set_credentials(
    person: Annotated[str, typer.Argument(help="Configured name or person id")],
    config_file: ConfigOption = None,
):
    """
    Store an access/refresh token pair for a person in the secret store.
    """
    config = _load_config(config_file)

    try:
        target = config.resolve_person(person)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)

    access_token = typer.prompt("Access token", hide_input=True)
    refresh_token = typer.prompt("Refresh token", hide_input=True, default="", show_default=False)

    try:
        build_secret_store(config).write_credentials(
            target.person_id,
            TokenPair(access_token=access_token, refresh_token=refresh_token or None),
        )
    except AvailabilityError as e:
        _print_error(target.display_name(), e)
        raise typer.Exit(1)

    console.print(f"\n[green]✓ Credentials stored for {target.person_id}.[/green]\n")


@app.command("test-connection")
def test_connection(
    person: Annotated[str, typer.Argument(help="Configured name or person id")],
    config_file: ConfigOption = None,
    mock: Annotated[bool, typer.Option("--mock", help="Use mock calendar data.")] = False,
):
    """
    Test the upstream connection with a person's stored access token.
    """
    config = _load_config(config_file)

    try:
        target = config.resolve_person(person)
        provider = build_provider(config, mock=mock)
        store = _mock_secret_store([target]) if mock else build_secret_store(config)
        credentials = store.read_credentials(target.person_id)
        info = provider.test_connection(credentials.access_token)
    except ValueError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(1)
    except AvailabilityError as e:
        _print_error(target.display_name(), e)
        raise typer.Exit(1)

    details = info.get("displayName") or ", ".join(
        calendar["id"] for calendar in info.get("calendars", [])
    )
    console.print(Panel.fit(
        f"[bold green]✓ Connection successful![/bold green]\n\n"
        f"[bold]Person:[/bold] {target.person_id}\n"
        f"[bold]Details:[/bold] {details or 'N/A'}",
        title="✓ Connection test"
    ))


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]availabilityfinder[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
