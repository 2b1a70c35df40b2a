"""
CLI interface for FullFocus.

Commands:
- next: Show the next upcoming event
- calendars: List calendars and choose which ones are watched
- lead-time: Show or set how many minutes before an event the alert fires
- test-alert: Show an alert right now
- daemon: Start/status of the background daemon
- login-item: Start the daemon automatically at login
- demo: Preview an alert against a built-in sample calendar
- init: Create the config file
"""

import asyncio
import subprocess
import sys
from contextlib import asynccontextmanager
from datetime import timedelta

import typer
from rich.console import Console
from rich.table import Table

from .config import Settings, create_default_config, get_config_dir, load_settings
from .daemon import create_backend, create_provider
from .errors import AccessDenied, ProviderError, RegistrationError
from .login_item import LoginItemStatus, get_login_item
from .models import MAX_LEAD_TIME_MINUTES, MIN_LEAD_TIME_MINUTES, local_now
from .monitors.calendar import CalendarMonitor
from .notifiers.alert import AlertPresenter
from .notifiers.console import ConsoleNotifier
from .preferences import ConfigurationStore
from .providers import CalendarProvider, MemoryCalendarProvider
from .state import StateDB

app = typer.Typer(
    name="fullfocus",
    help="Full-screen meeting alerts from your calendar",
    no_args_is_help=True,
)
console = Console()


def get_settings() -> Settings:
    """Load settings with error handling."""
    try:
        return load_settings()
    except Exception as e:
        console.print(f"[red]Error loading settings:[/red] {e}")
        console.print("Run [bold]fullfocus init[/bold] to create a config file.")
        raise typer.Exit(1)


@asynccontextmanager
async def open_store(settings: Settings):
    """Open the preference store for a single command."""
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    async with StateDB(settings.db_path) as state:
        yield ConfigurationStore(
            state,
            default_lead_time_minutes=settings.alerts.default_lead_time_minutes,
        )


async def _require_access(provider: CalendarProvider):
    if not await provider.request_access():
        console.print("[red]Calendar access was denied.[/red]")
        console.print("Grant access in your system privacy settings and try again.")
        raise typer.Exit(1)


# ============================================================================
# Next Command
# ============================================================================

@app.command("next")
def next_event():
    """
    Show the next upcoming event in the enabled calendars.
    """
    settings = get_settings()

    async def _next():
        provider = create_provider(settings)
        await _require_access(provider)
        async with open_store(settings) as store:
            monitor = CalendarMonitor(
                provider=provider,
                config_store=store,
                presenter=AlertPresenter(ConsoleNotifier(console)),
                lookahead_hours=settings.monitor.lookahead_hours,
            )
            config = await store.get()
            await monitor.update_next_event(local_now(), config)
            _display_next(monitor, config.alert_lead_time_minutes)

    asyncio.run(_next())


def _display_next(monitor: CalendarMonitor, lead_time: int):
    event = monitor.current_next_event()
    console.print()
    if not event:
        console.print("No upcoming events")
        return

    table = Table(title="📅 Upcoming", show_header=False, box=None)
    table.add_row("Title", f"[bold]{event.title}[/bold]")
    table.add_row("Starts", event.start_date.astimezone().strftime("%a %d %b, %H:%M"))
    if event.meeting_url:
        table.add_row("Link", event.meeting_url)
    table.add_row("Alert", f"{lead_time} minute(s) before")
    console.print(table)


# ============================================================================
# Calendar Commands
# ============================================================================

calendars_app = typer.Typer(help="Choose which calendars are watched")
app.add_typer(calendars_app, name="calendars")


async def _load_calendars(settings: Settings):
    provider = create_provider(settings)
    await _require_access(provider)
    try:
        return await provider.list_calendars()
    except (AccessDenied, ProviderError) as e:
        console.print(f"[red]Could not read calendars:[/red] {e}")
        raise typer.Exit(1)


@calendars_app.command("list")
def calendars_list():
    """List calendars and whether each one is watched."""
    settings = get_settings()

    async def _list():
        calendars = await _load_calendars(settings)
        async with open_store(settings) as store:
            enabled = (await store.get()).enabled_calendar_ids

        table = Table(title="Calendars")
        table.add_column("On")
        table.add_column("Title")
        table.add_column("ID", style="dim")
        for calendar in calendars:
            mark = "[green]✓[/green]" if calendar.id in enabled else ""
            table.add_row(mark, calendar.title, calendar.id)
        console.print(table)
        if not enabled:
            console.print("[yellow]No calendars enabled: no events will trigger alerts.[/yellow]")

    asyncio.run(_list())


@calendars_app.command("enable")
def calendars_enable(calendar_id: str = typer.Argument(..., help="Calendar ID")):
    """Watch a calendar."""
    settings = get_settings()

    async def _enable():
        async with open_store(settings) as store:
            enabled = await store.enable_calendar(calendar_id)
        console.print(f"[green]✓[/green] Watching {len(enabled)} calendar(s)")

    asyncio.run(_enable())


@calendars_app.command("disable")
def calendars_disable(calendar_id: str = typer.Argument(..., help="Calendar ID")):
    """Stop watching a calendar."""
    settings = get_settings()

    async def _disable():
        async with open_store(settings) as store:
            enabled = await store.disable_calendar(calendar_id)
        console.print(f"[green]✓[/green] Watching {len(enabled)} calendar(s)")

    asyncio.run(_disable())


@calendars_app.command("all")
def calendars_all():
    """Watch every calendar."""
    settings = get_settings()

    async def _all():
        calendars = await _load_calendars(settings)
        async with open_store(settings) as store:
            enabled = await store.set_enabled_calendars(c.id for c in calendars)
        console.print(f"[green]✓[/green] Watching {len(enabled)} calendar(s)")

    asyncio.run(_all())


@calendars_app.command("none")
def calendars_none():
    """Stop watching every calendar."""
    settings = get_settings()

    async def _none():
        async with open_store(settings) as store:
            await store.set_enabled_calendars([])
        console.print("[green]✓[/green] No calendars watched")

    asyncio.run(_none())


# ============================================================================
# Lead Time Command
# ============================================================================

@app.command("lead-time")
def lead_time(
    minutes: int = typer.Argument(
        None,
        help=f"Minutes before the event ({MIN_LEAD_TIME_MINUTES}-{MAX_LEAD_TIME_MINUTES})",
    ),
):
    """
    Show or set how many minutes before an event the alert fires.

    Examples:
        fullfocus lead-time
        fullfocus lead-time 5
    """
    settings = get_settings()

    async def _lead_time():
        async with open_store(settings) as store:
            if minutes is None:
                current = (await store.get()).alert_lead_time_minutes
                console.print(f"Alerts fire {current} minute(s) before each event")
                return
            stored = await store.set_lead_time(minutes)
            if stored != minutes:
                console.print(f"[yellow]Clamped to {stored}[/yellow]")
            console.print(f"[green]✓[/green] Alerts fire {stored} minute(s) before each event")

    asyncio.run(_lead_time())


# ============================================================================
# Test Alert Command
# ============================================================================

@app.command("test-alert")
def test_alert(
    join: bool = typer.Option(False, "--join", help="Open the meeting link, if any"),
):
    """
    Show an alert now for the next event, or a sample event if there is none.
    """
    settings = get_settings()

    async def _test_alert():
        provider = create_provider(settings)
        presenter = AlertPresenter(create_backend(settings))
        async with open_store(settings) as store:
            monitor = CalendarMonitor(
                provider=provider,
                config_store=store,
                presenter=presenter,
                lookahead_hours=settings.monitor.lookahead_hours,
            )
            if await provider.request_access():
                config = await store.get()
                await monitor.update_next_event(local_now(), config)
            monitor.show_test_alert()
            if join and not presenter.open_meeting_link():
                console.print("[yellow]This event has no meeting link[/yellow]")
            if presenter.backend.interactive:
                console.print("Waiting for the alert to be dismissed...")
                while presenter.is_showing:
                    await asyncio.sleep(0.1)
            presenter.dismiss()

    asyncio.run(_test_alert())


# ============================================================================
# Demo Command
# ============================================================================

@app.command()
def demo(
    minutes: int = typer.Option(2, "--in", "-i", help="Sample event starts in N minutes"),
    lead: int = typer.Option(5, "--lead", "-l", help="Lead time in minutes"),
):
    """
    Run the alert pipeline once against a sample in-memory calendar.
    """

    async def _demo():
        now = local_now()
        provider = MemoryCalendarProvider()
        provider.add_event(
            id="demo-event",
            calendar_id="demo",
            title="Design Review",
            start=now + timedelta(minutes=minutes),
            end=now + timedelta(minutes=minutes + 60),
            notes="Join at https://meet.example.com/design-review",
        )
        async with StateDB(":memory:") as state:
            store = ConfigurationStore(state)
            await store.set_enabled_calendars(["demo"])
            await store.set_lead_time(lead)
            monitor = CalendarMonitor(
                provider=provider,
                config_store=store,
                presenter=AlertPresenter(ConsoleNotifier(console)),
            )
            result = await monitor.check()

        if not result["alerted"]:
            console.print(
                f"No alert: the sample event starts in {minutes} minute(s) "
                f"but the lead time is {lead} minute(s)."
            )

    asyncio.run(_demo())


# ============================================================================
# Daemon Commands
# ============================================================================

daemon_app = typer.Typer(help="Manage the background daemon")
app.add_typer(daemon_app, name="daemon")


@daemon_app.command("start")
def daemon_start(
    foreground: bool = typer.Option(False, "--foreground", "-f", help="Run in foreground"),
):
    """
    Start the background daemon.

    By default, starts in background mode. Use --foreground to run interactively.
    """
    if foreground:
        console.print("[bold]Starting FullFocus daemon (foreground)...[/bold]")
        from .daemon import main
        main()
        return

    console.print("[bold]Starting FullFocus daemon (background)...[/bold]")
    if sys.platform == "win32":
        subprocess.Popen(
            [sys.executable.replace("python.exe", "pythonw.exe"), "-m", "fullfocus", "daemon", "start", "-f"],
            creationflags=subprocess.CREATE_NO_WINDOW | subprocess.DETACHED_PROCESS,
        )
    else:
        subprocess.Popen(
            [sys.executable, "-m", "fullfocus", "daemon", "start", "-f"],
            start_new_session=True,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    console.print("[green]✓[/green] Daemon started in background")


@daemon_app.command("status")
def daemon_status():
    """Show daemon configuration and recent log entries."""
    settings = get_settings()

    console.print("[bold]Daemon Status[/bold]")
    console.print()
    console.print(f"Config file: {settings.config_path}")
    console.print(f"Data directory: {settings.data_dir}")
    console.print(f"Provider: {settings.provider.kind}")
    console.print(f"Alerts: {settings.alerts.backend}")
    console.print(f"Poll interval: {settings.monitor.poll_interval_seconds}s")
    console.print(f"Launch at login: {get_login_item().status().value}")
    console.print()

    log_file = settings.log_file
    if log_file and log_file.exists():
        console.print("[bold]Recent log entries:[/bold]")
        with open(log_file, encoding="utf-8") as f:
            lines = f.readlines()
            for line in lines[-10:]:
                console.print(f"  {line.rstrip()}", markup=False)


# ============================================================================
# Login Item Commands
# ============================================================================

login_app = typer.Typer(help="Start the daemon automatically at login")
app.add_typer(login_app, name="login-item")


def _set_login_item(enabled: bool):
    item = get_login_item()
    try:
        status = item.set_enabled(enabled)
    except RegistrationError as e:
        console.print(f"[red]Failed to update login item:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Launch at login: {status.value}")


@login_app.command("enable")
def login_enable():
    """Launch the daemon when you log in."""
    _set_login_item(True)


@login_app.command("disable")
def login_disable():
    """Stop launching the daemon at login."""
    _set_login_item(False)


@login_app.command("status")
def login_status():
    """Show whether the daemon launches at login."""
    status = get_login_item().status()
    color = "green" if status == LoginItemStatus.ENABLED else "dim"
    console.print(f"Launch at login: [{color}]{status.value}[/{color}]")


# ============================================================================
# Init Command
# ============================================================================

@app.command()
def init():
    """
    Initialize configuration file.

    Creates ~/.fullfocus/config.yaml with default values.
    """
    config_file = get_config_dir() / "config.yaml"

    overwrite = False
    if config_file.exists():
        overwrite = typer.confirm(f"Config already exists at {config_file}. Overwrite?")
        if not overwrite:
            raise typer.Exit(0)

    create_default_config(overwrite=overwrite)
    console.print(f"[green]✓[/green] Created config file: {config_file}")
    console.print()
    console.print("Next steps:")
    console.print("  1. Run 'fullfocus calendars list' to see your calendars")
    console.print("  2. Run 'fullfocus calendars all' or 'calendars enable ID'")
    console.print("  3. Run 'fullfocus login-item enable' to start at login")


# ============================================================================
# Entry Point
# ============================================================================

def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
