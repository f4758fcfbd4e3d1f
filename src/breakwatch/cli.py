#!/usr/bin/env python3
"""Breakwatch CLI.

Usage:
    breakwatch run
    breakwatch status
    breakwatch settings show
    breakwatch settings set micro_interval_seconds 300
    breakwatch profiles list
    breakwatch profiles save gaming "Gaming"
    breakwatch profiles activate gaming
    breakwatch stats
    breakwatch startup xdg_and_systemd
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
import threading
from pathlib import Path

import click
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.live import Live
from rich.table import Table
from rich.text import Text

from .analytics import WEEK_DAYS
from .autostart import StartupMode, install_startup
from .config import STATE_FILENAME, BlockLevel, default_data_dir
from .errors import BreakwatchError
from .profiles import Profile
from .runtime import BreakRuntime, RuntimeStatus, Stop, local_now, parse_command
from .state import SettingsRecord, StateStore
from .timer import BreakTimerEngine, daily_bucket

console = Console()
logger = logging.getLogger("breakwatch")


def format_seconds(seconds: int) -> str:
    """Format seconds as 'Xh Ym', 'Ym Zs' or 'Zs'."""
    seconds = max(0, int(seconds))
    hours, rem = divmod(seconds, 3600)
    minutes, secs = divmod(rem, 60)
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def render_status(status: RuntimeStatus) -> Text:
    text = Text()
    if status.active_break is not None:
        text.append(f"On {status.active_break.value} break", style="bold green")
        text.append(f"  {format_seconds(status.remaining_seconds or 0)} left")
    elif status.pending_break is not None:
        text.append(f"{status.pending_break.value} break due", style="bold yellow")
        text.append("  [s]tart / [z] snooze")
    elif status.next_break is not None:
        kind, eta = status.next_break
        text.append(f"Next: {kind.value} in {format_seconds(eta)}")
    else:
        text.append("No breaks scheduled", style="dim")
    if status.strict_mode:
        text.append("  [strict]", style="red")
    return text


def _load_state(ctx: click.Context) -> StateStore:
    try:
        return StateStore.load(ctx.obj["state_path"])
    except BreakwatchError as e:
        raise click.ClickException(str(e)) from e


def _save_state(state: StateStore) -> None:
    try:
        state.save()
    except BreakwatchError as e:
        raise click.ClickException(str(e)) from e


@click.group()
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding state.json (default: $BREAKWATCH_DATA_DIR or XDG data dir)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, data_dir, verbose):
    """Breakwatch - break reminders driven by active screen time."""
    load_dotenv(Path.cwd() / ".env")
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s | %(message)s",
    )

    ctx.ensure_object(dict)
    ctx.obj["state_path"] = (data_dir or default_data_dir()) / STATE_FILENAME


# ---- run ----

def _start_stdin_reader(runtime: BreakRuntime, loop: asyncio.AbstractEventLoop) -> None:
    """Forward console lines to the runtime as commands (daemon thread)."""

    def deliver(line: str) -> None:
        try:
            command = parse_command(line)
        except BreakwatchError as e:
            console.print(str(e), style="red", markup=False)
            return
        if command is not None and runtime.running:
            runtime.send(command)

    def read_lines() -> None:
        for line in sys.stdin:
            loop.call_soon_threadsafe(deliver, line)

    threading.Thread(target=read_lines, daemon=True).start()


async def _run_session(runtime: BreakRuntime, interactive: bool) -> None:
    loop = asyncio.get_running_loop()

    def request_stop() -> None:
        if runtime.running:
            runtime.send(Stop())

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_stop)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handlers; Ctrl-C still ends asyncio.run
            pass

    await runtime.start()
    if interactive:
        _start_stdin_reader(runtime, loop)

    with Live(render_status(runtime.status), console=console, refresh_per_second=4) as live:
        while runtime.running:
            live.update(render_status(runtime.status))
            await asyncio.sleep(0.25)
    await runtime.join()


@cli.command()
@click.option("--no-input", is_flag=True, help="Do not read commands from stdin")
@click.pass_context
def run(ctx, no_input):
    """Run the break timer until Ctrl-C.

    Type 's' to start a due break, 'z' to snooze it, 'b <kind>' to start one
    right away and 'q' to quit.
    """
    state = _load_state(ctx)
    logger.info(f"Using state file {state.path}")
    runtime = BreakRuntime(state)
    asyncio.run(_run_session(runtime, interactive=not no_input))
    console.print("Stopped.")


# ---- status ----

@cli.command()
@click.pass_context
def status(ctx):
    """Show the current configuration and this week's totals."""
    state = _load_state(ctx)
    settings = state.settings

    table = Table(title="Breakwatch", show_header=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    table.add_row("State file", str(state.path))
    table.add_row("Profile", settings.active_profile_id or "none")
    table.add_row("Block level", settings.block_level.value)
    for label, timer in (("Micro", settings.micro), ("Rest", settings.rest)):
        value = (
            f"every {format_seconds(timer.interval_seconds)}, "
            f"{format_seconds(timer.duration_seconds)} long, "
            f"snooze {format_seconds(timer.snooze_seconds)}"
        )
        table.add_row(label, value if timer.enabled else "disabled")
    daily = settings.daily_limit
    table.add_row(
        "Daily limit",
        f"{format_seconds(daily.limit_seconds)}, resets {daily.reset_time}"
        if daily.enabled else "disabled",
    )

    now = local_now()
    # A fresh engine has empty counters, so this is the ETA once `run` starts.
    eta = BreakTimerEngine(settings, now).next_break_eta(now)
    table.add_row("First break after start", f"{eta[0].value} in {format_seconds(eta[1])}" if eta else "none")

    today = daily_bucket(now, daily.reset_offset_seconds)
    week = state.analytics_store().summarize_week_ending(today)
    table.add_row("Active this week", format_seconds(week.total_active_seconds))
    table.add_row("Breaks this week", f"{week.breaks_done} done, {week.skipped} skipped")
    console.print(table)


# ---- settings ----

@cli.group()
def settings():
    """Show or change settings."""


@settings.command("show")
@click.pass_context
def settings_show(ctx):
    state = _load_state(ctx)
    table = Table(show_header=True)
    table.add_column("Key")
    table.add_column("Value")
    for key, value in state.document.settings.model_dump().items():
        table.add_row(key, str(value))
    console.print(table)


@settings.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def settings_set(ctx, key, value):
    """Set one settings KEY (see 'settings show') to VALUE."""
    if key not in SettingsRecord.model_fields:
        raise click.BadParameter(f"Unknown setting '{key}'", param_hint="key")
    if key == "block_level" and value not in [level.value for level in BlockLevel]:
        raise click.BadParameter("Use soft, medium or strict", param_hint="value")

    state = _load_state(ctx)
    try:
        record = SettingsRecord.model_validate({**state.document.settings.model_dump(), key: value})
    except ValidationError as e:
        raise click.ClickException(f"Invalid value for {key}: {e.errors()[0]['msg']}") from e

    state.document.settings = record
    _save_state(state)
    click.echo(f"{key} = {getattr(record, key)}")


# ---- profiles ----

@cli.group()
def profiles():
    """Manage named settings profiles."""


@profiles.command("list")
@click.pass_context
def profiles_list(ctx):
    state = _load_state(ctx)
    store = state.profile_store()
    for profile in store.list():
        marker = "*" if profile.id == store.active_id else " "
        click.echo(f"{marker} {profile.id}: {profile.name}")


@profiles.command("save")
@click.argument("profile_id")
@click.argument("name")
@click.pass_context
def profiles_save(ctx, profile_id, name):
    """Save the current settings as profile PROFILE_ID."""
    state = _load_state(ctx)
    state.save_profile(Profile(id=profile_id, name=name, settings=state.settings))
    _save_state(state)
    click.echo(f"Saved profile '{profile_id}'")


@profiles.command("activate")
@click.argument("profile_id")
@click.pass_context
def profiles_activate(ctx, profile_id):
    state = _load_state(ctx)
    try:
        state.activate_profile(profile_id)
    except BreakwatchError as e:
        raise click.ClickException(str(e)) from e
    _save_state(state)
    click.echo(f"Active profile: {profile_id}")


@profiles.command("remove")
@click.argument("profile_id")
@click.pass_context
def profiles_remove(ctx, profile_id):
    state = _load_state(ctx)
    try:
        state.remove_profile(profile_id)
    except BreakwatchError as e:
        raise click.ClickException(str(e)) from e
    _save_state(state)
    click.echo(f"Removed profile '{profile_id}'")


# ---- stats ----

@cli.command()
@click.option("--day", type=int, default=None, help="Day index the week ends on (default: today)")
@click.pass_context
def stats(ctx, day):
    """Show the 7-day statistics window."""
    state = _load_state(ctx)
    offset = state.settings.daily_limit.reset_offset_seconds
    end = day if day is not None else daily_bucket(local_now(), offset)
    analytics = state.analytics_store()

    table = Table(title=f"Week ending day {end}")
    for column in ("Day", "Active", "Micro", "Rest", "Daily limit", "Skipped"):
        table.add_column(column, justify="right")
    for index in range(end - (WEEK_DAYS - 1), end + 1):
        agg = analytics.day(index)
        table.add_row(
            str(index), format_seconds(agg.active_seconds), str(agg.micro_done),
            str(agg.rest_done), str(agg.daily_limit_hits), str(agg.skipped),
        )
    week = analytics.summarize_week_ending(end)
    table.add_row(
        "Total", format_seconds(week.total_active_seconds), str(week.micro_done),
        str(week.rest_done), str(week.daily_limit_hits), str(week.skipped),
        style="bold",
    )
    console.print(table)


# ---- startup ----

@cli.command()
@click.argument("mode", type=click.Choice([m.value for m in StartupMode]))
@click.pass_context
def startup(ctx, mode):
    """Install login autostart descriptors."""
    startup_mode = StartupMode(mode)
    state = _load_state(ctx)
    try:
        written = install_startup(startup_mode)
    except BreakwatchError as e:
        raise click.ClickException(str(e)) from e

    settings = state.settings
    settings.startup.xdg_autostart_enabled = True
    settings.startup.systemd_user_enabled = startup_mode == StartupMode.XDG_AND_SYSTEMD
    state.update_settings(settings)
    _save_state(state)
    for path in written:
        click.echo(f"Wrote {path}")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
