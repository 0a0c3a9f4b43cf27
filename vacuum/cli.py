"""Vacuum CLI - record and inspect file history from the command line."""

import asyncio
import json
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from vacuum import __version__
from vacuum.config import PROJECT_CONFIG_NAME, USER_CONFIG_PATH, VacuumConfig, get_config
from vacuum.edits import EditLog
from vacuum.errors import MalformedRecordError, TrackingError, format_error
from vacuum.git import ignore_log_dir
from vacuum.paths import now_ms, tracked_path
from vacuum.records import ContentChange, ContentCheckpoint
from vacuum.replay import replay as replay_history
from vacuum.tracker import ChangeEvent, Tracker
from vacuum.types import Millis

console = Console()

_root_option = click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Tracked root directory",
)


def _setup_logging(verbose: bool) -> None:
    """Route vacuum.* log records through a rich handler on stderr."""
    logger = logging.getLogger("vacuum")
    for existing in [h for h in logger.handlers if isinstance(h, RichHandler)]:
        logger.removeHandler(existing)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter(fmt="%(message)s", datefmt="[%X]"))
    handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.addHandler(handler)
    if verbose:
        logger.setLevel(logging.DEBUG)


def _tracker(root: Path) -> Tracker:
    root = root.resolve()
    return Tracker([root], config=get_config(root))


def _format_ms(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, UTC).strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]


def _parse_changes(text: str) -> tuple[ContentChange, ...]:
    """Parse an event file: a list of changes or ``{"changes": [...]}``."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedRecordError(f"Event is not valid JSON: {e}") from e
    if isinstance(data, dict):
        data = data.get("changes")
    if not isinstance(data, list):
        raise MalformedRecordError("Event must be a list of changes or an object with 'changes'")
    return tuple(ContentChange.from_dict(c) for c in data)


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def main(verbose):
    """Vacuum: checkpoint and edit history for source trees."""
    _setup_logging(verbose)


@main.command()
@click.argument(
    "root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
)
def refresh(root):
    """Checkpoint every tracked file under ROOT that changed."""
    tracker = _tracker(root)
    if not tracker.config.enabled:
        console.print("[yellow]Tracking is disabled.[/yellow]")
        return

    result = asyncio.run(tracker.refresh_all(root))
    if not result.ok:
        console.print(f"[red]{format_error(result.error)}[/red]")
        sys.exit(1)

    report = result.value
    console.print(f"[green]✓[/green] Refreshed {report.root}")
    console.print(
        f"  {len(report.created)} new, {len(report.referenced)} same, "
        f"{len(report.unchanged)} unchanged"
    )
    for file, error in sorted(report.failed.items()):
        console.print(f"  [red]✗[/red] {file}: {format_error(error)}")
    if report.failed:
        sys.exit(1)


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("event", type=click.File("r"))
@_root_option
@click.option("--time", "logged_at", type=int, help="Logging time in ms (default: now)")
def record(file, event, root, logged_at):
    """Log one change event for FILE.

    EVENT is a JSON file holding the event's content changes, either as a
    list or as an object with a "changes" list. Use - to read stdin.

    Examples:
        vacuum record src/Main.lean change.json
        echo '[...]' | vacuum record src/Main.lean -
    """
    try:
        changes = _parse_changes(event.read())
    except MalformedRecordError as e:
        console.print(f"[red]Invalid event: {e}[/red]")
        sys.exit(1)

    tracker = _tracker(root)
    time = Millis(logged_at) if logged_at is not None else now_ms()
    result = asyncio.run(tracker.log_edit(ChangeEvent(file=file, changes=changes, time=time)))
    if not result.ok:
        console.print(f"[red]{format_error(result.error)}[/red]")
        sys.exit(1)

    edit = result.value
    if edit is None:
        console.print("[yellow]Tracking is disabled.[/yellow]")
        return
    console.print(
        f"[green]✓[/green] Logged edit {edit.time} "
        f"(base {edit.base_time}, {len(edit.changes)} change(s))"
    )


@main.command()
@click.argument("file", type=click.Path(dir_okay=False, path_type=Path))
@_root_option
def history(file, root):
    """Show the checkpoints and edits recorded for FILE."""
    tracker = _tracker(root)
    file = tracked_path(file)
    tracked_root = tracker.tracking_root(file)
    if tracked_root is None:
        console.print(f"[red]{file} is not inside {root.resolve()}[/red]")
        sys.exit(1)

    store = tracker.store(tracked_root)
    try:
        checkpoints = [store.load(file, key) for key in store.keys(file)]
        edits = list(EditLog(store).edits(file))
    except (OSError, TrackingError) as e:
        console.print(f"[red]Cannot read history: {e}[/red]")
        sys.exit(1)

    if not checkpoints and not edits:
        console.print(f"[yellow]No history for {file}[/yellow]")
        return

    rows = []
    for cp in checkpoints:
        if isinstance(cp, ContentCheckpoint):
            rows.append((cp.mtime, "checkpoint", f"{len(cp.contents)} chars"))
        else:
            rows.append((cp.mtime, "same", f"→ {cp.prev_mtime}"))
    for edit in edits:
        rows.append((edit.time, "edit", f"base {edit.base_time}, {len(edit.changes)} change(s)"))

    table = Table(title=f"History: {file.relative_to(tracked_root)}")
    table.add_column("Key", style="cyan")
    table.add_column("Time (UTC)", style="dim")
    table.add_column("Kind")
    table.add_column("Detail")
    for key, kind, detail in sorted(rows, key=lambda r: (r[0], r[1] == "edit")):
        table.add_row(str(key), _format_ms(key), kind, detail)

    console.print(table)
    console.print(f"[dim]Identity: {store.layout.identity}[/dim]")


@main.command()
@click.argument("file", type=click.Path(dir_okay=False, path_type=Path))
@_root_option
@click.option("--base", "base_time", type=int, help="Checkpoint key to start from (default: latest)")
@click.option("--output", "output_file", type=click.Path(dir_okay=False, path_type=Path), help="Write text to file")
def replay(file, root, base_time, output_file):
    """Rebuild the text of FILE from a checkpoint and its edits."""
    tracker = _tracker(root)
    file = tracked_path(file)
    tracked_root = tracker.tracking_root(file)
    if tracked_root is None:
        console.print(f"[red]{file} is not inside {root.resolve()}[/red]")
        sys.exit(1)

    store = tracker.store(tracked_root)
    try:
        text = replay_history(
            store,
            EditLog(store),
            file,
            base_time=Millis(base_time) if base_time is not None else None,
        )
    except (OSError, TrackingError) as e:
        console.print(f"[red]Replay failed: {e}[/red]")
        sys.exit(1)

    if output_file:
        output_file.write_text(text, encoding="utf-8", newline="")
        console.print(f"[green]✓[/green] Written to {output_file}")
    else:
        click.echo(text, nl=False)


@main.command()
@_root_option
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def ignore(root, yes):
    """Add the history directory to git's global excludes file."""
    config = get_config(root.resolve())
    entry = f"{config.log_dir_name}/"

    if not yes:
        if not click.confirm(f"Add '{entry}' to your global gitignore?"):
            console.print("Cancelled.")
            return

    try:
        path, modified = ignore_log_dir(config.log_dir_name)
    except OSError as e:
        console.print(f"[red]Could not update global gitignore: {e}[/red]")
        sys.exit(1)

    if modified:
        console.print(f"[green]✓[/green] Added {entry} to {path}")
    else:
        console.print(f"[dim]{entry} already in {path}[/dim]")


def _show_value(key: str, value, default):
    """Display a config value, highlighting if non-default."""
    if value != default:
        console.print(f"  {key}: [cyan]{value}[/cyan] [dim](default: {default})[/dim]")
    else:
        console.print(f"  {key}: {value}")


@main.command("config")
@_root_option
def config_cmd(root):
    """Show the effective configuration for a tracked root.

    Sources, highest priority first: <root>/.vacuum.yaml,
    ~/.vacuum/config.yaml, built-in defaults. VACUUM_ENABLED overrides
    the enabled flag.
    """
    root = root.resolve()
    effective = get_config(root)
    defaults = VacuumConfig()

    project_config = root / PROJECT_CONFIG_NAME
    if project_config.exists():
        source = str(project_config)
    elif USER_CONFIG_PATH.exists():
        source = str(USER_CONFIG_PATH)
    else:
        source = "defaults"

    console.print(f"[bold]Vacuum Configuration[/bold] [dim]({source})[/dim]")
    console.print()
    for key, value in effective.to_dict().items():
        _show_value(key, value, getattr(defaults, key))


if __name__ == "__main__":
    main()
