#!/usr/bin/env python3
"""
Main CLI entry point for rpmirror.

Commands:
- replay: mirror a recorded lifecycle event stream onto ReportPortal
- check-config: validate reporter configuration
- launch-url: print the report URL persisted by the last finished launch
"""

import asyncio
import sys
from pathlib import Path

import click
import orjson
from loguru import logger
from rich.console import Console
from rich.table import Table

from ..core.config import ReporterSettings, load_settings
from ..core.dispatch import EventDispatcher
from ..core.events import LifecycleEvent
from ..core.exceptions import ConfigurationError
from ..core.logging import configure_logging
from ..core.plugin import build_reporter

console = Console()


def _settings(config: str | None) -> ReporterSettings:
    settings = load_settings(config) if config else ReporterSettings()
    return settings.with_environment()


def read_events(path: Path) -> list[LifecycleEvent]:
    """Parse a JSON-lines event file, skipping blank lines."""
    events: list[LifecycleEvent] = []
    for line_number, line in enumerate(path.read_bytes().splitlines(), start=1):
        if not line.strip():
            continue
        try:
            events.append(LifecycleEvent.from_dict(orjson.loads(line)))
        except (orjson.JSONDecodeError, KeyError, ValueError) as e:
            raise click.ClickException(f"{path}:{line_number}: invalid event: {e}")
    return events


async def replay_events(
    dispatcher: EventDispatcher, events: list[LifecycleEvent]
) -> None:
    try:
        await dispatcher.dispatch_all(events)
    finally:
        if dispatcher.session is not None:
            await dispatcher.session.aclose()


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option(
    "--debug-scope",
    "debug_scopes",
    multiple=True,
    help="Module prefix to log at DEBUG, e.g. core.session (repeatable)",
)
@click.pass_context
def cli(ctx, verbose: bool, debug_scopes: tuple[str, ...]):
    """
    rpmirror: mirror test-execution lifecycles onto ReportPortal.
    """
    configure_logging(
        "DEBUG" if verbose else "INFO", debug_scopes=debug_scopes, colorize=True
    )
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("events_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Configuration file path"
)
def replay(events_path: str, config: str | None):
    """Replay a JSON-lines lifecycle event file against the report server."""
    settings = _settings(config)
    settings.enabled = True
    try:
        dispatcher = build_reporter(settings)
    except ConfigurationError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)

    events = read_events(Path(events_path))
    logger.info(f"Replaying {len(events)} lifecycle events from {events_path}")
    asyncio.run(replay_events(dispatcher, events))


@cli.command("check-config")
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Configuration file path"
)
def check_config(config: str | None):
    """Validate reporter configuration."""
    settings = _settings(config)

    table = Table(title="🔍 Reporter Configuration")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value")
    table.add_row("endpoint", settings.endpoint or "-")
    table.add_row("project", settings.project_name or "-")
    table.add_row("token", "***" if settings.token else "-")
    table.add_row("launch", settings.launch_name or "-")
    table.add_row("mode", settings.launch_mode.value)
    table.add_row("enabled", str(settings.enabled))
    table.add_row("video upload", str(settings.video_upload))
    table.add_row("hand-off file", str(settings.launch_id_path))
    console.print(table)

    try:
        settings.validate()
    except ConfigurationError as e:
        console.print(f"[red]❌ {e}[/red]")
        sys.exit(1)
    console.print("[green]✅ Configuration is valid[/green]")


@cli.command("launch-url")
@click.option(
    "--config", "-c", type=click.Path(exists=True), help="Configuration file path"
)
def launch_url(config: str | None):
    """Print the report URL of the last finished launch."""
    path = _settings(config).launch_url_path
    if not path.exists():
        console.print(f"[yellow]No report URL found at {path}[/yellow]")
        sys.exit(1)
    console.print(path.read_text(encoding="utf-8").strip())


def main():
    """Main CLI entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️ Operation cancelled by user[/yellow]")
        sys.exit(1)


if __name__ == "__main__":
    main()
