"""
Command-line interface for the notification listener.

This module provides the main CLI entry points using Click.

Commands:
- listen: Capture notifications until interrupted
- locate-store: Show which notification store would be polled
- sources: List the registered ingestion sources

Records go to stdout and/or the output file and webhook; status lines
and logs go to stderr.

Example:
    $ notification-listener --help
    $ notification-listener listen --filter-apps Mail,Slack
    $ notification-listener listen --daemon --webhook https://example.com/hook
"""

from __future__ import annotations

import asyncio
import contextlib
import signal
from pathlib import Path
from typing import Any

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from notification_listener import __version__
from notification_listener.config import Settings, apply_overrides, get_settings, load_settings
from notification_listener.enrich import CommandLiveSource, LiveEnricher
from notification_listener.ingest import Correlator, Pipeline, PipelineStats
from notification_listener.sinks import SinkFanout
from notification_listener.sources import (
    BusSubscriber,
    IngestionSource,
    SQLiteRecordStore,
    StorePoller,
    TailSource,
    list_sources,
)
from notification_listener.utils.logging import get_logger, setup_logging

console = Console(stderr=True)


@click.group()
@click.version_option(version=__version__, prog_name="notification-listener")
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True, path_type=Path),
    help="Configuration file path",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output",
)
@click.pass_context
def main(ctx: click.Context, config: Path | None, verbose: bool) -> None:
    """Notification listener CLI.

    Capture desktop notifications from every app and write them out as
    JSON lines.
    """
    ctx.ensure_object(dict)

    try:
        settings = load_settings(config) if config else get_settings()
    except (ValidationError, ValueError) as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        ctx.exit(2)

    ctx.obj["settings"] = settings
    ctx.obj["verbose"] = verbose

    log_level = "DEBUG" if verbose else settings.logging.level
    setup_logging(
        level=log_level,
        format=settings.logging.format,
        include_timestamp=settings.logging.include_timestamp,
        include_location=settings.logging.include_location,
    )


def build_sources(settings: Settings) -> list[IngestionSource]:
    """Create the enabled ingestion sources."""
    ingestion = settings.ingestion
    sources: list[IngestionSource] = []
    if ingestion.tail_enabled:
        sources.append(TailSource(ingestion.tail_command))
    if ingestion.store_enabled:
        sources.append(
            StorePoller(poll_interval=ingestion.poll_interval, store_path=ingestion.store_path)
        )
    if ingestion.bus_enabled:
        # No system-wide bus is reachable from here; the subscriber
        # reports itself unavailable and the other sources carry on.
        sources.append(BusSubscriber())
    return sources


def build_correlator(settings: Settings) -> Correlator:
    """Create the correlator (with live enrichment when configured)."""
    sink_config = settings.to_sink_config()
    enrichment = settings.enrichment

    enricher = None
    if enrichment.enabled and enrichment.command:
        enricher = LiveEnricher(CommandLiveSource(enrichment.command))

    return Correlator(
        sink_config.allow_list,
        enricher,
        enrichment_timeout=enrichment.timeout_seconds,
        enrichment_poll_interval=enrichment.poll_interval_seconds,
    )


async def run_pipeline(pipeline: Pipeline) -> PipelineStats:
    """Run a pipeline until SIGINT/SIGTERM."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        # add_signal_handler is unavailable on some platforms
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(sig, pipeline.request_stop)

    try:
        return await pipeline.run()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.remove_signal_handler(sig)


@main.command()
@click.option("--daemon", is_flag=True, help="Run as background daemon")
@click.option("--webhook", type=str, help="Webhook URL to POST notifications to")
@click.option(
    "--output",
    "-o",
    type=str,
    help="Output file path (default: ~/.notification-listener/notifications.jsonl)",
)
@click.option(
    "--stdout/--no-stdout",
    default=None,
    help="Stream JSON lines to stdout (default: on unless --daemon)",
)
@click.option("--poll-interval", type=float, help="Poll interval in seconds for store polling")
@click.option("--filter-apps", type=str, help="Filter by app name (comma-separated)")
@click.option("--no-tail", is_flag=True, help="Disable the log tail source")
@click.option("--no-store", is_flag=True, help="Disable the store poller")
@click.option("--no-bus", is_flag=True, help="Disable the bus subscriber")
@click.pass_context
def listen(
    ctx: click.Context,
    daemon: bool,
    webhook: str | None,
    output: str | None,
    stdout: bool | None,
    poll_interval: float | None,
    filter_apps: str | None,
    no_tail: bool,
    no_store: bool,
    no_bus: bool,
) -> None:
    """Capture notifications until interrupted.

    Runs the log tail, the store poller and the bus subscriber
    concurrently. Sources that are unavailable on this machine are
    skipped with a warning.
    """
    logger = get_logger(__name__)

    overrides: dict[str, Any] = {"output": {}, "ingestion": {}}
    if daemon:
        overrides["daemon"] = True
    if webhook is not None:
        overrides["output"]["webhook_url"] = webhook
    if output is not None:
        overrides["output"]["file_path"] = output
    if stdout is not None:
        overrides["output"]["stdout"] = stdout
    if poll_interval is not None:
        overrides["ingestion"]["poll_interval"] = poll_interval
    if filter_apps is not None:
        overrides["ingestion"]["filter_apps"] = filter_apps
    if no_tail:
        overrides["ingestion"]["tail_enabled"] = False
    if no_store:
        overrides["ingestion"]["store_enabled"] = False
    if no_bus:
        overrides["ingestion"]["bus_enabled"] = False

    try:
        settings = apply_overrides(ctx.obj["settings"], overrides)
        sink_config = settings.to_sink_config()
        sources = build_sources(settings)
        correlator = build_correlator(settings)
    except (ValidationError, ValueError) as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        ctx.exit(2)

    if not sources:
        console.print("[red]Error:[/red] every ingestion source is disabled")
        ctx.exit(2)

    console.print("[bold]notification-listener starting...[/bold]")
    console.print(f"Output file: [cyan]{sink_config.file_path or 'disabled'}[/cyan]")
    if sink_config.webhook_url:
        console.print(f"Webhook: [cyan]{sink_config.webhook_url}[/cyan]")
    console.print(f"Stdout: {sink_config.stdout}")
    if sink_config.allow_list:
        console.print(f"Apps: {', '.join(sorted(sink_config.allow_list))}")

    pipeline = Pipeline(sources, correlator, SinkFanout.from_config(sink_config))
    logger.debug("listen_configured", sources=[s.source_name for s in sources])

    stats = asyncio.run(run_pipeline(pipeline))

    console.print("\nShutting down...")
    console.print(f"  Observations: {stats.observations_received:,}")
    console.print(f"  Records emitted: [green]{stats.records_emitted:,}[/green]")
    if stats.sources_unavailable:
        console.print(f"  Unavailable sources: [yellow]{', '.join(stats.sources_unavailable)}[/yellow]")
    console.print(f"  Duration: {stats.elapsed_seconds:.1f}s")


@main.command("locate-store")
@click.pass_context
def locate_store(ctx: click.Context) -> None:
    """Show which notification store would be polled."""
    settings = ctx.obj["settings"]

    store = SQLiteRecordStore(settings.ingestion.store_path)
    path = store.resolve()
    if path is None:
        console.print("[yellow]Warning:[/yellow] notification store not found")
        if settings.ingestion.store_path:
            console.print(f"  Configured path: {settings.ingestion.store_path}")
        else:
            for candidate in store.candidates:
                console.print(f"  Searched: {candidate}")
        return

    click.echo(str(path))


@main.command("sources")
def sources_cmd() -> None:
    """List registered ingestion sources."""
    table = Table(title="Ingestion Sources")
    table.add_column("Name", style="cyan")

    for name in list_sources():
        table.add_row(name)

    console.print(table)


if __name__ == "__main__":
    main()
