# Copyright (c) Syntropy Systems
"""knockout run command."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from knockout.cancel import CancellationSignal, StopListener, install_signal_handlers
from knockout.checkpoint import CheckpointStore
from knockout.cli.common import build_backend, build_measurer, summarize_report
from knockout.cli.display import print_comparison, print_features, print_measurements, print_ranking
from knockout.config import get_checkpoint_path, load_config, require_knockout_dir
from knockout.controller import ControllerEvent, ExperimentController
from knockout.errors import (
    ConfigError,
    PersistenceError,
    RemoteConnectionError,
    ToggleError,
)
from knockout.report import build_report

console = Console()


def _print_event(event: ControllerEvent) -> None:
    """Render controller progress."""
    state = event.state
    if event.kind == "features":
        print_features(console, state.features)
        console.print("\n[bold]Measuring baseline...[/bold]")
    elif event.kind == "baseline":
        print_measurements(console, state.baseline)
    elif event.kind == "resumed":
        console.print(
            f"[cyan]Resuming[/cyan] at plugin {state.next_index + 1} of {len(state.features)} "
            f"({len(state.impact)} already tested)"
        )
    elif event.kind == "feature_start" and event.feature is not None and event.index is not None:
        console.rule(f"[bold]{event.index + 1}/{len(state.features)}: {event.feature.identifier}[/bold]")
        console.print(f"[blue]Deactivating[/blue] {event.feature.identifier} and measuring...")
    elif event.kind == "feature_done" and event.feature is not None and event.comparison is not None:
        print_comparison(console, event.comparison)
        console.print(f"[green]Reactivated[/green] {event.feature.identifier}, progress saved")
    elif event.kind == "cancelled":
        console.print("\n[yellow]Stopped as requested.[/yellow] Resume with [cyan]knockout run --resume[/cyan]")


def _on_stop() -> None:
    console.print("\n[yellow]Stop requested, finishing the current plugin...[/yellow]")


def run(
    resume: bool = typer.Option(
        False,
        "--resume",
        help="Continue from the last checkpoint instead of starting fresh",
    ),
    urls: Optional[list[str]] = typer.Option(
        None,
        "--url",
        "-u",
        help="Page to measure (repeatable, overrides config)",
    ),
    settle_delay: Optional[float] = typer.Option(
        None,
        "--settle-delay",
        min=0,
        help="Seconds to wait after each toggle (default: config)",
    ),
    checkpoint: Optional[Path] = typer.Option(
        None,
        "--checkpoint",
        "-c",
        help="Checkpoint file (default: .knockout/checkpoint.json)",
    ),
    summarize: bool = typer.Option(
        False,
        "--summarize/--no-summarize",
        help="Send the final report to the configured summarizer",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the final report as JSON",
    ),
    listen: bool = typer.Option(
        True,
        "--listen/--no-listen",
        help="Read the stop keyword from stdin while running",
    ),
) -> None:
    """
    Measure each active plugin's impact by deactivating it in turn.

    Takes a baseline, then for every active plugin: deactivate, measure,
    reactivate, save progress. Type the stop keyword (default: stop) and
    press Enter, or hit Ctrl-C, to stop after the current plugin.

    Without --resume a run always starts fresh, even if a checkpoint exists.
    """
    try:
        knockout_dir = require_knockout_dir()
        config = load_config(knockout_dir)
    except (RuntimeError, ConfigError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    store = CheckpointStore(checkpoint or get_checkpoint_path(knockout_dir))
    target_urls = list(urls) if urls else (config.urls or None)

    cancel = CancellationSignal()
    restore_handlers = install_signal_handlers(cancel, on_stop=_on_stop)
    if listen:
        StopListener(cancel, keyword=config.stop_keyword, on_stop=_on_stop).start()
        if not json_output:
            console.print(f"[dim]Type '{config.stop_keyword}' and press Enter to stop after the current plugin[/dim]")

    try:
        controller = ExperimentController(
            backend=build_backend(config),
            measurer=build_measurer(config),
            store=store,
            target_urls=target_urls,
            settle_delay=settle_delay if settle_delay is not None else config.settle_delay,
            cancel=cancel,
            on_event=None if json_output else _print_event,
        )
        outcome = controller.run(resume=resume)
    except ConfigError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    except RemoteConnectionError as e:
        console.print(f"[red]Connection error:[/red] {e}")
        raise typer.Exit(1) from e
    except ToggleError as e:
        console.print(f"[red]Error:[/red] {e}")
        console.print(
            f"  [yellow]Check that '{e.identifier}' is active on the server before resuming[/yellow]"
        )
        if store.exists():
            console.print(f"  Last checkpoint: {store.path}")
        raise typer.Exit(1) from e
    except PersistenceError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e
    finally:
        restore_handlers()

    report = build_report(outcome.state, cancelled=outcome.cancelled)

    if json_output:
        typer.echo(report.model_dump_json(indent=2))
    else:
        print_ranking(console, report)
        console.print(f"\n[dim]checkpoint:[/dim] {store.path}")

    if summarize:
        summarize_report(console, report, config)
