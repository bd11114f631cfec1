# Copyright (c) Syntropy Systems
"""knockout report command."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from knockout.checkpoint import CheckpointStore
from knockout.cli.common import summarize_report
from knockout.cli.display import print_ranking
from knockout.config import get_checkpoint_path, load_config, require_knockout_dir
from knockout.errors import ConfigError, PersistenceError
from knockout.report import build_report

console = Console()


def report(
    checkpoint: Optional[Path] = typer.Option(
        None,
        "--checkpoint",
        "-c",
        help="Checkpoint file (default: .knockout/checkpoint.json)",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show per-page comparisons for every plugin",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Print the report as JSON",
    ),
    summarize: bool = typer.Option(
        False,
        "--summarize/--no-summarize",
        help="Send the report to the configured summarizer",
    ),
) -> None:
    """Rank plugins from the last saved checkpoint.

    Works on finished, stopped and crashed runs alike: the ranking covers
    every plugin fully tested before the checkpoint was written.

    Example:
        knockout report --verbose

    """
    try:
        knockout_dir = require_knockout_dir()
        config = load_config(knockout_dir)
    except (RuntimeError, ConfigError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    store = CheckpointStore(checkpoint or get_checkpoint_path(knockout_dir))
    try:
        state = store.load()
    except PersistenceError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    if state is None:
        console.print(
            f"[yellow]No checkpoint found at {store.path}.[/yellow] Run 'knockout run' first."
        )
        raise typer.Exit(1)

    result = build_report(state)

    if json_output:
        typer.echo(result.model_dump_json(indent=2))
    else:
        if not result.complete:
            console.print(
                f"[yellow]Partial run:[/yellow] stopped at plugin {state.next_index + 1} "
                f"of {result.total_features}"
            )
        print_ranking(console, result, verbose=verbose)

    if summarize:
        summarize_report(console, result, config)
