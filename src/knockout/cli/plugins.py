# Copyright (c) Syntropy Systems
"""knockout plugins command."""

import typer
from rich.console import Console

from knockout.cli.common import build_backend
from knockout.cli.display import print_features
from knockout.config import load_config, require_knockout_dir
from knockout.errors import ConfigError, RemoteConnectionError

console = Console()


def plugins() -> None:
    """List the plugins on the server and whether they are active."""
    try:
        config = load_config(require_knockout_dir())
    except (RuntimeError, ConfigError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1) from e

    backend = build_backend(config)
    try:
        backend.connect()
        features = backend.list_features()
    except RemoteConnectionError as e:
        console.print(f"[red]Connection error:[/red] {e}")
        raise typer.Exit(1) from e
    finally:
        backend.close()

    if not features:
        console.print("[dim]No plugins installed[/dim]")
        return

    print_features(console, features)
