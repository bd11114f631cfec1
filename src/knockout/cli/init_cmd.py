# Copyright (c) Syntropy Systems
"""knockout init command."""

from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console

from knockout.config import CONFIG_FILENAME, KnockoutConfig

console = Console()


def init(
    path: Path = typer.Argument(
        Path(),
        help="Directory to initialize (default: current directory)",
    ),
    host: str = typer.Option("", "--host", help="SSH host running WordPress (empty for local)"),
    user: str = typer.Option("", "--user", help="SSH user"),
    wp_path: str = typer.Option("", "--wp-path", help="WordPress install path on the server"),
    urls: Optional[list[str]] = typer.Option(
        None,
        "--url",
        "-u",
        help="Page to measure (repeatable)",
    ),
) -> None:
    """Initialize a new knockout project.

    Creates a .knockout directory with a config.yaml to edit.
    """
    target = path.resolve()
    knockout_dir = target / ".knockout"

    if knockout_dir.exists():
        console.print(f"[yellow]Already initialized:[/yellow] {knockout_dir}")
        return

    knockout_dir.mkdir(parents=True)

    config = KnockoutConfig(host=host, user=user, wp_path=wp_path, urls=list(urls or []))
    config_path = knockout_dir / CONFIG_FILENAME
    with config_path.open("w") as f:
        yaml.dump(config.to_yaml_dict(), f, default_flow_style=False, sort_keys=False)

    console.print(f"[green]Initialized knockout project:[/green] {knockout_dir}")
    console.print(f"  [dim]config:[/dim] {config_path}")
    if not config.urls:
        console.print("  [yellow]Add the pages to measure under 'urls' in the config[/yellow]")
