# Copyright (c) Syntropy Systems
"""knockout doctor command."""

import shutil

from rich.console import Console

from knockout.checkpoint import CheckpointStore
from knockout.cli.common import build_measurer
from knockout.config import find_knockout_dir, get_checkpoint_path, load_config
from knockout.errors import ConfigError, PersistenceError

console = Console()


def doctor() -> None:
    """Check knockout setup and diagnose issues.

    Verifies:
    - knockout directory and config
    - target URLs are set
    - lighthouse (and ssh, for remote hosts) are installed
    - checkpoint is readable
    """
    issues: list[str] = []
    warnings: list[str] = []

    knockout_dir = find_knockout_dir()
    if knockout_dir is None:
        console.print("[red]✗[/red] No .knockout directory found")
        console.print("  Run [bold]knockout init[/bold] to initialize a project")
        return

    console.print(f"[green]✓[/green] knockout directory: {knockout_dir}")

    try:
        config = load_config(knockout_dir)
    except ConfigError as e:
        console.print(f"[red]✗[/red] Config: {e}")
        issues.append("Invalid config")
        config = None

    if config is not None:
        if config.urls:
            console.print(f"[green]✓[/green] Target URLs: {len(config.urls)}")
        else:
            console.print("[red]✗[/red] No target URLs configured")
            issues.append("No target URLs")

        if config.host:
            target = f"{config.user}@{config.host}" if config.user else config.host
            console.print(f"[dim]•[/dim] Server: {target}:{config.port}")
            if shutil.which("ssh"):
                console.print("[green]✓[/green] ssh found")
            else:
                console.print("[red]✗[/red] ssh not found on PATH")
                issues.append("ssh missing")
        else:
            console.print("[dim]•[/dim] Server: local")
            if shutil.which(config.wp_binary):
                console.print(f"[green]✓[/green] {config.wp_binary} found")
            else:
                console.print(f"[yellow]⚠[/yellow] {config.wp_binary} not found on PATH")
                warnings.append("WP-CLI missing")

        if build_measurer(config).available():
            console.print(f"[green]✓[/green] {config.lighthouse_binary} found")
        else:
            console.print(f"[red]✗[/red] {config.lighthouse_binary} not found on PATH")
            issues.append("Lighthouse missing")

    store = CheckpointStore(get_checkpoint_path(knockout_dir))
    try:
        state = store.load()
    except PersistenceError as e:
        console.print(f"[yellow]⚠[/yellow] Checkpoint unreadable: {e}")
        warnings.append("Checkpoint unreadable")
    else:
        if state is None:
            console.print("[dim]•[/dim] No checkpoint")
        else:
            console.print(
                f"[green]✓[/green] Checkpoint: {len(state.impact)} plugins tested, "
                f"next {state.next_index + 1} of {len(state.features)}"
            )

    console.print()
    if issues:
        console.print(f"[red]Found {len(issues)} issue(s)[/red]")
        for issue in issues:
            console.print(f"  - {issue}")
    elif warnings:
        console.print(f"[yellow]Found {len(warnings)} warning(s)[/yellow]")
        for warning in warnings:
            console.print(f"  - {warning}")
    else:
        console.print("[green]All checks passed[/green]")
