# Copyright (c) Syntropy Systems
"""Main CLI entry point for knockout."""

import logging

import typer
from dotenv import find_dotenv, load_dotenv
from rich.logging import RichHandler

from knockout.cli.doctor import doctor
from knockout.cli.init_cmd import init
from knockout.cli.plugins import plugins
from knockout.cli.report import report
from knockout.cli.run import run

app = typer.Typer(
    name="knockout",
    help=(
        "Find out which WordPress plugins slow your site down. "
        "Deactivate them one at a time and measure."
    ),
    no_args_is_help=True,
    add_completion=False,
)


@app.callback()
def main(
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Show debug logging",
    ),
) -> None:
    """Load .env and configure logging before any command runs."""
    _ = load_dotenv(find_dotenv(usecwd=True))
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False)],
        force=True,
    )


# Register commands
_ = app.command()(init)
_ = app.command()(run)
_ = app.command()(report)
_ = app.command()(plugins)
_ = app.command()(doctor)


if __name__ == "__main__":
    app()
