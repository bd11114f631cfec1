# Copyright (c) Syntropy Systems
"""Builders shared by knockout commands."""
from __future__ import annotations

from typing import TYPE_CHECKING

from knockout.errors import SummarizerError
from knockout.measure import LighthouseMeasurer
from knockout.remote import LocalChannel, SSHChannel, WPCLIBackend
from knockout.summarize import SummarizerClient

if TYPE_CHECKING:
    from rich.console import Console

    from knockout.config import KnockoutConfig
    from knockout.remote import CommandChannel, FeatureBackend
    from knockout.report import ExperimentReport


def build_backend(config: KnockoutConfig) -> FeatureBackend:
    """Build the WP-CLI backend, over SSH unless no host is configured."""
    channel: CommandChannel
    if config.host:
        channel = SSHChannel(
            host=config.host,
            user=config.user or None,
            port=config.port,
            timeout=config.command_timeout,
        )
    else:
        channel = LocalChannel(timeout=config.command_timeout)
    return WPCLIBackend(channel, wp_path=config.wp_path or None, wp_binary=config.wp_binary)


def build_measurer(config: KnockoutConfig) -> LighthouseMeasurer:
    """Build the Lighthouse measurer."""
    return LighthouseMeasurer(
        binary=config.lighthouse_binary,
        chrome_flags=config.chrome_flags,
        timeout=config.measure_timeout,
    )


def build_summarizer(config: KnockoutConfig) -> SummarizerClient | None:
    """Build the summarizer client, or None if no endpoint is configured."""
    if not config.summarizer_url:
        return None
    return SummarizerClient(
        base_url=config.summarizer_url,
        model=config.summarizer_model,
        api_key=config.summarizer_api_key or None,
    )


def summarize_report(console: Console, report: ExperimentReport, config: KnockoutConfig) -> None:
    """Print a prose summary of report; failures are warnings only."""
    client = build_summarizer(config)
    if client is None:
        console.print("[yellow]Warning:[/yellow] No summarizer_url configured, skipping summary")
        return

    with client:
        try:
            text = client.summarize(report)
        except SummarizerError as e:
            console.print(f"[yellow]Warning:[/yellow] {e}")
            return

    console.print("\n[bold]Summary[/bold]")
    console.print(text)
