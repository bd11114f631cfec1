# Copyright (c) Syntropy Systems
"""Rich rendering shared by knockout commands."""
from __future__ import annotations

from typing import TYPE_CHECKING

from rich.table import Table

from knockout.compare import total_score_delta
from knockout.models.comparison import Delta
from knockout.models.measurement import Failure

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from rich.console import Console

    from knockout.models.comparison import Comparison
    from knockout.models.measurement import MeasurementSet
    from knockout.models.state import Feature
    from knockout.report import ExperimentReport


def _direction(diff: float, lower_is_better: bool) -> str:
    better = diff < 0 if lower_is_better else diff > 0
    if diff == 0:
        return "[dim]same[/dim]"
    return "[green]faster[/green]" if better else "[red]slower[/red]"


def print_features(console: Console, features: Sequence[Feature]) -> None:
    """Print the plugin list with activation state."""
    table = Table(title="Plugins", show_header=True, header_style="bold")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Plugin")
    table.add_column("Version", style="dim")
    table.add_column("Status")

    for idx, feature in enumerate(features, 1):
        status = "[green]active[/green]" if feature.enabled else "[dim]inactive[/dim]"
        table.add_row(str(idx), feature.identifier, feature.version or "-", status)

    console.print(table)
    active = sum(1 for f in features if f.enabled)
    console.print(f"  [dim]active:[/dim] {active} of {len(features)}")


def print_measurements(console: Console, measurements: MeasurementSet) -> None:
    """Print one measurement pass."""
    table = Table(title="Baseline", show_header=True, header_style="bold")
    table.add_column("URL")
    table.add_column("Score", justify="right")
    table.add_column("LCP", justify="right")
    table.add_column("TBT", justify="right")
    table.add_column("Note", style="dim")

    for url, m in measurements.items():
        if isinstance(m, Failure):
            table.add_row(url, "[red]error[/red]", "-", "-", m.reason[:60])
            continue
        lcp = m.metrics.get("LCP")
        tbt = m.metrics.get("TBT")
        table.add_row(
            url,
            f"{m.score:.0f}",
            f"{lcp:.0f}ms" if lcp is not None else "-",
            f"{tbt:.0f}ms" if tbt is not None else "-",
            "",
        )

    console.print(table)


def print_comparison(
    console: Console,
    comparisons: Mapping[str, Comparison],
    verbose: bool = False,
) -> None:
    """Print per-URL comparisons for one feature."""
    for url, comparison in comparisons.items():
        if not isinstance(comparison, Delta):
            console.print(f"  {url}: [yellow]unavailable[/yellow] [dim]{comparison.reason}[/dim]")
            continue

        scores = ""
        if comparison.baseline_score is not None and comparison.candidate_score is not None:
            scores = f" [dim]({comparison.baseline_score:.0f} -> {comparison.candidate_score:.0f})[/dim]"
        console.print(
            f"  {url}: {comparison.score_diff:+.2f} points "
            f"{_direction(comparison.score_diff, lower_is_better=False)}{scores}"
        )

        for metric, diff in comparison.metrics_diff.items():
            unit = "" if metric == "CLS" else "ms"
            console.print(
                f"    [dim]{metric}:[/dim] {diff:+.2f}{unit} {_direction(diff, lower_is_better=True)}"
            )

        if verbose:
            for timing, diff in comparison.timings_diff.items():
                console.print(
                    f"    [dim]{timing}:[/dim] {diff:+.2f}ms {_direction(diff, lower_is_better=True)}"
                )

    total = total_score_delta(comparisons)
    console.print(f"  [bold]Overall impact:[/bold] {total:+.2f} points")


def print_ranking(console: Console, report: ExperimentReport, verbose: bool = False) -> None:
    """Print the impact ranking table."""
    console.print(f"\n[bold]Plugin impact[/bold] ({report.processed} of {report.eligible_features} active plugins tested)")
    if report.cancelled:
        console.print("  [yellow]stopped early[/yellow]")

    if not report.ranking:
        console.print("[dim]No plugins tested yet[/dim]")
        return

    table = Table(title="Ranking (largest gain from disabling first)")
    table.add_column("Rank", style="dim")
    table.add_column("Plugin")
    table.add_column("Total", justify="right")
    table.add_column("Pages", justify="right")

    for rank_idx, row in enumerate(report.ranking, 1):
        total_str = f"{row.total_score_delta:+.2f}"
        if row.total_score_delta > 0:
            total_str = f"[green]{total_str}[/green]"
        elif row.total_score_delta < 0:
            total_str = f"[red]{total_str}[/red]"
        table.add_row(
            str(rank_idx),
            row.identifier,
            total_str,
            f"{row.measured_urls}/{len(row.comparisons)}",
        )

    console.print(table)

    if verbose:
        for row in report.ranking:
            console.print(f"\n[bold]{row.identifier}[/bold]")
            print_comparison(console, row.comparisons, verbose=True)
