"""stats command: totals and averages per decision outcome."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from modlens_cli.commands.decisions import DECISION_STYLE
from modlens_cli.session import get_pipeline
from modlens_core.operator import decision_stats
from modlens_store.models import DECISION_OUTCOMES, DECISION_PENDING_REVIEW

console = Console()


@click.command("stats")
@click.pass_context
def stats_cmd(ctx):
    """Show how the AI has been deciding.

    The review count only includes decisions still waiting on a human:
    not overridden and the comment still held.
    """
    pipeline = get_pipeline(ctx)
    stats = decision_stats(pipeline.decisions, pipeline.comments)
    if not stats["total"]:
        console.print("[yellow]No decisions recorded yet.[/yellow]")
        return

    console.print(f"\n[bold]Decisions recorded:[/bold] {stats['total']}")
    table = Table(title="By outcome", show_header=True)
    table.add_column("Outcome", style="bold")
    table.add_column("Count", justify="right")
    table.add_column("% of total", justify="right")
    table.add_column("Avg confidence", justify="right")
    table.add_column("Avg time", justify="right")

    for outcome in DECISION_OUTCOMES:
        count = stats[outcome]
        averages = stats["averages"].get(outcome, {})
        pct = f"{averages.get('count', 0) / stats['total'] * 100:.1f}%"
        style = DECISION_STYLE.get(outcome, "white")
        label = "awaiting review" if outcome == DECISION_PENDING_REVIEW else outcome
        table.add_row(
            f"[{style}]{label}[/{style}]",
            str(count),
            pct,
            f"{averages['avg_confidence']:.2f}" if averages else "-",
            f"{averages['avg_processing_time']:.2f}s" if averages else "-",
        )
    console.print(table)
