"""decisions, override and clear commands: the AI decision record."""

from __future__ import annotations

import getpass

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from modlens_cli.session import get_pipeline
from modlens_core.operator import clear_decisions, override_decision
from modlens_store.models import DECISION_OUTCOMES

console = Console()

DECISION_STYLE = {
    "approve": "green",
    "reject": "red",
    "spam": "magenta",
    "pending_review": "yellow",
}

decision_filter = click.option(
    "--decision",
    type=click.Choice(("all",) + DECISION_OUTCOMES),
    default="all",
    show_default=True,
    help="Only show this outcome.",
)
date_from_option = click.option("--from", "date_from", default="", help="Earliest date (YYYY-MM-DD), inclusive.")
date_to_option = click.option("--to", "date_to", default="", help="Latest date (YYYY-MM-DD), inclusive.")


@click.command("decisions")
@decision_filter
@date_from_option
@date_to_option
@click.option("--limit", default=20, show_default=True, help="Maximum number of decisions to show.")
@click.option("--offset", default=0, show_default=True, help="Skip this many decisions.")
@click.pass_context
def decisions_cmd(ctx, decision: str, date_from: str, date_to: str, limit: int, offset: int):
    """Show recorded AI decisions, newest first."""
    pipeline = get_pipeline(ctx)
    rows = pipeline.decisions.list_decisions(decision, date_from, date_to, limit=limit, offset=offset)
    if not rows:
        console.print("[yellow]No decisions found.[/yellow]")
        return

    total = pipeline.decisions.count_decisions(decision, date_from, date_to)
    table = Table(
        title=f"AI decisions ({offset + 1}-{offset + len(rows)} of {total})",
        show_header=True,
        header_style="bold cyan",
    )
    table.add_column("ID", style="bold", width=6)
    table.add_column("Comment", width=8)
    table.add_column("Decision", width=16)
    table.add_column("Conf.", justify="right", width=6)
    table.add_column("Reasoning", max_width=48)
    table.add_column("Model", width=14)
    table.add_column("Time", justify="right", width=7)
    table.add_column("Created", width=20)

    for d in rows:
        style = DECISION_STYLE.get(d.decision, "white")
        label = f"[{style}]{d.decision}[/{style}]"
        if d.suggested:
            label += f" [dim]({d.suggested})[/dim]"
        if d.overridden:
            label += " [dim]overridden[/dim]"
        table.add_row(
            str(d.id),
            str(d.comment_id),
            label,
            f"{d.confidence:.2f}",
            escape(d.reasoning[:120]),
            d.model_used,
            f"{d.processing_time:.2f}s",
            d.created_at[:19].replace("T", " "),
        )

    console.print(table)


@click.command("override")
@click.argument("decision_id", type=int)
@click.option("--reason", default="", help="Why the decision is being overridden.")
@click.option("--actor", default=None, help="Who is overriding. Defaults to the current user.")
@click.pass_context
def override_cmd(ctx, decision_id: int, reason: str, actor: str | None):
    """Mark an AI decision as overridden by an operator."""
    pipeline = get_pipeline(ctx)
    actor = actor or getpass.getuser()
    if not override_decision(pipeline.decisions, pipeline.audit, decision_id, actor, reason):
        raise click.UsageError(f"Decision {decision_id} does not exist.")
    console.print(f"[green]Decision #{decision_id} marked as overridden by {actor}.[/green]")


@click.command("clear")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt.")
@click.pass_context
def clear_cmd(ctx, yes: bool):
    """Delete every recorded AI decision.

    Held comments without a decision become eligible for moderation again.
    """
    if not yes:
        click.confirm("Delete all AI decisions? This cannot be undone", abort=True)
    pipeline = get_pipeline(ctx)
    removed = clear_decisions(pipeline.decisions, pipeline.audit)
    console.print(f"[green]Removed {removed} decision(s).[/green]")
