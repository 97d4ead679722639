"""logs command: browse the audit log."""

from __future__ import annotations

import json

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from modlens_cli.session import get_pipeline
from modlens_store.models import LOG_LEVELS

console = Console()

_LEVEL_STYLE = {"error": "red", "warning": "yellow", "info": "cyan", "debug": "dim"}


@click.command("logs")
@click.option("--level", type=click.Choice(LOG_LEVELS), default=None, help="Only show this level.")
@click.option("--comment", "comment_id", type=int, default=None, help="Only show entries for this comment.")
@click.option("--limit", default=50, show_default=True, help="Maximum number of entries.")
@click.option("--context/--no-context", "show_context", default=False, help="Include the structured context.")
@click.pass_context
def logs_cmd(ctx, level: str | None, comment_id: int | None, limit: int, show_context: bool):
    """Show audit log entries, newest first."""
    pipeline = get_pipeline(ctx)
    entries = pipeline.audit.list_entries(level=level, comment_id=comment_id, limit=limit)
    if not entries:
        console.print("[yellow]No log entries.[/yellow]")
        return

    table = Table(title="Audit log", show_header=True, header_style="bold cyan")
    table.add_column("Time", width=20)
    table.add_column("Level", width=8)
    table.add_column("Comment", width=8)
    table.add_column("Message")
    for e in entries:
        style = _LEVEL_STYLE.get(e.level, "white")
        message = escape(e.message)
        if show_context and e.context:
            message += "\n[dim]" + escape(json.dumps(e.context, default=str)) + "[/dim]"
        table.add_row(
            e.timestamp[:19].replace("T", " "),
            f"[{style}]{e.level}[/{style}]",
            str(e.comment_id) if e.comment_id is not None else "",
            message,
        )
    console.print(table)
