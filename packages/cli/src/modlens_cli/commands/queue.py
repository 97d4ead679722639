"""pending and process commands: the held-comment queue."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from modlens_cli.session import get_pipeline
from modlens_core.utils.spam_hint import is_spam_candidate, spam_indicators
from modlens_store.models import STATUS_PENDING

console = Console()

_ACTION_STYLE = {
    "applied": "green",
    "pending_review": "yellow",
    "failed": "red",
}


@click.command("pending")
@click.option("--limit", default=20, show_default=True, help="Maximum number of comments to show.")
@click.option("--offset", default=0, show_default=True, help="Skip this many comments.")
@click.pass_context
def pending_cmd(ctx, limit: int, offset: int):
    """List held comments, oldest first, with a spam hint."""
    pipeline = get_pipeline(ctx)
    held = pipeline.comments.list_by_status(STATUS_PENDING, limit=limit, offset=offset, order="asc")
    if not held:
        console.print("[green]No comments are waiting.[/green]")
        return

    total = pipeline.comments.count_by_status(STATUS_PENDING)
    table = Table(title=f"Held comments ({total})", show_header=True, header_style="bold cyan")
    table.add_column("ID", style="bold", width=6)
    table.add_column("Author", max_width=20)
    table.add_column("Content", max_width=50)
    table.add_column("Document", max_width=24)
    table.add_column("AI", width=16)
    table.add_column("Hint", max_width=24)

    for c in held:
        decision = pipeline.decisions.get_for_comment(c.id)
        ai = decision.decision if decision else "[dim]queued[/dim]"
        hint = ""
        if is_spam_candidate(c.author, c.content):
            hint = "[red]likely spam[/red] " + ", ".join(spam_indicators(c.author, c.content))
        table.add_row(
            str(c.id),
            escape(c.author[:20]),
            escape(c.content[:50]),
            pipeline.comments.get_document_title(c.document_id)[:24],
            ai,
            hint,
        )

    console.print(table)


@click.command("process")
@click.option("--limit", type=int, default=None, help="Maximum comments to process. Defaults to process_now_limit.")
@click.pass_context
def process_cmd(ctx, limit: int | None):
    """Moderate held comments now, ignoring the automatic toggle.

    Use this when background dispatch is unavailable or to clear a backlog.
    """
    pipeline = get_pipeline(ctx)
    if not pipeline.config.has_credentials:
        raise click.UsageError("No OpenAI API key configured. Set OPENAI_API_KEY or openai_api_key in .modlens.yml.")

    with console.status("Moderating held comments..."):
        summary = pipeline.dispatcher.process_now(limit)

    if not summary.results:
        console.print("[green]No held comments without a decision.[/green]")
        return

    table = Table(title="Processed comments", show_header=True, header_style="bold cyan")
    table.add_column("Comment", style="bold", width=8)
    table.add_column("Result", width=16)
    table.add_column("Decision", width=10)
    table.add_column("Confidence", justify="right", width=10)
    table.add_column("Detail", max_width=50)
    for r in summary.results:
        if not r.processed:
            table.add_row(str(r.comment_id), "[dim]skipped[/dim]", "", "", r.reason or "")
            continue
        style = _ACTION_STYLE.get(r.action, "white")
        table.add_row(
            str(r.comment_id),
            f"[{style}]{r.action}[/{style}]",
            r.decision or "",
            f"{r.confidence:.2f}" if r.confidence is not None else "",
            escape(r.error or ""),
        )
    console.print(table)
    console.print(
        f"Processed {summary.processed}: {summary.approved} approved, {summary.rejected} rejected, "
        f"{summary.spam} spam, {summary.pending_review} for review, {summary.errors} errors"
        + (f", {summary.skipped} skipped" if summary.skipped else "")
    )
