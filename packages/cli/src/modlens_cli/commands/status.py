"""status command: configuration at a glance plus the fallback notice."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from modlens_cli.session import get_pipeline
from modlens_core.operator import decision_stats
from modlens_store.models import STATUS_PENDING

console = Console()


def _mask(key: str | None) -> str:
    if not key:
        return "[red]not set[/red]"
    return f"{key[:3]}...{key[-4:]}" if len(key) > 10 else "set"


def _onoff(value: bool) -> str:
    return "[green]on[/green]" if value else "[dim]off[/dim]"


@click.command("status")
@click.pass_context
def status_cmd(ctx):
    """Show the active configuration and queue sizes.

    Warns when background moderation recently failed to fire, in which case
    `modlens process` moderates the backlog by hand.
    """
    pipeline = get_pipeline(ctx)
    config = pipeline.config

    if pipeline.fallback.active:
        console.print(
            "[bold yellow]Background moderation could not be started recently.[/bold yellow] "
            "Held comments may be waiting; run [bold]modlens process[/bold] to moderate them now."
        )
        if pipeline.fallback.reason:
            console.print(f"[dim]Reason: {escape(pipeline.fallback.reason)}[/dim]")

    table = Table(title="modlens", show_header=False)
    table.add_column("Setting", style="bold")
    table.add_column("Value")
    table.add_row("Automatic moderation", _onoff(config.auto_moderation_enabled))
    table.add_row("API key", _mask(config.openai_api_key))
    table.add_row("Model", config.openai_model)
    table.add_row("Reasoning effort", config.reasoning_effort)
    table.add_row("Confidence threshold", f"{config.confidence_threshold:.2f}")
    toggles = (config.moderate_post_comments, config.moderate_page_comments, config.moderate_product_comments)
    table.add_row("Posts / pages / products", " / ".join(_onoff(v) for v in toggles))
    table.add_row("Scheduler", config.scheduler)
    table.add_row("Store", config.store if config.store == "memory" else f"sqlite ({config.store_path})")
    console.print(table)

    held = pipeline.comments.count_by_status(STATUS_PENDING)
    waiting = len(pipeline.moderator.held_without_decision(config.process_now_limit))
    stats = decision_stats(pipeline.decisions, pipeline.comments)
    console.print(f"Held comments:         {held}")
    console.print(f"  awaiting AI:         {waiting}{'+' if waiting == config.process_now_limit else ''}")
    console.print(f"  awaiting human:      {stats['pending_review']}")
    console.print(f"Decisions recorded:    {stats['total']}")
