"""check command: API connection test and a sample moderation run."""

from __future__ import annotations

import click
from rich.console import Console
from rich.markup import escape

from modlens_core.moderator import build_classifier
from modlens_core.operator import run_sample_moderation

console = Console()


@click.command("check")
@click.option("--skip-sample", is_flag=True, help="Only test the connection.")
@click.pass_context
def check_cmd(ctx, skip_sample: bool):
    """Verify the API key and model.

    Lists models to test the connection, then classifies a known spam
    sample and one random sample. Nothing is written to the store.
    """
    obj = ctx.find_root().obj
    config = obj["options"].config
    if not config.has_credentials:
        raise click.UsageError("OpenAI API key is required. Set OPENAI_API_KEY or openai_api_key in .modlens.yml.")

    classifier = obj.get("classifier") or build_classifier(config)

    with console.status("Testing API connection..."):
        status = classifier.test_connection()
    if not status.ok:
        console.print(f"[red]Connection failed ({status.code}): {escape(status.message)}[/red]")
        ctx.exit(1)
    console.print(f"[green]Connection OK[/green] ({status.response_time:.2f}s)")

    if skip_sample:
        return

    with console.status(f"Running sample moderation with {config.openai_model}..."):
        runs = run_sample_moderation(classifier)

    failed = False
    for run in runs:
        console.print(f"\n[bold]{escape(run.sample.author)}[/bold]: {escape(run.sample.content)}")
        result = run.result
        if not result.ok:
            failed = True
            console.print(f"  [red]Failed ({result.code}): {escape(result.message)}[/red]")
            continue
        console.print(
            f"  [bold]{result.decision}[/bold] (confidence {result.confidence:.2f}, {run.processing_time:.2f}s"
            + (f", {result.tokens_used} tokens" if result.tokens_used else "")
            + ")"
        )
        console.print(f"  [dim]{escape(result.reasoning)}[/dim]")
        for note in result.parameter_notes:
            console.print(f"  [yellow]{escape(note)}[/yellow]")
    if failed:
        ctx.exit(1)
