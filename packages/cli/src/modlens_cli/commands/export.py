"""export command: dump decisions for analysis outside modlens."""

from __future__ import annotations

from datetime import date

import click
from rich.console import Console

from modlens_cli.commands.decisions import date_from_option, date_to_option, decision_filter
from modlens_cli.session import get_pipeline
from modlens_core.operator import export_csv, export_json

console = Console(stderr=True)


@click.command("export")
@click.option("--format", "fmt", type=click.Choice(["json", "csv"]), default="json", show_default=True)
@click.option("--output", "-o", default=None, help="Output file. Defaults to ai-decisions-<date>.<format>; '-' for stdout.")
@decision_filter
@date_from_option
@date_to_option
@click.pass_context
def export_cmd(ctx, fmt: str, output: str | None, decision: str, date_from: str, date_to: str):
    """Export AI decisions as JSON or CSV."""
    pipeline = get_pipeline(ctx)
    total = pipeline.decisions.count_decisions(decision, date_from, date_to)
    rows = pipeline.decisions.list_decisions(decision, date_from, date_to, limit=max(total, 1))
    text = export_json(rows, pipeline.comments) if fmt == "json" else export_csv(rows, pipeline.comments)

    if output == "-":
        click.echo(text, nl=False)
        return
    output = output or f"ai-decisions-{date.today().isoformat()}.{fmt}"
    with open(output, "w", newline="") as f:
        f.write(text)
    console.print(f"[green]Exported {len(rows)} decision(s) to {output}[/green]")
