"""init command: write a .modlens.yml for this site."""

from __future__ import annotations

from pathlib import Path

import click
import yaml
from rich.console import Console

from modlens_core.capabilities import MODEL_CAPABILITIES

console = Console()


@click.command("init")
@click.pass_context
def init_cmd(ctx):
    """Set up modlens for a site.

    Writes the model, threshold, content-type toggles and store settings to
    the configuration file. The API key is read from OPENAI_API_KEY and is
    not written unless you enter one.
    """
    path = Path(ctx.find_root().obj["config_path"])
    console.print("\n[bold cyan]modlens init[/bold cyan]  setup wizard\n")

    model = click.prompt(
        "OpenAI model",
        type=click.Choice(sorted(MODEL_CAPABILITIES)),
        default="gpt-5-mini",
        show_choices=False,
    )
    config: dict = {"openai_model": model}

    if MODEL_CAPABILITIES[model].reasoning:
        config["reasoning_effort"] = click.prompt(
            "Reasoning effort", type=click.Choice(["low", "medium", "high"]), default="low"
        )

    config["confidence_threshold"] = click.prompt(
        "Confidence threshold (below it, decisions wait for manual review)",
        type=click.FloatRange(0.0, 1.0),
        default=0.7,
    )

    console.print("\nModerate comments on:")
    config["moderate_post_comments"] = click.confirm("  posts", default=True)
    config["moderate_page_comments"] = click.confirm("  pages", default=True)
    config["moderate_product_comments"] = click.confirm("  product reviews", default=False)

    store_type = click.prompt("\nStore backend", type=click.Choice(["sqlite", "memory"]), default="sqlite")
    config["store"] = store_type
    if store_type == "sqlite":
        db_path = click.prompt("SQLite database path", default=".modlens.db")
        if db_path != ".modlens.db":
            config["store_path"] = db_path

    api_key = click.prompt("OpenAI API key (leave blank to use OPENAI_API_KEY)", default="", show_default=False)
    if api_key:
        config["openai_api_key"] = api_key

    config["auto_moderation_enabled"] = click.confirm("\nEnable automatic moderation now?", default=False)

    _write_config(path, config)
    console.print(f"[green]Wrote {path}[/green]")
    if api_key:
        console.print("[yellow]The API key is stored in plain text; keep this file out of version control.[/yellow]")
    console.print("\n[bold green]Setup complete![/bold green]")
    console.print("Check the connection with: [bold]modlens check[/bold]")


def _write_config(path: Path, config: dict) -> None:
    """Write or update the config file, preserving any existing keys."""
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text()) or {}
    existing.update(config)
    path.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False))
