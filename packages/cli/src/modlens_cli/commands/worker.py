"""worker command: run the scheduler and periodic sweep in the foreground."""

from __future__ import annotations

import logging
import time

import click
from rich.console import Console

from modlens_cli.session import get_pipeline

console = Console()
logger = logging.getLogger(__name__)


@click.command("worker")
@click.option("--poll", is_flag=True, help="Use the polling backend instead of the background thread.")
@click.option("--interval", default=1.0, show_default=True, help="Seconds between loop iterations.")
@click.option("--reload-every", default=30.0, show_default=True, help="Seconds between config reloads.")
@click.option("--iterations", default=0, hidden=True, help="Stop after this many iterations (0 runs forever).")
@click.pass_context
def worker_cmd(ctx, poll: bool, interval: float, reload_every: float, iterations: int):
    """Moderate held comments as they arrive.

    Picks up the existing backlog first, then keeps the periodic sweep
    running. Config changes (e.g. toggling auto_moderation_enabled) are
    picked up on reload.
    """
    pipeline = get_pipeline(ctx, scheduler_backend="polling" if poll else None)
    options = ctx.find_root().obj["options"]
    if not pipeline.dispatcher.active:
        console.print(
            "[yellow]Automatic moderation is off or no API key is configured; "
            "the worker will idle until it is enabled.[/yellow]"
        )

    pipeline.start()
    pipeline.dispatcher.kick()
    console.print(f"[bold]modlens worker[/bold] running ({'polling' if poll else 'deferred'} scheduler). Ctrl+C to stop.")

    last_reload = time.monotonic()
    count = 0
    try:
        while not iterations or count < iterations:
            count += 1
            if poll:
                pipeline.dispatcher.tick()
            if time.monotonic() - last_reload >= reload_every:
                last_reload = time.monotonic()
                try:
                    pipeline.refresh(options.reload())
                except ValueError as e:
                    logger.error("Config reload failed, keeping previous settings: %s", e)
            time.sleep(interval)
    except KeyboardInterrupt:
        console.print("\nStopping worker.")
