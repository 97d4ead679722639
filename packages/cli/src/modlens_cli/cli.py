"""CLI entry point for modlens.

Commands:
  init         write a .modlens.yml for this site
  submit       create a comment through the hold filter
  set-status   change a comment's status as an operator
  pending      list held comments with a spam hint
  process      moderate held comments right now
  worker       run the scheduler and periodic sweep
  decisions    list recorded AI decisions
  override     mark a decision as overridden
  clear        delete every decision
  export       dump decisions as JSON or CSV
  stats        per-outcome totals and averages
  logs         browse the audit log
  status       configuration, queue sizes and the fallback notice
  check        API connection test and a sample moderation run
"""

from __future__ import annotations

import importlib.metadata
import logging

import click

from modlens_cli.commands.check import check_cmd
from modlens_cli.commands.decisions import clear_cmd, decisions_cmd, override_cmd
from modlens_cli.commands.export import export_cmd
from modlens_cli.commands.init import init_cmd
from modlens_cli.commands.logs import logs_cmd
from modlens_cli.commands.queue import pending_cmd, process_cmd
from modlens_cli.commands.stats import stats_cmd
from modlens_cli.commands.status import status_cmd
from modlens_cli.commands.submit import set_status_cmd, submit_cmd
from modlens_cli.commands.worker import worker_cmd


@click.group()
@click.version_option(
    version=importlib.metadata.version("modlens"),
    prog_name="modlens",
)
@click.option(
    "--config",
    "config_path",
    default=".modlens.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="MODLENS_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    help="Diagnostic log level (request/response payloads are logged at DEBUG).",
)
@click.pass_context
def main(ctx: click.Context, config_path: str, log_level: str):
    """AI comment moderation: hold, classify, apply, audit."""
    from modlens_core.config import OptionsStore

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.WARNING),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if "options" not in ctx.obj:
        try:
            ctx.obj["options"] = OptionsStore(config_path)
        except ValueError as e:
            raise click.UsageError(str(e)) from e


main.add_command(init_cmd)
main.add_command(submit_cmd)
main.add_command(set_status_cmd)
main.add_command(pending_cmd)
main.add_command(process_cmd)
main.add_command(worker_cmd)
main.add_command(decisions_cmd)
main.add_command(override_cmd)
main.add_command(clear_cmd)
main.add_command(export_cmd)
main.add_command(stats_cmd)
main.add_command(logs_cmd)
main.add_command(status_cmd)
main.add_command(check_cmd)
