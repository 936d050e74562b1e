"""CLI entry point for ghagent.

Commands:
  run     — handle one GitHub event (what the workflow step calls)
  rounds  — show the round state of an issue or pull request
  init    — write a starter config file and GitHub Actions workflow
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from ghagent_cli.commands.init import init_cmd
from ghagent_cli.commands.rounds import rounds_cmd
from ghagent_cli.commands.run import run_cmd

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False, rich_tracebacks=True)],
        force=True,
    )
    # PyGithub and urllib3 are chatty at DEBUG.
    logging.getLogger("github").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


@click.group()
@click.version_option(
    version=importlib.metadata.version("ghagent"),
    prog_name="ghagent",
)
@click.option(
    "--config",
    "config_path",
    default=".github_agent.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="GITHUB_AGENT_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Run a round-limited AI agent against GitHub issues and pull requests."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(run_cmd)
main.add_command(rounds_cmd)
main.add_command(init_cmd)
