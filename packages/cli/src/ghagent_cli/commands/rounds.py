"""rounds command — show where an issue or pull request is in its round budget."""

from __future__ import annotations

import click
from rich.console import Console
from rich.table import Table

from ghagent_core.errors import PlatformError, RoundsExhausted
from ghagent_core.gh.platform import GitHubPlatform
from ghagent_core.markers import has_reset_command, parse_producer, parse_round
from ghagent_core.rounds import compute_round_state

console = Console()


@click.command("rounds")
@click.option("--repo", required=True, envvar="GITHUB_REPOSITORY", help="Repository in owner/name format.")
@click.option("--number", required=True, type=int, help="Issue or pull request number.")
@click.pass_context
def rounds_cmd(ctx, repo: str, number: int):
    """Show the agent rounds recorded on an issue or pull request."""
    from ghagent_core.config import load_config
    from ghagent_cli.auth import resolve_github_token

    config = load_config((ctx.obj or {}).get("config_path", ".github_agent.yml"))
    token = resolve_github_token()
    if not token:
        raise click.UsageError("No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.")

    platform = GitHubPlatform.from_token(repo, token, timeout=config.http_timeout)
    try:
        bodies = platform.list_comment_bodies(number)
    except PlatformError as e:
        raise click.ClickException(str(e))

    table = Table(title=f"{repo}#{number}")
    table.add_column("#", justify="right")
    table.add_column("Producer")
    table.add_column("Round", justify="right")
    table.add_column("Note")

    for index, body in enumerate(bodies, 1):
        producer = parse_producer(body)
        round_number = parse_round(body)
        if has_reset_command(body):
            table.add_row(str(index), producer or "user", "", "[yellow]/reset[/yellow]")
        elif round_number:
            table.add_row(str(index), producer or "user", str(round_number), "")

    console.print(table)
    try:
        state = compute_round_state(bodies, config.max_rounds)
    except RoundsExhausted as e:
        console.print(f"[yellow]{e}[/yellow]")
        return
    console.print(f"Next run will be round [bold]{state.next}[/bold] of {state.max_rounds}.")
