"""init command — write a starter config file and GitHub Actions workflow."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

import click
import yaml
from rich.console import Console

from ghagent_core.config import DEFAULT_CONFIG, VALID_LANGUAGES

console = Console()
logger = logging.getLogger(__name__)

_INSTALL_STEPS = {
    "codex": "npm install -g @openai/codex",
    "opencode": "curl -fsSL https://raw.githubusercontent.com/opencode-ai/opencode/refs/heads/main/install | bash",
}

_WORKFLOW_TEMPLATE = """\
name: GitHub Agent

on:
  issues:
    types: [opened]
  issue_comment:
    types: [created]
  pull_request:
    types: [opened, synchronize, reopened]

concurrency:
  group: ghagent-${{{{ github.event.issue.number || github.event.pull_request.number }}}}
  cancel-in-progress: false

jobs:
  agent:
    runs-on: ubuntu-latest
    permissions:
      contents: write
      issues: write
      pull-requests: write

    steps:
      - uses: actions/checkout@v4
        with:
          fetch-depth: 0

      - name: Set up Python
        uses: actions/setup-python@v5
        with:
          python-version: "3.12"

      - name: Install ghagent and {agent}
        run: |
          pip install "ghagent=={version}"
          {install}

      - name: Run agent
        env:
          GITHUB_TOKEN: ${{{{ secrets.GITHUB_TOKEN }}}}
          {api_key_env}: ${{{{ secrets.{api_key_env} }}}}
        run: ghagent run
"""


def _detect_repo_from_git() -> str | None:
    """Try to detect the GitHub repo slug from the git remote URL."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", "origin"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    if result.returncode != 0:
        return None
    url = result.stdout.strip()
    # https://github.com/owner/repo.git  ->  owner/repo
    # git@github.com:owner/repo.git      ->  owner/repo
    if "github.com" not in url:
        return None
    slug = url.split("github.com")[-1].lstrip("/:").removesuffix(".git")
    return slug if "/" in slug else None


def _write_config(config: dict, path: Path) -> None:
    """Write or update the config file, preserving any existing keys."""
    existing: dict = {}
    if path.exists():
        existing = yaml.safe_load(path.read_text()) or {}
    existing.update(config)
    path.write_text(yaml.dump(existing, default_flow_style=False, sort_keys=False))


def _get_version() -> str:
    from importlib.metadata import PackageNotFoundError, version

    try:
        return version("ghagent")
    except PackageNotFoundError:
        return "0.1.0"


def _write_workflow(agent: str, api_key_env: str) -> Path:
    workflow_dir = Path(".github/workflows")
    workflow_dir.mkdir(parents=True, exist_ok=True)
    workflow_path = workflow_dir / "ghagent.yml"
    workflow_path.write_text(
        _WORKFLOW_TEMPLATE.format(
            agent=agent,
            install=_INSTALL_STEPS[agent],
            api_key_env=api_key_env,
            version=_get_version(),
        )
    )
    return workflow_path


@click.command("init")
@click.option("--repo", default=None, help="GitHub repository (owner/name). Auto-detected from git remote.")
@click.pass_context
def init_cmd(ctx, repo: str | None):
    """Set up ghagent for a repository.

    Writes the config file and optionally a GitHub Actions workflow that runs
    the agent on new issues, comments and pull requests.
    """
    console.print("\n[bold cyan]ghagent init[/bold cyan]\n")

    if repo is None:
        repo = _detect_repo_from_git()
        if repo:
            console.print(f"[dim]Detected repository: {repo}[/dim]")
        else:
            repo = click.prompt("GitHub repository (owner/name)")

    agent = click.prompt("Agent CLI", type=click.Choice(sorted(_INSTALL_STEPS)), default="codex")
    model_name = click.prompt("Model", default=DEFAULT_CONFIG["model_name"])
    max_rounds = click.prompt("Maximum rounds per conversation", type=int, default=DEFAULT_CONFIG["max_rounds"])
    language = click.prompt(
        "Response language",
        type=click.Choice(VALID_LANGUAGES),
        default=DEFAULT_CONFIG["response_language"],
    )

    config_path = Path((ctx.obj or {}).get("config_path", ".github_agent.yml"))
    _write_config(
        {"agent_bin": agent, "model_name": model_name, "max_rounds": max_rounds, "response_language": language},
        config_path,
    )
    console.print(f"[green]Wrote {config_path}[/green]")

    api_key_env = "OPENAI_API_KEY" if agent == "codex" else "ANTHROPIC_API_KEY"
    if click.confirm("\nGenerate .github/workflows/ghagent.yml for GitHub Actions?", default=True):
        workflow_path = _write_workflow(agent, api_key_env)
        console.print(f"[green]Created {workflow_path}[/green]")
        console.print(
            f"\n[yellow]Remember to add [bold]{api_key_env}[/bold] to the repository secrets "
            "(Settings → Secrets → Actions).[/yellow]"
        )

    console.print("\n[bold green]Setup complete![/bold green]")
    console.print(f"Check a conversation with: [bold]ghagent rounds --repo {repo} --number <n>[/bold]")
