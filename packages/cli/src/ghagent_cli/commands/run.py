"""run command — handle one GitHub event end to end."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console

from ghagent_core.errors import AgentNotFoundError, AgentProcessError, ModeDetectionError, PlatformError
from ghagent_core.events import EventContext
from ghagent_core.gh.platform import GitHubPlatform
from ghagent_core.pipeline import run_pipeline

console = Console()


@click.command("run")
@click.option("--event-name", envvar="GITHUB_EVENT_NAME", help="GitHub event name, e.g. issue_comment.")
@click.option(
    "--event-path",
    envvar="GITHUB_EVENT_PATH",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to the event payload JSON.",
)
@click.option("--repo", envvar="GITHUB_REPOSITORY", default=None, help="Repository in owner/name format.")
@click.option("--github-token", envvar="INPUT_GITHUB_TOKEN", default=None, help="Overrides GITHUB_TOKEN.")
@click.option("--model-name", envvar="INPUT_MODEL_NAME", default=None, help="Model identifier.")
@click.option("--max-tokens", envvar="INPUT_MAX_TOKENS", default=None, help="Token budget per response.")
@click.option("--fallback-models", envvar="INPUT_FALLBACK_MODELS", default=None, help="Comma-separated list.")
@click.option("--response-language", envvar="INPUT_RESPONSE_LANGUAGE", default=None, help="en or zh-CN.")
@click.option("--max-rounds", envvar="INPUT_MAX_ROUNDS", default=None, help="Maximum conversation rounds.")
@click.option("--agent-bin", envvar="INPUT_AGENT_BIN", default=None, help="Agent CLI: codex, opencode, or a path.")
@click.option(
    "--prompt-file",
    envvar="INPUT_PROMPT_FILE",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Markdown file replacing the built-in prompt template.",
)
@click.option(
    "--prompt-dir",
    envvar="INPUT_PROMPT_DIR",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Directory of <mode>.md templates replacing the built-in ones.",
)
@click.option("--openai-api-key", envvar="INPUT_OPENAI_API_KEY", default=None)
@click.option("--openai-api-base", envvar="INPUT_OPENAI_API_BASE", default=None)
@click.option("--anthropic-api-key", envvar="INPUT_ANTHROPIC_API_KEY", default=None)
@click.option("--anthropic-api-base", envvar="INPUT_ANTHROPIC_API_BASE", default=None)
@click.option("--gemini-api-key", envvar="INPUT_GEMINI_API_KEY", default=None)
@click.option("--gemini-api-base", envvar="INPUT_GEMINI_API_BASE", default=None)
@click.option("--workdir", default=".", show_default=True, type=click.Path(file_okay=False), help="Checkout root.")
@click.option("--server-url", envvar="GITHUB_SERVER_URL", default="https://github.com", show_default=True)
@click.pass_context
def run_cmd(
    ctx,
    event_name: str | None,
    event_path: str | None,
    repo: str | None,
    github_token: str | None,
    model_name: str | None,
    max_tokens: str | None,
    fallback_models: str | None,
    response_language: str | None,
    max_rounds: str | None,
    agent_bin: str | None,
    prompt_file: str | None,
    prompt_dir: str | None,
    openai_api_key: str | None,
    openai_api_base: str | None,
    anthropic_api_key: str | None,
    anthropic_api_base: str | None,
    gemini_api_key: str | None,
    gemini_api_base: str | None,
    workdir: str,
    server_url: str,
):
    """Handle one GitHub event: classify it, run the agent, publish the results.

    \b
    Inside GitHub Actions every option is read from the environment
    (GITHUB_EVENT_NAME, GITHUB_EVENT_PATH, GITHUB_REPOSITORY and INPUT_*).
    """
    from ghagent_core.config import load_config, load_credentials
    from ghagent_cli.auth import resolve_github_token

    config_path = (ctx.obj or {}).get("config_path", ".github_agent.yml")
    config = load_config(
        str(Path(workdir) / config_path),
        cli_overrides={
            "model_name": model_name,
            "max_tokens": max_tokens,
            "fallback_models": fallback_models,
            "response_language": response_language,
            "max_rounds": max_rounds,
            "agent_bin": agent_bin,
            "prompt_dir": prompt_dir,
        },
    )

    token = resolve_github_token(github_token)
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN, pass --github-token, or run `gh auth login` first."
        )
    if not event_name or not event_path:
        raise click.UsageError(
            "Both --event-name and --event-path (or GITHUB_EVENT_NAME/GITHUB_EVENT_PATH) are required."
        )

    event = EventContext.from_file(event_name, event_path, repo)
    if not event.repo:
        raise click.UsageError("Could not determine the repository. Pass --repo owner/name.")

    credentials = load_credentials(
        {
            "openai_api_key": openai_api_key,
            "openai_api_base": openai_api_base,
            "anthropic_api_key": anthropic_api_key,
            "anthropic_api_base": anthropic_api_base,
            "gemini_api_key": gemini_api_key,
            "gemini_api_base": gemini_api_base,
        }
    )
    prompt_override = Path(prompt_file).read_text(encoding="utf-8") if prompt_file else None
    platform = GitHubPlatform.from_token(event.repo, token, timeout=config.http_timeout)

    try:
        result = run_pipeline(
            event,
            config,
            platform,
            credentials=credentials,
            workdir=workdir,
            server_url=server_url,
            prompt_override=prompt_override,
        )
    except (ModeDetectionError, AgentNotFoundError, AgentProcessError, PlatformError, FileNotFoundError) as e:
        raise click.ClickException(str(e))

    if result.status == "rounds_exhausted":
        console.print("[yellow]Agent stopped due to max rounds limit. Comment /reset to start over.[/yellow]")
    elif result.missing_outputs:
        console.print(
            f"[yellow]Published partial output; still missing: {', '.join(result.missing_outputs)}[/yellow]"
        )
