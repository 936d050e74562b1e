"""Core agent run orchestration.

guard → mode → round → (PR coder) checkout → context → agent → verify/resume → publish

Everything a later step needs is carried on an explicit RunContext; nothing
is kept in module state, so a run can be driven end to end from tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from rich.console import Console

from ghagent_core.actions import set_output, warning
from ghagent_core.agent import run_agent
from ghagent_core.config import UserConfig
from ghagent_core.context import write_context
from ghagent_core.errors import GitError, RoundsExhausted
from ghagent_core.events import EventContext, should_process
from ghagent_core.modes import AgentConfig, OperatingMode, detect_mode
from ghagent_core.prompts import compose_prompt
from ghagent_core.publish import PublishResult, post_process
from ghagent_core.rounds import RoundState, check_round_limit
from ghagent_core.vcs import CheckoutState, configure_identity, prepare_pr_checkout
from ghagent_core.verify import clear_outputs, verify_and_resume

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    event: EventContext
    config: UserConfig
    agent: AgentConfig
    round: RoundState
    platform: object
    credentials: dict = field(default_factory=dict)
    workdir: Path = Path(".")
    server_url: str = "https://github.com"
    checkout: CheckoutState | None = None


@dataclass
class RunResult:
    """What happened in one run; the CLI turns this into step outputs and an exit code."""

    status: str  # "completed" | "skipped" | "rounds_exhausted"
    mode: OperatingMode | None = None
    round: int | None = None
    missing_outputs: list[str] = field(default_factory=list)
    published: PublishResult | None = None


def bot_name(mode: OperatingMode) -> str:
    return f"{mode.value}-bot"


def run_pipeline(
    event: EventContext,
    config: UserConfig,
    platform,
    credentials: dict | None = None,
    workdir: str | Path = ".",
    server_url: str = "https://github.com",
    prompt_override: str | None = None,
) -> RunResult:
    """Run one agent round for ``event``.

    Fatal problems (unsupported event, missing agent binary, a failing first
    agent run, failing primary publication) propagate. Exhausted rounds end the
    run early with status "rounds_exhausted" and publish nothing.
    """
    workdir = Path(workdir)

    if not should_process(event):
        console.print("[yellow]Event was produced by the agent itself; nothing to do.[/yellow]")
        return RunResult(status="skipped")

    agent_config = detect_mode(event, config)
    console.print(f"[bold]Agent mode:[/bold] {agent_config.mode.value}")
    set_output("mode", agent_config.mode.value)

    try:
        configure_identity(bot_name(agent_config.mode), workdir)
    except GitError as e:
        warning(f"Could not configure git identity: {e}")

    try:
        round_state = check_round_limit(platform, event.number, config.max_rounds)
    except RoundsExhausted as e:
        warning(str(e))
        return RunResult(status="rounds_exhausted", mode=agent_config.mode)
    set_output("current_round", round_state.next)

    checkout = None
    if agent_config.mode is OperatingMode.PR_CODER:
        checkout = prepare_pr_checkout(platform.get_pull(event.number), workdir)

    ctx = RunContext(
        event=event,
        config=config,
        agent=agent_config,
        round=round_state,
        platform=platform,
        credentials=credentials or {},
        workdir=workdir,
        server_url=server_url,
        checkout=checkout,
    )

    write_context(platform, agent_config, event.number, workdir)
    prompt = compose_prompt(agent_config, event, round_state, config, override=prompt_override)

    clear_outputs(agent_config.expected, workdir)
    run_agent(prompt, config, ctx.credentials, workdir=workdir)
    missing = verify_and_resume(
        agent_config.expected,
        prompt,
        lambda p: run_agent(p, config, ctx.credentials, continue_mode=True, workdir=workdir),
        max_retries=config.verify_max_retries,
        workdir=workdir,
    )

    published = post_process(ctx)
    if published.requires_coding_agent is not None:
        set_output("requires_coding_agent", published.requires_coding_agent)
    if published.reconcile is not None:
        set_output("branch", published.reconcile.branch)
        set_output("pull_request_url", published.reconcile.url)

    console.print("[bold green]Agent completed successfully.[/bold green]")
    return RunResult(
        status="completed",
        mode=agent_config.mode,
        round=round_state.next,
        missing_outputs=missing,
        published=published,
    )
