"""Compose the prompt handed to the agent: template + run context."""

from __future__ import annotations

from pathlib import Path

from ghagent_core.config import UserConfig
from ghagent_core.events import EventContext
from ghagent_core.modes import AgentConfig
from ghagent_core.rounds import RoundState

_LANGUAGE_NAMES = {"en": "English", "zh-CN": "Simplified Chinese"}


def load_template(agent_config: AgentConfig) -> str:
    path = Path(agent_config.prompt_file)
    if not path.exists():
        raise FileNotFoundError(f"Prompt template not found: {path}")
    return path.read_text(encoding="utf-8")


def compose_prompt(
    agent_config: AgentConfig,
    event: EventContext,
    round_state: RoundState,
    config: UserConfig,
    override: str | None = None,
) -> str:
    """Build the full prompt. ``override`` replaces the template text when given."""
    template = override if override else load_template(agent_config)
    language = _LANGUAGE_NAMES.get(config.response_language, config.response_language)
    outputs = "\n".join(f"- {p}" for p in agent_config.expected.all_paths)
    target = f"#{event.number}" if event.number else "(none)"

    prompt = (
        f"{template.rstrip()}\n\n"
        "# RUN CONTEXT\n"
        f"- Repository: {event.repo}\n"
        f"- Issue / pull request: {target}\n"
        f"- Triggered by: @{event.actor or 'unknown'} ({event.event_name})\n"
        f"- Round: {round_state.next} of {round_state.max_rounds}\n"
        f"- Context file: {agent_config.context_file}\n"
        f"- Respond in: {language}\n\n"
        "# OUTPUT FILES\n"
        f"{outputs}\n"
    )
    if event.comment_body:
        prompt += f"\n# TRIGGERING COMMENT\n{event.comment_body.strip()}\n"
    return prompt
