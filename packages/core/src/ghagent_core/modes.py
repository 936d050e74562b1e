"""Classify a triggering event into an operating mode."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ghagent_core.config import UserConfig
from ghagent_core.errors import ModeDetectionError
from ghagent_core.events import EventContext
from ghagent_core.markers import has_trigger_token
from ghagent_core.verify import ExpectedArtifactSet

BUILTIN_PROMPTS_DIR = Path(__file__).parent / "templates"


class OperatingMode(str, Enum):
    ISSUE_CHATTER = "issue-chatter"
    ISSUE_CODER = "issue-coder"
    PR_REVIEWER = "pr-reviewer"
    PR_CODER = "pr-coder"

    @property
    def is_coder(self) -> bool:
        return self in (OperatingMode.ISSUE_CODER, OperatingMode.PR_CODER)

    @property
    def is_pull_request(self) -> bool:
        return self in (OperatingMode.PR_REVIEWER, OperatingMode.PR_CODER)


# Output file names, relative to the context directory.
ISSUE_RESPONSE = "issue-response.json"
ISSUE_REPLY = "issue-reply.md"
REVIEW_RESPONSE = "review-response.json"
REVIEW_REPLY = "review-reply.md"
REVIEW_SUMMARY = "review-summary.md"
REVIEW_RESULT = "review-result.md"
REVIEW_SUGGESTIONS = "review-suggestions.md"
PR_UPDATE_SUMMARY = "pr-update-summary.md"


@dataclass(frozen=True)
class AgentConfig:
    mode: OperatingMode
    prompt_file: Path
    context_file: str
    context_dir: str
    expected: ExpectedArtifactSet

    def output_path(self, name: str) -> str:
        return f"{self.context_dir}/{name}"


def expected_outputs(mode: OperatingMode, context_dir: str) -> ExpectedArtifactSet:
    def p(name: str) -> str:
        return f"{context_dir}/{name}"

    if mode is OperatingMode.ISSUE_CHATTER:
        return ExpectedArtifactSet(required=(p(ISSUE_RESPONSE), p(ISSUE_REPLY)))
    if mode is OperatingMode.ISSUE_CODER:
        return ExpectedArtifactSet(required=(p(ISSUE_REPLY),))
    if mode is OperatingMode.PR_REVIEWER:
        return ExpectedArtifactSet(
            required=(p(REVIEW_RESPONSE),),
            alternatives=(
                (
                    (p(REVIEW_SUMMARY), p(REVIEW_RESULT), p(REVIEW_SUGGESTIONS)),
                    (p(REVIEW_REPLY),),
                ),
            ),
        )
    return ExpectedArtifactSet(required=(p(PR_UPDATE_SUMMARY),))


def classify_event(event: EventContext) -> OperatingMode:
    """Pure classification of ``event``; raises ModeDetectionError for unsupported events."""
    if event.event_name == "issues":
        return OperatingMode.ISSUE_CHATTER

    if event.event_name == "issue_comment":
        wants_coder = has_trigger_token(event.comment_body)
        if event.is_pull_request:
            return OperatingMode.PR_CODER if wants_coder else OperatingMode.PR_REVIEWER
        return OperatingMode.ISSUE_CODER if wants_coder else OperatingMode.ISSUE_CHATTER

    if event.event_name in ("pull_request", "pull_request_target"):
        return OperatingMode.PR_REVIEWER

    raise ModeDetectionError(f"Unsupported event: {event.event_name}")


def detect_mode(event: EventContext, config: UserConfig) -> AgentConfig:
    mode = classify_event(event)
    prompt_dir = Path(config.prompt_dir) if config.prompt_dir else BUILTIN_PROMPTS_DIR
    context_name = "pr-context.md" if mode.is_pull_request else "issue-context.md"
    return AgentConfig(
        mode=mode,
        prompt_file=prompt_dir / f"{mode.value}.md",
        context_file=f"{config.context_dir}/{context_name}",
        context_dir=config.context_dir,
        expected=expected_outputs(mode, config.context_dir),
    )
