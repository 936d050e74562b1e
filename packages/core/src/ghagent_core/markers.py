"""HTML comment markers embedded in every comment the agent publishes.

The round marker feeds the round tracker, the producer marker lets the run-entry
guard recognise the agent's own comments, and the trigger marker lets one of
those comments re-enter the pipeline on purpose.
"""

from __future__ import annotations

import re

RESET_COMMAND = "/reset"
TRIGGER_TOKEN = "@coder"
TRIGGER_MARKER = "<!-- agent-trigger:coder -->"

_ROUND_RE = re.compile(r"<!-- agent-round:(\d+) -->")
_PRODUCER_RE = re.compile(r"<!-- agent:([a-z-]+)-agent -->")
_ISSUE_TYPE_RE = re.compile(r"<!-- agent-issue-type:([A-Za-z_-]+) -->")
# Only a token at the start of a line counts, so quoted replies ("> @coder ...") do not.
_TRIGGER_RE = re.compile(r"^[ \t]*" + re.escape(TRIGGER_TOKEN) + r"(?![\w-])", re.MULTILINE)


def round_marker(round_number: int) -> str:
    return f"<!-- agent-round:{round_number} -->"


def producer_marker(mode: str) -> str:
    return f"<!-- agent:{mode}-agent -->"


def issue_type_marker(issue_type: str) -> str:
    return f"<!-- agent-issue-type:{issue_type} -->"


def with_markers(body: str, mode: str, round_number: int, trigger: bool = False) -> str:
    """Append the producer/round marker pair (and optionally the trigger marker) to ``body``."""
    lines = [body.rstrip(), "", producer_marker(mode), round_marker(round_number)]
    if trigger:
        lines.append(TRIGGER_MARKER)
    return "\n".join(lines)


def parse_round(body: str | None) -> int:
    """Return the round recorded in ``body``, or 0 when there is none."""
    match = _ROUND_RE.search(body or "")
    return int(match.group(1)) if match else 0


def parse_producer(body: str | None) -> str | None:
    match = _PRODUCER_RE.search(body or "")
    return match.group(1) if match else None


def parse_issue_type(body: str | None) -> str | None:
    match = _ISSUE_TYPE_RE.search(body or "")
    return match.group(1).lower() if match else None


def has_trigger_marker(body: str | None) -> bool:
    return TRIGGER_MARKER in (body or "")


def has_trigger_token(body: str | None) -> bool:
    return bool(_TRIGGER_RE.search(body or ""))


def has_reset_command(body: str | None) -> bool:
    return RESET_COMMAND in (body or "")
