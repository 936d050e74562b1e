"""The triggering event, and the guard that decides whether to handle it at all."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from ghagent_core.markers import has_trigger_marker, parse_producer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EventContext:
    """Read-only description of the GitHub event that started this run."""

    event_name: str
    repo: str
    action: str | None = None
    actor: str | None = None
    actor_type: str | None = None  # "User" | "Bot"
    number: int | None = None
    is_pull_request: bool = False
    comment_body: str | None = None
    title: str = ""

    @classmethod
    def from_payload(cls, event_name: str, payload: dict, repo: str | None = None) -> EventContext:
        issue = payload.get("issue") or {}
        pull = payload.get("pull_request") or {}
        comment = payload.get("comment") or {}
        sender = payload.get("sender") or {}

        number = issue.get("number") or pull.get("number")
        is_pr = bool(pull) or bool(issue.get("pull_request"))
        author = comment.get("user") or {}

        return cls(
            event_name=event_name,
            repo=repo or (payload.get("repository") or {}).get("full_name", ""),
            action=payload.get("action"),
            actor=sender.get("login") or author.get("login"),
            actor_type=sender.get("type") or author.get("type"),
            number=int(number) if number else None,
            is_pull_request=is_pr,
            comment_body=comment.get("body") if comment else None,
            title=issue.get("title") or pull.get("title") or "",
        )

    @classmethod
    def from_file(cls, event_name: str, event_path: str, repo: str | None = None) -> EventContext:
        payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
        return cls.from_payload(event_name, payload, repo)


def should_process(event: EventContext) -> bool:
    """Return False for events produced by the agent itself.

    A comment carrying a producer marker was written by a previous run; handling
    it again would loop forever. The trigger marker is the explicit opt-in for
    a self-comment that should start a new run (the follow-up ``@coder`` hand-off).
    """
    body = event.comment_body
    if body is None:
        return True
    producer = parse_producer(body)
    if producer is None:
        return True
    if has_trigger_marker(body):
        logger.info("Comment from %s-agent carries a trigger marker; processing.", producer)
        return True
    logger.info("Skipping comment produced by %s-agent.", producer)
    return False
