"""Publish the agent's output back to GitHub, per operating mode.

Only the primary publication (the reply, the review, the coder summary) may
fail the run. Labels, closing, follow-up hand-offs and git reconciliation are
best-effort and degrade to warnings.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console

from ghagent_core.actions import warning
from ghagent_core.errors import PlatformError
from ghagent_core.markers import TRIGGER_TOKEN, issue_type_marker, parse_issue_type, with_markers
from ghagent_core.modes import (
    ISSUE_REPLY,
    ISSUE_RESPONSE,
    PR_UPDATE_SUMMARY,
    REVIEW_REPLY,
    REVIEW_RESPONSE,
    REVIEW_RESULT,
    REVIEW_SUGGESTIONS,
    REVIEW_SUMMARY,
    OperatingMode,
)
from ghagent_core.vcs import ReconcileResult, reconcile_issue_changes, reconcile_pr_changes
from ghagent_core.verify import file_ready

if TYPE_CHECKING:
    from ghagent_core.pipeline import RunContext

console = Console()
logger = logging.getLogger(__name__)

REVIEW_EVENTS = {
    "approve": "APPROVE",
    "request_changes": "REQUEST_CHANGES",
    "comment": "COMMENT",
}

_DEFAULT_ISSUE_INSTRUCTIONS = "please implement the changes discussed above."
_DEFAULT_PR_INSTRUCTIONS = "please address the review feedback above."


@dataclass
class PublishResult:
    requires_coding_agent: bool | None = None
    review_event: str | None = None
    reconcile: ReconcileResult | None = None


# ---------------------------------------------------------------------- #
# Artifact readers                                                        #
# ---------------------------------------------------------------------- #


def read_artifact(ctx: RunContext, name: str) -> str | None:
    path = Path(ctx.workdir) / ctx.agent.output_path(name)
    if not file_ready(path):
        return None
    return path.read_text(encoding="utf-8")


def read_json_artifact(ctx: RunContext, name: str) -> dict | None:
    text = read_artifact(ctx, name)
    if text is None:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        warning(f"Ignoring malformed {name}: {e}")
        return None
    if not isinstance(data, dict):
        warning(f"Ignoring {name}: expected a JSON object")
        return None
    return data


# ---------------------------------------------------------------------- #
# Shared helpers                                                          #
# ---------------------------------------------------------------------- #


def apply_labels(platform, number: int, add: list[str], remove: list[str]) -> None:
    """Add missing labels and remove present ones. Re-running is a no-op."""
    current = platform.get_label_names(number)
    to_add = [label for label in add if label not in current]
    if to_add:
        platform.add_labels(number, to_add)
        logger.info("Added label(s): %s", ", ".join(to_add))
    for label in remove:
        if label not in current:
            continue
        try:
            platform.remove_label(number, label)
        except PlatformError as e:
            logger.warning("Failed to remove label %r: %s", label, e)


def follow_up_comment(mode: OperatingMode, round_number: int, instructions: str, issue_type: str | None = None) -> str:
    """A comment that hands the conversation to the coding agent on the next run."""
    body = f"{TRIGGER_TOKEN} {instructions.strip()}"
    if issue_type:
        body += "\n\n" + issue_type_marker(issue_type)
    return with_markers(body, mode.value, round_number, trigger=True)


def post_follow_up(ctx: RunContext, instructions: str | None, default: str, issue_type: str | None = None) -> None:
    body = follow_up_comment(ctx.agent.mode, ctx.round.next, instructions or default, issue_type)
    try:
        ctx.platform.create_comment(ctx.event.number, body)
        console.print("[green]Requested follow-up from the coding agent.[/green]")
    except PlatformError as e:
        warning(f"Could not post the coding follow-up: {e}")


def is_self_review_error(error: PlatformError, patterns) -> bool:
    """True if ``error`` is GitHub refusing a review on the author's own pull request.

    GitHub reports this as a 422 validation failure; the message is the only
    thing telling it apart from other 422s, so it is matched against the
    configured patterns.
    """
    if error.status != 422:
        return False
    message = error.error.message.lower()
    return any(p.lower() in message for p in patterns)


def create_review(platform, number: int, body: str, event: str, self_review_patterns) -> str:
    """Post a review, downgrading to COMMENT when GitHub forbids a self-review. Returns the event used."""
    try:
        platform.create_review(number, body, event)
        return event
    except PlatformError as e:
        if event == "COMMENT" or not is_self_review_error(e, self_review_patterns):
            raise
        warning(f"Cannot {event} own pull request; posting the review as COMMENT instead.")
    platform.create_review(number, body, "COMMENT")
    return "COMMENT"


# ---------------------------------------------------------------------- #
# Modes                                                                   #
# ---------------------------------------------------------------------- #


def publish_issue_chatter(ctx: RunContext) -> PublishResult:
    number = ctx.event.number
    result = PublishResult()
    if not number:
        return result

    reply = read_artifact(ctx, ISSUE_REPLY)
    if reply:
        ctx.platform.create_comment(number, with_markers(reply, ctx.agent.mode.value, ctx.round.next))
        console.print("[green]Posted issue reply.[/green]")

    response = read_json_artifact(ctx, ISSUE_RESPONSE)
    if response is None:
        return result

    labels = response.get("labels") or {}
    try:
        apply_labels(ctx.platform, number, list(labels.get("add") or []), list(labels.get("remove") or []))
    except PlatformError as e:
        warning(f"Could not update labels: {e}")

    if response.get("suggested_action") == "close":
        try:
            ctx.platform.close_issue(number)
            console.print("[green]Closed issue.[/green]")
        except PlatformError as e:
            warning(f"Could not close issue #{number}: {e}")

    result.requires_coding_agent = bool(response.get("requires_coding_agent"))
    if result.requires_coding_agent:
        post_follow_up(
            ctx,
            response.get("coding_instructions"),
            _DEFAULT_ISSUE_INSTRUCTIONS,
            issue_type=response.get("issue_type"),
        )
    return result


def publish_pr_review(ctx: RunContext) -> PublishResult:
    number = ctx.event.number
    result = PublishResult()
    if not number:
        return result

    response = read_json_artifact(ctx, REVIEW_RESPONSE) or {}
    summary = read_artifact(ctx, REVIEW_SUMMARY)
    body = summary or read_artifact(ctx, REVIEW_REPLY)
    if body is None and not response:
        warning("No review output to publish.")
        return result

    mode = ctx.agent.mode.value
    round_number = ctx.round.next
    event = REVIEW_EVENTS.get(str(response.get("verdict", "")).lower(), "COMMENT")
    review_body = with_markers(body or "_No review summary was produced._", mode, round_number)
    result.review_event = create_review(
        ctx.platform, number, review_body, event, ctx.config.self_review_error_patterns
    )
    console.print(f"[green]Posted PR review: {result.review_event}[/green]")

    if summary:
        for name in (REVIEW_RESULT, REVIEW_SUGGESTIONS):
            section = read_artifact(ctx, name)
            if not section:
                continue
            try:
                ctx.platform.create_comment(number, with_markers(section, mode, round_number))
            except PlatformError as e:
                warning(f"Could not post {name}: {e}")

    result.requires_coding_agent = bool(response.get("requires_coding_agent"))
    if result.requires_coding_agent:
        post_follow_up(ctx, response.get("coding_instructions"), _DEFAULT_PR_INSTRUCTIONS)
    return result


def render_reconcile_notice(result: ReconcileResult) -> str:
    if result.status == "pr_created":
        return f"**Pull request opened:** {result.url} (branch `{result.branch}`)"
    if result.status == "pr_existing":
        return f"**Pull request updated:** {result.url} (branch `{result.branch}`)"
    if result.status == "pushed":
        notice = f"**Changes pushed to** `{result.branch}`."
        if result.message:
            notice += f" Opening a pull request failed: {result.message}"
        return notice
    if result.status == "fallback":
        return f"**Changes pushed to** `{result.branch}`. {result.message} [Create a pull request]({result.url})"
    if result.status == "read_only":
        return f"> **Note:** {result.message}"
    if result.status == "no_changes":
        return "_No code changes were made._"
    return f"> **Warning:** the changes could not be published: {result.message}"


def _issue_type(ctx: RunContext) -> str | None:
    marked = parse_issue_type(ctx.event.comment_body)
    if marked:
        return marked
    response = read_json_artifact(ctx, ISSUE_RESPONSE)
    return response.get("issue_type") if response else None


def publish_coder(ctx: RunContext) -> PublishResult:
    number = ctx.event.number
    result = PublishResult()
    if not number:
        return result

    if ctx.agent.mode is OperatingMode.ISSUE_CODER:
        summary_name = ISSUE_REPLY
        reconcile = reconcile_issue_changes(
            ctx.platform,
            number,
            ctx.event.title,
            ctx.event.comment_body,
            _issue_type(ctx),
            ctx.config.context_dir,
            ctx.workdir,
        )
    else:
        summary_name = PR_UPDATE_SUMMARY
        if ctx.checkout is None:
            reconcile = ReconcileResult(status="failed", message="no checkout state for this pull request")
        else:
            reconcile = reconcile_pr_changes(
                ctx.checkout,
                number,
                ctx.event.repo,
                ctx.server_url,
                ctx.config.context_dir,
                ctx.workdir,
            )
    result.reconcile = reconcile
    if reconcile.status == "failed":
        warning(f"Code changes were not published: {reconcile.message}")

    summary = read_artifact(ctx, summary_name) or "_The agent did not produce a summary._"
    body = f"{render_reconcile_notice(reconcile)}\n\n{summary}"
    ctx.platform.create_comment(number, with_markers(body, ctx.agent.mode.value, ctx.round.next))
    console.print(f"[green]Posted {ctx.agent.mode.value} summary.[/green]")
    return result


def post_process(ctx: RunContext) -> PublishResult:
    mode = ctx.agent.mode
    if mode is OperatingMode.ISSUE_CHATTER:
        return publish_issue_chatter(ctx)
    if mode is OperatingMode.PR_REVIEWER:
        return publish_pr_review(ctx)
    return publish_coder(ctx)
