"""Write the issue/PR context file the agent reads before answering.

Everything is fetched through GitHubPlatform, so each read is retried and
bounded by the client timeout. Diffs and long bodies are truncated so a huge
pull request cannot crowd out the prompt.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ghagent_core.modes import AgentConfig

logger = logging.getLogger(__name__)

_MAX_PATCH_CHARS = 20_000
_MAX_TOTAL_DIFF_CHARS = 60_000
_MAX_COMMENT_CHARS = 4_000


def _truncate(text: str, limit: int, label: str) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + f"\n... [{label} truncated]"


def render_issue_context(issue, comments: list[str]) -> str:
    labels = ", ".join(label.name for label in issue.labels) or "none"
    author = issue.user.login if issue.user else "unknown"
    lines = [
        f"# Issue #{issue.number}: {issue.title}",
        "",
        f"- Author: @{author}",
        f"- State: {issue.state}",
        f"- Labels: {labels}",
        "",
        "## Description",
        "",
        issue.body or "_No description provided._",
    ]
    if comments:
        lines += ["", "## Conversation", ""]
        for index, body in enumerate(comments, 1):
            lines += [f"### Comment {index}", "", _truncate(body, _MAX_COMMENT_CHARS, "comment"), ""]
    return "\n".join(lines).rstrip() + "\n"


def render_pr_diff(files: list) -> str:
    lines = ["## Changed files", ""]
    budget = _MAX_TOTAL_DIFF_CHARS
    for f in files:
        lines.append(f"### `{f.filename}` ({f.status}, +{f.additions}/-{f.deletions})")
        patch = f.patch or ""
        if not patch:
            lines += ["", "_No textual diff (binary or too large)._", ""]
            continue
        if budget <= 0:
            lines += ["", "_Diff omitted: context size limit reached._", ""]
            continue
        patch = _truncate(patch, min(_MAX_PATCH_CHARS, budget), "diff")
        budget -= len(patch)
        lines += ["", "```diff", patch, "```", ""]
    return "\n".join(lines)


def render_pr_context(pull, files: list, comments: list[str]) -> str:
    author = pull.user.login if pull.user else "unknown"
    header = [
        f"# Pull request #{pull.number}: {pull.title}",
        "",
        f"- Author: @{author}",
        f"- Base: `{pull.base.ref}` <- Head: `{pull.head.ref}`",
        f"- State: {pull.state}{' (draft)' if pull.draft else ''}",
        "",
        "## Description",
        "",
        pull.body or "_No description provided._",
        "",
    ]
    sections = ["\n".join(header), render_pr_diff(files)]
    if comments:
        convo = ["## Conversation", ""]
        for index, body in enumerate(comments, 1):
            convo += [f"### Comment {index}", "", _truncate(body, _MAX_COMMENT_CHARS, "comment"), ""]
        sections.append("\n".join(convo))
    return "\n".join(sections).rstrip() + "\n"


def write_context(platform, agent_config: AgentConfig, number: int | None, workdir: str | Path = ".") -> Path | None:
    """Render and write the context file for ``number``. Returns its path, or None without an issue/PR."""
    if not number:
        return None

    comments = platform.list_comment_bodies(number)
    if agent_config.mode.is_pull_request:
        pull = platform.get_pull(number)
        content = render_pr_context(pull, platform.list_pull_files(number), comments)
    else:
        content = render_issue_context(platform.get_issue(number), comments)

    path = Path(workdir) / agent_config.context_file
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    logger.info("Wrote context to %s", path)
    return path
