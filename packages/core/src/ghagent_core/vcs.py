"""Land the agent's workspace changes on a branch and get them in front of a reviewer.

Two flows:

- Issue coder: commit onto an agent branch, push it, then open (or reuse) a
  pull request that closes the issue.
- PR coder: commit onto the pull request's own head branch and push it; if
  that push fails, push whatever is checked out and hand back a compare link.
  Forks cannot be pushed to, so they get a read-only notice.

Git failures never abort the run. They come back as a ReconcileResult with
status "failed" so the summary comment can still be posted.
"""

from __future__ import annotations

import logging
import re
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path

from ghagent_core.errors import GitError, PlatformError
from ghagent_core.retry import retry_linear

logger = logging.getLogger(__name__)

AGENT_BRANCH_PREFIX = "agent/"
DEFAULT_BRANCH_PREFIX = "feature"

# Evaluated in order; the first pattern found in the triggering comment wins.
BRANCH_PREFIX_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"@coder\s+(fix|bug)\b", re.IGNORECASE), "fix"),
    (re.compile(r"@coder\s+refactor\b", re.IGNORECASE), "refactor"),
    (re.compile(r"@coder\s+(schema|migration)\b", re.IGNORECASE), "schema"),
    (re.compile(r"@coder\s+(feature|feat|implement|add)\b", re.IGNORECASE), "feature"),
]

# Issue types reported by the issue-chatter agent.
ISSUE_TYPE_PREFIXES = {
    "bug": "fix",
    "fix": "fix",
    "feature": "feature",
    "enhancement": "feature",
    "refactor": "refactor",
    "schema": "schema",
}

PUSH_ATTEMPTS = 3
PUSH_DELAY = 2.0


@dataclass(frozen=True)
class CheckoutState:
    base_branch: str
    head_branch: str
    head_repo: str | None
    can_push: bool


@dataclass
class ReconcileResult:
    status: str  # pr_created | pr_existing | pushed | fallback | no_changes | read_only | failed
    branch: str | None = None
    url: str | None = None
    message: str = ""


# ---------------------------------------------------------------------- #
# git plumbing                                                            #
# ---------------------------------------------------------------------- #


def run_git(args: list[str], cwd: str | Path = ".") -> str:
    result = subprocess.run(["git", *args], cwd=str(cwd), capture_output=True, text=True)
    if result.returncode != 0:
        raise GitError(args, result.returncode, result.stderr)
    return result.stdout.strip()


def configure_identity(bot_name: str, cwd: str | Path = ".") -> None:
    run_git(["config", "user.name", bot_name], cwd)
    run_git(["config", "user.email", f"{bot_name}@users.noreply.github.com"], cwd)
    run_git(["config", "push.autoSetupRemote", "true"], cwd)


def current_branch(cwd: str | Path = ".") -> str:
    """Checked-out branch name, or "HEAD" when detached."""
    return run_git(["rev-parse", "--abbrev-ref", "HEAD"], cwd)


def commit_all(message: str, context_dir: str, cwd: str | Path = ".") -> bool:
    """Stage everything except ``context_dir`` and commit. Returns False if nothing was staged."""
    run_git(["add", "-A", "--", ".", f":(exclude){context_dir}"], cwd)
    staged = subprocess.run(["git", "diff", "--cached", "--quiet"], cwd=str(cwd))
    if staged.returncode == 0:
        return False
    run_git(["commit", "-m", message], cwd)
    return True


def ahead_count(base_ref: str, cwd: str | Path = ".") -> int:
    return int(run_git(["rev-list", "--count", f"{base_ref}..HEAD"], cwd) or 0)


def is_agent_branch(branch: str) -> bool:
    return branch.startswith(AGENT_BRANCH_PREFIX)


def fetch_remote_branch(branch: str, cwd: str | Path = ".") -> str | None:
    """Fetch origin's ``branch`` into its remote-tracking ref. Returns its sha, or None if origin has no such branch.

    Shallow single-branch checkouts have no fetch refspec for other branches,
    so the ref is fetched explicitly.
    """
    listing = run_git(["ls-remote", "--heads", "origin", f"refs/heads/{branch}"], cwd)
    if not listing:
        return None
    run_git(["fetch", "origin", f"+refs/heads/{branch}:refs/remotes/origin/{branch}"], cwd)
    return listing.split()[0]


def push_branch(branch: str, cwd: str | Path = ".", sleep=time.sleep) -> None:
    """Push ``branch`` to origin, retrying with linear backoff.

    Agent-owned branches are force-pushed with a lease on the sha origin holds
    (or on the branch not existing), so a re-run replaces its own earlier
    attempt. Anything else is a plain push.
    """
    target = f"HEAD:refs/heads/{branch}"

    def attempt():
        if not is_agent_branch(branch):
            return run_git(["push", "-u", "origin", target], cwd)
        expected = fetch_remote_branch(branch, cwd) or ""
        lease = f"--force-with-lease=refs/heads/{branch}:{expected}"
        return run_git(["push", lease, "-u", "origin", target], cwd)

    retry_linear(f"git push {branch}", attempt, PUSH_ATTEMPTS, PUSH_DELAY, sleep=sleep)


# ---------------------------------------------------------------------- #
# Branch naming                                                           #
# ---------------------------------------------------------------------- #


def branch_prefix(comment_body: str | None, issue_type: str | None = None) -> str:
    """Pick the semantic prefix for a new agent branch.

    The triggering comment's command phrase decides first, then the issue type
    reported by the issue-chatter agent, then DEFAULT_BRANCH_PREFIX.
    """
    text = comment_body or ""
    for pattern, prefix in BRANCH_PREFIX_RULES:
        if pattern.search(text):
            return prefix
    if issue_type:
        return ISSUE_TYPE_PREFIXES.get(issue_type.lower(), DEFAULT_BRANCH_PREFIX)
    return DEFAULT_BRANCH_PREFIX


def agent_branch_name(prefix: str, issue_number: int) -> str:
    return f"{AGENT_BRANCH_PREFIX}{prefix}/issue-{issue_number}"


def compare_url(server_url: str, repo: str, base: str, branch: str) -> str:
    return f"{server_url.rstrip('/')}/{repo}/compare/{base}...{branch}?expand=1"


# ---------------------------------------------------------------------- #
# Issue flow                                                              #
# ---------------------------------------------------------------------- #


def reconcile_issue_changes(
    platform,
    issue_number: int,
    issue_title: str,
    comment_body: str | None,
    issue_type: str | None,
    context_dir: str,
    cwd: str | Path = ".",
) -> ReconcileResult:
    try:
        base = platform.default_branch
        commit_all(f"Address #{issue_number}: {issue_title}", context_dir, cwd)
        if ahead_count(f"origin/{base}", cwd) == 0:
            logger.info("No commits ahead of %s; nothing to publish.", base)
            return ReconcileResult(status="no_changes")

        prefix = branch_prefix(comment_body, issue_type)
        branch = current_branch(cwd)
        if branch in ("HEAD", base):
            branch = agent_branch_name(prefix, issue_number)
            run_git(["checkout", "-B", branch], cwd)
        logger.info("Publishing changes on branch %s", branch)

        push_branch(branch, cwd)
    except (GitError, PlatformError) as e:
        logger.warning("Git reconciliation failed: %s", e)
        return ReconcileResult(status="failed", message=str(e))

    try:
        existing = platform.find_open_pull(branch)
        if existing is not None:
            logger.info("Reusing open pull request #%s", existing.number)
            return ReconcileResult(status="pr_existing", branch=branch, url=existing.html_url)
        pull = platform.create_pull(
            title=f"{prefix}: {issue_title}",
            body=f"Closes #{issue_number}\n\nChanges generated in response to #{issue_number}.",
            head=branch,
            base=base,
        )
    except PlatformError as e:
        logger.warning("Could not open a pull request for %s: %s", branch, e)
        return ReconcileResult(status="pushed", branch=branch, message=str(e))
    return ReconcileResult(status="pr_created", branch=branch, url=pull.html_url)


# ---------------------------------------------------------------------- #
# PR flow                                                                 #
# ---------------------------------------------------------------------- #


def checkout_state(pull) -> CheckoutState:
    """Compute the CheckoutState of a pull request. Forks are never pushable."""
    head_repo = pull.head.repo.full_name if pull.head.repo is not None else None
    return CheckoutState(
        base_branch=pull.base.ref,
        head_branch=pull.head.ref,
        head_repo=head_repo,
        can_push=head_repo is not None and head_repo == pull.base.repo.full_name,
    )


def prepare_pr_checkout(pull, cwd: str | Path = ".") -> CheckoutState:
    """Check out the PR's head branch before the agent runs, when it can be pushed to."""
    state = checkout_state(pull)
    if not state.can_push:
        logger.info("PR head lives in %s; changes will not be pushed.", state.head_repo or "a deleted fork")
        return state
    try:
        run_git(["fetch", "origin", f"{state.head_branch}:refs/remotes/origin/{state.head_branch}"], cwd)
        run_git(["checkout", "-B", state.head_branch, f"origin/{state.head_branch}"], cwd)
    except GitError as e:
        logger.warning("Could not check out %s: %s", state.head_branch, e)
    return state


def reconcile_pr_changes(
    checkout: CheckoutState,
    pr_number: int,
    repo: str,
    server_url: str,
    context_dir: str,
    cwd: str | Path = ".",
) -> ReconcileResult:
    if not checkout.can_push:
        return ReconcileResult(
            status="read_only",
            message="This pull request comes from a fork, so the changes were not pushed.",
        )

    try:
        committed = commit_all(f"Update PR #{pr_number}", context_dir, cwd)
        try:
            ahead = ahead_count(f"origin/{checkout.head_branch}", cwd)
        except GitError:
            ahead = 1 if committed else 0
        if ahead == 0:
            return ReconcileResult(status="no_changes", branch=checkout.head_branch)
    except GitError as e:
        logger.warning("Could not commit PR changes: %s", e)
        return ReconcileResult(status="failed", message=str(e))

    try:
        push_branch(checkout.head_branch, cwd)
        return ReconcileResult(status="pushed", branch=checkout.head_branch)
    except GitError as e:
        logger.warning("Push to %s failed: %s. Falling back to the current branch.", checkout.head_branch, e)

    try:
        branch = current_branch(cwd)
        if branch in ("HEAD", checkout.head_branch):
            branch = f"{AGENT_BRANCH_PREFIX}pr-{pr_number}-update"
            run_git(["checkout", "-B", branch], cwd)
        push_branch(branch, cwd)
    except GitError as e:
        logger.warning("Fallback push failed: %s", e)
        return ReconcileResult(status="failed", message=str(e))
    return ReconcileResult(
        status="fallback",
        branch=branch,
        url=compare_url(server_url, repo, checkout.head_branch, branch),
        message=f"Could not push to {checkout.head_branch}; changes were pushed to {branch} instead.",
    )
