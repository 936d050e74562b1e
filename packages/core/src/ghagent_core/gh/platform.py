"""GitHub access for the run pipeline.

Every call is wrapped twice: failures are first classified into a PlatformError
(so nothing above this module sees PyGithub or requests exception shapes), then
retried by with_retry() according to the error kind.
"""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

import requests
from github import Auth, Github, GithubException

from ghagent_core.errors import PlatformError, classify
from ghagent_core.retry import RetryPolicy, with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")


def get_client(token: str, timeout: int = 15) -> Github:
    # PyGithub's own urllib3 retry is disabled; with_retry() owns retrying.
    return Github(auth=Auth.Token(token), timeout=timeout, retry=None)


class GitHubPlatform:
    """Thin, retrying facade over one repository."""

    def __init__(self, repo_name: str, client: Github, policy: RetryPolicy | None = None):
        self.repo_name = repo_name
        self._gh = client
        self._policy = policy or RetryPolicy()
        self._repo = None

    @classmethod
    def from_token(cls, repo_name: str, token: str, timeout: int = 15, policy: RetryPolicy | None = None):
        return cls(repo_name, get_client(token, timeout), policy)

    # ------------------------------------------------------------------ #
    # Call plumbing                                                        #
    # ------------------------------------------------------------------ #

    def _call(self, operation: str, fn: Callable[[], T]) -> T:
        def attempt() -> T:
            try:
                return fn()
            except (GithubException, requests.exceptions.RequestException, OSError) as e:
                raise PlatformError(operation, classify(e)) from e

        return with_retry(operation, attempt, self._policy)

    @property
    def repo(self):
        if self._repo is None:
            self._repo = self._call("get_repo", lambda: self._gh.get_repo(self.repo_name))
        return self._repo

    @property
    def owner(self) -> str:
        return self.repo_name.split("/", 1)[0]

    @property
    def default_branch(self) -> str:
        return self.repo.default_branch

    # ------------------------------------------------------------------ #
    # Issues and comments                                                  #
    # ------------------------------------------------------------------ #

    def get_issue(self, number: int):
        return self._call("get_issue", lambda: self.repo.get_issue(number))

    def get_pull(self, number: int):
        return self._call("get_pull", lambda: self.repo.get_pull(number))

    def list_comment_bodies(self, number: int) -> list[str]:
        """All comment bodies on issue/PR ``number``, oldest first."""
        issue = self.get_issue(number)
        comments = self._call("list_comments", lambda: list(issue.get_comments()))
        return [c.body or "" for c in comments]

    def create_comment(self, number: int, body: str):
        issue = self.get_issue(number)
        return self._call("create_comment", lambda: issue.create_comment(body))

    def get_label_names(self, number: int) -> set[str]:
        issue = self.get_issue(number)
        return self._call("get_labels", lambda: {label.name for label in issue.get_labels()})

    def add_labels(self, number: int, labels: list[str]) -> None:
        issue = self.get_issue(number)
        self._call("add_labels", lambda: issue.add_to_labels(*labels))

    def remove_label(self, number: int, label: str) -> None:
        issue = self.get_issue(number)
        self._call("remove_label", lambda: issue.remove_from_labels(label))

    def close_issue(self, number: int) -> None:
        issue = self.get_issue(number)
        self._call("close_issue", lambda: issue.edit(state="closed"))

    # ------------------------------------------------------------------ #
    # Pull requests                                                        #
    # ------------------------------------------------------------------ #

    def create_review(self, number: int, body: str, event: str):
        pr = self.get_pull(number)
        return self._call("create_review", lambda: pr.create_review(body=body, event=event))

    def list_pull_files(self, number: int) -> list:
        pr = self.get_pull(number)
        return self._call("list_pull_files", lambda: list(pr.get_files()))

    def find_open_pull(self, branch: str):
        """Return the open pull request whose head is ``branch``, or None."""
        head = f"{self.owner}:{branch}"
        pulls = self._call("find_open_pull", lambda: list(self.repo.get_pulls(state="open", head=head)))
        return pulls[0] if pulls else None

    def create_pull(self, title: str, body: str, head: str, base: str):
        return self._call(
            "create_pull",
            lambda: self.repo.create_pull(title=title, body=body, head=head, base=base),
        )
