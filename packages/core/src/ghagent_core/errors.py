"""Error types and typed classification of outbound-call failures.

Every call to GitHub goes through classify() before the retry engine sees it.
The retry policy only looks at ErrorKind, so it never has to know what
PyGithub or requests exceptions look like.
"""

from __future__ import annotations

import errno
import socket
from dataclasses import dataclass
from enum import Enum

import requests
from github import GithubException, RateLimitExceededException


class ErrorKind(str, Enum):
    NETWORK_TRANSIENT = "network-transient"
    RATE_LIMITED = "rate-limited"
    SERVER_ERROR = "server-error"
    CLIENT_ERROR = "client-error"
    UNKNOWN = "unknown"


_RETRYABLE_KINDS = {ErrorKind.NETWORK_TRANSIENT, ErrorKind.RATE_LIMITED, ErrorKind.SERVER_ERROR}

_TRANSIENT_ERRNOS = {
    errno.ECONNRESET,
    errno.ECONNREFUSED,
    errno.ECONNABORTED,
    errno.ETIMEDOUT,
    errno.EPIPE,
    errno.EHOSTUNREACH,
    errno.ENETUNREACH,
}
# Temporary DNS failures surface as socket.gaierror carrying a getaddrinfo code.
_EAI_AGAIN = getattr(socket, "EAI_AGAIN", -3)


@dataclass(frozen=True)
class ClassifiedError:
    kind: ErrorKind
    message: str
    status: int | None = None

    @property
    def retryable(self) -> bool:
        return self.kind in _RETRYABLE_KINDS


class PlatformError(Exception):
    """A GitHub API call failed; carries the classified cause."""

    def __init__(self, operation: str, error: ClassifiedError):
        super().__init__(f"{operation} failed ({error.kind.value}): {error.message}")
        self.operation = operation
        self.error = error

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind

    @property
    def status(self) -> int | None:
        return self.error.status


class ModeDetectionError(Exception):
    """The triggering event cannot be mapped to an operating mode. Fatal."""


class AgentNotFoundError(Exception):
    """The agent executable could not be resolved. Fatal."""


class AgentProcessError(Exception):
    """The agent process exited with a non-zero status."""

    def __init__(self, returncode: int, log_path: str):
        super().__init__(f"Agent exited with status {returncode} (log: {log_path})")
        self.returncode = returncode
        self.log_path = log_path


class GitError(Exception):
    """A git subprocess exited with a non-zero status."""

    def __init__(self, args: list[str], returncode: int, stderr: str):
        super().__init__(f"git {' '.join(args)} failed ({returncode}): {stderr.strip()}")
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr


class RoundsExhausted(Exception):
    """The conversation reached its round ceiling. Not a failure."""

    def __init__(self, max_rounds: int):
        super().__init__(f"Max rounds ({max_rounds}) reached. Use /reset to continue.")
        self.max_rounds = max_rounds


def _github_message(exc: GithubException) -> str:
    data = exc.data
    if isinstance(data, dict):
        parts = [str(data.get("message", ""))]
        for err in data.get("errors") or []:
            if isinstance(err, dict):
                parts.append(str(err.get("message", "")))
            else:
                parts.append(str(err))
        return " ".join(p for p in parts if p).strip() or str(exc)
    return str(data or exc)


def _classify_status(status: int | None, message: str) -> ErrorKind:
    if status is None:
        return ErrorKind.UNKNOWN
    if status == 408:
        return ErrorKind.NETWORK_TRANSIENT
    if status == 429:
        return ErrorKind.RATE_LIMITED
    if status == 403 and "rate limit" in message.lower():
        return ErrorKind.RATE_LIMITED
    if status >= 500:
        return ErrorKind.SERVER_ERROR
    if 400 <= status < 500:
        return ErrorKind.CLIENT_ERROR
    return ErrorKind.UNKNOWN


def classify(exc: BaseException) -> ClassifiedError:
    """Map any exception raised by an outbound call onto a ClassifiedError."""
    if isinstance(exc, PlatformError):
        return exc.error

    if isinstance(exc, RateLimitExceededException):
        return ClassifiedError(ErrorKind.RATE_LIMITED, _github_message(exc), exc.status)

    if isinstance(exc, GithubException):
        message = _github_message(exc)
        return ClassifiedError(_classify_status(exc.status, message), message, exc.status)

    if isinstance(exc, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return ClassifiedError(ErrorKind.NETWORK_TRANSIENT, str(exc))

    if isinstance(exc, requests.exceptions.HTTPError) and exc.response is not None:
        status = exc.response.status_code
        return ClassifiedError(_classify_status(status, str(exc)), str(exc), status)

    if isinstance(exc, (TimeoutError, ConnectionError)):
        return ClassifiedError(ErrorKind.NETWORK_TRANSIENT, str(exc))

    if isinstance(exc, OSError) and (exc.errno in _TRANSIENT_ERRNOS or exc.errno == _EAI_AGAIN):
        return ClassifiedError(ErrorKind.NETWORK_TRANSIENT, str(exc))

    return ClassifiedError(ErrorKind.UNKNOWN, str(exc))


def is_retryable(exc: BaseException) -> bool:
    """Default retry predicate: network-transient, rate-limited and server errors."""
    return classify(exc).retryable
