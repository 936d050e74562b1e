"""Tests for typed error classification."""

import errno
import socket

import pytest
import requests
from github import GithubException, RateLimitExceededException

from ghagent_core.errors import ClassifiedError, ErrorKind, PlatformError, classify, is_retryable


def gh_error(status, message="boom"):
    return GithubException(status, {"message": message}, None)


@pytest.mark.parametrize(
    "status,kind",
    [
        (408, ErrorKind.NETWORK_TRANSIENT),
        (429, ErrorKind.RATE_LIMITED),
        (500, ErrorKind.SERVER_ERROR),
        (502, ErrorKind.SERVER_ERROR),
        (503, ErrorKind.SERVER_ERROR),
        (404, ErrorKind.CLIENT_ERROR),
        (422, ErrorKind.CLIENT_ERROR),
    ],
)
def test_github_status_classification(status, kind):
    assert classify(gh_error(status)).kind is kind


def test_403_rate_limit_message_is_rate_limited():
    error = classify(gh_error(403, "API rate limit exceeded for installation"))
    assert error.kind is ErrorKind.RATE_LIMITED
    assert error.retryable


def test_plain_403_is_client_error():
    error = classify(gh_error(403, "Resource not accessible by integration"))
    assert error.kind is ErrorKind.CLIENT_ERROR
    assert not error.retryable


def test_rate_limit_exception():
    exc = RateLimitExceededException(403, {"message": "secondary rate limit"}, None)
    assert classify(exc).kind is ErrorKind.RATE_LIMITED


def test_message_includes_validation_errors():
    exc = GithubException(
        422,
        {"message": "Unprocessable Entity", "errors": ["Can not approve your own pull request"]},
        None,
    )
    error = classify(exc)
    assert "Can not approve your own pull request" in error.message
    assert error.status == 422


def test_requests_connection_error_is_transient():
    assert classify(requests.exceptions.ConnectionError("reset")).kind is ErrorKind.NETWORK_TRANSIENT


def test_requests_timeout_is_transient():
    assert classify(requests.exceptions.ReadTimeout("slow")).kind is ErrorKind.NETWORK_TRANSIENT


@pytest.mark.parametrize("code", [errno.ECONNRESET, errno.ETIMEDOUT, errno.ECONNREFUSED])
def test_transient_errno(code):
    assert classify(OSError(code, "network")).kind is ErrorKind.NETWORK_TRANSIENT


def test_dns_try_again_is_transient():
    exc = socket.gaierror(socket.EAI_AGAIN, "Temporary failure in name resolution")
    assert classify(exc).kind is ErrorKind.NETWORK_TRANSIENT


def test_unrelated_oserror_is_unknown():
    assert classify(OSError(errno.ENOENT, "missing")).kind is ErrorKind.UNKNOWN


def test_arbitrary_exception_is_unknown_and_not_retryable():
    assert classify(ValueError("nope")).kind is ErrorKind.UNKNOWN
    assert not is_retryable(ValueError("nope"))


def test_platform_error_passes_through():
    inner = ClassifiedError(ErrorKind.SERVER_ERROR, "bad gateway", 502)
    exc = PlatformError("create_comment", inner)
    assert classify(exc) is inner
    assert is_retryable(exc)
    assert exc.status == 502
    assert "create_comment" in str(exc)
