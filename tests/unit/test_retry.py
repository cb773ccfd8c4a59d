"""Tests for retry policy and error classification."""

import asyncio
import socket
from unittest.mock import AsyncMock, patch

import pytest

from testweave.executor.errors import (
    MalformedUnitError,
    ResourceConstructionError,
    UnitExecutionError,
)
from testweave.executor.retry import RetryPolicy, classify_error, is_transient
from testweave.executor.types import ErrorKind, RetryConfig


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("Navigation timeout of 30000 ms exceeded", ErrorKind.TIMEOUT),
        ("Network request failed", ErrorKind.NETWORK),
        ("read ECONNRESET", ErrorKind.CONNECTION_RESET),
        ("getaddrinfo ENOTFOUND api.example.com", ErrorKind.NAME_RESOLUTION),
        ("Node is either not clickable or not an HTMLElement", ErrorKind.NOT_INTERACTABLE),
        ("element not interactable", ErrorKind.NOT_INTERACTABLE),
        ("expected 200, got 404", ErrorKind.OTHER),
    ],
)
def test_classifies_untagged_errors_by_message(message: str, expected: ErrorKind) -> None:
    """Untagged errors are classified by case-insensitive message patterns."""
    assert classify_error(RuntimeError(message)) == expected


def test_explicit_kind_wins_over_message() -> None:
    """A kind attached at the point of failure is used as-is."""
    error = UnitExecutionError("timeout while waiting", kind=ErrorKind.ASSERTION)

    assert classify_error(error) == ErrorKind.ASSERTION


def test_classifies_by_exception_type() -> None:
    """Well-known exception types map to kinds without message matching."""
    assert classify_error(asyncio.TimeoutError()) == ErrorKind.TIMEOUT
    assert classify_error(ConnectionResetError("peer closed")) == ErrorKind.CONNECTION_RESET
    assert classify_error(socket.gaierror("lookup failed")) == ErrorKind.NAME_RESOLUTION


def test_assertion_errors_are_terminal_unless_message_matches() -> None:
    """Assertion failures are terminal; a transient phrase still matches."""
    assert classify_error(AssertionError("title mismatch")) == ErrorKind.ASSERTION
    assert classify_error(AssertionError("request timeout")) == ErrorKind.TIMEOUT


def test_malformed_unit_is_never_transient() -> None:
    """Malformed units carry their own terminal kind."""
    error = MalformedUnitError("login", "timeout module has no run()")

    assert classify_error(error) == ErrorKind.MALFORMED_UNIT
    assert not is_transient(error)


def test_resource_construction_error_follows_its_cause() -> None:
    """Construction failures are retryable only when their cause is transient."""
    transient = ResourceConstructionError("browser", TimeoutError("launch timeout"))
    terminal = ResourceConstructionError("browser", FileNotFoundError("chromium missing"))

    assert classify_error(transient) == ErrorKind.TIMEOUT
    assert classify_error(terminal) == ErrorKind.RESOURCE_CONSTRUCTION


def test_should_retry_transient_until_budget_exhausted() -> None:
    """Transient errors are retried while attempts remain."""
    policy = RetryPolicy(RetryConfig(max_retries=2))
    error = RuntimeError("socket timeout")

    assert policy.should_retry(error, 0)
    assert policy.should_retry(error, 1)
    assert not policy.should_retry(error, 2)


def test_should_not_retry_terminal_errors() -> None:
    """Terminal errors are never retried."""
    policy = RetryPolicy()

    assert not policy.should_retry(ValueError("bad payload"), 0)
    assert not policy.should_retry(ErrorKind.ASSERTION, 0)


def test_should_retry_accepts_budget_override() -> None:
    """The max_retries argument overrides the configured budget."""
    policy = RetryPolicy(RetryConfig(max_retries=2))

    assert policy.should_retry(ErrorKind.NETWORK, 3, max_retries=5)
    assert not policy.should_retry(ErrorKind.NETWORK, 0, max_retries=0)


def test_disabled_policy_never_retries() -> None:
    """A disabled policy has no retry budget."""
    policy = RetryPolicy(RetryConfig(enabled=False))

    assert policy.max_retries == 0
    assert not policy.should_retry(ErrorKind.TIMEOUT, 0)


def test_backoff_grows_linearly() -> None:
    """Delay is base times attempt index."""
    policy = RetryPolicy(RetryConfig(base_delay_ms=1000))

    assert policy.backoff_delay(0) == 0.0
    assert policy.backoff_delay(1) == 1.0
    assert policy.backoff_delay(2) == 2.0
    assert policy.backoff_delay(5) == 5.0


def test_backoff_is_monotonic() -> None:
    """Consecutive retries never wait less than the previous one."""
    policy = RetryPolicy(RetryConfig(base_delay_ms=250))
    delays = [policy.backoff_delay(i) for i in range(10)]

    assert delays == sorted(delays)


def test_backoff_rejects_negative_index() -> None:
    """Negative attempt indexes are invalid."""
    with pytest.raises(ValueError, match="attempt_index"):
        RetryPolicy().backoff_delay(-1)


async def test_wait_sleeps_for_backoff_delay() -> None:
    """wait() sleeps for the computed delay."""
    policy = RetryPolicy(RetryConfig(base_delay_ms=500))

    with patch("testweave.executor.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        await policy.wait(2)

    sleep.assert_awaited_once_with(1.0)


def test_retry_config_validation() -> None:
    """Negative retry settings are rejected."""
    with pytest.raises(ValueError, match="max_retries"):
        RetryConfig(max_retries=-1)
    with pytest.raises(ValueError, match="base_delay_ms"):
        RetryConfig(base_delay_ms=-5)
