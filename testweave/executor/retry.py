"""
Retry Policy.

Classifies failures into structured error kinds and decides whether a unit
should be rerun, and how long to wait before the next attempt.
"""

import asyncio
import socket
from typing import Optional, Tuple, Union

from loguru import logger

from testweave.executor.errors import ResourceConstructionError
from testweave.executor.types import ErrorKind, RetryConfig


# Substring patterns matched case-insensitively against untagged error messages.
MESSAGE_PATTERNS: Tuple[Tuple[str, ErrorKind], ...] = (
    ("timeout", ErrorKind.TIMEOUT),
    ("timed out", ErrorKind.TIMEOUT),
    ("network", ErrorKind.NETWORK),
    ("econnreset", ErrorKind.CONNECTION_RESET),
    ("connection reset", ErrorKind.CONNECTION_RESET),
    ("enotfound", ErrorKind.NAME_RESOLUTION),
    ("name or service not known", ErrorKind.NAME_RESOLUTION),
    ("not clickable", ErrorKind.NOT_INTERACTABLE),
    ("not interactable", ErrorKind.NOT_INTERACTABLE),
)

TRANSIENT_KINDS = frozenset({
    ErrorKind.TIMEOUT,
    ErrorKind.NETWORK,
    ErrorKind.CONNECTION_RESET,
    ErrorKind.NAME_RESOLUTION,
    ErrorKind.NOT_INTERACTABLE,
})


def _classify_message(message: str) -> Optional[ErrorKind]:
    lowered = message.lower()
    for pattern, kind in MESSAGE_PATTERNS:
        if pattern in lowered:
            return kind
    return None


def classify_error(error: BaseException) -> ErrorKind:
    """
    Attach an ErrorKind to an exception.

    Exceptions that already carry a kind (UnitExecutionError, MalformedUnitError)
    keep it. Otherwise well-known exception types are mapped directly and the
    message is matched against MESSAGE_PATTERNS.

    Args:
        error: The exception raised by a unit attempt.

    Returns:
        The structured kind of the failure.
    """
    kind = getattr(error, "kind", None)
    if isinstance(kind, ErrorKind):
        return kind

    if isinstance(error, ResourceConstructionError):
        cause_kind = classify_error(error.cause)
        if cause_kind in TRANSIENT_KINDS:
            return cause_kind
        return ErrorKind.RESOURCE_CONSTRUCTION

    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return ErrorKind.TIMEOUT
    if isinstance(error, ConnectionResetError):
        return ErrorKind.CONNECTION_RESET
    if isinstance(error, socket.gaierror):
        return ErrorKind.NAME_RESOLUTION

    matched = _classify_message(str(error))
    if matched is not None:
        return matched

    if isinstance(error, AssertionError):
        return ErrorKind.ASSERTION
    return ErrorKind.OTHER


def is_transient(error: Union[BaseException, ErrorKind]) -> bool:
    """Check if an error (or error kind) is worth retrying."""
    kind = error if isinstance(error, ErrorKind) else classify_error(error)
    return kind in TRANSIENT_KINDS


class RetryPolicy:
    """
    Linear-backoff retry policy.

    A failed attempt is retried only when its kind is transient and the
    retry budget is not exhausted. The delay before retry ``n`` (1-based) is
    ``base_delay_ms * n``.

    Example:
        policy = RetryPolicy(RetryConfig(max_retries=2, base_delay_ms=500))
        policy.should_retry(TimeoutError("navigation timeout"), 0)  # True
        policy.backoff_delay(2)  # 1.0 (seconds)
    """

    def __init__(self, config: Optional[RetryConfig] = None) -> None:
        self.config = config or RetryConfig()

    @property
    def max_retries(self) -> int:
        """Number of additional attempts allowed after the first."""
        if not self.config.enabled:
            return 0
        return self.config.max_retries

    def should_retry(
        self,
        error: Union[BaseException, ErrorKind],
        attempt_index: int,
        max_retries: Optional[int] = None,
    ) -> bool:
        """
        Decide whether the attempt that just failed should be rerun.

        Args:
            error: The exception (or its kind) raised by the failed attempt.
            attempt_index: 0-based index of the failed attempt.
            max_retries: Overrides the configured retry budget.

        Returns:
            True if another attempt should be made.
        """
        if not self.config.enabled:
            return False
        budget = self.config.max_retries if max_retries is None else max_retries
        if attempt_index >= budget:
            return False
        return is_transient(error)

    def backoff_delay(self, attempt_index: int) -> float:
        """
        Get the delay in seconds before retry number ``attempt_index``.

        Grows linearly with the attempt index.
        """
        if attempt_index < 0:
            raise ValueError(f"attempt_index must be non-negative, got {attempt_index}")
        return self.config.base_delay_ms * attempt_index / 1000.0

    async def wait(self, attempt_index: int) -> None:
        """Sleep for the backoff delay of retry number ``attempt_index``."""
        delay = self.backoff_delay(attempt_index)
        logger.debug(f"Backing off {delay:.2f}s before retry {attempt_index}")
        await asyncio.sleep(delay)
