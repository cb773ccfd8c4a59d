"""
Error definitions for the test orchestration engine.

Contains custom exception classes for unit execution, resource and configuration errors.
"""

from typing import Optional

from testweave.executor.types import ErrorKind


class TestweaveError(Exception):
    """Base exception for orchestration errors."""
    pass


class UnitExecutionError(TestweaveError):
    """Raised by a test body to report a failure with an explicit kind."""

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.OTHER,
        detail: Optional[str] = None,
    ):
        self.message = message
        self.kind = kind
        self.detail = detail
        super().__init__(message)


class MalformedUnitError(TestweaveError):
    """Raised when a unit's locator does not resolve to an invocable."""

    kind = ErrorKind.MALFORMED_UNIT

    def __init__(self, unit_name: str, message: str, cause: Exception = None):
        self.unit_name = unit_name
        self.cause = cause
        super().__init__(f"Malformed unit {unit_name}: {message}")


class ResourceError(TestweaveError):
    """Base exception for resource pool errors."""
    pass


class ResourceConstructionError(ResourceError):
    """Raised when the underlying resource cannot be created.

    The original message is kept verbatim so the failure is classified the
    same way as if the test body had raised it.
    """

    def __init__(self, resource_name: str, cause: Exception):
        self.resource_name = resource_name
        self.cause = cause
        super().__init__(str(cause) or f"Failed to create {resource_name}")


class ConfigError(TestweaveError):
    """Raised when the project configuration cannot be loaded."""

    def __init__(self, path: str, message: str):
        self.path = path
        super().__init__(f"Invalid configuration {path}: {message}")
