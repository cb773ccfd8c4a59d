"""
Type definitions for the test orchestration engine.

Contains enums, dataclasses, and type definitions used throughout the executor module.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, Sequence, TypeVar, Union

R = TypeVar("R")

# A locator is whatever the catalog knows how to turn into an invocable:
# a path to a test module or a factory producing the test callable.
UnitLocator = Union[Path, str, Callable[..., Any]]


class UnitCategory(str, Enum):
    """Test unit category."""
    UI = "ui"
    API = "api"
    UNKNOWN = "unknown"


class OutcomeStatus(str, Enum):
    """Final status of a test unit."""
    PASSED = "passed"
    FAILED = "failed"


class ErrorKind(str, Enum):
    """Structured tag attached to every captured failure."""
    TIMEOUT = "timeout"
    NETWORK = "network"
    CONNECTION_RESET = "connection_reset"
    NAME_RESOLUTION = "name_resolution"
    NOT_INTERACTABLE = "not_interactable"
    MALFORMED_UNIT = "malformed_unit"
    RESOURCE_CONSTRUCTION = "resource_construction"
    ASSERTION = "assertion"
    OTHER = "other"


@dataclass(frozen=True)
class TestUnit:
    """One independently executable test."""

    __test__ = False

    name: str
    locator: UnitLocator
    category: UnitCategory = UnitCategory.UNKNOWN

    @property
    def file(self) -> Optional[str]:
        """Source file of the unit, if it was discovered on disk."""
        if isinstance(self.locator, (str, Path)):
            return str(self.locator)
        return None


@dataclass(frozen=True)
class ErrorSummary:
    """Message, kind and optional trace of a failed attempt."""
    message: str
    kind: ErrorKind = ErrorKind.OTHER
    detail: Optional[str] = None


@dataclass(frozen=True)
class TestOutcome:
    """Recorded result of running one unit to its final (post-retry) state."""

    __test__ = False

    unit: TestUnit
    status: OutcomeStatus
    duration_ms: int
    error: Optional[ErrorSummary] = None
    retry_attempts: int = 0
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        """Validate outcome fields."""
        if self.retry_attempts < 0:
            raise ValueError(
                f"retry_attempts must be non-negative, got {self.retry_attempts}"
            )
        if self.duration_ms < 0:
            raise ValueError(f"duration_ms must be non-negative, got {self.duration_ms}")

    @property
    def name(self) -> str:
        return self.unit.name

    @property
    def category(self) -> UnitCategory:
        return self.unit.category

    @property
    def passed(self) -> bool:
        return self.status == OutcomeStatus.PASSED

    def to_dict(self) -> Dict[str, Any]:
        """Render the outcome in the shape used by the JSON report."""
        return {
            "name": self.unit.name,
            "type": self.unit.category.value,
            "file": self.unit.file,
            "status": self.status.value,
            "duration": self.duration_ms,
            "error": self.error.message if self.error else None,
            "errorKind": self.error.kind.value if self.error else None,
            "details": self.error.detail if self.error else None,
            "retryCount": self.retry_attempts,
        }


@dataclass
class PooledResource(Generic[R]):
    """A resource handle checked out of a ResourcePool."""
    handle: R
    acquired_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class Summary:
    """Summary statistics derived from a set of outcomes."""
    total: int
    passed: int
    failed: int
    pass_rate: float  # Percentage, two decimals

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "passRate": self.pass_rate,
        }


@dataclass(frozen=True)
class RunReport:
    """Outcomes of a whole orchestration run plus its wall-clock duration."""
    outcomes: Sequence[TestOutcome]
    duration_ms: int
    summary: Summary
    started_at: datetime
    finished_at: datetime

    @property
    def success(self) -> bool:
        """Check if no unit failed."""
        return self.summary.failed == 0

    @property
    def exit_code(self) -> int:
        """Process exit code: 0 when every unit passed, 1 otherwise."""
        return 0 if self.success else 1


@dataclass
class SchedulerConfig:
    """Scheduler configuration."""
    max_concurrency: int = 4

    def __post_init__(self) -> None:
        """Validate scheduler configuration."""
        if self.max_concurrency <= 0:
            raise ValueError(
                f"max_concurrency must be positive, got {self.max_concurrency}"
            )


@dataclass
class RetryConfig:
    """Retry policy configuration."""
    enabled: bool = True
    max_retries: int = 2  # Additional attempts beyond the first
    base_delay_ms: int = 1000

    def __post_init__(self) -> None:
        """Validate retry configuration."""
        if self.max_retries < 0:
            raise ValueError(
                f"max_retries must be non-negative, got {self.max_retries}"
            )
        if self.base_delay_ms < 0:
            raise ValueError(
                f"base_delay_ms must be non-negative, got {self.base_delay_ms}"
            )


@dataclass
class PoolConfig:
    """Resource pool configuration."""
    capacity: int = 3  # Idle resources kept for reuse
    http_max_connections: int = 10
    http_keepalive_timeout_s: float = 15.0
    headless: bool = True
    browser_args: List[str] = field(
        default_factory=lambda: ["--no-sandbox", "--disable-setuid-sandbox"]
    )

    def __post_init__(self) -> None:
        """Validate pool configuration."""
        if self.capacity < 0:
            raise ValueError(f"capacity must be non-negative, got {self.capacity}")
        if self.http_max_connections <= 0:
            raise ValueError(
                f"http_max_connections must be positive, got {self.http_max_connections}"
            )
        if self.http_keepalive_timeout_s <= 0:
            raise ValueError(
                f"http_keepalive_timeout_s must be positive, "
                f"got {self.http_keepalive_timeout_s}"
            )
