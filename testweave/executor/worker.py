"""
Unit Worker.

Runs a single test unit to its final state: resolves a fresh callable for
every attempt, hands it a shared-resource handle, retries transient failures
and builds the unit's TestOutcome.
"""

import asyncio
import inspect
import time
import traceback
from datetime import datetime
from functools import partial
from typing import Any, Callable, Optional

from loguru import logger

from testweave.executor.catalog import TestCatalog
from testweave.executor.errors import MalformedUnitError
from testweave.executor.pool import BlockingSharedResources, SharedResources
from testweave.executor.resources import ResourceManager
from testweave.executor.retry import RetryPolicy, classify_error
from testweave.executor.types import (
    ErrorSummary,
    OutcomeStatus,
    TestOutcome,
    TestUnit,
)


class ExecutionContext:
    """
    Execution context for one unit.

    Tracks timing across all attempts and the error of the latest one.
    """

    def __init__(self, unit: TestUnit) -> None:
        self.unit = unit
        self.start_time: Optional[datetime] = None
        self.end_time: Optional[datetime] = None
        self.attempts = 0
        self.error: Optional[ErrorSummary] = None
        self._started: Optional[float] = None
        self._finished: Optional[float] = None

    def start(self) -> None:
        """Mark the start of execution."""
        self.start_time = datetime.now()
        self._started = time.monotonic()

    def begin_attempt(self) -> None:
        self.attempts += 1
        self.error = None

    def fail(self, error: BaseException) -> ErrorSummary:
        """Record the error of the current attempt."""
        detail = "".join(
            traceback.format_exception(type(error), error, error.__traceback__)
        )
        self.error = ErrorSummary(
            message=str(error) or type(error).__name__,
            kind=classify_error(error),
            detail=detail,
        )
        return self.error

    def finish(self) -> None:
        """Mark the end of execution."""
        self.end_time = datetime.now()
        self._finished = time.monotonic()

    @property
    def duration_ms(self) -> int:
        """Get execution duration in milliseconds."""
        if self._started is None or self._finished is None:
            return 0
        return int((self._finished - self._started) * 1000)

    @property
    def retry_attempts(self) -> int:
        return max(0, self.attempts - 1)

    @property
    def success(self) -> bool:
        """Check if the latest attempt succeeded."""
        return self.error is None

    def to_outcome(self) -> TestOutcome:
        now = datetime.now()
        return TestOutcome(
            unit=self.unit,
            status=OutcomeStatus.PASSED if self.success else OutcomeStatus.FAILED,
            duration_ms=self.duration_ms,
            error=self.error,
            retry_attempts=self.retry_attempts,
            started_at=self.start_time or now,
            finished_at=self.end_time or now,
        )


def _accepts_argument(func: Callable[..., Any]) -> bool:
    """Check if a test callable requires the shared-resource handle."""
    try:
        signature = inspect.signature(func)
    except (TypeError, ValueError):
        return False
    positional = (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
    return any(
        p.kind == inspect.Parameter.VAR_POSITIONAL
        or (p.kind in positional and p.default is inspect.Parameter.empty)
        for p in signature.parameters.values()
    )


class UnitWorker:
    """
    Executes test units with retry.

    Every exception raised while loading or running a unit is captured and
    turned into a failed outcome; ``execute`` never raises for a unit failure.

    Example:
        worker = UnitWorker(TestCatalog("tests/e2e"), RetryPolicy())
        outcome = await worker.execute(unit)
    """

    def __init__(
        self,
        catalog: TestCatalog,
        retry_policy: Optional[RetryPolicy] = None,
        resources: Optional[ResourceManager] = None,
    ) -> None:
        """
        Initialize the unit worker.

        Args:
            catalog: Resolves unit locators to callables.
            retry_policy: Decides whether failed attempts are rerun.
            resources: Shared resources handed to one-argument tests.
        """
        self.catalog = catalog
        self.retry_policy = retry_policy or RetryPolicy()
        self.resources = resources

    async def execute(self, unit: TestUnit) -> TestOutcome:
        """
        Run a unit until it passes, fails terminally or runs out of retries.

        Args:
            unit: The unit to execute.

        Returns:
            The unit's single TestOutcome.
        """
        context = ExecutionContext(unit)
        context.start()
        attempt = 0

        while True:
            context.begin_attempt()
            try:
                await self._run_attempt(unit)
            except (asyncio.CancelledError, KeyboardInterrupt, SystemExit):
                raise
            except BaseException as e:
                error = context.fail(e)
                if self.retry_policy.should_retry(error.kind, attempt):
                    attempt += 1
                    logger.warning(
                        f"Retrying {unit.name} ({attempt}/{self.retry_policy.max_retries}) "
                        f"after {error.kind.value} error: {error.message}"
                    )
                    await self.retry_policy.wait(attempt)
                    continue
                logger.error(f"{unit.name} failed: {error.message}")
            else:
                logger.info(f"{unit.name} passed")
            break

        context.finish()
        return context.to_outcome()

    async def _run_attempt(self, unit: TestUnit) -> None:
        """Load a fresh callable for the unit and run it once."""
        func = self.catalog.load(unit)
        if not callable(func):
            raise MalformedUnitError(unit.name, "locator did not resolve to a callable")

        shared: Optional[SharedResources] = None
        if _accepts_argument(func):
            if self.resources is None:
                raise MalformedUnitError(
                    unit.name, "test expects shared resources but none are configured"
                )
            shared = self.resources.session()

        try:
            if inspect.iscoroutinefunction(func):
                await func(*((shared,) if shared is not None else ()))
            else:
                # Runs in a worker thread, so it gets the blocking view.
                loop = asyncio.get_running_loop()
                args = (BlockingSharedResources(shared, loop),) if shared is not None else ()
                result = await loop.run_in_executor(None, partial(func, *args))
                if inspect.isawaitable(result):
                    await result
        finally:
            if shared is not None:
                await shared.close()

    @staticmethod
    def failed_outcome(unit: TestUnit, error: BaseException) -> TestOutcome:
        """Build a failed outcome for an error raised outside a unit attempt."""
        context = ExecutionContext(unit)
        context.start()
        context.begin_attempt()
        context.fail(error)
        logger.error(f"Unexpected error while executing {unit.name}: {error}")
        context.finish()
        return context.to_outcome()
