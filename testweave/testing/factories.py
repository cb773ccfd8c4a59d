"""Test factories for generating test data."""

from polyfactory import Use
from polyfactory.factories import DataclassFactory

from testweave.executor.types import (
    ErrorKind,
    ErrorSummary,
    OutcomeStatus,
    TestOutcome,
    TestUnit,
    UnitCategory,
)


def _noop() -> None:
    return None


class TestUnitFactory(DataclassFactory[TestUnit]):
    """Factory for TestUnit."""

    __test__ = False
    __model__ = TestUnit

    locator = Use(lambda: _noop)
    category = UnitCategory.API


class ErrorSummaryFactory(DataclassFactory[ErrorSummary]):
    """Factory for ErrorSummary."""

    __model__ = ErrorSummary

    kind = ErrorKind.OTHER
    detail = None


class TestOutcomeFactory(DataclassFactory[TestOutcome]):
    """Factory for TestOutcome."""

    __test__ = False
    __model__ = TestOutcome

    unit = TestUnitFactory
    status = OutcomeStatus.PASSED
    error = None
    duration_ms = 100
    retry_attempts = 0
