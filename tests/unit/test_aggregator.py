"""Tests for result aggregation."""

from testweave.executor.aggregator import (
    ResultAggregator,
    failed,
    group_by_category,
    summarize,
)
from testweave.executor.types import ErrorSummary, OutcomeStatus, UnitCategory
from testweave.testing.factories import TestOutcomeFactory, TestUnitFactory


def _outcome(name: str, status: OutcomeStatus = OutcomeStatus.PASSED, category=UnitCategory.API):
    error = ErrorSummary("boom") if status == OutcomeStatus.FAILED else None
    return TestOutcomeFactory.build(
        unit=TestUnitFactory.build(name=name, category=category),
        status=status,
        error=error,
    )


def test_summarize_counts() -> None:
    """Totals, passes, failures and the pass rate are derived from outcomes."""
    outcomes = [
        _outcome("a"),
        _outcome("b", OutcomeStatus.FAILED),
        _outcome("c"),
    ]

    summary = summarize(outcomes)

    assert summary.total == 3
    assert summary.passed == 2
    assert summary.failed == 1
    assert summary.passed + summary.failed == summary.total
    assert summary.pass_rate == 66.67


def test_summarize_empty() -> None:
    """An empty run has a zero pass rate."""
    summary = summarize([])

    assert (summary.total, summary.passed, summary.failed) == (0, 0, 0)
    assert summary.pass_rate == 0.0


def test_summarize_is_repeatable() -> None:
    """Summarizing the same outcomes twice yields the same values."""
    outcomes = TestOutcomeFactory.batch(4)

    assert summarize(outcomes) == summarize(outcomes)
    assert summarize(outcomes).pass_rate == 100.0


def test_group_by_category_keeps_first_seen_order() -> None:
    """Groups follow the first appearance of each category."""
    outcomes = [
        _outcome("login", category=UnitCategory.UI),
        _outcome("users", category=UnitCategory.API),
        _outcome("cart", category=UnitCategory.UI),
        _outcome("misc", category=UnitCategory.UNKNOWN),
    ]

    groups = group_by_category(outcomes)

    assert list(groups) == ["ui", "api", "unknown"]
    assert [o.name for o in groups["ui"]] == ["login", "cart"]


def test_failed_keeps_arrival_order() -> None:
    outcomes = [
        _outcome("a", OutcomeStatus.FAILED),
        _outcome("b"),
        _outcome("c", OutcomeStatus.FAILED),
    ]

    assert [o.name for o in failed(outcomes)] == ["a", "c"]


def test_result_aggregator_collects_outcomes() -> None:
    """The aggregator recomputes from the outcomes it holds."""
    aggregator = ResultAggregator()
    aggregator.add(_outcome("a"))
    assert aggregator.summary().total == 1

    aggregator.add(_outcome("b", OutcomeStatus.FAILED))

    assert len(aggregator) == 2
    assert aggregator.summary().failed == 1
    assert [o.name for o in aggregator.failures()] == ["b"]
    assert list(aggregator.groups()) == ["api"]


def test_result_aggregator_outcomes_is_a_copy() -> None:
    aggregator = ResultAggregator([_outcome("a")])

    aggregator.outcomes.clear()

    assert len(aggregator) == 1
