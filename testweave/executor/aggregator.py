"""
Result Aggregation.

Derives summary statistics and category groupings from unit outcomes. Nothing
here is stored: every value is recomputed from the current outcome set.
"""

from typing import Dict, Iterable, List, Optional

from testweave.executor.types import OutcomeStatus, Summary, TestOutcome


def summarize(outcomes: Iterable[TestOutcome]) -> Summary:
    """
    Compute summary statistics for a set of outcomes.

    The pass rate is a percentage rounded to two decimals, 0.0 for an empty set.
    """
    outcomes = list(outcomes)
    total = len(outcomes)
    passed = sum(1 for o in outcomes if o.status == OutcomeStatus.PASSED)
    failed = total - passed
    pass_rate = round(passed / total * 100, 2) if total > 0 else 0.0
    return Summary(total=total, passed=passed, failed=failed, pass_rate=pass_rate)


def group_by_category(outcomes: Iterable[TestOutcome]) -> Dict[str, List[TestOutcome]]:
    """
    Group outcomes by unit category.

    Groups appear in the order their category is first seen; outcomes keep
    their arrival order within a group.
    """
    groups: Dict[str, List[TestOutcome]] = {}
    for outcome in outcomes:
        groups.setdefault(outcome.category.value, []).append(outcome)
    return groups


def failed(outcomes: Iterable[TestOutcome]) -> List[TestOutcome]:
    """Get the failed outcomes, in arrival order."""
    return [o for o in outcomes if o.status == OutcomeStatus.FAILED]


class ResultAggregator:
    """
    Collects outcomes as they arrive.

    Example:
        aggregator = ResultAggregator()
        outcomes = await scheduler.run(units, on_outcome=aggregator.add)
        print(aggregator.summary())
    """

    def __init__(self, outcomes: Optional[Iterable[TestOutcome]] = None) -> None:
        self._outcomes: List[TestOutcome] = list(outcomes or [])

    def add(self, outcome: TestOutcome) -> None:
        self._outcomes.append(outcome)

    @property
    def outcomes(self) -> List[TestOutcome]:
        return list(self._outcomes)

    def summary(self) -> Summary:
        return summarize(self._outcomes)

    def groups(self) -> Dict[str, List[TestOutcome]]:
        return group_by_category(self._outcomes)

    def failures(self) -> List[TestOutcome]:
        return failed(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)
