"""
Test Runner.

Wires the catalog, resource pool, retry policy, scheduler, aggregator and
reporter into one orchestration run.
"""

import time
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Union

from loguru import logger

from testweave.config import ProjectConfig
from testweave.executor.aggregator import ResultAggregator
from testweave.executor.catalog import TestCatalog, filter_units
from testweave.executor.reporter import Reporter
from testweave.executor.resources import ResourceManager
from testweave.executor.retry import RetryPolicy
from testweave.executor.scheduler import Scheduler
from testweave.executor.types import (
    OutcomeStatus,
    RunReport,
    TestOutcome,
    TestUnit,
    UnitCategory,
)
from testweave.executor.worker import UnitWorker


def exit_code(outcomes: Iterable[TestOutcome]) -> int:
    """Process exit code: 0 when no outcome failed, 1 otherwise."""
    return 1 if any(o.status == OutcomeStatus.FAILED for o in outcomes) else 0


class TestRunner:
    """
    High-level runner for a whole test run.

    Example:
        runner = TestRunner(load_config())
        report = await runner.run(category="api", write_report=True)
        sys.exit(report.exit_code)
    """

    __test__ = False

    def __init__(
        self,
        config: Optional[ProjectConfig] = None,
        catalog: Optional[TestCatalog] = None,
        reporter: Optional[Reporter] = None,
        resources: Optional[ResourceManager] = None,
    ) -> None:
        """
        Initialize the test runner.

        Args:
            config: Project configuration.
            catalog: Test catalog; defaults to one rooted at ``config.test_dir``.
            reporter: Reporter; defaults to one writing to ``config.reporting.output_dir``.
            resources: Shared resources; a fresh manager is created per run when omitted.
        """
        self.config = config or ProjectConfig()
        self.catalog = catalog or TestCatalog(self.config.test_dir)
        self.reporter = reporter or Reporter(
            self.config.reporting.output_dir,
            keep_old=self.config.reporting.keep_old,
        )
        self._resources = resources

    def discover(self, category: Optional[Union[UnitCategory, str]] = None) -> List[TestUnit]:
        """Discover units and apply the configured filters."""
        units = self.catalog.discover(category)
        filters = self.config.filters
        return filter_units(units, filters.include, filters.exclude, filters.grep)

    async def run(
        self,
        category: Optional[Union[UnitCategory, str]] = None,
        write_report: Optional[bool] = None,
        max_concurrency: Optional[int] = None,
    ) -> RunReport:
        """
        Discover and run every test.

        Args:
            category: Only run units of this category.
            write_report: Write the JSON report; defaults to the config setting.
            max_concurrency: Overrides the configured concurrency.

        Returns:
            The RunReport of the run.
        """
        units = self.discover(category)
        report = await self.run_units(units, max_concurrency=max_concurrency)

        if write_report if write_report is not None else self.config.reporting.enabled:
            self.reporter.write_json(report)
        return report

    async def run_units(
        self,
        units: Sequence[TestUnit],
        max_concurrency: Optional[int] = None,
    ) -> RunReport:
        """
        Run the given units and aggregate their outcomes.

        Shared resources are drained once every unit has completed. An injected
        resource manager is reopened first, so it can serve several runs.
        """
        resources = self._resources or ResourceManager(self.config.to_pool_config())
        resources.reopen()
        retry_policy = RetryPolicy(self.config.to_retry_config())
        worker = UnitWorker(self.catalog, retry_policy, resources)
        scheduler = Scheduler(worker, self.config.to_scheduler_config())
        aggregator = ResultAggregator()

        logger.info(f"Starting run of {len(units)} test(s)")
        started_at = datetime.now()
        started = time.monotonic()
        try:
            await scheduler.run(units, max_concurrency=max_concurrency, on_outcome=aggregator.add)
        finally:
            await resources.drain_all()
        finished_at = datetime.now()
        duration_ms = int((time.monotonic() - started) * 1000)

        report = RunReport(
            outcomes=aggregator.outcomes,
            duration_ms=duration_ms,
            summary=aggregator.summary(),
            started_at=started_at,
            finished_at=finished_at,
        )
        self.reporter.print_summary(report)
        return report


async def run_tests(
    units: Sequence[TestUnit],
    config: Optional[ProjectConfig] = None,
    catalog: Optional[TestCatalog] = None,
) -> RunReport:
    """
    Convenience function to run units with default wiring.

    Example:
        units = TestCatalog.from_callables([test_login, test_checkout])
        report = await run_tests(units)
        print(f"Passed: {report.summary.passed}/{report.summary.total}")
    """
    runner = TestRunner(config, catalog=catalog or TestCatalog())
    return await runner.run_units(units)
