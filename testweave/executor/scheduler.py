"""
Scheduler.

Drives a bounded number of concurrent unit executions drawn from a FIFO work
queue and collects exactly one outcome per unit.
"""

import asyncio
import inspect
from typing import Any, Callable, Dict, List, Optional, Sequence

from loguru import logger

from testweave.executor.types import SchedulerConfig, TestOutcome, TestUnit
from testweave.executor.worker import UnitWorker

OutcomeCallback = Callable[[TestOutcome], Any]


class Scheduler:
    """
    Bounded worker pool over a shared queue.

    ``run`` starts ``min(max_concurrency, len(units))`` long-lived slots. Each
    slot pulls the next unit from the queue, executes it to its final outcome
    and pulls again until the queue is empty, so at most ``max_concurrency``
    units are in flight and no unit is picked up twice. The run completes once
    every slot has finished. A unit held by a slot that died, or never pulled
    from the queue, is recorded as failed, so every submitted unit has exactly
    one outcome.

    Example:
        scheduler = Scheduler(UnitWorker(catalog, RetryPolicy()))
        outcomes = await scheduler.run(units, max_concurrency=4)
    """

    def __init__(
        self,
        worker: UnitWorker,
        config: Optional[SchedulerConfig] = None,
    ) -> None:
        """
        Initialize the scheduler.

        Args:
            worker: Executes a single unit with retry.
            config: Scheduler configuration.
        """
        self.worker = worker
        self.config = config or SchedulerConfig()
        self._in_flight = 0
        self._peak_in_flight = 0

    @property
    def in_flight(self) -> int:
        """Number of units currently executing."""
        return self._in_flight

    @property
    def peak_in_flight(self) -> int:
        """Highest number of units executing at once during the last run."""
        return self._peak_in_flight

    async def run(
        self,
        units: Sequence[TestUnit],
        max_concurrency: Optional[int] = None,
        on_outcome: Optional[OutcomeCallback] = None,
    ) -> List[TestOutcome]:
        """
        Execute every unit and return their outcomes in completion order.

        Args:
            units: Units to execute.
            max_concurrency: Overrides the configured concurrency bound.
            on_outcome: Optional callback invoked with each outcome as it is recorded.

        Returns:
            One outcome per submitted unit.

        Raises:
            ValueError: If max_concurrency is less than 1.
        """
        limit = self.config.max_concurrency if max_concurrency is None else max_concurrency
        if limit < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {limit}")

        self._in_flight = 0
        self._peak_in_flight = 0
        if not units:
            return []

        queue: "asyncio.Queue[TestUnit]" = asyncio.Queue()
        for unit in units:
            queue.put_nowait(unit)

        outcomes: List[TestOutcome] = []
        held: Dict[int, TestUnit] = {}
        total = len(units)
        slots = min(limit, total)

        logger.info(f"Running {total} unit(s) with {slots} concurrent slot(s)")

        async def record(outcome: TestOutcome) -> None:
            outcomes.append(outcome)
            logger.info(
                f"[{len(outcomes)}/{total}] {outcome.name}: {outcome.status.value} "
                f"({outcome.duration_ms}ms, {outcome.retry_attempts} retries)"
            )
            if on_outcome is not None:
                try:
                    result = on_outcome(outcome)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error(f"Outcome callback failed for {outcome.name}: {e}")

        async def slot(index: int) -> None:
            while True:
                try:
                    unit = queue.get_nowait()
                except asyncio.QueueEmpty:
                    logger.debug(f"Slot {index} idle, queue empty")
                    return

                held[index] = unit
                self._in_flight += 1
                self._peak_in_flight = max(self._peak_in_flight, self._in_flight)
                try:
                    outcome = await self.worker.execute(unit)
                except (asyncio.CancelledError, KeyboardInterrupt, SystemExit):
                    raise
                except BaseException as e:
                    outcome = UnitWorker.failed_outcome(unit, e)
                finally:
                    self._in_flight -= 1
                    queue.task_done()

                del held[index]
                await record(outcome)

        tasks = [asyncio.create_task(slot(i)) for i in range(slots)]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        for index, result in enumerate(results):
            if not isinstance(result, BaseException):
                continue
            logger.error(f"Slot {index} terminated: {result!r}")
            unit = held.pop(index, None)
            if unit is not None:
                await record(UnitWorker.failed_outcome(unit, result))

        # Left over only when every slot terminated early.
        while not queue.empty():
            unit = queue.get_nowait()
            await record(
                UnitWorker.failed_outcome(
                    unit, RuntimeError(f"{unit.name} was not executed: all slots terminated")
                )
            )

        logger.info(f"All {total} unit(s) completed (peak concurrency {self._peak_in_flight})")
        return outcomes
