"""
Test Orchestration Engine.

This module provides the scheduler, resource pool, retry policy and result
aggregation pipeline used to run independent test units concurrently.
"""

from testweave.executor.aggregator import (
    ResultAggregator,
    failed,
    group_by_category,
    summarize,
)
from testweave.executor.catalog import TestCatalog, filter_units, infer_category
from testweave.executor.errors import (
    ConfigError,
    MalformedUnitError,
    ResourceConstructionError,
    ResourceError,
    TestweaveError,
    UnitExecutionError,
)
from testweave.executor.pool import (
    BlockingSharedResources,
    KeyedResourceCache,
    ResourceFactory,
    ResourcePool,
    SharedResources,
)
from testweave.executor.reporter import Reporter
from testweave.executor.resources import (
    BrowserFactory,
    HttpSessionFactory,
    ResourceManager,
)
from testweave.executor.retry import (
    TRANSIENT_KINDS,
    RetryPolicy,
    classify_error,
    is_transient,
)
from testweave.executor.runner import TestRunner, exit_code, run_tests
from testweave.executor.scheduler import Scheduler
from testweave.executor.types import (
    ErrorKind,
    ErrorSummary,
    OutcomeStatus,
    PoolConfig,
    PooledResource,
    RetryConfig,
    RunReport,
    SchedulerConfig,
    Summary,
    TestOutcome,
    TestUnit,
    UnitCategory,
)
from testweave.executor.worker import ExecutionContext, UnitWorker

__all__ = [
    # Catalog
    "TestCatalog",
    "filter_units",
    "infer_category",
    # Pool
    "BlockingSharedResources",
    "KeyedResourceCache",
    "ResourceFactory",
    "ResourcePool",
    "SharedResources",
    "BrowserFactory",
    "HttpSessionFactory",
    "ResourceManager",
    # Retry
    "RetryPolicy",
    "TRANSIENT_KINDS",
    "classify_error",
    "is_transient",
    # Worker
    "UnitWorker",
    "ExecutionContext",
    # Scheduler
    "Scheduler",
    # Aggregation
    "ResultAggregator",
    "summarize",
    "group_by_category",
    "failed",
    # Runner
    "Reporter",
    "TestRunner",
    "exit_code",
    "run_tests",
    # Types
    "ErrorKind",
    "ErrorSummary",
    "OutcomeStatus",
    "PoolConfig",
    "PooledResource",
    "RetryConfig",
    "RunReport",
    "SchedulerConfig",
    "Summary",
    "TestOutcome",
    "TestUnit",
    "UnitCategory",
    # Errors
    "TestweaveError",
    "UnitExecutionError",
    "MalformedUnitError",
    "ResourceError",
    "ResourceConstructionError",
    "ConfigError",
]
