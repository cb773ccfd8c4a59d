"""
testweave - concurrent test orchestration

Runs independent test units under bounded concurrency on a single event loop,
retries transient failures with linear backoff, pools expensive resources
(browsers, keep-alive HTTP sessions) and aggregates outcomes into reports.
"""

from .executor import (
    ErrorKind,
    OutcomeStatus,
    ResourcePool,
    RetryPolicy,
    RunReport,
    Scheduler,
    Summary,
    TestCatalog,
    TestOutcome,
    TestRunner,
    TestUnit,
    UnitCategory,
    UnitExecutionError,
    run_tests,
)
from .config import ProjectConfig, load_config

__version__ = "0.1.0"

__all__ = [
    # Configuration
    "ProjectConfig",
    "load_config",
    # Engine
    "ResourcePool",
    "RetryPolicy",
    "Scheduler",
    "TestCatalog",
    "TestRunner",
    "run_tests",
    # Types
    "ErrorKind",
    "OutcomeStatus",
    "RunReport",
    "Summary",
    "TestOutcome",
    "TestUnit",
    "UnitCategory",
    # Errors
    "UnitExecutionError",
]
