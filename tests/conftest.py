"""Shared fixtures for testweave tests."""

from dataclasses import dataclass, field
from typing import List

import pytest

from testweave.executor.catalog import TestCatalog
from testweave.executor.pool import ResourcePool
from testweave.executor.resources import ResourceManager
from testweave.executor.retry import RetryPolicy
from testweave.executor.types import PoolConfig, RetryConfig
from testweave.executor.worker import UnitWorker


@dataclass(eq=False)
class FakeBrowser:
    """Stand-in for a browser handle."""

    ident: int
    pages: List[str] = field(default_factory=list)
    cleaned: int = 0
    closed: bool = False


class FakeBrowserFactory:
    """Resource factory recording every lifecycle call."""

    def __init__(self, fail_create: Exception = None, fail_cleanup: bool = False) -> None:
        self.fail_create = fail_create
        self.fail_cleanup = fail_cleanup
        self.created: List[FakeBrowser] = []
        self.disposed: List[FakeBrowser] = []
        self.shutdown_calls = 0

    async def create(self) -> FakeBrowser:
        if self.fail_create is not None:
            raise self.fail_create
        browser = FakeBrowser(ident=len(self.created))
        self.created.append(browser)
        return browser

    async def cleanup(self, browser: FakeBrowser) -> None:
        if self.fail_cleanup:
            raise RuntimeError("cleanup failed")
        browser.pages = [p for p in browser.pages if p == "about:blank"]
        browser.cleaned += 1

    async def dispose(self, browser: FakeBrowser) -> None:
        browser.closed = True
        self.disposed.append(browser)

    async def shutdown(self) -> None:
        self.shutdown_calls += 1


class FakeHttpFactory:
    """HTTP session factory producing plain objects."""

    def __init__(self) -> None:
        self.disposed: List[object] = []

    def create(self, base_url: str) -> dict:
        return {"base_url": base_url}

    async def dispose(self, session: dict) -> None:
        self.disposed.append(session)


@pytest.fixture
def browser_factory() -> FakeBrowserFactory:
    """Create a fake browser factory."""
    return FakeBrowserFactory()


@pytest.fixture
def http_factory() -> FakeHttpFactory:
    """Create a fake HTTP session factory."""
    return FakeHttpFactory()


@pytest.fixture
def pool(browser_factory: FakeBrowserFactory) -> ResourcePool[FakeBrowser]:
    """Create a pool of fake browsers with capacity 2."""
    return ResourcePool(browser_factory, capacity=2, name="browser")


@pytest.fixture
def resources(
    browser_factory: FakeBrowserFactory, http_factory: FakeHttpFactory
) -> ResourceManager:
    """Create a resource manager backed by fake factories."""
    return ResourceManager(
        PoolConfig(capacity=2),
        browser_factory=browser_factory,
        http_factory=http_factory,
    )


@pytest.fixture
def retry_policy() -> RetryPolicy:
    """Create a retry policy without backoff delay."""
    return RetryPolicy(RetryConfig(max_retries=2, base_delay_ms=0))


@pytest.fixture
def catalog() -> TestCatalog:
    """Create an empty in-memory catalog."""
    return TestCatalog()


@pytest.fixture
def worker(
    catalog: TestCatalog, retry_policy: RetryPolicy, resources: ResourceManager
) -> UnitWorker:
    """Create a worker with instant retries and fake resources."""
    return UnitWorker(catalog, retry_policy, resources)
