"""
Concrete pooled resources.

Browser handles are launched with Playwright and reused through a
ResourcePool; HTTP sessions are aiohttp keep-alive sessions cached per
base URL.
"""

from typing import Any, Optional

import aiohttp
from loguru import logger

from testweave.executor.pool import (
    KeyedResourceCache,
    ResourceFactory,
    ResourcePool,
    SharedResources,
)
from testweave.executor.types import PoolConfig

BLANK_PAGE = "about:blank"


class BrowserFactory:
    """
    Launches Chromium browsers through the Playwright async API.

    A single Playwright driver is started on first use and shared by every
    browser this factory creates.
    """

    def __init__(self, config: Optional[PoolConfig] = None) -> None:
        self.config = config or PoolConfig()
        self._playwright: Any = None

    async def _driver(self) -> Any:
        if self._playwright is None:
            from playwright.async_api import async_playwright

            self._playwright = await async_playwright().start()
            logger.debug("Started Playwright driver")
        return self._playwright

    async def create(self) -> Any:
        playwright = await self._driver()
        browser = await playwright.chromium.launch(
            headless=self.config.headless,
            args=list(self.config.browser_args),
        )
        logger.info(f"Launched browser (headless={self.config.headless})")
        return browser

    async def cleanup(self, browser: Any) -> None:
        """Close every page except blank ones so the browser can be reused."""
        for context in browser.contexts:
            for page in list(context.pages):
                if page.url != BLANK_PAGE:
                    await page.close()

    async def dispose(self, browser: Any) -> None:
        await browser.close()

    async def shutdown(self) -> None:
        """Stop the Playwright driver."""
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None
            logger.debug("Stopped Playwright driver")


class HttpSessionFactory:
    """Builds one keep-alive aiohttp session per base URL."""

    def __init__(self, config: Optional[PoolConfig] = None) -> None:
        self.config = config or PoolConfig()

    def create(self, base_url: str) -> aiohttp.ClientSession:
        connector = aiohttp.TCPConnector(
            limit=self.config.http_max_connections,
            keepalive_timeout=self.config.http_keepalive_timeout_s,
        )
        return aiohttp.ClientSession(base_url=base_url, connector=connector)

    async def dispose(self, session: aiohttp.ClientSession) -> None:
        if not session.closed:
            await session.close()


class ResourceManager:
    """
    Owns the shared resources of one orchestration run.

    Holds the browser pool and the per-endpoint HTTP session cache and hands
    each unit attempt a SharedResources handle backed by them.

    Example:
        async with ResourceManager(PoolConfig(capacity=2)) as resources:
            shared = resources.session()
            browser = await shared.acquire_shared_resource()
            ...
    """

    def __init__(
        self,
        config: Optional[PoolConfig] = None,
        browser_factory: Optional[ResourceFactory[Any]] = None,
        http_factory: Optional[HttpSessionFactory] = None,
    ) -> None:
        self.config = config or PoolConfig()
        self._browser_factory = browser_factory or BrowserFactory(self.config)
        self._http_factory = http_factory or HttpSessionFactory(self.config)
        self.browsers: ResourcePool[Any] = ResourcePool(
            self._browser_factory,
            capacity=self.config.capacity,
            name="browser",
        )
        self.http_sessions: KeyedResourceCache[str, Any] = KeyedResourceCache(
            self._http_factory.create,
            self._http_factory.dispose,
            name="http session",
        )

    def session(self) -> SharedResources:
        """Create the resource handle for one unit attempt."""
        return SharedResources(self.browsers, self.http_sessions)

    async def drain_all(self) -> None:
        """Dispose idle browsers and every HTTP session."""
        await self.browsers.drain_all()
        await self.http_sessions.clear()
        shutdown = getattr(self._browser_factory, "shutdown", None)
        if shutdown is not None:
            await shutdown()

    def reopen(self) -> None:
        """Make a drained manager cache resources again for another run."""
        self.browsers.reopen()

    async def __aenter__(self) -> "ResourceManager":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.drain_all()
