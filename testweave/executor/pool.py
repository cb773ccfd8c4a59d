"""
Resource Pool Management.

Caches idle instances of expensive resources (browser handles) under a
capacity bound and keeps one long-lived handle per endpoint for keep-alive
HTTP sessions.
"""

import asyncio
import threading
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    Generic,
    Hashable,
    Iterator,
    List,
    Optional,
    Protocol,
    TypeVar,
)

from loguru import logger

from testweave.executor.errors import ResourceConstructionError
from testweave.executor.types import PooledResource

R = TypeVar("R")
K = TypeVar("K", bound=Hashable)


class ResourceFactory(Protocol[R]):
    """Capability set a pooled resource kind must provide."""

    async def create(self) -> R:
        """Construct a new resource."""

    async def cleanup(self, handle: R) -> None:
        """Reset a resource to a reusable state before it goes idle."""

    async def dispose(self, handle: R) -> None:
        """Destroy a resource."""


class ResourcePool(Generic[R]):
    """
    Idle-resource cache.

    ``acquire`` hands out an idle resource when one exists and constructs a new
    one otherwise; it never waits. ``release`` keeps the resource for reuse
    while the idle count is below ``capacity`` and disposes it otherwise. The
    pool bounds the idle cache only: the number of resources checked out at the
    same time is bounded by the scheduler's concurrency, not by the pool.

    Example:
        pool = ResourcePool(BrowserFactory(config), capacity=3, name="browser")
        async with pool.lease() as browser:
            page = await browser.new_page()
        await pool.drain_all()
    """

    def __init__(
        self,
        factory: ResourceFactory[R],
        capacity: int = 3,
        name: str = "resource",
    ) -> None:
        """
        Initialize the resource pool.

        Args:
            factory: Creates, cleans up and disposes resources.
            capacity: Maximum number of idle resources kept for reuse.
            name: Resource name used in logs and errors.
        """
        if capacity < 0:
            raise ValueError(f"capacity must be non-negative, got {capacity}")
        self._factory = factory
        self._capacity = capacity
        self._name = name
        self._idle: List[R] = []
        self._checked_out = 0
        self._closed = False
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def name(self) -> str:
        return self._name

    @property
    def idle_count(self) -> int:
        """Number of idle resources currently cached."""
        with self._lock:
            return len(self._idle)

    @property
    def checked_out(self) -> int:
        """Number of resources handed out and not yet released."""
        with self._lock:
            return self._checked_out

    @property
    def closed(self) -> bool:
        return self._closed

    async def acquire(self) -> PooledResource[R]:
        """
        Get an idle resource, or construct a new one.

        Returns:
            The pooled resource.

        Raises:
            ResourceConstructionError: If a new resource cannot be created.
        """
        with self._lock:
            handle = self._idle.pop() if self._idle else None
            self._checked_out += 1

        if handle is not None:
            logger.debug(f"Reusing idle {self._name}")
            return PooledResource(handle=handle, acquired_at=datetime.now())

        try:
            handle = await self._factory.create()
        except Exception as e:
            with self._lock:
                self._checked_out -= 1
            logger.error(f"Failed to create {self._name}: {e}")
            raise ResourceConstructionError(self._name, e) from e

        logger.debug(f"Created new {self._name}")
        return PooledResource(handle=handle, acquired_at=datetime.now())

    async def release(self, resource: PooledResource[R]) -> None:
        """
        Return a resource to the pool.

        The resource is cleaned up and kept idle while there is room in the
        cache; otherwise, or once the pool is drained, it is disposed.

        Args:
            resource: The resource obtained from ``acquire``.
        """
        with self._lock:
            self._checked_out = max(0, self._checked_out - 1)
            keep = not self._closed and len(self._idle) < self._capacity

        if keep:
            try:
                await self._factory.cleanup(resource.handle)
            except Exception as e:
                logger.warning(f"Cleanup of {self._name} failed, disposing it: {e}")
                keep = False

        if keep:
            # Cleanup suspends; re-check the bound before storing.
            with self._lock:
                if not self._closed and len(self._idle) < self._capacity:
                    self._idle.append(resource.handle)
                    logger.debug(
                        f"Returned {self._name} to pool "
                        f"({len(self._idle)}/{self._capacity} idle)"
                    )
                    return

        await self._dispose(resource.handle)

    async def _dispose(self, handle: R) -> None:
        try:
            await self._factory.dispose(handle)
            logger.debug(f"Disposed {self._name}")
        except Exception as e:
            logger.warning(f"Failed to dispose {self._name}: {e}")

    @asynccontextmanager
    async def lease(self) -> AsyncIterator[R]:
        """Acquire a resource for the duration of the block."""
        resource = await self.acquire()
        try:
            yield resource.handle
        finally:
            await self.release(resource)

    async def drain_all(self) -> None:
        """
        Dispose every idle resource.

        Resources still checked out are disposed when they are released.
        Safe to call more than once.
        """
        with self._lock:
            self._closed = True
            idle, self._idle = self._idle, []

        if idle:
            logger.info(f"Draining {len(idle)} idle {self._name}(s)")
        for handle in idle:
            await self._dispose(handle)

    def reopen(self) -> None:
        """Resume caching released resources after ``drain_all``."""
        with self._lock:
            if self._closed:
                self._closed = False
                logger.debug(f"Reopened {self._name} pool")


class KeyedResourceCache(Generic[K, R]):
    """
    One long-lived handle per key.

    Handles are created lazily on first request and reused until ``clear``.
    Used for keep-alive HTTP sessions keyed by endpoint.
    """

    def __init__(
        self,
        create: Callable[[K], R],
        dispose: Callable[[R], Awaitable[None]],
        name: str = "handle",
    ) -> None:
        self._create = create
        self._dispose = dispose
        self._name = name
        self._handles: Dict[K, R] = {}
        self._lock = threading.Lock()

    def get(self, key: K) -> R:
        """Get the handle for ``key``, creating it on first use."""
        with self._lock:
            handle = self._handles.get(key)
            if handle is None:
                handle = self._create(key)
                self._handles[key] = handle
                logger.debug(f"Created {self._name} for {key}")
            return handle

    async def clear(self) -> None:
        """Dispose every cached handle."""
        with self._lock:
            handles, self._handles = self._handles, {}

        for key, handle in handles.items():
            try:
                await self._dispose(handle)
            except Exception as e:
                logger.warning(f"Failed to dispose {self._name} for {key}: {e}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._handles)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._handles


class SharedResources:
    """
    Handle passed to one-argument test callables.

    Gives a unit access to the pooled browser handles and the keyed HTTP
    sessions for the duration of one attempt. Resources the unit forgets to
    release are released by ``close``.
    """

    def __init__(
        self,
        pool: ResourcePool[Any],
        http_cache: Optional[KeyedResourceCache[str, Any]] = None,
    ) -> None:
        self._pool = pool
        self._http_cache = http_cache
        self._outstanding: Dict[int, PooledResource[Any]] = {}

    async def acquire_shared_resource(self) -> Any:
        """Check out a pooled resource (e.g. a browser)."""
        resource = await self._pool.acquire()
        self._outstanding[id(resource.handle)] = resource
        return resource.handle

    async def release_shared_resource(self, handle: Any) -> None:
        """Return a resource obtained from ``acquire_shared_resource``."""
        resource = self._outstanding.pop(id(handle), None)
        if resource is None:
            raise ValueError(f"Resource was not acquired through this handle: {handle!r}")
        await self._pool.release(resource)

    @asynccontextmanager
    async def shared_resource(self) -> AsyncIterator[Any]:
        """Acquire a pooled resource for the duration of the block."""
        handle = await self.acquire_shared_resource()
        try:
            yield handle
        finally:
            await self.release_shared_resource(handle)

    def http_session(self, base_url: str) -> Any:
        """Get the keep-alive session for ``base_url``."""
        if self._http_cache is None:
            raise RuntimeError("No HTTP session cache configured")
        return self._http_cache.get(base_url)

    @property
    def outstanding(self) -> int:
        """Number of resources acquired and not yet released."""
        return len(self._outstanding)

    async def close(self) -> None:
        """Release every resource still held by this handle."""
        if self._outstanding:
            logger.debug(f"Releasing {len(self._outstanding)} unreleased resource(s)")
        while self._outstanding:
            _, resource = self._outstanding.popitem()
            await self._pool.release(resource)


class BlockingSharedResources:
    """
    Synchronous view of a SharedResources handle.

    Passed to synchronous test callables, which run in a worker thread. Each
    call is scheduled on the event loop that owns the pool and blocks the
    calling thread until it completes.
    """

    def __init__(self, shared: SharedResources, loop: asyncio.AbstractEventLoop) -> None:
        self._shared = shared
        self._loop = loop

    def _call(self, coro: Awaitable[Any]) -> Any:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            coro.close()
            raise RuntimeError(
                "Blocking resource handle used on the event loop thread; "
                "use the async handle instead"
            )
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result()

    def acquire_shared_resource(self) -> Any:
        """Check out a pooled resource (e.g. a browser)."""
        return self._call(self._shared.acquire_shared_resource())

    def release_shared_resource(self, handle: Any) -> None:
        """Return a resource obtained from ``acquire_shared_resource``."""
        self._call(self._shared.release_shared_resource(handle))

    @contextmanager
    def shared_resource(self) -> Iterator[Any]:
        """Acquire a pooled resource for the duration of the block."""
        handle = self.acquire_shared_resource()
        try:
            yield handle
        finally:
            self.release_shared_resource(handle)

    def http_session(self, base_url: str) -> Any:
        return self._shared.http_session(base_url)

    @property
    def outstanding(self) -> int:
        return self._shared.outstanding
