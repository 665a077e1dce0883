"""
In-memory caching for the auth service.

Provides a TTL cache keyed by user id and a single-flight wrapper that lets
concurrent callers share one in-flight computation.

Note: caches are private to a process. A sign-out in another process (or
browser tab) does not clear them; entries simply expire with their TTL.
"""

import asyncio
import time
from collections import OrderedDict
from typing import (Any, Awaitable, Callable, Dict, Generic, Optional,
                    Tuple, TypeVar)

from .logging_config import get_logger
from .metrics import track_cache_lookup

logger = get_logger(__name__)

T = TypeVar("T")

_MISSING: Any = object()


class TTLCache(Generic[T]):
    """
    Per-key values that expire a fixed time after they were stored.

    The oldest entry is dropped once ``max_size`` is reached. Entries are
    stored as ``(expires_at, value)`` pairs.
    """

    def __init__(
        self,
        max_size: int = 1000,
        default_ttl: float = 60.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.max_size = max_size
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[float, T]]" = OrderedDict()

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for ``key``, or ``default``."""
        entry = self._entries.get(key)
        if entry is None:
            return default

        expires_at, value = entry
        # An entry at or past its TTL is never served
        if self._clock() >= expires_at:
            del self._entries[key]
            return default

        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: T, ttl: Optional[float] = None) -> None:
        self._entries.pop(key, None)
        while len(self._entries) >= self.max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Cache LRU eviction", evicted_key=evicted)
        lifetime = self.default_ttl if ttl is None else ttl
        self._entries[key] = (self._clock() + lifetime, value)

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, _MISSING) is not _MISSING

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


def _retrieve_outcome(task: "asyncio.Task[Any]") -> None:
    # A load whose every caller was cancelled must not log an unretrieved error
    if not task.cancelled():
        task.exception()


class SingleFlightCache(Generic[T]):
    """
    TTL cache whose misses are computed at most once at a time per key.

    A miss starts the loader in its own task. That caller and all later
    callers for the same key await the task through :func:`asyncio.shield`,
    so cancelling any one of them leaves the shared load running for the
    rest. The loaded value is cached for the TTL (if ``cacheable`` accepts
    it) and every caller receives the same object. A failed load is not
    cached and the error is raised to every caller.
    """

    def __init__(
        self,
        name: str,
        ttl: float,
        max_size: int = 1000,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.name = name
        self._cache: TTLCache[T] = TTLCache(
            max_size=max_size, default_ttl=ttl, clock=clock
        )
        self._pending: Dict[str, "asyncio.Task[T]"] = {}
        self._generation = 0

    @property
    def ttl(self) -> float:
        return self._cache.default_ttl

    async def get_or_load(
        self,
        key: str,
        loader: Callable[[], Awaitable[T]],
        cacheable: Optional[Callable[[T], bool]] = None,
    ) -> T:
        """
        Return the cached value for ``key`` or load it.

        Args:
            key: Cache key
            loader: Coroutine factory producing the value on a miss
            cacheable: Predicate deciding whether a loaded value is cached

        Returns:
            The cached, shared or freshly loaded value
        """
        cached = self._cache.get(key, _MISSING)
        if cached is not _MISSING:
            track_cache_lookup(self.name, "hit")
            logger.debug("Using cached result", cache=self.name, key=key)
            return cached

        task = self._pending.get(key)
        if task is not None:
            track_cache_lookup(self.name, "shared")
            logger.debug("Joining in-flight load", cache=self.name, key=key)
        else:
            track_cache_lookup(self.name, "miss")
            task = asyncio.get_running_loop().create_task(
                self._load(key, loader, cacheable, self._generation)
            )
            task.add_done_callback(_retrieve_outcome)
            self._pending[key] = task

        return await asyncio.shield(task)

    async def _load(
        self,
        key: str,
        loader: Callable[[], Awaitable[T]],
        cacheable: Optional[Callable[[T], bool]],
        generation: int,
    ) -> T:
        try:
            value = await loader()
        finally:
            self._pending.pop(key, None)

        # A clear() during the load means the value may be stale
        if generation == self._generation and (cacheable is None or cacheable(value)):
            self._cache.set(key, value)
        return value

    def invalidate(self, key: str) -> None:
        """Drop the cached value for ``key``."""
        self._cache.delete(key)

    def clear(self) -> None:
        """Drop every cached value. In-flight loads finish but are not cached."""
        self._generation += 1
        self._cache.clear()
