"""Internal time-bounded value cache for battery and device metadata lookups."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Generic, TypeVar

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    """A cached value and the moment it was stored."""

    value: T
    last_updated: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.last_updated < self.ttl

    def age(self, now: float) -> float:
        return now - self.last_updated


class TtlCache(Generic[T]):
    """Read-through cache with a fixed time-to-live per entry.

    An expired entry is not discarded: when a refresh fails, the last cached
    value is returned as a degraded fallback. A slightly stale reading is
    preferable to surfacing an error for what is usually a transient outage.
    """

    def __init__(self, ttl: float, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[Hashable, CacheEntry[T]] = {}
        self._pending: dict[Hashable, asyncio.Future[T]] = {}

    @property
    def ttl(self) -> float:
        return self._ttl

    def entry(self, key: Hashable) -> CacheEntry[T] | None:
        return self._entries.get(key)

    def get(self, key: Hashable) -> T | None:
        """Return the value for *key* if it is still valid."""
        entry = self._entries.get(key)
        if entry is None or not entry.is_valid(self._clock()):
            return None
        return entry.value

    def get_stale(self, key: Hashable) -> T | None:
        """Return the value for *key* regardless of age."""
        entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def set(self, key: Hashable, value: T) -> None:
        self._entries[key] = CacheEntry(value=value, last_updated=self._clock(), ttl=self._ttl)

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_refresh(self, key: Hashable, fetch: Callable[[], Awaitable[T]]) -> T:
        """Return a valid cached value, refreshing it through *fetch* if needed.

        Concurrent callers for the same key share a single in-flight fetch.
        If the fetch fails and a (stale) value exists, the stale value is
        returned; otherwise the fetch error propagates.
        """
        cached = self.get(key)
        if cached is not None:
            return cached

        pending = self._pending.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._refresh(key, fetch))
            self._pending[key] = pending
            pending.add_done_callback(lambda _fut: self._pending.pop(key, None))

        try:
            return await asyncio.shield(pending)
        except asyncio.CancelledError:
            raise
        except Exception:
            stale = self._entries.get(key)
            if stale is None:
                raise
            _logger.debug(
                "Cache refresh failed for %s; using value %.1fs old",
                key,
                stale.age(self._clock()),
                exc_info=True,
            )
            return stale.value

    async def _refresh(self, key: Hashable, fetch: Callable[[], Awaitable[T]]) -> T:
        value = await fetch()
        self.set(key, value)
        return value
