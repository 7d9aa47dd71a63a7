from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Generic, Hashable, Optional, TypeVar

from loguru import logger

T = TypeVar("T")

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    value: T
    inserted_at: float


class KeyedCache(Generic[T]):
    """Expiring key/value store. Expiry is checked lazily on read."""

    def __init__(self, ttl: float, clock: Clock = time.monotonic, name: str = "cache") -> None:
        self.ttl = ttl
        self.clock = clock
        self.name = name
        self._entries: Dict[Hashable, CacheEntry[T]] = {}

    def get(self, key: Hashable) -> Optional[T]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._expired(entry):
            logger.debug("{name}: entry {key!r} expired", name=self.name, key=key)
            return None
        return entry.value

    def set(self, key: Hashable, value: T) -> None:
        self._entries[key] = CacheEntry(value=value, inserted_at=self.clock())

    def __contains__(self, key: Hashable) -> bool:
        return self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def purge_expired(self) -> int:
        stale = [key for key, entry in self._entries.items() if self._expired(entry)]
        for key in stale:
            del self._entries[key]
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def _expired(self, entry: CacheEntry[T]) -> bool:
        return self.clock() - entry.inserted_at > self.ttl


class InFlightRegistry:
    """At most one outstanding operation per key; later callers attach to it.

    The token is registered before the first suspension point and removed when
    the operation settles, so two interleaved callers can never both start one.
    """

    def __init__(self) -> None:
        self._tasks: Dict[Hashable, asyncio.Future] = {}

    def in_flight(self, key: Hashable) -> bool:
        return key in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    async def run(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._tasks.get(key)
        if task is None:
            task = asyncio.ensure_future(self._settle(key, factory))
            self._tasks[key] = task
        else:
            logger.debug("attaching to in-flight operation {key!r}", key=key)
        # one caller going away must not cancel the shared operation
        return await asyncio.shield(task)

    async def _settle(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        try:
            return await factory()
        finally:
            self._tasks.pop(key, None)
