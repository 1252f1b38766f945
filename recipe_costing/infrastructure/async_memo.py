# recipe_costing/recipe_costing/infrastructure/async_memo.py
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Hashable, Optional, Set, TypeVar

log = logging.getLogger("infra.async_memo")

V = TypeVar("V")


@dataclass
class MemoStats:
    hits: int = 0
    misses: int = 0
    fetches: int = 0


@dataclass(frozen=True)
class _Entry(Generic[V]):
    value: V
    stored_at: float


class AsyncMemo(Generic[V]):
    """
    Keyed async memoizer with request coalescing.

    - concurrent get() calls for one key share a single in-flight fetch
    - the fetch runs as its own task: it completes and fills the cache even if every caller is cancelled
    - ttl_seconds=None keeps values until invalidate()/clear()
    - expired entries are swept on every miss
    - fetch errors propagate to the waiting callers and are not cached

    Single event loop only (not thread-safe).
    """

    def __init__(
        self,
        fetch: Callable[[Any], Awaitable[V]],
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._fetch = fetch
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[Hashable, _Entry[V]] = {}
        self._inflight: Dict[Hashable, "asyncio.Task[V]"] = {}
        self._tasks: Set["asyncio.Task[V]"] = set()
        self.stats = MemoStats()

    def _fresh(self, entry: _Entry[V]) -> bool:
        if self.ttl_seconds is None:
            return True
        return self._clock() - entry.stored_at < self.ttl_seconds

    def peek(self, key: Hashable) -> Optional[V]:
        entry = self._entries.get(key)
        if entry is None or not self._fresh(entry):
            return None
        return entry.value

    def __contains__(self, key: Hashable) -> bool:
        entry = self._entries.get(key)
        return entry is not None and self._fresh(entry)

    async def get(self, arg: Any, key: Optional[Hashable] = None) -> V:
        """`arg` is passed to fetch; `key` defaults to `arg`."""
        k = arg if key is None else key
        entry = self._entries.get(k)
        if entry is not None and self._fresh(entry):
            self.stats.hits += 1
            log.debug("hit key=%r", k)
            return entry.value

        self.stats.misses += 1
        self._gc()
        task = self._inflight.get(k)
        if task is None:
            log.debug("miss key=%r -> fetch", k)
            task = asyncio.get_running_loop().create_task(self._run(k, arg))
            self._inflight[k] = task
            self._tasks.add(task)
            task.add_done_callback(self._reap)
        else:
            log.debug("miss key=%r -> join in-flight fetch", k)
        return await asyncio.shield(task)

    async def _run(self, key: Hashable, arg: Any) -> V:
        self.stats.fetches += 1
        me = asyncio.current_task()
        try:
            value = await self._fetch(arg)
            # dropped by invalidate()/clear() while in flight: do not store
            if self._inflight.get(key) is me:
                self._entries[key] = _Entry(value=value, stored_at=self._clock())
            return value
        finally:
            if self._inflight.get(key) is me:
                self._inflight.pop(key, None)

    def _gc(self) -> None:
        if self.ttl_seconds is None:
            return
        expired = [k for k, e in self._entries.items() if not self._fresh(e)]
        for k in expired:
            self._entries.pop(k, None)

    def _reap(self, task: "asyncio.Task[V]") -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.debug("fetch failed: %r", task.exception())

    def invalidate(self, key: Hashable) -> None:
        self._entries.pop(key, None)
        self._inflight.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
        self._inflight.clear()

    def __len__(self) -> int:
        return sum(1 for e in self._entries.values() if self._fresh(e))
