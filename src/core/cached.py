"""Bounded store + request coalescer behind one get-or-fetch call.

Flow for `get_or_fetch(key, fetch_fn)`:
  1. store hit -> return it
  2. miss with a request already in flight -> await that request
  3. otherwise -> run `fetch_fn`, store the value, then clear the in-flight
     record (inside the shared task, so a hit is available the moment any
     caller sees the result)

Failed fetches are never stored. A fetch whose key is invalidated (or whose
cache is cleared) while it is in flight still resolves for its callers, but
its value is not stored.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Generic, Optional, Pattern, Tuple, TypeVar, Union

from core.cache import BoundedCache
from core.coalescer import RequestCoalescer, RequestFn
from core.errors import ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING: Any = object()


class CoalescingCache(Generic[T]):
    def __init__(self, store: BoundedCache[T], *, name: str = "cache") -> None:
        self.name = name
        self._store = store
        self._coalescer: RequestCoalescer[T] = RequestCoalescer()

        # Bumped by clear() and, per key, by invalidations during a fetch
        self._epoch = 0
        self._stale: Dict[str, int] = {}

    @property
    def store(self) -> BoundedCache[T]:
        return self._store

    @property
    def coalescer(self) -> RequestCoalescer[T]:
        return self._coalescer

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: RequestFn[T],
        *,
        ttl: Optional[float] = None,
        size: Optional[int] = None,
    ) -> T:
        cached = self._store.get(key, _MISSING)
        if cached is not _MISSING:
            return cached

        # Only used if this call starts the request
        started = self._generation(key)

        async def _fetch_and_store() -> T:
            try:
                value = await fetch_fn()
                if self._generation(key) == started:
                    self._store_fetched(key, value, ttl=ttl, size=size)
                else:
                    logger.debug("Discarded fetched value for %r in %s: invalidated in flight", key, self.name)
                return value
            finally:
                self._stale.pop(key, None)

        return await self._coalescer.execute(key, _fetch_and_store)

    def get(self, key: str, default: Optional[T] = None) -> Optional[T]:
        return self._store.get(key, default)

    def set(self, key: str, value: T, *, ttl: Optional[float] = None, size: Optional[int] = None) -> bool:
        return self._store.set(key, value, ttl=ttl, size=size)

    def has(self, key: str) -> bool:
        return self._store.has(key)

    def invalidate(self, key: str) -> bool:
        self._mark_stale(key)
        return self._store.delete(key)

    def invalidate_pattern(self, pattern: Union[str, Pattern[str]]) -> int:
        """Delete every resident key matching `pattern` (regex search).

        Pending fetches for matching keys are not stored when they settle.
        """
        try:
            rx = re.compile(pattern) if isinstance(pattern, str) else pattern
        except re.error as e:
            raise ValidationError(f"Invalid pattern {pattern!r}: {e}") from e

        for key in self._coalescer.pending_keys():
            if rx.search(key):
                self._mark_stale(key)

        matched = [k for k in self._store.keys() if rx.search(k)]
        removed = sum(1 for k in matched if self._store.delete(k))
        if removed:
            logger.debug("Invalidated %d entries in %s matching %r", removed, self.name, rx.pattern)
        return removed

    def abort(self, key: str) -> bool:
        return self._coalescer.abort(key)

    def live_count(self) -> int:
        """Number of resident entries that have not expired."""
        return sum(1 for _ in self._store.keys())

    def clear(self) -> None:
        self._epoch += 1
        self._store.clear()

    def stats(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "store": self._store.stats.as_dict(),
            "requests": self._coalescer.stats.as_dict(),
        }

    def _store_fetched(self, key: str, value: T, *, ttl: Optional[float], size: Optional[int]) -> None:
        # Hook for subclasses that track extra state alongside stored values
        self._store.set(key, value, ttl=ttl, size=size)

    def _generation(self, key: str) -> Tuple[int, int]:
        return self._epoch, self._stale.get(key, 0)

    def _mark_stale(self, key: str) -> None:
        # Generations are kept only for keys with a fetch in flight
        if self._coalescer.in_flight(key):
            self._stale[key] = self._stale.get(key, 0) + 1
