"""In-memory bounded cache with TTL expiry and LRU eviction.

Entries carry a monotonic expiration timestamp and an optional size. The
store is bounded by entry count (``maxsize``) and, optionally, by the sum
of entry sizes (``max_size``). When a write pushes the store past either
bound, expired entries are purged first and then the least recently used
entries are evicted until both bounds hold again.

TTL contract (seconds, ``time.monotonic``):
  - ``ttl=None`` or ``ttl=0`` on ``set`` means "use the store default".
  - A store created with ``ttl_seconds=None`` keeps such entries until they
    are evicted or deleted.
  - Negative TTLs are rejected.

Capacity contract: an entry whose size alone exceeds ``max_size`` is
rejected. ``set`` returns False and the store is left exactly as it was,
including any previous value stored under the same key.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, Iterator, List, Optional, Tuple, TypeVar

from core.errors import ValidationError
from core.models import CacheStats

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


@dataclass(slots=True)
class CacheEntry(Generic[T]):
    # Stores value + monotonic timestamps; expires_at None means no expiry
    key: str
    value: T
    inserted_at: float
    expires_at: Optional[float]
    size: Optional[int] = None

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class BoundedCache(Generic[T]):
    """Count, size and TTL bounded store with least-recently-used eviction.

    All operations are synchronous and complete in one step, so concurrent
    asyncio tasks never observe a half-updated store.
    """

    def __init__(
        self,
        *,
        maxsize: int,
        ttl_seconds: Optional[float] = None,
        max_size: Optional[int] = None,
        size_calculation: Optional[Callable[[T], int]] = None,
    ) -> None:
        if ttl_seconds is not None and float(ttl_seconds) <= 0:
            raise ValidationError("ttl_seconds must be positive or None")
        if max_size is not None and int(max_size) <= 0:
            raise ValidationError("max_size must be positive or None")

        self._maxsize = max(1, int(maxsize))
        self._ttl = None if ttl_seconds is None else float(ttl_seconds)
        self._max_size = None if max_size is None else int(max_size)
        self._size_calculation = size_calculation

        self._store: "OrderedDict[str, CacheEntry[T]]" = OrderedDict()
        self._calculated_size = 0

        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0
        self._rejections = 0

    # --- Reads ---

    def get(self, key: str, default: Optional[T] = None) -> Optional[T]:
        """Return the value for `key` and mark it most recently used."""
        entry = self._store.get(key)
        if entry is None:
            self._misses += 1
            return default

        if entry.is_expired(time.monotonic()):
            self._remove(key)
            self._expirations += 1
            self._misses += 1
            return default

        self._store.move_to_end(key, last=True)
        self._hits += 1
        return entry.value

    def peek(self, key: str, default: Optional[T] = None) -> Optional[T]:
        """Return the value for `key` without touching recency or counters."""
        entry = self._store.get(key)
        if entry is None:
            return default
        if entry.is_expired(time.monotonic()):
            self._remove(key)
            self._expirations += 1
            return default
        return entry.value

    def has(self, key: str) -> bool:
        return self.peek(key, _MISSING) is not _MISSING  # type: ignore[arg-type]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def __len__(self) -> int:
        return len(self._store)

    def keys(self) -> Iterator[str]:
        """Iterate resident keys, most recently used first.

        The key set is captured when `keys()` is called; entries that expire
        before the iterator reaches them are skipped.
        """
        snapshot = list(reversed(self._store.items()))
        return self._iter_live(snapshot)

    def _iter_live(self, snapshot: List[Tuple[str, CacheEntry[T]]]) -> Iterator[str]:
        for key, entry in snapshot:
            if not entry.is_expired(time.monotonic()):
                yield key

    # --- Writes ---

    def set(
        self,
        key: str,
        value: T,
        *,
        ttl: Optional[float] = None,
        size: Optional[int] = None,
    ) -> bool:
        """Insert or overwrite `key`. Returns False if the entry was rejected."""
        ttl_clean = self._resolve_ttl(ttl)
        size_clean = self._resolve_size(value, size)

        if self._max_size is not None and size_clean is not None and size_clean > self._max_size:
            self._rejections += 1
            logger.warning(
                "Rejected cache entry %r: size %d exceeds max_size %d",
                key,
                size_clean,
                self._max_size,
            )
            return False

        now = time.monotonic()
        self._remove(key)
        self._store[key] = CacheEntry(
            key=key,
            value=value,
            inserted_at=now,
            expires_at=None if ttl_clean is None else now + ttl_clean,
            size=size_clean,
        )
        if size_clean is not None:
            self._calculated_size += size_clean

        if self._over_bounds():
            self._purge_expired(now)

        # Oldest entries sit at the front; the new entry is at the end and
        # fits on its own, so it is never evicted here.
        while self._over_bounds():
            old_key, _ = self._pop_oldest()
            self._evictions += 1
            logger.debug("Evicted least recently used entry %r", old_key)

        return True

    def delete(self, key: str) -> bool:
        return self._remove(key) is not None

    def clear(self) -> None:
        self._store.clear()
        self._calculated_size = 0

    def purge_expired(self) -> int:
        """Drop every expired entry and return how many were removed."""
        return self._purge_expired(time.monotonic())

    # --- Introspection ---

    @property
    def maxsize(self) -> int:
        return self._maxsize

    @property
    def default_ttl(self) -> Optional[float]:
        return self._ttl

    @property
    def stats(self) -> CacheStats:
        tracks_size = self._max_size is not None or self._size_calculation is not None
        return CacheStats(
            size=len(self._store),
            maxsize=self._maxsize,
            calculated_size=self._calculated_size if tracks_size else None,
            max_size=self._max_size,
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            expirations=self._expirations,
            rejections=self._rejections,
        )

    # --- Internals ---

    def _resolve_ttl(self, ttl: Optional[float]) -> Optional[float]:
        if ttl is None:
            return self._ttl
        ttl_f = float(ttl)
        if ttl_f < 0:
            raise ValidationError("ttl must not be negative")
        if ttl_f == 0:
            return self._ttl
        return ttl_f

    def _resolve_size(self, value: T, size: Optional[int]) -> Optional[int]:
        if size is None and self._size_calculation is not None:
            size = self._size_calculation(value)

        if size is None:
            if self._max_size is not None:
                raise ValidationError("size or size_calculation is required when max_size is set")
            return None

        n = int(size)
        if n <= 0:
            raise ValidationError("entry size must be a positive integer")
        return n

    def _over_bounds(self) -> bool:
        if len(self._store) > self._maxsize:
            return True
        return self._max_size is not None and self._calculated_size > self._max_size

    def _remove(self, key: str) -> Optional[CacheEntry[T]]:
        entry = self._store.pop(key, None)
        if entry is not None and entry.size is not None:
            self._calculated_size -= entry.size
        return entry

    def _pop_oldest(self) -> Tuple[str, CacheEntry[T]]:
        key, entry = self._store.popitem(last=False)
        if entry.size is not None:
            self._calculated_size -= entry.size
        return key, entry

    def _purge_expired(self, now: float) -> int:
        expired = [k for k, e in self._store.items() if e.is_expired(now)]
        for key in expired:
            self._remove(key)
        self._expirations += len(expired)
        return len(expired)
