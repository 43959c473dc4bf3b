"""Explicitly owned set of named caches.

A registry is built once at application start (see `server.server`) and
handed to the clients and tools that need it. Tests build their own
registries so no state leaks between them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional

from caches.facades import (
    ApiResponseCache,
    AuthCache,
    LargeObjectCache,
    QuickCache,
    build_api_cache,
    build_auth_cache,
    build_large_object_cache,
    build_quick_cache,
)
from config import CacheSettings
from core.cache import BoundedCache
from core.cached import CoalescingCache
from core.errors import NotFoundError
from core.smart_cache import SmartCache


@dataclass(frozen=True)
class CacheRegistry:
    api: ApiResponseCache
    auth: AuthCache
    large: LargeObjectCache
    quick: QuickCache
    smart: SmartCache[Any]

    def __iter__(self) -> Iterator[CoalescingCache[Any]]:
        return iter((self.api, self.auth, self.large, self.quick, self.smart))

    def names(self) -> list[str]:
        return [c.name for c in self]

    def get(self, name: str) -> CoalescingCache[Any]:
        wanted = (name or "").strip().lower()
        for cache in self:
            if cache.name == wanted:
                return cache
        raise NotFoundError(f"Unknown cache: {name!r} (known: {', '.join(self.names())})")

    def stats(self) -> Dict[str, Dict[str, Any]]:
        return {c.name: c.stats() for c in self}

    def clear_all(self) -> None:
        for cache in self:
            cache.clear()


def build_registry(settings: Optional[CacheSettings] = None) -> CacheRegistry:
    s = settings or CacheSettings.from_env()
    smart_store: BoundedCache[Any] = BoundedCache(maxsize=s.smart_maxsize, ttl_seconds=s.smart_ttl)
    return CacheRegistry(
        api=build_api_cache(s),
        auth=build_auth_cache(s),
        large=build_large_object_cache(s),
        quick=build_quick_cache(s),
        smart=SmartCache(smart_store, name="smart"),
    )
