"""Named caches pre-configured for specific kinds of data.

Each facade only derives keys and applies a default TTL/size policy; all
storage, eviction and coalescing comes from CoalescingCache.
"""

from __future__ import annotations

import json
import re
from typing import Any, Iterable, Mapping, Optional

from config import CacheSettings
from core.cache import BoundedCache
from core.cached import CoalescingCache
from core.coalescer import RequestFn
from core.keys import api_key, auth_key, auth_prefix, scoped_key


def json_size(value: Any) -> int:
    """Size of `value` as compact UTF-8 JSON, in bytes (at least 1)."""
    raw = json.dumps(value, separators=(",", ":"), default=str)
    return max(1, len(raw.encode("utf-8")))


class ApiResponseCache(CoalescingCache[Any]):
    """Responses of idempotent API calls, keyed by URL + sorted query params."""

    async def fetch(
        self,
        url: str,
        fetch_fn: RequestFn[Any],
        *,
        params: Optional[Mapping[str, Any]] = None,
        ttl: Optional[float] = None,
    ) -> Any:
        return await self.get_or_fetch(api_key(url, params), fetch_fn, ttl=ttl)

    def lookup(self, url: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return self.get(api_key(url, params))

    def invalidate_url(self, url: str) -> int:
        """Drop every cached response for `url`, whatever its parameters."""
        return self.invalidate_pattern(rf"^GET {re.escape(url)}(\?|$)")


class AuthCache(CoalescingCache[bool]):
    """Authorization decisions, keyed by user + sorted roles (+ resource)."""

    async def check(
        self,
        user_id: str,
        roles: Iterable[str],
        check_fn: RequestFn[bool],
        *,
        resource: Optional[str] = None,
        ttl: Optional[float] = None,
    ) -> bool:
        return bool(await self.get_or_fetch(auth_key(user_id, roles, resource), check_fn, ttl=ttl))

    def invalidate_user(self, user_id: str) -> int:
        return self.invalidate_pattern("^" + re.escape(auth_prefix(user_id)))


class LargeObjectCache(CoalescingCache[Any]):
    """Large JSON payloads, bounded by their serialized size."""

    async def fetch(
        self,
        scope: str,
        identifier: Any,
        fetch_fn: RequestFn[Any],
        *,
        ttl: Optional[float] = None,
    ) -> Any:
        return await self.get_or_fetch(scoped_key(scope, identifier), fetch_fn, ttl=ttl)

    def put(self, scope: str, identifier: Any, value: Any, *, ttl: Optional[float] = None) -> bool:
        return self.set(scoped_key(scope, identifier), value, ttl=ttl)


class QuickCache(CoalescingCache[Any]):
    """Short-lived values under caller-chosen keys."""

    async def remember(self, key: str, fetch_fn: RequestFn[Any], *, ttl: Optional[float] = None) -> Any:
        return await self.get_or_fetch(key, fetch_fn, ttl=ttl)


# --- Builders ---

def build_api_cache(settings: CacheSettings) -> ApiResponseCache:
    store: BoundedCache[Any] = BoundedCache(maxsize=settings.api_maxsize, ttl_seconds=settings.api_ttl)
    return ApiResponseCache(store, name="api")


def build_auth_cache(settings: CacheSettings) -> AuthCache:
    store: BoundedCache[bool] = BoundedCache(maxsize=settings.auth_maxsize, ttl_seconds=settings.auth_ttl)
    return AuthCache(store, name="auth")


def build_large_object_cache(settings: CacheSettings) -> LargeObjectCache:
    store: BoundedCache[Any] = BoundedCache(
        maxsize=settings.large_maxsize,
        ttl_seconds=settings.large_ttl,
        max_size=settings.large_max_bytes,
        size_calculation=json_size,
    )
    return LargeObjectCache(store, name="large")


def build_quick_cache(settings: CacheSettings) -> QuickCache:
    store: BoundedCache[Any] = BoundedCache(maxsize=settings.quick_maxsize, ttl_seconds=settings.quick_ttl)
    return QuickCache(store, name="quick")
