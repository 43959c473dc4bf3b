"""Coalescing cache with dependency-based invalidation.

Keys can be registered under one or more dependency names (for example a
course id shared by its catalog page, curriculum and reviews). Invalidating
a dependency deletes every key registered under it.

The dependency map has no expiry of its own: entries are pruned only when
a dependency is invalidated or a key is explicitly invalidated.
"""

from __future__ import annotations

from typing import Dict, Iterable, Optional, Set, TypeVar

from core.cache import BoundedCache
from core.cached import CoalescingCache
from core.coalescer import RequestFn
from core.errors import ValidationError

T = TypeVar("T")


class SmartCache(CoalescingCache[T]):
    def __init__(self, store: BoundedCache[T], *, name: str = "smart") -> None:
        super().__init__(store, name=name)
        self._dependencies: Dict[str, Set[str]] = {}

    def set_with_dependencies(
        self,
        key: str,
        value: T,
        dependencies: Iterable[str],
        *,
        ttl: Optional[float] = None,
    ) -> bool:
        deps = _clean_dependencies(dependencies)
        stored = self._store.set(key, value, ttl=ttl)
        if stored:
            self._register(key, deps)
        return stored

    async def get_or_fetch_with_dependencies(
        self,
        key: str,
        fetch_fn: RequestFn[T],
        dependencies: Iterable[str],
        *,
        ttl: Optional[float] = None,
    ) -> T:
        deps = _clean_dependencies(dependencies)
        # Registered up front so invalidating a dependency reaches a pending fetch
        self._register(key, deps)
        value = await self.get_or_fetch(key, fetch_fn, ttl=ttl)
        if self._store.has(key):
            self._register(key, deps)
        return value

    def invalidate_dependency(self, dependency: str) -> int:
        """Delete every key registered under `dependency`; return how many were resident.

        Fetches still in flight for those keys are not stored when they settle.
        """
        keys = self._dependencies.pop(dependency, set())
        removed = 0
        for key in keys:
            self._mark_stale(key)
            if self._store.delete(key):
                removed += 1
        return removed

    def invalidate(self, key: str) -> bool:
        for keys in self._dependencies.values():
            keys.discard(key)
        return super().invalidate(key)

    def dependencies_of(self, key: str) -> Set[str]:
        return {dep for dep, keys in self._dependencies.items() if key in keys}

    def clear(self) -> None:
        super().clear()
        self._dependencies.clear()

    def _register(self, key: str, dependencies: Set[str]) -> None:
        for dep in dependencies:
            self._dependencies.setdefault(dep, set()).add(key)


def _clean_dependencies(dependencies: Iterable[str]) -> Set[str]:
    if isinstance(dependencies, str):
        raise ValidationError("dependencies must be an iterable of names, not a string")
    out = {(d or "").strip() for d in dependencies}
    out.discard("")
    return out
