"""MCP tools to inspect and invalidate the named caches.

Registers 'cache_stats' and 'invalidate_cache' against an injected
CacheRegistry.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from caches.registry import CacheRegistry
from core.errors import ValidationError
from core.smart_cache import SmartCache


def register(mcp: FastMCP, *, registry: CacheRegistry) -> None:
    @mcp.tool(name="cache_stats")
    async def cache_stats(name: Optional[str] = None) -> Dict[str, Any]:
        """Return statistics for one named cache, or for all of them.

        Params:
          - name: "api", "auth", "large", "quick" or "smart"; omit for all.

        Returns:
          A mapping of cache name to store and request statistics.

        Raises:
          NotFoundError for an unknown cache name.
        """
        if name is None or not name.strip():
            return registry.stats()
        cache = registry.get(name)
        return {cache.name: cache.stats()}

    @mcp.tool(name="invalidate_cache")
    async def invalidate_cache(
        name: str,
        pattern: Optional[str] = None,
        dependency: Optional[str] = None,
    ) -> int:
        """Remove entries from a named cache and return how many were removed.

        Params:
          - name: cache name (required).
          - pattern: regular expression matched against cache keys.
          - dependency: dependency name (only for the "smart" cache).
          With neither pattern nor dependency the whole cache is cleared.

        Raises:
          ValidationError for conflicting or unsupported arguments;
          NotFoundError for an unknown cache name.
        """
        cache = registry.get(name)

        if pattern and dependency:
            raise ValidationError("Use either pattern or dependency, not both")

        if dependency:
            if not isinstance(cache, SmartCache):
                raise ValidationError(f"Cache {cache.name!r} does not track dependencies")
            return cache.invalidate_dependency(dependency)

        if pattern:
            return cache.invalidate_pattern(pattern)

        removed = cache.live_count()
        cache.clear()
        return removed
