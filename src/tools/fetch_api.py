"""MCP tool that fetches JSON from the backend API through the cache.

Registers the 'fetch_api' tool which delegates to an injected ApiClient,
so repeated and concurrent calls share cached or in-flight responses.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from mcp.server.fastmcp import FastMCP

from clients.api_client import ApiClient
from core.errors import ValidationError


def register(mcp: FastMCP, *, api_client: ApiClient) -> None:
    @mcp.tool(name="fetch_api")
    async def fetch_api(
        path: str,
        params: Optional[Dict[str, Any]] = None,
        ttl_seconds: Optional[float] = None,
    ) -> Any:
        """Fetch a JSON resource from the backend API, using the response cache.

        Params:
          - path: API path relative to the configured base URL (required).
          - params: optional query parameters; their order does not matter.
          - ttl_seconds: optional cache lifetime for this response
            (omit or 0 for the cache default).

        Returns:
          The decoded JSON body.

        Raises:
          ValidationError for invalid inputs; NotFoundError if the API
          returns 404; ExternalServiceError for other upstream failures.
        """
        if not path or not path.strip():
            raise ValidationError("Missing API path")
        if ttl_seconds is not None and ttl_seconds < 0:
            raise ValidationError("ttl_seconds must not be negative")

        return await api_client.get_json(path, params, ttl=ttl_seconds)
