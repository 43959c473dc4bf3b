"""Server bootstrap for the request cache MCP service.

Creates the FastMCP instance, builds the cache registry and API client
once, wires them into the tools and starts the MCP server (stdio transport).
"""

from mcp.server.fastmcp import FastMCP

from caches.registry import build_registry
from clients.api_client import ApiClient
from config import API_BASE_URL, API_TIMEOUT, HTTP_VERIFY, CacheSettings, configure_logging

from tools.cache_admin import register as register_cache_admin
from tools.fetch_api import register as register_fetch_api

mcp = FastMCP("request-cache-mcp")


def register_tools() -> None:
    registry = build_registry(CacheSettings.from_env())
    api_client = ApiClient(
        base_url=API_BASE_URL,
        cache=registry.api,
        timeout=API_TIMEOUT,
        verify=HTTP_VERIFY,
    )

    register_fetch_api(mcp, api_client=api_client)
    register_cache_admin(mcp, registry=registry)


register_tools()


def main() -> None:
    configure_logging()
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
