"""Backend API client: cached, coalesced JSON GETs over httpx.

Concurrent `get_json` calls for the same path and parameters share a
single HTTP request; successful responses are kept in the injected
ApiResponseCache. Errors are raised to every waiting caller and are not
cached, so the next call retries.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Mapping, Optional

import httpx

from caches.facades import ApiResponseCache
from core.errors import ExternalServiceError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def normalize_api_path(path: str) -> str:
    # Keep paths stable: one leading "/", no surrounding whitespace
    p = (path or "").strip().replace("\\", "/")
    if not p or p == "/":
        raise ValidationError("path must be non-empty")
    if "://" in p:
        raise ValidationError("path must be relative to the API base URL")
    return "/" + p.lstrip("/")


class ApiClient:
    """Async client for the backend API.

    Purpose:
      - get_json(path, params=None, ttl=None) -> Any
      - invalidate(path=None) -> int

    Key behavior:
      - Cache key is the absolute URL plus sorted query parameters.
      - One upstream request per key at a time (request coalescing).
      - 404 -> NotFoundError; other failures -> ExternalServiceError.
    """

    JSON_ACCEPT = "application/json"

    def __init__(
        self,
        *,
        base_url: str,
        cache: ApiResponseCache,
        timeout: float = 20.0,
        verify: bool = True,
    ) -> None:
        self._base_url = (base_url or "").strip().rstrip("/")
        if not self._base_url:
            raise ValidationError("base_url must be non-empty")

        self._cache = cache
        self._timeout = float(timeout)
        self._verify = bool(verify)
        self._headers = self._build_headers()

    @property
    def cache(self) -> ApiResponseCache:
        return self._cache

    def url_for(self, path: str) -> str:
        return self._base_url + normalize_api_path(path)

    async def get_json(
        self,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        ttl: Optional[float] = None,
    ) -> Any:
        """GET `path` and return the decoded JSON body, served from cache when fresh."""
        url = self.url_for(path)
        query = {k: v for k, v in dict(params or {}).items() if v is not None}

        async def _fetch() -> Any:
            return await self._get(url, query)

        return await self._cache.fetch(url, _fetch, params=query, ttl=ttl)

    def invalidate(self, path: Optional[str] = None) -> int:
        """Drop cached responses for `path`, or every cached response if omitted."""
        if path is None:
            removed = self._cache.live_count()
            self._cache.clear()
            return removed
        return self._cache.invalidate_url(self.url_for(path))

    # --- HTTP helpers ---

    def _build_headers(self) -> dict[str, str]:
        headers = {
            "Accept": self.JSON_ACCEPT,
            "User-Agent": "request-cache-mcp",
        }
        # If API_TOKEN present, authenticate against the backend
        token = (os.environ.get("API_TOKEN") or "").strip()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _create_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers=self._headers,
            timeout=self._timeout,
            verify=self._verify,
        )

    def _external(self, context: str, err: BaseException) -> ExternalServiceError:
        return ExternalServiceError(f"API request failed ({context}): {err}")

    async def _get(self, url: str, params: Mapping[str, Any]) -> Any:
        logger.debug("GET %s params=%s", url, dict(params))
        try:
            async with self._create_client() as client:
                resp = await client.get(url, params=dict(params))
        except httpx.HTTPError as e:
            raise self._external(f"GET {url}", e) from e

        if resp.status_code == 404:
            raise NotFoundError(f"Not found: {url}")

        try:
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise self._external(f"GET {url}", e) from e

        try:
            return resp.json()
        except ValueError as e:
            raise self._external(f"GET {url} (invalid JSON)", e) from e
