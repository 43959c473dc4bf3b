"""Configuration and environment helpers for the project.

Provides small helpers to read typed environment variables and exposes
project-level configuration constants used across the codebase (e.g.
API_BASE_URL, HTTP_VERIFY, timeouts and the per-cache TTL/size knobs).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


# Network / HTTP
HTTP_VERIFY = _env_bool("HTTP_VERIFY", True)

# Backend API
API_BASE_URL = os.environ.get("API_BASE_URL", "http://localhost:8080/api").strip()
API_TIMEOUT = _env_float("API_TIMEOUT", 20.0)

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"


@dataclass(frozen=True)
class CacheSettings:
    """TTL and bound settings for the named caches.

    TTLs are in seconds. Sizes for the large-object cache are in bytes of
    serialized JSON.
    """

    api_ttl: float = 300.0
    api_maxsize: int = 500

    auth_ttl: float = 600.0
    auth_maxsize: int = 1000

    large_ttl: float = 900.0
    large_maxsize: int = 100
    large_max_bytes: int = 50 * 1024 * 1024

    quick_ttl: float = 30.0
    quick_maxsize: int = 1000

    smart_ttl: float = 300.0
    smart_maxsize: int = 500

    @classmethod
    def from_env(cls) -> "CacheSettings":
        d = cls()
        return cls(
            api_ttl=_env_float("CACHE_API_TTL", d.api_ttl),
            api_maxsize=_env_int("CACHE_API_MAXSIZE", d.api_maxsize),
            auth_ttl=_env_float("CACHE_AUTH_TTL", d.auth_ttl),
            auth_maxsize=_env_int("CACHE_AUTH_MAXSIZE", d.auth_maxsize),
            large_ttl=_env_float("CACHE_LARGE_TTL", d.large_ttl),
            large_maxsize=_env_int("CACHE_LARGE_MAXSIZE", d.large_maxsize),
            large_max_bytes=_env_int("CACHE_LARGE_MAX_BYTES", d.large_max_bytes),
            quick_ttl=_env_float("CACHE_QUICK_TTL", d.quick_ttl),
            quick_maxsize=_env_int("CACHE_QUICK_MAXSIZE", d.quick_maxsize),
            smart_ttl=_env_float("CACHE_SMART_TTL", d.smart_ttl),
            smart_maxsize=_env_int("CACHE_SMART_MAXSIZE", d.smart_maxsize),
        )


def configure_logging(level: str = LOG_LEVEL) -> None:
    # stdio carries the MCP protocol, so logs go to stderr (basicConfig default)
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
