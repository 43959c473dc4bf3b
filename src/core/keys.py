"""Deterministic cache key derivation.

The same logical request must always map to the same key, regardless of
the order in which query parameters or roles were supplied, and different
inputs must never share a key.
"""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import quote, urlencode

from core.errors import ValidationError


def _require(value: Any, what: str) -> str:
    s = str(value if value is not None else "").strip()
    if not s:
        raise ValidationError(f"{what} must be non-empty")
    return s


def _flatten_params(params: Mapping[str, Any]) -> List[Tuple[str, str]]:
    # Expand list values, drop None, and sort so dict order never matters
    pairs: List[Tuple[str, str]] = []
    for name, value in params.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set, frozenset)):
            pairs.extend((str(name), _param_str(v)) for v in value if v is not None)
        else:
            pairs.append((str(name), _param_str(value)))
    return sorted(pairs)


def _param_str(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def api_key(url: str, params: Optional[Mapping[str, Any]] = None, *, method: str = "GET") -> str:
    """Key for an API response: method, URL and sorted query parameters."""
    url_clean = _require(url, "url")
    method_clean = _require(method, "method").upper()

    query = urlencode(_flatten_params(params or {}))
    return f"{method_clean} {url_clean}?{query}" if query else f"{method_clean} {url_clean}"


def _part(value: str) -> str:
    # Percent-encode so ":" and "," inside a part never act as separators
    return quote(value, safe="")


def auth_prefix(user_id: str) -> str:
    """Prefix shared by every authorization key of `user_id`."""
    return f"auth:{_part(_require(user_id, 'user_id'))}:"


def auth_key(user_id: str, roles: Iterable[str], resource: Optional[str] = None) -> str:
    """Key for an authorization decision: user, sorted unique roles, resource."""
    roles_clean = ",".join(sorted({_part(str(r).strip()) for r in roles if str(r).strip()}))

    key = f"{auth_prefix(user_id)}{roles_clean}"
    if resource is not None:
        key = f"{key}:{_part(_require(resource, 'resource'))}"
    return key


def scoped_key(scope: str, identifier: Any) -> str:
    """Key for a logical object, e.g. ``scoped_key("enrollment", 42) == "enrollment-42"``."""
    return f"{_require(scope, 'scope')}-{_require(identifier, 'identifier')}"
