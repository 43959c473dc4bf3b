"""Immutable dataclasses describing cache and coalescer state.

Stats objects are read-only snapshots; mutating the cache afterwards does
not change an already returned snapshot.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class CacheStats:
    """Snapshot of a bounded cache store.

    Field groups:
    - Bounds: size, maxsize, calculated_size, max_size
    - Counters: hits, misses, evictions, expirations, rejections
    """

    size: int
    maxsize: int

    calculated_size: Optional[int] = None
    max_size: Optional[int] = None

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    rejections: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def as_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["hit_rate"] = self.hit_rate
        return out


@dataclass(frozen=True)
class CoalescerStats:
    """Snapshot of a request coalescer."""

    started: int = 0
    joined: int = 0
    failed: int = 0
    aborted: int = 0
    in_flight: int = 0

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)
