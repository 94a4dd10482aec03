"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/types.py.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """One cached value with write and expiration timestamps."""

    data: T
    written_at_s: float
    expires_at_s: float

    def is_valid(self, now_s: float) -> bool:
        return now_s <= self.expires_at_s


@dataclass(frozen=True, slots=True)
class PendingRequest:
    """In-flight fetch shared by every caller of one key."""

    future: asyncio.Future[Any]
    started_at_s: float


@dataclass(frozen=True, slots=True)
class CacheStats:
    """Point-in-time counters for one cache instance."""

    size: int
    pending: int
    max_size: int
    hits: int = 0
    misses: int = 0
    coalesced: int = 0
    evictions: int = 0
