"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: cache/__init__.py.
"""

from .coalescing import CoalescingCache
from .pending import PendingRequestRegistry
from .store import TTLCacheStore
from .types import CacheEntry, CacheStats, PendingRequest

__all__ = [
    "CoalescingCache",
    "TTLCacheStore",
    "PendingRequestRegistry",
    "CacheEntry",
    "PendingRequest",
    "CacheStats",
]
