"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Error types raised by the caching and batching layer.

Upstream failures raised by fetchers and batch functions are never wrapped;
they reach every waiting caller unchanged.
"""

from __future__ import annotations


class StockCacheError(RuntimeError):
    """Base class for errors raised by this package."""


class CacheConfigError(StockCacheError, ValueError):
    """Raised when a cache, batcher, or settings value is invalid."""


class BatcherClosedError(StockCacheError):
    """Raised when an item is added to a batcher after `close()`."""
