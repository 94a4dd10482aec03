"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

In-memory caching and request coalescing for the stock dashboard.

Quick start::

    from stockcache import CoalescingCache, RequestBatcher

    cache = CoalescingCache(name="prices", max_size=500, default_ttl_s=60)
    quote = await cache.get_or_fetch("price:AAPL", lambda: provider.quote("AAPL"))

    batcher = RequestBatcher(provider.quotes_by_symbol, max_batch_size=50)
    quote = await batcher.add("MSFT")
"""

from .batching import BatchFn, RequestBatcher
from .cache import (
    CacheEntry,
    CacheStats,
    CoalescingCache,
    PendingRequest,
    PendingRequestRegistry,
    TTLCacheStore,
)
from .clock import Clock, ManualClock, MonotonicClock, TimerHandle
from .errors import BatcherClosedError, CacheConfigError, StockCacheError
from .metrics import (
    CacheMetrics,
    InMemoryCacheMetrics,
    NoOpCacheMetrics,
    PrometheusCacheMetrics,
)
from .named import DashboardCaches, create_dashboard_caches
from .quotes import PriceFeed, StockPrice
from .settings import CacheSettings

__all__ = [
    "CoalescingCache",
    "TTLCacheStore",
    "PendingRequestRegistry",
    "CacheEntry",
    "PendingRequest",
    "CacheStats",
    "RequestBatcher",
    "BatchFn",
    "Clock",
    "TimerHandle",
    "MonotonicClock",
    "ManualClock",
    "StockCacheError",
    "CacheConfigError",
    "BatcherClosedError",
    "CacheMetrics",
    "NoOpCacheMetrics",
    "InMemoryCacheMetrics",
    "PrometheusCacheMetrics",
    "CacheSettings",
    "DashboardCaches",
    "create_dashboard_caches",
    "PriceFeed",
    "StockPrice",
]
