"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Preconfigured caches for the dashboard's data kinds.

Instances are built explicitly and passed to consumers; nothing here is a
module-level singleton, so tests and alternate configurations get isolated
caches.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .cache import CacheStats, CoalescingCache
from .clock import Clock
from .metrics import CacheMetrics
from .settings import CacheSettings


@dataclass(slots=True)
class DashboardCaches:
    """Quote, news and per-user caches sharing one clock and metrics sink."""

    prices: CoalescingCache[Any]
    news: CoalescingCache[list[Any]]
    user_data: CoalescingCache[Any]

    @classmethod
    def from_settings(
        cls,
        settings: CacheSettings | None = None,
        *,
        clock: Clock | None = None,
        metrics: CacheMetrics | None = None,
    ) -> "DashboardCaches":
        cfg = settings or CacheSettings()

        def build(name: str, max_size: int, ttl_s: float) -> CoalescingCache[Any]:
            return CoalescingCache(
                name=name,
                max_size=max_size,
                default_ttl_s=ttl_s,
                sweep_interval_s=cfg.sweep_interval_s,
                pending_stale_after_s=cfg.pending_stale_after_s,
                clock=clock,
                metrics=metrics,
            )

        return cls(
            prices=build("prices", cfg.prices_max_size, cfg.prices_ttl_s),
            news=build("news", cfg.news_max_size, cfg.news_ttl_s),
            user_data=build("user_data", cfg.user_data_max_size, cfg.user_data_ttl_s),
        )

    def all(self) -> tuple[CoalescingCache[Any], ...]:
        return (self.prices, self.news, self.user_data)

    def start(self) -> None:
        for cache in self.all():
            cache.start()

    async def close(self) -> None:
        for cache in self.all():
            await cache.close()

    def clear(self) -> None:
        for cache in self.all():
            cache.clear()

    def get_stats(self) -> dict[str, CacheStats]:
        return {cache.name: cache.get_stats() for cache in self.all()}


def create_dashboard_caches(
    *,
    clock: Clock | None = None,
    metrics: CacheMetrics | None = None,
) -> DashboardCaches:
    """Build the dashboard caches from `STOCKCACHE_*` environment variables."""
    return DashboardCaches.from_settings(CacheSettings.from_env(), clock=clock, metrics=metrics)
