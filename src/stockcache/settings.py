"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Cache and batcher settings with explicit environment loading.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from .errors import CacheConfigError


def _env_first(*names: str, default: str | None = None) -> str | None:
    """
    Return the first non-empty environment variable in `names`.

    Args:
        *names: Environment variable names to check in order.
        default: Value returned if no non-empty variable is found.
    """
    for name in names:
        raw = os.getenv(name)
        if raw is None:
            continue
        value = raw.strip()
        if value:
            return value
    return default


def _env_int(*names: str, default: int) -> int:
    raw = _env_first(*names)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise CacheConfigError(f"{names[0]} must be an integer, got {raw!r}") from exc


def _env_float(*names: str, default: float) -> float:
    raw = _env_first(*names)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise CacheConfigError(f"{names[0]} must be a number, got {raw!r}") from exc


@dataclass(frozen=True, slots=True)
class CacheSettings:
    """
    Sizing and timing for the dashboard caches and the price batcher.

    Attributes:
        prices_max_size: Entry cap for the quote cache.
        prices_ttl_s: Default TTL for quotes.
        news_max_size: Entry cap for the news cache.
        news_ttl_s: Default TTL for news lists.
        user_data_max_size: Entry cap for per-user data.
        user_data_ttl_s: Default TTL for per-user data.
        sweep_interval_s: Seconds between background staleness sweeps.
        pending_stale_after_s: Age after which an unsettled fetch is forgotten.
        batch_max_size: Items that force an immediate batch flush.
        batch_delay_s: Delay before a partial batch is flushed.
    """

    prices_max_size: int = 500
    prices_ttl_s: float = 60.0
    news_max_size: int = 100
    news_ttl_s: float = 300.0
    user_data_max_size: int = 200
    user_data_ttl_s: float = 120.0
    sweep_interval_s: float = 300.0
    pending_stale_after_s: float = 30.0
    batch_max_size: int = 50
    batch_delay_s: float = 0.05

    def __post_init__(self) -> None:
        for label in ("prices_max_size", "news_max_size", "user_data_max_size", "batch_max_size"):
            if getattr(self, label) < 1:
                raise CacheConfigError(f"{label} must be >= 1")
        for label in (
            "prices_ttl_s",
            "news_ttl_s",
            "user_data_ttl_s",
            "sweep_interval_s",
            "pending_stale_after_s",
        ):
            if getattr(self, label) <= 0:
                raise CacheConfigError(f"{label} must be > 0")
        if self.batch_delay_s < 0:
            raise CacheConfigError("batch_delay_s must be >= 0")

    @staticmethod
    def from_env() -> "CacheSettings":
        """Load settings from `STOCKCACHE_*` environment variables."""
        return CacheSettings(
            prices_max_size=_env_int("STOCKCACHE_PRICES_MAX_SIZE", default=500),
            prices_ttl_s=_env_float("STOCKCACHE_PRICES_TTL_S", default=60.0),
            news_max_size=_env_int("STOCKCACHE_NEWS_MAX_SIZE", default=100),
            news_ttl_s=_env_float("STOCKCACHE_NEWS_TTL_S", default=300.0),
            user_data_max_size=_env_int(
                "STOCKCACHE_USER_DATA_MAX_SIZE", "STOCKCACHE_USER_MAX_SIZE", default=200
            ),
            user_data_ttl_s=_env_float(
                "STOCKCACHE_USER_DATA_TTL_S", "STOCKCACHE_USER_TTL_S", default=120.0
            ),
            sweep_interval_s=_env_float("STOCKCACHE_SWEEP_INTERVAL_S", default=300.0),
            pending_stale_after_s=_env_float(
                "STOCKCACHE_PENDING_STALE_AFTER_S", default=30.0
            ),
            batch_max_size=_env_int("STOCKCACHE_BATCH_MAX_SIZE", default=50),
            batch_delay_s=_env_float("STOCKCACHE_BATCH_DELAY_S", default=0.05),
        )
