"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Quote feed combining the price cache with a batched upstream lookup.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .batching import RequestBatcher
from .cache import CoalescingCache
from .clock import Clock
from .metrics import CacheMetrics

logger = logging.getLogger("stockcache.quotes")

FetchRows = Callable[[list[str]], Awaitable[Iterable[Mapping[str, Any]]]]


def normalize_symbol(symbol: str) -> str:
    return (symbol or "").strip().upper()


def price_key(symbol: str) -> str:
    return f"price:{normalize_symbol(symbol)}"


class StockPrice(BaseModel):
    """One quote row as returned by the market-data provider."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    symbol: str
    price: float
    change: float = 0.0
    change_percent: float = Field(default=0.0, alias="changePercent")
    high: float | None = None
    low: float | None = None
    open: float | None = None
    previous_close: float | None = Field(default=None, alias="previousClose")
    is_fallback: bool = Field(default=False, alias="isFallback")

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        symbol = normalize_symbol(value)
        if not symbol:
            raise ValueError("symbol must be non-empty")
        return symbol


class PriceFeed:
    """
    Serves quotes from the price cache and batches the misses upstream.

    `fetch_rows` receives a de-duplicated symbol list and returns provider
    rows; rows that fail validation are logged and skipped. Symbols the
    provider does not return are omitted from results and not cached.
    """

    def __init__(
        self,
        cache: CoalescingCache[Any],
        fetch_rows: FetchRows,
        *,
        max_batch_size: int = 50,
        batch_delay_s: float = 0.05,
        clock: Clock | None = None,
        metrics: CacheMetrics | None = None,
    ) -> None:
        self._cache = cache
        self._fetch_rows = fetch_rows
        self._batcher: RequestBatcher[str, StockPrice] = RequestBatcher(
            self._fetch_batch,
            max_batch_size=max_batch_size,
            batch_delay_s=batch_delay_s,
            name="prices",
            clock=clock,
            metrics=metrics,
        )

    @property
    def batcher(self) -> RequestBatcher[str, StockPrice]:
        return self._batcher

    async def _fetch_batch(self, symbols: list[str]) -> dict[str, StockPrice]:
        unique = list(dict.fromkeys(symbols))
        logger.debug("Fetching %d symbols in batch", len(unique))
        rows = await self._fetch_rows(unique)

        results: dict[str, StockPrice] = {}
        for row in rows:
            try:
                price = StockPrice.model_validate(row)
            except ValidationError as exc:
                logger.warning("Dropping malformed quote row: %s", exc)
                continue
            results[price.symbol] = price
        return results

    async def _fetch_one(self, symbol: str) -> StockPrice | None:
        price = await self._batcher.add(symbol)
        if price is not None:
            self._cache.set(price_key(symbol), price)
        return price

    async def fetch_prices(self, symbols: Iterable[str]) -> dict[str, StockPrice]:
        """Quotes for `symbols`, keyed by normalized symbol."""
        wanted = [s for s in dict.fromkeys(normalize_symbol(s) for s in symbols) if s]
        results: dict[str, StockPrice] = {}
        missing: list[str] = []
        for symbol in wanted:
            cached = self._cache.get(price_key(symbol))
            if cached is not None:
                results[symbol] = cached
            else:
                missing.append(symbol)

        if not missing:
            logger.debug("All %d symbols served from cache", len(wanted))
            return results

        logger.debug(
            "Fetching %d symbols (%d cached)", len(missing), len(wanted) - len(missing)
        )
        fetched = await asyncio.gather(*(self._fetch_one(symbol) for symbol in missing))
        for symbol, price in zip(missing, fetched):
            if price is not None:
                results[symbol] = price
        return results

    async def get_price(self, symbol: str) -> StockPrice | None:
        prices = await self.fetch_prices([symbol])
        return prices.get(normalize_symbol(symbol))

    async def close(self) -> None:
        await self._batcher.close()
