"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Metrics adapters for cache and batcher instrumentation.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from typing import Protocol


class CacheMetrics(Protocol):
    """Minimal metrics interface for cache and batcher instrumentation."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        """Increment a counter metric."""


class NoOpCacheMetrics:
    """Default metrics sink when no metrics backend is provided."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        _ = name
        _ = value
        _ = tags


class InMemoryCacheMetrics:
    """Counter sink that keeps totals in process memory, for tests and debugging."""

    def __init__(self) -> None:
        self._totals: Counter[tuple[str, tuple[tuple[str, str], ...]]] = Counter()

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        label_pairs = tuple(sorted((tags or {}).items()))
        self._totals[(name, label_pairs)] += value

    def total(self, name: str, **tags: str) -> int:
        """Sum of a counter across every label set containing `tags`."""
        wanted = set(tags.items())
        return sum(
            count
            for (metric, labels), count in self._totals.items()
            if metric == name and wanted.issubset(labels)
        )


class PrometheusCacheMetrics:
    """
    Prometheus-backed metrics adapter.

    One counter is created per metric name, labelled with the tag keys of its
    first use; later calls must use the same tag keys. Pass `registry` to
    keep counters out of the process-wide default registry.

    Requires `prometheus_client` package.
    """

    def __init__(self, *, namespace: str = "stockcache", registry: object | None = None) -> None:
        try:
            from prometheus_client import REGISTRY, Counter as PromCounter
        except ModuleNotFoundError as exc:  # pragma: no cover
            raise RuntimeError(
                "PrometheusCacheMetrics requires `prometheus_client` to be installed."
            ) from exc

        self._Counter = PromCounter
        self._namespace = namespace
        self._registry = registry if registry is not None else REGISTRY
        self._counters: dict[str, tuple[tuple[str, ...], object]] = {}

    def _counter(self, name: str, label_names: tuple[str, ...]):
        known = self._counters.get(name)
        if known is not None:
            if known[0] != label_names:
                raise ValueError(
                    f"Metric {name} was registered with labels {known[0]}, got {label_names}"
                )
            return known[1]
        counter = self._Counter(
            name=name,
            documentation=f"stockcache counter {name}",
            namespace=self._namespace,
            labelnames=label_names,
            registry=self._registry,
        )
        self._counters[name] = (label_names, counter)
        return counter

    def incr(self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None) -> None:
        labels = dict(tags or {})
        counter = self._counter(name, tuple(sorted(labels)))
        if labels:
            counter.labels(**{key: str(val) for key, val in labels.items()}).inc(value)
        else:
            counter.inc(value)
