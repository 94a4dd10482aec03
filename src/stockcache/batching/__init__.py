"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Module: batching/__init__.py.
"""

from .batcher import BatchFn, RequestBatcher

__all__ = ["BatchFn", "RequestBatcher"]
