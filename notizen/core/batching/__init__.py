"""Digest batching."""

from notizen.core.batching.batching_engine import BatchingEngine

__all__ = ["BatchingEngine"]
