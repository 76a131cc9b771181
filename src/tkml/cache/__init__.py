"""Document cache tiers, dependency graph and change feed."""

from tkml.cache.graph import DependencyGraph
from tkml.cache.store import CacheEntry, CacheManager, CacheStats, RawEntry

__all__ = ["DependencyGraph", "CacheEntry", "CacheManager", "CacheStats", "RawEntry"]
