"""In-memory caches for analyses and selection results."""

from codectx.cache.context_cache import CacheEntry, CacheStats, ContextCache

__all__ = ["CacheEntry", "CacheStats", "ContextCache"]
