"""Hash-validated, TTL-bounded caches for analyses and selection results."""

from __future__ import annotations

import hashlib
import json
import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

from codectx.analysis.models import FileAnalysis
from codectx.config import CacheConfig
from codectx.context.models import ContextSelectionRequest, ContextSelectionResult

logger = logging.getLogger("codectx.cache")

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    value: T
    key_hash: str  # content hash (analyses) or request hash (selections)
    timestamp: float
    hits: int = 0


@dataclass
class CacheStats:
    size: int
    hits: int
    misses: int
    evictions: int
    hit_rate: float

    def as_dict(self) -> dict:
        return {
            "size": self.size,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "hit_rate": round(self.hit_rate, 4),
        }


class ContextCache:
    """Two independently bounded caches sharing one set of counters.

    - analyses, keyed by file path and validated against the content hash
    - selection results, keyed by a hash of the request and state version

    When a cache is full, inserting evicts the entry with the lowest
    ``hits / (age_seconds + 1)``. A frequently hit entry therefore survives
    longer than a fresh but unused one, which is intended.
    """

    def __init__(
        self,
        config: CacheConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.config = config or CacheConfig()
        self._clock = clock
        self._analyses: dict[str, CacheEntry[FileAnalysis]] = {}
        self._selections: dict[str, CacheEntry[ContextSelectionResult]] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def ttl(self) -> float:
        return self.config.ttl_seconds

    # -------------------------------------------------------------------
    # File analyses
    # -------------------------------------------------------------------

    def get_analysis(self, path: str, content_hash: str) -> FileAnalysis | None:
        """Cached analysis for `path` if it was made from `content_hash` and is fresh.

        A stale or mismatched entry is dropped.
        """
        entry = self._analyses.get(path)
        if entry is None:
            self._misses += 1
            return None

        if entry.key_hash == content_hash and not self._is_expired(entry):
            entry.hits += 1
            self._hits += 1
            return entry.value

        del self._analyses[path]
        self._misses += 1
        logger.debug("Dropped stale analysis for %s", path)
        return None

    def set_analysis(self, path: str, analysis: FileAnalysis) -> None:
        self._insert(
            self._analyses,
            self.config.max_analysis_cache_size,
            path,
            CacheEntry(value=analysis, key_hash=analysis.hash, timestamp=self._clock()),
        )

    def needs_reanalysis(self, path: str, content_hash: str) -> bool:
        """Same validity check as `get_analysis`, without fetching or counting."""
        entry = self._analyses.get(path)
        return entry is None or entry.key_hash != content_hash or self._is_expired(entry)

    def invalidate_analysis(self, paths: Iterable[str]) -> None:
        for path in paths:
            self._analyses.pop(path, None)

    # -------------------------------------------------------------------
    # Selection results
    # -------------------------------------------------------------------

    def selection_key(self, request: ContextSelectionRequest, version: int) -> str:
        """Deterministic key for a request against a given state version.

        Path lists are sorted so their order does not matter.
        """
        key_data = {
            "intent": request.intent.model_dump(mode="json"),
            "max_tokens": request.max_tokens,
            "reserved_tokens": request.reserved_tokens,
            "focus_files": sorted(request.focus_files),
            "exclude_files": sorted(request.exclude_files),
            "phase_number": request.phase_number,
            "previous_phase_files": sorted(request.previous_phase_files),
            "version": version,
        }
        encoded = json.dumps(key_data, sort_keys=True).encode("utf-8")
        return hashlib.sha256(encoded).hexdigest()[:16]

    def get_selection(self, key: str) -> ContextSelectionResult | None:
        entry = self._selections.get(key)
        if entry is None:
            self._misses += 1
            return None

        if self._is_expired(entry):
            del self._selections[key]
            self._misses += 1
            return None

        entry.hits += 1
        self._hits += 1
        return entry.value

    def set_selection(self, key: str, result: ContextSelectionResult) -> None:
        self._insert(
            self._selections,
            self.config.max_selection_cache_size,
            key,
            CacheEntry(value=result, key_hash=key, timestamp=self._clock()),
        )

    def invalidate_selections(self) -> None:
        """Drop every cached selection.

        Called on any file change: a result may reference stale content
        through dependencies, so per-file invalidation is not enough.
        """
        self._selections.clear()

    # -------------------------------------------------------------------
    # Management
    # -------------------------------------------------------------------

    def clear(self) -> None:
        self._analyses.clear()
        self._selections.clear()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def prune(self) -> int:
        """Remove expired entries from both caches. Returns how many were removed."""
        pruned = 0
        for cache in (self._analyses, self._selections):
            expired = [key for key, entry in cache.items() if self._is_expired(entry)]
            for key in expired:
                del cache[key]
            pruned += len(expired)
        if pruned:
            logger.debug("Pruned %d expired cache entries", pruned)
        return pruned

    def get_stats(self) -> CacheStats:
        total = self._hits + self._misses
        return CacheStats(
            size=len(self._analyses) + len(self._selections),
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
            hit_rate=self._hits / total if total > 0 else 0.0,
        )

    @property
    def analysis_count(self) -> int:
        return len(self._analyses)

    @property
    def selection_count(self) -> int:
        return len(self._selections)

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------

    def _is_expired(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.timestamp >= self.ttl

    def _insert(
        self, cache: dict[str, CacheEntry], capacity: int, key: str, entry: CacheEntry
    ) -> None:
        if key in cache:
            del cache[key]
        elif len(cache) >= capacity:
            self._evict_one(cache)
        cache[key] = entry

    def _evict_one(self, cache: dict[str, CacheEntry]) -> None:
        """Evict the entry with the lowest hits per second of age."""
        now = self._clock()
        victim: str | None = None
        lowest = float("inf")
        for key, entry in cache.items():
            score = entry.hits / ((now - entry.timestamp) + 1)
            if score < lowest:
                lowest = score
                victim = key
        if victim is not None:
            del cache[victim]
            self._evictions += 1
            logger.debug("Evicted cache entry %s", victim)
