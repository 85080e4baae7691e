"""Caching, indexing and metrics for table resolution.

Three independent caches hold table definitions, roll results and search
indices. Each entry carries a timestamp and a hit counter. Inserting into a
full cache sorts entries by (hits ascending, timestamp descending) and
evicts the leading fraction, so cold entries go before any entry that has
been hit, however old.

Example:
    >>> layer = PerformanceLayer(ttl_seconds=60, max_size=100)
    >>> layer.cache_table(table)
    >>> layer.search(table, "sword", tags={"magic"})
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import re
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from story_tables.core.constants import CACHE_EVICTION_RATIO, CACHE_TTL_SECONDS, MAX_CACHE_SIZE
from story_tables.core.logging import get_logger
from story_tables.models.rolls import RollContext, TableResult
from story_tables.models.state import CacheStatistics, CacheStats, PerformanceMetrics
from story_tables.models.tables import RandomTable, TableEntry


logger = get_logger(__name__)

T = TypeVar("T")

_TOKEN_RE = re.compile(r"[a-z0-9']+")


def tokenize_text(text: str) -> list[str]:
    """Lower-case word tokens of a text."""
    return _TOKEN_RE.findall(text.lower())


# =============================================================================
# TTL Cache
# =============================================================================


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with bookkeeping.

    Attributes:
        data: The cached value.
        timestamp: Clock reading when the entry was stored.
        hits: Times the entry was served.
        ttl: Lifetime override in seconds.
    """

    data: T
    timestamp: float
    hits: int = 0
    ttl: float | None = None

    def is_expired(self, now: float, default_ttl: float) -> bool:
        lifetime = self.ttl if self.ttl is not None else default_ttl
        return now - self.timestamp > lifetime


class TTLCache(Generic[T]):
    """Size-bounded cache with per-entry expiry and hit-aware eviction."""

    def __init__(
        self,
        name: str,
        *,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        max_size: int = MAX_CACHE_SIZE,
        eviction_ratio: float = CACHE_EVICTION_RATIO,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self.eviction_ratio = eviction_ratio
        self._clock = clock
        self._entries: dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> T | None:
        """Return a live cached value, counting the hit or miss."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.is_expired(self._clock(), self.ttl_seconds):
                del self._entries[key]
                entry = None
            if entry is None:
                self._misses += 1
                return None
            entry.hits += 1
            self._hits += 1
            return entry.data

    def peek(self, key: str) -> CacheEntry[T] | None:
        """Return the raw entry without touching counters."""
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, value: T, *, ttl: float | None = None) -> None:
        """Store a value, evicting first if the cache is full."""
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_size:
                self._evict()
            self._entries[key] = CacheEntry(data=value, timestamp=self._clock(), ttl=ttl)

    def _evict(self) -> None:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now, self.ttl_seconds)]
        for key in expired:
            del self._entries[key]
        if len(self._entries) < self.max_size:
            return

        ranked = sorted(self._entries.items(), key=lambda item: (item[1].hits, -item[1].timestamp))
        count = max(1, int(len(ranked) * self.eviction_ratio))
        for key, _ in ranked[:count]:
            del self._entries[key]
        logger.debug("Cache eviction", cache=self.name, evicted=count, expired=len(expired))

    def invalidate(self, key: str) -> bool:
        """Drop one key."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def invalidate_where(self, predicate: Callable[[str], bool]) -> int:
        """Drop every key matching a predicate."""
        with self._lock:
            keys = [k for k in self._entries if predicate(k)]
            for key in keys:
                del self._entries[key]
            return len(keys)

    def clear(self) -> None:
        """Drop every entry and reset counters."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> CacheStats:
        """Current size and hit rate."""
        with self._lock:
            lookups = self._hits + self._misses
            return CacheStats(
                size=len(self._entries),
                hit_rate=self._hits / lookups if lookups else 0.0,
            )


# =============================================================================
# Entry Index
# =============================================================================


@dataclass
class TableIndex:
    """Inverted maps from tokens and metadata to entry positions."""

    table_name: str
    text: dict[str, set[int]] = field(default_factory=dict)
    tags: dict[str, set[int]] = field(default_factory=dict)
    categories: dict[str, set[int]] = field(default_factory=dict)
    rarities: dict[str, set[int]] = field(default_factory=dict)

    @classmethod
    def build(cls, table: RandomTable) -> TableIndex:
        """Index every entry of a table."""
        index = cls(table_name=table.name)
        for position, entry in enumerate(table.entries):
            tokens = tokenize_text(entry.text())
            if entry.metadata is not None:
                meta = entry.metadata
                tokens.extend(tag.lower() for tag in meta.tags)
                for tag in meta.tags:
                    index.tags.setdefault(tag.lower(), set()).add(position)
                if meta.category:
                    tokens.append(meta.category.lower())
                    index.categories.setdefault(meta.category.lower(), set()).add(position)
                if meta.rarity:
                    tokens.append(meta.rarity.lower())
                    index.rarities.setdefault(meta.rarity.lower(), set()).add(position)
            for token in tokens:
                index.text.setdefault(token, set()).add(position)
        return index

    def search(
        self,
        query: str = "",
        *,
        tags: Iterable[str] | None = None,
        category: str | None = None,
        rarity: str | None = None,
    ) -> list[int]:
        """Find entry positions.

        Full-text matches for any query token are unioned, then intersected
        with each supplied filter. Filters alone return the filter set.

        Args:
            query: Free text.
            tags: Tags an entry must all carry.
            category: Required category.
            rarity: Required rarity.

        Returns:
            Matching positions in table order.
        """
        matches: set[int] | None = None
        tokens = tokenize_text(query)
        if tokens:
            matches = set()
            for token in tokens:
                matches |= self.text.get(token, set())

        filters: list[set[int]] = [self.tags.get(tag.lower(), set()) for tag in tags or ()]
        if category:
            filters.append(self.categories.get(category.lower(), set()))
        if rarity:
            filters.append(self.rarities.get(rarity.lower(), set()))
        for selected in filters:
            matches = set(selected) if matches is None else matches & selected

        return sorted(matches or ())


# =============================================================================
# Performance Layer
# =============================================================================


class PerformanceLayer:
    """Owns the table, result and index caches plus engine metrics."""

    def __init__(
        self,
        *,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        max_size: int = MAX_CACHE_SIZE,
        eviction_ratio: float = CACHE_EVICTION_RATIO,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the caches.

        Args:
            ttl_seconds: Default entry lifetime.
            max_size: Maximum entries per cache.
            eviction_ratio: Fraction evicted when a cache is full.
            clock: Time source, in seconds.
        """
        options = {
            "ttl_seconds": ttl_seconds,
            "max_size": max_size,
            "eviction_ratio": eviction_ratio,
            "clock": clock,
        }
        self.table_cache: TTLCache[RandomTable] = TTLCache("tables", **options)
        self.result_cache: TTLCache[TableResult] = TTLCache("results", **options)
        self.index_cache: TTLCache[TableIndex] = TTLCache("indices", **options)
        self._metrics = PerformanceMetrics()
        self._metrics_lock = threading.Lock()

    # -- tables ----------------------------------------------------------------

    def cache_table(self, table: RandomTable) -> None:
        """Store a table definition."""
        self.table_cache.set(table.key, table)
        with self._metrics_lock:
            self._metrics.table_loads += 1

    def get_table(self, name: str) -> RandomTable | None:
        """Cached table definition, if live."""
        return self._counted(self.table_cache.get(name.lower()))

    def invalidate_table(self, name: str) -> None:
        """Forget a table, its index and every cached result for it."""
        key = name.lower()
        self.table_cache.invalidate(key)
        self.index_cache.invalidate(key)
        dropped = self.result_cache.invalidate_where(lambda k: k.startswith(f"{key}:"))
        logger.debug("Table invalidated", table=name, results_dropped=dropped)

    # -- results ---------------------------------------------------------------

    @staticmethod
    def result_key(table: RandomTable, context: RollContext) -> str:
        """Cache key from the table name, context variables and story."""
        payload = json.dumps(
            {"variables": context.variables, "story_id": context.story_id},
            sort_keys=True,
            default=str,
        )
        digest = hashlib.sha1(payload.encode("utf-8")).hexdigest()
        return f"{table.key}:{digest}"

    def get_result(self, key: str) -> TableResult | None:
        """Cached roll result, if live."""
        return self._counted(self.result_cache.get(key))

    def cache_result(self, key: str, result: TableResult) -> None:
        """Store a roll result."""
        self.result_cache.set(key, result)

    # -- indices ---------------------------------------------------------------

    def build_index(self, table: RandomTable) -> TableIndex:
        """Build and cache the index for a table."""
        index = TableIndex.build(table)
        self.index_cache.set(table.key, index)
        return index

    def get_index(self, table: RandomTable) -> TableIndex:
        """Cached index for a table, building it on a miss."""
        index = self._counted(self.index_cache.get(table.key))
        return index if index is not None else self.build_index(table)

    def search(
        self,
        table: RandomTable,
        query: str = "",
        *,
        tags: Iterable[str] | None = None,
        category: str | None = None,
        rarity: str | None = None,
    ) -> list[TableEntry]:
        """Search a table's entries by text and metadata.

        Args:
            table: Table to search.
            query: Free text; any token may match.
            tags: Tags an entry must all carry.
            category: Required category.
            rarity: Required rarity.

        Returns:
            Matching entries in table order.
        """
        positions = self.get_index(table).search(
            query, tags=tags, category=category, rarity=rarity
        )
        return [table.entries[p] for p in positions if p < len(table.entries)]

    async def preload_tables(self, tables: Iterable[RandomTable]) -> int:
        """Fill the table cache and build indices off the event loop.

        Readers running meanwhile may see a miss and recompute; nothing
        blocks on the preload.

        Args:
            tables: Tables to preload.

        Returns:
            Number of tables preloaded.
        """
        count = 0
        for table in tables:
            await asyncio.to_thread(self._preload_one, table)
            count += 1
        logger.info("Tables preloaded", count=count)
        return count

    def _preload_one(self, table: RandomTable) -> None:
        self.cache_table(table)
        self.build_index(table)

    # -- metrics ---------------------------------------------------------------

    def _counted(self, value: T | None) -> T | None:
        with self._metrics_lock:
            if value is None:
                self._metrics.cache_misses += 1
            else:
                self._metrics.cache_hits += 1
        return value

    def record_roll_time(self, elapsed_ms: float) -> None:
        """Add to the cumulative roll time."""
        with self._metrics_lock:
            self._metrics.roll_time_ms += elapsed_ms

    def record_evaluation_time(self, elapsed_ms: float) -> None:
        """Add to the cumulative expression evaluation time."""
        with self._metrics_lock:
            self._metrics.evaluation_time_ms += elapsed_ms

    def metrics(self) -> PerformanceMetrics:
        """Read-only snapshot of the metrics."""
        with self._metrics_lock:
            return self._metrics.model_copy()

    def cache_stats(self) -> CacheStatistics:
        """Size and hit rate of each cache."""
        return CacheStatistics(
            table_cache=self.table_cache.stats(),
            result_cache=self.result_cache.stats(),
            index_cache=self.index_cache.stats(),
        )

    def reset_metrics(self) -> None:
        """Zero every metric."""
        with self._metrics_lock:
            self._metrics = PerformanceMetrics()

    def clear(self) -> None:
        """Empty every cache."""
        self.table_cache.clear()
        self.result_cache.clear()
        self.index_cache.clear()
        logger.info("Caches cleared")


__all__ = [
    "CacheEntry",
    "TTLCache",
    "TableIndex",
    "PerformanceLayer",
    "tokenize_text",
]
