import threading
import time
from collections import OrderedDict
from enum import StrEnum
from typing import Callable, Generic, TypeVar

from pydantic import BaseModel, ConfigDict

T = TypeVar("T")
VT = TypeVar("VT")

Clock = Callable[[], float]


class CacheMetrics:
    """Thread-safe counters for cache lookups.

    Stale hits are counted as hits and also tracked on their own, so the share
    of requests served from data past its fresh window is visible.
    """

    _counts: dict[str, int]
    _lock: threading.Lock

    def __init__(self):
        self._lock = threading.Lock()
        self._counts = dict.fromkeys(("hits", "stale_hits", "misses", "evictions"), 0)

    def _incr(self, *names: str):
        with self._lock:
            for name in names:
                self._counts[name] += 1

    def record_hit(self, stale: bool = False):
        if stale:
            self._incr("hits", "stale_hits")
        else:
            self._incr("hits")

    def record_miss(self):
        self._incr("misses")

    def record_eviction(self):
        self._incr("evictions")

    @property
    def hits(self) -> int:
        return self._counts["hits"]

    @property
    def stale_hits(self) -> int:
        return self._counts["stale_hits"]

    @property
    def misses(self) -> int:
        return self._counts["misses"]

    @property
    def evictions(self) -> int:
        return self._counts["evictions"]

    def hit_rate(self) -> float:
        """Return cache hit rate as percentage (0-100)."""
        with self._lock:
            total = self._counts["hits"] + self._counts["misses"]
            return self._counts["hits"] / total * 100 if total else 0.0

    def reset(self):
        with self._lock:
            for name in self._counts:
                self._counts[name] = 0


class Freshness(StrEnum):
    fresh = "fresh"
    stale = "stale"
    expired = "expired"


class CacheEntry(BaseModel, Generic[T]):
    """A cached value with the provider it came from and when it was fetched.

    Entries are frozen; a refresh replaces the whole entry.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)  # pyright: ignore[reportUnannotatedClassAttribute]

    value: T
    source: str = "default"
    fetched_at: float


class TTLCache(Generic[VT]):
    """Keyed cache whose entries are classified fresh, stale or expired by age.

    Lookups never fetch. Entries older than stale_ttl are treated as absent
    unless the caller explicitly asks for expired data (degraded mode).
    """

    _cache: OrderedDict[str, CacheEntry[VT]]
    _lock: threading.Lock
    _maxsize: int | None
    _metrics: CacheMetrics

    def __init__(
        self,
        fresh_ttl: float,
        stale_ttl: float | None = None,
        maxsize: int | None = None,
        clock: Clock = time.time,
    ):
        """
        Args:
            fresh_ttl: Seconds during which an entry is fresh.
            stale_ttl: Seconds after which an entry is expired. Defaults to fresh_ttl.
            maxsize: Maximum number of entries. None = unlimited. Uses LRU eviction.
            clock: Returns the current time in seconds.
        """
        if stale_ttl is None:
            stale_ttl = fresh_ttl
        if stale_ttl < fresh_ttl:
            raise ValueError("stale_ttl must be greater than or equal to fresh_ttl")
        self.fresh_ttl = fresh_ttl
        self.stale_ttl = stale_ttl
        self._clock = clock
        self._cache = OrderedDict()
        self._lock = threading.Lock()
        self._maxsize = maxsize
        self._metrics = CacheMetrics()

    def now(self) -> float:
        return self._clock()

    def classify(self, entry: CacheEntry[VT], now: float | None = None) -> Freshness:
        if now is None:
            now = self._clock()
        age = now - entry.fetched_at
        if age <= self.fresh_ttl:
            return Freshness.fresh
        if age <= self.stale_ttl:
            return Freshness.stale
        return Freshness.expired

    def get(self, key: str, allow_expired: bool = False) -> CacheEntry[VT] | None:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._metrics.record_miss()
                return None
            freshness = self.classify(entry)
            if not allow_expired and freshness == Freshness.expired:
                self._metrics.record_miss()
                return None
            self._cache.move_to_end(key)
            self._metrics.record_hit(stale=freshness != Freshness.fresh)
            return entry

    def put(self, key: str, value: VT, source: str = "default") -> CacheEntry[VT]:
        with self._lock:
            fetched_at = self._clock()
            previous = self._cache.pop(key, None)
            # fetched_at never goes backwards for a key, even if the clock does
            if previous is not None and previous.fetched_at > fetched_at:
                fetched_at = previous.fetched_at

            entry = CacheEntry(value=value, source=source, fetched_at=fetched_at)
            self._cache[key] = entry

            if self._maxsize is not None and len(self._cache) > self._maxsize:
                oldest_key = next(iter(self._cache))
                del self._cache[oldest_key]
                self._metrics.record_eviction()
            return entry

    def invalidate(self, key: str) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    def flush(self):
        with self._lock:
            self._cache = OrderedDict()

    def get_metrics(self) -> CacheMetrics:
        """Return the metrics tracker for this cache."""
        return self._metrics

    def size(self) -> int:
        """Return current number of entries in cache."""
        with self._lock:
            return len(self._cache)
