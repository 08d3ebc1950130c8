import logging
from collections import OrderedDict
from threading import Lock
from typing import Any, Callable, Hashable

from .config import CACHE_CAPACITY
from .information import SubtokenDistributionModel
from .operators import SublatticeModification

logger = logging.getLogger(__name__)


class ModificationCache:
    """
    Thread-safe, bounded LRU cache of speculative VI gains.

    Keys are (modification kind, Before clusters by content, auxiliary datum).
    get_or_compute() runs the computation outside the lock, so two threads missing
    on the same key may both compute it; the second insert just refreshes the entry.
    """
    def __init__(self, capacity: int = CACHE_CAPACITY):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._cache: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._lock = Lock()

        # rolling counters, reset by hit_rate()
        self._accesses = 0
        self._hits = 0

    def __len__(self):
        with self._lock:
            return len(self._cache)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._cache

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            self._accesses += 1
            if key in self._cache:
                self._cache.move_to_end(key)
                self._hits += 1
                return self._cache[key]
            return default

    def put(self, key: Hashable, value: Any):
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
                self._cache[key] = value
                return
            self._cache[key] = value
            if len(self._cache) > self.capacity:
                evicted_key, _ = self._cache.popitem(last=False)
                logger.debug("Cache evicted: %s", evicted_key)

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        with self._lock:
            self._accesses += 1
            if key in self._cache:
                self._cache.move_to_end(key)
                self._hits += 1
                return self._cache[key]
        value = compute()
        self.put(key, value)
        return value

    def hit_rate(self) -> float:
        """Fraction of accesses that hit since the previous call."""
        with self._lock:
            rate = self._hits / self._accesses if self._accesses else 0.0
            self._hits = 0
            self._accesses = 0
            return rate

    def clear(self):
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._accesses = 0


def speculative_gain(modification: SublatticeModification,
                     model: SubtokenDistributionModel,
                     num_total_nodes: int,
                     cache: ModificationCache = None) -> float:
    """
    VI(Before) - VI(After) for a proposed modification. Positive means the
    modification makes the clustering tighter.
    """
    def compute():
        score_before = model.compute_variation_of_information(modification.before, num_total_nodes)
        score_after = model.compute_variation_of_information(modification.after, num_total_nodes)
        return score_before - score_after

    if cache is None:
        return compute()
    return cache.get_or_compute(modification.cache_key(), compute)
