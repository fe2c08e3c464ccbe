"""
infrastructure/dead_end_cache.py

Per-solve memory of search subtrees already proven to fail.

Features:
- LRU-bounded table (cachetools.LRUCache) mapping a state to the largest
  number of remaining steps from which the search has failed
- Sound pruning: failing with r steps left implies failing with any r' <= r,
  because the same choices are available with fewer steps

Architecture:
- One table per search (never shared across solves or workers)
- Eviction only forgets a proof of failure; it never changes results

Usage:
    from infrastructure.dead_end_cache import DeadEndTable

    table = DeadEndTable(maxsize=100_000)
    if table.is_dead_end(state, remaining):
        ...  # skip the subtree
    table.record(state, remaining)
    print(table.get_stats()["hit_rate"])
"""

from typing import Any, Dict, Hashable

from cachetools import LRUCache

from common.constants import DEAD_END_CACHE_MAXSIZE
from component_1_logging_config import get_logger

logger = get_logger(__name__)


class DeadEndTable:
    """
    LRU-bounded map: state -> largest remaining-step count proven to fail.

    Counts lookups that pruned a subtree (hits) and lookups that did not
    (misses).
    """

    def __init__(self, maxsize: int = DEAD_END_CACHE_MAXSIZE):
        """
        Args:
            maxsize: Maximum number of remembered states

        Raises:
            ValueError: If maxsize <= 0
        """
        if maxsize <= 0:
            raise ValueError(f"maxsize must be positive, got {maxsize}")

        self.maxsize = maxsize
        self._cache: LRUCache = LRUCache(maxsize=maxsize)
        self.hits = 0
        self.misses = 0

    def is_dead_end(self, state: Hashable, remaining: int) -> bool:
        """Whether the state is known to fail with `remaining` steps left."""
        failed_with = self._cache.get(state)
        if failed_with is not None and failed_with >= remaining:
            self.hits += 1
            return True
        self.misses += 1
        return False

    def record(self, state: Hashable, remaining: int) -> None:
        """Remember that the state fails with `remaining` steps left."""
        previous = self._cache.get(state)
        if previous is None or remaining > previous:
            self._cache[state] = remaining

    def clear(self) -> int:
        count = len(self._cache)
        self._cache.clear()
        logger.debug("Dead-end table cleared", extra={"entries": count})
        return count

    def __len__(self) -> int:
        return len(self._cache)

    def get_stats(self) -> Dict[str, Any]:
        lookups = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / lookups if lookups else 0.0,
            "size": len(self._cache),
            "maxsize": self.maxsize,
        }
