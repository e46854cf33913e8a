"""
Lookup Cache - caller-owned store of pairwise similarity lookups

The cache is created and owned by the caller and passed into the matrix
builder explicitly; nothing in this package keeps a process-wide cache.
Keys are (ontology, a, b) with a <= b, so both orderings of a pair share one
entry. Persistence is opt-in: the caller decides when to save() or load().
"""

import pickle
import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str, str]


class LookupCache:
    """Thread-safe similarity lookup cache with hit/miss statistics."""

    def __init__(self, cache_path: Optional[str] = None):
        """
        Args:
            cache_path: Pickle file used by save() / load() (optional)
        """
        self.cache_path = Path(cache_path) if cache_path else None
        self._entries: Dict[CacheKey, float] = {}
        self._lock = threading.Lock()
        self.stats = {
            'cache_hits': 0,
            'cache_misses': 0,
            'entries_written': 0
        }

    @staticmethod
    def make_key(a: str, b: str, ontology: Optional[str] = None) -> CacheKey:
        first, second = (a, b) if a <= b else (b, a)
        return (ontology or "", first, second)

    def get(self, a: str, b: str, ontology: Optional[str] = None) -> Optional[float]:
        key = self.make_key(a, b, ontology)
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self.stats['cache_misses'] += 1
            else:
                self.stats['cache_hits'] += 1
            return value

    def put(self, a: str, b: str, value: float, ontology: Optional[str] = None) -> None:
        key = self.make_key(a, b, ontology)
        with self._lock:
            self._entries[key] = float(value)
            self.stats['entries_written'] += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        """Clear in-memory entries."""
        with self._lock:
            self._entries.clear()
        logger.info("Lookup cache cleared")

    def save(self) -> None:
        """Save entries to cache_path."""
        if not self.cache_path:
            return

        self.cache_path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            snapshot = dict(self._entries)
        with open(self.cache_path, 'wb') as f:
            pickle.dump(snapshot, f)
        logger.debug(f"Saved {len(snapshot)} similarity lookups to {self.cache_path}")

    def load(self) -> int:
        """
        Load entries from cache_path, merging over the in-memory entries.

        Returns:
            Number of entries loaded
        """
        if not self.cache_path or not self.cache_path.exists():
            return 0

        with open(self.cache_path, 'rb') as f:
            loaded = pickle.load(f)

        with self._lock:
            self._entries.update(loaded)
        logger.info(f"Loaded {len(loaded)} cached similarity lookups from {self.cache_path}")
        return len(loaded)

    def get_stats(self) -> Dict:
        """Get cache statistics."""
        with self._lock:
            total_requests = self.stats['cache_hits'] + self.stats['cache_misses']
            hit_rate = self.stats['cache_hits'] / total_requests if total_requests > 0 else 0.0
            return {
                'cache_size': len(self._entries),
                'cache_hits': self.stats['cache_hits'],
                'cache_misses': self.stats['cache_misses'],
                'hit_rate': hit_rate,
                'entries_written': self.stats['entries_written']
            }
