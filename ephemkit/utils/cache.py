# ephemkit/utils/cache.py
from __future__ import annotations
from collections import OrderedDict
import threading
from typing import Any, Callable, Hashable, Optional


class LRUCache:
    """Bounded, lock-protected LRU map. Safe to share between threads."""

    def __init__(self, capacity: int = 1024):
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self.store: "OrderedDict[Hashable, Any]" = OrderedDict()
        self.lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[Any]:
        with self.lock:
            if key in self.store:
                self.store.move_to_end(key)
                self.hits += 1
                return self.store[key]
            self.misses += 1
            return None

    def set(self, key: Hashable, value: Any) -> None:
        with self.lock:
            self.store[key] = value
            self.store.move_to_end(key)
            if len(self.store) > self.capacity:
                self.store.popitem(last=False)

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        """Return the cached value, computing and storing it on a miss.

        `compute` runs outside the lock; two racing callers may both compute,
        the last write wins with an identical value.
        """
        value = self.get(key)
        if value is None:
            value = compute()
            self.set(key, value)
        return value

    def clear(self) -> None:
        with self.lock:
            self.store.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self.lock:
            return len(self.store)
