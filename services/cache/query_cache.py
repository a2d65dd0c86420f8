"""
POWERWATCH Bounded Query Cache

Fixed-capacity LRU cache for decoded Redfish payloads, keyed by resource
path. A miss never changes a decision, only the number of controller calls,
so entries are allowed to be stale within one run. The supervisor's own
state queries never read from it.

Thread safety:
    Every operation takes an internal lock around the ordering structure,
    so callers need no external synchronization.
"""

import logging
import threading
from collections import OrderedDict
from typing import Any, Hashable, List, Optional, Tuple

from powerwatch.exceptions import ConfigurationError

logger = logging.getLogger("powerwatch.services.cache")


class BoundedQueryCache:
    """
    Least-recently-used cache with a fixed capacity.

    The OrderedDict keeps entries from least to most recently used; both
    hits and updates move an entry to the end, and eviction pops the front.

    Usage:
        cache = BoundedQueryCache(capacity=20)
        cache.put("/redfish/v1/Systems/System.Embedded.1", body)

        body, found = cache.get("/redfish/v1/Systems/System.Embedded.1")
    """

    def __init__(self, capacity: int):
        """
        Initialize cache.

        Args:
            capacity: Maximum number of entries, at least 1

        Raises:
            ConfigurationError: If capacity is below 1
        """
        if capacity < 1:
            raise ConfigurationError(
                f"Cache capacity must be at least 1, got {capacity}",
                config_key="cache.capacity",
            )
        self._capacity = capacity
        self._entries: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def get(self, key: Hashable) -> Tuple[Optional[Any], bool]:
        """
        Look up a key.

        A hit promotes the entry to most recently used.

        Returns:
            (value, True) on a hit, (None, False) on a miss
        """
        with self._lock:
            if key not in self._entries:
                return None, False
            self._entries.move_to_end(key)
            return self._entries[key], True

    def put(self, key: Hashable, value: Any) -> None:
        """
        Insert or update a key, making it most recently used.

        Inserting a new key into a full cache evicts the least recently
        used entry first.
        """
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                self._entries[key] = value
                return

            if len(self._entries) >= self._capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug(f"Evicted {evicted} from query cache")

            self._entries[key] = value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def keys(self) -> List[Hashable]:
        """Keys from most to least recently used."""
        with self._lock:
            return list(reversed(self._entries))

    def __contains__(self, key: Hashable) -> bool:
        # Membership test only; does not touch recency
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __repr__(self) -> str:
        return f"BoundedQueryCache(capacity={self._capacity}, keys={self.keys()})"
