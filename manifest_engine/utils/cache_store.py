"""In-memory keyed cache with an optional fixed time-to-live."""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Generic, Iterator, Optional, Tuple, TypeVar

T = TypeVar("T")


class CacheStore(Generic[T]):
    """Keyed store used for raw manifest content and parsed masters.

    ``ttl_seconds=None`` keeps entries until :meth:`delete` or :meth:`clear`.
    """

    def __init__(self, ttl_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._data: Dict[str, Tuple[float, T]] = {}

    def get(self, key: str) -> Optional[T]:
        entry = self._data.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._is_expired(stored_at):
            del self._data[key]
            return None
        return value

    def put(self, key: str, value: T) -> None:
        self._data[key] = (self._clock(), value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def evict_expired(self) -> int:
        """Drops expired entries and returns how many were removed."""

        if self.ttl_seconds is None:
            return 0
        expired = [key for key, (stored_at, _) in self._data.items() if self._is_expired(stored_at)]
        for key in expired:
            del self._data[key]
        if expired:
            logging.debug("Evicted %s expired cache entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        self._data.clear()

    def values(self) -> Iterator[T]:
        for key in list(self._data):
            value = self.get(key)
            if value is not None:
                yield value

    def _is_expired(self, stored_at: float) -> bool:
        if self.ttl_seconds is None:
            return False
        return self._clock() - stored_at > self.ttl_seconds

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def __len__(self) -> int:
        return len(self._data)
