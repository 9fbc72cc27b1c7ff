from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Generic, Optional, Tuple, TypeVar

K = TypeVar("K")
V = TypeVar("V")


@dataclass
class _Entry(Generic[V]):
    value: V
    checked_at: float
    expires_at: float


class TTLCache(Generic[K, V]):
    """
    In-memory TTL cache with least-recently-stored eviction.

    Entries remember when they were last checked so callers can prefer the
    freshest data. The clock is injectable for tests.
    """

    def __init__(self, *, ttl_seconds: float = 300.0, max_items: int = 64, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = max(0.0, float(ttl_seconds))
        self._max_items = max(1, int(max_items))
        self._clock = clock
        self._data: "OrderedDict[K, _Entry[V]]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._data)

    def get(self, key: K) -> Optional[V]:
        hit = self.get_with_age(key)
        return None if hit is None else hit[0]

    def get_with_age(self, key: K) -> Optional[Tuple[V, float]]:
        """Value and seconds since it was stored, or None when absent or expired."""
        e = self._data.get(key)
        if e is None:
            return None
        now = self._clock()
        if e.expires_at <= now:
            self.delete(key)
            return None
        return e.value, now - e.checked_at

    def set(self, key: K, value: V, ttl_seconds: Optional[float] = None) -> None:
        now = self._clock()
        ttl = self._ttl if ttl_seconds is None else max(0.0, float(ttl_seconds))
        self._data.pop(key, None)
        self._data[key] = _Entry(value=value, checked_at=now, expires_at=now + ttl)
        while len(self._data) > self._max_items:
            self._data.popitem(last=False)

    def delete(self, key: K) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()
