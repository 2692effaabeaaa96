# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Time-bounded in-process cache.

The engine keeps three of these per process (entity configurations, validated
schema mappings, service tokens). They are created by the client and handed to
the components that need them, so each can be tested and invalidated on its own.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Hashable, Optional, Tuple


class TTLCache:
    """
    Key/value cache whose entries expire after a fixed time-to-live.

    Expired entries are evicted lazily when read.

    :param ttl: Default time-to-live in seconds.
    :type ttl: float
    :param clock: Monotonic clock returning seconds. Defaults to :func:`time.monotonic`.
    :type clock: Callable[[], float]
    """

    def __init__(self, ttl: float, clock: Optional[Callable[[], float]] = None) -> None:
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = float(ttl)
        self._clock = clock or time.monotonic
        self._entries: Dict[Hashable, Tuple[float, Any]] = {}
        # shared by request threads; reentrant so a clock callback may read the cache
        self._lock = threading.RLock()

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            expires_at, value = entry
            if self._clock() >= expires_at:
                self._entries.pop(key, None)
                return default
            return value

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        lifetime = self.ttl if ttl is None else float(ttl)
        with self._lock:
            self._entries[key] = (self._clock() + lifetime, value)

    def invalidate(self, key: Hashable) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel  # type: ignore[arg-type]

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for expires_at, _ in self._entries.values() if now < expires_at)
