"""In-memory quota store (development and tests).

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from quota_gate.adapters.quota_store.base import AbstractQuotaStore


@dataclass
class _StoredValue:
    value: str
    expires_at: float


class InMemoryQuotaStore(AbstractQuotaStore):
    """Dictionary-backed store with per-key expiry.

    Expired entries are dropped lazily on read, mirroring how a TTL-aware
    store stops returning a key once it has expired.
    """

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.RLock()
        self._values: dict[str, _StoredValue] = {}

    async def get(self, key: str) -> str | None:
        with self._lock:
            item = self._values.get(key)
            if item is None:
                return None
            if item.expires_at <= self._clock():
                del self._values[key]
                return None
            return item.value

    async def set(self, key: str, value: str, ttl: timedelta) -> None:
        expires_at = self._clock() + ttl.total_seconds()
        with self._lock:
            self._values[key] = _StoredValue(value=value, expires_at=expires_at)

    async def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    async def close(self) -> None:
        with self._lock:
            self._values.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)
