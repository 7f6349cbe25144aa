"""Quota store interface.

The rate gate should depend on this abstraction (not a concrete client) so the
storage backend can be substituted in tests and deployments.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import timedelta


class AbstractQuotaStore(ABC):
    """Key-value store holding one serialized quota record per caller key.

    Implementations raise QuotaStoreAppError on communication failures. A
    missing key is not a failure: ``get`` returns None.
    """

    @abstractmethod
    async def get(self, key: str) -> str | bytes | None:
        """Return the raw value stored at key, or None when absent."""
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, value: str, ttl: timedelta) -> None:
        """Store value at key, expiring after ttl."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key if present."""
        raise NotImplementedError

    async def close(self) -> None:
        """Release any resources held by the store."""
        return None
