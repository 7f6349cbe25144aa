"""Redis-backed quota store.

Records are kept as plain string values with ``SET ... EX`` so Redis itself
reclaims keys of abandoned windows.
"""

from __future__ import annotations

import logging
from datetime import timedelta

import redis.asyncio as redis
from redis.exceptions import RedisError

from quota_gate.adapters.quota_store.base import AbstractQuotaStore
from quota_gate.core.errors import QuotaStoreAppError

logger = logging.getLogger(__name__)


def _store_error(operation: str, exc: Exception) -> QuotaStoreAppError:
    logger.error(
        "quota_store.operation_failed",
        extra={"operation": operation, "error_type": type(exc).__name__},
    )
    return QuotaStoreAppError(
        code="quota_store_unavailable",
        message="Quota store operation failed",
        details={"operation": operation, "error_type": type(exc).__name__},
    )


class RedisQuotaStore(AbstractQuotaStore):
    """Quota store over a shared ``redis.asyncio.Redis`` client.

    The client is passed in rather than created here so one connection pool
    can be shared process-wide and replaced in tests.
    """

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, *, socket_timeout: float = 5.0) -> "RedisQuotaStore":
        """Build a store with its own client from a Redis URL."""
        client = redis.from_url(
            url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=socket_timeout,
            socket_timeout=socket_timeout,
        )
        return cls(client)

    async def get(self, key: str) -> str | bytes | None:
        try:
            return await self._client.get(key)
        except (RedisError, OSError) as exc:
            raise _store_error("get", exc) from exc

    async def set(self, key: str, value: str, ttl: timedelta) -> None:
        try:
            await self._client.set(key, value, ex=ttl)
        except (RedisError, OSError) as exc:
            raise _store_error("set", exc) from exc

    async def delete(self, key: str) -> None:
        try:
            await self._client.delete(key)
        except (RedisError, OSError) as exc:
            raise _store_error("delete", exc) from exc

    async def close(self) -> None:
        await self._client.aclose()
