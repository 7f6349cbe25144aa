"""Quota store factory.

Selects the store backend from configuration.
"""

from __future__ import annotations

import logging

from quota_gate.adapters.quota_store.base import AbstractQuotaStore
from quota_gate.adapters.quota_store.in_memory import InMemoryQuotaStore
from quota_gate.adapters.quota_store.redis_store import RedisQuotaStore
from quota_gate.core.config import Settings, settings as global_settings
from quota_gate.core.errors import ValidationAppError

logger = logging.getLogger(__name__)

SUPPORTED_BACKENDS = ("memory", "redis")


def create_quota_store(settings: Settings | None = None) -> AbstractQuotaStore:
    """Create the quota store configured for this process.

    Args:
        settings: Settings to read from; defaults to the global settings.

    Returns:
        AbstractQuotaStore: Store instance for the configured backend.

    Raises:
        ValidationAppError: If the configured backend is not supported.
    """
    cfg = settings or global_settings
    backend = cfg.quota.store_backend.strip().lower()

    if backend == "memory":
        logger.info("quota_store.created", extra={"backend": backend})
        return InMemoryQuotaStore()

    if backend == "redis":
        logger.info("quota_store.created", extra={"backend": backend})
        return RedisQuotaStore.from_url(
            cfg.redis.url,
            socket_timeout=cfg.redis.socket_timeout_seconds,
        )

    raise ValidationAppError(
        code="unsupported_store_backend",
        message=f"Unsupported quota store backend: {cfg.quota.store_backend}",
        details={"hint": f"Use one of: {', '.join(SUPPORTED_BACKENDS)}"},
    )
