"""Fixed-window rate gate backed by an external quota store.

For every caller key the store holds one quota record: the window's limit,
the requests still permitted and the UNIX time at which the window resets.
Each ``validate`` call re-reads that record, decides whether the request is
admitted and writes the updated record back with a TTL equal to the window
length, so abandoned keys are reclaimed by the store itself.

Known limitation:
    The fetch/decide/persist sequence is not atomic. Two concurrent calls for
    the same key can both read ``times_remaining == 1`` and both be admitted,
    so under contention a key may exceed its quota by the number of racing
    requests. Closing this needs a single store-side operation (for example a
    Redis script doing expiry check and decrement in one round trip).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from quota_gate.adapters.quota_store.base import AbstractQuotaStore
from quota_gate.core.errors import ValidationAppError
from quota_gate.core.logging import hash_caller_key
from quota_gate.schemas.quota import QuotaEntity
from quota_gate.services.quota_codec import decode_quota, encode_quota

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GateConfig:
    """Rate gate configuration.

    Attributes:
        restriction_count: Requests admitted per window.
        restriction_time: Window length; also the TTL of stored records.
        log: Log every admission decision.
    """

    restriction_count: int
    restriction_time: timedelta
    log: bool = False

    def __post_init__(self) -> None:
        if isinstance(self.restriction_count, bool) or not isinstance(self.restriction_count, int):
            raise ValidationAppError(
                code="invalid_quota_config",
                message="restriction_count must be an integer",
            )
        if self.restriction_count < 1:
            raise ValidationAppError(
                code="invalid_quota_config",
                message="restriction_count must be >= 1",
                details={"hint": "Set QUOTA_RESTRICTION_COUNT to a positive integer"},
            )
        if not isinstance(self.restriction_time, timedelta):
            raise ValidationAppError(
                code="invalid_quota_config",
                message="restriction_time must be a timedelta",
            )
        if self.restriction_time.total_seconds() < 1:
            raise ValidationAppError(
                code="invalid_quota_config",
                message="restriction_time must be at least one second",
                details={"hint": "Set QUOTA_RESTRICTION_TIME_SECONDS to a positive integer"},
            )

    @property
    def window_seconds(self) -> int:
        return int(self.restriction_time.total_seconds())


class RateGate:
    """Admission decisions for caller keys against a shared quota store.

    The gate keeps no per-key state between calls; all state lives in the
    store, so one instance can serve any number of concurrent requests.
    """

    def __init__(
        self,
        config: GateConfig,
        store: AbstractQuotaStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the gate.

        Args:
            config: Validated gate configuration.
            store: Quota store holding one record per caller key.
            clock: Time source function returning UNIX time in seconds.
        """
        self._config = config
        self._store = store
        self._clock = clock

    @property
    def config(self) -> GateConfig:
        return self._config

    @property
    def store(self) -> AbstractQuotaStore:
        return self._store

    def _now(self) -> int:
        return int(self._clock())

    def _log(self, event: str, key: str, entity: QuotaEntity) -> None:
        if not self._config.log:
            return
        logger.info(
            event,
            extra={
                "key_hash": hash_caller_key(key),
                "limit": entity.total_limit,
                "remaining": entity.times_remaining,
                "reset_at": entity.reset_timestamp,
            },
        )

    async def _persist(self, key: str, entity: QuotaEntity) -> None:
        await self._store.set(key, encode_quota(entity), self._config.restriction_time)

    async def _create_record(self, key: str) -> QuotaEntity:
        entity = QuotaEntity(
            total_limit=self._config.restriction_count,
            times_remaining=self._config.restriction_count,
            reset_timestamp=self._now() + self._config.window_seconds,
        )
        await self._persist(key, entity)
        return entity

    async def validate(self, key: str) -> tuple[bool, QuotaEntity]:
        """Decide whether a request from key is admitted.

        A missing or expired record starts a fresh window at full quota and
        admits the request without decrementing. Inside a live window each
        admitted request decrements the remaining count; once it reaches zero
        requests are rejected and the record is returned unchanged.

        Args:
            key: Caller identifier (e.g., namespaced client IP).

        Returns:
            Tuple of (admitted, entity) where entity is the current record.

        Raises:
            ValueError: If key is empty.
            QuotaStoreAppError: If the store fails any operation.
            QuotaCodecAppError: If the stored record cannot be decoded.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        raw = await self._store.get(key)
        if raw is None:
            entity = await self._create_record(key)
            self._log("rate_gate.created", key, entity)
            return True, entity

        entity = decode_quota(raw)

        if entity.is_expired(self._now()):
            await self._store.delete(key)
            entity = await self._create_record(key)
            self._log("rate_gate.expired", key, entity)
            return True, entity

        if entity.times_remaining == 0:
            self._log("rate_gate.rejected", key, entity)
            return False, entity

        entity = entity.model_copy(update={"times_remaining": entity.times_remaining - 1})
        await self._persist(key, entity)
        self._log("rate_gate.admitted", key, entity)
        return True, entity
