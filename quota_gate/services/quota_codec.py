"""Serialization of quota records for the external store.

Records are stored as compact JSON objects, e.g.
``{"total_limit":10,"times_remaining":7,"reset_timestamp":1700000060}``.
The same service writes and reads them, so the format only needs to round-trip
the three integer fields exactly.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from quota_gate.core.errors import QuotaCodecAppError
from quota_gate.schemas.quota import QuotaEntity

logger = logging.getLogger(__name__)


def encode_quota(entity: QuotaEntity) -> str:
    """Encode a quota entity into its stored payload.

    Args:
        entity: Quota entity to persist.

    Returns:
        JSON payload string.

    Raises:
        QuotaCodecAppError: If the entity cannot be serialized.
    """

    try:
        return entity.model_dump_json()
    except PydanticSerializationError as exc:
        raise QuotaCodecAppError(
            code="quota_encode_failed",
            message="Failed to encode the quota record",
            details={"error_type": type(exc).__name__},
        ) from exc


def decode_quota(payload: str | bytes) -> QuotaEntity:
    """Decode a stored payload back into a quota entity.

    A payload that cannot be decoded is treated as corruption, never as a
    missing record.

    Args:
        payload: Raw value read from the store.

    Returns:
        The decoded QuotaEntity.

    Raises:
        QuotaCodecAppError: If the payload is not a valid quota record.
    """

    try:
        return QuotaEntity.model_validate_json(payload)
    except ValidationError as exc:
        logger.warning(
            "quota_codec.decode_failed",
            extra={"error_count": exc.error_count()},
        )
        raise QuotaCodecAppError(
            code="quota_decode_failed",
            message="Failed to decode the quota record",
            details={"error_type": type(exc).__name__},
        ) from exc
