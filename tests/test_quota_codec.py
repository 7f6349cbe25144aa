"""Unit tests for quota record serialization."""

import json
from unittest.mock import patch

import pytest
from pydantic_core import PydanticSerializationError

from quota_gate.core.errors import QuotaCodecAppError
from quota_gate.schemas.quota import QuotaEntity
from quota_gate.services.quota_codec import decode_quota, encode_quota


def test_round_trip_preserves_all_fields() -> None:
    entity = QuotaEntity(total_limit=10, times_remaining=3, reset_timestamp=1_700_000_060)

    decoded = decode_quota(encode_quota(entity))

    assert decoded == entity
    assert decoded.total_limit == 10
    assert decoded.times_remaining == 3
    assert decoded.reset_timestamp == 1_700_000_060


def test_encoded_payload_is_json_object() -> None:
    entity = QuotaEntity(total_limit=2, times_remaining=2, reset_timestamp=1060)

    payload = json.loads(encode_quota(entity))

    assert payload == {"total_limit": 2, "times_remaining": 2, "reset_timestamp": 1060}


def test_decode_accepts_bytes() -> None:
    raw = b'{"total_limit": 5, "times_remaining": 0, "reset_timestamp": 99}'

    entity = decode_quota(raw)

    assert entity.times_remaining == 0
    assert entity.reset_timestamp == 99


@pytest.mark.parametrize(
    "payload",
    [
        "not-json",
        "",
        "[]",
        '{"total_limit": 5, "times_remaining": 1}',
        '{"total_limit": "5", "times_remaining": 1, "reset_timestamp": 10}',
        '{"total_limit": 5, "times_remaining": 1.5, "reset_timestamp": 10}',
        '{"total_limit": 5, "times_remaining": -1, "reset_timestamp": 10}',
        '{"total_limit": 2, "times_remaining": 3, "reset_timestamp": 10}',
    ],
)
def test_decode_rejects_corrupt_payloads(payload: str) -> None:
    with pytest.raises(QuotaCodecAppError) as exc_info:
        decode_quota(payload)

    assert exc_info.value.code == "quota_decode_failed"


def test_encode_failure_raises_codec_error() -> None:
    entity = QuotaEntity(total_limit=1, times_remaining=1, reset_timestamp=60)

    with patch.object(
        QuotaEntity,
        "model_dump_json",
        side_effect=PydanticSerializationError("unserializable"),
    ):
        with pytest.raises(QuotaCodecAppError) as exc_info:
            encode_quota(entity)

    assert exc_info.value.code == "quota_encode_failed"
