from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator


class QuotaEntity(BaseModel):
    """A caller's current quota window as persisted in the store."""

    model_config = ConfigDict(frozen=True, strict=True)

    total_limit: int = Field(..., ge=0, description="Quota ceiling for the window")
    times_remaining: int = Field(..., ge=0, description="Requests still permitted")
    reset_timestamp: int = Field(
        ..., ge=0, description="UNIX epoch seconds when the window expires"
    )

    @model_validator(mode="after")
    def _remaining_within_limit(self) -> "QuotaEntity":
        if self.times_remaining > self.total_limit:
            raise ValueError("times_remaining must not exceed total_limit")
        return self

    def is_expired(self, now: int) -> bool:
        return self.reset_timestamp <= now


class QuotaStatusResponse(BaseModel):
    """Quota state reported back to a caller."""

    limit: int = Field(..., description="Max requests per window")
    remaining: int = Field(..., description="Requests left in the current window")
    reset_at: int = Field(..., description="UNIX epoch seconds when the window resets")

    @classmethod
    def from_entity(cls, entity: QuotaEntity) -> "QuotaStatusResponse":
        return cls(
            limit=entity.total_limit,
            remaining=entity.times_remaining,
            reset_at=entity.reset_timestamp,
        )
