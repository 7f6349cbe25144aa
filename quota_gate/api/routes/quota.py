from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from quota_gate.core.rate_limit import enforce_quota
from quota_gate.schemas.quota import QuotaEntity, QuotaStatusResponse

router = APIRouter(tags=["Quota"])


@router.get("/quota", response_model=QuotaStatusResponse)
async def get_quota(
    entity: Annotated[QuotaEntity | None, Depends(enforce_quota)],
) -> QuotaStatusResponse:
    """Report the caller's quota after counting this request.

    Returns:
        QuotaStatusResponse: Limit, remaining requests and reset time.

    Raises:
        HTTPException: 404 when quota enforcement is disabled.
    """
    if entity is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Quota enforcement is disabled",
        )
    return QuotaStatusResponse.from_entity(entity)
