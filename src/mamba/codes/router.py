"""Access-code claim endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from mamba.clock import Clock
from mamba.codes.schemas import ClaimCodeRequest, ClaimCodeResponse
from mamba.codes.service import claim_for_product
from mamba.config import get_settings
from mamba.dependencies import Storage, get_clock, get_storage

router = APIRouter(prefix="/access-codes", tags=["Access codes"])


@router.post("/claim", response_model=ClaimCodeResponse)
async def claim(
    body: ClaimCodeRequest,
    storage: Storage = Depends(get_storage),  # noqa: B008
    clock: Clock = Depends(get_clock),  # noqa: B008
) -> ClaimCodeResponse:
    """Claim one unused code. 404 when the pool is exhausted."""
    code = await claim_for_product(storage, body.email, body.product_id, now=clock(), order_id=body.order_id)
    return ClaimCodeResponse(code=code.code, generator_link=get_settings().generator_link)
