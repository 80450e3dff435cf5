"""Request/response schemas for the access-code endpoint."""

from __future__ import annotations

from pydantic import Field

from mamba.schemas import CamelModel


class ClaimCodeRequest(CamelModel):
    email: str = Field(..., min_length=1, max_length=320)
    product_id: str = Field(..., min_length=1, max_length=128)
    order_id: str | None = Field(None, max_length=255)


class ClaimCodeResponse(CamelModel):
    code: str
    generator_link: str
