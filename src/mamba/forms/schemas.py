"""Request/response schemas for form endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from mamba.schemas import CamelModel


class CreateFormRequest(CamelModel):
    email: str = Field(..., min_length=1, max_length=320)
    order_id: str = Field(..., min_length=1, max_length=255)
    form_data: dict[str, Any]
    access_link: str | None = None


class FormResponse(CamelModel):
    id: str
    email: str
    order_id: str
    form_data: dict[str, Any]
    access_link: str | None
    created_at: datetime
    submitted_at: datetime | None
