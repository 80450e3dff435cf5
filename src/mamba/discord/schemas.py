"""Request/response schemas for Discord access endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from mamba.schemas import CamelModel


class GrantAccessRequest(CamelModel):
    email: str = Field(..., min_length=1, max_length=320)
    discord_user_id: str | None = Field(None, max_length=64)
    order_id: str | None = Field(None, max_length=255)
    duration_days: int = Field(31, ge=1, le=999)


class GrantAccessResponse(CamelModel):
    access_id: str
    expires_at: datetime


class LinkRequest(CamelModel):
    email: str = Field(..., min_length=1, max_length=320)
    discord_user_id: str = Field(..., min_length=1, max_length=64)


class LinkResponse(CamelModel):
    success: bool = True
    already_linked: bool
    role_granted: bool
    expires_at: datetime


class AccessStatusResponse(CamelModel):
    has_access: bool
    expires_at: datetime | None
    days_remaining: int


class RevokeAccessRequest(CamelModel):
    email: str = Field(..., min_length=1, max_length=320)
    discord_user_id: str | None = Field(None, max_length=64)


class RevokeAccessResponse(CamelModel):
    success: bool
