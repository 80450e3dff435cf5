"""Request/response schemas for account endpoints."""

from __future__ import annotations

from pydantic import Field

from mamba.schemas import CamelModel


class Credentials(CamelModel):
    """Signup, login and delete-account body."""

    email: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., min_length=1, max_length=1024)


class ChangePasswordRequest(CamelModel):
    """Change password for a known account."""

    email: str = Field(..., min_length=1, max_length=320)
    old_password: str = Field(..., min_length=1, max_length=1024)
    new_password: str = Field(..., min_length=1, max_length=1024)


class UserResponse(CamelModel):
    """Public account view. Never includes the password hash."""

    id: str
    email: str


class MessageResponse(CamelModel):
    """Generic success message."""

    success: bool = True
    message: str
