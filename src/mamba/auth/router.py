"""Account router: /auth/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends

from mamba.auth.schemas import ChangePasswordRequest, Credentials, MessageResponse, UserResponse
from mamba.auth.service import authenticate, change_password, create_user, delete_user
from mamba.clock import Clock
from mamba.dependencies import EmailService, Storage, get_clock, get_notifier, get_storage

logger = structlog.get_logger()

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/signup", response_model=UserResponse, status_code=201)
async def signup(
    body: Credentials,
    storage: Storage = Depends(get_storage),  # noqa: B008
    clock: Clock = Depends(get_clock),  # noqa: B008
) -> UserResponse:
    """Register with email + password."""
    user = await create_user(storage, body.email, body.password, now=clock())
    return UserResponse(id=user.id, email=user.email)


@router.post("/login", response_model=UserResponse)
async def login(
    body: Credentials,
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> UserResponse:
    """Check email + password."""
    user = await authenticate(storage, body.email, body.password)
    logger.info("user_logged_in", user_id=user.id)
    return UserResponse(id=user.id, email=user.email)


@router.post("/change-password", response_model=MessageResponse)
async def change_password_endpoint(
    body: ChangePasswordRequest,
    storage: Storage = Depends(get_storage),  # noqa: B008
    notifier: EmailService = Depends(get_notifier),  # noqa: B008
) -> MessageResponse:
    """Change password (requires the current password)."""
    user = await change_password(storage, body.email, body.old_password, body.new_password)
    await notifier.send_password_changed(user.email)
    return MessageResponse(message="Password changed")


@router.post("/delete-account", response_model=MessageResponse)
async def delete_account(
    body: Credentials,
    storage: Storage = Depends(get_storage),  # noqa: B008
    notifier: EmailService = Depends(get_notifier),  # noqa: B008
) -> MessageResponse:
    """Permanently delete the account (requires the password)."""
    user = await delete_user(storage, body.email, body.password)
    await notifier.send_account_deleted(user.email)
    return MessageResponse(message="Account deleted")
