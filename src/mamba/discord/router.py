"""Discord access endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from mamba.clock import Clock, ensure_aware
from mamba.dependencies import DiscordRoleClient, Storage, get_clock, get_role_client, get_storage
from mamba.discord.schemas import (
    AccessStatusResponse,
    GrantAccessRequest,
    GrantAccessResponse,
    LinkRequest,
    LinkResponse,
    RevokeAccessRequest,
    RevokeAccessResponse,
)
from mamba.discord.service import access_status, admin_grant, link_discord, revoke

router = APIRouter(prefix="/discord", tags=["Discord"])


@router.post("/grant-access", response_model=GrantAccessResponse)
async def grant_access(
    body: GrantAccessRequest,
    storage: Storage = Depends(get_storage),  # noqa: B008
    role_client: DiscordRoleClient = Depends(get_role_client),  # noqa: B008
    clock: Clock = Depends(get_clock),  # noqa: B008
) -> GrantAccessResponse:
    """Create a fresh time-limited access record for an email."""
    record = await admin_grant(
        storage,
        role_client,
        body.discord_user_id,
        body.duration_days,
        now=clock(),
        email=body.email,
        order_id=body.order_id,
    )
    return GrantAccessResponse(access_id=record.id, expires_at=ensure_aware(record.expires_at))


@router.post("/link", response_model=LinkResponse)
async def link(
    body: LinkRequest,
    storage: Storage = Depends(get_storage),  # noqa: B008
    role_client: DiscordRoleClient = Depends(get_role_client),  # noqa: B008
    clock: Clock = Depends(get_clock),  # noqa: B008
) -> LinkResponse:
    """Bind an email entitlement to a Discord account."""
    result = await link_discord(storage, role_client, body.email, body.discord_user_id, now=clock())
    return LinkResponse(
        already_linked=result.already_linked,
        role_granted=result.role_granted,
        expires_at=ensure_aware(result.access.expires_at),
    )


@router.get("/access/{email}", response_model=AccessStatusResponse)
async def get_access(
    email: str,
    storage: Storage = Depends(get_storage),  # noqa: B008
    clock: Clock = Depends(get_clock),  # noqa: B008
) -> AccessStatusResponse:
    """Whether the email currently has access, computed at request time."""
    status = await access_status(storage, email, now=clock())
    return AccessStatusResponse(
        has_access=status.has_access,
        expires_at=status.expires_at,
        days_remaining=status.days_remaining,
    )


@router.post("/revoke-access", response_model=RevokeAccessResponse)
async def revoke_access(
    body: RevokeAccessRequest,
    storage: Storage = Depends(get_storage),  # noqa: B008
    role_client: DiscordRoleClient = Depends(get_role_client),  # noqa: B008
) -> RevokeAccessResponse:
    """Delete the access record. 404 when there is none."""
    await revoke(storage, role_client, body.email, body.discord_user_id)
    return RevokeAccessResponse(success=True)
