"""Obywatel document forms. The payload is stored as-is."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

import structlog

from mamba.auth.service import normalize_email
from mamba.errors import NotFoundError, ValidationError

if TYPE_CHECKING:
    from mamba.db.models import ObywatelForm
    from mamba.storage import Storage

logger = structlog.get_logger()


async def create_form(
    storage: Storage,
    email: str,
    order_id: str,
    form_data: dict[str, Any],
    *,
    now: datetime,
    access_link: str | None = None,
) -> ObywatelForm:
    if not order_id:
        msg = "orderId is required"
        raise ValidationError(msg)
    form = await storage.create_form(normalize_email(email), order_id, form_data, access_link, now=now)
    logger.info("form_created", form_id=form.id, order_id=order_id)
    return form


async def list_forms(storage: Storage, email: str) -> list[ObywatelForm]:
    return await storage.list_forms_by_email(normalize_email(email))


async def submit_form(storage: Storage, form_id: str, *, now: datetime) -> ObywatelForm:
    """Stamp ``submitted_at``. Submitting twice keeps the first timestamp."""
    form = await storage.mark_form_submitted(form_id, now=now)
    if form is None:
        msg = "Form not found"
        raise NotFoundError(msg)
    return form
