"""Obywatel form endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from mamba.clock import Clock
from mamba.db.models import ObywatelForm
from mamba.dependencies import Storage, get_clock, get_storage
from mamba.forms.schemas import CreateFormRequest, FormResponse
from mamba.forms.service import create_form, list_forms, submit_form

router = APIRouter(prefix="/forms", tags=["Forms"])


def _form_response(form: ObywatelForm) -> FormResponse:
    return FormResponse(
        id=form.id,
        email=form.email,
        order_id=form.order_id,
        form_data=form.form_data,
        access_link=form.access_link,
        created_at=form.created_at,
        submitted_at=form.submitted_at,
    )


@router.post("", response_model=FormResponse, status_code=201)
async def create_form_endpoint(
    body: CreateFormRequest,
    storage: Storage = Depends(get_storage),  # noqa: B008
    clock: Clock = Depends(get_clock),  # noqa: B008
) -> FormResponse:
    form = await create_form(
        storage,
        body.email,
        body.order_id,
        body.form_data,
        now=clock(),
        access_link=body.access_link,
    )
    return _form_response(form)


@router.get("/{email}", response_model=list[FormResponse])
async def list_forms_endpoint(
    email: str,
    storage: Storage = Depends(get_storage),  # noqa: B008
) -> list[FormResponse]:
    return [_form_response(f) for f in await list_forms(storage, email)]


@router.post("/{form_id}/submit", response_model=FormResponse)
async def submit_form_endpoint(
    form_id: str,
    storage: Storage = Depends(get_storage),  # noqa: B008
    clock: Clock = Depends(get_clock),  # noqa: B008
) -> FormResponse:
    return _form_response(await submit_form(storage, form_id, now=clock()))
