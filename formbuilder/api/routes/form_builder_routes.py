"""
Form Builder API Routes.
Endpoints for editing the current form.

Application exceptions raised here are rendered by the handler registered in
main.py, so error responses carry the error code as well as the message.
"""

from fastapi import APIRouter, Body, Depends
from typing import Any, Dict, Optional
from formbuilder.schemas.form_requests import (
    AddFieldRequest,
    FieldUpdateRequest,
    NewFormRequest,
    ReorderFieldsRequest,
    SaveFormRequest,
)
from formbuilder.core.form_store import FormStore
from formbuilder.core.preview_service import PreviewSession
from formbuilder.core.responses import ResponseHandler
from formbuilder.core.exceptions import NotFoundException, ValidationException
from formbuilder.api.dependencies import get_form_store, get_preview_session, require_current_form
import logging

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/builder", tags=["Form Builder"])


@router.get("/form", response_model=Dict[str, Any])
async def get_current_form(store: FormStore = Depends(get_form_store)):
    """Get the form being edited, or null when there is none."""
    form = store.current_form
    return ResponseHandler.success(data=form.to_record() if form else None)


@router.post("/form", response_model=Dict[str, Any], status_code=201)
async def new_form(
    request: Optional[NewFormRequest] = Body(None),
    store: FormStore = Depends(get_form_store)
):
    """Start a new, empty form, discarding the current one."""
    request = request or NewFormRequest()
    form = store.new_form(request.name)
    return ResponseHandler.success(data=form.to_record(), status_code=201)


@router.delete("/form", response_model=Dict[str, Any])
async def clear_current_form(
    store: FormStore = Depends(get_form_store),
    session: PreviewSession = Depends(get_preview_session)
):
    """Discard the form being edited and end any preview of it."""
    store.clear_current_form()
    if session.is_active:
        session.stop()
        logger.info("Preview stopped because the current form was discarded")
    return ResponseHandler.success(data=None)


@router.post("/fields", response_model=Dict[str, Any], status_code=201)
async def add_field(
    request: AddFieldRequest,
    store: FormStore = Depends(get_form_store)
):
    """Append a field of the given type to the current form."""
    require_current_form(store)
    field = store.add_field(request.type, request.label)
    return ResponseHandler.success(data=field.to_record(), status_code=201)


@router.patch("/fields/{field_id}", response_model=Dict[str, Any])
async def update_field(
    field_id: str,
    request: FieldUpdateRequest,
    store: FormStore = Depends(get_form_store)
):
    """
    Update a field's configuration.
    Only attributes present in the request body are changed.
    """
    require_current_form(store)
    field = store.update_field(field_id, request.to_updates())
    if field is None:
        raise NotFoundException("Field", field_id)
    return ResponseHandler.success(data=field.to_record())


@router.delete("/fields/{field_id}", response_model=Dict[str, Any])
async def delete_field(
    field_id: str,
    store: FormStore = Depends(get_form_store)
):
    """Remove a field from the current form."""
    require_current_form(store)
    if not store.delete_field(field_id):
        raise NotFoundException("Field", field_id)
    return ResponseHandler.success(data={"field_id": field_id, "deleted": True})


@router.post("/fields/reorder", response_model=Dict[str, Any])
async def reorder_fields(
    request: ReorderFieldsRequest,
    store: FormStore = Depends(get_form_store)
):
    """Move one field to a new position."""
    require_current_form(store)
    if not store.reorder_field(request.source_index, request.destination_index):
        raise ValidationException(
            "Field index out of range",
            details={
                "source_index": request.source_index,
                "destination_index": request.destination_index
            }
        )
    return ResponseHandler.success(data=store.current_form.to_record())


@router.post("/save", response_model=Dict[str, Any])
async def save_form(
    request: SaveFormRequest,
    store: FormStore = Depends(get_form_store)
):
    """Save the current form under a name, replacing an earlier save of it."""
    require_current_form(store)
    saved = store.save_form(request.name)
    return ResponseHandler.success(data=saved.to_record())
