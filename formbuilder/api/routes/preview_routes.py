"""
Preview API Routes.
Endpoints for the live, validating form preview.
"""

from fastapi import APIRouter, Depends
from typing import Any, Dict
from formbuilder.schemas.form_requests import FieldValueRequest
from formbuilder.core.form_store import FormStore
from formbuilder.core.preview_service import PreviewSession
from formbuilder.core.responses import ResponseHandler
from formbuilder.core.exceptions import NotFoundException, ValidationException
from formbuilder.api.dependencies import (
    get_form_store,
    get_preview_session,
    require_active_preview,
    require_current_form,
)

router = APIRouter(prefix="/preview", tags=["Preview"])


@router.post("", response_model=Dict[str, Any])
async def start_preview(
    store: FormStore = Depends(get_form_store),
    session: PreviewSession = Depends(get_preview_session)
):
    """Start previewing the current form with default values."""
    form = require_current_form(store)
    session.start(form)
    return ResponseHandler.success(data=session.snapshot())


@router.get("", response_model=Dict[str, Any])
async def get_preview(session: PreviewSession = Depends(get_preview_session)):
    """Get the preview's form, values, errors and field hints."""
    return ResponseHandler.success(data=session.snapshot())


@router.put("/values/{field_id}", response_model=Dict[str, Any])
async def set_field_value(
    field_id: str,
    request: FieldValueRequest,
    session: PreviewSession = Depends(get_preview_session)
):
    """
    Set an input field's value.
    Derived fields are recomputed and the field is re-validated.
    """
    schema = require_active_preview(session)
    field = schema.field_by_id(field_id)
    if field is None:
        raise NotFoundException("Field", field_id)
    if field.is_derived:
        raise ValidationException(
            f"Derived field values are computed and cannot be set: {field_id}",
            details={"field_id": field_id}
        )
    session.set_value(field_id, request.value)
    return ResponseHandler.success(data=session.snapshot())


@router.post("/validate", response_model=Dict[str, Any])
async def validate_preview(session: PreviewSession = Depends(get_preview_session)):
    """Validate every input field without submitting."""
    require_active_preview(session)
    result = session.validate_all()
    return ResponseHandler.success(data=result.model_dump())


@router.post("/submit", response_model=Dict[str, Any])
async def submit_preview(session: PreviewSession = Depends(get_preview_session)):
    """
    Submit the preview.
    On success the submitted values are returned and the preview resets.
    """
    require_active_preview(session)
    result = session.submit()
    return ResponseHandler.success(data=result.model_dump())


@router.post("/reset", response_model=Dict[str, Any])
async def reset_preview(session: PreviewSession = Depends(get_preview_session)):
    """Restore default values and clear errors."""
    require_active_preview(session)
    session.reset()
    return ResponseHandler.success(data=session.snapshot())
