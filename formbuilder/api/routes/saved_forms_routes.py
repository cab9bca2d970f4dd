"""
Saved Forms API Routes.
Endpoints for the saved forms collection.
"""

from fastapi import APIRouter, Depends
from typing import Any, Dict
from formbuilder.core.form_store import FormStore
from formbuilder.core.responses import ResponseHandler
from formbuilder.core.exceptions import NotFoundException
from formbuilder.api.dependencies import get_form_store

router = APIRouter(prefix="/forms", tags=["Saved Forms"])


@router.get("", response_model=Dict[str, Any])
async def list_saved_forms(store: FormStore = Depends(get_form_store)):
    """List every saved form."""
    forms = [form.to_record() for form in store.saved_forms]
    return ResponseHandler.success(data=forms)


@router.get("/{form_id}", response_model=Dict[str, Any])
async def get_saved_form(
    form_id: str,
    store: FormStore = Depends(get_form_store)
):
    """Get one saved form by ID."""
    form = next((f for f in store.saved_forms if f.id == form_id), None)
    if form is None:
        raise NotFoundException("Form", form_id)
    return ResponseHandler.success(data=form.to_record())


@router.post("/{form_id}/load", response_model=Dict[str, Any])
async def load_form(
    form_id: str,
    store: FormStore = Depends(get_form_store)
):
    """Make a saved form the current form for editing or preview."""
    form = store.load_form(form_id)
    if form is None:
        raise NotFoundException("Form", form_id)
    return ResponseHandler.success(data=form.to_record())


@router.delete("/{form_id}", response_model=Dict[str, Any])
async def delete_form(
    form_id: str,
    store: FormStore = Depends(get_form_store)
):
    """Delete a saved form. The current form is not affected."""
    if not store.delete_form(form_id):
        raise NotFoundException("Form", form_id)
    return ResponseHandler.success(data={"form_id": form_id, "deleted": True})
