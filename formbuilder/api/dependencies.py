"""
API Dependencies.
Hands the application's form store and preview session to route handlers.
"""

from fastapi import Request

from formbuilder.core.exceptions import ConflictException
from formbuilder.core.form_store import FormStore
from formbuilder.core.preview_service import PreviewSession
from formbuilder.schemas.form_schema import FormSchema


async def get_form_store(request: Request) -> FormStore:
    """Form store created at startup."""
    return request.app.state.form_store


async def get_preview_session(request: Request) -> PreviewSession:
    """Preview session created at startup."""
    return request.app.state.preview_session


def require_current_form(store: FormStore) -> FormSchema:
    """
    Return the current form.

    Raises:
        ConflictException: If no form is being edited
    """
    form = store.current_form
    if form is None:
        raise ConflictException("No current form; start a new form or load a saved one")
    return form


def require_active_preview(session: PreviewSession) -> FormSchema:
    """
    Return the form under preview.

    Raises:
        ConflictException: If no preview is running
    """
    if not session.is_active:
        raise ConflictException("No preview is running; start one first")
    return session.schema
