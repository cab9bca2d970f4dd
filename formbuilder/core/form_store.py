"""
Form store.
Owns the form being edited and the saved forms collection; every change goes
through the operations defined here.
"""

import asyncio
import logging
import random
import string
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from formbuilder.core.dependency_graph import DependencyGraph
from formbuilder.core.exceptions import (
    DependencyCycleException,
    FormulaError,
    StorageException,
    ValidationException,
)
from formbuilder.core.formula_parser import referenced_names
from formbuilder.core.storage import SavedFormsRepository
from formbuilder.schemas.form_schema import (
    FieldType,
    FormField,
    FormSchema,
    OPTION_FIELD_TYPES,
    SelectOption,
)

logger = logging.getLogger(__name__)

_ID_ALPHABET = string.ascii_lowercase + string.digits
# Attributes whose change can alter the dependency graph
_DEPENDENCY_ATTRIBUTES = {"is_derived", "parent_fields"}
_FORMULA_ATTRIBUTES = _DEPENDENCY_ATTRIBUTES | {"derived_formula"}


def unbound_formula_names(field: FormField) -> List[str]:
    """Identifiers a derived field's formula reads that are not among its parents."""
    if not field.is_derived or not field.derived_formula:
        return []
    try:
        names = referenced_names(field.derived_formula)
    except FormulaError as e:
        logger.debug(f"Formula of {field.id} could not be tokenized: {str(e)}")
        return []
    return sorted(names - set(field.parent_ids()))


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _epoch_millis() -> int:
    return int(time.time() * 1000)


def generate_field_id() -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"field_{_epoch_millis()}_{suffix}"


def generate_form_id() -> str:
    return f"form_{_epoch_millis()}"


def _attribute_names(updates: Dict[str, Any]) -> Dict[str, Any]:
    """Map camelCase keys onto FormField attribute names."""
    by_alias = {info.alias: name for name, info in FormField.model_fields.items() if info.alias}
    return {by_alias.get(key, key): value for key, value in updates.items()}


class FormStore:
    """In-memory owner of the current form and the saved forms collection."""

    def __init__(self, repository: SavedFormsRepository):
        self._repository = repository
        self._current_form: Optional[FormSchema] = None
        self._saved_forms: List[FormSchema] = []

    @property
    def current_form(self) -> Optional[FormSchema]:
        """A copy of the form being edited, or None."""
        if self._current_form is None:
            return None
        return self._current_form.model_copy(deep=True)

    @property
    def saved_forms(self) -> List[FormSchema]:
        """Copies of the saved forms, in save order."""
        return [form.model_copy(deep=True) for form in self._saved_forms]

    async def load_saved_forms(self) -> List[FormSchema]:
        """
        Populate the saved collection from storage.

        Runs once at startup. A storage failure leaves the collection empty
        rather than preventing the builder from starting.
        """
        try:
            forms = await asyncio.to_thread(self._repository.load_all)
        except StorageException as e:
            logger.error(f"Failed to load saved forms, starting empty: {e.message}")
            forms = []
        self._saved_forms = forms
        logger.info(f"Loaded {len(forms)} saved form(s)")
        return self.saved_forms

    def new_form(self, name: str = "Untitled Form") -> FormSchema:
        """Start a new, empty current form."""
        now = utc_now()
        self._current_form = FormSchema(name=name, fields=[], created_at=now, updated_at=now)
        logger.info(f"Started new form: {name}")
        return self.current_form

    def clear_current_form(self) -> None:
        self._current_form = None

    def add_field(self, field_type: FieldType, label: str) -> Optional[FormField]:
        """
        Append a new field to the current form.

        Args:
            field_type: Field type from the palette
            label: Field label

        Returns:
            The new field, or None if there is no current form
        """
        form = self._current_form
        if form is None:
            return None

        existing = set(form.field_ids())
        field_id = generate_field_id()
        while field_id in existing:
            field_id = generate_field_id()

        field_type = FieldType(field_type)
        field = FormField(
            id=field_id,
            type=field_type,
            label=label,
            required=False,
            validation_rules=[],
            is_derived=False,
            order=len(form.fields),
            options=[SelectOption(label="Option 1", value="option1")]
            if field_type in OPTION_FIELD_TYPES else None,
        )
        form.fields.append(field)
        self._touch()
        logger.debug(f"Added {field_type.value} field {field_id}")
        return field.model_copy(deep=True)

    def update_field(self, field_id: str, updates: Dict[str, Any]) -> Optional[FormField]:
        """
        Merge attribute updates into a field of the current form.

        Args:
            field_id: Id of the field to update
            updates: Attributes to change, snake_case or camelCase; `id` is ignored

        Returns:
            The updated field, or None if the form or field does not exist

        Raises:
            ValidationException: If the merged field is invalid
            DependencyCycleException: If the update makes a derived field
                depend on itself, directly or through other fields
        """
        form = self._current_form
        if form is None:
            return None

        index = next((i for i, f in enumerate(form.fields) if f.id == field_id), None)
        if index is None:
            return None

        changes = _attribute_names(updates)
        changes.pop("id", None)

        merged = form.fields[index].model_dump()
        merged.update(changes)
        try:
            updated = FormField.model_validate(merged)
        except ValidationError as e:
            raise ValidationException(
                f"Invalid field configuration: {field_id}",
                details={"errors": [err.get("msg") for err in e.errors()]}
            )

        if updated.is_derived and _DEPENDENCY_ATTRIBUTES & changes.keys():
            candidate = list(form.fields)
            candidate[index] = updated
            cycle = DependencyGraph(candidate).find_cycle(field_id)
            if cycle:
                logger.warning(f"Rejected update: dependency cycle {cycle}", extra={"field_id": field_id})
                raise DependencyCycleException(field_id, cycle)

        if _FORMULA_ATTRIBUTES & changes.keys():
            unbound = unbound_formula_names(updated)
            if unbound:
                # Accepted anyway; the formula falls back until the parents are added
                logger.warning(
                    f"Formula of {field_id} reads fields missing from parentFields: {unbound}",
                    extra={"field_id": field_id}
                )

        form.fields[index] = updated
        self._touch()
        return updated.model_copy(deep=True)

    def delete_field(self, field_id: str) -> bool:
        """
        Remove a field from the current form.

        Other fields' parent references to it are left in place; evaluation
        treats them as empty.
        """
        form = self._current_form
        if form is None:
            return False

        remaining = [f for f in form.fields if f.id != field_id]
        if len(remaining) == len(form.fields):
            return False
        form.fields = remaining
        self._touch()
        return True

    def reorder_field(self, source_index: int, destination_index: int) -> bool:
        """
        Move one field and renumber every field's order from 0.

        Returns:
            False if there is no current form or an index is out of range
        """
        form = self._current_form
        if form is None:
            return False

        count = len(form.fields)
        if not (0 <= source_index < count and 0 <= destination_index < count):
            return False

        fields = list(form.fields)
        moved = fields.pop(source_index)
        fields.insert(destination_index, moved)
        for position, field in enumerate(fields):
            field.order = position

        form.fields = fields
        self._touch()
        return True

    def save_form(self, name: str) -> Optional[FormSchema]:
        """
        Save the current form under a name.

        Assigns an id when the form has none, then replaces the saved form
        with that id or appends it, and rewrites the stored collection. The
        current form takes the id, name and timestamps only once the write
        succeeds.

        Returns:
            The saved form, or None if there is no current form

        Raises:
            StorageException: If the collection cannot be written
        """
        form = self._current_form
        if form is None:
            return None

        now = utc_now()
        form_id = form.id
        if not form_id:
            saved_ids = {f.id for f in self._saved_forms}
            form_id = generate_form_id()
            while form_id in saved_ids:
                form_id = f"{generate_form_id()}_{random.choice(_ID_ALPHABET)}"

        to_save = form.model_copy(deep=True)
        to_save.id = form_id
        to_save.name = name
        to_save.created_at = form.created_at or now
        to_save.updated_at = now

        saved_forms = list(self._saved_forms)
        existing = next((i for i, f in enumerate(saved_forms) if f.id == form_id), None)
        if existing is not None:
            saved_forms[existing] = to_save
        else:
            saved_forms.append(to_save)

        try:
            self._repository.save_all(saved_forms)
        except StorageException as e:
            logger.error(f"Failed to save form: {e.message}", extra={"form_id": form_id})
            raise

        self._saved_forms = saved_forms
        self._current_form = to_save.model_copy(deep=True)
        logger.info(f"Form saved: {name} with {len(to_save.fields)} field(s)", extra={"form_id": form_id})
        return to_save.model_copy(deep=True)

    def load_form(self, form_id: str) -> Optional[FormSchema]:
        """Make a copy of a saved form the current form."""
        form = next((f for f in self._saved_forms if f.id == form_id), None)
        if form is None:
            return None
        self._current_form = form.model_copy(deep=True)
        logger.info(f"Form loaded: {form_id}")
        return self.current_form

    def delete_form(self, form_id: str) -> bool:
        """
        Remove a form from the saved collection.

        Raises:
            StorageException: If the collection cannot be written
        """
        remaining = [f for f in self._saved_forms if f.id != form_id]
        if len(remaining) == len(self._saved_forms):
            return False

        try:
            self._repository.save_all(remaining)
        except StorageException as e:
            logger.error(f"Failed to delete form: {e.message}", extra={"form_id": form_id})
            raise

        self._saved_forms = remaining
        logger.info(f"Form deleted: {form_id}")
        return True

    def _touch(self) -> None:
        self._current_form.updated_at = utc_now()
