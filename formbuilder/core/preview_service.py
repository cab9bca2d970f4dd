"""
Preview service.
Live, validating preview of a form: holds the values and errors of one
preview session.
"""

import logging
from typing import Any, Dict, List, Optional

from formbuilder.core.recompute_service import RecomputeService
from formbuilder.core.validation_service import ValidationService
from formbuilder.models.field_value import coerce_value
from formbuilder.schemas.form_schema import FormField, FormSchema, FormSubmissionResult

logger = logging.getLogger(__name__)


class PreviewSession:
    """State of a single form preview."""

    def __init__(self, recompute_service: RecomputeService = None):
        self.recompute_service = recompute_service or RecomputeService()
        self.schema: Optional[FormSchema] = None
        self.values: Dict[str, Any] = {}
        self.errors: Dict[str, List[str]] = {}

    @property
    def is_active(self) -> bool:
        return self.schema is not None

    def start(self, schema: FormSchema) -> Dict[str, Any]:
        """
        Begin previewing a form.

        The schema is copied so later edits to the form do not leak into a
        running preview.
        """
        self.schema = schema.model_copy(deep=True)
        self.values = self.recompute_service.initialize_values(self.schema)
        self.errors = {}
        logger.info(f"Preview started for form {schema.id} ({len(schema.fields)} field(s))")
        return dict(self.values)

    def set_value(self, field_id: str, raw_value: Any) -> bool:
        """
        Change an input field's value.

        Derived values are recomputed and the changed field is re-validated.
        Derived fields cannot be set directly.

        Returns:
            False when there is no preview, or the field is unknown or derived
        """
        if self.schema is None:
            return False
        field = self.schema.field_by_id(field_id)
        if field is None or field.is_derived:
            return False

        value = coerce_value(field, raw_value)
        self.values = self.recompute_service.on_value_changed(field_id, value, self.schema, self.values)
        self.errors[field_id] = ValidationService.validate_field(field, value)
        return True

    def validate_all(self) -> FormSubmissionResult:
        """
        Validate every input field and replace the errors map.

        Returns:
            Submission result; values are included only on success
        """
        if self.schema is None:
            return FormSubmissionResult(success=False)

        self.errors = ValidationService.validate_form(self.schema, self.values)
        if self.errors:
            logger.info(f"Form {self.schema.id} has {len(self.errors)} field(s) with errors")
            return FormSubmissionResult(success=False, errors=self.errors)
        return FormSubmissionResult(success=True, values=dict(self.values))

    def submit(self) -> FormSubmissionResult:
        """Validate everything; on success the preview starts over from defaults."""
        result = self.validate_all()
        if result.success:
            logger.info(f"Form {self.schema.id} submitted successfully")
            self.reset()
        return result

    def reset(self) -> None:
        if self.schema is None:
            return
        self.values = self.recompute_service.initialize_values(self.schema)
        self.errors = {}

    def stop(self) -> None:
        self.schema = None
        self.values = {}
        self.errors = {}

    def field_hint(self, field: FormField) -> str:
        """Helper text for a field: the parents of a derived field, else its first error."""
        if field.is_derived:
            labels = []
            for parent_id in field.parent_ids():
                parent = self.schema.field_by_id(parent_id) if self.schema else None
                if parent is not None:
                    labels.append(parent.label)
            return f"Calculated from: {', '.join(labels)}"
        errors = self.errors.get(field.id) or []
        return errors[0] if errors else ""

    def snapshot(self) -> Dict[str, Any]:
        """Serializable view of the preview."""
        if self.schema is None:
            return {"active": False, "form": None, "values": {}, "errors": {}, "hints": {}}
        return {
            "active": True,
            "form": self.schema.to_record(),
            "values": dict(self.values),
            "errors": {field_id: list(errs) for field_id, errs in self.errors.items()},
            "hints": {field.id: self.field_hint(field) for field in self.schema.fields},
        }
