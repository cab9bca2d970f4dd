"""
Pydantic schemas for Form Builder and Preview endpoints.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional

from formbuilder.schemas.form_schema import (
    CamelModel,
    DerivedType,
    FieldType,
    ScalarValue,
    SelectOption,
    ValidationRule,
)


class NewFormRequest(BaseModel):
    """Request schema for starting a new current form."""

    name: str = Field("Untitled Form", min_length=1, max_length=200)


class AddFieldRequest(BaseModel):
    """Request schema for adding a field to the current form."""

    type: FieldType = Field(..., description="Field type from the palette")
    label: str = Field(..., min_length=1, max_length=200, description="Field label")

    @field_validator("label")
    @classmethod
    def validate_label(cls, v: str) -> str:
        """Labels are trimmed and must not be blank."""
        v = v.strip()
        if not v:
            raise ValueError("Label cannot be blank")
        return v


class FieldUpdateRequest(CamelModel):
    """Partial update of a field's configuration. Only set attributes are applied."""

    type: Optional[FieldType] = None
    label: Optional[str] = None
    required: Optional[bool] = None
    default_value: Optional[ScalarValue] = None
    validation_rules: Optional[List[ValidationRule]] = None
    is_derived: Optional[bool] = None
    parent_fields: Optional[List[str]] = None
    derived_formula: Optional[str] = None
    derived_type: Optional[DerivedType] = None
    options: Optional[List[SelectOption]] = None

    def to_updates(self) -> Dict[str, Any]:
        """Attributes the caller actually sent, keyed by attribute name."""
        return self.model_dump(exclude_unset=True)


class ReorderFieldsRequest(CamelModel):
    """Request schema for moving one field to a new position."""

    source_index: int = Field(..., ge=0)
    destination_index: int = Field(..., ge=0)


class SaveFormRequest(BaseModel):
    """Request schema for saving the current form."""

    name: str = Field(..., min_length=1, max_length=200)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Form name cannot be blank")
        return v


class FieldValueRequest(BaseModel):
    """Request schema for setting a preview field value."""

    value: Any = None
