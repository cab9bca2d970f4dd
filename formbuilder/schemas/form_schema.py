"""
Pydantic models for form definitions.

Records serialize with camelCase keys so a persisted collection keeps the
layout of the browser store the builder originally wrote to. Either spelling
is accepted on input.
"""

from pydantic import BaseModel, Field, field_validator, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Optional, Union
from enum import Enum


class FieldType(str, Enum):
    """Supported form field types."""
    TEXT = "text"
    NUMBER = "number"
    TEXTAREA = "textarea"
    SELECT = "select"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    DATE = "date"


class ValidationRuleType(str, Enum):
    """Supported validation rule types."""
    REQUIRED = "required"
    MIN_LENGTH = "minLength"
    MAX_LENGTH = "maxLength"
    EMAIL = "email"
    PASSWORD = "password"
    CUSTOM = "custom"


class DerivedType(str, Enum):
    """Evaluation modes for derived fields."""
    CALCULATION = "calculation"
    CONCATENATION = "concatenation"
    CONDITIONAL = "conditional"


OPTION_FIELD_TYPES = (FieldType.SELECT, FieldType.RADIO)

ScalarValue = Union[bool, int, float, str]


class CamelModel(BaseModel):
    """Base model serializing to camelCase and accepting both spellings."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True
    )

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the persisted/JSON record layout."""
        return self.model_dump(mode="json", by_alias=True)


class SelectOption(CamelModel):
    """One choice of a select or radio field."""

    label: str
    value: str


class ValidationRule(CamelModel):
    """Declarative constraint attached to a field."""

    type: ValidationRuleType
    value: Optional[Union[int, float, str]] = Field(
        None, description="Length threshold, or a regex pattern for custom rules"
    )
    message: str = ""
    enabled: bool = True


class FormField(CamelModel):
    """One input definition within a form."""

    id: str = Field(..., min_length=1)
    type: FieldType
    label: str
    required: bool = False
    default_value: Optional[ScalarValue] = None
    validation_rules: List[ValidationRule] = Field(default_factory=list)
    is_derived: bool = False
    parent_fields: Optional[List[str]] = None
    derived_formula: Optional[str] = None
    derived_type: Optional[DerivedType] = None
    options: Optional[List[SelectOption]] = None
    order: int = 0

    def is_effectively_required(self) -> bool:
        """Derived fields are never required since the user cannot edit them."""
        return self.required and not self.is_derived

    def parent_ids(self) -> List[str]:
        """Parent field ids of a derived field, empty for input fields."""
        if not self.is_derived or not self.parent_fields:
            return []
        return list(self.parent_fields)


class FormSchema(CamelModel):
    """Full named definition of a form."""

    id: Optional[str] = None
    name: str = "Untitled Form"
    fields: List[FormField] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @field_validator("fields")
    @classmethod
    def validate_unique_field_ids(cls, v: List[FormField]) -> List[FormField]:
        """Ensure field ids are unique within the form."""
        field_ids = [f.id for f in v]
        if len(field_ids) != len(set(field_ids)):
            raise ValueError("Duplicate field ids found")
        return v

    def field_by_id(self, field_id: str) -> Optional[FormField]:
        for field in self.fields:
            if field.id == field_id:
                return field
        return None

    def field_ids(self) -> List[str]:
        return [f.id for f in self.fields]


class FormSubmissionResult(BaseModel):
    """Outcome of validating a whole form."""

    success: bool
    values: Dict[str, Any] = Field(default_factory=dict)
    errors: Dict[str, List[str]] = Field(default_factory=dict)
