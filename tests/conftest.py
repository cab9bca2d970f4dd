"""
Pytest fixtures and configuration for the form builder tests.
"""

import os

# Settings are read at import time
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("ENABLE_FILE_LOGGING", "false")

import pytest

from formbuilder.core.form_store import FormStore
from formbuilder.core.storage import InMemoryKeyValueStore, SavedFormsRepository
from formbuilder.schemas.form_schema import (
    DerivedType,
    FieldType,
    FormField,
    FormSchema,
    SelectOption,
    ValidationRule,
    ValidationRuleType,
)


def make_field(field_id: str, field_type: FieldType = FieldType.TEXT, **kwargs) -> FormField:
    """Build a field with sensible defaults."""
    kwargs.setdefault("label", field_id.title())
    return FormField(id=field_id, type=field_type, **kwargs)


def make_derived(field_id: str, parents, formula: str, mode: DerivedType, **kwargs) -> FormField:
    """Build a derived field."""
    return make_field(
        field_id,
        kwargs.pop("field_type", FieldType.TEXT),
        is_derived=True,
        parent_fields=list(parents),
        derived_formula=formula,
        derived_type=mode,
        **kwargs
    )


def rule(rule_type: ValidationRuleType, value=None, message: str = "", enabled: bool = True) -> ValidationRule:
    return ValidationRule(type=rule_type, value=value, message=message, enabled=enabled)


@pytest.fixture
def order_form() -> FormSchema:
    """Form with two numeric inputs, a total and a size label derived from it."""
    return FormSchema(
        id="form_order",
        name="Order",
        fields=[
            make_field("price", FieldType.NUMBER, default_value=3),
            make_field("qty", FieldType.NUMBER, default_value=4),
            make_derived("total", ["price", "qty"], "price * qty", DerivedType.CALCULATION),
            make_derived("size", ["total"], 'total > 10 ? "Large" : "Small"', DerivedType.CONDITIONAL),
            make_field("note", FieldType.TEXT),
        ],
    )


@pytest.fixture
def contact_form() -> FormSchema:
    """Form with validation rules and option fields."""
    return FormSchema(
        id="form_contact",
        name="Contact",
        fields=[
            make_field("first", required=True),
            make_field("last"),
            make_field("email", validation_rules=[rule(ValidationRuleType.EMAIL)]),
            make_field(
                "plan",
                FieldType.SELECT,
                options=[SelectOption(label="Basic", value="basic"), SelectOption(label="Pro", value="pro")],
            ),
            make_field("agree", FieldType.CHECKBOX),
            make_derived("full_name", ["first", "last"], 'first + " " + last', DerivedType.CONCATENATION),
        ],
    )


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def form_store(kv_store) -> FormStore:
    return FormStore(SavedFormsRepository(kv_store))
