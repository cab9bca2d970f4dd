"""
Field value model and coercion utilities.

Preview values are stored as plain JSON scalars keyed by field id. FieldValue
tags a scalar with the kind implied by its field's type and provides the
explicit coercions used by validation and derived-value evaluation.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional
import math
import re

from dateutil.parser import isoparse

from formbuilder.schemas.form_schema import FieldType, FormField, OPTION_FIELD_TYPES


class ValueKind(str, Enum):
    """Kinds of value a field can hold."""
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"


KIND_BY_FIELD_TYPE: Dict[FieldType, ValueKind] = {
    FieldType.TEXT: ValueKind.TEXT,
    FieldType.TEXTAREA: ValueKind.TEXT,
    FieldType.SELECT: ValueKind.TEXT,
    FieldType.RADIO: ValueKind.TEXT,
    FieldType.NUMBER: ValueKind.NUMBER,
    FieldType.CHECKBOX: ValueKind.BOOLEAN,
    FieldType.DATE: ValueKind.DATE,
}

_LEADING_NUMBER = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_TRUTHY_STRINGS = {"true", "1", "yes", "on"}


def format_number(number: float) -> str:
    """Render a number the way form formulas display it (7, not 7.0)."""
    if isinstance(number, float):
        if math.isnan(number):
            return "NaN"
        if math.isinf(number):
            return "Infinity" if number > 0 else "-Infinity"
        if number.is_integer():
            return str(int(number))
    return str(number)


def normalize_number(number: float) -> Any:
    """Return integral floats as ints."""
    if isinstance(number, float) and math.isfinite(number) and number.is_integer():
        return int(number)
    return number


def is_empty(value: Any) -> bool:
    """Absent, or a blank string. Zero and False are values."""
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def to_number(value: Any) -> float:
    """
    Coerce a value to a number for arithmetic.

    Strings parse their leading numeric prefix ("12kg" is 12); anything that
    does not parse, and absent values, become 0.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        number = float(value)
        return 0.0 if math.isnan(number) else number
    match = _LEADING_NUMBER.match(str(value))
    if not match:
        return 0.0
    return float(match.group(0))


def to_text(value: Any) -> str:
    """Coerce a value to a string for concatenation."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    return str(value)


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _TRUTHY_STRINGS
    return bool(value)


def _coerce_number(raw: Any) -> Any:
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, (int, float)):
        return "" if isinstance(raw, float) and math.isnan(raw) else raw
    text = str(raw).strip()
    if not text:
        return ""
    try:
        return normalize_number(float(text))
    except ValueError:
        # Kept verbatim so the user's input is not silently replaced
        return str(raw)


def _coerce_date(raw: Any) -> Any:
    if isinstance(raw, datetime):
        return raw.date().isoformat()
    if isinstance(raw, date):
        return raw.isoformat()
    text = str(raw).strip()
    if not text:
        return ""
    try:
        return isoparse(text).date().isoformat()
    except ValueError:
        return text


class FieldValue:
    """A field value tagged with its kind."""

    def __init__(self, kind: ValueKind, raw: Any = None):
        self.kind = kind
        self.raw = raw

    @classmethod
    def for_field(cls, field: FormField, raw: Any) -> "FieldValue":
        """Coerce raw input to the kind implied by the field's type."""
        kind = KIND_BY_FIELD_TYPE.get(field.type, ValueKind.TEXT)
        if raw is None:
            return cls(kind, None)

        if kind == ValueKind.BOOLEAN:
            value = to_bool(raw)
        elif kind == ValueKind.NUMBER:
            value = _coerce_number(raw)
        elif kind == ValueKind.DATE:
            value = _coerce_date(raw)
        else:
            value = raw if isinstance(raw, str) else to_text(raw)
        return cls(kind, value)

    @classmethod
    def default_for(cls, field: FormField) -> "FieldValue":
        """Initial preview value: explicit default, else a type-specific one."""
        if field.default_value is not None:
            return cls.for_field(field, field.default_value)
        if field.type == FieldType.CHECKBOX:
            return cls(ValueKind.BOOLEAN, False)
        if field.type in OPTION_FIELD_TYPES:
            first = field.options[0].value if field.options else ""
            return cls(ValueKind.TEXT, first)
        return cls(KIND_BY_FIELD_TYPE.get(field.type, ValueKind.TEXT), "")

    def __repr__(self) -> str:
        return f"FieldValue({self.kind.value}, {self.raw!r})"


def coerce_value(field: Optional[FormField], raw: Any) -> Any:
    """Coerce raw input for a field; unknown fields keep the raw value."""
    if field is None:
        return raw
    return FieldValue.for_field(field, raw).raw
