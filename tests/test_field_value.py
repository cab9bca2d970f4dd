"""Unit tests for value coercion."""

import math

import pytest

from conftest import make_field
from formbuilder.models.field_value import (
    FieldValue,
    ValueKind,
    coerce_value,
    format_number,
    is_empty,
    to_number,
    to_text,
)
from formbuilder.schemas.form_schema import FieldType, SelectOption


class TestScalarHelpers:
    """Tests for the module-level coercions."""

    @pytest.mark.parametrize("number,expected", [
        (7.0, "7"),
        (2.5, "2.5"),
        (12, "12"),
        (float("nan"), "NaN"),
        (float("inf"), "Infinity"),
        (float("-inf"), "-Infinity"),
    ])
    def test_format_number(self, number, expected):
        assert format_number(number) == expected

    @pytest.mark.parametrize("value,expected", [
        (None, 0.0),
        ("", 0.0),
        ("12kg", 12.0),
        ("  -3.5", -3.5),
        ("abc", 0.0),
        (True, 1.0),
        (False, 0.0),
        (float("nan"), 0.0),
        (4, 4.0),
    ])
    def test_to_number(self, value, expected):
        assert to_number(value) == expected

    def test_to_text(self):
        assert to_text(None) == ""
        assert to_text(True) == "true"
        assert to_text(3.0) == "3"
        assert to_text("Jane") == "Jane"

    def test_zero_and_false_are_not_empty(self):
        assert not is_empty(0)
        assert not is_empty(False)
        assert is_empty(None)
        assert is_empty("  ")


class TestFieldValue:
    """Tests for per-type coercion of raw input."""

    @pytest.mark.parametrize("raw,expected", [
        ("42", 42),
        ("4.5", 4.5),
        (" 7 ", 7),
        ("", ""),
        ("abc", "abc"),
        (True, 1),
    ])
    def test_number_fields(self, raw, expected):
        value = FieldValue.for_field(make_field("n", FieldType.NUMBER), raw)
        assert value.kind == ValueKind.NUMBER
        assert value.raw == expected

    @pytest.mark.parametrize("raw,expected", [
        (True, True),
        ("yes", True),
        ("on", True),
        ("off", False),
        (0, False),
    ])
    def test_checkbox_fields(self, raw, expected):
        assert FieldValue.for_field(make_field("c", FieldType.CHECKBOX), raw).raw is expected

    def test_date_fields_normalize_to_iso_date(self):
        field = make_field("d", FieldType.DATE)
        assert FieldValue.for_field(field, "2024-03-05T10:30:00").raw == "2024-03-05"
        assert FieldValue.for_field(field, "not a date").raw == "not a date"

    def test_text_fields_stringify(self):
        assert FieldValue.for_field(make_field("t"), 12).raw == "12"

    def test_none_stays_none(self):
        assert FieldValue.for_field(make_field("n", FieldType.NUMBER), None).raw is None

    def test_nan_number_is_empty(self):
        assert FieldValue.for_field(make_field("n", FieldType.NUMBER), math.nan).raw == ""

    def test_repr_shows_kind_and_value(self):
        assert repr(FieldValue(ValueKind.NUMBER, 3)) == "FieldValue(number, 3)"


class TestDefaults:
    """Tests for initial preview values."""

    def test_explicit_default_is_coerced(self):
        field = make_field("n", FieldType.NUMBER, default_value="5")
        assert FieldValue.default_for(field).raw == 5

    def test_checkbox_defaults_to_false(self):
        assert FieldValue.default_for(make_field("c", FieldType.CHECKBOX)).raw is False

    def test_select_defaults_to_first_option(self):
        field = make_field("s", FieldType.SELECT, options=[
            SelectOption(label="A", value="a"), SelectOption(label="B", value="b"),
        ])
        assert FieldValue.default_for(field).raw == "a"

    def test_radio_without_options_defaults_to_empty(self):
        assert FieldValue.default_for(make_field("r", FieldType.RADIO)).raw == ""

    def test_other_fields_default_to_empty(self):
        assert FieldValue.default_for(make_field("t", FieldType.TEXTAREA)).raw == ""


def test_coerce_value_for_unknown_field_keeps_raw():
    assert coerce_value(None, [1, 2]) == [1, 2]
