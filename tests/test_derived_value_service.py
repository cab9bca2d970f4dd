"""Unit tests for derived value evaluation."""

import pytest

from conftest import make_derived, make_field
from formbuilder.core.derived_value_service import DerivedValueService
from formbuilder.schemas.form_schema import DerivedType, FieldType


@pytest.fixture
def service():
    return DerivedValueService()


def fields_for(*ids):
    return [make_field(field_id) for field_id in ids]


class TestCalculation:
    """Tests for numeric formulas."""

    def test_adds_parent_values(self, service):
        field = make_derived("total", ["a", "b"], "a + b", DerivedType.CALCULATION)
        result = service.evaluate(field, {"a": 3, "b": 4}, fields_for("a", "b") + [field])
        assert result == 7
        assert isinstance(result, int)

    def test_missing_parent_value_counts_as_zero(self, service):
        field = make_derived("total", ["a", "b"], "a + b", DerivedType.CALCULATION)
        assert service.evaluate(field, {"a": 3}, fields_for("a", "b") + [field]) == 3

    def test_numeric_strings_are_parsed(self, service):
        field = make_derived("total", ["a", "b"], "a * b", DerivedType.CALCULATION)
        assert service.evaluate(field, {"a": "2.5", "b": "4kg"}, fields_for("a", "b")) == 10

    def test_unparseable_strings_count_as_zero(self, service):
        field = make_derived("total", ["a", "b"], "a + b", DerivedType.CALCULATION)
        assert service.evaluate(field, {"a": "abc", "b": 2}, fields_for("a", "b")) == 2

    def test_dangling_parent_counts_as_zero(self, service):
        field = make_derived("total", ["a", "gone"], "a + gone", DerivedType.CALCULATION)
        assert service.evaluate(field, {"a": 5, "gone": 100}, fields_for("a")) == 5

    def test_parent_id_prefix_of_another_token(self, service):
        field = make_derived("total", ["a"], "a + a_b", DerivedType.CALCULATION)
        # a_b is not a parent, so the formula fails and the stored value is kept
        assert service.evaluate(field, {"a": 1, "total": 42}, fields_for("a", "a_b")) == 42

    def test_non_numeric_result_is_zero(self, service):
        field = make_derived("total", ["a"], '"x" + a', DerivedType.CALCULATION)
        assert service.evaluate(field, {"a": 1}, fields_for("a")) == 0

    def test_failure_keeps_stored_value(self, service):
        field = make_derived("total", ["a"], "a / 0", DerivedType.CALCULATION)
        assert service.evaluate(field, {"a": 1, "total": 9}, fields_for("a")) == 9

    def test_failure_without_stored_value_is_empty(self, service):
        field = make_derived("total", ["a"], "a +", DerivedType.CALCULATION)
        assert service.evaluate(field, {"a": 1}, fields_for("a")) == ""


class TestConcatenation:
    """Tests for string formulas."""

    def test_joins_names(self, service):
        field = make_derived("full", ["first", "last"], 'first + " " + last', DerivedType.CONCATENATION)
        values = {"first": "Jane", "last": "Doe"}
        assert service.evaluate(field, values, fields_for("first", "last")) == "Jane Doe"

    def test_numbers_are_stringified(self, service):
        field = make_derived("label", ["a", "b"], "a + b", DerivedType.CONCATENATION)
        assert service.evaluate(field, {"a": 1, "b": 2}, fields_for("a", "b")) == "12"

    def test_empty_result_is_empty_string(self, service):
        field = make_derived("label", ["a"], "a", DerivedType.CONCATENATION)
        assert service.evaluate(field, {}, fields_for("a")) == ""


class TestConditional:
    """Tests for branching formulas."""

    def test_branches_on_numeric_parent(self, service):
        field = make_derived("band", ["score"], 'score >= 50 ? "Pass" : "Fail"', DerivedType.CONDITIONAL)
        assert service.evaluate(field, {"score": "75"}, fields_for("score")) == "Pass"
        assert service.evaluate(field, {"score": 20}, fields_for("score")) == "Fail"

    def test_falsy_result_is_empty_string(self, service):
        field = make_derived("flag", ["a"], "a > 5 ? 1 : 0", DerivedType.CONDITIONAL)
        assert service.evaluate(field, {"a": 1}, fields_for("a")) == ""


class TestPassthrough:
    """Fields that are not fully derived return their stored value."""

    def test_input_field(self, service):
        field = make_field("a", FieldType.NUMBER)
        assert service.evaluate(field, {"a": 5}, [field]) == 5

    def test_derived_without_formula(self, service):
        field = make_field("d", is_derived=True, parent_fields=["a"], derived_type=DerivedType.CALCULATION)
        assert service.evaluate(field, {"d": "kept"}, fields_for("a")) == "kept"

    def test_derived_without_parent_list(self, service):
        field = make_field("d", is_derived=True, derived_formula="1 + 1", derived_type=DerivedType.CALCULATION)
        assert field.parent_fields is None
        assert service.evaluate(field, {"d": "kept"}, [field]) == "kept"


class TestConstantFormulas:
    """An empty parent list still evaluates the formula."""

    def test_calculation_without_parents(self, service):
        field = make_derived("d", [], "1 + 1", DerivedType.CALCULATION)
        assert service.evaluate(field, {}, [field]) == 2

    def test_conditional_without_parents(self, service):
        field = make_derived("d", [], "true ? 'on' : 'off'", DerivedType.CONDITIONAL)
        assert service.evaluate(field, {}, [field]) == "on"

    def test_unbound_identifier_keeps_value(self, service):
        field = make_derived("d", [], "a * 2", DerivedType.CALCULATION)
        assert service.evaluate(field, {"a": 3, "d": 9}, fields_for("a") + [field]) == 9


class TestNestedFormulas:
    """Formulas nested too deeply fall back like any other failing formula."""

    def test_deep_parentheses_keep_stored_value(self, service):
        field = make_derived("t", ["a"], "(" * 300 + "a" + ")" * 300, DerivedType.CALCULATION)
        assert service.evaluate(field, {"a": 1, "t": 5}, fields_for("a") + [field]) == 5

    def test_deep_unary_chain_without_stored_value(self, service):
        field = make_derived("t", ["a"], "-" * 1500 + "a", DerivedType.CALCULATION)
        assert service.evaluate(field, {"a": 1}, fields_for("a") + [field]) == ""
