"""Unit tests for the formula tokenizer, parser and evaluator."""

import pytest

from formbuilder.core.exceptions import FormulaError
from formbuilder.core.formula_evaluator import FormulaEvaluator
from formbuilder.core.formula_parser import referenced_names, tokenize


@pytest.fixture
def evaluator():
    return FormulaEvaluator(max_length=200)


class TestTokenizer:
    """Tests for tokenizing formulas."""

    def test_identifiers_are_whole_tokens(self):
        kinds = [(t.kind, t.value) for t in tokenize("field_1 + field_10")]
        assert kinds == [("IDENT", "field_1"), ("OP", "+"), ("IDENT", "field_10"), ("EOF", None)]

    def test_string_escapes(self):
        token = tokenize(r'"say \"hi\"\n"')[0]
        assert token.kind == "STRING"
        assert token.value == 'say "hi"\n'

    def test_unterminated_string(self):
        with pytest.raises(FormulaError):
            tokenize('"open')

    def test_unexpected_character(self):
        with pytest.raises(FormulaError):
            tokenize("a ; b")

    def test_referenced_names(self):
        assert referenced_names('a > 1 ? b : "c"') == {"a", "b"}


class TestArithmetic:
    """Tests for numeric formulas."""

    @pytest.mark.parametrize("formula,expected", [
        ("1 + 2 * 3", 7),
        ("(1 + 2) * 3", 9),
        ("10 - 4 - 3", 3),
        ("7 % 4", 3),
        ("-a + 10", 7),
        ("a / 2", 1.5),
        (".5 * 4", 2),
    ])
    def test_precedence_and_operators(self, evaluator, formula, expected):
        assert evaluator.evaluate(formula, {"a": 3.0}) == expected

    def test_division_by_zero_fails(self, evaluator):
        with pytest.raises(FormulaError):
            evaluator.evaluate("a / 0", {"a": 1.0})

    def test_unknown_identifier_fails(self, evaluator):
        with pytest.raises(FormulaError):
            evaluator.evaluate("a + b", {"a": 1.0})

    def test_no_access_to_ambient_names(self, evaluator):
        with pytest.raises(FormulaError):
            evaluator.evaluate("__import__", {})

    def test_calls_are_not_part_of_the_grammar(self, evaluator):
        with pytest.raises(FormulaError):
            evaluator.evaluate("max(a, 1)", {"a": 1.0, "max": 2.0})


class TestStrings:
    """Tests for string building."""

    def test_plus_concatenates_strings(self, evaluator):
        assert evaluator.evaluate('first + " " + last', {"first": "Jane", "last": "Doe"}) == "Jane Doe"

    def test_numbers_render_without_trailing_zero(self, evaluator):
        assert evaluator.evaluate('"Total: " + a', {"a": 7.0}) == "Total: 7"

    def test_subtracting_non_numeric_strings_is_nan(self, evaluator):
        result = evaluator.evaluate('"abc" - 1', {})
        assert result != result  # NaN


class TestLogic:
    """Tests for comparisons, logical operators and the ternary."""

    def test_ternary(self, evaluator):
        formula = 'age >= 18 ? "Adult" : "Minor"'
        assert evaluator.evaluate(formula, {"age": 20.0}) == "Adult"
        assert evaluator.evaluate(formula, {"age": 9.0}) == "Minor"

    def test_nested_ternary_is_right_associative(self, evaluator):
        formula = 'a > 10 ? "high" : a > 5 ? "mid" : "low"'
        assert evaluator.evaluate(formula, {"a": 7.0}) == "mid"

    def test_loose_and_strict_equality(self, evaluator):
        assert evaluator.evaluate('a == "3"', {"a": 3.0}) is True
        assert evaluator.evaluate('a === "3"', {"a": 3.0}) is False
        assert evaluator.evaluate("a !== 3", {"a": 3.0}) is False

    def test_logical_operators_return_operands(self, evaluator):
        assert evaluator.evaluate('a || "fallback"', {"a": 0.0}) == "fallback"
        assert evaluator.evaluate('a && "yes"', {"a": 1.0}) == "yes"
        assert evaluator.evaluate("!a", {"a": 0.0}) is True

    def test_string_comparison(self, evaluator):
        assert evaluator.evaluate('"apple" < "banana"', {}) is True


class TestMalformedFormulas:
    """Syntax errors surface as FormulaError."""

    @pytest.mark.parametrize("formula", ["", "1 +", "(1 + 2", "a ? 1", "1 2", ")"])
    def test_syntax_errors(self, evaluator, formula):
        with pytest.raises(FormulaError):
            evaluator.evaluate(formula, {"a": 1.0})

    def test_overlong_formula(self):
        with pytest.raises(FormulaError):
            FormulaEvaluator(max_length=5).evaluate("1 + 2 + 3", {})


class TestNesting:
    """Deeply nested formulas fail with FormulaError instead of exhausting the stack."""

    def test_moderate_nesting_evaluates(self, evaluator):
        formula = "(" * 10 + "-a" + ")" * 10
        assert evaluator.evaluate(formula, {"a": 2.0}) == -2.0
        assert evaluator.evaluate("a > 1 ? a > 2 ? 3 : 2 : 1", {"a": 2.0}) == 2

    def test_nested_parentheses(self):
        formula = "(" * 300 + "a" + ")" * 300
        with pytest.raises(FormulaError, match="nested"):
            FormulaEvaluator().evaluate(formula, {"a": 1.0})

    def test_repeated_unary_operators(self):
        with pytest.raises(FormulaError, match="nested"):
            FormulaEvaluator().evaluate("-" * 1500 + "a", {"a": 1.0})

    def test_nested_ternaries(self):
        formula = "a ? 1 : " * 100 + "0"
        with pytest.raises(FormulaError, match="nested"):
            FormulaEvaluator().evaluate(formula, {"a": 0.0})

    def test_configured_depth(self):
        evaluator = FormulaEvaluator(max_depth=3)
        assert evaluator.evaluate("((a))", {"a": 1.0}) == 1.0
        with pytest.raises(FormulaError):
            evaluator.evaluate("(((a)))", {"a": 1.0})

    def test_long_operator_chain(self):
        formula = " + ".join(["a"] * 3000)
        with pytest.raises(FormulaError, match="nested"):
            FormulaEvaluator(max_length=len(formula)).evaluate(formula, {"a": 1.0})
