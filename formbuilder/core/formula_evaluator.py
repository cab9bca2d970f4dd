"""
Formula evaluator.

Evaluates a parsed formula against a fixed set of variable bindings. Operator
semantics follow the browser formulas the builder was designed around: `+`
concatenates when either operand is a string, `==` compares loosely, `&&` and
`||` return one of their operands.
"""

import math
import operator
from typing import Any, Callable, Dict, Mapping, Optional

from formbuilder.config import settings
from formbuilder.core.exceptions import FormulaError
from formbuilder.core.formula_parser import (
    BinaryOp,
    Conditional,
    Literal,
    Node,
    UnaryOp,
    Variable,
    parse_formula,
)
from formbuilder.models.field_value import format_number


def is_truthy(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)


def to_operand_number(value: Any) -> float:
    """Numeric conversion for arithmetic operands; unparseable strings are NaN."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    text = str(value).strip()
    if not text:
        return 0.0
    try:
        return float(text)
    except ValueError:
        return math.nan


def to_operand_string(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    return str(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _category(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if _is_number(value):
        return "number"
    return "string"


def _add(left: Any, right: Any) -> Any:
    if isinstance(left, str) or isinstance(right, str):
        return to_operand_string(left) + to_operand_string(right)
    return to_operand_number(left) + to_operand_number(right)


def _divide(left: Any, right: Any) -> float:
    divisor = to_operand_number(right)
    if divisor == 0:
        raise FormulaError("Division by zero")
    return to_operand_number(left) / divisor


def _modulo(left: Any, right: Any) -> float:
    divisor = to_operand_number(right)
    if divisor == 0:
        raise FormulaError("Division by zero")
    # Sign follows the dividend
    return math.fmod(to_operand_number(left), divisor)


def _arithmetic(op: Callable[[float, float], float]) -> Callable[[Any, Any], float]:
    def apply(left: Any, right: Any) -> float:
        return op(to_operand_number(left), to_operand_number(right))
    return apply


def _relational(op: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def apply(left: Any, right: Any) -> bool:
        if isinstance(left, str) and isinstance(right, str):
            return op(left, right)
        return op(to_operand_number(left), to_operand_number(right))
    return apply


def strict_equals(left: Any, right: Any) -> bool:
    return _category(left) == _category(right) and left == right


def loose_equals(left: Any, right: Any) -> bool:
    if _category(left) == _category(right):
        return left == right
    if left is None or right is None:
        return False
    return to_operand_number(left) == to_operand_number(right)


BINARY_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "+": _add,
    "-": _arithmetic(operator.sub),
    "*": _arithmetic(operator.mul),
    "/": _divide,
    "%": _modulo,
    "<": _relational(operator.lt),
    "<=": _relational(operator.le),
    ">": _relational(operator.gt),
    ">=": _relational(operator.ge),
    "==": loose_equals,
    "!=": lambda left, right: not loose_equals(left, right),
    "===": strict_equals,
    "!==": lambda left, right: not strict_equals(left, right),
}

UNARY_OPERATORS: Dict[str, Callable[[Any], Any]] = {
    "-": lambda value: -to_operand_number(value),
    "+": to_operand_number,
    "!": lambda value: not is_truthy(value),
}


class FormulaEvaluator:
    """Evaluates formulas against variable bindings."""

    def __init__(self, max_length: Optional[int] = None, max_depth: Optional[int] = None):
        self.max_length = max_length if max_length is not None else settings.FORMULA_MAX_LENGTH
        self.max_depth = max_depth if max_depth is not None else settings.FORMULA_MAX_DEPTH

    def evaluate(self, formula: str, variables: Mapping[str, Any]) -> Any:
        """
        Parse and evaluate a formula.

        Args:
            formula: Formula text
            variables: Values of the identifiers the formula may read

        Returns:
            The formula's value

        Raises:
            FormulaError: If the formula is malformed, reads an unknown
                identifier, is nested too deeply, or fails while evaluating
        """
        if len(formula) > self.max_length:
            raise FormulaError(f"Formula exceeds {self.max_length} characters")
        tree = parse_formula(formula, self.max_depth)
        try:
            return self._eval(tree, variables)
        except RecursionError:
            # Long left-leaning operator chains build deep trees without nesting
            raise FormulaError("Formula is too deeply nested to evaluate")

    def _eval(self, node: Node, variables: Mapping[str, Any]) -> Any:
        if isinstance(node, Literal):
            return node.value

        if isinstance(node, Variable):
            if node.name not in variables:
                raise FormulaError(f"Unknown identifier {node.name!r}", node.position)
            return variables[node.name]

        if isinstance(node, UnaryOp):
            return UNARY_OPERATORS[node.op](self._eval(node.operand, variables))

        if isinstance(node, Conditional):
            if is_truthy(self._eval(node.test, variables)):
                return self._eval(node.consequent, variables)
            return self._eval(node.alternate, variables)

        if isinstance(node, BinaryOp):
            left = self._eval(node.left, variables)
            # Short-circuit operators return an operand
            if node.op == "&&":
                return self._eval(node.right, variables) if is_truthy(left) else left
            if node.op == "||":
                return left if is_truthy(left) else self._eval(node.right, variables)
            right = self._eval(node.right, variables)
            try:
                return BINARY_OPERATORS[node.op](left, right)
            except OverflowError as e:
                raise FormulaError(f"Arithmetic overflow: {str(e)}")

        raise FormulaError(f"Unsupported syntax node {type(node).__name__}")
