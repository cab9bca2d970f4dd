"""
Formula tokenizer and parser.

Derived field formulas are small expressions over parent field ids:

    price * quantity
    first + " " + last
    age >= 18 ? "Adult" : "Minor"

The grammar, lowest precedence first:

    expression     := conditional
    conditional    := logical_or ( "?" conditional ":" conditional )?
    logical_or     := logical_and ( "||" logical_and )*
    logical_and    := equality ( "&&" equality )*
    equality       := relational ( ( "==" | "!=" | "===" | "!==" ) relational )*
    relational     := additive ( ( "<" | "<=" | ">" | ">=" ) additive )*
    additive       := multiplicative ( ( "+" | "-" ) multiplicative )*
    multiplicative := unary ( ( "*" | "/" | "%" ) unary )*
    unary          := ( "-" | "+" | "!" ) unary | primary
    primary        := NUMBER | STRING | "true" | "false" | "null"
                    | IDENTIFIER | "(" expression ")"

There are no calls, attribute access or assignments, so a parsed formula can
only read the variables it is given.

Parenthesised groups, ternary branches and unary operators may nest at most
`max_depth` levels.
"""

import re
from functools import lru_cache
from typing import Any, List, NamedTuple, Optional, Set, Tuple

from formbuilder.core.exceptions import FormulaError

DEFAULT_MAX_DEPTH = 32


class Token(NamedTuple):
    kind: str  # NUMBER, STRING, IDENT, KEYWORD, OP, EOF
    value: Any
    position: int


_NUMBER = re.compile(r"(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_IDENTIFIER = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")
# Longest operators first
_OPERATORS = (
    "===", "!==", "==", "!=", "<=", ">=", "&&", "||",
    "+", "-", "*", "/", "%", "!", "<", ">", "?", ":", "(", ")",
)
_KEYWORDS = {"true": True, "false": False, "null": None}
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "0": "\0"}


def tokenize(formula: str) -> List[Token]:
    """Split a formula into tokens, ending with an EOF token."""
    tokens: List[Token] = []
    pos = 0
    length = len(formula)

    while pos < length:
        char = formula[pos]

        if char.isspace():
            pos += 1
            continue

        if char.isdigit() or (char == "." and pos + 1 < length and formula[pos + 1].isdigit()):
            match = _NUMBER.match(formula, pos)
            tokens.append(Token("NUMBER", float(match.group(0)), pos))
            pos = match.end()
            continue

        if char in ("'", '"'):
            value, end = _read_string(formula, pos)
            tokens.append(Token("STRING", value, pos))
            pos = end
            continue

        match = _IDENTIFIER.match(formula, pos)
        if match:
            word = match.group(0)
            if word in _KEYWORDS:
                tokens.append(Token("KEYWORD", word, pos))
            else:
                tokens.append(Token("IDENT", word, pos))
            pos = match.end()
            continue

        for op in _OPERATORS:
            if formula.startswith(op, pos):
                tokens.append(Token("OP", op, pos))
                pos += len(op)
                break
        else:
            raise FormulaError(f"Unexpected character {char!r}", pos)

    tokens.append(Token("EOF", None, length))
    return tokens


def _read_string(formula: str, start: int) -> Tuple[str, int]:
    """Read a quoted string literal starting at `start`; returns (value, end)."""
    quote = formula[start]
    chars: List[str] = []
    pos = start + 1

    while pos < len(formula):
        char = formula[pos]
        if char == quote:
            return "".join(chars), pos + 1
        if char == "\\":
            pos += 1
            if pos >= len(formula):
                break
            escaped = formula[pos]
            chars.append(_ESCAPES.get(escaped, escaped))
        else:
            chars.append(char)
        pos += 1

    raise FormulaError("Unterminated string literal", start)


class Node:
    """Base class of formula syntax tree nodes."""
    __slots__ = ()


class Literal(Node):
    __slots__ = ("value",)

    def __init__(self, value: Any):
        self.value = value


class Variable(Node):
    __slots__ = ("name", "position")

    def __init__(self, name: str, position: int):
        self.name = name
        self.position = position


class UnaryOp(Node):
    __slots__ = ("op", "operand")

    def __init__(self, op: str, operand: Node):
        self.op = op
        self.operand = operand


class BinaryOp(Node):
    __slots__ = ("op", "left", "right")

    def __init__(self, op: str, left: Node, right: Node):
        self.op = op
        self.left = left
        self.right = right


class Conditional(Node):
    __slots__ = ("test", "consequent", "alternate")

    def __init__(self, test: Node, consequent: Node, alternate: Node):
        self.test = test
        self.consequent = consequent
        self.alternate = alternate


# Binary precedence levels, lowest first
_BINARY_LEVELS = (
    ("||",),
    ("&&",),
    ("==", "!=", "===", "!=="),
    ("<", "<=", ">", ">="),
    ("+", "-"),
    ("*", "/", "%"),
)


class FormulaParser:
    """Recursive-descent parser producing a syntax tree."""

    def __init__(self, formula: str, max_depth: int = DEFAULT_MAX_DEPTH):
        self.formula = formula
        self.tokens = tokenize(formula)
        self.index = 0
        self.max_depth = max_depth
        self.depth = 0

    def parse(self) -> Node:
        if self._peek().kind == "EOF":
            raise FormulaError("Formula is empty", 0)
        node = self._conditional()
        token = self._peek()
        if token.kind != "EOF":
            raise FormulaError(f"Unexpected token {token.value!r}", token.position)
        return node

    def _peek(self) -> Token:
        return self.tokens[self.index]

    def _advance(self) -> Token:
        token = self.tokens[self.index]
        self.index += 1
        return token

    def _match_op(self, *ops: str) -> Optional[Token]:
        token = self._peek()
        if token.kind == "OP" and token.value in ops:
            return self._advance()
        return None

    def _expect_op(self, op: str) -> Token:
        token = self._match_op(op)
        if token is None:
            found = self._peek()
            raise FormulaError(f"Expected {op!r}", found.position)
        return token

    def _descend(self) -> None:
        self.depth += 1
        if self.depth > self.max_depth:
            raise FormulaError(
                f"Formula is nested more than {self.max_depth} levels deep", self._peek().position
            )

    def _conditional(self) -> Node:
        # Entered once per parenthesised group and per ternary branch
        self._descend()
        try:
            test = self._binary(0)
            if self._match_op("?"):
                consequent = self._conditional()
                self._expect_op(":")
                alternate = self._conditional()
                return Conditional(test, consequent, alternate)
            return test
        finally:
            self.depth -= 1

    def _binary(self, level: int) -> Node:
        if level == len(_BINARY_LEVELS):
            return self._unary()
        node = self._binary(level + 1)
        while True:
            token = self._match_op(*_BINARY_LEVELS[level])
            if token is None:
                return node
            node = BinaryOp(token.value, node, self._binary(level + 1))

    def _unary(self) -> Node:
        token = self._match_op("-", "+", "!")
        if token is None:
            return self._primary()
        self._descend()
        try:
            return UnaryOp(token.value, self._unary())
        finally:
            self.depth -= 1

    def _primary(self) -> Node:
        token = self._advance()

        if token.kind in ("NUMBER", "STRING"):
            return Literal(token.value)
        if token.kind == "KEYWORD":
            return Literal(_KEYWORDS[token.value])
        if token.kind == "IDENT":
            return Variable(token.value, token.position)
        if token.kind == "OP" and token.value == "(":
            node = self._conditional()
            self._expect_op(")")
            return node
        if token.kind == "EOF":
            raise FormulaError("Unexpected end of formula", token.position)
        raise FormulaError(f"Unexpected token {token.value!r}", token.position)


@lru_cache(maxsize=512)
def parse_formula(formula: str, max_depth: int = DEFAULT_MAX_DEPTH) -> Node:
    """Parse a formula; results are cached since trees are never mutated."""
    try:
        return FormulaParser(formula, max_depth).parse()
    except RecursionError:
        raise FormulaError("Formula is nested too deeply to parse")


def referenced_names(formula: str) -> Set[str]:
    """Identifiers a formula reads."""
    return {token.value for token in tokenize(formula) if token.kind == "IDENT"}
