# FinReport - Financial statement calculation engine
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Expression language used by 'calculated' layout rows.

Calculated rows combine named variables and already computed rows with a
small arithmetic language:

    revenue + cogs
    (@10 - @20) / @10 * 100
    -opex * 1.2

Grammar (lowest to highest precedence)
--------------------------------------
    expr    := addsub
    addsub  := muldiv (('+' | '-') muldiv)*
    muldiv  := unary (('*' | '/') unary)*
    unary   := ('+' | '-') unary | primary
    primary := number | variable | order | '(' expr ')'

Tokens
------
- number   : digits with at most one decimal point ('12', '0.5', '3.')
- variable : identifier ([A-Za-z_][A-Za-z0-9_]*)
- order    : '@' followed by digits ('@10'), referencing a rendered row
- operator : one of + - * / ( )

Whitespace is skipped. Any other character is a syntax error annotated
with its position.

Evaluation
----------
Evaluation is a post-order walk over an immutable AST using Python floats.
Division by zero does not raise: it produces None, the "undefined" result,
and None propagates through every enclosing operation so a single ratio
against a zero base renders as a blank cell. Referencing a name absent
from the evaluation context raises UndefinedReferenceError.

Parsed ASTs are memoized per ExpressionEvaluator instance, keyed by the
exact expression text. The memo table is unbounded and can be emptied
with ``clear_cache()``.
"""

import logging
import operator
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Callable, Optional, Union

from .errors import ExpressionSyntaxError, UndefinedReferenceError

logger = logging.getLogger(__name__)

OPERATOR_CHARS = "+-*/()"
DIGITS = "0123456789"

# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Token:
    """A lexical token with its zero-based position in the source text."""

    type: str  # 'number', 'variable', 'order' or 'operator'
    value: str
    position: int


def _is_identifier_start(ch: str) -> bool:
    return ch == "_" or (ch.isascii() and ch.isalpha())


def _is_identifier_char(ch: str) -> bool:
    return _is_identifier_start(ch) or ch in DIGITS


def tokenize(text: str) -> list[Token]:
    """Split an expression into tokens.

    Args:
        text: Expression source text.

    Returns:
        The list of tokens, in source order.

    Raises:
        ExpressionSyntaxError: on empty input, an unrecognized character,
            a number with two decimal points or an '@' without digits.
    """
    if not isinstance(text, str) or not text.strip():
        raise ExpressionSyntaxError("Expression must be a non-empty string")

    tokens: list[Token] = []
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]

        if ch.isspace():
            i += 1
            continue

        if ch in DIGITS:
            start = i
            seen_dot = False
            while i < n and (text[i] in DIGITS or text[i] == "."):
                if text[i] == ".":
                    if seen_dot:
                        raise ExpressionSyntaxError(
                            f"Unexpected character '.' at position {i}",
                            position=i,
                            token=".",
                        )
                    seen_dot = True
                i += 1
            tokens.append(Token("number", text[start:i], start))
            continue

        if ch == "@":
            start = i
            i += 1
            while i < n and text[i] in DIGITS:
                i += 1
            if i == start + 1:
                raise ExpressionSyntaxError(
                    f"Invalid order reference at position {start}",
                    position=start,
                    token="@",
                )
            tokens.append(Token("order", text[start:i], start))
            continue

        if _is_identifier_start(ch):
            start = i
            while i < n and _is_identifier_char(text[i]):
                i += 1
            tokens.append(Token("variable", text[start:i], start))
            continue

        if ch in OPERATOR_CHARS:
            tokens.append(Token("operator", ch, i))
            i += 1
            continue

        raise ExpressionSyntaxError(
            f"Unexpected character '{ch}' at position {i}", position=i, token=ch
        )

    return tokens


# ---------------------------------------------------------------------------
# AST
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NumberNode:
    value: float


@dataclass(frozen=True)
class VariableNode:
    name: str


@dataclass(frozen=True)
class OrderNode:
    name: str  # including the leading '@', e.g. '@10'


@dataclass(frozen=True)
class UnaryNode:
    operator: str  # '+' or '-'
    operand: "Node"


@dataclass(frozen=True)
class BinaryNode:
    operator: str  # '+', '-', '*' or '/'
    left: "Node"
    right: "Node"


Node = Union[NumberNode, VariableNode, OrderNode, UnaryNode, BinaryNode]


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> Optional[Token]:
        if self.pos < len(self.tokens):
            return self.tokens[self.pos]
        return None

    def _peek_operator(self, choices: str) -> Optional[str]:
        token = self._peek()
        if token is not None and token.type == "operator" and token.value in choices:
            return token.value
        return None

    def parse(self) -> Node:
        node = self._addsub()
        token = self._peek()
        if token is not None:
            raise ExpressionSyntaxError(
                f"Unexpected token '{token.value}' at position {token.position}",
                position=token.position,
                token=token.value,
            )
        return node

    def _addsub(self) -> Node:
        left = self._muldiv()
        while True:
            op = self._peek_operator("+-")
            if op is None:
                return left
            self.pos += 1
            left = BinaryNode(op, left, self._muldiv())

    def _muldiv(self) -> Node:
        left = self._unary()
        while True:
            op = self._peek_operator("*/")
            if op is None:
                return left
            self.pos += 1
            left = BinaryNode(op, left, self._unary())

    def _unary(self) -> Node:
        op = self._peek_operator("+-")
        if op is not None:
            self.pos += 1
            return UnaryNode(op, self._unary())
        return self._primary()

    def _primary(self) -> Node:
        token = self._peek()
        if token is None:
            raise ExpressionSyntaxError("Unexpected end of expression")

        if token.type == "number":
            self.pos += 1
            return NumberNode(float(token.value))

        if token.type == "variable":
            self.pos += 1
            return VariableNode(token.value)

        if token.type == "order":
            self.pos += 1
            return OrderNode(token.value)

        if token.value == "(":
            self.pos += 1
            inner = self._addsub()
            closing = self._peek()
            if closing is None:
                raise ExpressionSyntaxError("Missing closing parenthesis")
            if closing.value != ")":
                raise ExpressionSyntaxError(
                    f"Expected ')' but found '{closing.value}' "
                    f"at position {closing.position}",
                    position=closing.position,
                    token=closing.value,
                )
            self.pos += 1
            return inner

        raise ExpressionSyntaxError(
            f"Unexpected token '{token.value}' at position {token.position}",
            position=token.position,
            token=token.value,
        )


def parse_expression(text: str) -> Node:
    """Tokenize and parse an expression without any caching."""
    return _Parser(tokenize(text)).parse()


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------

_BINARY_OPERATORS: dict[str, Callable[[float, float], float]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
}


def _lookup(name: str, context: Mapping[str, Optional[float]]) -> Optional[float]:
    if name not in context:
        raise UndefinedReferenceError(name)
    value = context[name]
    if value is None:
        return None
    return float(value)


def evaluate_ast(
    node: Node, context: Mapping[str, Optional[float]]
) -> Optional[float]:
    """Evaluate a parsed expression against a flat context.

    Args:
        node: Root of the AST to evaluate.
        context: Mapping of variable names and order tokens ('@10') to
            numbers. A None value is treated as undefined.

    Returns:
        The numeric result, or None when a division by zero (or an
        undefined operand) occurs anywhere in the tree.

    Raises:
        UndefinedReferenceError: if a referenced name is not in context.
    """
    if isinstance(node, NumberNode):
        return node.value

    if isinstance(node, (VariableNode, OrderNode)):
        return _lookup(node.name, context)

    if isinstance(node, UnaryNode):
        operand = evaluate_ast(node.operand, context)
        if operand is None:
            return None
        return -operand if node.operator == "-" else operand

    if isinstance(node, BinaryNode):
        # Both sides are walked: a missing reference on the right still raises
        left = evaluate_ast(node.left, context)
        right = evaluate_ast(node.right, context)
        if left is None or right is None:
            return None
        if node.operator == "/" and right == 0:
            return None
        return _BINARY_OPERATORS[node.operator](left, right)

    raise TypeError(f"Unsupported expression node: {type(node).__name__}")


def collect_dependencies(node: Node) -> list[str]:
    """Return variable names and order tokens used by an AST.

    The result is de-duplicated and keeps first-appearance order.
    """
    found: dict[str, None] = {}

    def _walk(current: Node) -> None:
        if isinstance(current, (VariableNode, OrderNode)):
            found.setdefault(current.name, None)
        elif isinstance(current, UnaryNode):
            _walk(current.operand)
        elif isinstance(current, BinaryNode):
            _walk(current.left)
            _walk(current.right)

    _walk(node)
    return list(found)


class ExpressionEvaluator:
    """Parses, caches and evaluates calculated-row expressions.

    The AST memo table lives as long as the instance. It only avoids
    re-tokenizing identical text; results never depend on it.
    """

    def __init__(self) -> None:
        self._cache: dict[str, Node] = {}

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()

    def parse(self, text: str) -> Node:
        """Return the AST for ``text``, parsing it on first use only."""
        node = self._cache.get(text)
        if node is not None:
            logger.debug("Expression cache hit: %r", text)
            return node

        logger.debug("Expression cache miss: %r", text)
        node = parse_expression(text)
        self._cache[text] = node
        return node

    def evaluate(
        self, text: str, context: Mapping[str, Optional[float]]
    ) -> Optional[float]:
        """Evaluate ``text`` against ``context``.

        Returns None for a division by zero instead of raising.
        """
        return evaluate_ast(self.parse(text), context)

    def get_dependencies(self, text: str) -> list[str]:
        """Variable names and order tokens referenced by ``text``."""
        return collect_dependencies(self.parse(text))

    def validate(self, text: str) -> list[str]:
        """Return syntax error messages for ``text`` (empty when valid)."""
        try:
            self.parse(text)
        except ExpressionSyntaxError as exc:
            return [str(exc)]
        return []
