"""Safe parsing and evaluation for admin-authored chart formulas.

Chart elements and derived variables reference stats variables in a small
expression language: numeric literals, identifiers (`female`, `stats.female`),
bracket tokens (`[stats.female]`, `[PARAM:jerseyPrice]`, `[MANUAL:benchmark]`),
unary +/-, binary + - * / and parentheses. Formulas are tokenized and parsed
into a typed AST which is then walked; nothing is handed to `eval`.

Evaluation is defensive: missing operands and division by zero produce NA
instead of raising.
"""

from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Final, Union

from .dto import NA, ChartValue
from .variables import VariableRegistry, normalize_variable_name


class FormulaSyntaxError(ValueError):
    """Raised when a formula cannot be tokenized or parsed."""

    def __init__(self, message: str, *, formula: str, position: int | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable description of the problem.
            formula: The formula being parsed.
            position: Character offset of the offending token, when known.
        """

        super().__init__(message)
        self.formula = formula
        self.position = position


@dataclass(frozen=True, slots=True)
class Number:
    """Numeric literal."""

    value: float


@dataclass(frozen=True, slots=True)
class Variable:
    """Reference to a stats variable (normalized name)."""

    name: str


@dataclass(frozen=True, slots=True)
class Parameter:
    """`[PARAM:key]` reference to a per-element parameter."""

    key: str


@dataclass(frozen=True, slots=True)
class ManualValue:
    """`[MANUAL:key]` reference to per-element manual data."""

    key: str


@dataclass(frozen=True, slots=True)
class UnaryOp:
    """Unary plus/minus."""

    op: str
    operand: "Node"


@dataclass(frozen=True, slots=True)
class BinaryOp:
    """Binary arithmetic operation."""

    op: str
    left: "Node"
    right: "Node"


Node = Union[Number, Variable, Parameter, ManualValue, UnaryOp, BinaryOp]


@dataclass(frozen=True, slots=True)
class Token:
    """A lexical token with its source position."""

    kind: str
    text: str
    position: int


_TOKEN_RE: Final[re.Pattern[str]] = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<number>(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)
    |(?P<bracket>\[[ \t]*[A-Za-z0-9_:.]+[ \t]*\])
    |(?P<ident>[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)*)
    |(?P<op>[-+*/()])
    """,
    re.VERBOSE,
)

MAX_NESTING_DEPTH: Final[int] = 100

_PARAM_PREFIX: Final[str] = "PARAM:"
_MANUAL_PREFIX: Final[str] = "MANUAL:"


def tokenize(formula: str) -> tuple[Token, ...]:
    """Split a formula into tokens.

    Raises:
        FormulaSyntaxError: When an unsupported character is encountered.
    """

    tokens: list[Token] = []
    pos = 0
    while pos < len(formula):
        match = _TOKEN_RE.match(formula, pos)
        if match is None:
            raise FormulaSyntaxError(
                f"Unexpected character {formula[pos]!r} at position {pos}.", formula=formula, position=pos
            )
        kind = match.lastgroup or ""
        if kind != "ws":
            tokens.append(Token(kind=kind, text=match.group(), position=pos))
        pos = match.end()
    return tuple(tokens)


class _Parser:
    """Recursive-descent parser over a token stream.

    Grammar:
        expr    := term (("+" | "-") term)*
        term    := unary (("*" | "/") unary)*
        unary   := ("+" | "-") unary | primary
        primary := number | ident | bracket | "(" expr ")"
    """

    def __init__(self, formula: str, tokens: tuple[Token, ...]) -> None:
        self._formula = formula
        self._tokens = tokens
        self._index = 0
        self._depth = 0

    def parse(self) -> Node:
        if not self._tokens:
            raise FormulaSyntaxError("Formula is empty.", formula=self._formula, position=0)
        node = self._expr()
        token = self._peek()
        if token is not None:
            if token.text == ")":
                raise self._error("Unbalanced parentheses: closing parenthesis without opening", token)
            raise self._error(f"Unexpected token {token.text!r}", token)
        if _node_depth(node) > MAX_NESTING_DEPTH:
            raise FormulaSyntaxError(
                f"Formula is nested more than {MAX_NESTING_DEPTH} levels deep.", formula=self._formula, position=0
            )
        return node

    def _peek(self) -> Token | None:
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def _advance(self) -> Token:
        token = self._tokens[self._index]
        self._index += 1
        return token

    def _error(self, message: str, token: Token | None) -> FormulaSyntaxError:
        position = token.position if token is not None else len(self._formula)
        return FormulaSyntaxError(f"{message} at position {position}.", formula=self._formula, position=position)

    def _expr(self) -> Node:
        node = self._term()
        while (token := self._peek()) is not None and token.text in ("+", "-"):
            self._advance()
            node = BinaryOp(op=token.text, left=node, right=self._term())
        return node

    def _term(self) -> Node:
        node = self._unary()
        while (token := self._peek()) is not None and token.text in ("*", "/"):
            self._advance()
            node = BinaryOp(op=token.text, left=node, right=self._unary())
        return node

    def _unary(self) -> Node:
        token = self._peek()
        if token is not None and token.text in ("+", "-"):
            self._advance()
            self._enter(token)
            operand = self._unary()
            self._depth -= 1
            return UnaryOp(op=token.text, operand=operand)
        return self._primary()

    def _enter(self, token: Token) -> None:
        self._depth += 1
        if self._depth > MAX_NESTING_DEPTH:
            raise self._error(f"Formula is nested more than {MAX_NESTING_DEPTH} levels deep", token)

    def _primary(self) -> Node:
        token = self._peek()
        if token is None:
            raise self._error("Unexpected end of formula", None)
        self._advance()

        if token.kind == "number":
            value = float(token.text)
            if not math.isfinite(value):
                raise self._error(f"Numeric literal {token.text!r} is out of range", token)
            return Number(value=value)
        if token.kind == "ident":
            return Variable(name=normalize_variable_name(token.text))
        if token.kind == "bracket":
            return _bracket_node(token.text[1:-1].strip())
        if token.text == "(":
            self._enter(token)
            node = self._expr()
            self._depth -= 1
            closing = self._peek()
            if closing is None or closing.text != ")":
                raise self._error("Unbalanced parentheses: unclosed opening parenthesis", closing)
            self._advance()
            return node
        raise self._error(f"Unexpected token {token.text!r}", token)


def _node_depth(node: Node) -> int:
    """Return the height of an AST without recursing."""

    deepest = 0
    stack: list[tuple[Node, int]] = [(node, 1)]
    while stack:
        current, depth = stack.pop()
        deepest = max(deepest, depth)
        if isinstance(current, UnaryOp):
            stack.append((current.operand, depth + 1))
        elif isinstance(current, BinaryOp):
            stack.append((current.left, depth + 1))
            stack.append((current.right, depth + 1))
    return deepest


def _bracket_node(content: str) -> Node:
    """Map a bracket token body to its AST node."""

    if content.startswith(_PARAM_PREFIX):
        return Parameter(key=content[len(_PARAM_PREFIX) :])
    if content.startswith(_MANUAL_PREFIX):
        return ManualValue(key=content[len(_MANUAL_PREFIX) :])
    return Variable(name=normalize_variable_name(content))


@lru_cache(maxsize=1024)
def parse_formula(formula: str) -> Node:
    """Parse a formula into an immutable AST.

    Raises:
        FormulaSyntaxError: For invalid tokens, unbalanced parentheses,
            out-of-range literals, nesting deeper than `MAX_NESTING_DEPTH`
            or trailing input.
    """

    return _Parser(formula, tokenize(formula)).parse()


def walk(node: Node) -> Iterator[Node]:
    """Yield every node of an AST in depth-first order."""

    yield node
    if isinstance(node, UnaryOp):
        yield from walk(node.operand)
    elif isinstance(node, BinaryOp):
        yield from walk(node.left)
        yield from walk(node.right)


def formula_identifiers(formula: str) -> frozenset[str]:
    """Return the normalized variable names referenced by a formula.

    Raises:
        FormulaSyntaxError: When the formula does not parse.
    """

    return frozenset(node.name for node in walk(parse_formula(formula)) if isinstance(node, Variable))


def formula_parameter_keys(formula: str) -> frozenset[str]:
    """Return the `[PARAM:key]` keys referenced by a formula."""

    return frozenset(node.key for node in walk(parse_formula(formula)) if isinstance(node, Parameter))


def evaluate_node(
    node: Node,
    *,
    resolve: Callable[[str], object],
    parameters: Mapping[str, float] | None = None,
    manual_data: Mapping[str, float] | None = None,
) -> ChartValue:
    """Recursively evaluate an AST node.

    Args:
        node: Parsed formula node.
        resolve: Callable mapping a variable name to its value (or NA).
        parameters: Values for `[PARAM:key]` tokens.
        manual_data: Values for `[MANUAL:key]` tokens.

    Returns:
        The float result, or NA when any operand is missing/non-numeric or a
        division by zero occurs.
    """

    if isinstance(node, Number):
        return node.value if math.isfinite(node.value) else NA

    if isinstance(node, Variable):
        return _as_number(resolve(node.name))

    if isinstance(node, Parameter):
        return _as_number((parameters or {}).get(node.key))

    if isinstance(node, ManualValue):
        return _as_number((manual_data or {}).get(node.key))

    if isinstance(node, UnaryOp):
        operand = evaluate_node(node.operand, resolve=resolve, parameters=parameters, manual_data=manual_data)
        if operand is NA:
            return NA
        return operand if node.op == "+" else -operand

    if isinstance(node, BinaryOp):
        left = evaluate_node(node.left, resolve=resolve, parameters=parameters, manual_data=manual_data)
        right = evaluate_node(node.right, resolve=resolve, parameters=parameters, manual_data=manual_data)
        if left is NA or right is NA:
            return NA
        if node.op == "+":
            result = left + right
        elif node.op == "-":
            result = left - right
        elif node.op == "*":
            result = left * right
        else:
            if right == 0:
                return NA
            result = left / right
        return result if math.isfinite(result) else NA

    return NA


def _as_number(value: object) -> ChartValue:
    """Coerce a resolved value into a finite float, or NA."""

    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return NA
    number = float(value)
    return number if math.isfinite(number) else NA


@dataclass(frozen=True, slots=True)
class FormulaInspection:
    """Result of inspecting a formula against a variable registry.

    Args:
        referenced_variables: Registered variable names referenced by the formula.
        unknown_identifiers: Referenced names that are not registered variables.
        parameter_keys: `[PARAM:key]` keys referenced by the formula.
        is_valid_syntax: Whether the formula parses.
        error: Parse error message when `is_valid_syntax` is False.
    """

    referenced_variables: frozenset[str]
    unknown_identifiers: frozenset[str]
    parameter_keys: frozenset[str]
    is_valid_syntax: bool
    error: str | None = None


def inspect_formula(formula: str, registry: VariableRegistry) -> FormulaInspection:
    """Inspect a formula for syntax errors and unknown variable references."""

    try:
        parse_formula(formula)
    except FormulaSyntaxError as exc:
        return FormulaInspection(
            referenced_variables=frozenset(),
            unknown_identifiers=frozenset(),
            parameter_keys=frozenset(),
            is_valid_syntax=False,
            error=str(exc),
        )

    names = formula_identifiers(formula)
    known = frozenset(name for name in names if name in registry)
    return FormulaInspection(
        referenced_variables=known,
        unknown_identifiers=names - known,
        parameter_keys=formula_parameter_keys(formula),
        is_valid_syntax=True,
    )
