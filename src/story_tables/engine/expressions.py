"""Conditional expression evaluation for table entries.

Conditions such as ``character_level >= 5 && current_season === "winter"``
are parsed by a small hand-written tokenizer and recursive-descent parser
and evaluated by walking the resulting tree. Only literals, context
variables, a fixed set of operators and a whitelisted function surface are
reachable; nothing in an expression can execute host code.

Grammar, lowest precedence first::

    expression  := or_expr
    or_expr     := and_expr (("||" | "or") and_expr)*
    and_expr    := not_expr (("&&" | "and") not_expr)*
    not_expr    := "not" not_expr | equality
    equality    := comparison (("==" | "===" | "!=" | "!==") comparison)*
    comparison  := additive (("<" | "<=" | ">" | ">=" | "in") additive)*
    additive    := term (("+" | "-") term)*
    term        := unary (("*" | "/" | "%") unary)*
    unary       := ("!" | "-" | "+") unary | postfix
    postfix     := primary ("." IDENT | "(" args ")")*
    primary     := NUMBER | STRING | IDENT | "(" expression ")" | "[" args "]"

Values follow JavaScript conventions where the two languages differ:
``+`` concatenates when either side is a string, ``==`` coerces between
numbers and strings, and NaN is falsy.

Example:
    >>> evaluator = ConditionalEvaluator()
    >>> evaluator.evaluate("party_size > 2", {"party_size": 4}).result
    True
"""

from __future__ import annotations

import json
import math
import random
import re
import sys
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import lru_cache
from typing import Any

from story_tables.core.constants import (
    CONTEXT_VARIABLES,
    EXAMPLE_CONDITIONS,
    FORBIDDEN_PATTERNS,
    VALIDATION_CONTEXT,
)
from story_tables.core.exceptions import (
    ExpressionError,
    ExpressionSyntaxError,
    ForbiddenExpressionError,
)
from story_tables.core.logging import get_logger
from story_tables.models.rolls import EvaluationResult, ExpressionValidation, RollContext


logger = get_logger(__name__)

MAX_NESTING = 64
"""Deepest parenthesis/operator nesting the parser accepts."""


# =============================================================================
# Syntax Tree
# =============================================================================


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class Name:
    name: str
    position: int


@dataclass(frozen=True)
class ArrayLiteral:
    items: tuple[Node, ...]


@dataclass(frozen=True)
class Unary:
    op: str
    operand: Node


@dataclass(frozen=True)
class Binary:
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Logical:
    op: str
    left: Node
    right: Node


@dataclass(frozen=True)
class Member:
    target: Node
    name: str
    position: int


@dataclass(frozen=True)
class Call:
    callee: Node
    args: tuple[Node, ...]


Node = Literal | Name | ArrayLiteral | Unary | Binary | Logical | Member | Call


# =============================================================================
# Tokenizer
# =============================================================================


@dataclass(frozen=True)
class Token:
    kind: str
    value: Any
    position: int


_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
    |(?P<number>(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?)
    |(?P<string>"(?:[^"\\]|\\.)*"|'(?:[^'\\]|\\.)*')
    |(?P<ident>[A-Za-z_$][A-Za-z0-9_$]*)
    |(?P<op>===|!==|==|!=|<=|>=|&&|\|\||[<>!+\-*/%(),.\[\]])
    """,
    re.VERBOSE,
)

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "0": "\0"}

_KEYWORDS: dict[str, Any] = {
    "true": True,
    "True": True,
    "false": False,
    "False": False,
    "null": None,
    "None": None,
    "undefined": None,
}

_WORD_OPERATORS = frozenset({"and", "or", "not", "in"})


def _unescape(raw: str) -> str:
    body = raw[1:-1]
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), body)


def tokenize(expression: str) -> list[Token]:
    """Split an expression into tokens.

    Args:
        expression: The expression source.

    Returns:
        Tokens, terminated by an ``eof`` token.

    Raises:
        ExpressionSyntaxError: On a character no token starts with.
    """
    tokens: list[Token] = []
    position = 0
    while position < len(expression):
        match = _TOKEN_RE.match(expression, position)
        if match is None:
            raise ExpressionSyntaxError(
                f"Unexpected character {expression[position]!r}",
                expression=expression,
                position=position,
            )
        kind = match.lastgroup
        text = match.group()
        if kind == "number":
            value: Any = float(text) if any(c in text for c in ".eE") else int(text)
            tokens.append(Token("literal", value, position))
        elif kind == "string":
            tokens.append(Token("literal", _unescape(text), position))
        elif kind == "ident":
            if text in _KEYWORDS:
                tokens.append(Token("literal", _KEYWORDS[text], position))
            elif text in _WORD_OPERATORS:
                tokens.append(Token("op", text, position))
            else:
                tokens.append(Token("ident", text, position))
        elif kind == "op":
            tokens.append(Token("op", text, position))
        position = match.end()

    tokens.append(Token("eof", None, len(expression)))
    return tokens


# =============================================================================
# Parser
# =============================================================================


class _Parser:
    """Recursive-descent parser producing a syntax tree."""

    def __init__(self, expression: str) -> None:
        self._expression = expression
        self._tokens = tokenize(expression)
        self._index = 0
        self._nesting = 0

    def parse(self) -> Node:
        if self._peek().kind == "eof":
            raise self._error("Empty expression")
        node = self._or()
        token = self._peek()
        if token.kind != "eof":
            raise self._error(f"Unexpected token {token.value!r}", token)
        return node

    # -- token helpers -------------------------------------------------------

    def _peek(self) -> Token:
        return self._tokens[self._index]

    def _advance(self) -> Token:
        token = self._tokens[self._index]
        self._index += 1
        return token

    def _match(self, *ops: str) -> Token | None:
        token = self._peek()
        if token.kind == "op" and token.value in ops:
            return self._advance()
        return None

    def _expect(self, op: str) -> Token:
        token = self._match(op)
        if token is None:
            found = self._peek()
            shown = "end of expression" if found.kind == "eof" else repr(found.value)
            raise self._error(f"Expected {op!r} but found {shown}", found)
        return token

    def _error(self, message: str, token: Token | None = None) -> ExpressionSyntaxError:
        token = token or self._peek()
        return ExpressionSyntaxError(
            message, expression=self._expression, position=token.position
        )

    def _enter(self) -> None:
        self._nesting += 1
        if self._nesting > MAX_NESTING:
            raise self._error("Expression nested too deeply")

    def _leave(self) -> None:
        self._nesting -= 1

    # -- grammar -------------------------------------------------------------

    def _or(self) -> Node:
        node = self._and()
        while self._match("||", "or"):
            node = Logical("||", node, self._and())
        return node

    def _and(self) -> Node:
        node = self._not()
        while self._match("&&", "and"):
            node = Logical("&&", node, self._not())
        return node

    def _not(self) -> Node:
        if self._match("not"):
            self._enter()
            node = Unary("!", self._not())
            self._leave()
            return node
        return self._equality()

    def _equality(self) -> Node:
        node = self._comparison()
        while token := self._match("==", "===", "!=", "!=="):
            node = Binary(token.value, node, self._comparison())
        return node

    def _comparison(self) -> Node:
        node = self._additive()
        while token := self._match("<", "<=", ">", ">=", "in"):
            node = Binary(token.value, node, self._additive())
        return node

    def _additive(self) -> Node:
        node = self._term()
        while token := self._match("+", "-"):
            node = Binary(token.value, node, self._term())
        return node

    def _term(self) -> Node:
        node = self._unary()
        while token := self._match("*", "/", "%"):
            node = Binary(token.value, node, self._unary())
        return node

    def _unary(self) -> Node:
        if token := self._match("!", "-", "+"):
            self._enter()
            node = Unary(token.value, self._unary())
            self._leave()
            return node
        return self._postfix()

    def _postfix(self) -> Node:
        node = self._primary()
        while True:
            if self._match("."):
                token = self._advance()
                if token.kind != "ident":
                    raise self._error("Expected a member name after '.'", token)
                node = Member(node, token.value, token.position)
            elif self._match("("):
                node = Call(node, self._arguments(")"))
            else:
                return node

    def _arguments(self, closer: str) -> tuple[Node, ...]:
        self._enter()
        args: list[Node] = []
        if not self._match(closer):
            args.append(self._or())
            while self._match(","):
                args.append(self._or())
            self._expect(closer)
        self._leave()
        return tuple(args)

    def _primary(self) -> Node:
        token = self._peek()
        if token.kind == "literal":
            self._advance()
            return Literal(token.value)
        if token.kind == "ident":
            self._advance()
            return Name(token.value, token.position)
        if self._match("("):
            self._enter()
            node = self._or()
            self._expect(")")
            self._leave()
            return node
        if self._match("["):
            return ArrayLiteral(self._arguments("]"))
        if token.kind == "eof":
            raise self._error("Unexpected end of expression", token)
        raise self._error(f"Unexpected token {token.value!r}", token)


def parse_expression(expression: str) -> Node:
    """Parse an expression into a syntax tree.

    Args:
        expression: The expression source.

    Returns:
        The root node.

    Raises:
        ExpressionSyntaxError: If the expression is malformed.
    """
    return _Parser(expression).parse()


# =============================================================================
# Value Semantics
# =============================================================================


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


_FLOAT_LIMIT = int(sys.float_info.max)


def _bounded(value: int) -> float | int:
    # Integers past the float range behave like JavaScript's Infinity.
    if value > _FLOAT_LIMIT:
        return math.inf
    if value < -_FLOAT_LIMIT:
        return -math.inf
    return value


def to_number(value: Any) -> float | int:
    """Coerce a value to a number the way JavaScript's ``Number()`` does."""
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return _bounded(value)
    if isinstance(value, float):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0
        try:
            return _bounded(int(text))
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return math.nan
    return math.nan


def to_string(value: Any) -> str:
    """Render a value the way JavaScript's ``String()`` does."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, list | tuple):
        return ",".join(to_string(item) for item in value)
    if isinstance(value, dict):
        return "[object Object]"
    return str(value)


def is_truthy(value: Any) -> bool:
    """JavaScript truthiness: NaN, 0, empty string and null are false."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if _is_number(value):
        return not (value == 0 or (isinstance(value, float) and math.isnan(value)))
    if isinstance(value, str):
        return value != ""
    return True


def _strict_equals(left: Any, right: Any) -> bool:
    if _is_number(left) and _is_number(right):
        return left == right
    if type(left) is not type(right):
        return False
    return bool(left == right)


def _loose_equals(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    if isinstance(left, list | dict) or isinstance(right, list | dict):
        return left is right
    return to_number(left) == to_number(right)


def _divide(left: float, right: float) -> float:
    if right == 0:
        if left == 0 or math.isnan(left):
            return math.nan
        return math.copysign(math.inf, left) * math.copysign(1, right)
    return left / right


def _modulo(left: float, right: float) -> float:
    if right == 0 or math.isinf(left):
        return math.nan
    return math.fmod(left, right)


def _js_round(value: Any) -> float | int:
    number = to_number(value)
    if math.isnan(number) or math.isinf(number):
        return number
    return math.floor(number + 0.5)


def _integral(function: Callable[[float], int]) -> Callable[[Any], float | int]:
    def apply(value: Any) -> float | int:
        number = to_number(value)
        if math.isnan(number) or math.isinf(number):
            return number
        return function(number)

    return apply


def _sqrt(value: Any) -> float:
    number = to_number(value)
    return math.nan if math.isnan(number) or number < 0 else math.sqrt(number)


def _pow(base: Any, exponent: Any) -> float:
    try:
        return math.pow(to_number(base), to_number(exponent))
    except (OverflowError, ValueError):
        return math.nan


def _parse_int(value: Any, radix: Any = 10) -> float | int:
    text = to_string(value).strip()
    base = int(to_number(radix)) or 10
    match = re.match(r"[+-]?[0-9a-zA-Z]+", text)
    if not match:
        return math.nan
    digits = match.group()
    # keep the longest prefix valid in the radix
    for end in range(len(digits), 0, -1):
        try:
            return int(digits[:end], base)
        except ValueError:
            continue
    return math.nan


def _parse_float(value: Any) -> float:
    match = re.match(r"\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?", to_string(value))
    return float(match.group()) if match else math.nan


def _json_parse(text: Any) -> Any:
    try:
        return json.loads(to_string(text))
    except json.JSONDecodeError as exc:
        raise ExpressionError(f"JSON.parse failed: {exc.msg}") from exc


def _json_stringify(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), default=str)


# =============================================================================
# Whitelisted Surface
# =============================================================================


@dataclass(frozen=True)
class Builtin:
    """A whitelisted callable reachable from expressions."""

    name: str
    function: Callable[..., Any]


@dataclass(frozen=True)
class Namespace:
    """A whitelisted object such as ``Math`` with fixed members."""

    name: str
    members: dict[str, Any]


_STRING_METHODS: dict[str, Callable[..., Any]] = {
    "includes": lambda text, search="": to_string(search) in text,
    "startsWith": lambda text, search="": text.startswith(to_string(search)),
    "endsWith": lambda text, search="": text.endswith(to_string(search)),
    "toLowerCase": lambda text: text.lower(),
    "toUpperCase": lambda text: text.upper(),
    "trim": lambda text: text.strip(),
}


def _build_globals(rng: random.Random) -> dict[str, Any]:
    def builtin(name: str, function: Callable[..., Any]) -> Builtin:
        return Builtin(name, function)

    math_members = {
        "floor": builtin("Math.floor", _integral(math.floor)),
        "ceil": builtin("Math.ceil", _integral(math.ceil)),
        "round": builtin("Math.round", _js_round),
        "abs": builtin("Math.abs", lambda value: abs(to_number(value))),
        "min": builtin(
            "Math.min", lambda *values: min((to_number(v) for v in values), default=math.inf)
        ),
        "max": builtin(
            "Math.max", lambda *values: max((to_number(v) for v in values), default=-math.inf)
        ),
        "pow": builtin("Math.pow", _pow),
        "sqrt": builtin("Math.sqrt", _sqrt),
        "random": builtin("Math.random", rng.random),
        "PI": math.pi,
        "E": math.e,
    }
    return {
        "Math": Namespace("Math", math_members),
        "JSON": Namespace(
            "JSON",
            {
                "stringify": builtin("JSON.stringify", _json_stringify),
                "parse": builtin("JSON.parse", _json_parse),
            },
        ),
        "Date": Namespace(
            "Date", {"now": builtin("Date.now", lambda: int(time.time() * 1000))}
        ),
        "Number": builtin("Number", lambda value=0: to_number(value)),
        "String": builtin("String", lambda value="": to_string(value)),
        "Boolean": builtin("Boolean", lambda value=None: is_truthy(value)),
        "parseInt": builtin("parseInt", _parse_int),
        "parseFloat": builtin("parseFloat", _parse_float),
        "isNaN": builtin("isNaN", lambda value=None: math.isnan(to_number(value))),
        "isFinite": builtin("isFinite", lambda value=None: math.isfinite(to_number(value))),
        "NaN": math.nan,
        "Infinity": math.inf,
    }


# =============================================================================
# Interpreter
# =============================================================================


class _Interpreter:
    """Tree-walking evaluator over a scope and the whitelisted globals."""

    def __init__(
        self,
        expression: str,
        scope: Mapping[str, Any],
        globals_: Mapping[str, Any],
    ) -> None:
        self._expression = expression
        self._scope = scope
        self._globals = globals_

    def _error(self, message: str) -> ExpressionError:
        return ExpressionError(message, expression=self._expression)

    def evaluate(self, node: Node) -> Any:
        if isinstance(node, Literal):
            return node.value
        if isinstance(node, Name):
            return self._lookup(node)
        if isinstance(node, ArrayLiteral):
            return [self.evaluate(item) for item in node.items]
        if isinstance(node, Logical):
            left = self.evaluate(node.left)
            if node.op == "&&":
                return self.evaluate(node.right) if is_truthy(left) else left
            return left if is_truthy(left) else self.evaluate(node.right)
        if isinstance(node, Unary):
            return self._unary(node.op, self.evaluate(node.operand))
        if isinstance(node, Binary):
            return self._binary(node.op, self.evaluate(node.left), self.evaluate(node.right))
        if isinstance(node, Member):
            return self._member(self.evaluate(node.target), node.name)
        if isinstance(node, Call):
            return self._call(node)
        raise self._error(f"Unsupported syntax {type(node).__name__}")

    def _lookup(self, node: Name) -> Any:
        if node.name in self._scope:
            return self._scope[node.name]
        if node.name in self._globals:
            return self._globals[node.name]
        raise self._error(f"Unknown identifier '{node.name}'")

    def _unary(self, op: str, value: Any) -> Any:
        if op == "!":
            return not is_truthy(value)
        if isinstance(value, Builtin | Namespace):
            raise self._error(f"Cannot apply '{op}' to {value.name}")
        number = to_number(value)
        return -number if op == "-" else number

    def _binary(self, op: str, left: Any, right: Any) -> Any:
        for operand in (left, right):
            if isinstance(operand, Builtin | Namespace):
                raise self._error(f"Cannot use {operand.name} as a value")

        if op == "===":
            return _strict_equals(left, right)
        if op == "!==":
            return not _strict_equals(left, right)
        if op == "==":
            return _loose_equals(left, right)
        if op == "!=":
            return not _loose_equals(left, right)
        if op == "in":
            return self._contains(right, left)
        if op in ("<", "<=", ">", ">="):
            return self._compare(op, left, right)
        if op == "+":
            if isinstance(left, str) or isinstance(right, str):
                return to_string(left) + to_string(right)
            return to_number(left) + to_number(right)

        a, b = to_number(left), to_number(right)
        if op == "-":
            return a - b
        if op == "*":
            return a * b
        if op == "/":
            return _divide(a, b)
        return _modulo(a, b)

    def _compare(self, op: str, left: Any, right: Any) -> bool:
        if isinstance(left, str) and isinstance(right, str):
            a: Any = left
            b: Any = right
        else:
            a, b = to_number(left), to_number(right)
            if math.isnan(a) or math.isnan(b):
                return False
        if op == "<":
            return a < b
        if op == "<=":
            return a <= b
        if op == ">":
            return a > b
        return a >= b

    def _contains(self, container: Any, item: Any) -> bool:
        if isinstance(container, str):
            return to_string(item) in container
        if isinstance(container, list | tuple):
            return any(_strict_equals(item, element) for element in container)
        if isinstance(container, dict):
            return to_string(item) in container
        raise self._error("Right side of 'in' must be a string, list or object")

    def _member(self, target: Any, name: str) -> Any:
        if isinstance(target, Namespace):
            if name in target.members:
                return target.members[name]
            raise self._error(f"{target.name}.{name} is not available")
        if isinstance(target, str):
            if name == "length":
                return len(target)
            if name in _STRING_METHODS:
                method = _STRING_METHODS[name]
                return Builtin(name, lambda *args: method(target, *args))
        if isinstance(target, list | tuple):
            if name == "length":
                return len(target)
            if name == "includes":
                return Builtin(
                    name,
                    lambda item=None: any(_strict_equals(item, v) for v in target),
                )
        raise self._error(f"Property '{name}' is not available on {to_string(target)!r}")

    def _call(self, node: Call) -> Any:
        callee = self.evaluate(node.callee)
        if not isinstance(callee, Builtin):
            raise self._error(f"{to_string(callee)!r} is not a function")
        args = [self.evaluate(arg) for arg in node.args]
        try:
            return callee.function(*args)
        except ExpressionError:
            raise
        except (TypeError, ValueError, ArithmeticError) as exc:
            raise self._error(f"{callee.name} failed: {exc}") from exc


def _static_names(node: Node) -> set[str]:
    if isinstance(node, Name):
        return {node.name}
    children: tuple[Node, ...]
    if isinstance(node, ArrayLiteral):
        children = node.items
    elif isinstance(node, Unary):
        children = (node.operand,)
    elif isinstance(node, Binary | Logical):
        children = (node.left, node.right)
    elif isinstance(node, Member):
        children = (node.target,)
    elif isinstance(node, Call):
        children = (node.callee, *node.args)
    else:
        children = ()
    names: set[str] = set()
    for child in children:
        names |= _static_names(child)
    return names


# =============================================================================
# Evaluator
# =============================================================================


class ConditionalEvaluator:
    """Evaluates conditional expressions against a roll context.

    Failures never raise: a denylisted, malformed or failing expression
    yields ``result=False`` with an error message.

    Attributes:
        max_expression_length: Longest expression accepted.
    """

    def __init__(
        self,
        *,
        rng: random.Random | None = None,
        max_expression_length: int = 500,
        parse_cache_size: int = 512,
        on_evaluated: Callable[[float], None] | None = None,
    ) -> None:
        """Initialize the evaluator.

        Args:
            rng: Random source backing ``Math.random``.
            max_expression_length: Longest expression accepted.
            parse_cache_size: Parsed trees kept in memory.
            on_evaluated: Called with the elapsed milliseconds of each
                evaluation, for metrics.
        """
        self.max_expression_length = max_expression_length
        self._globals = _build_globals(rng if rng is not None else random.Random())
        self._parse = lru_cache(maxsize=parse_cache_size)(parse_expression)
        self._on_evaluated = on_evaluated

    def screen(self, expression: str) -> None:
        """Reject expressions that are too long or match the denylist.

        Args:
            expression: The expression source.

        Raises:
            ForbiddenExpressionError: If a denylisted pattern matches.
            ExpressionError: If the expression is too long.
        """
        if len(expression) > self.max_expression_length:
            raise ExpressionError(
                f"Expression exceeds {self.max_expression_length} characters",
                expression=expression,
            )
        for pattern in FORBIDDEN_PATTERNS:
            if pattern.search(expression):
                raise ForbiddenExpressionError(
                    f"Expression contains forbidden pattern: {pattern.pattern}",
                    expression=expression,
                    pattern=pattern.pattern,
                )

    def compile(self, expression: str) -> Node:
        """Screen and parse an expression, reusing cached trees.

        Raises:
            ExpressionError: If the expression is rejected or malformed.
        """
        self.screen(expression)
        try:
            return self._parse(expression)
        except RecursionError as exc:
            raise ExpressionSyntaxError(
                "Expression nested too deeply", expression=expression
            ) from exc

    def evaluate_value(self, expression: str, scope: Mapping[str, Any]) -> Any:
        """Evaluate an expression and return its raw value.

        Args:
            expression: The expression source.
            scope: Variables visible to the expression.

        Returns:
            The expression's value.

        Raises:
            ExpressionError: If the expression is rejected or fails.
        """
        tree = self.compile(expression)
        return _Interpreter(expression, scope, self._globals).evaluate(tree)

    def evaluate(
        self,
        expression: str,
        context: RollContext | Mapping[str, Any] | None = None,
    ) -> EvaluationResult:
        """Evaluate an expression to a boolean.

        Args:
            expression: The expression source.
            context: A roll context (its scope includes the injected
                variables) or a plain variable mapping.

        Returns:
            EvaluationResult with the truthiness of the value, or False and
            an error message on any failure.
        """
        started = time.perf_counter()
        if isinstance(context, RollContext):
            scope: Mapping[str, Any] = context.scope()
        else:
            scope = context or {}

        try:
            result = is_truthy(self.evaluate_value(expression, scope))
            error = None
        except ExpressionError as exc:
            result, error = False, exc.message
            logger.warning("Expression evaluation failed", expression=expression, error=error)
        except RecursionError:
            result, error = False, "Expression nested too deeply"
            logger.warning("Expression evaluation failed", expression=expression, error=error)
        except ArithmeticError as exc:
            result, error = False, f"Arithmetic failed: {exc}"
            logger.warning("Expression evaluation failed", expression=expression, error=error)

        elapsed = (time.perf_counter() - started) * 1000
        if self._on_evaluated is not None:
            self._on_evaluated(elapsed)
        return EvaluationResult(result=result, error=error, evaluation_time_ms=elapsed)

    def validate(self, expression: str) -> ExpressionValidation:
        """Check an expression without a real context.

        Screening and parsing always run. When every identifier is a
        documented or injected variable, the expression is also evaluated
        against a dummy context so type errors surface.

        Args:
            expression: The expression source.

        Returns:
            ExpressionValidation describing the outcome.
        """
        if not expression or not expression.strip():
            return ExpressionValidation(is_valid=False, error="Expression is empty")

        try:
            tree = self.compile(expression)
            unknown = _static_names(tree) - set(VALIDATION_CONTEXT) - set(self._globals)
            if not unknown:
                _Interpreter(expression, VALIDATION_CONTEXT, self._globals).evaluate(tree)
        except ExpressionError as exc:
            return ExpressionValidation(is_valid=False, error=exc.message)
        except RecursionError:
            return ExpressionValidation(is_valid=False, error="Expression nested too deeply")
        except ArithmeticError as exc:
            return ExpressionValidation(is_valid=False, error=f"Arithmetic failed: {exc}")
        return ExpressionValidation(is_valid=True)

    @staticmethod
    def available_variables() -> dict[str, str]:
        """Documented variables and their descriptions."""
        return dict(CONTEXT_VARIABLES)

    @staticmethod
    def example_conditions() -> dict[str, str]:
        """Sample expressions keyed by a short label."""
        return dict(EXAMPLE_CONDITIONS)


__all__ = [
    "ConditionalEvaluator",
    "parse_expression",
    "tokenize",
    "to_number",
    "to_string",
    "is_truthy",
    "Token",
    "Node",
    "Builtin",
    "Namespace",
]
