"""Safe evaluator for calculation rule expressions.

Rules are short JavaScript-flavoured expressions written by the LLM, e.g.
``Math.ceil(data_volume_gb / 100)`` or ``complexity === 'high' ? 1.5 : 1.0``.
They are tokenized and evaluated by a small recursive-descent parser; no
code is ever executed. Identifiers resolve only against the response map.
"""

import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Set

from ..errors import ExpressionError

_NUMBER_RE = re.compile(r"\d+(?:\.\d*)?|\.\d+")
_IDENT_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*(?:\.[A-Za-z_$][A-Za-z0-9_$]*)*")
_OPERATORS = (
    "===", "!==", "==", "!=", "<=", ">=", "&&", "||",
    "<", ">", "+", "-", "*", "/", "%", "!", "?", ":", "(", ")", ",",
)
_LITERALS = {"true": True, "false": False, "null": None, "undefined": None}

_MATH_FUNCTIONS = {
    "Math.ceil": lambda *args: math.ceil(args[0]),
    "Math.floor": lambda *args: math.floor(args[0]),
    "Math.round": lambda *args: math.floor(args[0] + 0.5),
    "Math.abs": lambda *args: abs(args[0]),
    "Math.max": lambda *args: max(args),
    "Math.min": lambda *args: min(args),
}

_FALLBACK_RE = re.compile(r"\|\|\s*(-?\d+(?:\.\d+)?)\s*\)?\s*$")


@dataclass
class Token:
    kind: str  # number, string, ident, op
    value: Any


def tokenize(expression: str) -> List[Token]:
    """Split an expression into tokens.

    Raises:
        ExpressionError: On characters that are not part of the grammar
    """
    tokens: List[Token] = []
    i = 0
    text = expression or ""
    while i < len(text):
        ch = text[i]
        if ch.isspace():
            i += 1
            continue
        if ch in "'\"":
            end = text.find(ch, i + 1)
            if end == -1:
                raise ExpressionError(f"Unterminated string in {expression!r}")
            tokens.append(Token("string", text[i + 1:end]))
            i = end + 1
            continue
        match = _NUMBER_RE.match(text, i)
        if match:
            tokens.append(Token("number", float(match.group())))
            i = match.end()
            continue
        match = _IDENT_RE.match(text, i)
        if match:
            word = match.group()
            if word in _LITERALS:
                tokens.append(Token("literal", _LITERALS[word]))
            else:
                tokens.append(Token("ident", word))
            i = match.end()
            continue
        for op in _OPERATORS:
            if text.startswith(op, i):
                tokens.append(Token("op", op))
                i += len(op)
                break
        else:
            raise ExpressionError(f"Unexpected character {ch!r} in {expression!r}")
    return tokens


def referenced_identifiers(expression: str) -> Set[str]:
    """Return the response-map identifiers an expression refers to"""
    try:
        tokens = tokenize(expression)
    except ExpressionError:
        return set(re.findall(r"\b[a-z][a-z0-9_]*\b", expression or ""))
    return {
        token.value for token in tokens
        if token.kind == "ident" and token.value not in _MATH_FUNCTIONS
    }


def truthy(value: Any) -> bool:
    """JavaScript truthiness"""
    if value is None or value is False:
        return False
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    if isinstance(value, str):
        return value != ""
    return True


def to_number(value: Any) -> float:
    """JavaScript-style numeric coercion; NaN when not convertible"""
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        return float(value)
    if value is None:
        return 0.0
    if isinstance(value, str):
        stripped = value.strip()
        if stripped == "":
            return 0.0
        try:
            return float(stripped)
        except ValueError:
            return math.nan
    return math.nan


class _Parser:
    """Recursive-descent evaluator over a token list.

    Grammar, lowest precedence first:
        ternary  := or ('?' ternary ':' ternary)?
        or       := and ('||' and)*
        and      := equality ('&&' equality)*
        equality := compare (('===' | '==' | '!==' | '!=') compare)*
        compare  := additive (('<' | '<=' | '>' | '>=') additive)*
        additive := term (('+' | '-') term)*
        term     := unary (('*' | '/' | '%') unary)*
        unary    := ('!' | '-' | '+') unary | primary
        primary  := number | string | literal | ident | call | '(' ternary ')'

    The operand of ``&&``/``||`` and the ternary branch that JavaScript would
    not evaluate are parsed with ``skipping`` set: syntax is still checked,
    but unknown identifiers, division by zero and calls raise nothing.
    """

    def __init__(self, tokens: List[Token], variables: Dict[str, Any]):
        self.tokens = tokens
        self.variables = variables
        self.pos = 0
        self.skipping = 0

    def _skip(self, rule: Callable[[], Any]) -> None:
        self.skipping += 1
        try:
            rule()
        finally:
            self.skipping -= 1

    def parse(self) -> Any:
        if not self.tokens:
            raise ExpressionError("Empty expression")
        value = self.ternary()
        if self.pos != len(self.tokens):
            raise ExpressionError(f"Unexpected token {self.tokens[self.pos].value!r}")
        return value

    def _peek_op(self) -> Optional[str]:
        if self.pos < len(self.tokens) and self.tokens[self.pos].kind == "op":
            return self.tokens[self.pos].value
        return None

    def _expect(self, op: str) -> None:
        if self._peek_op() != op:
            raise ExpressionError(f"Expected {op!r}")
        self.pos += 1

    def ternary(self) -> Any:
        condition = self.logical_or()
        if self._peek_op() == "?":
            self.pos += 1
            if truthy(condition):
                value = self.ternary()
                self._expect(":")
                self._skip(self.ternary)
            else:
                self._skip(self.ternary)
                self._expect(":")
                value = self.ternary()
            return value
        return condition

    def logical_or(self) -> Any:
        value = self.logical_and()
        while self._peek_op() == "||":
            self.pos += 1
            if truthy(value):
                self._skip(self.logical_and)
            else:
                value = self.logical_and()
        return value

    def logical_and(self) -> Any:
        value = self.equality()
        while self._peek_op() == "&&":
            self.pos += 1
            if truthy(value):
                value = self.equality()
            else:
                self._skip(self.equality)
        return value

    def equality(self) -> Any:
        value = self.compare()
        while self._peek_op() in ("===", "==", "!==", "!="):
            op = self.tokens[self.pos].value
            self.pos += 1
            right = self.compare()
            if op in ("===", "!=="):
                equal = _strict_equals(value, right)
            else:
                equal = _loose_equals(value, right)
            value = equal if op in ("===", "==") else not equal
        return value

    def compare(self) -> Any:
        value = self.additive()
        while self._peek_op() in ("<", "<=", ">", ">="):
            op = self.tokens[self.pos].value
            self.pos += 1
            right = self.additive()
            if isinstance(value, str) and isinstance(right, str):
                left_v, right_v = value, right
            else:
                left_v, right_v = to_number(value), to_number(right)
            if op == "<":
                value = left_v < right_v
            elif op == "<=":
                value = left_v <= right_v
            elif op == ">":
                value = left_v > right_v
            else:
                value = left_v >= right_v
        return value

    def additive(self) -> Any:
        value = self.term()
        while self._peek_op() in ("+", "-"):
            op = self.tokens[self.pos].value
            self.pos += 1
            right = self.term()
            if op == "+" and (isinstance(value, str) or isinstance(right, str)):
                value = f"{_js_str(value)}{_js_str(right)}"
            elif op == "+":
                value = to_number(value) + to_number(right)
            else:
                value = to_number(value) - to_number(right)
        return value

    def term(self) -> Any:
        value = self.unary()
        while self._peek_op() in ("*", "/", "%"):
            op = self.tokens[self.pos].value
            self.pos += 1
            right = to_number(self.unary())
            left = to_number(value)
            if op == "*":
                value = left * right
            elif right == 0 and self.skipping:
                value = 0.0
            elif right == 0:
                raise ExpressionError("Division by zero")
            elif op == "/":
                value = left / right
            else:
                value = math.fmod(left, right)
        return value

    def unary(self) -> Any:
        op = self._peek_op()
        if op == "!":
            self.pos += 1
            return not truthy(self.unary())
        if op == "-":
            self.pos += 1
            return -to_number(self.unary())
        if op == "+":
            self.pos += 1
            return to_number(self.unary())
        return self.primary()

    def primary(self) -> Any:
        if self.pos >= len(self.tokens):
            raise ExpressionError("Unexpected end of expression")
        token = self.tokens[self.pos]
        self.pos += 1

        if token.kind in ("number", "string", "literal"):
            return token.value
        if token.kind == "ident":
            if token.value in _MATH_FUNCTIONS:
                return self._call(token.value)
            if token.value not in self.variables:
                if self.skipping:
                    return None
                raise ExpressionError(f"Unknown identifier {token.value!r}")
            return self.variables[token.value]
        if token.value == "(":
            value = self.ternary()
            self._expect(")")
            return value
        raise ExpressionError(f"Unexpected token {token.value!r}")

    def _call(self, name: str) -> Any:
        self._expect("(")
        args = []
        if self._peek_op() != ")":
            args.append(to_number(self.ternary()))
            while self._peek_op() == ",":
                self.pos += 1
                args.append(to_number(self.ternary()))
        self._expect(")")
        if not args:
            raise ExpressionError(f"{name} needs at least one argument")
        if self.skipping:
            return 0.0
        if any(math.isnan(arg) for arg in args):
            return math.nan
        return _MATH_FUNCTIONS[name](*args)


def _js_str(value: Any) -> str:
    if value is True:
        return "true"
    if value is False:
        return "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _strict_equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, (int, float)) and isinstance(right, (int, float)):
        return left == right
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return left is None and right is None


def _loose_equals(left: Any, right: Any) -> bool:
    if left is None or right is None:
        return left is None and right is None
    if isinstance(left, str) and isinstance(right, str):
        return left == right
    return to_number(left) == to_number(right)


def evaluate(expression: str, variables: Dict[str, Any]) -> Any:
    """Evaluate an expression against the response map.

    Raises:
        ExpressionError: On syntax errors, unknown identifiers or division by zero
    """
    return _Parser(tokenize(expression), variables).parse()


def fallback_value(expression: str) -> float:
    """Value used when an expression cannot be evaluated.

    The numeric literal after the last ``||`` if there is one, else 1.
    """
    match = _FALLBACK_RE.search(expression or "")
    if match:
        return float(match.group(1))
    return 1.0


def safe_evaluate(expression: str, variables: Dict[str, Any]) -> Any:
    """Evaluate an expression, falling back instead of raising"""
    try:
        return evaluate(expression, variables)
    except (ExpressionError, ValueError, TypeError, OverflowError):
        return fallback_value(expression)
