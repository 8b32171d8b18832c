"""SCIM filter expression compiler (RFC 7644 §3.4.2.2).

Identity providers look up users before deciding whether to create or
update them::

    GET /scim/v2/Users?filter=userName eq "john@example.com"

``compile_filter`` turns an expression into a predicate over the flat
projection produced by ``project_user``. The grammar supported here is the
full one from the RFC:

    filter     = attrExp / logExp / valuePath / "not" "(" filter ")" / "(" filter ")"
    attrExp    = attrPath SP "pr" / attrPath SP compareOp SP compValue
    valuePath  = attrPath "[" valFilter "]"
    compareOp  = "eq" / "ne" / "co" / "sw" / "ew" / "gt" / "lt" / "ge" / "le"

``and`` binds tighter than ``or``. Attribute names and string comparisons
are case-insensitive, and attribute paths may carry the core User schema
URN as a prefix.

``point_lookup_value`` recognizes the single ``<id attr> eq "<value>"``
form so callers can resolve it with one lookup instead of a full scan.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from fedgate.core.errors import ErrorKind, Failure
from fedgate.core.types import User

Predicate = Callable[[dict[str, Any]], bool]


class ScimFilterOperator(str, Enum):
    """SCIM filter comparison operators."""

    EQUAL = "eq"
    NOT_EQUAL = "ne"
    CONTAINS = "co"
    STARTS_WITH = "sw"
    ENDS_WITH = "ew"
    GREATER_THAN = "gt"
    LESS_THAN = "lt"
    GREATER_OR_EQUAL = "ge"
    LESS_OR_EQUAL = "le"
    PRESENT = "pr"


class FilterSyntaxError(ValueError):
    """Raised by the parser on a malformed expression."""


@dataclass(frozen=True, slots=True)
class _Token:
    kind: str
    text: str
    value: Any = None


_TOKEN_RE = re.compile(
    r"\s*(?:"
    r"(?P<lparen>\()|(?P<rparen>\))|(?P<lbracket>\[)|(?P<rbracket>\])"
    r'|(?P<string>"(?:[^"\\]|\\.)*")'
    r"|(?P<number>-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?)"
    r"|(?P<word>[A-Za-z_$][\w$:.\-]*)"
    r")"
)

_LITERALS = {"true": True, "false": False, "null": None}
_OPERATORS = {op.value for op in ScimFilterOperator}

_USER_SCHEMA_PREFIX = "urn:ietf:params:scim:schemas:core:2.0:user:"

# Attributes that identify a user by email in this system.
_POINT_LOOKUP_ATTRIBUTES = frozenset(
    {"username", "email", "emails", "emails.value", "externalid", "id"}
)

_POINT_LOOKUP_RE = re.compile(
    r'^\s*(?P<attr>[\w:.\-]+)\s+eq\s+"(?P<value>[^"\\]*)"\s*$',
    re.IGNORECASE,
)


def project_user(user: User) -> dict[str, Any]:
    """Flatten a stored user into the attribute shape filters evaluate."""
    return {
        "id": user.email,
        "userName": user.email,
        "externalId": user.email,
        "email": user.email,
        "givenName": user.first_name or "",
        "familyName": user.last_name or "",
        "name": {
            "givenName": user.first_name or "",
            "familyName": user.last_name or "",
        },
        "emails": [{"value": user.email, "type": "work", "primary": True}],
        "active": user.is_active,
    }


def compile_filter(expression: str) -> Predicate | Failure:
    """Compile a filter expression into a predicate.

    Args:
        expression: Raw ``filter`` query parameter value.

    Returns:
        A predicate over ``project_user`` output, or
        ``Failure(INVALID_FILTER)`` when the expression is malformed.
    """
    try:
        return _Parser(_tokenize(expression)).parse()
    except FilterSyntaxError as e:
        return Failure(
            ErrorKind.INVALID_FILTER,
            f"Invalid SCIM filter: {e}",
            {"filter": expression},
        )


def point_lookup_value(expression: str) -> str | None:
    """Return the looked-up email for a simple ``<attr> eq "<value>"`` filter.

    Only attributes that carry the user's email qualify. Anything else,
    including compound expressions, returns ``None``.
    """
    match = _POINT_LOOKUP_RE.match(expression or "")
    if match is None:
        return None
    if _normalize_path(match.group("attr")) not in _POINT_LOOKUP_ATTRIBUTES:
        return None
    return match.group("value")


def _normalize_path(path: str) -> str:
    path = path.lower()
    if path.startswith(_USER_SCHEMA_PREFIX):
        path = path[len(_USER_SCHEMA_PREFIX) :]
    return path


def _tokenize(expression: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    text = expression.rstrip()
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None or match.end() == pos:
            raise FilterSyntaxError(f"unexpected character at position {pos}")
        pos = match.end()
        kind = match.lastgroup
        raw = match.group(kind)
        if kind == "string":
            try:
                tokens.append(_Token("value", raw, json.loads(raw)))
            except json.JSONDecodeError as e:
                raise FilterSyntaxError(f"bad string literal {raw}") from e
        elif kind == "number":
            number = float(raw) if any(c in raw for c in ".eE") else int(raw)
            tokens.append(_Token("value", raw, number))
        elif kind == "word" and raw.lower() in _LITERALS:
            tokens.append(_Token("value", raw, _LITERALS[raw.lower()]))
        else:
            tokens.append(_Token(kind, raw))
    if not tokens:
        raise FilterSyntaxError("empty expression")
    return tokens


class _Parser:
    def __init__(self, tokens: list[_Token]) -> None:
        self._tokens = tokens
        self._pos = 0

    def parse(self) -> Predicate:
        predicate = self._or()
        if self._peek() is not None:
            raise FilterSyntaxError(f"unexpected token '{self._peek().text}'")
        return predicate

    def _peek(self) -> _Token | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self) -> _Token:
        token = self._peek()
        if token is None:
            raise FilterSyntaxError("unexpected end of expression")
        self._pos += 1
        return token

    def _expect(self, kind: str) -> _Token:
        token = self._next()
        if token.kind != kind:
            raise FilterSyntaxError(f"expected {kind}, got '{token.text}'")
        return token

    def _at_keyword(self, keyword: str) -> bool:
        token = self._peek()
        return token is not None and token.kind == "word" and token.text.lower() == keyword

    def _or(self) -> Predicate:
        left = self._and()
        while self._at_keyword("or"):
            self._next()
            left = _any_of(left, self._and())
        return left

    def _and(self) -> Predicate:
        left = self._unary()
        while self._at_keyword("and"):
            self._next()
            left = _all_of(left, self._unary())
        return left

    def _unary(self) -> Predicate:
        if self._at_keyword("not"):
            self._next()
            self._expect("lparen")
            inner = self._or()
            self._expect("rparen")
            return _negate(inner)

        token = self._peek()
        if token is not None and token.kind == "lparen":
            self._next()
            inner = self._or()
            self._expect("rparen")
            return inner

        return self._attribute_expression()

    def _attribute_expression(self) -> Predicate:
        attr = self._expect("word")
        path = _normalize_path(attr.text)
        if path in {"and", "or", "not"} | _OPERATORS:
            raise FilterSyntaxError(f"expected attribute, got '{attr.text}'")

        token = self._peek()
        if token is not None and token.kind == "lbracket":
            self._next()
            inner = self._or()
            self._expect("rbracket")
            return _value_path(path, inner)

        op_token = self._expect("word")
        op_text = op_token.text.lower()
        if op_text not in _OPERATORS:
            raise FilterSyntaxError(f"unknown operator '{op_token.text}'")
        operator = ScimFilterOperator(op_text)
        if operator is ScimFilterOperator.PRESENT:
            return _present(path)

        value = self._expect("value").value
        return _compare(path, operator, value)


def _all_of(left: Predicate, right: Predicate) -> Predicate:
    return lambda resource: left(resource) and right(resource)


def _any_of(left: Predicate, right: Predicate) -> Predicate:
    return lambda resource: left(resource) or right(resource)


def _negate(inner: Predicate) -> Predicate:
    return lambda resource: not inner(resource)


def _lookup(resource: Any, name: str) -> Any:
    if not isinstance(resource, dict):
        return None
    for key, value in resource.items():
        if key.lower() == name:
            return value
    return None


def _resolve(resource: dict[str, Any], path: str) -> list[Any]:
    """Collect every value at ``path``, flattening multi-valued attributes."""
    values: list[Any] = [resource]
    for part in path.split("."):
        collected: list[Any] = []
        for value in values:
            items = value if isinstance(value, list) else [value]
            for item in items:
                found = _lookup(item, part)
                if found is None:
                    continue
                if isinstance(found, list):
                    collected.extend(found)
                else:
                    collected.append(found)
        values = collected
    # A bare multi-valued attribute compares against its ``value``s.
    return [_lookup(v, "value") if isinstance(v, dict) else v for v in values]


def _value_path(path: str, inner: Predicate) -> Predicate:
    def evaluate(resource: dict[str, Any]) -> bool:
        container = _lookup(resource, path)
        items = container if isinstance(container, list) else [container]
        return any(isinstance(item, dict) and inner(item) for item in items)

    return evaluate


def _present(path: str) -> Predicate:
    def evaluate(resource: dict[str, Any]) -> bool:
        return any(v not in (None, "", []) for v in _resolve(resource, path))

    return evaluate


def _compare(path: str, operator: ScimFilterOperator, expected: Any) -> Predicate:
    if operator in {
        ScimFilterOperator.CONTAINS,
        ScimFilterOperator.STARTS_WITH,
        ScimFilterOperator.ENDS_WITH,
    } and not isinstance(expected, str):
        raise FilterSyntaxError(f"'{operator.value}' requires a string value")
    if isinstance(expected, bool) or expected is None:
        if operator not in {ScimFilterOperator.EQUAL, ScimFilterOperator.NOT_EQUAL}:
            raise FilterSyntaxError(f"'{operator.value}' cannot compare {expected!r}")

    def evaluate(resource: dict[str, Any]) -> bool:
        actual = _resolve(resource, path)
        if operator is ScimFilterOperator.NOT_EQUAL:
            return not any(_matches(ScimFilterOperator.EQUAL, v, expected) for v in actual)
        if not actual:
            return operator is ScimFilterOperator.EQUAL and expected is None
        return any(_matches(operator, v, expected) for v in actual)

    return evaluate


def _matches(operator: ScimFilterOperator, actual: Any, expected: Any) -> bool:
    if isinstance(expected, str) and isinstance(actual, str):
        actual, expected = actual.lower(), expected.lower()
    elif isinstance(expected, bool) or isinstance(actual, bool):
        return operator is ScimFilterOperator.EQUAL and actual is expected
    elif expected is None:
        return operator is ScimFilterOperator.EQUAL and actual is None
    elif type(actual) is not type(expected) and not (
        isinstance(actual, int | float) and isinstance(expected, int | float)
    ):
        return False

    match operator:
        case ScimFilterOperator.EQUAL:
            return actual == expected
        case ScimFilterOperator.CONTAINS:
            return expected in actual
        case ScimFilterOperator.STARTS_WITH:
            return actual.startswith(expected)
        case ScimFilterOperator.ENDS_WITH:
            return actual.endswith(expected)
        case ScimFilterOperator.GREATER_THAN:
            return actual > expected
        case ScimFilterOperator.LESS_THAN:
            return actual < expected
        case ScimFilterOperator.GREATER_OR_EQUAL:
            return actual >= expected
        case ScimFilterOperator.LESS_OR_EQUAL:
            return actual <= expected
    return False
