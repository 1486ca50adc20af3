"""Condition expressions used by Scout priority rules and Researcher boosts.

Grammar::

    expr    := and_expr ("OR" and_expr)*
    and_expr:= term ("AND" term)*
    term    := "(" expr ")" | operand OP operand | IDENT
    operand := NUMBER | IDENT
    OP      := "<" | "<=" | ">" | ">=" | "==" | "!="

Identifiers resolve against a single variables mapping holding both thresholds
and metrics. A comparison or truthy test on a missing or ``None`` identifier is
false.
"""

from __future__ import annotations

import operator
import re
from functools import lru_cache
from typing import Any, Callable, Mapping, Optional, Union

from interplay.orchestrator.errors import SkillConfigurationError

_TOKEN_RE = re.compile(
    r"\s*(?:(?P<num>-?\d+(?:\.\d+)?)|(?P<op><=|>=|==|!=|<|>)|(?P<lp>\()|(?P<rp>\))"
    r"|(?P<ident>[A-Za-z_][A-Za-z0-9_.]*))"
)

_OPS: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}

_LEGACY_RE = re.compile(r"^\s*(<=|>=|==|!=|<|>)\s*(-?\d+(?:\.\d+)?)\s*$")

# AST nodes: ("or", [nodes]), ("and", [nodes]), ("cmp", op, left, right), ("truthy", name)
Operand = Union[float, str]
Node = tuple


def _tokenize(expression: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos = 0
    text = expression.rstrip()
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None or m.end() == pos:
            raise SkillConfigurationError(
                f"Invalid condition expression {expression!r}: unexpected input at {pos}"
            )
        kind = m.lastgroup
        value = m.group(kind)
        if kind == "ident" and value.upper() in ("AND", "OR"):
            kind = value.lower()
        tokens.append((kind, value))
        pos = m.end()
    return tokens


class _Parser:
    def __init__(self, expression: str) -> None:
        self.expression = expression
        self.tokens = _tokenize(expression)
        self.pos = 0

    def _peek(self) -> Optional[tuple[str, str]]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> tuple[str, str]:
        tok = self._peek()
        if tok is None:
            self._fail("unexpected end of expression")
        self.pos += 1
        return tok

    def _fail(self, message: str) -> None:
        raise SkillConfigurationError(f"Invalid condition expression {self.expression!r}: {message}")

    def parse(self) -> Node:
        if not self.tokens:
            self._fail("empty expression")
        node = self._or()
        if self._peek() is not None:
            self._fail(f"unexpected token {self._peek()[1]!r}")
        return node

    def _or(self) -> Node:
        parts = [self._and()]
        while self._peek() and self._peek()[0] == "or":
            self.pos += 1
            parts.append(self._and())
        return parts[0] if len(parts) == 1 else ("or", parts)

    def _and(self) -> Node:
        parts = [self._term()]
        while self._peek() and self._peek()[0] == "and":
            self.pos += 1
            parts.append(self._term())
        return parts[0] if len(parts) == 1 else ("and", parts)

    def _term(self) -> Node:
        kind, value = self._next()
        if kind == "lp":
            node = self._or()
            if self._next()[0] != "rp":
                self._fail("missing ')'")
            return node
        if kind not in ("num", "ident"):
            self._fail(f"unexpected token {value!r}")
        left: Operand = float(value) if kind == "num" else value
        nxt = self._peek()
        if nxt is None or nxt[0] != "op":
            if kind == "num":
                self._fail("a number must be compared to something")
            return ("truthy", value)
        op = self._next()[1]
        rkind, rvalue = self._next()
        if rkind not in ("num", "ident"):
            self._fail(f"expected operand after {op!r}")
        right: Operand = float(rvalue) if rkind == "num" else rvalue
        return ("cmp", op, left, right)


@lru_cache(maxsize=512)
def compile_condition(expression: str) -> Node:
    """Parse an expression, raising SkillConfigurationError when malformed."""
    return _Parser(expression).parse()


def normalize_boost_condition(condition: str, metric: str) -> str:
    """Expand the shorthand ``"< 40"`` form to ``"<metric> < 40"``."""
    m = _LEGACY_RE.match(condition)
    if m:
        return f"{metric} {m.group(1)} {m.group(2)}"
    return condition


def _resolve(operand: Operand, variables: Mapping[str, Any]) -> Optional[float]:
    if isinstance(operand, float):
        return operand
    value = variables.get(operand)
    if value is None or isinstance(value, bool):
        return None if value is None else float(value)
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _eval(node: Node, variables: Mapping[str, Any]) -> bool:
    kind = node[0]
    if kind == "or":
        return any(_eval(n, variables) for n in node[1])
    if kind == "and":
        return all(_eval(n, variables) for n in node[1])
    if kind == "truthy":
        return bool(variables.get(node[1]))
    _, op, left, right = node
    lval = _resolve(left, variables)
    rval = _resolve(right, variables)
    if lval is None or rval is None:
        return False
    return _OPS[op](lval, rval)


def evaluate_condition(expression: str, variables: Mapping[str, Any]) -> bool:
    return _eval(compile_condition(expression), variables)
