"""
FlowLens Filter Language
=========================

Compiles the small boolean filter language used by ``filter``,
``flows where`` and ``graph`` into a predicate tree over :class:`Flow`.

Grammar (keywords ``and``, ``or``, ``in`` are case-insensitive)::

    expr   := term (("and" | "or") term)*
    term   := "(" expr ")" | key "=" value | key "in" "(" value ("," value)* ")"
    key    := proto | src | dst | sport | dport
    value  := token, optionally wrapped in double quotes

``and`` and ``or`` share one precedence level and fold strictly left to
right, so ``a or b and c`` means ``(a or b) and c``.

The parser never rejects input. Missing terms match everything, unknown
keys compared with ``=`` match everything, unknown keys (``proto``
included) tested with ``in`` match nothing, and parsing stops quietly at
the first token that cannot continue the expression. Only parentheses are
split out of the text before tokenising on whitespace, so ``dport=445``
written without spaces is a single token and the term degrades to
match-all.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from functools import cached_property
from typing import Iterable, Optional, Union

from flowlens.core.models import Flow

_PORT_KEYS = ("sport", "dport")


def _to_int(value: str, default: int = 0) -> int:
    try:
        return int(value)
    except ValueError:
        return default


def _unquote(token: Optional[str]) -> str:
    """Drop one leading and one trailing double quote."""
    if token is None:
        return ""
    if token.startswith('"'):
        token = token[1:]
    if token.endswith('"'):
        token = token[:-1]
    return token


def _port_of(flow: Flow, key: str) -> int:
    return flow.src_port if key == "sport" else flow.dst_port


# ---------------------------------------------------------------------------
#  Predicate tree
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MatchAll:
    """Always true; the compiled form of an empty filter."""

    def matches(self, flow: Flow) -> bool:
        return True


@dataclass(frozen=True)
class Compare:
    """``key = value``."""

    key: str
    value: str

    @cached_property
    def _int_value(self) -> int:
        return _to_int(self.value)

    def matches(self, flow: Flow) -> bool:
        key = self.key.lower()
        if key == "proto":
            wanted = self.value.lower()
            return (
                self.value == str(flow.protocol)
                or (wanted == "tcp" and flow.is_tcp)
                or (wanted == "udp" and flow.is_udp)
            )
        if key == "src":
            return flow.src_ip == self.value
        if key == "dst":
            return flow.dst_ip == self.value
        if key in _PORT_KEYS:
            return _port_of(flow, key) == self._int_value
        return True


@dataclass(frozen=True)
class Membership:
    """``key in (v1, v2, ...)``; only src, dst, sport and dport are supported."""

    key: str
    values: tuple[str, ...]

    @cached_property
    def _int_values(self) -> frozenset[int]:
        return frozenset(_to_int(v) for v in self.values)

    def matches(self, flow: Flow) -> bool:
        key = self.key.lower()
        if key == "src":
            return flow.src_ip in self.values
        if key == "dst":
            return flow.dst_ip in self.values
        if key in _PORT_KEYS:
            return _port_of(flow, key) in self._int_values
        return False


@dataclass(frozen=True)
class Conjunction:
    left: "Predicate"
    right: "Predicate"

    def matches(self, flow: Flow) -> bool:
        return self.left.matches(flow) and self.right.matches(flow)


@dataclass(frozen=True)
class Disjunction:
    left: "Predicate"
    right: "Predicate"

    def matches(self, flow: Flow) -> bool:
        return self.left.matches(flow) or self.right.matches(flow)


Predicate = Union[MatchAll, Compare, Membership, Conjunction, Disjunction]

MATCH_ALL = MatchAll()


def both(left: Predicate, right: Predicate) -> Predicate:
    """Conjunction of two predicates, skipping match-all operands."""
    if isinstance(left, MatchAll):
        return right
    if isinstance(right, MatchAll):
        return left
    return Conjunction(left, right)


def select(flows: Iterable[Flow], predicate: Predicate) -> list[Flow]:
    """Flows matching *predicate*, in their original order."""
    if isinstance(predicate, MatchAll):
        return list(flows)
    return [f for f in flows if predicate.matches(f)]


# ---------------------------------------------------------------------------
#  Tokenizer and parser
# ---------------------------------------------------------------------------


def tokenize(expr: str) -> list[str]:
    """Split *expr* on whitespace after isolating parentheses."""
    return expr.replace("(", " ( ").replace(")", " ) ").split()


def compile_filter(expr: Optional[str]) -> Predicate:
    """Compile a filter expression; blank or ``None`` yields match-all."""
    if expr is None or not expr.strip():
        return MATCH_ALL
    return _parse_expr(deque(tokenize(expr)))


def _parse_expr(tokens: deque[str]) -> Predicate:
    acc = _parse_term(tokens)
    while tokens:
        op = tokens[0].lower()
        if op not in ("and", "or"):
            break
        tokens.popleft()
        rhs = _parse_term(tokens)
        acc = Conjunction(acc, rhs) if op == "and" else Disjunction(acc, rhs)
    return acc


def _parse_term(tokens: deque[str]) -> Predicate:
    if not tokens:
        return MATCH_ALL

    head = tokens.popleft()
    if head == "(":
        inner = _parse_expr(tokens)
        # whatever stands where ")" belongs is consumed as the close
        if tokens:
            tokens.popleft()
        return inner

    if not tokens:
        return MATCH_ALL
    op = tokens.popleft()

    if op == "=":
        return Compare(head, _unquote(tokens.popleft() if tokens else None))

    if op.lower() == "in":
        if tokens:
            tokens.popleft()  # "("
        values: list[str] = []
        while tokens:
            token = tokens.popleft()
            if token == ")":
                break
            values.extend(_unquote(part) for part in token.split(",") if part)
        return Membership(head, tuple(values))

    return MATCH_ALL
