"""Achievement criteria: a tiny boolean language over aggregate counters.

Text form::

    totalAttempts >= 10 AND accuracy >= 80
    (currentStreakDays >= 7 OR bestStreakDays >= 14) AND totalCorrect > 100

- Fields: ``totalAttempts``, ``totalCorrect``, ``totalPracticeSeconds``,
  ``currentStreakDays``, ``bestStreakDays`` and the derived ``accuracy``
  (whole percent).
- Operators: ``>=``, ``>``, ``==``, ``<=``, ``<`` against a numeric literal.
- ``AND`` binds tighter than ``OR``; keywords are case-insensitive;
  parentheses group.

Stored achievements may also carry the older JSON threshold form, e.g.
``{"totalAttempts": 10, "minAccuracy": 80, "currentStreak": 3}``, where every
key is a ``>=`` requirement and all must hold.

Criteria are compiled once into a tree of ``Comparison`` / ``BoolOp`` nodes;
compile errors raise ``InvalidCriteria``, evaluation never fails.
"""

from __future__ import annotations

import json
import operator
import re
from dataclasses import dataclass
from typing import Callable, NoReturn, Union

from practice_progress.exceptions import InvalidCriteria
from practice_progress.schemas.attempt import StudentAggregate

Number = Union[int, float]

FIELDS: dict[str, Callable[[StudentAggregate], int]] = {
    "totalAttempts": lambda a: a.total_attempts,
    "totalCorrect": lambda a: a.total_correct,
    "totalPracticeSeconds": lambda a: a.total_practice_seconds,
    "currentStreakDays": lambda a: a.current_streak_days,
    "bestStreakDays": lambda a: a.best_streak_days,
    "accuracy": lambda a: a.accuracy,
}

OPERATORS: dict[str, Callable[[Number, Number], bool]] = {
    ">=": operator.ge,
    ">": operator.gt,
    "==": operator.eq,
    "<=": operator.le,
    "<": operator.lt,
}

# JSON threshold keys → field they put a lower bound on
_LEGACY_KEYS = {
    "totalAttempts": "totalAttempts",
    "totalCorrect": "totalCorrect",
    "totalPracticeSeconds": "totalPracticeSeconds",
    "currentStreak": "currentStreakDays",
    "bestStreak": "bestStreakDays",
    "minAccuracy": "accuracy",
}


# ── Tree ──────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Comparison:
    field: str
    op: str
    value: Number

    def __str__(self) -> str:
        return f"{self.field} {self.op} {self.value}"


@dataclass(frozen=True)
class BoolOp:
    op: str  # "AND" | "OR"
    operands: tuple[Criteria, ...]

    def __str__(self) -> str:
        parts = (f"({o})" if isinstance(o, BoolOp) else str(o) for o in self.operands)
        return f" {self.op} ".join(parts)


Criteria = Union[Comparison, BoolOp]


def evaluate(criteria: Criteria, aggregate: StudentAggregate) -> bool:
    """Walk the tree against ``aggregate``. Pure; no clock, no I/O."""
    if isinstance(criteria, Comparison):
        actual = FIELDS[criteria.field](aggregate)
        return OPERATORS[criteria.op](actual, criteria.value)
    if criteria.op == "AND":
        return all(evaluate(o, aggregate) for o in criteria.operands)
    return any(evaluate(o, aggregate) for o in criteria.operands)


# ── Compilation ───────────────────────────────────────────────────────────────


def compile_criteria(raw: str) -> Criteria:
    """Parse stored criteria (expression text or JSON thresholds)."""
    if raw is None or not str(raw).strip():
        raise InvalidCriteria("criteria is empty", expression=raw)
    text = str(raw).strip()
    if text.startswith("{"):
        return _compile_thresholds(text)
    return _Parser(text).parse()


def _compile_thresholds(text: str) -> Criteria:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidCriteria(f"criteria JSON is malformed: {e.msg}", expression=text) from e

    if not isinstance(data, dict) or not data:
        raise InvalidCriteria("criteria JSON must be a non-empty object", expression=text)

    comparisons: list[Criteria] = []
    for key, value in data.items():
        field = _LEGACY_KEYS.get(key)
        if field is None:
            raise InvalidCriteria(f"unknown criteria field '{key}'", expression=text)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise InvalidCriteria(f"threshold for '{key}' must be a number", expression=text)
        comparisons.append(Comparison(field, ">=", value))

    if len(comparisons) == 1:
        return comparisons[0]
    return BoolOp("AND", tuple(comparisons))


_TOKEN_RE = re.compile(
    r"\s*(?:(?P<number>-?\d+(?:\.\d+)?)"
    r"|(?P<name>[A-Za-z_][A-Za-z0-9_]*)"
    r"|(?P<op>>=|<=|==|>|<)"
    r"|(?P<paren>[()]))"
)


def _tokenise(text: str) -> list[tuple[str, str]]:
    tokens: list[tuple[str, str]] = []
    pos = 0
    while pos < len(text):
        if text[pos:].strip() == "":
            break
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            bad = text[pos:].lstrip()[:1]
            raise InvalidCriteria(f"unexpected character '{bad}'", expression=text)
        kind = match.lastgroup or ""
        value = match.group(kind)
        if kind == "name" and value.upper() in ("AND", "OR"):
            kind, value = "keyword", value.upper()
        tokens.append((kind, value))
        pos = match.end()
    return tokens


class _Parser:
    """Recursive descent: or_expr := and_expr (OR and_expr)*; and_expr := atom (AND atom)*."""

    def __init__(self, text: str) -> None:
        self._text = text
        self._tokens = _tokenise(text)
        self._pos = 0

    def parse(self) -> Criteria:
        node = self._or_expr()
        if self._pos != len(self._tokens):
            self._fail(f"unexpected '{self._tokens[self._pos][1]}'")
        return node

    def _peek(self) -> tuple[str, str] | None:
        return self._tokens[self._pos] if self._pos < len(self._tokens) else None

    def _next(self, expected: str) -> str:
        token = self._peek()
        if token is None:
            self._fail(f"expected {expected}, got end of expression")
        if token[0] != expected:
            self._fail(f"expected {expected}, got '{token[1]}'")
        self._pos += 1
        return token[1]

    def _or_expr(self) -> Criteria:
        return self._combine("OR", self._and_expr)

    def _and_expr(self) -> Criteria:
        return self._combine("AND", self._atom)

    def _combine(self, keyword: str, operand: Callable[[], Criteria]) -> Criteria:
        operands = [operand()]
        while self._peek() == ("keyword", keyword):
            self._pos += 1
            operands.append(operand())
        if len(operands) == 1:
            return operands[0]
        return BoolOp(keyword, tuple(operands))

    def _atom(self) -> Criteria:
        if self._peek() == ("paren", "("):
            self._pos += 1
            node = self._or_expr()
            if self._peek() != ("paren", ")"):
                self._fail("missing ')'")
            self._pos += 1
            return node
        return self._comparison()

    def _comparison(self) -> Comparison:
        field = self._next("name")
        if field not in FIELDS:
            self._fail(f"unknown criteria field '{field}'")
        op = self._next("op")
        literal = self._next("number")
        value: Number = float(literal) if "." in literal else int(literal)
        return Comparison(field, op, value)

    def _fail(self, message: str) -> NoReturn:
        raise InvalidCriteria(message, expression=self._text)
