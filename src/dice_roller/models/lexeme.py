from __future__ import annotations

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class LexemeKind(str, Enum):
    DICE = "dice"
    MATH = "math"
    STUNT = "stunt"
    EXPLODE = "explode"
    EXPLODE_COMBINE = "explode-combine"
    REROLL = "reroll"
    KEEP_HIGH = "keep-high"
    KEEP_LOW = "keep-low"
    DROP_HIGH = "drop-high"
    DROP_LOW = "drop-low"
    TABLE = "table"
    SECTION = "section"
    LINE = "line"
    TAG = "tag"
    LINK = "link"


MODIFIER_KINDS = frozenset({
    LexemeKind.STUNT,
    LexemeKind.EXPLODE,
    LexemeKind.EXPLODE_COMBINE,
    LexemeKind.REROLL,
    LexemeKind.KEEP_HIGH,
    LexemeKind.KEEP_LOW,
    LexemeKind.DROP_HIGH,
    LexemeKind.DROP_LOW,
})


class ComparisonOp(str, Enum):
    EQ = "="
    NE = "!="
    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="

    @classmethod
    def normalize(cls, raw: str) -> ComparisonOp:
        """Map a source spelling (``=!``, ``!=``, ``==`` ...) to its canonical operator."""
        if raw in ("!=", "=!"):
            return cls.NE
        if raw == "==":
            return cls.EQ
        return cls(raw)


class ConditionalPolicy(str, Enum):
    """How several conditionals attached to one modifier combine."""

    ALL = "all"
    ANY = "any"


# One (operator, integer) pair, repeatable after a modifier or dice group.
CONDITIONAL_RE = re.compile(r"(!=|=!|==|>=|<=|=|>|<)(-?\d+)")


class Conditional(BaseModel):
    model_config = ConfigDict(frozen=True)

    operator: ComparisonOp
    comparer: int

    def matches(self, value: int | float) -> bool:
        op = self.operator
        if op is ComparisonOp.EQ:
            return value == self.comparer
        if op is ComparisonOp.NE:
            return value != self.comparer
        if op is ComparisonOp.GT:
            return value > self.comparer
        if op is ComparisonOp.GE:
            return value >= self.comparer
        if op is ComparisonOp.LT:
            return value < self.comparer
        return value <= self.comparer

    def __str__(self) -> str:
        return f"{self.operator.value}{self.comparer}"


def parse_conditionals(text: str) -> list[Conditional]:
    return [
        Conditional(operator=ComparisonOp.normalize(op), comparer=int(num))
        for op, num in CONDITIONAL_RE.findall(text)
    ]


def matches_all(conditionals: list[Conditional], value: int | float) -> bool:
    return all(c.matches(value) for c in conditionals)


def matches_any(conditionals: list[Conditional], value: int | float) -> bool:
    return any(c.matches(value) for c in conditionals)


def check_conditionals(
    conditionals: list[Conditional],
    value: int | float,
    policy: ConditionalPolicy = ConditionalPolicy.ALL,
) -> bool:
    """Evaluate a conditional list under the given combination policy."""
    if policy is ConditionalPolicy.ANY:
        return matches_any(conditionals, value)
    return matches_all(conditionals, value)


class Lexeme(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: LexemeKind
    data: str
    original: str
    conditionals: Optional[list[Conditional]] = Field(default=None)

    @property
    def is_modifier(self) -> bool:
        return self.type in MODIFIER_KINDS
