"""Expression tree produced by the parser and walked by the evaluator."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from dice_roller.models.lexeme import Conditional


class ModifierKind(str, Enum):
    REROLL = "reroll"
    EXPLODE = "explode"
    EXPLODE_COMBINE = "explode-combine"
    KEEP_HIGH = "keep-high"
    KEEP_LOW = "keep-low"
    DROP_HIGH = "drop-high"
    DROP_LOW = "drop-low"
    STUNT = "stunt"


@dataclass(frozen=True)
class Modifier:
    kind: ModifierKind
    amount: int = 1
    conditionals: tuple[Conditional, ...] = ()
    original: str = ""


@dataclass(frozen=True)
class Literal:
    value: int | float
    original: str = ""


@dataclass(frozen=True)
class DiceGroup:
    count: int
    faces: int
    modifiers: tuple[Modifier, ...] = ()
    conditionals: tuple[Conditional, ...] = ()
    original: str = ""

    @property
    def notation(self) -> str:
        return self.original + "".join(m.original for m in self.modifiers)


@dataclass(frozen=True)
class StuntDie:
    count: int = 1
    original: str = "1dS"


@dataclass(frozen=True)
class BinaryOp:
    op: str
    left: Expression
    right: Expression = field(repr=True)


Expression = Union[Literal, DiceGroup, BinaryOp, StuntDie]
