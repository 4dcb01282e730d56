"""Precedence-climbing parser for dice expressions.

Parsing runs in two passes. The first folds every modifier lexeme into the
dice group directly before it, so modifiers never take part in operator
precedence. The second climbs precedence over the remaining operands and
``math`` lexemes, honouring parentheses.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from enum import Enum
from typing import NamedTuple, Union

from dice_roller.engine.errors import ParseError
from dice_roller.engine.expression import (
    BinaryOp,
    DiceGroup,
    Expression,
    Literal,
    Modifier,
    ModifierKind,
    StuntDie,
)
from dice_roller.models.lexeme import Lexeme, LexemeKind

logger = logging.getLogger(__name__)


class Associativity(str, Enum):
    LEFT = "left"
    RIGHT = "right"


class OperatorInfo(NamedTuple):
    precedence: int
    associativity: Associativity


DEFAULT_PRECEDENCE: dict[str, OperatorInfo] = {
    "+": OperatorInfo(1, Associativity.LEFT),
    "-": OperatorInfo(1, Associativity.LEFT),
    "*": OperatorInfo(2, Associativity.LEFT),
    "/": OperatorInfo(2, Associativity.LEFT),
    "^": OperatorInfo(3, Associativity.RIGHT),
}

_MODIFIER_KINDS: dict[LexemeKind, ModifierKind] = {
    LexemeKind.REROLL: ModifierKind.REROLL,
    LexemeKind.EXPLODE: ModifierKind.EXPLODE,
    LexemeKind.EXPLODE_COMBINE: ModifierKind.EXPLODE_COMBINE,
    LexemeKind.KEEP_HIGH: ModifierKind.KEEP_HIGH,
    LexemeKind.KEEP_LOW: ModifierKind.KEEP_LOW,
    LexemeKind.DROP_HIGH: ModifierKind.DROP_HIGH,
    LexemeKind.DROP_LOW: ModifierKind.DROP_LOW,
    LexemeKind.STUNT: ModifierKind.STUNT,
}

_DICE_DATA = re.compile(r"^(\d+)d(\d+)$")
_NUMBER_DATA = re.compile(r"^-?\d+(?:\.\d+)?$")


@dataclass(frozen=True)
class _Operator:
    op: str


_Item = Union[Expression, _Operator]


def _operand(lexeme: Lexeme, notation: str) -> Expression:
    dice = _DICE_DATA.match(lexeme.data)
    if dice:
        count, faces = int(dice.group(1)), int(dice.group(2))
        if faces < 1:
            raise ParseError(f"Dice need at least one face: {lexeme.original!r}", notation)
        return DiceGroup(
            count=count,
            faces=faces,
            conditionals=tuple(lexeme.conditionals or ()),
            original=lexeme.original,
        )
    if _NUMBER_DATA.match(lexeme.data):
        value = float(lexeme.data) if "." in lexeme.data else int(lexeme.data)
        return Literal(value=value, original=lexeme.original)
    raise ParseError(f"Cannot read operand {lexeme.original!r}", notation)


def _attach_modifiers(lexemes: list[Lexeme], notation: str) -> list[_Item]:
    items: list[_Item] = []
    for lexeme in lexemes:
        if lexeme.type is LexemeKind.DICE:
            items.append(_operand(lexeme, notation))
        elif lexeme.type is LexemeKind.MATH:
            items.append(_Operator(lexeme.data))
        elif lexeme.type in _MODIFIER_KINDS:
            previous = items[-1] if items else None
            if isinstance(previous, DiceGroup):
                modifier = Modifier(
                    kind=_MODIFIER_KINDS[lexeme.type],
                    amount=int(lexeme.data),
                    conditionals=tuple(lexeme.conditionals or ()),
                    original=lexeme.original,
                )
                items[-1] = replace(previous, modifiers=previous.modifiers + (modifier,))
            elif lexeme.type is LexemeKind.STUNT:
                items.append(StuntDie(count=int(lexeme.data), original=lexeme.original))
            else:
                raise ParseError(
                    f"Modifier {lexeme.original!r} must follow a dice group", notation
                )
        else:
            raise ParseError(
                f"{lexeme.type.value.capitalize()} reference {lexeme.original!r} "
                "cannot be used inside a dice expression",
                notation,
            )
    return items


class _Climber:
    def __init__(self, items: list[_Item], table: dict[str, OperatorInfo], notation: str) -> None:
        self.items = items
        self.table = table
        self.notation = notation
        self.pos = 0

    def _peek(self) -> _Item | None:
        return self.items[self.pos] if self.pos < len(self.items) else None

    def _next(self) -> _Item | None:
        item = self._peek()
        self.pos += 1
        return item

    def parse(self) -> Expression:
        expr = self._expression(0)
        leftover = self._peek()
        if leftover is not None:
            if isinstance(leftover, _Operator) and leftover.op == ")":
                raise ParseError("Unbalanced ')'", self.notation)
            raise ParseError(f"Unexpected {leftover!r}", self.notation)
        return expr

    def _primary(self) -> Expression:
        item = self._next()
        if item is None:
            raise ParseError("Expression ends where an operand was expected", self.notation)
        if isinstance(item, _Operator):
            if item.op == "(":
                inner = self._expression(0)
                closing = self._next()
                if not (isinstance(closing, _Operator) and closing.op == ")"):
                    raise ParseError("Unbalanced '('", self.notation)
                return inner
            raise ParseError(f"Operator {item.op!r} is missing its left operand", self.notation)
        return item

    def _expression(self, min_precedence: int) -> Expression:
        left = self._primary()
        while True:
            item = self._peek()
            if item is None:
                break
            if not isinstance(item, _Operator) or item.op == "(":
                raise ParseError("Missing operator between operands", self.notation)
            if item.op == ")":
                break
            info = self.table.get(item.op)
            if info is None:
                raise ParseError(f"Unknown operator {item.op!r}", self.notation)
            if info.precedence < min_precedence:
                break
            self._next()
            if info.associativity is Associativity.LEFT:
                right = self._expression(info.precedence + 1)
            else:
                right = self._expression(info.precedence)
            left = BinaryOp(op=item.op, left=left, right=right)
        return left


def parse(
    lexemes: list[Lexeme],
    precedence: dict[str, OperatorInfo] | None = None,
    notation: str = "",
) -> Expression:
    """Build an expression tree from lexemes.

    Raises:
        ParseError: On empty input, unmatched operators or parentheses, or a
            modifier that does not follow a dice group.
    """
    notation = notation or "".join(lx.original for lx in lexemes)
    if not lexemes:
        raise ParseError("Empty dice expression", notation)
    items = _attach_modifiers(lexemes, notation)
    tree = _Climber(items, precedence or DEFAULT_PRECEDENCE, notation).parse()
    logger.debug("Parsed %r into %r", notation, tree)
    return tree
