"""Decide which roller owns a lexeme stream."""
from __future__ import annotations

from enum import Enum

from dice_roller.models.lexeme import Lexeme, LexemeKind


class RollerKind(str, Enum):
    DICE = "dice"
    TABLE = "table"
    SECTION = "section"
    TAG = "tag"
    LINK = "link"
    LINE = "line"


# Highest priority first; anything else is a plain dice expression.
_PRIORITY: tuple[tuple[LexemeKind, RollerKind], ...] = (
    (LexemeKind.TABLE, RollerKind.TABLE),
    (LexemeKind.SECTION, RollerKind.SECTION),
    (LexemeKind.TAG, RollerKind.TAG),
    (LexemeKind.LINK, RollerKind.LINK),
    (LexemeKind.LINE, RollerKind.LINE),
)


def classify(lexemes: list[Lexeme]) -> RollerKind:
    present = {lx.type for lx in lexemes}
    for lexeme_kind, roller_kind in _PRIORITY:
        if lexeme_kind in present:
            return roller_kind
    return RollerKind.DICE
