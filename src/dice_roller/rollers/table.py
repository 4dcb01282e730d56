from __future__ import annotations

from dice_roller.engine.classifier import RollerKind
from dice_roller.engine.errors import EvaluationError
from dice_roller.engine.lexer import TABLE_RE
from dice_roller.engine.random_source import RandomSource
from dice_roller.models.lexeme import LexemeKind
from dice_roller.rollers.base import LookupRoller


class TableRoller(LookupRoller):
    """Draws rows from a markdown table addressed as ``[[note#^block]]|column``."""

    kind = RollerKind.TABLE
    pattern = TABLE_RE
    lexeme_kinds = (LexemeKind.TABLE,)

    def lookup(self, random_source: RandomSource) -> list[str]:
        note = self.match.group("note").strip()
        block = self.match.group("block").strip()
        column = (self.match.group("modifier") or "").strip() or None
        rows = self.store.resolve_table(note, block, column)
        if rows is None:
            raise EvaluationError(f"Table [[{note}#^{block}]] not found", self.notation)
        if not rows:
            raise EvaluationError(f"Table [[{note}#^{block}]] has no rows", self.notation)
        return self._draw(rows, random_source)
