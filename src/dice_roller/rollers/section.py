from __future__ import annotations

from dice_roller.engine.classifier import RollerKind
from dice_roller.engine.errors import EvaluationError
from dice_roller.engine.lexer import SECTION_RE
from dice_roller.engine.random_source import RandomSource
from dice_roller.models.lexeme import LexemeKind
from dice_roller.rollers.base import LookupRoller


def section_types(raw: str | None) -> list[str]:
    return [t.strip().lower() for t in (raw or "").split(",") if t.strip()]


class SectionRoller(LookupRoller):
    """Draws markdown blocks from ``[[note]]``, optionally filtered by ``|type,type``."""

    kind = RollerKind.SECTION
    pattern = SECTION_RE
    lexeme_kinds = (LexemeKind.SECTION,)

    def lookup(self, random_source: RandomSource) -> list[str]:
        note = self.match.group("note").strip()
        entries = self.store.resolve_section(note, section_types(self.match.group("types")))
        if entries is None:
            raise EvaluationError(f"Note [[{note}]] not found", self.notation)
        if not entries:
            raise EvaluationError(f"Note [[{note}]] has no matching sections", self.notation)
        return self._draw(entries, random_source)


class LineRoller(LookupRoller):
    """Draws single non-empty lines from ``[[note]]|line``."""

    kind = RollerKind.LINE
    pattern = SECTION_RE
    lexeme_kinds = (LexemeKind.LINE,)

    def lookup(self, random_source: RandomSource) -> list[str]:
        note = self.match.group("note").strip()
        entries = self.store.resolve_lines(note)
        if entries is None:
            raise EvaluationError(f"Note [[{note}]] not found", self.notation)
        if not entries:
            raise EvaluationError(f"Note [[{note}]] is empty", self.notation)
        return self._draw(entries, random_source)
