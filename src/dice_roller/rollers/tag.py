from __future__ import annotations

import logging

from dice_roller.content.vault import Entry
from dice_roller.engine.classifier import RollerKind
from dice_roller.engine.errors import EvaluationError
from dice_roller.engine.lexer import TAG_RE
from dice_roller.engine.random_source import RandomSource
from dice_roller.models.lexeme import LexemeKind
from dice_roller.rollers.base import LookupRoller
from dice_roller.rollers.section import section_types

logger = logging.getLogger(__name__)


class TagRoller(LookupRoller):
    """Rolls a section from notes carrying ``#tag``.

    With ``return_all_tags`` every tagged note contributes; otherwise one note
    is chosen first.
    """

    kind = RollerKind.TAG
    pattern = TAG_RE
    lexeme_kinds = (LexemeKind.TAG,)

    def lookup(self, random_source: RandomSource) -> list[str]:
        tag = self.match.group("tag")
        notes = self.store.resolve_tag(tag)
        if not notes:
            raise EvaluationError(f"No notes tagged #{tag}", self.notation)
        if not self.settings.return_all_tags:
            notes = [notes[random_source.uniform_int(0, len(notes) - 1)]]
        types = section_types(self.match.group("types"))
        results: list[str] = []
        for note in notes:
            entries = self.store.resolve_section(note, types)
            if not entries:
                logger.warning("Tagged note %r has no matching sections", note)
                continue
            results.extend(f"[[{note}]]: {text}" for text in self._draw(entries, random_source))
        if not results:
            raise EvaluationError(f"Notes tagged #{tag} have no matching sections", self.notation)
        return results


class LinkRoller(LookupRoller):
    """Returns ``[[links]]`` to randomly chosen notes carrying ``#tag``."""

    kind = RollerKind.LINK
    pattern = TAG_RE
    lexeme_kinds = (LexemeKind.LINK,)

    def lookup(self, random_source: RandomSource) -> list[str]:
        tag = self.match.group("tag")
        notes = self.store.resolve_tag(tag)
        if not notes:
            raise EvaluationError(f"No notes tagged #{tag}", self.notation)
        return [f"[[{name}]]" for name in self._draw([Entry(n) for n in notes], random_source)]
