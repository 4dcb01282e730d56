"""Base interface for rollers."""
from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Any, ClassVar

from dice_roller.content.vault import DocumentStore, Entry
from dice_roller.engine.classifier import RollerKind
from dice_roller.engine.errors import EvaluationError, ParseError
from dice_roller.engine.random_source import (
    RandomSource,
    RecordingRandomSource,
    SystemRandomSource,
)
from dice_roller.models.lexeme import Lexeme, LexemeKind
from dice_roller.models.result import LookupResult, RollResult
from dice_roller.models.settings import OverflowPolicy, Settings

logger = logging.getLogger(__name__)


def weighted_index(entries: list[Entry], random_source: RandomSource) -> int:
    """Pick an index with one uniform draw over the summed weights."""
    total = sum(max(0, e.weight) for e in entries)
    if total <= 0:
        return random_source.uniform_int(0, len(entries) - 1)
    remaining = random_source.uniform_int(0, total - 1)
    for index, entry in enumerate(entries):
        remaining -= max(0, entry.weight)
        if remaining < 0:
            return index
    return len(entries) - 1


def draw_entries(
    entries: list[Entry],
    count: int,
    random_source: RandomSource,
    policy: OverflowPolicy = OverflowPolicy.REPEAT,
) -> list[Entry]:
    """Draw ``count`` entries without replacement.

    Once every entry has been drawn, ``REPEAT`` starts over with the full set
    and ``TRUNCATE`` stops early.
    """
    if not entries:
        return []
    if count > len(entries):
        logger.warning(
            "Asked for %d of %d entries, applying %s policy", count, len(entries), policy.value
        )
        if policy is OverflowPolicy.TRUNCATE:
            count = len(entries)
    pool = list(entries)
    picked: list[Entry] = []
    for _ in range(count):
        if not pool:
            pool = list(entries)
        picked.append(pool.pop(weighted_index(pool, random_source)))
    return picked


class BasicRoller(ABC):
    kind: ClassVar[RollerKind]

    def __init__(
        self,
        notation: str,
        lexemes: list[Lexeme],
        settings: Settings | None = None,
        show_dice: bool = True,
        show_formula: bool = True,
    ) -> None:
        self.notation = notation
        self.lexemes = lexemes
        self.settings = settings or Settings()
        self.show_dice = show_dice
        self.show_formula = show_formula
        self.save = False
        self.result: RollResult | LookupResult | None = None

    @abstractmethod
    def roll(self, random_source: RandomSource | None = None) -> RollResult | LookupResult: ...

    @abstractmethod
    def apply_result(self, data: dict[str, Any]) -> RollResult | LookupResult:
        """Restore a serialized result without rolling again."""

    @property
    @abstractmethod
    def text(self) -> str: ...

    def to_result(self) -> dict[str, Any]:
        if self.result is None:
            raise EvaluationError("Nothing has been rolled yet", self.notation)
        return {"type": self.kind.value, **self.result.model_dump(mode="json")}


class LookupRoller(BasicRoller):
    """Shared plumbing for rollers that draw from a document store."""

    pattern: ClassVar[re.Pattern]
    lexeme_kinds: ClassVar[tuple[LexemeKind, ...]]

    def __init__(
        self,
        notation: str,
        lexemes: list[Lexeme],
        store: DocumentStore,
        settings: Settings | None = None,
        show_dice: bool = True,
        show_formula: bool = True,
    ) -> None:
        super().__init__(notation, lexemes, settings, show_dice, show_formula)
        self.store = store
        lexeme = next((lx for lx in lexemes if lx.type in self.lexeme_kinds), None)
        if lexeme is None:
            raise ParseError(f"No {self.kind.value} reference in {notation!r}", notation)
        match = self.pattern.match(lexeme.data)
        if match is None:
            raise ParseError(f"Malformed {self.kind.value} reference {lexeme.data!r}", notation)
        self.lexeme = lexeme
        self.match = match
        self.count = int(match.group("count") or 1)

    @abstractmethod
    def lookup(self, random_source: RandomSource) -> list[str]: ...

    def roll(self, random_source: RandomSource | None = None) -> LookupResult:
        recorder = RecordingRandomSource(random_source or SystemRandomSource())
        results = self.lookup(recorder)
        self.result = LookupResult(
            notation=self.notation,
            kind=self.kind.value,
            results=results,
            display="\n".join(results),
            draws=recorder.draws,
        )
        logger.debug("%s roll %r -> %s", self.kind.value, self.notation, results)
        return self.result

    def apply_result(self, data: dict[str, Any]) -> LookupResult:
        result = LookupResult.model_validate(data)
        if result.notation != self.notation:
            raise EvaluationError(
                f"Stored result belongs to {result.notation!r}", self.notation
            )
        self.result = result
        return result

    @property
    def text(self) -> str:
        if self.result is None:
            return self.notation
        return self.result.display

    def _draw(self, entries: list[Entry], random_source: RandomSource) -> list[str]:
        picked = draw_entries(entries, self.count, random_source, self.settings.overflow_policy)
        return [entry.text for entry in picked]
