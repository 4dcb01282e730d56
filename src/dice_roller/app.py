"""Application facade: wires config, lexer, rollers, vault and storage together."""
from __future__ import annotations

import html
import logging
import re
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel, ValidationError

from dice_roller.engine.classifier import RollerKind, classify
from dice_roller.engine.errors import DiceError, EvaluationError
from dice_roller.engine.evaluator import Evaluator, format_number
from dice_roller.engine.lexer import Lexer
from dice_roller.engine.random_source import RandomSource, SystemRandomSource
from dice_roller.models.result import RollResult
from dice_roller.models.settings import Settings
from dice_roller.rollers import LOOKUP_ROLLERS, BasicRoller, StackRoller
from dice_roller.utils import format_position

logger = logging.getLogger(__name__)

_NODICE_RE = re.compile(r"\|\s*nodice\b", re.I)
_NOFORM_RE = re.compile(r"\|\s*noform\b", re.I)
_INLINE_CODE_RE = re.compile(r"`([^`\n]+)`")
_PREFIX_RE = re.compile(r"^\s*(dice-mod|dice\+|dice-|dice):\s*(.*?)\s*$", re.S)


def _load_config(config_path: str | Path | None = None) -> dict[str, Any]:
    """Load config.toml from the given path, or from the project root."""
    import tomllib

    if config_path is None:
        config_path = Path(__file__).parent.parent.parent / "config.toml"
    config_path = Path(config_path)
    if config_path.exists():
        with open(config_path, "rb") as f:
            return tomllib.load(f)
    logger.debug("No config at %s, using defaults", config_path)
    return {}


class InlineMode(str, Enum):
    ROLL = "dice"
    PERSIST = "dice+"
    NO_PERSIST = "dice-"
    REPLACE = "dice-mod"


class InlineRoll(BaseModel):
    mode: InlineMode
    notation: str


def parse_inline_code(code: str) -> InlineRoll | None:
    """Recognize ``dice:``, ``dice+:``, ``dice-:`` and ``dice-mod:`` inline code.

    Returns None for inline code that is not a roll.
    """
    match = _PREFIX_RE.match(code)
    if match is None or not match.group(2):
        return None
    return InlineRoll(mode=InlineMode(match.group(1)), notation=match.group(2))


class RollOutcome(BaseModel):
    """One entry of a batch roll: either a result or the error that stopped it."""

    notation: str
    kind: str | None = None
    text: str = ""
    result: dict[str, Any] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ScanEntry(BaseModel):
    line: int
    index: int
    mode: InlineMode
    outcome: RollOutcome
    restored: bool = False


class DiceApp:
    """Main entry point for rolling notation, with or without a vault and database."""

    def __init__(
        self,
        config_path: str | Path | None = None,
        settings: Settings | None = None,
        store=None,
        db=None,
    ) -> None:
        self.config = _load_config(config_path) if settings is None else {}
        self.settings = settings or Settings.from_config(self.config)

        # Lazy-initialized components
        self._lexer: Lexer | None = None
        self._evaluator: Evaluator | None = None
        self._store = store
        self._db = db
        self._results = None

    # -- Component initialization (lazy) --

    @property
    def lexer(self) -> Lexer:
        if self._lexer is None:
            self._lexer = Lexer(self.settings)
        return self._lexer

    @property
    def evaluator(self) -> Evaluator:
        if self._evaluator is None:
            self._evaluator = Evaluator(self.settings)
        return self._evaluator

    @property
    def store(self):
        if self._store is None:
            from dice_roller.content.vault import VaultStore

            self._store = VaultStore(self.settings.vault_path)
        return self._store

    @property
    def db(self):
        if self._db is None:
            from dice_roller.storage.database import Database

            self._db = Database(self.settings.db_path)
            self._db.initialize()
        return self._db

    @property
    def results(self):
        if self._results is None:
            from dice_roller.storage.repos import ResultRepo

            self._results = ResultRepo(self.db)
        return self._results

    # -- Rolling --

    def prepare(self, notation: str) -> tuple[str, bool, bool]:
        """Normalize raw notation.

        Decodes HTML entities, unescapes ``\\|``, strips the display flags and
        substitutes named formulas. Returns ``(notation, show_dice, show_formula)``.
        """
        text = html.unescape(notation).replace("\\|", "|").strip()
        show_dice = self.settings.show_dice
        show_formula = self.settings.show_formula
        if _NODICE_RE.search(text):
            show_dice = False
            text = _NODICE_RE.sub("", text)
        if _NOFORM_RE.search(text):
            show_formula = False
            text = _NOFORM_RE.sub("", text)
        text = text.strip()
        if text in self.settings.formulas:
            logger.debug("Formula %r -> %r", text, self.settings.formulas[text])
            text = self.settings.formulas[text].strip()
        return text, show_dice, show_formula

    def get_roller(self, notation: str) -> BasicRoller:
        """Build the roller that owns ``notation`` without rolling it."""
        text, show_dice, show_formula = self.prepare(notation)
        lexemes = self.lexer.tokenize(text)
        kind = classify(lexemes)
        logger.debug("Notation %r classified as %s", text, kind.value)
        if kind is RollerKind.DICE:
            return StackRoller(
                text, lexemes, self.settings, show_dice, show_formula, evaluator=self.evaluator
            )
        return LOOKUP_ROLLERS[kind](
            text, lexemes, self.store, self.settings, show_dice, show_formula
        )

    def roll(self, notation: str, random_source: RandomSource | None = None) -> BasicRoller:
        """Build and roll ``notation``; the result is on ``roller.result``."""
        roller = self.get_roller(notation)
        roller.roll(random_source or SystemRandomSource())
        return roller

    def roll_many(
        self, notations: Iterable[str], random_source: RandomSource | None = None
    ) -> list[RollOutcome]:
        """Roll each notation independently; one failure never stops the others."""
        random_source = random_source or SystemRandomSource()
        outcomes: list[RollOutcome] = []
        for notation in notations:
            try:
                roller = self.roll(notation, random_source)
            except DiceError as e:
                logger.warning("Roll %r failed: %s", notation, e)
                outcomes.append(RollOutcome(notation=notation, error=str(e)))
                continue
            outcomes.append(_outcome(roller))
        return outcomes

    def replay(self, notation: str, previous: RollResult | dict[str, Any]) -> RollResult:
        """Re-evaluate a dice notation from the draws recorded on a previous result."""
        roller = self.get_roller(notation)
        if not isinstance(roller, StackRoller):
            raise EvaluationError("Only dice expressions can be replayed", notation)
        if isinstance(previous, RollResult):
            previous = previous.model_dump(mode="json")
        roller.apply_result(previous)
        return roller.replay()

    # -- Persistence --

    def roll_persisted(
        self,
        notation: str,
        path: str,
        line: int,
        index: int,
        persist: bool | None = None,
        reroll: bool = False,
        random_source: RandomSource | None = None,
    ) -> tuple[BasicRoller, bool]:
        """Roll ``notation`` at a document position, restoring a saved result if one exists.

        Returns ``(roller, restored)``. ``persist`` overrides the configured
        ``persist_results`` default.
        """
        roller = self.get_roller(notation)
        roller.save = self.settings.persist_results if persist is None else persist
        if roller.save and not reroll:
            saved = self.results.get(path, line, index)
            if saved is not None and saved.get("type") == roller.kind.value:
                try:
                    roller.apply_result(saved)
                    return roller, True
                except (DiceError, ValidationError) as e:
                    logger.warning(
                        "Discarding stale result at %s: %s", format_position(path, line, index), e
                    )
        roller.roll(random_source or SystemRandomSource())
        if roller.save:
            self.results.save(path, line, index, roller.to_result())
            logger.info("Saved %r at %s", roller.notation, format_position(path, line, index))
        return roller, False

    def clear_results(self, path: str, line: int | None = None) -> int:
        if line is None:
            removed = self.results.clear_document(path)
        else:
            removed = self.results.clear_line(path, line)
        logger.info("Cleared %d saved result(s) from %s", removed, path)
        return removed

    def saved_results(self, path: str) -> dict[int, dict[int, dict]]:
        return self.results.for_document(path)

    # -- Documents --

    def scan_document(
        self,
        path: str | Path,
        reroll: bool = False,
        random_source: RandomSource | None = None,
    ) -> list[ScanEntry]:
        """Roll every inline ``dice:`` code in a markdown file.

        Lines are numbered from 0 and codes are indexed per line in order of
        appearance. ``dice+:`` always persists and ``dice-:`` never does.
        """
        path = Path(path)
        key = path.as_posix()
        random_source = random_source or SystemRandomSource()
        entries: list[ScanEntry] = []
        for line_no, line in enumerate(path.read_text(encoding="utf-8").splitlines()):
            index = 0
            for code in _INLINE_CODE_RE.findall(line):
                inline = parse_inline_code(code)
                if inline is None:
                    continue
                persist = {
                    InlineMode.PERSIST: True,
                    InlineMode.NO_PERSIST: False,
                }.get(inline.mode)
                try:
                    roller, restored = self.roll_persisted(
                        inline.notation, key, line_no, index,
                        persist=persist, reroll=reroll, random_source=random_source,
                    )
                    outcome = _outcome(roller)
                except DiceError as e:
                    logger.warning("Inline roll %r failed: %s", inline.notation, e)
                    outcome = RollOutcome(notation=inline.notation, error=str(e))
                    restored = False
                entries.append(ScanEntry(
                    line=line_no, index=index, mode=inline.mode,
                    outcome=outcome, restored=restored,
                ))
                index += 1
        return entries

    def render_document(self, path: str | Path, entries: list[ScanEntry]) -> str:
        """Return the document with each ``dice-mod:`` code replaced by its result."""
        replacements = {
            (e.line, e.index): _replacement(e.outcome)
            for e in entries
            if e.mode is InlineMode.REPLACE and e.outcome.ok
        }
        lines = Path(path).read_text(encoding="utf-8").splitlines()
        for line_no, line in enumerate(lines):
            index = -1

            def substitute(match: re.Match) -> str:
                nonlocal index
                if parse_inline_code(match.group(1)) is None:
                    return match.group(0)
                index += 1
                return replacements.get((line_no, index), match.group(0))

            lines[line_no] = _INLINE_CODE_RE.sub(substitute, line)
        return "\n".join(lines)


def _outcome(roller: BasicRoller) -> RollOutcome:
    return RollOutcome(
        notation=roller.notation,
        kind=roller.kind.value,
        text=roller.text,
        result=roller.to_result(),
    )


def _replacement(outcome: RollOutcome) -> str:
    result = outcome.result or {}
    if outcome.kind == RollerKind.DICE.value:
        return format_number(result["total"])
    return result.get("display", outcome.text)
