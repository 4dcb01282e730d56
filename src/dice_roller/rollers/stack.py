"""Roller for plain dice expressions."""
from __future__ import annotations

from typing import Any

from dice_roller.engine.classifier import RollerKind
from dice_roller.engine.errors import EvaluationError
from dice_roller.engine.evaluator import Evaluator, format_number
from dice_roller.engine.parser import parse
from dice_roller.engine.random_source import RandomSource, SystemRandomSource
from dice_roller.models.lexeme import Lexeme
from dice_roller.models.result import RollResult
from dice_roller.models.settings import Settings
from dice_roller.rollers.base import BasicRoller


class StackRoller(BasicRoller):
    kind = RollerKind.DICE

    def __init__(
        self,
        notation: str,
        lexemes: list[Lexeme],
        settings: Settings | None = None,
        show_dice: bool = True,
        show_formula: bool = True,
        evaluator: Evaluator | None = None,
    ) -> None:
        super().__init__(notation, lexemes, settings, show_dice, show_formula)
        self.evaluator = evaluator or Evaluator(self.settings)
        self.expression = parse(lexemes, notation=notation)

    def roll(self, random_source: RandomSource | None = None) -> RollResult:
        self.result = self.evaluator.evaluate(
            self.expression, random_source or SystemRandomSource(), self.notation
        )
        return self.result

    def apply_result(self, data: dict[str, Any]) -> RollResult:
        result = RollResult.model_validate(data)
        if result.notation != self.notation:
            raise EvaluationError(
                f"Stored result belongs to {result.notation!r}", self.notation
            )
        self.result = result
        return result

    def replay(self) -> RollResult:
        """Rebuild the current result from its recorded draws."""
        if not isinstance(self.result, RollResult):
            raise EvaluationError("Nothing has been rolled yet", self.notation)
        self.result = self.evaluator.replay(self.expression, self.result)
        return self.result

    @property
    def text(self) -> str:
        if not isinstance(self.result, RollResult):
            return self.notation
        total = format_number(self.result.total)
        text = total
        if self.show_dice and self.result.groups:
            text = f"{self.result.display} = {total}"
        if self.show_formula:
            text = f"{self.notation} → {text}"
        if self.result.stunt:
            text += " (stunt)"
        return text
