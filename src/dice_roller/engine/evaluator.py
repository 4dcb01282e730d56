"""Roll engine: reduces an expression tree into a ``RollResult``."""
from __future__ import annotations

import logging
import math

from dice_roller.engine.errors import EvaluationError
from dice_roller.engine.expression import BinaryOp, DiceGroup, Expression, Literal, StuntDie
from dice_roller.engine.modifiers import (
    ModifierContext,
    apply_modifier,
    mark_conditionals,
    roll_die,
    roll_stunt_die,
)
from dice_roller.engine.parser import DEFAULT_PRECEDENCE, Associativity, OperatorInfo
from dice_roller.engine.random_source import (
    RandomSource,
    RecordingRandomSource,
    SequenceRandomSource,
)
from dice_roller.models.result import Die, RollGroup, RollResult
from dice_roller.models.settings import Settings

logger = logging.getLogger(__name__)

# Beyond this many bits a power has no finite float representation.
_MAX_POWER_BITS = 1024


def format_number(value: int | float) -> str:
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return str(round(value, 2))
    return str(value)


def format_die(die: Die) -> str:
    text = "→".join(str(v) for v in [*die.history, die.value])
    text += "".join(f"+{v}" for v in die.combined)
    if die.exploded:
        text += "!"
    if die.stunt_die:
        text += "S"
    if die.matched:
        text = f"**{text}**"
    if die.dropped:
        text = f"~~{text}~~"
    return text


def format_group(group: RollGroup) -> str:
    return "[" + ", ".join(format_die(d) for d in group.dice) + "]"


def to_notation(expr: Expression) -> str:
    if isinstance(expr, BinaryOp):
        return f"{to_notation(expr.left)}{expr.op}{to_notation(expr.right)}"
    if isinstance(expr, DiceGroup):
        return expr.notation
    if isinstance(expr, StuntDie):
        return expr.original
    return expr.original or format_number(expr.value)


def _power(base: int | float, exponent: int | float) -> int | float:
    if isinstance(base, int) and isinstance(exponent, int) and exponent > 0 and abs(base) > 1:
        if exponent * math.log2(abs(base)) > _MAX_POWER_BITS:
            raise OverflowError("power too large")
    return base ** exponent


def apply_operator(op: str, left: int | float, right: int | float) -> int | float:
    try:
        if op == "+":
            result = left + right
        elif op == "-":
            result = left - right
        elif op == "*":
            result = left * right
        elif op == "/":
            result = left / right
        elif op == "^":
            result = _power(left, right)
        else:
            raise EvaluationError(f"Unknown operator {op!r}")
    except (ZeroDivisionError, OverflowError) as exc:
        raise EvaluationError(f"{format_number(left)} {op} {format_number(right)} is not finite") from exc
    if isinstance(result, complex) or (isinstance(result, float) and not math.isfinite(result)):
        raise EvaluationError(f"{format_number(left)} {op} {format_number(right)} is not finite")
    return result


class Evaluator:
    """Walks an expression post-order, rolling one group per dice node."""

    def __init__(
        self,
        settings: Settings | None = None,
        precedence: dict[str, OperatorInfo] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.precedence = precedence or DEFAULT_PRECEDENCE

    def evaluate(
        self, expr: Expression, random_source: RandomSource, notation: str = ""
    ) -> RollResult:
        recorder = RecordingRandomSource(random_source)
        ctx = ModifierContext(
            random_source=recorder,
            max_iterations=self.settings.max_iterations,
            policy=self.settings.conditional_policy,
            stunt_faces=self.settings.stunt_faces,
            stunt_value=self.settings.stunt_value,
        )
        groups: list[RollGroup] = []
        total, display = self._reduce(expr, ctx, groups)
        result = RollResult(
            notation=notation or to_notation(expr),
            total=total,
            display=display,
            groups=groups,
            draws=recorder.draws,
        )
        logger.debug("Rolled %s = %s (draws %s)", result.notation, result.total, result.draws)
        return result

    def replay(self, expr: Expression, previous: RollResult) -> RollResult:
        """Re-evaluate ``expr`` from the draws recorded in ``previous``."""
        return self.evaluate(expr, SequenceRandomSource(previous.draws), previous.notation)

    def _reduce(
        self, expr: Expression, ctx: ModifierContext, groups: list[RollGroup]
    ) -> tuple[int | float, str]:
        if isinstance(expr, Literal):
            return expr.value, format_number(expr.value)
        if isinstance(expr, DiceGroup):
            group = RollGroup(
                notation=expr.notation,
                count=expr.count,
                faces=expr.faces,
                conditionals=list(expr.conditionals),
            )
            group.dice = [roll_die(expr.faces, ctx) for _ in range(expr.count)]
            for modifier in expr.modifiers:
                apply_modifier(group, modifier, ctx)
            mark_conditionals(group, ctx)
            groups.append(group)
            return group.total, format_group(group)
        if isinstance(expr, StuntDie):
            group = RollGroup(notation=expr.original, count=expr.count, faces=ctx.stunt_faces)
            group.dice = [roll_stunt_die(ctx) for _ in range(expr.count)]
            groups.append(group)
            return group.total, format_group(group)
        if isinstance(expr, BinaryOp):
            left, left_text = self._reduce(expr.left, ctx, groups)
            right, right_text = self._reduce(expr.right, ctx, groups)
            value = apply_operator(expr.op, left, right)
            left_text = self._wrap(expr.left, left_text, expr.op, right_side=False)
            right_text = self._wrap(expr.right, right_text, expr.op, right_side=True)
            return value, f"{left_text} {expr.op} {right_text}"
        raise EvaluationError(f"Cannot evaluate {expr!r}")

    def _wrap(self, child: Expression, text: str, parent_op: str, right_side: bool) -> str:
        if not isinstance(child, BinaryOp):
            return text
        child_info = self.precedence[child.op]
        parent_info = self.precedence[parent_op]
        if child_info.precedence < parent_info.precedence:
            return f"({text})"
        if child_info.precedence == parent_info.precedence:
            left_assoc = parent_info.associativity is Associativity.LEFT
            if right_side == left_assoc:
                return f"({text})"
        return text


def evaluate(
    expr: Expression,
    random_source: RandomSource,
    settings: Settings | None = None,
    notation: str = "",
) -> RollResult:
    return Evaluator(settings).evaluate(expr, random_source, notation)
