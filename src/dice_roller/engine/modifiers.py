"""Modifier pipeline: transformations over a roll group's dice.

Every loop here is bounded by the modifier's own count and by
``ModifierContext.max_iterations``; reaching the bound stops quietly.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Sequence, assert_never

from dice_roller.engine.expression import Modifier, ModifierKind
from dice_roller.engine.random_source import RandomSource
from dice_roller.models.lexeme import Conditional, ConditionalPolicy, check_conditionals
from dice_roller.models.result import Die, RollGroup

logger = logging.getLogger(__name__)


@dataclass
class ModifierContext:
    random_source: RandomSource
    max_iterations: int = 100
    policy: ConditionalPolicy = ConditionalPolicy.ALL
    stunt_faces: int = 6
    stunt_value: int = 6


def roll_die(faces: int, ctx: ModifierContext) -> Die:
    return Die(value=ctx.random_source.uniform_int(1, faces), faces=faces)


def roll_stunt_die(ctx: ModifierContext) -> Die:
    die = roll_die(ctx.stunt_faces, ctx)
    die.stunt_die = True
    die.stunt = die.value == ctx.stunt_value
    return die


def _predicate(
    conditionals: Sequence[Conditional],
    default: Callable[[int, int], bool],
    policy: ConditionalPolicy,
) -> Callable[[int, int], bool]:
    if conditionals:
        conds = list(conditionals)
        return lambda value, faces: check_conditionals(conds, value, policy)
    return default


def _limit(modifier: Modifier, ctx: ModifierContext) -> int:
    return max(0, min(modifier.amount, ctx.max_iterations))


def reroll(group: RollGroup, modifier: Modifier, ctx: ModifierContext) -> None:
    """Reroll dice showing the lowest face (or matching the conditionals)."""
    hits = _predicate(modifier.conditionals, lambda value, faces: value <= 1, ctx.policy)
    limit = _limit(modifier, ctx)
    for die in group.kept:
        times = 0
        while times < limit and hits(die.value, die.faces):
            die.history.append(die.value)
            die.value = ctx.random_source.uniform_int(1, die.faces)
            die.rerolled = True
            times += 1
        if times == ctx.max_iterations and hits(die.value, die.faces):
            logger.warning("Reroll cap of %d reached in %s", ctx.max_iterations, group.notation)


def explode(group: RollGroup, modifier: Modifier, ctx: ModifierContext) -> None:
    """Append a fresh die after each die showing its maximum (or matching the conditionals)."""
    hits = _predicate(modifier.conditionals, lambda value, faces: value == faces, ctx.policy)
    limit = _limit(modifier, ctx)
    dice: list[Die] = []
    for die in group.dice:
        dice.append(die)
        if die.dropped:
            continue
        current = die
        times = 0
        while times < limit and hits(current.value, current.faces):
            current = roll_die(die.faces, ctx)
            current.exploded = True
            dice.append(current)
            times += 1
        if times == ctx.max_iterations and hits(current.value, current.faces):
            logger.warning("Explosion cap of %d reached in %s", ctx.max_iterations, group.notation)
    group.dice = dice


def explode_combine(group: RollGroup, modifier: Modifier, ctx: ModifierContext) -> None:
    """Like ``explode`` but fold each new roll into the triggering die."""
    hits = _predicate(modifier.conditionals, lambda value, faces: value == faces, ctx.policy)
    limit = _limit(modifier, ctx)
    for die in group.kept:
        last = die.combined[-1] if die.combined else die.value
        times = 0
        while times < limit and hits(last, die.faces):
            last = ctx.random_source.uniform_int(1, die.faces)
            die.combined.append(last)
            times += 1
        if times == ctx.max_iterations and hits(last, die.faces):
            logger.warning("Explosion cap of %d reached in %s", ctx.max_iterations, group.notation)


def keep_or_drop(group: RollGroup, modifier: Modifier) -> None:
    kind = modifier.kind
    count = max(0, modifier.amount)
    high_first = kind in (ModifierKind.KEEP_HIGH, ModifierKind.DROP_HIGH)
    # sorted() is stable, so equal values keep their roll order.
    ordered = sorted(group.kept, key=lambda d: -d.total if high_first else d.total)
    if kind in (ModifierKind.KEEP_HIGH, ModifierKind.KEEP_LOW):
        losers = ordered[count:]
    else:
        losers = ordered[:count]
    for die in losers:
        die.dropped = True


def add_stunt_die(group: RollGroup, modifier: Modifier, ctx: ModifierContext) -> None:
    for _ in range(max(1, modifier.amount)):
        group.dice.append(roll_stunt_die(ctx))


def apply_modifier(group: RollGroup, modifier: Modifier, ctx: ModifierContext) -> None:
    kind = modifier.kind
    if kind is ModifierKind.REROLL:
        reroll(group, modifier, ctx)
    elif kind is ModifierKind.EXPLODE:
        explode(group, modifier, ctx)
    elif kind is ModifierKind.EXPLODE_COMBINE:
        explode_combine(group, modifier, ctx)
    elif kind in (
        ModifierKind.KEEP_HIGH,
        ModifierKind.KEEP_LOW,
        ModifierKind.DROP_HIGH,
        ModifierKind.DROP_LOW,
    ):
        keep_or_drop(group, modifier)
    elif kind is ModifierKind.STUNT:
        add_stunt_die(group, modifier, ctx)
    else:
        assert_never(kind)


def mark_conditionals(group: RollGroup, ctx: ModifierContext) -> None:
    """Flag each kept die that satisfies the group's own conditionals."""
    if not group.conditionals:
        return
    for die in group.kept:
        die.matched = check_conditionals(group.conditionals, die.total, ctx.policy)
