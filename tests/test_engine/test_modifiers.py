"""Tests for src/dice_roller/engine/modifiers.py."""
from __future__ import annotations

import logging

import pytest

from dice_roller.engine.expression import Modifier, ModifierKind
from dice_roller.engine.modifiers import (
    ModifierContext,
    apply_modifier,
    explode,
    keep_or_drop,
    mark_conditionals,
    reroll,
)
from dice_roller.engine.random_source import SequenceRandomSource, SystemRandomSource
from dice_roller.models.lexeme import ComparisonOp, Conditional, ConditionalPolicy
from dice_roller.models.result import Die, RollGroup

ALWAYS = (Conditional(operator=ComparisonOp.GT, comparer=0),)


def group_of(*values: int, faces: int = 6) -> RollGroup:
    return RollGroup(
        notation=f"{len(values)}d{faces}",
        count=len(values),
        faces=faces,
        dice=[Die(value=v, faces=faces) for v in values],
    )


def ctx_with(values=(), **kwargs) -> ModifierContext:
    return ModifierContext(random_source=SequenceRandomSource(values), **kwargs)


class TestKeepOrDrop:
    def test_ties_keep_roll_order(self):
        group = group_of(4, 4, 2)
        keep_or_drop(group, Modifier(ModifierKind.KEEP_HIGH, amount=1))
        assert [d.dropped for d in group.dice] == [False, True, True]

    def test_drop_more_than_rolled(self):
        group = group_of(3, 5)
        keep_or_drop(group, Modifier(ModifierKind.DROP_LOW, amount=5))
        assert group.total == 0

    def test_keep_zero(self):
        group = group_of(3, 5)
        keep_or_drop(group, Modifier(ModifierKind.KEEP_LOW, amount=0))
        assert all(d.dropped for d in group.dice)

    def test_only_kept_dice_are_considered(self):
        group = group_of(1, 6, 3)
        keep_or_drop(group, Modifier(ModifierKind.DROP_LOW, amount=1))
        keep_or_drop(group, Modifier(ModifierKind.DROP_HIGH, amount=1))
        assert group.total == 3


class TestBoundedLoops:
    def test_reroll_stops_at_cap(self, caplog):
        group = group_of(3)
        ctx = ModifierContext(random_source=SystemRandomSource(seed=1), max_iterations=5)
        with caplog.at_level(logging.WARNING):
            reroll(group, Modifier(ModifierKind.REROLL, amount=1000, conditionals=ALWAYS), ctx)
        assert len(group.dice[0].history) == 5
        assert "cap of 5" in caplog.text

    def test_explode_stops_at_cap(self):
        group = group_of(3)
        ctx = ModifierContext(random_source=SystemRandomSource(seed=1))
        explode(group, Modifier(ModifierKind.EXPLODE, amount=100, conditionals=ALWAYS), ctx)
        assert len(group.dice) == 101
        assert all(d.exploded for d in group.dice[1:])

    def test_explode_combine_stops_at_cap(self):
        group = group_of(3)
        ctx = ModifierContext(random_source=SystemRandomSource(seed=1), max_iterations=10)
        apply_modifier(
            group, Modifier(ModifierKind.EXPLODE_COMBINE, amount=50, conditionals=ALWAYS), ctx
        )
        assert len(group.dice[0].combined) == 10

    def test_explode_skips_dropped_dice(self):
        group = group_of(6, 2)
        group.dice[0].dropped = True
        explode(group, Modifier(ModifierKind.EXPLODE), ctx_with())
        assert len(group.dice) == 2

    def test_new_dice_follow_their_trigger(self):
        group = group_of(6, 2)
        explode(group, Modifier(ModifierKind.EXPLODE), ctx_with([5]))
        assert [d.value for d in group.dice] == [6, 5, 2]


class TestConditionals:
    def test_reroll_with_conditionals(self):
        group = group_of(2, 5)
        below_three = (Conditional(operator=ComparisonOp.LT, comparer=3),)
        reroll(group, Modifier(ModifierKind.REROLL, conditionals=below_three), ctx_with([4]))
        assert [d.value for d in group.dice] == [4, 5]

    @pytest.mark.parametrize("policy, matched", [
        (ConditionalPolicy.ALL, [False, True, False]),
        (ConditionalPolicy.ANY, [True, True, True]),
    ])
    def test_mark_conditionals_policy(self, policy, matched):
        group = group_of(1, 4, 6)
        group.conditionals = [
            Conditional(operator=ComparisonOp.GT, comparer=2),
            Conditional(operator=ComparisonOp.LT, comparer=5),
        ]
        mark_conditionals(group, ctx_with(policy=policy))
        assert [d.matched for d in group.dice] == matched

    def test_dropped_dice_never_match(self):
        group = group_of(6, 6)
        group.dice[0].dropped = True
        group.conditionals = [Conditional(operator=ComparisonOp.EQ, comparer=6)]
        mark_conditionals(group, ctx_with())
        assert group.total == 1


class TestStuntModifier:
    def test_appends_stunt_die(self):
        group = group_of(2, 3)
        apply_modifier(group, Modifier(ModifierKind.STUNT), ctx_with([6]))
        assert group.dice[-1].stunt_die
        assert group.stunt

    def test_stunt_faces(self):
        group = group_of(2)
        apply_modifier(group, Modifier(ModifierKind.STUNT), ctx_with([8], stunt_faces=8, stunt_value=8))
        assert group.dice[-1].faces == 8
        assert group.stunt
