"""Tests for the table, section, line, tag and link rollers."""
from __future__ import annotations

import pytest

from dice_roller.app import DiceApp
from dice_roller.engine.errors import EvaluationError
from dice_roller.engine.random_source import SequenceRandomSource
from dice_roller.models.settings import OverflowPolicy, Settings
from dice_roller.rollers import LinkRoller, LineRoller, SectionRoller, TableRoller, TagRoller


def results(dice_app, notation: str, values: list[int]) -> list[str]:
    return dice_app.roll(notation, SequenceRandomSource(values)).result.results


class TestTableRoller:
    def test_roller_type(self, dice_app):
        assert isinstance(dice_app.get_roller("[[Loot#^loot]]"), TableRoller)

    @pytest.mark.parametrize("draw, item", [(0, "Copper coins"), (2, "Copper coins"), (3, "Silver ring"), (5, "Ruby")])
    def test_weighted_rows(self, dice_app, draw, item):
        assert results(dice_app, "[[Loot#^loot]]|Item", [draw]) == [item]

    def test_all_columns(self, dice_app):
        assert results(dice_app, "[[Loot#^loot]]", [0]) == ["Copper coins | 1"]

    def test_counted_draws_without_replacement(self, dice_app):
        assert results(dice_app, "2d[[Loot#^loot]]|Item", [5, 0]) == ["Ruby", "Copper coins"]

    def test_draws_are_recorded(self, dice_app):
        roller = dice_app.roll("[[Loot#^loot]]|Value", SequenceRandomSource([4]))
        assert roller.result.draws == [4]
        assert roller.text == "25"

    def test_missing_table(self, dice_app):
        with pytest.raises(EvaluationError, match="not found"):
            dice_app.roll("[[Loot#^nope]]", SequenceRandomSource([]))

    def test_unknown_column(self, dice_app):
        with pytest.raises(EvaluationError, match="no rows"):
            dice_app.roll("[[Loot#^loot]]|Weight", SequenceRandomSource([]))


class TestSectionAndLineRollers:
    def test_section(self, dice_app):
        roller = dice_app.roll("[[Tavern]]", SequenceRandomSource([1]))
        assert isinstance(roller, SectionRoller)
        assert roller.result.results == ["> The barkeep eyes you warily."]

    def test_section_type_filter(self, dice_app):
        assert results(dice_app, "[[Tavern]]|list", [0]) == ["- ale\n- stew"]

    def test_missing_note(self, dice_app):
        with pytest.raises(EvaluationError, match="not found"):
            dice_app.roll("[[Ghost]]", SequenceRandomSource([]))

    def test_no_matching_sections(self, dice_app):
        with pytest.raises(EvaluationError, match="no matching"):
            dice_app.roll("[[Names]]|code", SequenceRandomSource([]))

    def test_line(self, dice_app):
        roller = dice_app.roll("[[Names]]|line", SequenceRandomSource([2]))
        assert isinstance(roller, LineRoller)
        assert roller.result.results == ["Cade"]

    def test_line_overflow_repeats(self, dice_app):
        assert results(dice_app, "5d[[Names]]|line", [0] * 5) == ["Alda", "Borin", "Cade", "Alda", "Borin"]

    def test_line_overflow_truncates(self, vault, in_memory_db):
        settings = Settings(vault_path=str(vault), overflow_policy=OverflowPolicy.TRUNCATE)
        dice_app = DiceApp(settings=settings, db=in_memory_db)
        assert results(dice_app, "5d[[Names]]|line", [0] * 3) == ["Alda", "Borin", "Cade"]


class TestTagRoller:
    def test_one_result_per_note(self, dice_app):
        roller = dice_app.roll("#location", SequenceRandomSource([1, 0]))
        assert isinstance(roller, TagRoller)
        assert roller.result.results == [
            "[[Tavern]]: > The barkeep eyes you warily.",
            "[[places/Forest]]: Tall pines crowd the path.",
        ]
        assert roller.text == "\n".join(roller.result.results)

    def test_single_note(self, vault, in_memory_db):
        settings = Settings(vault_path=str(vault), return_all_tags=False)
        dice_app = DiceApp(settings=settings, db=in_memory_db)
        assert results(dice_app, "#location", [1, 0]) == ["[[places/Forest]]: Tall pines crowd the path."]

    def test_type_filter_skips_notes_without_matches(self, dice_app):
        assert results(dice_app, "#location|list", [0]) == ["[[Tavern]]: - ale\n- stew"]

    def test_unknown_tag(self, dice_app):
        with pytest.raises(EvaluationError, match="#ghost"):
            dice_app.roll("#ghost", SequenceRandomSource([]))


class TestLinkRoller:
    def test_link(self, dice_app):
        roller = dice_app.roll("#location|+", SequenceRandomSource([1]))
        assert isinstance(roller, LinkRoller)
        assert roller.result.results == ["[[places/Forest]]"]

    def test_several_links(self, dice_app):
        assert results(dice_app, "2d#location|+", [0, 0]) == ["[[Tavern]]", "[[places/Forest]]"]


class TestLookupPersistence:
    def test_to_result_and_apply(self, dice_app):
        roller = dice_app.roll("[[Loot#^loot]]|Item", SequenceRandomSource([5]))
        payload = roller.to_result()
        assert payload["type"] == "table"
        fresh = dice_app.get_roller("[[Loot#^loot]]|Item")
        fresh.apply_result(payload)
        assert fresh.text == "Ruby"

    def test_apply_rejects_other_notation(self, dice_app):
        payload = dice_app.roll("[[Loot#^loot]]|Item", SequenceRandomSource([5])).to_result()
        other = dice_app.get_roller("[[Loot#^loot]]|Value")
        with pytest.raises(EvaluationError, match="Stored result belongs to"):
            other.apply_result(payload)
        assert other.result is None
