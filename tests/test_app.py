"""Tests for src/dice_roller/app.py."""
from __future__ import annotations

import pytest

from dice_roller.app import DiceApp, InlineMode, _load_config, parse_inline_code
from dice_roller.engine.errors import EvaluationError
from dice_roller.engine.random_source import SequenceRandomSource, SystemRandomSource
from dice_roller.models.settings import Settings
from dice_roller.rollers import StackRoller

SESSION_NOTE = """# Session
Attack: `dice: 1d20` and damage `dice+: 1d8`
`code` plain
Loot: `dice-mod: 1d6` then `dice-: 1d4`
"""


class TestConfig:
    def test_missing_file(self, tmp_path):
        assert _load_config(tmp_path / "nope.toml") == {}

    def test_settings_from_file(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[dice]\ndefault_face = 20\n\n[formulas]\nhit = "1d20+4"\n', encoding="utf-8"
        )
        dice_app = DiceApp(config_path=path)
        assert dice_app.settings.default_face == 20
        assert dice_app.settings.formulas == {"hit": "1d20+4"}

    def test_explicit_settings_skip_config(self, tmp_path):
        dice_app = DiceApp(config_path=tmp_path / "nope.toml", settings=Settings(default_face=8))
        assert dice_app.config == {}
        assert dice_app.settings.default_face == 8


class TestParseInlineCode:
    @pytest.mark.parametrize("code, mode, notation", [
        ("dice: 1d6", InlineMode.ROLL, "1d6"),
        ("dice+: 2d6", InlineMode.PERSIST, "2d6"),
        ("dice-: 2d6", InlineMode.NO_PERSIST, "2d6"),
        ("dice-mod: 1d4+1", InlineMode.REPLACE, "1d4+1"),
        ("dice:[[Loot#^loot]]", InlineMode.ROLL, "[[Loot#^loot]]"),
    ])
    def test_prefixes(self, code, mode, notation):
        inline = parse_inline_code(code)
        assert inline.mode == mode
        assert inline.notation == notation

    @pytest.mark.parametrize("code", ["print()", "dice:", "dice: ", "roll: 1d6"])
    def test_not_a_roll(self, code):
        assert parse_inline_code(code) is None


class TestPrepare:
    def test_display_flags(self, dice_app):
        assert dice_app.prepare("1d6|nodice") == ("1d6", False, True)
        assert dice_app.prepare("1d6 |noform") == ("1d6", True, False)
        assert dice_app.prepare("1d6|nodice|noform") == ("1d6", False, False)

    def test_unescapes(self, dice_app):
        assert dice_app.prepare("[[Loot#^loot]]\\|Item")[0] == "[[Loot#^loot]]|Item"
        assert dice_app.prepare("1d20 &#43; 2")[0] == "1d20 + 2"

    def test_formula(self, vault):
        dice_app = DiceApp(settings=Settings(vault_path=str(vault), formulas={"stats": "4d6dl1"}))
        assert dice_app.prepare("stats")[0] == "4d6dl1"
        roller = dice_app.roll("stats", SequenceRandomSource([2, 6, 4, 1]))
        assert roller.result.total == 12

    def test_nodice_reaches_roller(self, dice_app):
        roller = dice_app.roll("2d6|nodice", SequenceRandomSource([1, 2]))
        assert roller.text == "2d6 → 3"


class TestRolling:
    def test_get_roller_for_dice(self, dice_app):
        assert isinstance(dice_app.get_roller("2d6+1"), StackRoller)

    def test_roll_many_keeps_going_after_errors(self, dice_app):
        outcomes = dice_app.roll_many(["1d6", "1d6 $", "2+3", "[[Ghost]]"], SequenceRandomSource([4]))
        assert [o.ok for o in outcomes] == [True, False, True, False]
        assert outcomes[0].text == "1d6 → [4] = 4"
        assert outcomes[0].result["total"] == 4
        assert outcomes[1].kind is None
        assert "position 4" in outcomes[1].error
        assert outcomes[2].result["total"] == 5

    def test_replay(self, dice_app):
        roller = dice_app.roll("3d6!r1", SystemRandomSource(seed=9))
        again = dice_app.replay("3d6!r1", roller.result)
        assert again == roller.result

    def test_replay_rejects_lookups(self, dice_app):
        with pytest.raises(EvaluationError):
            dice_app.replay("[[Tavern]]", {})


class TestPersistence:
    def test_saved_result_is_restored(self, dice_app):
        first, restored = dice_app.roll_persisted(
            "1d20", "a.md", 2, 0, persist=True, random_source=SequenceRandomSource([14])
        )
        assert not restored
        second, restored = dice_app.roll_persisted(
            "1d20", "a.md", 2, 0, persist=True, random_source=SequenceRandomSource([3])
        )
        assert restored
        assert second.result.total == 14

    def test_reroll_overwrites(self, dice_app):
        dice_app.roll_persisted("1d20", "a.md", 2, 0, persist=True, random_source=SequenceRandomSource([14]))
        roller, restored = dice_app.roll_persisted(
            "1d20", "a.md", 2, 0, persist=True, reroll=True, random_source=SequenceRandomSource([3])
        )
        assert not restored
        assert dice_app.results.get("a.md", 2, 0)["total"] == 3

    def test_changed_notation_rolls_again(self, dice_app):
        dice_app.roll_persisted("1d20", "a.md", 2, 0, persist=True, random_source=SequenceRandomSource([14]))
        roller, restored = dice_app.roll_persisted(
            "1d12", "a.md", 2, 0, persist=True, random_source=SequenceRandomSource([5])
        )
        assert not restored
        assert roller.result.total == 5
        assert dice_app.results.get("a.md", 2, 0)["notation"] == "1d12"

    def test_default_is_not_to_persist(self, dice_app):
        dice_app.roll_persisted("1d20", "a.md", 2, 0, random_source=SequenceRandomSource([14]))
        assert dice_app.saved_results("a.md") == {}

    def test_persist_results_setting(self, vault, in_memory_db):
        settings = Settings(vault_path=str(vault), persist_results=True)
        dice_app = DiceApp(settings=settings, db=in_memory_db)
        dice_app.roll_persisted("1d20", "a.md", 2, 0, random_source=SequenceRandomSource([14]))
        assert dice_app.saved_results("a.md")[2][0]["total"] == 14

    def test_lookup_results_persist(self, dice_app):
        dice_app.roll_persisted(
            "[[Names]]|line", "a.md", 0, 0, persist=True, random_source=SequenceRandomSource([1])
        )
        roller, restored = dice_app.roll_persisted(
            "[[Names]]|line", "a.md", 0, 0, persist=True, random_source=SequenceRandomSource([0])
        )
        assert restored
        assert roller.text == "Borin"

    def test_edited_lookup_rolls_again(self, dice_app):
        dice_app.roll_persisted(
            "[[Loot#^loot]]|Item", "a.md", 0, 0, persist=True, random_source=SequenceRandomSource([5])
        )
        roller, restored = dice_app.roll_persisted(
            "[[Loot#^loot]]|Value", "a.md", 0, 0, persist=True, random_source=SequenceRandomSource([0])
        )
        assert not restored
        assert roller.text == "1"
        assert dice_app.saved_results("a.md")[0][0]["notation"] == "[[Loot#^loot]]|Value"

    def test_clear_results(self, dice_app):
        for line in (1, 1, 2):
            dice_app.roll_persisted("1d6", "a.md", line, 0, persist=True, reroll=True,
                                    random_source=SequenceRandomSource([1]))
        assert dice_app.clear_results("a.md", line=1) == 1
        assert dice_app.clear_results("a.md") == 1
        assert dice_app.saved_results("a.md") == {}


class TestDocuments:
    @pytest.fixture
    def session(self, tmp_path):
        path = tmp_path / "Session.md"
        path.write_text(SESSION_NOTE, encoding="utf-8")
        return path

    def test_scan(self, dice_app, session):
        entries = dice_app.scan_document(session, random_source=SequenceRandomSource([12, 5, 3, 2]))
        assert [(e.line, e.index, e.mode) for e in entries] == [
            (1, 0, InlineMode.ROLL),
            (1, 1, InlineMode.PERSIST),
            (3, 0, InlineMode.REPLACE),
            (3, 1, InlineMode.NO_PERSIST),
        ]
        assert [e.outcome.result["total"] for e in entries] == [12, 5, 3, 2]
        assert list(dice_app.saved_results(session.as_posix())) == [1]

    def test_rescan_restores_persisted(self, dice_app, session):
        dice_app.scan_document(session, random_source=SequenceRandomSource([12, 5, 3, 2]))
        entries = dice_app.scan_document(session, random_source=SequenceRandomSource([7, 4, 1]))
        assert [e.restored for e in entries] == [False, True, False, False]
        assert [e.outcome.result["total"] for e in entries] == [7, 5, 4, 1]

    def test_rescan_with_reroll(self, dice_app, session):
        dice_app.scan_document(session, random_source=SequenceRandomSource([12, 5, 3, 2]))
        entries = dice_app.scan_document(
            session, reroll=True, random_source=SequenceRandomSource([1, 2, 3, 4])
        )
        assert entries[1].outcome.result["total"] == 2
        assert dice_app.saved_results(session.as_posix())[1][1]["total"] == 2

    def test_scan_reports_errors(self, dice_app, tmp_path):
        path = tmp_path / "Broken.md"
        path.write_text("`dice: 1d6 $` and `dice: 2`\n", encoding="utf-8")
        entries = dice_app.scan_document(path, random_source=SequenceRandomSource([]))
        assert [e.outcome.ok for e in entries] == [False, True]

    def test_render_replaces_dice_mod(self, dice_app, session):
        entries = dice_app.scan_document(session, random_source=SequenceRandomSource([12, 5, 3, 2]))
        rendered = dice_app.render_document(session, entries).splitlines()
        assert rendered[3] == "Loot: 3 then `dice-: 1d4`"
        assert rendered[1] == "Attack: `dice: 1d20` and damage `dice+: 1d8`"
