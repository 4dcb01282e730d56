"""Shared fixtures for the dice roller test suite."""
from __future__ import annotations

from pathlib import Path

import pytest

from dice_roller.engine.evaluator import Evaluator
from dice_roller.engine.lexer import Lexer
from dice_roller.engine.parser import parse
from dice_roller.engine.random_source import SequenceRandomSource
from dice_roller.models.result import RollResult
from dice_roller.models.settings import Settings


LOOT_NOTE = """---
tags: [treasure]
---
# Loot

| d6 | Item | Value |
|----|------|-------|
| 1-3 | Copper coins | 1 |
| 4-5 | Silver ring | 25 |
| 6 | Ruby | 500 |
^loot

The chest creaks open.
"""

NAMES_NOTE = """Alda
Borin

Cade
"""

TAVERN_NOTE = """A smoky common room. #location

> The barkeep eyes you warily.

- ale
- stew
"""

FOREST_NOTE = """---
tags:
  - location
  - wild
---
Tall pines crowd the path.
"""


def _roll_with(
    notation: str, values: list[int], settings: Settings | None = None
) -> RollResult:
    """Lex, parse and evaluate ``notation`` against a fixed draw sequence."""
    settings = settings or Settings()
    lexemes = Lexer(settings).tokenize(notation)
    expr = parse(lexemes, notation=notation)
    return Evaluator(settings).evaluate(expr, SequenceRandomSource(values), notation)


@pytest.fixture
def roll_with():
    return _roll_with


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def vault(tmp_path) -> Path:
    root = tmp_path / "vault"
    (root / "places").mkdir(parents=True)
    (root / "Loot.md").write_text(LOOT_NOTE, encoding="utf-8")
    (root / "Names.md").write_text(NAMES_NOTE, encoding="utf-8")
    (root / "Tavern.md").write_text(TAVERN_NOTE, encoding="utf-8")
    (root / "places" / "Forest.md").write_text(FOREST_NOTE, encoding="utf-8")
    return root


@pytest.fixture
def in_memory_db(tmp_path):
    from dice_roller.storage.database import Database

    db = Database(str(tmp_path / "test.db"))
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def dice_app(vault, in_memory_db, tmp_path):
    from dice_roller.app import DiceApp

    app_settings = Settings(vault_path=str(vault), db_path=str(tmp_path / "test.db"))
    return DiceApp(settings=app_settings, db=in_memory_db)
