from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from dice_roller.models.lexeme import ConditionalPolicy


class OverflowPolicy(str, Enum):
    """What a draw without replacement does when asked for more entries than exist."""

    REPEAT = "repeat"
    TRUNCATE = "truncate"


class Settings(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    # [dice]
    default_roll: int = Field(default=1, ge=0)
    default_face: int = Field(default=100, ge=1)
    max_iterations: int = Field(default=100, ge=1)
    conditional_policy: ConditionalPolicy = ConditionalPolicy.ALL
    stunt_faces: int = Field(default=6, ge=1)
    stunt_value: int = 6

    # [lookup]
    return_all_tags: bool = True
    roll_links_for_tags: bool = False
    overflow_policy: OverflowPolicy = OverflowPolicy.REPEAT

    # [vault]
    vault_path: str = "."

    # [storage]
    db_path: str = "saves/results.db"
    persist_results: bool = False

    # [display]
    show_formula: bool = True
    show_dice: bool = True

    formulas: dict[str, str] = Field(default_factory=dict)
    fields: dict[str, float] = Field(default_factory=dict)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> Settings:
        """Flatten a loaded ``config.toml`` mapping into settings."""
        dice = config.get("dice", {})
        lookup = config.get("lookup", {})
        storage = config.get("storage", {})
        display = config.get("display", {})
        values: dict[str, Any] = {}
        values.update(dice)
        values.update(lookup)
        values.update(storage)
        values.update(display)
        if "path" in config.get("vault", {}):
            values["vault_path"] = config["vault"]["path"]
        values["formulas"] = dict(config.get("formulas", {}))
        values["fields"] = dict(config.get("fields", {}))
        return cls(**values)
