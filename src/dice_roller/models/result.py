from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from dice_roller.models.lexeme import Conditional


class Die(BaseModel):
    """One die in a roll group.

    ``value`` is the face currently showing and always lies in ``[1, faces]``.
    Values replaced by rerolls are kept in ``history`` (oldest first) and
    values folded in by explode-and-combine are kept in ``combined``.
    """

    value: int
    faces: int
    dropped: bool = False
    rerolled: bool = False
    exploded: bool = False
    matched: bool = False
    stunt_die: bool = False
    stunt: bool = False
    history: list[int] = Field(default_factory=list)
    combined: list[int] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return self.value + sum(self.combined)


class RollGroup(BaseModel):
    notation: str
    count: int
    faces: int
    dice: list[Die] = Field(default_factory=list)
    conditionals: list[Conditional] = Field(default_factory=list)

    @property
    def kept(self) -> list[Die]:
        return [d for d in self.dice if not d.dropped]

    @property
    def successes(self) -> int:
        return sum(1 for d in self.kept if d.matched)

    @property
    def stunt(self) -> bool:
        return any(d.stunt for d in self.dice)

    @property
    def total(self) -> int:
        # A group carrying its own conditionals counts successes instead of summing.
        if self.conditionals:
            return self.successes
        return sum(d.total for d in self.kept)


class RollResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    notation: str
    total: int | float
    display: str
    groups: list[RollGroup] = Field(default_factory=list)
    draws: list[int] = Field(default_factory=list)

    @property
    def stunt(self) -> bool:
        return any(g.stunt for g in self.groups)

    @property
    def dice(self) -> list[Die]:
        return [d for g in self.groups for d in g.dice]


class LookupResult(BaseModel):
    """Result of a table, section, line, tag or link roll."""

    model_config = ConfigDict(frozen=True)

    notation: str
    kind: str
    results: list[str] = Field(default_factory=list)
    display: str = ""
    draws: list[int] = Field(default_factory=list)
