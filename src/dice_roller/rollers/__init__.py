from __future__ import annotations

from dice_roller.engine.classifier import RollerKind
from dice_roller.rollers.base import BasicRoller, LookupRoller, draw_entries
from dice_roller.rollers.section import LineRoller, SectionRoller
from dice_roller.rollers.stack import StackRoller
from dice_roller.rollers.table import TableRoller
from dice_roller.rollers.tag import LinkRoller, TagRoller

# Rollers that read from a document store, keyed by the kind ``classify`` returns.
LOOKUP_ROLLERS: dict[RollerKind, type[LookupRoller]] = {
    RollerKind.TABLE: TableRoller,
    RollerKind.SECTION: SectionRoller,
    RollerKind.LINE: LineRoller,
    RollerKind.TAG: TagRoller,
    RollerKind.LINK: LinkRoller,
}

__all__ = [
    "BasicRoller",
    "LookupRoller",
    "draw_entries",
    "StackRoller",
    "TableRoller",
    "SectionRoller",
    "LineRoller",
    "TagRoller",
    "LinkRoller",
    "LOOKUP_ROLLERS",
]
