"""Error taxonomy for the notation engine."""
from __future__ import annotations


class DiceError(ValueError):
    """Base class for every notation failure."""

    def __init__(self, message: str, notation: str | None = None) -> None:
        super().__init__(message)
        self.notation = notation


class LexError(DiceError):
    """No lexer rule matched at a position."""

    def __init__(self, notation: str, position: int) -> None:
        self.position = position
        self.offending = notation[position:]
        super().__init__(
            f"Unrecognized input at position {position}: {self.offending!r}",
            notation,
        )


class ParseError(DiceError):
    """Lexemes do not form a valid expression."""


class EvaluationError(DiceError):
    """The expression could not be reduced to a result."""
