"""Notation lexer: turns a raw notation string into typed lexemes.

Rules are an immutable, ordered table of ``(pattern, build)`` pairs. At each
scan position every rule is tried; the longest match wins and rule order
breaks ties, so ``dl1`` after ``4d6`` beats the bare ``d`` of the dice rule
and ``1dS`` beats ``1d``.
"""
from __future__ import annotations

import logging
import re
from typing import Callable, Mapping, NamedTuple, Optional

from dice_roller.engine.errors import LexError
from dice_roller.models.lexeme import Lexeme, LexemeKind, parse_conditionals
from dice_roller.models.settings import Settings

logger = logging.getLogger(__name__)

# Operators accepted after a modifier; ``=!`` and ``!=`` both mean "not equal".
_OPS = r"(?:!=|=!|==|>=|<=|=|>|<)"
# Dice groups cannot open a conditional with ``!``, that belongs to explode.
_DICE_OPS = r"(?:=!|==|>=|<=|=|>|<)"
# Normalized data of a dice-group lexeme.
_DICE_DATA = re.compile(r"^\d+d\d+$")

TABLE_RE = re.compile(
    r"(?:(?P<count>\d+)[dD])?\[\[(?P<note>[^\]#|^]+?)#?\^(?P<block>[^\]|]+)\]\]"
    r"(?:\|(?P<modifier>[^{}]+))?"
)
SECTION_RE = re.compile(
    r"(?:(?P<count>\d+)[dD])?\[\[(?P<note>[^\]|]+)\]\](?:\|(?P<types>[^{}]+))?"
)
TAG_RE = re.compile(
    r"(?:(?P<count>\d+)[dD])?#(?P<tag>[\w/-]+)"
    r"(?:\|(?P<selector>[+-]))?(?:\|(?P<types>[^+\-{}|][^{}|]*))?"
)
# A count-less ``d`` directly after a digit or letter is a drop modifier, not a die.
DICE_RE = re.compile(
    r"(?:(?P<count>\d+)|(?<![\w!%]))[dD](?P<faces>\d+|%)?"
    rf"(?P<conditionals>(?:{_DICE_OPS}-?\d+)*)"
)
INTEGER_RE = re.compile(r"\d+")
MATH_RE = re.compile(r"[()^+\-*/]")
STUNT_RE = re.compile(r"1[dD]S")
KEEP_HIGH_RE = re.compile(r"k(?!l)h?(?P<amount>\d*)")
DROP_LOW_RE = re.compile(r"d(?!h)l?(?P<amount>\d*)")
KEEP_LOW_RE = re.compile(r"kl(?P<amount>\d*)")
DROP_HIGH_RE = re.compile(r"dh(?P<amount>\d*)")
EXPLODE_COMBINE_RE = re.compile(rf"!!(?P<amount>i|\d+)?(?P<conditionals>(?:{_OPS}-?\d+)*)")
EXPLODE_RE = re.compile(rf"!(?P<amount>i|\d+)?(?P<conditionals>(?:{_OPS}-?\d+)*)")
REROLL_RE = re.compile(rf"r(?P<amount>i|\d+)?(?P<conditionals>(?:{_OPS}-?\d+)*)")
IDENTIFIER_RE = re.compile(r"[A-Za-z][A-Za-z0-9_]+")


class Rule(NamedTuple):
    name: str
    pattern: re.Pattern
    build: Callable[[re.Match, "Lexer"], Optional[Lexeme]]


def _skip(match: re.Match, lexer: Lexer) -> None:
    return None


def _table(match: re.Match, lexer: Lexer) -> Lexeme:
    text = match.group(0).strip()
    return Lexeme(type=LexemeKind.TABLE, data=text, original=match.group(0))


def _section(match: re.Match, lexer: Lexer) -> Lexeme:
    types = (match.group("types") or "").strip().lower()
    kind = LexemeKind.LINE if types == "line" else LexemeKind.SECTION
    return Lexeme(type=kind, data=match.group(0).strip(), original=match.group(0))


def _tag(match: re.Match, lexer: Lexer) -> Lexeme:
    selector = match.group("selector")
    kind = LexemeKind.TAG
    if selector == "+":
        kind = LexemeKind.LINK
    elif selector is None and not match.group("types") and lexer.settings.roll_links_for_tags:
        kind = LexemeKind.LINK
    return Lexeme(type=kind, data=match.group(0).strip(), original=match.group(0))


def _dice(match: re.Match, lexer: Lexer) -> Lexeme:
    count = match.group("count")
    faces = match.group("faces")
    count = int(count) if count is not None else lexer.settings.default_roll
    if faces == "%":
        faces = 100
    elif faces is None:
        faces = lexer.settings.default_face
    else:
        faces = int(faces)
    return Lexeme(
        type=LexemeKind.DICE,
        data=f"{count}d{faces}",
        original=match.group(0),
        conditionals=parse_conditionals(match.group("conditionals")),
    )


def _integer(match: re.Match, lexer: Lexer) -> Lexeme:
    return Lexeme(
        type=LexemeKind.DICE, data=match.group(0), original=match.group(0), conditionals=[]
    )


def _math(match: re.Match, lexer: Lexer) -> Lexeme:
    return Lexeme(type=LexemeKind.MATH, data=match.group(0), original=match.group(0))


def _stunt(match: re.Match, lexer: Lexer) -> Lexeme:
    return Lexeme(type=LexemeKind.STUNT, data="1", original=match.group(0), conditionals=[])


def _counted(kind: LexemeKind) -> Callable[[re.Match, Lexer], Lexeme]:
    def build(match: re.Match, lexer: Lexer) -> Lexeme:
        return Lexeme(type=kind, data=match.group("amount") or "1", original=match.group(0))

    return build


def _conditioned(kind: LexemeKind) -> Callable[[re.Match, Lexer], Lexeme]:
    def build(match: re.Match, lexer: Lexer) -> Lexeme:
        amount = match.group("amount") or "1"
        if amount == "i":
            amount = str(lexer.settings.max_iterations)
        return Lexeme(
            type=kind,
            data=amount,
            original=match.group(0),
            conditionals=parse_conditionals(match.group("conditionals")),
        )

    return build


def _identifier(match: re.Match, lexer: Lexer) -> Optional[Lexeme]:
    name = match.group(0)
    value = lexer.fields[name]
    data = str(int(value)) if float(value).is_integer() else str(value)
    return Lexeme(type=LexemeKind.DICE, data=data, original=name, conditionals=[])


# Priority order; earlier rules win matches of equal length.
RULES: tuple[Rule, ...] = (
    Rule("whitespace", re.compile(r"\s+"), _skip),
    Rule("braces", re.compile(r"[{}]+"), _skip),
    Rule("table", TABLE_RE, _table),
    Rule("section", SECTION_RE, _section),
    Rule("tag", TAG_RE, _tag),
    Rule("dice", DICE_RE, _dice),
    Rule("integer", INTEGER_RE, _integer),
    Rule("math", MATH_RE, _math),
    Rule("stunt", STUNT_RE, _stunt),
    Rule("keep-high", KEEP_HIGH_RE, _counted(LexemeKind.KEEP_HIGH)),
    Rule("drop-low", DROP_LOW_RE, _counted(LexemeKind.DROP_LOW)),
    Rule("keep-low", KEEP_LOW_RE, _counted(LexemeKind.KEEP_LOW)),
    Rule("drop-high", DROP_HIGH_RE, _counted(LexemeKind.DROP_HIGH)),
    Rule("explode-combine", EXPLODE_COMBINE_RE, _conditioned(LexemeKind.EXPLODE_COMBINE)),
    Rule("explode", EXPLODE_RE, _conditioned(LexemeKind.EXPLODE)),
    Rule("reroll", REROLL_RE, _conditioned(LexemeKind.REROLL)),
    Rule("identifier", IDENTIFIER_RE, _identifier),
)


class Lexer:
    """Tokenizes notation using ``RULES``.

    ``fields`` is a read-only lookup of inline numeric fields; bare
    identifiers resolve through it. An identifier that does not resolve still
    claims its whole span when it is the longest match, so ``dex`` is never
    read as a die followed by ``ex``. It yields no lexeme at all. Directly
    after a dice group or modifier, modifier rules keep precedence instead.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        fields: Mapping[str, float] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.fields: Mapping[str, float] = fields if fields is not None else self.settings.fields

    def tokenize(self, text: str) -> list[Lexeme]:
        lexemes: list[Lexeme] = []
        pos = 0
        while pos < len(text):
            # Right after a dice group, letters continue its modifier chain (4d6r1kh3).
            chained = bool(lexemes) and (
                lexemes[-1].is_modifier or _DICE_DATA.match(lexemes[-1].data) is not None
            )
            best: tuple[Rule, re.Match] | None = None
            unresolved: re.Match | None = None
            for rule in RULES:
                match = rule.pattern.match(text, pos)
                if match is None or match.end() == pos:
                    continue
                if rule.name == "identifier" and match.group(0) not in self.fields:
                    unresolved = match
                    if chained:
                        continue
                if best is None or match.end() > best[1].end():
                    best = (rule, match)
            if best is None and unresolved is None:
                raise LexError(text, pos)
            if best is None or best[1] is unresolved:
                logger.warning("Unresolved field %r in %r", unresolved.group(0), text)
                pos = unresolved.end()
                continue
            rule, match = best
            lexeme = rule.build(match, self)
            if lexeme is not None:
                lexemes.append(lexeme)
            pos = match.end()
        logger.debug("Lexed %r into %s", text, [lx.original for lx in lexemes])
        return lexemes


def tokenize(
    text: str,
    settings: Settings | None = None,
    fields: Mapping[str, float] | None = None,
) -> list[Lexeme]:
    return Lexer(settings, fields).tokenize(text)
