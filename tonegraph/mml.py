"""Music Macro Language parsing.

The grammar is data: a :class:`LiteralSet` lists the patterns for note
names, rests, accidentals and length extensions, so other locales only need
another literal set. Patterns are plain strings or compiled regular
expressions and always match at the cursor, never further ahead.

Per position the parser skips whitespace, then tries the note names in table
order, then the rest pattern. Anything else is skipped one character at a
time.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from .duration import NoteLength
from .errors import ParseError, ValidationError

_LOGGER = logging.getLogger("tonegraph.mml")

PatternLike = Union[str, re.Pattern[str]]

# Semitone offset of each note-name slot from the reference pitch.
SCALE_OFFSETS: tuple[int, ...] = (0, 2, 3, 4, 5, 6, 8, 10)
SEMITONES_PER_OCTAVE = 12
DEFAULT_OCTAVE = 4
DEFAULT_LENGTH = NoteLength(1, 4)

_DIGITS = re.compile(r"\d+")
_WHITESPACE = re.compile(r"\s*")


def match_at(pattern: PatternLike, text: str, pos: int) -> int:
    """Length of ``pattern`` matched at ``pos``; 0 when it does not match there."""
    match pattern:
        case str():
            return len(pattern) if pattern and text.startswith(pattern, pos) else 0
        case re.Pattern():
            found = pattern.match(text, pos)
            return found.end() - pos if found else 0
        case _:
            raise ValidationError(f"Unsupported pattern: {pattern!r}")


class LiteralSet(BaseModel):
    """Locale-specific tokens of the MML grammar."""

    scales: tuple[PatternLike, ...]
    rest: PatternLike
    sharp: PatternLike
    flat: PatternLike
    long_syllable: PatternLike
    half_syllable: PatternLike
    offsets: tuple[int, ...] = SCALE_OFFSETS
    rhythms: Mapping[str, Any] | None = None

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )

    @field_validator("rhythms")
    @classmethod
    def _check_rhythms(cls, value: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
        if value is None:
            return None
        from .sources import SOURCE_TYPES

        for name, source in value.items():
            if not isinstance(source, SOURCE_TYPES):
                raise ValueError(f"rhythm {name!r} is not a source")
        return dict(value)

    @model_validator(mode="after")
    def _check_patterns(self) -> "LiteralSet":
        if not self.scales:
            raise ValueError("scales must list at least one pattern")
        if len(self.offsets) < len(self.scales):
            raise ValueError(
                f"{len(self.scales)} scale patterns need as many offsets, got {len(self.offsets)}"
            )
        patterns = [
            *self.scales,
            self.rest,
            self.sharp,
            self.flat,
            self.long_syllable,
            self.half_syllable,
        ]
        for pattern in patterns:
            if isinstance(pattern, str) and not pattern:
                raise ValueError("literal patterns must not be empty strings")
        return self


def parse_literal_set(payload: Mapping[str, Any]) -> LiteralSet:
    """Build a literal set from plain data, raising ValidationError on failure."""

    try:
        return LiteralSet.model_validate(payload)
    except PydanticValidationError as exc:
        _LOGGER.warning("Invalid literal set: %s", exc, exc_info=True)
        raise ValidationError(str(exc)) from exc


STANDARD_LITERALS = LiteralSet(
    scales=("c", "d", "e", "f", "g", "a", "b"),
    rest="r",
    sharp=re.compile(r"[#+]"),
    flat="-",
    long_syllable="^",
    half_syllable=".",
)

JAPANESE_LITERALS = LiteralSet(
    scales=("ド", "レ", "ミ", "ファ", "ソ", "ラ", "シ"),
    rest="ッ",
    sharp=re.compile(r"[#♯]"),
    flat="♭",
    long_syllable="ー",
    half_syllable="・",
)

LOCALES: Mapping[str, LiteralSet] = {
    "standard": STANDARD_LITERALS,
    "japanese": JAPANESE_LITERALS,
}


@dataclass(frozen=True, slots=True)
class Note:
    """``scale`` semitones above the reference pitch, or a rest when None."""

    scale: int | None
    length: NoteLength

    @property
    def is_rest(self) -> bool:
        return self.scale is None


Melody = list[Note]


@dataclass(slots=True)
class ParserState:
    default_length: NoteLength = DEFAULT_LENGTH
    octave: int = DEFAULT_OCTAVE


class Parser:
    def __init__(self, literals: LiteralSet = STANDARD_LITERALS) -> None:
        self.literals = literals

    def parse(self, mml: str, state: ParserState | None = None) -> Melody:
        state = state if state is not None else ParserState()
        melody: Melody = []
        skipped = 0
        pos = 0
        while pos < len(mml):
            whitespace = _WHITESPACE.match(mml, pos)
            assert whitespace is not None
            pos = whitespace.end()
            if pos >= len(mml):
                break
            parsed = self._note_at(mml, pos, state)
            if parsed is None:
                skipped += 1
                pos += 1
                continue
            note, pos = parsed
            melody.append(note)
        if skipped:
            _LOGGER.debug("Skipped %d unrecognized characters", skipped)
        return melody

    def _note_at(self, text: str, pos: int, state: ParserState) -> tuple[Note, int] | None:
        literals = self.literals
        for index, pattern in enumerate(literals.scales):
            size = match_at(pattern, text, pos)
            if not size:
                continue
            accidental, pos = self._accidentals(text, pos + size)
            length, pos = self._length(text, pos, state)
            scale = literals.offsets[index] + state.octave * SEMITONES_PER_OCTAVE + accidental
            return Note(scale=scale, length=length), pos
        size = match_at(literals.rest, text, pos)
        if size:
            length, pos = self._length(text, pos + size, state)
            return Note(scale=None, length=length), pos
        return None

    def _accidentals(self, text: str, pos: int) -> tuple[int, int]:
        shift = 0
        while True:
            size = match_at(self.literals.sharp, text, pos)
            if size:
                shift += 1
                pos += size
                continue
            size = match_at(self.literals.flat, text, pos)
            if size:
                shift -= 1
                pos += size
                continue
            return shift, pos

    def _length(self, text: str, pos: int, state: ParserState) -> tuple[NoteLength, int]:
        base = state.default_length
        digits = _DIGITS.match(text, pos)
        if digits:
            token = digits.group()
            try:
                denominator = int(token)
            except ValueError as exc:
                raise ParseError(f"Malformed length {token!r} at {pos}", position=pos) from exc
            if denominator <= 0:
                raise ParseError(f"Length {token!r} at {pos} must be positive", position=pos)
            base = NoteLength(1, denominator)
            pos = digits.end()
        # Dots extend the same way ties do: each adds the base length again.
        length = base
        while True:
            size = match_at(self.literals.long_syllable, text, pos) or match_at(
                self.literals.half_syllable, text, pos
            )
            if not size:
                return length, pos
            length = length + base
            pos += size


def parse(
    mml: str,
    literals: LiteralSet = STANDARD_LITERALS,
    state: ParserState | None = None,
) -> Melody:
    return Parser(literals).parse(mml, state)
