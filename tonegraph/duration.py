"""Exact rational note lengths.

Lengths are counted in whole notes and kept as integer fractions so tie
chains accumulate without floating-point drift.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from fractions import Fraction

from .errors import ValidationError

# Quarter-note beats per whole note.
BEATS_PER_WHOLE = 4


@dataclass(frozen=True, slots=True)
class NoteLength:
    """Duration ``n/d`` of a whole note."""

    n: int
    d: int

    def __post_init__(self) -> None:
        for name, value in (("n", self.n), ("d", self.d)):
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValidationError(f"NoteLength.{name} must be an integer, got {value!r}")
        if self.d <= 0:
            raise ValidationError(f"NoteLength denominator must be positive, got {self.d}")
        if self.n <= 0:
            raise ValidationError(f"NoteLength numerator must be positive, got {self.n}")

    def __add__(self, other: object) -> NoteLength:
        if not isinstance(other, NoteLength):
            return NotImplemented
        return add(self, other)

    def __str__(self) -> str:
        return f"{self.n}/{self.d}"

    def reduced(self) -> NoteLength:
        divisor = math.gcd(self.n, self.d)
        return NoteLength(self.n // divisor, self.d // divisor)

    def as_fraction(self) -> Fraction:
        return Fraction(self.n, self.d)

    def to_seconds(self, seconds_per_whole: float) -> float:
        return to_seconds(self, seconds_per_whole)


def add(a: NoteLength, b: NoteLength) -> NoteLength:
    """Exact sum of two lengths, reduced by their greatest common divisor."""
    m = math.lcm(a.d, b.d)
    numerator = a.n * (m // a.d) + b.n * (m // b.d)
    divisor = math.gcd(numerator, m)
    return NoteLength(numerator // divisor, m // divisor)


def to_seconds(length: NoteLength, seconds_per_whole: float) -> float:
    return length.n / length.d * seconds_per_whole


def seconds_per_whole(tempo: float) -> float:
    """Seconds in one whole note at ``tempo`` quarter-note beats per minute."""
    if tempo <= 0:
        raise ValidationError(f"tempo must be positive, got {tempo}")
    return 60.0 / tempo * BEATS_PER_WHOLE
