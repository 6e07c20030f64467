import math
from fractions import Fraction

import pytest

from tonegraph.duration import NoteLength, add, seconds_per_whole, to_seconds
from tonegraph.errors import ValidationError


def test_add_reduces_equal_denominators() -> None:
    assert add(NoteLength(1, 4), NoteLength(1, 4)) == NoteLength(1, 2)


def test_add_mixed_denominators() -> None:
    assert add(NoteLength(1, 4), NoteLength(1, 8)) == NoteLength(3, 8)
    assert NoteLength(1, 6) + NoteLength(1, 3) == NoteLength(1, 2)


def test_tie_chain_stays_exact() -> None:
    total = NoteLength(1, 3)
    for _ in range(2):
        total = total + NoteLength(1, 3)
    assert total == NoteLength(1, 1)
    assert total.as_fraction() == Fraction(1)


def test_reduced_and_str() -> None:
    assert NoteLength(2, 4).reduced() == NoteLength(1, 2)
    assert str(NoteLength(3, 8)) == "3/8"


@pytest.mark.parametrize(
    ("n", "d"),
    [(1, 0), (0, 4), (-1, 4), (1, -4), (True, 4), (1.5, 4)],
)
def test_note_length_rejects_invalid(n: object, d: object) -> None:
    with pytest.raises(ValidationError):
        NoteLength(n, d)  # type: ignore[arg-type]


def test_to_seconds_at_tempo() -> None:
    whole = seconds_per_whole(120)
    assert whole == pytest.approx(2.0)
    assert to_seconds(NoteLength(1, 4), whole) == pytest.approx(0.5)
    assert NoteLength(3, 8).to_seconds(whole) == pytest.approx(0.75)


def test_seconds_per_whole_rejects_non_positive_tempo() -> None:
    with pytest.raises(ValidationError):
        seconds_per_whole(0)
    with pytest.raises(ValueError):
        seconds_per_whole(-60)


@pytest.mark.parametrize(
    ("a", "b"),
    [
        (NoteLength(1, 4), NoteLength(3, 8)),
        (NoteLength(2, 6), NoteLength(5, 10)),
        (NoteLength(7, 12), NoteLength(1, 16)),
    ],
)
def test_add_is_commutative_and_reduced(a: NoteLength, b: NoteLength) -> None:
    total = add(a, b)
    assert total == add(b, a)
    assert math.gcd(total.n, total.d) == 1
    assert total.as_fraction() == a.as_fraction() + b.as_fraction()
