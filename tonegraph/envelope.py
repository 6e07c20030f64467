from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from .errors import ValidationError

if TYPE_CHECKING:
    from .device import AmplitudeControl

_LOGGER = logging.getLogger("tonegraph.envelope")

RampKind = Literal["set", "linear"]


@dataclass(frozen=True, slots=True)
class ADSR:
    """Amplitude envelope shape.

    ``attack``, ``decay`` and ``release`` are seconds, ``sustain`` is a level
    in ``[0, 1]`` relative to the note volume. The release phase is whatever
    remains of the note after attack and decay; ``release`` itself does not
    move any control point.
    """

    attack: float
    decay: float
    sustain: float
    release: float

    def __post_init__(self) -> None:
        for name in ("attack", "decay", "sustain", "release"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"ADSR.{name} must be a number, got {value!r}")
            if not math.isfinite(value) or value < 0:
                raise ValidationError(f"ADSR.{name} must be finite and >= 0, got {value}")
        if self.sustain > 1:
            raise ValidationError(f"ADSR.sustain must be within [0, 1], got {self.sustain}")


@dataclass(frozen=True, slots=True)
class ControlPoint:
    """Gain ``value`` reached at absolute ``time``.

    ``ramp="set"`` jumps to the value at ``time``; ``"linear"`` ramps to it
    from the previous point.
    """

    value: float
    time: float
    ramp: RampKind = "linear"


def envelope_points(
    time: float,
    duration: float,
    vol: float,
    envelope: ADSR,
) -> tuple[ControlPoint, ...]:
    """Five control points shaping a note of ``duration`` seconds starting at ``time``.

    When ``attack + decay`` does not fit in ``duration`` both are scaled down
    by the same factor, so the points stay non-decreasing in time.
    """

    if duration < 0 or not math.isfinite(duration):
        raise ValidationError(f"envelope duration must be finite and >= 0, got {duration}")
    attack = envelope.attack
    decay = envelope.decay
    if attack + decay > duration:
        scale = duration / (attack + decay)
        _LOGGER.debug(
            "Clamping envelope attack=%s decay=%s into %ss (scale %.4f)",
            attack,
            decay,
            duration,
            scale,
        )
        attack *= scale
        decay *= scale
    end = time + duration
    attack_end = min(time + attack, end)
    decay_end = min(attack_end + decay, end)
    held = vol * envelope.sustain
    return (
        ControlPoint(0.0, time, "set"),
        ControlPoint(vol, attack_end, "linear"),
        ControlPoint(held, decay_end, "linear"),
        # Pins the sustain level so the release ramp starts from it.
        ControlPoint(held, decay_end, "set"),
        ControlPoint(0.0, end, "linear"),
    )


def schedule_envelope(
    control: AmplitudeControl,
    time: float,
    duration: float,
    vol: float,
    envelope: ADSR,
) -> tuple[ControlPoint, ...]:
    points = envelope_points(time, duration, vol, envelope)
    for point in points:
        match point.ramp:
            case "set":
                control.set_value_at_time(point.value, point.time)
            case "linear":
                control.linear_ramp_to_value_at_time(point.value, point.time)
    return points
