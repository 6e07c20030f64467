from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from .envelope import RampKind
from .errors import ValidationError

FloatArray = NDArray[np.float64]


@dataclass(frozen=True, slots=True)
class AutomationEvent:
    value: float
    time: float
    ramp: RampKind


class AutomationParam:
    """Timeline of set/linear-ramp events for one device parameter.

    Event times must never go backwards; a ramp interpolates from the
    previous event (or from ``default`` at time 0) to its own value.
    """

    def __init__(self, name: str, default: float) -> None:
        self.name = name
        self.default = default
        self._events: list[AutomationEvent] = []

    @property
    def events(self) -> tuple[AutomationEvent, ...]:
        return tuple(self._events)

    def set_value_at_time(self, value: float, time: float) -> None:
        self._append(AutomationEvent(value, time, "set"))

    def linear_ramp_to_value_at_time(self, value: float, time: float) -> None:
        self._append(AutomationEvent(value, time, "linear"))

    def _append(self, event: AutomationEvent) -> None:
        if not (math.isfinite(event.value) and math.isfinite(event.time)):
            raise ValidationError(f"{self.name}: automation values must be finite, got {event}")
        if self._events and event.time < self._events[-1].time:
            raise ValidationError(
                f"{self.name}: event at {event.time} precedes the last scheduled "
                f"event at {self._events[-1].time}"
            )
        self._events.append(event)

    def value_at(self, time: float) -> float:
        return float(self.values_at(np.array([time], dtype=np.float64))[0])

    def values_at(self, times: FloatArray) -> FloatArray:
        out = np.full(times.shape, self.default, dtype=np.float64)
        prev_value = self.default
        prev_time = 0.0
        for event in self._events:
            if event.ramp == "linear" and event.time > prev_time:
                mask = (times >= prev_time) & (times < event.time)
                if np.any(mask):
                    fraction = (times[mask] - prev_time) / (event.time - prev_time)
                    out[mask] = prev_value + (event.value - prev_value) * fraction
            out[times >= event.time] = event.value
            prev_value = event.value
            prev_time = event.time
        return out
