# pyright: reportUnknownVariableType=false
# pyright: reportUnknownMemberType=false

"""
Tone synthesis primitives used by the offline device.

1. Automation curves arrive as per-sample frequency (Hz) or playback-rate arrays.
2. Phase is accumulated from the curve so sweeps stay continuous.
3. Square and sawtooth are rendered oversampled and decimated to tame aliasing.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Callable, Literal, TypeAlias, cast, get_args

import numpy as np
from numpy.typing import NDArray
from scipy.signal import decimate  # type: ignore[import]

FloatArray: TypeAlias = NDArray[np.float64]
OscillatorKind = Literal["sine", "square", "sawtooth", "triangle"]
OSCILLATOR_KINDS: tuple[OscillatorKind, ...] = get_args(OscillatorKind)
ShapeFn: TypeAlias = Callable[[FloatArray], FloatArray]

OVERSAMPLE = 2


def _sine(cycles: FloatArray) -> FloatArray:
    return np.sin(2 * np.pi * cycles)


def _square(cycles: FloatArray) -> FloatArray:
    return np.where(cycles % 1.0 < 0.5, 1.0, -1.0)


def _sawtooth(cycles: FloatArray) -> FloatArray:
    return 2.0 * (cycles % 1.0) - 1.0


def _triangle(cycles: FloatArray) -> FloatArray:
    # Starts at zero and rises, matching the sine's phase.
    shifted = cycles + 0.25
    return 2 * np.abs(2 * (shifted - np.floor(shifted + 0.5))) - 1


SHAPES: Mapping[OscillatorKind, ShapeFn] = MappingProxyType(
    {
        "sine": _sine,
        "square": _square,
        "sawtooth": _sawtooth,
        "triangle": _triangle,
    }
)

# Shapes with discontinuities get rendered oversampled.
_ALIASING_KINDS: frozenset[OscillatorKind] = frozenset({"square", "sawtooth"})


def shape(kind: OscillatorKind, cycles: FloatArray) -> FloatArray:
    """Evaluate an oscillator shape at ``cycles`` (phase in whole cycles)."""
    try:
        fn = SHAPES[kind]
    except KeyError:
        raise ValueError(f"Unknown oscillator kind: {kind}. Valid: {list(SHAPES)}") from None
    return fn(cycles)


def accumulate_cycles(rate: FloatArray, step: float) -> FloatArray:
    """Running phase for a per-sample ``rate``; the first sample sits at phase 0."""
    if rate.size == 0:
        return np.zeros(0)
    increments = rate * step
    cycles = np.cumsum(increments)
    return cycles - increments[0]


def _fit_length(signal: FloatArray, num_samples: int) -> FloatArray:
    if len(signal) > num_samples:
        return signal[:num_samples]
    if len(signal) < num_samples:
        return np.pad(signal, (0, num_samples - len(signal)))
    return signal


def render_oscillator(
    kind: OscillatorKind,
    frequency: Callable[[FloatArray], FloatArray],
    start: float,
    num_samples: int,
    sr: int,
) -> FloatArray:
    """Render ``num_samples`` of an oscillator that started at ``start`` seconds.

    ``frequency`` maps absolute times to Hz.
    """

    if num_samples <= 0:
        return np.zeros(0)
    if kind not in _ALIASING_KINDS:
        times = start + np.arange(num_samples) / sr
        return shape(kind, accumulate_cycles(frequency(times), 1.0 / sr))

    sr_high = sr * OVERSAMPLE
    num_samples_high = num_samples * OVERSAMPLE  # <- exact multiple
    times = start + np.arange(num_samples_high) / sr_high
    signal_high = shape(kind, accumulate_cycles(frequency(times), 1.0 / sr_high))
    signal = decimate(signal_high, OVERSAMPLE, ftype="fir", zero_phase=True)
    assert isinstance(signal, np.ndarray)
    return _fit_length(cast(FloatArray, signal), num_samples)


def render_buffer(
    data: FloatArray,
    rate: Callable[[FloatArray], FloatArray],
    start: float,
    num_samples: int,
    sr: int,
    *,
    loop: bool,
) -> FloatArray:
    """Read ``data`` at a per-sample playback rate, interpolating between frames.

    One-shot buffers fall silent past their last frame.
    """

    if num_samples <= 0 or data.size == 0:
        return np.zeros(max(num_samples, 0))
    times = start + np.arange(num_samples) / sr
    position = accumulate_cycles(rate(times), 1.0)
    frames = np.arange(data.size + 1, dtype=np.float64)
    if loop:
        wrapped = np.append(data, data[0])
        return np.interp(position % data.size, frames, wrapped)
    padded = np.append(data, 0.0)
    out = np.interp(position, frames, padded, left=0.0, right=0.0)
    out[position >= data.size] = 0.0
    return out


def single_cycle_samples(kind: OscillatorKind, length: int) -> FloatArray:
    """One cycle of ``kind`` spread over ``length`` samples."""
    if length <= 0:
        raise ValueError(f"cycle length must be positive, got {length}")
    return shape(kind, np.arange(length) / length)
