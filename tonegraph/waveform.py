from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np
from numpy.typing import NDArray

from .audio import SAMPLE_RATE, decode_file
from .errors import ValidationError
from .oscillators import OSCILLATOR_KINDS, OscillatorKind, single_cycle_samples


@dataclass(frozen=True, slots=True)
class OscillatorWaveform:
    kind: OscillatorKind

    def __post_init__(self) -> None:
        if self.kind not in OSCILLATOR_KINDS:
            raise ValidationError(
                f"Unknown oscillator kind: {self.kind!r}. Valid: {list(OSCILLATOR_KINDS)}"
            )


@dataclass(frozen=True, slots=True, eq=False)
class BufferedWaveform:
    """Sampled waveform played through a buffer source.

    ``samples`` are mean-centred on construction. ``base_frequency`` is the
    pitch heard when the buffer plays at ``sample_rate`` with rate 1.
    """

    samples: NDArray[np.float32]
    base_frequency: float
    loop: bool = False
    sample_rate: int = SAMPLE_RATE

    def __post_init__(self) -> None:
        raw = np.asarray(self.samples, dtype=np.float64).reshape(-1)
        if raw.size == 0:
            raise ValidationError("BufferedWaveform needs at least one sample")
        if not np.all(np.isfinite(raw)):
            raise ValidationError("BufferedWaveform samples must be finite")
        if not math.isfinite(self.base_frequency) or self.base_frequency <= 0:
            raise ValidationError(
                f"base_frequency must be finite and > 0, got {self.base_frequency}"
            )
        if self.sample_rate <= 0:
            raise ValidationError(f"sample_rate must be positive, got {self.sample_rate}")
        corrected = (raw - raw.mean()).astype(np.float32)
        corrected.setflags(write=False)
        object.__setattr__(self, "samples", corrected)

    @property
    def cycle_length(self) -> float:
        """Samples per cycle at the native rate."""
        return self.sample_rate / self.base_frequency


Waveform = OscillatorWaveform | BufferedWaveform


@dataclass(frozen=True, slots=True)
class FromRecorded:
    """Recorded audio at ``sample_rate`` whose pitch is ``base_frequency``."""

    sample_rate: float
    base_frequency: float


@dataclass(frozen=True, slots=True)
class FromCycle:
    """Synthesised data where one cycle spans ``cycle_length`` samples."""

    cycle_length: float


FreqParam = FromRecorded | FromCycle


def buffered_waveform(
    samples: Sequence[float] | NDArray[Any],
    freq_param: FreqParam | None = None,
    loop: bool = False,
    *,
    sample_rate: int = SAMPLE_RATE,
) -> BufferedWaveform:
    """Build a buffered waveform for a device running at ``sample_rate``.

    Without ``freq_param`` the whole sample sequence is taken as one cycle.
    """

    data = np.asarray(samples, dtype=np.float64).reshape(-1)
    param = freq_param if freq_param is not None else FromCycle(cycle_length=data.size)
    match param:
        case FromRecorded(sample_rate=source_rate, base_frequency=base):
            if source_rate <= 0 or base <= 0:
                raise ValidationError(
                    f"recorded sample_rate and base_frequency must be > 0, got {param}"
                )
            base_frequency = base * sample_rate / source_rate
        case FromCycle(cycle_length=cycle_length):
            if cycle_length <= 0:
                raise ValidationError(f"cycle_length must be > 0, got {cycle_length}")
            base_frequency = sample_rate / cycle_length
        case _:
            raise ValidationError(f"Unsupported frequency parameter: {type(param).__name__}")
    return BufferedWaveform(
        samples=data.astype(np.float32),
        base_frequency=base_frequency,
        loop=loop,
        sample_rate=sample_rate,
    )


async def buffered_waveform_of_file(
    data: bytes,
    base_frequency: float = 440.0,
    loop: bool = False,
    *,
    sample_rate: int = SAMPLE_RATE,
) -> BufferedWaveform:
    decoded = await decode_file(data)
    return buffered_waveform(
        decoded.samples,
        FromRecorded(sample_rate=decoded.sample_rate, base_frequency=base_frequency),
        loop,
        sample_rate=sample_rate,
    )


def single_cycle(
    kind: OscillatorKind,
    length: int,
    *,
    sample_rate: int = SAMPLE_RATE,
) -> BufferedWaveform:
    """Looping buffered waveform holding one cycle of an oscillator shape."""
    if length <= 0:
        raise ValidationError(f"cycle length must be positive, got {length}")
    return buffered_waveform(
        single_cycle_samples(kind, length),
        FromCycle(cycle_length=length),
        loop=True,
        sample_rate=sample_rate,
    )


def playback_rate_of(waveform: BufferedWaveform, freq: float) -> float:
    """Rate that makes ``waveform`` sound at ``freq``."""
    return freq / waveform.base_frequency
