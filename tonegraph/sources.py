"""Source algebra: immutable sound descriptions and how they instantiate.

Sources are plain frozen values and may be instantiated any number of times.
Each variant is handled by one case of :func:`instantiate`.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import TypeAlias

from .completion import Completion
from .device import AudioDevice
from .envelope import ADSR, schedule_envelope
from .errors import ValidationError
from .playback import CompositePlayback, MutePlayback, NotePlayback, Playback
from .waveform import BufferedWaveform, OscillatorWaveform, Waveform, playback_rate_of

_LOGGER = logging.getLogger("tonegraph.sources")


def _check_duration(duration: float) -> None:
    if isinstance(duration, bool) or not isinstance(duration, (int, float)):
        raise ValidationError(f"duration must be a number, got {duration!r}")
    if not math.isfinite(duration) or duration < 0:
        raise ValidationError(f"duration must be finite and >= 0, got {duration}")


class _SourceOps:
    __slots__ = ()

    duration: float

    def instantiate(
        self,
        device: AudioDevice,
        start: float | None = None,
        sink: object | None = None,
    ) -> Playback:
        return instantiate(self, device, start, sink)  # type: ignore[arg-type]


@dataclass(frozen=True, slots=True)
class SweepPoint:
    """Frequency reached ``offset`` seconds after the note starts."""

    frequency: float
    offset: float


@dataclass(frozen=True, slots=True)
class MuteSource(_SourceOps):
    duration: float

    def __post_init__(self) -> None:
        _check_duration(self.duration)


def _check_note(
    duration: float,
    freq: float,
    vol: float,
    envelope: ADSR,
    sweep: tuple[SweepPoint, ...],
) -> None:
    _check_duration(duration)
    if not math.isfinite(freq) or freq <= 0:
        raise ValidationError(f"freq must be finite and > 0, got {freq}")
    if not math.isfinite(vol) or vol < 0:
        raise ValidationError(f"vol must be finite and >= 0, got {vol}")
    if not isinstance(envelope, ADSR):
        raise ValidationError(f"envelope must be an ADSR, got {type(envelope).__name__}")
    previous = 0.0
    for point in sweep:
        if not math.isfinite(point.frequency) or point.frequency <= 0:
            raise ValidationError(f"sweep frequency must be > 0, got {point.frequency}")
        if not previous < point.offset <= duration:
            raise ValidationError(
                f"sweep offsets must increase strictly within (0, {duration}], got {point.offset}"
            )
        previous = point.offset


@dataclass(frozen=True, slots=True)
class OscillatorNoteSource(_SourceOps):
    duration: float
    freq: float
    vol: float
    waveform: OscillatorWaveform
    envelope: ADSR
    sweep: tuple[SweepPoint, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "sweep", tuple(self.sweep))
        if not isinstance(self.waveform, OscillatorWaveform):
            raise ValidationError(f"expected an OscillatorWaveform, got {self.waveform!r}")
        _check_note(self.duration, self.freq, self.vol, self.envelope, self.sweep)


@dataclass(frozen=True, slots=True)
class BufferedNoteSource(_SourceOps):
    duration: float
    freq: float
    vol: float
    waveform: BufferedWaveform
    envelope: ADSR
    sweep: tuple[SweepPoint, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "sweep", tuple(self.sweep))
        if not isinstance(self.waveform, BufferedWaveform):
            raise ValidationError(f"expected a BufferedWaveform, got {self.waveform!r}")
        _check_note(self.duration, self.freq, self.vol, self.envelope, self.sweep)


def _coerce_children(sources: Iterable[Source]) -> tuple[Source, ...]:
    children = tuple(sources)
    for child in children:
        if not isinstance(child, SOURCE_TYPES):
            raise ValidationError(f"not a source: {child!r}")
    return children


@dataclass(frozen=True, slots=True)
class SequentialSource(_SourceOps):
    """Children played back to back; lasts the sum of their durations."""

    sources: tuple[Source, ...] = ()
    duration: float = field(init=False)

    def __post_init__(self) -> None:
        children = _coerce_children(self.sources)
        object.__setattr__(self, "sources", children)
        object.__setattr__(self, "duration", sum((child.duration for child in children), 0.0))


@dataclass(frozen=True, slots=True)
class ParallelSource(_SourceOps):
    """Children started together; lasts as long as the longest."""

    sources: tuple[Source, ...] = ()
    duration: float = field(init=False)

    def __post_init__(self) -> None:
        children = _coerce_children(self.sources)
        object.__setattr__(self, "sources", children)
        object.__setattr__(
            self, "duration", max((child.duration for child in children), default=0.0)
        )


Source: TypeAlias = (
    MuteSource | OscillatorNoteSource | BufferedNoteSource | SequentialSource | ParallelSource
)
SOURCE_TYPES = (
    MuteSource,
    OscillatorNoteSource,
    BufferedNoteSource,
    SequentialSource,
    ParallelSource,
)


def sequence(*sources: Source) -> SequentialSource:
    return SequentialSource(sources)


def parallel(*sources: Source) -> ParallelSource:
    return ParallelSource(sources)


def create_note(
    duration: float,
    freq: float,
    vol: float,
    waveform: Waveform,
    envelope: ADSR,
    sweep: Iterable[SweepPoint] = (),
) -> OscillatorNoteSource | BufferedNoteSource:
    match waveform:
        case OscillatorWaveform():
            return OscillatorNoteSource(duration, freq, vol, waveform, envelope, tuple(sweep))
        case BufferedWaveform():
            return BufferedNoteSource(duration, freq, vol, waveform, envelope, tuple(sweep))
        case _:
            raise ValidationError(f"Unsupported waveform: {waveform!r}")


def _play_note(
    device: AudioDevice,
    sink: object,
    start: float,
    source: OscillatorNoteSource | BufferedNoteSource,
) -> NotePlayback:
    end = start + source.duration
    match source:
        case OscillatorNoteSource(waveform=OscillatorWaveform(kind=kind)):
            generator = device.create_tone_generator(kind)
            scale = 1.0
        case BufferedNoteSource(waveform=waveform):
            if waveform.sample_rate != device.sample_rate:
                _LOGGER.debug(
                    "Buffered waveform built for %d Hz playing on a %d Hz device",
                    waveform.sample_rate,
                    device.sample_rate,
                )
            generator = device.create_tone_generator(waveform)
            scale = playback_rate_of(waveform, 1.0)
        case _:
            raise ValidationError(f"not a note source: {source!r}")
    control = device.create_amplitude_control()
    schedule_envelope(control, start, source.duration, source.vol, source.envelope)
    generator.set_frequency_or_rate(source.freq * scale, start)
    for point in source.sweep:
        generator.ramp_frequency_or_rate(point.frequency * scale, start + point.offset)
    device.connect(generator, control)
    device.connect(control, sink)
    generator.start(start)
    generator.stop(end)
    return NotePlayback(device, sink, start, end, generator=generator, control=control)


def instantiate(
    source: Source,
    device: AudioDevice,
    start: float | None = None,
    sink: object | None = None,
) -> Playback:
    """Schedule ``source`` on ``device`` and return its live playback.

    ``start`` defaults to the device's current time and ``sink`` to its
    destination.
    """

    begin = device.current_time() if start is None else start
    target = device.destination if sink is None else sink
    match source:
        case MuteSource(duration=duration):
            return MutePlayback(device, target, begin, begin + duration)
        case OscillatorNoteSource() | BufferedNoteSource():
            return _play_note(device, target, begin, source)
        case SequentialSource(sources=children):
            playbacks: list[Playback] = []
            cursor = begin
            for child in children:
                playback = instantiate(child, device, cursor, target)
                playbacks.append(playback)
                cursor = playback.end
            return CompositePlayback(device, target, begin, cursor, playbacks)
        case ParallelSource(sources=children):
            playbacks = [instantiate(child, device, begin, target) for child in children]
            end = max((playback.end for playback in playbacks), default=begin)
            return CompositePlayback(device, target, begin, end, playbacks)
        case _:
            raise ValidationError(f"not a source: {source!r}")


def join_playback_and_source(playback: Playback, source: Source) -> Playback:
    """Start ``source`` where ``playback`` ends, stopping either when the other stops.

    Neither owns the other; both stay independently stoppable.
    """

    follower = instantiate(source, playback.device, playback.end, playback.sink)

    def _link(leader: Playback, other: Playback) -> None:
        def _on_settled(view: Completion) -> None:
            if view.cancelled():
                other.stop("joined playback stopped")

        leader.completion.add_done_callback(_on_settled)

    _link(playback, follower)
    _link(follower, playback)
    return follower
