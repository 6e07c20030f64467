from __future__ import annotations

import logging
from collections.abc import Iterable

from .duration import seconds_per_whole
from .envelope import ADSR
from .mml import Note
from .settings import C0_FREQUENCY
from .sources import MuteSource, SequentialSource, Source, create_note
from .waveform import Waveform

_LOGGER = logging.getLogger("tonegraph.melody")


def note_frequency(scale: int, reference_frequency: float = C0_FREQUENCY) -> float:
    """Equal-tempered frequency ``scale`` semitones above the reference."""
    return reference_frequency * 2 ** (scale / 12)


def note_to_source(
    note: Note,
    *,
    seconds_per_whole_note: float,
    waveform: Waveform,
    envelope: ADSR,
    volume: float,
    reference_frequency: float = C0_FREQUENCY,
) -> Source:
    duration = note.length.to_seconds(seconds_per_whole_note)
    if note.scale is None:
        return MuteSource(duration)
    freq = note_frequency(note.scale, reference_frequency)
    return create_note(duration, freq, volume, waveform, envelope)


def melody_to_source(
    melody: Iterable[Note],
    *,
    tempo: float,
    waveform: Waveform,
    envelope: ADSR,
    volume: float,
    reference_frequency: float = C0_FREQUENCY,
) -> SequentialSource:
    """Play the notes of ``melody`` back to back at ``tempo`` quarter notes per minute."""

    whole = seconds_per_whole(tempo)
    sources = [
        note_to_source(
            note,
            seconds_per_whole_note=whole,
            waveform=waveform,
            envelope=envelope,
            volume=volume,
            reference_frequency=reference_frequency,
        )
        for note in melody
    ]
    source = SequentialSource(tuple(sources))
    _LOGGER.debug("Mapped %d notes to %.3fs of audio", len(sources), source.duration)
    return source
