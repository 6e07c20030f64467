from __future__ import annotations

from .audio import SAMPLE_RATE, DecodedAudio, decode_audio, decode_file, write_wav
from .completion import Completion, CompletionCell
from .device import AmplitudeControl, AudioDevice, OfflineDevice, ToneGenerator
from .duration import NoteLength, add, seconds_per_whole, to_seconds
from .envelope import ADSR, ControlPoint, envelope_points, schedule_envelope
from .errors import (
    DecodeError,
    ParseError,
    PlaybackCancelled,
    PlaybackError,
    TonegraphError,
    ValidationError,
)
from .logging_utils import configure_logging as _configure_logging
from .melody import melody_to_source, note_frequency
from .mml import (
    JAPANESE_LITERALS,
    LOCALES,
    STANDARD_LITERALS,
    LiteralSet,
    Melody,
    Note,
    Parser,
    ParserState,
    parse,
)
from .playback import CompositePlayback, MutePlayback, NotePlayback, Playback, PlaybackState
from .settings import EngineSettings
from .sources import (
    BufferedNoteSource,
    MuteSource,
    OscillatorNoteSource,
    ParallelSource,
    SequentialSource,
    Source,
    SweepPoint,
    create_note,
    instantiate,
    join_playback_and_source,
    parallel,
    sequence,
)
from .waveform import (
    BufferedWaveform,
    FromCycle,
    FromRecorded,
    OscillatorWaveform,
    Waveform,
    buffered_waveform,
    buffered_waveform_of_file,
    single_cycle,
)

__all__ = [
    "ADSR",
    "JAPANESE_LITERALS",
    "LOCALES",
    "SAMPLE_RATE",
    "STANDARD_LITERALS",
    "AmplitudeControl",
    "AudioDevice",
    "BufferedNoteSource",
    "BufferedWaveform",
    "Completion",
    "CompletionCell",
    "CompositePlayback",
    "ControlPoint",
    "DecodeError",
    "DecodedAudio",
    "EngineSettings",
    "FromCycle",
    "FromRecorded",
    "LiteralSet",
    "Melody",
    "MutePlayback",
    "MuteSource",
    "Note",
    "NoteLength",
    "NotePlayback",
    "OfflineDevice",
    "OscillatorNoteSource",
    "OscillatorWaveform",
    "ParallelSource",
    "ParseError",
    "Parser",
    "ParserState",
    "Playback",
    "PlaybackCancelled",
    "PlaybackError",
    "PlaybackState",
    "SequentialSource",
    "Source",
    "SweepPoint",
    "ToneGenerator",
    "TonegraphError",
    "ValidationError",
    "Waveform",
    "add",
    "buffered_waveform",
    "buffered_waveform_of_file",
    "create_note",
    "decode_audio",
    "decode_file",
    "envelope_points",
    "instantiate",
    "join_playback_and_source",
    "melody_to_source",
    "note_frequency",
    "parallel",
    "parse",
    "schedule_envelope",
    "seconds_per_whole",
    "sequence",
    "single_cycle",
    "to_seconds",
    "write_wav",
]

__version__ = "0.1.0"

_configure_logging()
del _configure_logging
