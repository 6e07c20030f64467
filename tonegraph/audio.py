from __future__ import annotations

import asyncio
import io
import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, cast

import numpy as np
import soundfile as sf  # type: ignore[import]
from numpy.typing import NDArray

from .errors import DecodeError, ValidationError

FloatArray = NDArray[np.float32]
AudioNumbers = NDArray[np.floating[Any]] | Sequence[float] | FloatArray

SAMPLE_RATE = 44_100

_LOGGER = logging.getLogger("tonegraph.audio")


@dataclass(frozen=True, slots=True, eq=False)
class DecodedAudio:
    """Mono samples and the rate the decoder reported for them."""

    sample_rate: int
    samples: FloatArray

    @property
    def duration(self) -> float:
        return self.samples.size / self.sample_rate if self.sample_rate > 0 else 0.0


def ensure_audio_contract(
    audio: AudioNumbers,
    *,
    check_peak: bool = True,
) -> FloatArray:
    """Normalize dtype/range/shape to mono float32 within [-1, 1]."""

    mono: FloatArray = np.asarray(audio, dtype=np.float32).reshape(-1)
    if mono.size == 0 or not check_peak:
        return mono
    peak = float(np.max(np.abs(mono)))
    if peak > 1.0:
        mono = mono / peak
    return mono


def decode_audio(data: bytes) -> DecodedAudio:
    """Decode an encoded audio container to mono by averaging its channels."""

    if not data:
        raise DecodeError("Cannot decode empty audio data")
    try:
        frames, sample_rate = sf.read(io.BytesIO(data), dtype="float32", always_2d=True)
    except (sf.SoundFileError, RuntimeError, TypeError) as exc:
        _LOGGER.warning("Failed to decode %d bytes of audio: %s", len(data), exc, exc_info=True)
        raise DecodeError(f"Unrecognized audio data: {exc}") from exc
    channels = cast(NDArray[np.float32], frames)
    mono: FloatArray = channels.mean(axis=1).astype(np.float32)
    _LOGGER.debug(
        "Decoded %d frames x %d channels at %d Hz",
        channels.shape[0],
        channels.shape[1],
        sample_rate,
    )
    return DecodedAudio(sample_rate=int(sample_rate), samples=mono)


async def decode_file(data: bytes) -> DecodedAudio:
    """Decode off the event loop; see :func:`decode_audio`."""

    return await asyncio.to_thread(decode_audio, data)


def write_wav(
    path: str | Path,
    audio: AudioNumbers,
    *,
    sample_rate: int = SAMPLE_RATE,
) -> Path:
    """Write mono samples to a wav file."""

    if sample_rate <= 0:
        raise ValidationError(f"sample_rate must be positive, got {sample_rate}")
    target = Path(path)
    match audio:
        case str() | bytes():
            raise ValidationError("audio must be a sequence of samples")
        case _:
            pass
    write_fn = getattr(sf, "write", None)
    assert callable(write_fn)
    write_audio = cast(Callable[[Path | str, AudioNumbers, int], None], write_fn)
    normalized = ensure_audio_contract(audio)
    write_audio(target, normalized, sample_rate)  # type: ignore[reportUnknownMemberType]
    return target
