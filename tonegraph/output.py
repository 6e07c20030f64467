"""Real-time output of rendered samples through whichever backend is installed."""

from __future__ import annotations

import logging
from typing import Any, Callable

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict

from .audio import AudioNumbers, FloatArray, ensure_audio_contract
from .errors import PlaybackError, ValidationError
from .spinner import Spinner

_LOGGER = logging.getLogger("tonegraph.output")


class PlaybackBackend(BaseModel):
    name: str
    play_audio: Callable[[FloatArray, int], None]

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )


def _load_backend() -> PlaybackBackend | None:
    return _load_sounddevice() or _load_simpleaudio()


def resolve_backend() -> PlaybackBackend:
    backend = _load_backend()
    if backend is None:
        raise PlaybackError(
            "Playback requires sounddevice or simpleaudio. "
            "Install the 'playback' extra, or render to a wav file instead."
        )
    _LOGGER.debug("Using %s playback backend", backend.name)
    return backend


def play_audio(samples: AudioNumbers, *, sample_rate: int) -> None:
    """Play mono samples and block until they finish."""

    if sample_rate <= 0:
        raise ValidationError(f"sample_rate must be positive, got {sample_rate}")
    backend = resolve_backend()
    normalized = ensure_audio_contract(samples)
    duration = normalized.size / sample_rate
    with Spinner(f"♪ Playing {duration:.1f}s of audio"):
        try:
            backend.play_audio(normalized, sample_rate)
        except PlaybackError:
            raise
        except Exception as exc:
            _LOGGER.warning("%s playback failed: %s", backend.name, exc, exc_info=True)
            raise PlaybackError(f"{backend.name} playback failed: {exc}") from exc


def _load_sounddevice() -> PlaybackBackend | None:
    try:
        import sounddevice as sd_module  # type: ignore[import]
    except (ImportError, OSError) as exc:
        _LOGGER.info("sounddevice not available: %s", exc, exc_info=True)
        return None
    sd: Any = sd_module

    def _play_audio(samples: FloatArray, sample_rate: int) -> None:
        sd.play(samples, sample_rate)
        sd.wait()

    return PlaybackBackend(name="sounddevice", play_audio=_play_audio)


def _load_simpleaudio() -> PlaybackBackend | None:
    try:
        import simpleaudio as sa_module  # type: ignore[import]
    except ImportError as exc:
        _LOGGER.info("simpleaudio not available: %s", exc, exc_info=True)
        return None
    sa: Any = sa_module

    def _to_int16(samples: FloatArray) -> NDArray[np.int16]:
        clipped = np.clip(samples, -1.0, 1.0)
        return (clipped * 32_767).astype(np.int16)

    def _play_audio(samples: FloatArray, sample_rate: int) -> None:
        play = sa.play_buffer(_to_int16(samples), 1, 2, sample_rate)
        play.wait_done()

    return PlaybackBackend(name="simpleaudio", play_audio=_play_audio)
