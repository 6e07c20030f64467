from __future__ import annotations


class TonegraphError(Exception):
    """Base error for the tonegraph library."""


class ValidationError(TonegraphError, ValueError):
    """Raised when a duration, envelope, waveform or schedule is malformed."""


class DecodeError(TonegraphError):
    """Raised when encoded audio bytes cannot be decoded."""


class ParseError(TonegraphError, ValueError):
    """Raised when MML text carries a malformed length token."""

    def __init__(self, message: str, *, position: int | None = None) -> None:
        super().__init__(message)
        self.position = position


class PlaybackError(TonegraphError):
    """Raised when no audio output backend can play rendered samples."""


class PlaybackCancelled(TonegraphError):
    """Rejection value of a stopped playback's completion.

    Not a failure: it signals cooperative cancellation and lets callers tell
    a stop apart from real errors.
    """

    def __init__(self, reason: str = "playback stopped") -> None:
        super().__init__(reason)
        self.reason = reason
