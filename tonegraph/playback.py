from __future__ import annotations

import logging
from collections.abc import Sequence
from enum import Enum
from typing import TYPE_CHECKING

from .completion import Completion, CompletionCell
from .device import AmplitudeControl, AudioDevice, TimerHandle
from .errors import PlaybackCancelled

if TYPE_CHECKING:
    from .sources import Source

_LOGGER = logging.getLogger("tonegraph.playback")


class PlaybackState(str, Enum):
    PLAYING = "playing"
    ENDED = "ended"
    STOPPED = "stopped"


class Playback:
    """Live instantiation of a source on a device.

    Moves from ``PLAYING`` to exactly one of ``ENDED`` (its completion
    resolves to ``end``) or ``STOPPED`` (its completion rejects with
    :class:`PlaybackCancelled`). Calls after that are no-ops.
    """

    def __init__(self, device: AudioDevice, sink: object, start: float, end: float) -> None:
        self.device = device
        self.sink = sink
        self.start = start
        self.end = end
        self._state = PlaybackState.PLAYING
        self._cell = CompletionCell()

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def completion(self) -> Completion:
        return self._cell.view

    @property
    def duration(self) -> float:
        return self.end - self.start

    def stop(self, reason: str = "playback stopped") -> None:
        if self._state is not PlaybackState.PLAYING:
            return
        self._state = PlaybackState.STOPPED
        _LOGGER.debug("Stopping %r: %s", self, reason)
        self._on_stop()
        self._cell.reject(PlaybackCancelled(reason))

    def _finish(self) -> None:
        if self._state is not PlaybackState.PLAYING:
            return
        self._state = PlaybackState.ENDED
        self._on_end()
        self._cell.resolve(self.end)

    def _on_stop(self) -> None:
        pass

    def _on_end(self) -> None:
        pass

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} {self._state.value} "
            f"start={self.start:.4f} end={self.end:.4f}>"
        )


class MutePlayback(Playback):
    """Silence; owns no device resources, only the timer for its end."""

    def __init__(self, device: AudioDevice, sink: object, start: float, end: float) -> None:
        super().__init__(device, sink, start, end)
        self._timer: TimerHandle = device.call_at(end, self._finish)

    def _on_stop(self) -> None:
        self._timer.cancel()


class NotePlayback(Playback):
    """One tone generator feeding one amplitude control.

    Stopping disconnects the amplitude control at once instead of waiting
    for the generator's scheduled stop. The control is released exactly once.
    """

    def __init__(
        self,
        device: AudioDevice,
        sink: object,
        start: float,
        end: float,
        *,
        generator: object,
        control: AmplitudeControl,
    ) -> None:
        super().__init__(device, sink, start, end)
        self.generator = generator
        self.control = control
        self._released = False
        self._timer: TimerHandle = device.call_at(end, self._finish)

    @property
    def released(self) -> bool:
        return self._released

    def _release(self) -> None:
        if self._released:
            return
        self._released = True
        self.control.disconnect()

    def _on_stop(self) -> None:
        self._timer.cancel()
        self._release()

    def _on_end(self) -> None:
        self._release()


class CompositePlayback(Playback):
    """Playback of a sequential or parallel composition.

    Resolves once every child resolves. When any child rejects, every other
    child still playing is stopped before the rejection propagates.
    """

    def __init__(
        self,
        device: AudioDevice,
        sink: object,
        start: float,
        end: float,
        children: Sequence[Playback],
    ) -> None:
        super().__init__(device, sink, start, end)
        self.children: tuple[Playback, ...] = tuple(children)
        self._pending = len(self.children)
        self._timer: TimerHandle | None = None
        if not self.children:
            self._timer = device.call_at(end, self._finish)
        for child in self.children:
            child.completion.add_done_callback(self._child_settled)

    def join(self, source: Source) -> Playback:
        """Instantiate ``source`` starting at this composite's end."""
        from .sources import instantiate

        return instantiate(source, self.device, self.end, self.sink)

    def _child_settled(self, view: Completion) -> None:
        if self._state is not PlaybackState.PLAYING:
            return
        error = view.exception()
        if error is not None:
            self._abort(error)
            return
        self._pending -= 1
        if self._pending == 0:
            self._finish()

    def _abort(self, error: BaseException) -> None:
        self._state = PlaybackState.STOPPED
        live = [child for child in self.children if child.state is PlaybackState.PLAYING]
        _LOGGER.debug("Child of %r rejected; stopping %d live siblings", self, len(live))
        for child in live:
            child.stop("sibling stopped")
        self._cell.reject(error)

    def _on_stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
        for child in self.children:
            child.stop("parent stopped")
