"""Single-resolution completion signals for playbacks.

A :class:`CompletionCell` is owned by the composition logic that drives a
playback and is the only thing able to resolve or reject it. Callers get the
read-only :class:`Completion` view, which can be awaited or observed through
callbacks. Settling a cell twice is a no-op.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Generator
from typing import Any, Callable

from .errors import PlaybackCancelled

_LOGGER = logging.getLogger("tonegraph.completion")

CompletionCallback = Callable[["Completion"], None]

_PENDING = "pending"
_RESOLVED = "resolved"
_REJECTED = "rejected"


class CompletionCell:
    def __init__(self) -> None:
        self._state = _PENDING
        self._value: float | None = None
        self._error: BaseException | None = None
        self._callbacks: list[CompletionCallback] = []
        self._view = Completion(self)

    @property
    def view(self) -> Completion:
        return self._view

    def done(self) -> bool:
        return self._state != _PENDING

    def resolve(self, value: float) -> bool:
        """Settle successfully; returns False when already settled."""
        if self._state != _PENDING:
            return False
        self._state = _RESOLVED
        self._value = value
        self._run_callbacks()
        return True

    def reject(self, error: BaseException) -> bool:
        """Settle with ``error``; returns False when already settled."""
        if self._state != _PENDING:
            return False
        self._state = _REJECTED
        self._error = error
        self._run_callbacks()
        return True

    def _add_callback(self, callback: CompletionCallback) -> None:
        if self._state != _PENDING:
            self._invoke(callback)
            return
        self._callbacks.append(callback)

    def _run_callbacks(self) -> None:
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            self._invoke(callback)

    def _invoke(self, callback: CompletionCallback) -> None:
        try:
            callback(self._view)
        except Exception as exc:
            _LOGGER.warning("Completion callback %r failed: %s", callback, exc, exc_info=True)


class Completion:
    """Read-only, awaitable view of a playback's outcome.

    Resolves to the playback's end time; rejects with
    :class:`~tonegraph.errors.PlaybackCancelled` when the playback is stopped.
    """

    __slots__ = ("_cell",)

    def __init__(self, cell: CompletionCell) -> None:
        self._cell = cell

    def done(self) -> bool:
        return self._cell.done()

    def cancelled(self) -> bool:
        return isinstance(self._cell._error, PlaybackCancelled)

    def result(self) -> float:
        cell = self._cell
        if cell._state == _PENDING:
            raise asyncio.InvalidStateError("completion is not settled yet")
        if cell._error is not None:
            raise cell._error
        assert cell._value is not None
        return cell._value

    def exception(self) -> BaseException | None:
        cell = self._cell
        if cell._state == _PENDING:
            raise asyncio.InvalidStateError("completion is not settled yet")
        return cell._error

    def add_done_callback(self, callback: CompletionCallback) -> None:
        """Call ``callback(self)`` once settled, immediately if already settled."""
        self._cell._add_callback(callback)

    def __await__(self) -> Generator[Any, None, float]:
        if not self.done():
            future: asyncio.Future[float] = asyncio.get_running_loop().create_future()
            self.add_done_callback(lambda _view: _wake(future))
            yield from future.__await__()
        return self.result()

    def __repr__(self) -> str:
        return f"<Completion {self._cell._state}>"


def _wake(future: asyncio.Future[float]) -> None:
    # The outcome is read back from the completion once the waiter resumes.
    if not future.done():
        future.set_result(0.0)
