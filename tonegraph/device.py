"""Audio device capability and an offline reference implementation.

Sources only talk to the :class:`AudioDevice` protocol. :class:`OfflineDevice`
keeps a virtual clock, records every scheduled event and renders the
resulting graph to a numpy buffer on demand.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Protocol, runtime_checkable

import numpy as np
from numpy.typing import NDArray

from .audio import SAMPLE_RATE
from .automation import AutomationParam
from .errors import ValidationError
from .oscillators import OSCILLATOR_KINDS, OscillatorKind, render_buffer, render_oscillator
from .waveform import BufferedWaveform

_LOGGER = logging.getLogger("tonegraph.device")

FloatArray = NDArray[np.float64]
Rendered = tuple[int, FloatArray]


# =============================================================================
# CAPABILITY
# =============================================================================


@runtime_checkable
class TimerHandle(Protocol):
    def cancel(self) -> None: ...


@runtime_checkable
class ToneGenerator(Protocol):
    def start(self, time: float) -> None: ...

    def stop(self, time: float) -> None: ...

    def set_frequency_or_rate(self, value: float, time: float) -> None: ...

    def ramp_frequency_or_rate(self, value: float, time: float) -> None: ...


@runtime_checkable
class AmplitudeControl(Protocol):
    def set_value_at_time(self, value: float, time: float) -> None: ...

    def linear_ramp_to_value_at_time(self, value: float, time: float) -> None: ...

    def disconnect(self) -> None: ...


class AudioDevice(Protocol):
    @property
    def sample_rate(self) -> int: ...

    @property
    def destination(self) -> object: ...

    def current_time(self) -> float: ...

    def create_tone_generator(self, source: OscillatorKind | BufferedWaveform) -> ToneGenerator: ...

    def create_amplitude_control(self) -> AmplitudeControl: ...

    def connect(self, source: object, target: object) -> None: ...

    def call_at(self, time: float, callback: Callable[[], None]) -> TimerHandle: ...


# =============================================================================
# OFFLINE GRAPH
# =============================================================================


def _frame_at(time: float, sr: int) -> int:
    """First frame whose timestamp is at or after ``time``."""
    return max(0, math.ceil(time * sr - 1e-9))


class _Node:
    accepts_inputs = False

    def __init__(self, device: OfflineDevice) -> None:
        self._device = device
        self.inputs: list[_Node] = []

    def render(self, total_frames: int) -> Rendered | None:
        raise NotImplementedError


def _mix(inputs: list[_Node], total_frames: int) -> Rendered | None:
    parts = [part for part in (node.render(total_frames) for node in inputs) if part is not None]
    if not parts:
        return None
    first = min(offset for offset, _ in parts)
    last = max(offset + samples.size for offset, samples in parts)
    mixed = np.zeros(last - first, dtype=np.float64)
    for offset, samples in parts:
        mixed[offset - first : offset - first + samples.size] += samples
    return first, mixed


class _GeneratorNode(_Node):
    param: AutomationParam

    def __init__(self, device: OfflineDevice) -> None:
        super().__init__(device)
        self.start_time: float | None = None
        self.stop_time: float | None = None

    def start(self, time: float) -> None:
        if self.start_time is not None:
            raise ValidationError(f"{type(self).__name__} already started at {self.start_time}")
        self.start_time = max(time, 0.0)

    def stop(self, time: float) -> None:
        if self.start_time is None:
            raise ValidationError(f"{type(self).__name__} stopped before being started")
        self.stop_time = max(time, self.start_time)

    def set_frequency_or_rate(self, value: float, time: float) -> None:
        self.param.set_value_at_time(value, time)

    def ramp_frequency_or_rate(self, value: float, time: float) -> None:
        self.param.linear_ramp_to_value_at_time(value, time)

    def _span(self, total_frames: int) -> tuple[int, int] | None:
        if self.start_time is None:
            return None
        sr = self._device.sample_rate
        first = _frame_at(self.start_time, sr)
        last = total_frames if self.stop_time is None else _frame_at(self.stop_time, sr)
        last = min(last, total_frames)
        if last <= first:
            return None
        return first, last


class OscillatorNode(_GeneratorNode):
    def __init__(self, device: OfflineDevice, kind: OscillatorKind) -> None:
        super().__init__(device)
        self.kind = kind
        self.frequency = AutomationParam("frequency", 440.0)
        self.param = self.frequency

    def render(self, total_frames: int) -> Rendered | None:
        span = self._span(total_frames)
        if span is None:
            return None
        first, last = span
        sr = self._device.sample_rate
        samples = render_oscillator(self.kind, self.frequency.values_at, first / sr, last - first, sr)
        return first, samples


class BufferSourceNode(_GeneratorNode):
    def __init__(self, device: OfflineDevice, waveform: BufferedWaveform) -> None:
        super().__init__(device)
        self.waveform = waveform
        self.loop = waveform.loop
        self.playback_rate = AutomationParam("playback_rate", 1.0)
        self.param = self.playback_rate

    def render(self, total_frames: int) -> Rendered | None:
        span = self._span(total_frames)
        if span is None:
            return None
        first, last = span
        sr = self._device.sample_rate
        # Buffer frames advance at the buffer's own rate relative to the device.
        ratio = self.waveform.sample_rate / sr

        def rate(times: FloatArray) -> FloatArray:
            return self.playback_rate.values_at(times) * ratio

        data = np.asarray(self.waveform.samples, dtype=np.float64)
        samples = render_buffer(data, rate, first / sr, last - first, sr, loop=self.loop)
        return first, samples


class GainNode(_Node):
    accepts_inputs = True

    def __init__(self, device: OfflineDevice) -> None:
        super().__init__(device)
        self.gain = AutomationParam("gain", 1.0)
        self.disconnected_at: float | None = None
        self.disconnect_calls = 0

    def set_value_at_time(self, value: float, time: float) -> None:
        self.gain.set_value_at_time(value, time)

    def linear_ramp_to_value_at_time(self, value: float, time: float) -> None:
        self.gain.linear_ramp_to_value_at_time(value, time)

    def disconnect(self) -> None:
        self.disconnect_calls += 1
        if self.disconnected_at is None:
            self.disconnected_at = self._device.current_time()

    def render(self, total_frames: int) -> Rendered | None:
        mixed = _mix(self.inputs, total_frames)
        if mixed is None:
            return None
        first, samples = mixed
        sr = self._device.sample_rate
        if self.disconnected_at is not None:
            cutoff = _frame_at(self.disconnected_at, sr) - first
            if cutoff <= 0:
                return None
            samples = samples[:cutoff]
        times = (first + np.arange(samples.size)) / sr
        return first, samples * self.gain.values_at(times)


class Destination(_Node):
    accepts_inputs = True

    def render(self, total_frames: int) -> Rendered | None:
        return _mix(self.inputs, total_frames)


# =============================================================================
# OFFLINE DEVICE
# =============================================================================


@dataclass(order=True)
class _Timer:
    time: float
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class OfflineDevice:
    """Virtual-clock device that renders its graph with numpy.

    The clock starts at 0 and only moves through :meth:`advance`,
    :meth:`advance_to` or :meth:`run`.
    """

    def __init__(self, sample_rate: int = SAMPLE_RATE) -> None:
        if sample_rate <= 0:
            raise ValidationError(f"sample_rate must be positive, got {sample_rate}")
        self._sample_rate = sample_rate
        self._time = 0.0
        self._timers: list[_Timer] = []
        self._seq = itertools.count()
        self._destination = Destination(self)
        self.generators: list[_GeneratorNode] = []
        self.controls: list[GainNode] = []

    @property
    def sample_rate(self) -> int:
        return self._sample_rate

    @property
    def destination(self) -> Destination:
        return self._destination

    def current_time(self) -> float:
        return self._time

    def create_tone_generator(self, source: OscillatorKind | BufferedWaveform) -> _GeneratorNode:
        match source:
            case BufferedWaveform():
                node: _GeneratorNode = BufferSourceNode(self, source)
            case str() if source in OSCILLATOR_KINDS:
                node = OscillatorNode(self, source)
            case _:
                raise ValidationError(f"Cannot create a tone generator for {source!r}")
        self.generators.append(node)
        return node

    def create_amplitude_control(self) -> GainNode:
        control = GainNode(self)
        self.controls.append(control)
        return control

    def connect(self, source: object, target: object) -> None:
        if not isinstance(source, _Node) or not isinstance(target, _Node):
            raise ValidationError("connect() expects nodes created by this device")
        if not target.accepts_inputs:
            raise ValidationError(f"{type(target).__name__} does not accept inputs")
        target.inputs.append(source)

    def call_at(self, time: float, callback: Callable[[], None]) -> _Timer:
        timer = _Timer(time=time, seq=next(self._seq), callback=callback)
        heapq.heappush(self._timers, timer)
        return timer

    def pending_timers(self) -> int:
        return sum(1 for timer in self._timers if not timer.cancelled)

    def _next_timer_time(self) -> float | None:
        while self._timers and self._timers[0].cancelled:
            heapq.heappop(self._timers)
        return self._timers[0].time if self._timers else None

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValidationError(f"cannot advance the clock backwards by {seconds}s")
        self.advance_to(self._time + seconds)

    def advance_to(self, time: float) -> None:
        """Move the clock to ``time``, firing due timers in time order."""
        while self._timers and self._timers[0].time <= time:
            timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self._time = max(self._time, timer.time)
            timer.callback()
        self._time = max(self._time, time)

    async def run(self, until: float | None = None) -> None:
        """Advance the clock in step with the event loop's wall clock.

        Returns once ``until`` is reached, or when no timers remain if
        ``until`` is None.
        """
        loop = asyncio.get_running_loop()
        wall_origin = loop.time()
        clock_origin = self._time
        while True:
            pending = self._next_timer_time()
            if until is None:
                if pending is None:
                    return
                target = pending
            else:
                if self._time >= until:
                    return
                target = until if pending is None else min(pending, until)
            delay = (target - clock_origin) - (loop.time() - wall_origin)
            await asyncio.sleep(max(delay, 0.0))
            self.advance_to(target)

    def scheduled_end(self) -> float:
        """Latest stop time among started generators."""
        ends = [g.stop_time for g in self.generators if g.start_time is not None]
        if any(end is None for end in ends):
            raise ValidationError("a generator has no stop time; pass an explicit duration")
        return max((end for end in ends if end is not None), default=0.0)

    def render(self, duration: float | None = None) -> NDArray[np.float32]:
        total = self.scheduled_end() if duration is None else duration
        if total < 0 or not math.isfinite(total):
            raise ValidationError(f"render duration must be finite and >= 0, got {total}")
        total_frames = math.ceil(total * self._sample_rate - 1e-9)
        out = np.zeros(total_frames, dtype=np.float64)
        mixed = self._destination.render(total_frames)
        if mixed is not None:
            first, samples = mixed
            end = min(first + samples.size, total_frames)
            out[first:end] += samples[: end - first]
        _LOGGER.debug(
            "Rendered %.3fs (%d frames) from %d generators",
            total,
            total_frames,
            len(self.generators),
        )
        return out.astype(np.float32)
