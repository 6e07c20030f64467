import dataclasses

import pytest

from tonegraph.device import BufferSourceNode, OfflineDevice, OscillatorNode
from tonegraph.envelope import ADSR
from tonegraph.errors import ValidationError
from tonegraph.playback import CompositePlayback, MutePlayback, NotePlayback, PlaybackState
from tonegraph.sources import (
    BufferedNoteSource,
    MuteSource,
    OscillatorNoteSource,
    ParallelSource,
    SequentialSource,
    SweepPoint,
    create_note,
    instantiate,
    parallel,
    sequence,
)
from tonegraph.waveform import OscillatorWaveform, single_cycle

ENVELOPE = ADSR(attack=0.01, decay=0.02, sustain=0.5, release=0.05)
SINE = OscillatorWaveform("sine")


def test_composite_durations() -> None:
    seq = sequence(MuteSource(1.0), MuteSource(2.0))
    par = parallel(MuteSource(1.0), MuteSource(2.5), seq)

    assert seq.duration == pytest.approx(3.0)
    assert par.duration == pytest.approx(3.0)
    assert SequentialSource().duration == 0.0
    assert ParallelSource().duration == 0.0


def test_sources_are_immutable() -> None:
    source = MuteSource(1.0)
    with pytest.raises(dataclasses.FrozenInstanceError):
        source.duration = 2.0  # type: ignore[misc]


def test_composites_reject_non_sources() -> None:
    with pytest.raises(ValidationError):
        SequentialSource((MuteSource(1.0), "c4"))  # type: ignore[arg-type]


@pytest.mark.parametrize("duration", [-1.0, float("inf"), float("nan")])
def test_mute_rejects_bad_duration(duration: float) -> None:
    with pytest.raises(ValidationError):
        MuteSource(duration)


def test_note_validation() -> None:
    with pytest.raises(ValidationError):
        OscillatorNoteSource(1.0, 0.0, 0.5, SINE, ENVELOPE)
    with pytest.raises(ValidationError):
        OscillatorNoteSource(1.0, 440.0, -0.5, SINE, ENVELOPE)
    with pytest.raises(ValidationError):
        BufferedNoteSource(1.0, 440.0, 0.5, SINE, ENVELOPE)  # type: ignore[arg-type]


@pytest.mark.parametrize(
    "sweep",
    [
        (SweepPoint(880.0, 0.0),),
        (SweepPoint(880.0, 0.5), SweepPoint(660.0, 0.5)),
        (SweepPoint(880.0, 1.5),),
        (SweepPoint(-1.0, 0.5),),
    ],
)
def test_sweep_validation(sweep: tuple[SweepPoint, ...]) -> None:
    with pytest.raises(ValidationError):
        create_note(1.0, 440.0, 0.5, SINE, ENVELOPE, sweep)


def test_create_note_dispatches_on_waveform() -> None:
    buffered = single_cycle("sine", 100, sample_rate=8_000)
    assert isinstance(create_note(1.0, 440.0, 0.5, SINE, ENVELOPE), OscillatorNoteSource)
    assert isinstance(create_note(1.0, 440.0, 0.5, buffered, ENVELOPE), BufferedNoteSource)


class TestNoteScheduling:
    """Notes schedule generator automation and an envelope on their control."""

    def test_oscillator_note_events(self) -> None:
        device = OfflineDevice(8_000)
        note = create_note(
            1.0,
            440.0,
            0.5,
            SINE,
            ENVELOPE,
            [SweepPoint(880.0, 0.5), SweepPoint(220.0, 1.0)],
        )

        playback = instantiate(note, device, start=2.0)

        assert isinstance(playback, NotePlayback)
        (generator,) = device.generators
        assert isinstance(generator, OscillatorNode)
        assert generator.start_time == 2.0
        assert generator.stop_time == 3.0
        events = [(e.ramp, e.value, e.time) for e in generator.frequency.events]
        assert events == [("set", 440.0, 2.0), ("linear", 880.0, 2.5), ("linear", 220.0, 3.0)]
        (control,) = device.controls
        assert len(control.gain.events) == 5
        assert control.gain.events[-1].time == pytest.approx(3.0)

    def test_buffered_note_uses_playback_rate(self) -> None:
        device = OfflineDevice(8_000)
        waveform = single_cycle("sine", 100, sample_rate=8_000)

        instantiate(create_note(0.1, 160.0, 0.5, waveform, ENVELOPE), device)

        (generator,) = device.generators
        assert isinstance(generator, BufferSourceNode)
        assert generator.playback_rate.events[0].value == pytest.approx(2.0)

    def test_source_can_be_instantiated_repeatedly(self) -> None:
        device = OfflineDevice(8_000)
        note = create_note(0.5, 440.0, 0.5, SINE, ENVELOPE)

        first = instantiate(note, device, start=0.0)
        second = instantiate(note, device, start=1.0)

        assert first is not second
        assert len(device.generators) == 2
        assert (second.start, second.end) == (1.0, 1.5)


class TestNotePlaybackRelease:
    """The amplitude control is disconnected exactly once."""

    def test_release_on_natural_end(self) -> None:
        device = OfflineDevice(8_000)
        playback = instantiate(create_note(0.5, 440.0, 0.5, SINE, ENVELOPE), device)

        device.advance_to(1.0)

        assert playback.state is PlaybackState.ENDED
        assert playback.completion.result() == pytest.approx(0.5)
        assert device.controls[0].disconnect_calls == 1

    def test_release_on_stop_then_end(self) -> None:
        device = OfflineDevice(8_000)
        playback = instantiate(create_note(0.5, 440.0, 0.5, SINE, ENVELOPE), device)

        device.advance_to(0.2)
        playback.stop()
        playback.stop()
        device.advance_to(1.0)

        assert isinstance(playback, NotePlayback)
        assert playback.released
        assert playback.state is PlaybackState.STOPPED
        assert playback.completion.cancelled()
        assert device.controls[0].disconnect_calls == 1
        assert device.controls[0].disconnected_at == pytest.approx(0.2)


class TestCompositePlayback:
    def test_sequential_children_chain(self) -> None:
        device = OfflineDevice(8_000)
        source = sequence(MuteSource(1.0), MuteSource(2.0), MuteSource(0.5))

        playback = instantiate(source, device, start=1.0)

        assert isinstance(playback, CompositePlayback)
        assert [(child.start, child.end) for child in playback.children] == [
            (1.0, 2.0),
            (2.0, 4.0),
            (4.0, 4.5),
        ]
        assert playback.end == pytest.approx(4.5)

    def test_parallel_children_share_start(self) -> None:
        device = OfflineDevice(8_000)
        playback = instantiate(parallel(MuteSource(1.0), MuteSource(3.0)), device)

        assert [child.start for child in playback.children] == [0.0, 0.0]  # type: ignore[attr-defined]
        assert playback.end == pytest.approx(3.0)

    def test_resolves_after_every_child(self) -> None:
        device = OfflineDevice(8_000)
        playback = instantiate(sequence(MuteSource(1.0), MuteSource(2.0)), device)

        device.advance_to(1.5)
        assert not playback.completion.done()

        device.advance_to(3.0)
        assert playback.state is PlaybackState.ENDED
        assert playback.completion.result() == pytest.approx(3.0)

    def test_empty_composite_resolves_at_start(self) -> None:
        device = OfflineDevice(8_000)
        playback = instantiate(ParallelSource(), device, start=0.5)

        assert playback.duration == 0.0
        device.advance_to(0.5)
        assert playback.completion.result() == 0.5

    def test_stop_parent_stops_children(self) -> None:
        device = OfflineDevice(8_000)
        source = parallel(create_note(1.0, 440.0, 0.5, SINE, ENVELOPE), MuteSource(2.0))
        playback = instantiate(source, device)
        assert isinstance(playback, CompositePlayback)

        playback.stop()

        assert playback.state is PlaybackState.STOPPED
        assert all(child.state is PlaybackState.STOPPED for child in playback.children)
        assert playback.completion.cancelled()
        assert device.pending_timers() == 0

    def test_child_stop_propagates_to_siblings(self) -> None:
        device = OfflineDevice(8_000)
        playback = instantiate(sequence(MuteSource(1.0), MuteSource(1.0)), device)
        assert isinstance(playback, CompositePlayback)
        first, second = playback.children

        first.stop("skip")

        assert playback.state is PlaybackState.STOPPED
        assert second.state is PlaybackState.STOPPED
        assert str(playback.completion.exception()) == "skip"

    def test_stop_after_end_is_noop(self) -> None:
        device = OfflineDevice(8_000)
        playback = instantiate(MuteSource(0.25), device)
        assert isinstance(playback, MutePlayback)

        device.advance_to(1.0)
        playback.stop()

        assert playback.state is PlaybackState.ENDED
        assert playback.completion.result() == 0.25

    def test_join_starts_at_end(self) -> None:
        device = OfflineDevice(8_000)
        playback = instantiate(sequence(MuteSource(1.0)), device)
        assert isinstance(playback, CompositePlayback)

        follower = playback.join(MuteSource(0.5))

        assert (follower.start, follower.end) == (1.0, 1.5)
        assert follower.sink is playback.sink


@pytest.mark.asyncio
async def test_await_playback_on_running_device() -> None:
    device = OfflineDevice(8_000)
    playback = instantiate(sequence(MuteSource(0.01), MuteSource(0.01)), device)

    await device.run()

    assert await playback.completion == pytest.approx(0.02)
