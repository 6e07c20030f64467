import pytest

from tonegraph.device import OfflineDevice
from tonegraph.errors import PlaybackCancelled
from tonegraph.playback import PlaybackState
from tonegraph.sources import MuteSource, instantiate, join_playback_and_source, sequence


def test_join_playback_and_source_starts_at_end() -> None:
    device = OfflineDevice(8_000)
    leader = instantiate(MuteSource(1.0), device, start=0.5)

    follower = join_playback_and_source(leader, sequence(MuteSource(0.25), MuteSource(0.25)))

    assert follower.start == 1.5
    assert follower.end == pytest.approx(2.0)
    device.advance_to(2.0)
    assert leader.state is PlaybackState.ENDED
    assert follower.state is PlaybackState.ENDED


def test_stopping_leader_stops_follower() -> None:
    device = OfflineDevice(8_000)
    leader = instantiate(MuteSource(1.0), device)
    follower = join_playback_and_source(leader, MuteSource(1.0))

    leader.stop()

    assert follower.state is PlaybackState.STOPPED
    assert isinstance(follower.completion.exception(), PlaybackCancelled)


def test_stopping_follower_stops_leader() -> None:
    device = OfflineDevice(8_000)
    leader = instantiate(MuteSource(1.0), device)
    follower = join_playback_and_source(leader, MuteSource(1.0))

    device.advance_to(0.5)
    follower.stop()

    assert leader.state is PlaybackState.STOPPED
    assert leader.completion.cancelled()


def test_follower_survives_leader_end() -> None:
    device = OfflineDevice(8_000)
    leader = instantiate(MuteSource(1.0), device)
    follower = join_playback_and_source(leader, MuteSource(1.0))

    device.advance_to(1.5)

    assert leader.state is PlaybackState.ENDED
    assert follower.state is PlaybackState.PLAYING
    follower.stop()
    assert leader.state is PlaybackState.ENDED


def test_playback_repr_and_duration() -> None:
    device = OfflineDevice(8_000)
    playback = instantiate(MuteSource(0.5), device, start=1.0)

    assert playback.duration == pytest.approx(0.5)
    assert "playing" in repr(playback)
    playback.stop()
    assert "stopped" in repr(playback)
    with pytest.raises(PlaybackCancelled):
        playback.completion.result()
