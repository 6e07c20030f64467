import io

import numpy as np
import pytest
import soundfile as sf  # type: ignore[import]

from tonegraph.errors import DecodeError, ValidationError
from tonegraph.waveform import (
    BufferedWaveform,
    FromCycle,
    FromRecorded,
    OscillatorWaveform,
    buffered_waveform,
    buffered_waveform_of_file,
    playback_rate_of,
    single_cycle,
)


def test_oscillator_waveform_validates_kind() -> None:
    assert OscillatorWaveform("triangle").kind == "triangle"
    with pytest.raises(ValidationError):
        OscillatorWaveform("noise")  # type: ignore[arg-type]


def test_buffered_waveform_is_mean_centred_and_read_only() -> None:
    waveform = BufferedWaveform(np.array([1.0, 2.0, 3.0]), base_frequency=100.0)

    assert np.allclose(waveform.samples, [-1.0, 0.0, 1.0])
    assert waveform.samples.dtype == np.float32
    with pytest.raises(ValueError):
        waveform.samples[0] = 5.0


def test_buffered_waveform_rejects_bad_data() -> None:
    with pytest.raises(ValidationError):
        BufferedWaveform(np.array([]), base_frequency=100.0)
    with pytest.raises(ValidationError):
        BufferedWaveform(np.array([0.0, np.nan]), base_frequency=100.0)
    with pytest.raises(ValidationError):
        BufferedWaveform(np.array([0.0, 1.0]), base_frequency=0.0)


def test_buffered_waveform_defaults_to_one_cycle() -> None:
    waveform = buffered_waveform([0.0, 1.0, 0.0, -1.0], sample_rate=8_000)
    assert waveform.base_frequency == pytest.approx(2_000.0)
    assert waveform.cycle_length == pytest.approx(4.0)
    assert waveform.loop is False


def test_from_cycle_sets_base_frequency() -> None:
    waveform = buffered_waveform(np.zeros(200), FromCycle(cycle_length=100), sample_rate=44_100)
    assert waveform.base_frequency == pytest.approx(441.0)


def test_from_recorded_scales_to_device_rate() -> None:
    waveform = buffered_waveform(
        np.zeros(10),
        FromRecorded(sample_rate=22_050, base_frequency=440.0),
        sample_rate=44_100,
    )
    assert waveform.base_frequency == pytest.approx(880.0)


def test_freq_params_reject_non_positive() -> None:
    with pytest.raises(ValidationError):
        buffered_waveform(np.zeros(4), FromCycle(cycle_length=0))
    with pytest.raises(ValidationError):
        buffered_waveform(np.zeros(4), FromRecorded(sample_rate=0, base_frequency=440.0))


def test_single_cycle_loops() -> None:
    waveform = single_cycle("sine", 100, sample_rate=44_100)
    assert waveform.loop is True
    assert waveform.samples.size == 100
    assert waveform.base_frequency == pytest.approx(441.0)
    assert playback_rate_of(waveform, 882.0) == pytest.approx(2.0)


@pytest.mark.asyncio
async def test_buffered_waveform_of_file() -> None:
    buffer = io.BytesIO()
    sf.write(buffer, np.zeros(50, dtype=np.float32), 22_050, format="WAV")

    waveform = await buffered_waveform_of_file(buffer.getvalue(), 220.0, True, sample_rate=44_100)

    assert waveform.loop is True
    assert waveform.samples.size == 50
    assert waveform.base_frequency == pytest.approx(440.0)


@pytest.mark.asyncio
async def test_buffered_waveform_of_file_rejects_garbage() -> None:
    with pytest.raises(DecodeError):
        await buffered_waveform_of_file(b"nope")


def test_rate_at_base_frequency_is_unity() -> None:
    waveform = buffered_waveform(
        np.random.default_rng(0).normal(0.3, 1.0, 512),
        FromRecorded(sample_rate=48_000, base_frequency=261.6),
        sample_rate=44_100,
    )
    assert playback_rate_of(waveform, waveform.base_frequency) == pytest.approx(1.0)
    assert float(np.mean(waveform.samples, dtype=np.float64)) == pytest.approx(0.0, abs=1e-5)
