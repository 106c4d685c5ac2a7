from __future__ import annotations

import numpy as np
import pytest

from simple_tuner.config import TunerConfig
from simple_tuner.pitch import AutocorrelationPitchDetector, autocorrelation

SAMPLE_RATE = 48_000
FRAME = 4096


@pytest.mark.parametrize("freq", [65.0, 82.41, 110.0, 146.83, 196.0, 246.94, 329.63, 440.0, 659.25])
def test_detects_pure_sine_within_one_percent(tone, freq: float) -> None:
    detector = AutocorrelationPitchDetector()
    hz = detector.estimate_frequency_hz(tone(freq, SAMPLE_RATE, FRAME), SAMPLE_RATE)
    assert hz is not None
    assert abs(hz - freq) / freq <= 0.01


# Near min_hz the period spans hundreds of samples and the lag is an integer,
# and the unnormalized correlation leans toward shorter lags; allow 1.5% here.
@pytest.mark.parametrize("freq", [60.0, 63.4])
@pytest.mark.parametrize("phase", [0.0, 1.0, 2.0])
def test_detects_sine_at_lower_bound(tone, freq: float, phase: float) -> None:
    frame = tone(freq, SAMPLE_RATE, FRAME, phase=phase)
    hz = AutocorrelationPitchDetector().estimate_frequency_hz(frame, SAMPLE_RATE)
    assert hz is not None
    assert abs(hz - freq) / freq <= 0.015


def test_prefers_fundamental_over_harmonics(tone) -> None:
    frame = tone(110.0, SAMPLE_RATE, FRAME, amplitude=0.3)
    frame = frame + tone(220.0, SAMPLE_RATE, FRAME, amplitude=0.15) + tone(330.0, SAMPLE_RATE, FRAME, amplitude=0.1)
    hz = AutocorrelationPitchDetector().estimate_frequency_hz(frame, SAMPLE_RATE)
    assert hz is not None
    assert abs(hz - 110.0) / 110.0 <= 0.01


def test_dc_offset_is_ignored(tone) -> None:
    frame = tone(196.0, SAMPLE_RATE, FRAME) + np.float32(0.4)
    hz = AutocorrelationPitchDetector().estimate_frequency_hz(frame, SAMPLE_RATE)
    assert hz is not None
    assert abs(hz - 196.0) / 196.0 <= 0.01


def test_silence_returns_none() -> None:
    detector = AutocorrelationPitchDetector()
    assert detector.estimate_frequency_hz(np.zeros(FRAME, dtype=np.float32), SAMPLE_RATE) is None


def test_sub_floor_amplitude_returns_none(tone) -> None:
    # amplitude 0.005 -> about -49 dB RMS, below the -45 dB floor
    frame = tone(220.0, SAMPLE_RATE, FRAME, amplitude=0.005)
    assert AutocorrelationPitchDetector().estimate_frequency_hz(frame, SAMPLE_RATE) is None


def test_white_noise_is_rejected_by_correlation_threshold() -> None:
    rng = np.random.default_rng(1234)
    frame = (0.3 * rng.standard_normal(FRAME)).astype(np.float32)
    assert AutocorrelationPitchDetector().estimate_frequency_hz(frame, SAMPLE_RATE) is None


def test_near_upper_bound_is_rejected(tone) -> None:
    # 980 Hz is inside [min_hz, max_hz] but above max_hz * 0.95.
    frame = tone(980.0, SAMPLE_RATE, FRAME)
    assert AutocorrelationPitchDetector().estimate_frequency_hz(frame, SAMPLE_RATE) is None


def test_degenerate_inputs_return_none(tone) -> None:
    detector = AutocorrelationPitchDetector()
    assert detector.estimate_frequency_hz(np.zeros(0, dtype=np.float32), SAMPLE_RATE) is None
    assert detector.estimate_frequency_hz(tone(220.0, SAMPLE_RATE, FRAME), 0) is None
    # Frame too short for any lag in range.
    assert detector.estimate_frequency_hz(tone(220.0, SAMPLE_RATE, 40), SAMPLE_RATE) is None


def test_autocorrelation_matches_direct_sum() -> None:
    rng = np.random.default_rng(7)
    x = rng.standard_normal(256)
    corr = autocorrelation(x, 3, 40)
    assert corr.shape == (41,)
    assert np.all(corr[:3] == 0.0)
    for lag in (3, 17, 40):
        expected = float(np.sum(x[: x.size - lag] * x[lag:]))
        assert corr[lag] == pytest.approx(expected, rel=1e-9, abs=1e-9)


def test_from_config_uses_bounds() -> None:
    cfg = TunerConfig(min_hz=100.0, max_hz=500.0, min_correlation=0.4)
    detector = AutocorrelationPitchDetector.from_config(cfg)
    assert detector.min_hz == 100.0
    assert detector.max_hz == 500.0
    assert detector.min_correlation == 0.4
