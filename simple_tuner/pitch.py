from __future__ import annotations

import math
from typing import Protocol

import numpy as np

from simple_tuner.config import TunerConfig, lag_bounds

EPS = 1e-9


class PitchDetector(Protocol):
    def estimate_frequency_hz(self, samples: np.ndarray, sample_rate: int) -> float | None:
        """Return the fundamental frequency of a mono [-1, 1] frame, or None."""
        ...


class AutocorrelationPitchDetector:
    """
    Time-domain autocorrelation pitch detector for a single voice/string.

    Strategy:
    - Remove DC, then gate by frame RMS (secondary silence guard).
    - Unnormalized autocorrelation over [sr/max_hz, sr/min_hz].
    - Skip the slope falling away from the lag-0 self-match up to the first
      valley, then take the strongest lag after it.
    - Reject detections too close to max_hz and peaks that are weak relative
      to the frame energy.
    """

    def __init__(
        self,
        min_hz: float = 60.0,
        max_hz: float = 1000.0,
        min_correlation: float = 0.25,
        min_rms_db: float = -45.0,
        max_hz_margin: float = 0.95,
    ) -> None:
        self.min_hz = float(min_hz)
        self.max_hz = float(max_hz)
        self.min_correlation = float(min_correlation)
        self.min_rms_db = float(min_rms_db)
        self.max_hz_margin = float(max_hz_margin)

    @classmethod
    def from_config(cls, config: TunerConfig) -> AutocorrelationPitchDetector:
        return cls(
            min_hz=config.min_hz,
            max_hz=config.max_hz,
            min_correlation=config.min_correlation,
            min_rms_db=config.min_rms_db,
            max_hz_margin=config.max_hz_margin,
        )

    def estimate_frequency_hz(self, samples: np.ndarray, sample_rate: int) -> float | None:
        x = np.asarray(samples, dtype=np.float64).reshape(-1)
        n = int(x.size)
        if n == 0 or sample_rate <= 0:
            return None

        x = x - float(np.mean(x))

        energy = float(np.dot(x, x))
        rms = math.sqrt(energy / n)
        if 20.0 * math.log10(max(rms, EPS)) < self.min_rms_db:
            return None

        min_lag, max_lag = lag_bounds(sample_rate, n, self.min_hz, self.max_hz)
        if min_lag >= max_lag:
            return None

        corr = autocorrelation(x, min_lag, max_lag)
        best = _best_lag_after_first_valley(corr, min_lag, max_lag)
        if best is None:
            return None
        best_lag, best_value = best

        hz = float(sample_rate) / float(best_lag)
        # Very short lags near the upper bound are mostly harmonics or noise.
        if hz > self.max_hz * self.max_hz_margin:
            return None

        if best_value / max(energy, EPS) < self.min_correlation:
            return None
        return hz


def autocorrelation(x: np.ndarray, min_lag: int, max_lag: int) -> np.ndarray:
    """
    corr[lag] = sum_i x[i] * x[i + lag] for lag in [min_lag, max_lag].

    Indexed by lag; entries below `min_lag` are left at zero. Computed as
    irfft(|rfft(x)|^2) with zero padding to at least 2n - 1, so the result is
    the linear (not circular) autocorrelation.
    """
    x = np.asarray(x, dtype=np.float64).reshape(-1)
    n = int(x.size)
    nfft = 1 << (2 * n - 1).bit_length()
    spectrum = np.fft.rfft(x, n=nfft)
    r = np.fft.irfft(np.abs(spectrum) ** 2, n=nfft)

    corr = np.zeros(max_lag + 1, dtype=np.float64)
    corr[min_lag : max_lag + 1] = r[min_lag : max_lag + 1]
    return corr


def _best_lag_after_first_valley(
    corr: np.ndarray, min_lag: int, max_lag: int
) -> tuple[int, float] | None:
    # Walk down the slope from the lag-0 peak until the first valley.
    start = min_lag
    while start < max_lag and corr[start + 1] < corr[start]:
        start += 1

    seg = corr[start : max_lag + 1]
    i = int(np.argmax(seg))
    value = float(seg[i])
    if value <= 0.0:
        return None
    return start + i, value
