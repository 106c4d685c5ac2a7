from __future__ import annotations

from dataclasses import dataclass

from simple_tuner.errors import ConfigurationError


@dataclass(frozen=True)
class TunerConfig:
    """
    Parameters of one analysis session.

    All durations are in seconds. Every field has a default tuned for a
    plucked guitar string picked up by a laptop or phone microphone; the gate
    thresholds in particular depend on the environment.
    """

    sample_rate: int = 48_000
    frame_size: int = 4096  # long enough for the low E string
    chunk_size: int = 1024
    min_hz: float = 60.0
    max_hz: float = 1000.0
    max_hz_margin: float = 0.95
    min_correlation: float = 0.25
    min_rms_db: float = -45.0
    gate_open_db: float = -72.0
    gate_close_db: float = -80.0
    attack_ignore_seconds: float = 0.1
    median_size: int = 3
    cents_deadband: int = 2
    short_hold_seconds: float = 0.6
    long_hold_seconds: float = 2.0
    long_hold_after_seconds: float = 1.2
    in_tune_cents: int = 5
    display_alpha: float = 0.25
    meter_range_cents: int = 50

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ConfigurationError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.frame_size <= 1:
            raise ConfigurationError(f"frame_size must be > 1, got {self.frame_size}")
        if self.chunk_size <= 0:
            raise ConfigurationError(f"chunk_size must be positive, got {self.chunk_size}")
        if not (0.0 < self.min_hz < self.max_hz):
            raise ConfigurationError(
                f"expected 0 < min_hz < max_hz, got min_hz={self.min_hz} max_hz={self.max_hz}"
            )
        if self.max_hz_margin <= 0.0:
            raise ConfigurationError(f"max_hz_margin must be positive, got {self.max_hz_margin}")
        if self.gate_open_db <= self.gate_close_db:
            raise ConfigurationError(
                f"gate_open_db ({self.gate_open_db}) must be greater than "
                f"gate_close_db ({self.gate_close_db})"
            )
        if self.min_lag >= self.max_lag:
            raise ConfigurationError(
                f"empty lag range [{self.min_lag}, {self.max_lag}] for sample_rate={self.sample_rate}, "
                f"frame_size={self.frame_size}, min_hz={self.min_hz}, max_hz={self.max_hz}"
            )
        if self.median_size < 1:
            raise ConfigurationError(f"median_size must be >= 1, got {self.median_size}")
        if self.cents_deadband < 0:
            raise ConfigurationError(f"cents_deadband must be >= 0, got {self.cents_deadband}")
        for name in (
            "attack_ignore_seconds",
            "short_hold_seconds",
            "long_hold_seconds",
            "long_hold_after_seconds",
        ):
            if getattr(self, name) < 0.0:
                raise ConfigurationError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.in_tune_cents < 0:
            raise ConfigurationError(f"in_tune_cents must be >= 0, got {self.in_tune_cents}")
        if not (0.0 < self.display_alpha <= 1.0):
            raise ConfigurationError(f"display_alpha must be in (0, 1], got {self.display_alpha}")
        if self.meter_range_cents <= 0:
            raise ConfigurationError(
                f"meter_range_cents must be positive, got {self.meter_range_cents}"
            )

    @property
    def min_lag(self) -> int:
        return lag_bounds(self.sample_rate, self.frame_size, self.min_hz, self.max_hz)[0]

    @property
    def max_lag(self) -> int:
        return lag_bounds(self.sample_rate, self.frame_size, self.min_hz, self.max_hz)[1]


def lag_bounds(sample_rate: int, frame_size: int, min_hz: float, max_hz: float) -> tuple[int, int]:
    # lag = period in samples, so the highest frequency gives the shortest lag.
    min_lag = max(1, int(sample_rate / float(max_hz)))
    max_lag = min(frame_size - 1, int(sample_rate / float(min_hz)))
    return min_lag, max_lag


DEFAULT_CONFIG = TunerConfig()
