from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from simple_tuner.config import TunerConfig
from simple_tuner.errors import ConfigurationError
from simple_tuner.notes import PitchObservation


class HoldPhase(str, Enum):
    EMPTY = "empty"
    LIVE = "live"
    SHORT_HOLD = "short_hold"
    LONG_HOLD = "long_hold"


@dataclass
class HoldState:
    last_value: PitchObservation | None = None
    last_non_null_at: float | None = None
    continuity_started_at: float | None = None
    long_hold_eligible: bool = False


class HoldPolicy:
    """
    Two-stage hold over a stream of nullable observations.

    A gap right after a short note keeps the last value for
    `short_hold_seconds`. Once observations have been arriving for
    `long_hold_after_seconds` without the display going empty, a gap keeps
    the value for `long_hold_seconds` instead.

    There are no timers: every call to `update` re-evaluates the hold
    window against `now`, so callers tick it once per observation (or more
    often, passing None, to let a hold expire).
    """

    def __init__(
        self,
        short_hold_seconds: float = 0.6,
        long_hold_seconds: float = 2.0,
        long_hold_after_seconds: float = 1.2,
    ) -> None:
        if min(short_hold_seconds, long_hold_seconds, long_hold_after_seconds) < 0:
            raise ConfigurationError("hold durations must be >= 0")
        self.short_hold_seconds = float(short_hold_seconds)
        self.long_hold_seconds = float(long_hold_seconds)
        self.long_hold_after_seconds = float(long_hold_after_seconds)
        self.state = HoldState()
        self.phase = HoldPhase.EMPTY

    @classmethod
    def from_config(cls, config: TunerConfig) -> HoldPolicy:
        return cls(
            short_hold_seconds=config.short_hold_seconds,
            long_hold_seconds=config.long_hold_seconds,
            long_hold_after_seconds=config.long_hold_after_seconds,
        )

    @property
    def value(self) -> PitchObservation | None:
        return self.state.last_value

    def update(self, observation: PitchObservation | None, now: float) -> PitchObservation | None:
        st = self.state
        if observation is not None:
            st.last_value = observation
            st.last_non_null_at = now
            if st.continuity_started_at is None:
                st.continuity_started_at = now
            if now - st.continuity_started_at >= self.long_hold_after_seconds:
                st.long_hold_eligible = True
            self.phase = HoldPhase.LIVE
            return st.last_value

        if st.last_value is None:
            self.state = HoldState()
            self.phase = HoldPhase.EMPTY
            return None

        window = self.long_hold_seconds if st.long_hold_eligible else self.short_hold_seconds
        last = st.last_non_null_at if st.last_non_null_at is not None else now
        if now - last >= window:
            self.state = HoldState()
            self.phase = HoldPhase.EMPTY
            return None

        self.phase = HoldPhase.LONG_HOLD if st.long_hold_eligible else HoldPhase.SHORT_HOLD
        return st.last_value

    def reset(self) -> None:
        self.state = HoldState()
        self.phase = HoldPhase.EMPTY
