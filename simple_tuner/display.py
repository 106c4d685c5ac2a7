from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from simple_tuner.analyzer import AnalysisResult, observation_or_none
from simple_tuner.config import DEFAULT_CONFIG, TunerConfig
from simple_tuner.errors import ConfigurationError
from simple_tuner.hold import HoldPhase, HoldPolicy
from simple_tuner.notes import PitchObservation


class Emphasis(str, Enum):
    LIVE = "live"
    HELD = "held"
    NONE = "none"

    @property
    def meter_opacity(self) -> float:
        return _METER_OPACITY[self]

    @property
    def needle_opacity(self) -> float:
        return _NEEDLE_OPACITY[self]


_METER_OPACITY = {Emphasis.LIVE: 1.0, Emphasis.HELD: 0.75, Emphasis.NONE: 0.45}
_NEEDLE_OPACITY = {Emphasis.LIVE: 1.0, Emphasis.HELD: 0.6, Emphasis.NONE: 0.0}


class DisplaySmoother:
    """
    EMA over the cents shown on the meter. Cosmetic only.

    The average only moves when the (raw_cents, has_signal) pair changes, so
    repeating the same reading does not keep pulling the needle.
    """

    def __init__(self, alpha: float = 0.25) -> None:
        if not (0.0 < alpha <= 1.0):
            raise ConfigurationError(f"alpha must be in (0, 1], got {alpha}")
        self.alpha = float(alpha)
        self._smoothed = 0.0
        self._last_key: tuple[int, bool] | None = None

    @property
    def value(self) -> int:
        return int(self._smoothed)

    def update(self, raw_cents: int, has_signal: bool) -> int:
        key = (int(raw_cents), bool(has_signal))
        if key != self._last_key:
            self._last_key = key
            if has_signal:
                self._smoothed = self._smoothed * (1.0 - self.alpha) + raw_cents * self.alpha
            else:
                self._smoothed = 0.0
        return self.value

    def reset(self) -> None:
        self._smoothed = 0.0
        self._last_key = None


@dataclass(frozen=True)
class DisplayFrame:
    observation: PitchObservation | None
    emphasis: Emphasis
    hold_phase: HoldPhase
    smoothed_cents: int
    in_tune: bool

    @property
    def meter_opacity(self) -> float:
        return self.emphasis.meter_opacity

    @property
    def needle_opacity(self) -> float:
        return self.emphasis.needle_opacity

    def to_event(self) -> dict[str, object]:
        obs = self.observation
        return {
            "type": "tuner_update",
            "note": obs.note_name if obs is not None else None,
            "hz": float(obs.frequency_hz) if obs is not None else None,
            "cents": int(obs.cents) if obs is not None else None,
            "smoothedCents": int(self.smoothed_cents),
            "inTune": bool(self.in_tune),
            "emphasis": self.emphasis.value,
            "holdPhase": self.hold_phase.value,
            "meterOpacity": float(self.meter_opacity),
            "needleOpacity": float(self.needle_opacity),
        }


class TunerDisplay:
    """Presentation model: hold policy, meter clamp, smoothing and in-tune flag."""

    def __init__(self, config: TunerConfig = DEFAULT_CONFIG) -> None:
        self.config = config
        self.hold = HoldPolicy.from_config(config)
        self.smoother = DisplaySmoother(config.display_alpha)

    def update(self, result: AnalysisResult | None, now: float) -> DisplayFrame:
        live = observation_or_none(result)
        held = self.hold.update(live, now)
        shown = live if live is not None else held

        if live is not None:
            emphasis = Emphasis.LIVE
        elif held is not None:
            emphasis = Emphasis.HELD
        else:
            emphasis = Emphasis.NONE

        limit = self.config.meter_range_cents
        raw = max(-limit, min(limit, shown.cents)) if shown is not None else 0
        smoothed = self.smoother.update(raw, shown is not None)
        # A held value is stale; only live readings may claim in-tune.
        in_tune = live is not None and abs(smoothed) <= self.config.in_tune_cents

        return DisplayFrame(
            observation=shown,
            emphasis=emphasis,
            hold_phase=self.hold.phase,
            smoothed_cents=smoothed,
            in_tune=in_tune,
        )

    def reset(self) -> None:
        self.hold.reset()
        self.smoother.reset()
