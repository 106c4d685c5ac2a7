from __future__ import annotations

import pytest

from simple_tuner.analyzer import NoObservation, NoObservationReason
from simple_tuner.config import TunerConfig
from simple_tuner.display import DisplaySmoother, Emphasis, TunerDisplay
from simple_tuner.errors import ConfigurationError
from simple_tuner.hold import HoldPhase
from simple_tuner.notes import PitchObservation

GATE_CLOSED = NoObservation(NoObservationReason.GATE_CLOSED)


def _obs(cents: int) -> PitchObservation:
    return PitchObservation(frequency_hz=110.0, note_name="A2", cents=cents)


def test_smoother_ema_and_reset_on_no_signal() -> None:
    smoother = DisplaySmoother(alpha=0.25)
    assert smoother.update(40, True) == 10
    assert smoother.update(20, True) == 12  # 10 * 0.75 + 20 * 0.25 = 12.5
    assert smoother.update(20, False) == 0


def test_smoother_only_moves_when_input_changes() -> None:
    smoother = DisplaySmoother(alpha=0.5)
    assert smoother.update(10, True) == 5
    assert smoother.update(10, True) == 5
    assert smoother.update(11, True) == 8


def test_smoother_truncates_toward_zero() -> None:
    smoother = DisplaySmoother(alpha=0.25)
    assert smoother.update(-6, True) == -1


def test_smoother_rejects_bad_alpha() -> None:
    with pytest.raises(ConfigurationError):
        DisplaySmoother(alpha=0.0)


def test_live_frame_emphasis_and_in_tune() -> None:
    display = TunerDisplay(TunerConfig())
    frame = display.update(_obs(0), 0.0)
    assert frame.emphasis == Emphasis.LIVE
    assert frame.in_tune
    assert frame.meter_opacity == 1.0
    assert frame.needle_opacity == 1.0
    assert frame.hold_phase == HoldPhase.LIVE


def test_held_value_never_claims_in_tune() -> None:
    display = TunerDisplay(TunerConfig())
    display.update(_obs(0), 0.0)
    frame = display.update(GATE_CLOSED, 0.2)
    assert frame.observation == _obs(0)
    assert frame.emphasis == Emphasis.HELD
    assert not frame.in_tune
    assert frame.meter_opacity == 0.75
    assert frame.needle_opacity == 0.6


def test_no_signal_frame() -> None:
    display = TunerDisplay(TunerConfig())
    frame = display.update(None, 0.0)
    assert frame.observation is None
    assert frame.emphasis == Emphasis.NONE
    assert frame.smoothed_cents == 0
    assert frame.meter_opacity == 0.45
    assert frame.needle_opacity == 0.0

    display.update(_obs(30), 1.0)
    frame = display.update(GATE_CLOSED, 2.0)
    assert frame.emphasis == Emphasis.NONE
    assert frame.smoothed_cents == 0


def test_cents_clamped_to_meter_range_before_smoothing() -> None:
    display = TunerDisplay(TunerConfig(display_alpha=1.0, meter_range_cents=50))
    frame = display.update(_obs(-120), 0.0)
    assert frame.smoothed_cents == -50
    assert frame.observation.cents == -120


def test_not_in_tune_when_smoothed_is_off() -> None:
    display = TunerDisplay(TunerConfig(display_alpha=1.0))
    assert not display.update(_obs(12), 0.0).in_tune
    assert display.update(_obs(-5), 0.1).in_tune


def test_event_payload() -> None:
    display = TunerDisplay(TunerConfig())
    event = display.update(_obs(8), 0.0).to_event()
    assert event["type"] == "tuner_update"
    assert event["note"] == "A2"
    assert event["cents"] == 8
    assert event["smoothedCents"] == 2
    assert event["emphasis"] == "live"
    assert event["holdPhase"] == "live"
