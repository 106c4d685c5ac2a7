from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union

import numpy as np

from simple_tuner.config import DEFAULT_CONFIG, TunerConfig
from simple_tuner.filters import CentsHysteresis, MedianFilter
from simple_tuner.gate import AttackSuppressor, VolumeGate, rms_db
from simple_tuner.notes import NoteMapper, PitchObservation
from simple_tuner.pitch import AutocorrelationPitchDetector, PitchDetector
from simple_tuner.ring_buffer import RingBuffer


class NoObservationReason(str, Enum):
    WARMING_UP = "warming_up"
    GATE_CLOSED = "gate_closed"
    ATTACK = "attack"
    NO_ESTIMATE = "no_estimate"


@dataclass(frozen=True)
class NoObservation:
    reason: NoObservationReason


AnalysisResult = Union[PitchObservation, NoObservation]


def observation_or_none(result: AnalysisResult | None) -> PitchObservation | None:
    return result if isinstance(result, PitchObservation) else None


class AnalysisState:
    """Per-session filter state. Never shared between sessions."""

    def __init__(self, config: TunerConfig) -> None:
        self.ring = RingBuffer(config.frame_size)
        self.gate = VolumeGate(open_db=config.gate_open_db, close_db=config.gate_close_db)
        self.attack = AttackSuppressor(config.attack_ignore_seconds)
        self.median = MedianFilter(config.median_size)
        self.hysteresis = CentsHysteresis(config.cents_deadband)


class PitchAnalyzer:
    """
    Turns a sequence of capture chunks into one result per chunk.

    Order per chunk: ring buffer -> volume gate -> attack mask -> detector
    -> median -> note mapping -> cents snap. The ring buffer keeps filling
    while the gate is closed or the attack is masked.
    """

    def __init__(
        self,
        config: TunerConfig = DEFAULT_CONFIG,
        *,
        detector: PitchDetector | None = None,
        mapper: NoteMapper | None = None,
    ) -> None:
        self.config = config
        self.detector = detector or AutocorrelationPitchDetector.from_config(config)
        self.mapper = mapper or NoteMapper()
        self.state = AnalysisState(config)

    @property
    def sample_rate(self) -> int:
        return self.config.sample_rate

    def reset(self) -> None:
        self.state = AnalysisState(self.config)

    def process(self, chunk: np.ndarray, now: float) -> AnalysisResult:
        st = self.state
        mono = np.asarray(chunk, dtype=np.float32).reshape(-1)
        st.ring.push(mono)
        if not st.ring.is_ready:
            return NoObservation(NoObservationReason.WARMING_UP)

        if mono.size == 0:
            # Nothing new to measure; never re-estimate a stale frame.
            if st.gate.has_signal:
                return NoObservation(NoObservationReason.NO_ESTIMATE)
            return NoObservation(NoObservationReason.GATE_CLOSED)

        # Loudness of the newest chunk only, so the gate reacts quickly.
        st.gate.update(rms_db(mono), now)
        if not st.gate.has_signal:
            return NoObservation(NoObservationReason.GATE_CLOSED)
        if not st.attack.allows(st.gate.opened_at, now):
            return NoObservation(NoObservationReason.ATTACK)

        raw_hz = self.detector.estimate_frequency_hz(st.ring.snapshot(), self.config.sample_rate)
        if raw_hz is None:
            return NoObservation(NoObservationReason.NO_ESTIMATE)

        hz = st.median.push(raw_hz)
        mapped = self.mapper.map(hz)
        return PitchObservation(
            frequency_hz=hz,
            note_name=mapped.note_name,
            cents=st.hysteresis.apply(mapped.cents),
        )
