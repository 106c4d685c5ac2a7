from __future__ import annotations

from simple_tuner.analyzer import NoObservation, NoObservationReason, PitchAnalyzer
from simple_tuner.config import DEFAULT_CONFIG, TunerConfig
from simple_tuner.notes import NoteMapper, PitchObservation

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_CONFIG",
    "NoObservation",
    "NoObservationReason",
    "NoteMapper",
    "PitchAnalyzer",
    "PitchObservation",
    "TunerConfig",
    "__version__",
]
