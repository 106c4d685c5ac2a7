from __future__ import annotations

import math
import re
from dataclasses import dataclass

A4_HZ = 440.0
A4_MIDI = 69
NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

_NOTE_RE = re.compile(r"^([A-G]#?)(-?\d+)$")


@dataclass(frozen=True)
class PitchObservation:
    frequency_hz: float
    note_name: str
    cents: int

    def to_dict(self) -> dict[str, object]:
        return {
            "hz": float(self.frequency_hz),
            "note": self.note_name,
            "cents": int(self.cents),
        }


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


class NoteMapper:
    """Nearest 12-TET note (A4 = 440 Hz) and deviation in cents."""

    def map(self, hz: float) -> PitchObservation:
        if not math.isfinite(hz) or hz <= 0:
            raise ValueError(f"frequency must be positive and finite, got {hz}")
        semitone = 12.0 * math.log2(hz / A4_HZ)
        nearest = _round_half_up(semitone)
        cents = _round_half_up(100.0 * (semitone - nearest))
        return PitchObservation(
            frequency_hz=float(hz),
            note_name=note_name(A4_MIDI + nearest),
            cents=cents,
        )


def note_name(midi: int) -> str:
    # Octave numbering follows scientific pitch notation (MIDI 60 = C4).
    return f"{NOTE_NAMES[midi % 12]}{midi // 12 - 1}"


def note_frequency(name: str) -> float:
    m = _NOTE_RE.match(name.strip())
    if m is None:
        raise ValueError(f"not a note name: {name!r}")
    pitch_class, octave = m.groups()
    midi = (int(octave) + 1) * 12 + NOTE_NAMES.index(pitch_class)
    return float(A4_HZ * (2.0 ** ((midi - A4_MIDI) / 12.0)))
