from __future__ import annotations

import io
from collections import Counter
from dataclasses import dataclass, replace
from pathlib import Path
from typing import BinaryIO, Union

import numpy as np
import soundfile as sf

from simple_tuner.analyzer import AnalysisResult, PitchAnalyzer
from simple_tuner.config import DEFAULT_CONFIG, TunerConfig
from simple_tuner.notes import PitchObservation


@dataclass(frozen=True)
class TimedResult:
    t: float
    result: AnalysisResult


@dataclass(frozen=True)
class RecordingSummary:
    note: str | None
    median_hz: float | None
    median_cents: int | None
    voiced_ratio: float
    observations: int
    chunks: int

    def to_dict(self) -> dict[str, object]:
        return {
            "note": self.note,
            "medianHz": self.median_hz,
            "medianCents": self.median_cents,
            "voicedRatio": self.voiced_ratio,
            "observations": self.observations,
            "chunks": self.chunks,
        }


def analyze_waveform(
    audio: np.ndarray, sample_rate: int, config: TunerConfig | None = None
) -> list[TimedResult]:
    """
    Run a whole recording through a fresh analyzer, one chunk at a time.

    The clock is derived from the sample position (end of each chunk), so
    gate/attack timing matches what a live capture at the same block size
    would have seen.
    """
    cfg = config or DEFAULT_CONFIG
    if cfg.sample_rate != sample_rate:
        cfg = replace(cfg, sample_rate=int(sample_rate))
    analyzer = PitchAnalyzer(cfg)

    mono = np.asarray(audio, dtype=np.float32)
    if mono.ndim == 2:
        mono = np.mean(mono, axis=1, dtype=np.float32)

    out: list[TimedResult] = []
    hop = cfg.chunk_size
    for i in range(0, mono.size, hop):
        block = mono[i : i + hop]
        if block.size == 0:
            continue
        t = (i + block.size) / float(cfg.sample_rate)
        out.append(TimedResult(t=t, result=analyzer.process(block, t)))
    return out


def analyze_file(
    source: Union[str, Path, BinaryIO], config: TunerConfig | None = None
) -> list[TimedResult]:
    audio, sample_rate = load_audio(source)
    return analyze_waveform(audio, sample_rate, config)


def load_audio(source: Union[str, Path, BinaryIO, bytes]) -> tuple[np.ndarray, int]:
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    data, sample_rate = sf.read(source, dtype="float32", always_2d=False)
    audio = np.asarray(data, dtype=np.float32)
    if audio.ndim == 2:
        audio = np.mean(audio, axis=1, dtype=np.float32)
    if audio.size == 0:
        raise ValueError("decoded audio is empty")
    return audio, int(sample_rate)


def summarize(results: list[TimedResult]) -> RecordingSummary:
    observed = [r.result for r in results if isinstance(r.result, PitchObservation)]
    if not observed:
        return RecordingSummary(
            note=None,
            median_hz=None,
            median_cents=None,
            voiced_ratio=0.0,
            observations=0,
            chunks=len(results),
        )

    note, _ = Counter(o.note_name for o in observed).most_common(1)[0]
    on_note = [o for o in observed if o.note_name == note]
    return RecordingSummary(
        note=note,
        median_hz=float(np.median(np.array([o.frequency_hz for o in on_note], dtype=np.float64))),
        median_cents=int(np.median(np.array([o.cents for o in on_note], dtype=np.float64))),
        voiced_ratio=float(len(observed) / len(results)),
        observations=len(observed),
        chunks=len(results),
    )
