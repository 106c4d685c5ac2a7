from __future__ import annotations

import numpy as np
import pytest


def sine(freq: float, sample_rate: int, n: int, amplitude: float = 0.3, phase: float = 0.0) -> np.ndarray:
    t = np.arange(n, dtype=np.float64) / float(sample_rate)
    return (amplitude * np.sin(2.0 * np.pi * freq * t + phase)).astype(np.float32)


@pytest.fixture
def tone():
    return sine
