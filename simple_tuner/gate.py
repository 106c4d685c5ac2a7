from __future__ import annotations

import logging
import math
from enum import Enum

import numpy as np

from simple_tuner.errors import ConfigurationError

logger = logging.getLogger(__name__)

EPS = 1e-9


def rms_db(samples: np.ndarray, eps: float = EPS) -> float:
    x = np.asarray(samples, dtype=np.float32)
    if x.size == 0:
        return 20.0 * math.log10(eps)
    rms = float(np.sqrt(np.mean(np.square(x, dtype=np.float64))))
    return 20.0 * math.log10(max(rms, eps))


class GateState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"


class VolumeGate:
    """
    Open/close detector on chunk loudness with a hysteresis band.

    Readings strictly between `close_db` and `open_db` keep the current state,
    so a level hovering around a single threshold does not chatter.
    """

    def __init__(self, open_db: float = -72.0, close_db: float = -80.0) -> None:
        if open_db <= close_db:
            raise ConfigurationError(
                f"open_db ({open_db}) must be greater than close_db ({close_db})"
            )
        self.open_db = float(open_db)
        self.close_db = float(close_db)
        self.state = GateState.CLOSED
        self.last_db: float | None = None
        self.opened_at: float | None = None

    @property
    def has_signal(self) -> bool:
        return self.state == GateState.OPEN

    def update(self, db: float, now: float) -> bool:
        if self.state == GateState.CLOSED and db >= self.open_db:
            self.state = GateState.OPEN
            self.last_db = float(db)
            self.opened_at = float(now)
            logger.debug("gate opened at %.1f dB", db)
        elif self.state == GateState.OPEN and db <= self.close_db:
            self.state = GateState.CLOSED
            self.last_db = float(db)
            logger.debug("gate closed at %.1f dB", db)
        return self.has_signal

    def reset(self) -> None:
        self.state = GateState.CLOSED
        self.last_db = None
        self.opened_at = None


class AttackSuppressor:
    # Masks the first `ignore_seconds` after each gate opening (pick attack).
    def __init__(self, ignore_seconds: float = 0.1) -> None:
        if ignore_seconds < 0:
            raise ConfigurationError(f"ignore_seconds must be >= 0, got {ignore_seconds}")
        self.ignore_seconds = float(ignore_seconds)

    def allows(self, opened_at: float | None, now: float) -> bool:
        if opened_at is None:
            return False
        return (now - opened_at) >= self.ignore_seconds
