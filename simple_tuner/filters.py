from __future__ import annotations

from collections import deque

from simple_tuner.errors import ConfigurationError


class MedianFilter:
    """
    Sliding median over the last `size` frequency estimates.

    A single octave jump or noise spike drags a mean along with it but
    rarely lands in the middle of the sorted window.
    """

    def __init__(self, size: int = 7) -> None:
        if size < 1:
            raise ConfigurationError(f"size must be >= 1, got {size}")
        self.size = int(size)
        self._buf: deque[float] = deque(maxlen=self.size)

    def push(self, value: float) -> float:
        self._buf.append(float(value))
        ordered = sorted(self._buf)
        # Even windows take the upper of the two middle values.
        return ordered[len(ordered) // 2]

    def __len__(self) -> int:
        return len(self._buf)

    def reset(self) -> None:
        self._buf.clear()


class CentsHysteresis:
    # Snaps |cents| <= snap_to_zero_cents to exactly 0.
    def __init__(self, snap_to_zero_cents: int = 2) -> None:
        if snap_to_zero_cents < 0:
            raise ConfigurationError(
                f"snap_to_zero_cents must be >= 0, got {snap_to_zero_cents}"
            )
        self.snap_to_zero_cents = int(snap_to_zero_cents)

    def apply(self, cents: int) -> int:
        return 0 if abs(cents) <= self.snap_to_zero_cents else int(cents)
