from __future__ import annotations

import numpy as np

from simple_tuner.errors import ConfigurationError


class RingBuffer:
    """
    Fixed-capacity circular buffer of samples.

    Capture chunks rarely match the detection frame size, so chunks of any
    length are pushed here and the analyzer reads back the most recent
    `capacity` samples as one frame.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ConfigurationError(f"capacity must be positive, got {capacity}")
        self._ring = np.zeros(int(capacity), dtype=np.float32)
        self._pos = 0
        self._filled = 0

    @property
    def capacity(self) -> int:
        return int(self._ring.size)

    @property
    def filled(self) -> int:
        return self._filled

    @property
    def is_ready(self) -> bool:
        return self._filled >= self._ring.size

    def push(self, chunk: np.ndarray) -> None:
        x = np.asarray(chunk, dtype=np.float32).reshape(-1)
        n = int(x.size)
        if n == 0:
            return

        cap = self.capacity
        if n >= cap:
            # Only the tail survives; lay it out so that _pos points at the oldest sample.
            self._ring[:] = x[-cap:]
            self._pos = 0
            self._filled = cap
            return

        end = self._pos + n
        if end <= cap:
            self._ring[self._pos : end] = x
        else:
            first = cap - self._pos
            self._ring[self._pos :] = x[:first]
            self._ring[: n - first] = x[first:]
        self._pos = end % cap
        self._filled = min(cap, self._filled + n)

    def snapshot(self) -> np.ndarray:
        # Oldest first. Before the buffer is full the leading samples are zeros.
        return np.concatenate((self._ring[self._pos :], self._ring[: self._pos]))

    def reset(self) -> None:
        self._ring[:] = 0.0
        self._pos = 0
        self._filled = 0
