from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Protocol, Union

import numpy as np
import sounddevice as sd

from simple_tuner.errors import DeviceInitFailure, PermissionDenied, TransientReadFailure

logger = logging.getLogger(__name__)


class AudioSource(Protocol):
    @property
    def sample_rate(self) -> int: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def read(self, timeout: float | None = None) -> np.ndarray | None: ...


@dataclass(frozen=True)
class AudioInputConfig:
    sample_rate: int = 48_000
    channels: int = 1
    block_size: int = 1024
    device: int | str | None = None
    # Blocks buffered between the driver callback and the analysis thread.
    queue_blocks: int = 32


# A queued item is either a mono block or the status text of a failed block.
_QueueItem = Union[np.ndarray, str]


def pcm16_to_float(buf: np.ndarray) -> np.ndarray:
    return np.asarray(buf, dtype=np.int16).astype(np.float32) / 32768.0


class AudioInput:
    """
    Microphone capture through a sounddevice input stream.

    The driver callback only copies the first channel into a bounded queue;
    when the consumer falls behind the oldest block is dropped.
    """

    def __init__(self, config: AudioInputConfig | None = None) -> None:
        self._cfg = config or AudioInputConfig()
        self._lock = threading.Lock()
        self._queue: queue.Queue[_QueueItem] = queue.Queue(maxsize=max(1, self._cfg.queue_blocks))
        self._stream: sd.InputStream | None = None

    @property
    def sample_rate(self) -> int:
        return self._cfg.sample_rate

    @property
    def block_size(self) -> int:
        return self._cfg.block_size

    @property
    def is_running(self) -> bool:
        return self._stream is not None

    def start(self) -> None:
        with self._lock:
            if self._stream is not None:
                return

            def callback(indata, frames, time_info, status) -> None:  # noqa: ARG001
                if status:
                    self._enqueue(str(status))
                    return
                self._enqueue(np.asarray(indata[:, 0], dtype=np.float32).copy())

            stream: sd.InputStream | None = None
            try:
                stream = sd.InputStream(
                    samplerate=self._cfg.sample_rate,
                    channels=self._cfg.channels,
                    blocksize=self._cfg.block_size,
                    device=self._cfg.device,
                    dtype="float32",
                    callback=callback,
                )
                stream.start()
            except PermissionError as exc:
                _close_quietly(stream)
                raise PermissionDenied(f"microphone access not authorized: {exc}") from exc
            except (sd.PortAudioError, OSError, ValueError) as exc:
                _close_quietly(stream)
                raise DeviceInitFailure(f"could not open input device: {exc}") from exc

            self._stream = stream
            logger.info(
                "input stream started (sr=%d, block=%d, device=%s)",
                self._cfg.sample_rate,
                self._cfg.block_size,
                self._cfg.device,
            )

    def stop(self) -> None:
        with self._lock:
            stream = self._stream
            self._stream = None
        if stream is None:
            return
        _close_quietly(stream)
        self._drain()
        logger.info("input stream stopped")

    def read(self, timeout: float | None = None) -> np.ndarray | None:
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
        if isinstance(item, str):
            raise TransientReadFailure(f"input status: {item}")
        return item

    def _enqueue(self, item: _QueueItem) -> None:
        while True:
            try:
                self._queue.put_nowait(item)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    logger.debug("capture queue full, dropped oldest block")
                except queue.Empty:
                    pass

    def _drain(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return


def _close_quietly(stream: sd.InputStream | None) -> None:
    # The session is ending regardless; teardown errors are only logged.
    if stream is None:
        return
    try:
        stream.stop()
    except Exception as exc:  # noqa: BLE001
        logger.warning("error stopping input stream: %s", exc)
    try:
        stream.close()
    except Exception as exc:  # noqa: BLE001
        logger.warning("error closing input stream: %s", exc)
