from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from typing import TYPE_CHECKING, Callable, Generic, TypeVar

from simple_tuner.analyzer import AnalysisResult, PitchAnalyzer
from simple_tuner.config import DEFAULT_CONFIG, TunerConfig
from simple_tuner.errors import TransientReadFailure

if TYPE_CHECKING:
    from simple_tuner.audio import AudioSource

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LatestValue(Generic[T]):
    """
    Single-slot, most-recent-value-wins channel between two threads.

    `publish` never blocks on the reader; intermediate values may be
    overwritten before they are read, the newest one never is.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._value: T | None = None
        self._version = 0

    def publish(self, value: T) -> None:
        with self._cond:
            self._value = value
            self._version += 1
            self._cond.notify_all()

    def get(self) -> tuple[int, T | None]:
        with self._cond:
            return self._version, self._value

    def wait_newer(self, version: int, timeout: float | None = None) -> tuple[int, T | None]:
        with self._cond:
            self._cond.wait_for(lambda: self._version > version, timeout=timeout)
            return self._version, self._value

    def clear(self) -> None:
        with self._cond:
            self._value = None
            self._version += 1
            self._cond.notify_all()


class TunerSession:
    """
    One running analysis session: capture source, worker thread, analyzer.

    Chunks are processed strictly in arrival order on the worker thread and
    every result is published to `latest`. The source is released on every
    exit path; `stop()` is safe to call any number of times.
    """

    def __init__(
        self,
        source: AudioSource,
        config: TunerConfig = DEFAULT_CONFIG,
        *,
        clock: Callable[[], float] = time.monotonic,
        read_timeout: float = 0.1,
    ) -> None:
        if config.sample_rate != source.sample_rate:
            config = replace(config, sample_rate=source.sample_rate)
        self.config = config
        self.latest: LatestValue[AnalysisResult] = LatestValue()
        self._source = source
        self._clock = clock
        self._read_timeout = float(read_timeout)
        self._analyzer: PitchAnalyzer | None = None
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()
        self._release_lock = threading.Lock()
        self._source_open = False
        self._error: BaseException | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def error(self) -> BaseException | None:
        return self._error

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        # Restarting gets fresh ring buffer, gate and median state.
        self._analyzer = PitchAnalyzer(self.config)
        self._error = None
        self._stop.clear()
        self.latest.clear()

        # PermissionDenied / DeviceInitFailure propagate to the caller.
        with self._release_lock:
            self._source_open = True
        try:
            self._source.start()
        except BaseException:
            self._release()
            raise

        self._thread = threading.Thread(target=self._run, name="tuner-capture", daemon=True)
        self._thread.start()
        logger.info("tuner session started (sr=%d)", self.config.sample_rate)

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._thread = None
        self._release()

    def __enter__(self) -> TunerSession:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _run(self) -> None:
        analyzer = self._analyzer
        assert analyzer is not None
        try:
            while not self._stop.is_set():
                try:
                    chunk = self._source.read(timeout=self._read_timeout)
                except TransientReadFailure as exc:
                    logger.debug("skipping chunk: %s", exc)
                    continue
                if chunk is None or chunk.size == 0:
                    continue
                self.latest.publish(analyzer.process(chunk, self._clock()))
        except Exception as exc:
            logger.exception("capture loop failed")
            self._error = exc
        finally:
            self._release()

    def _release(self) -> None:
        with self._release_lock:
            if not self._source_open:
                return
            self._source_open = False
        try:
            self._source.stop()
        except Exception as exc:  # noqa: BLE001
            logger.warning("error releasing audio source: %s", exc)
        logger.info("audio source released")
