from __future__ import annotations

import threading
import time

import numpy as np
import pytest

from simple_tuner.analyzer import NoObservation
from simple_tuner.config import TunerConfig
from simple_tuner.errors import DeviceInitFailure, TransientReadFailure
from simple_tuner.notes import PitchObservation
from simple_tuner.session import LatestValue, TunerSession


class FakeSource:
    def __init__(self, chunks, sample_rate: int = 48_000, fail_start: Exception | None = None) -> None:
        self.sample_rate = sample_rate
        self._chunks = list(chunks)
        self._fail_start = fail_start
        self.started = 0
        self.stopped = 0
        self.lock = threading.Lock()

    def start(self) -> None:
        self.started += 1
        if self._fail_start is not None:
            raise self._fail_start

    def stop(self) -> None:
        with self.lock:
            self.stopped += 1

    def read(self, timeout=None):
        with self.lock:
            if not self._chunks:
                item = None
            else:
                item = self._chunks.pop(0)
        if item is None:
            time.sleep(0.001)
            return None
        if isinstance(item, Exception):
            raise item
        return item


class _Clock:
    def __init__(self, step: float) -> None:
        self.t = 0.0
        self.step = step

    def __call__(self) -> float:
        self.t += self.step
        return self.t


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.005)
    return False


def _tone_chunks(freq: float, seconds: float, block: int = 1024, sr: int = 48_000):
    t = np.arange(int(sr * seconds), dtype=np.float64) / sr
    wave = (0.3 * np.sin(2 * np.pi * freq * t)).astype(np.float32)
    return [wave[i : i + block] for i in range(0, wave.size - block + 1, block)]


def test_latest_value_keeps_newest() -> None:
    channel: LatestValue[int] = LatestValue()
    assert channel.get() == (0, None)
    for i in range(5):
        channel.publish(i)
    assert channel.get() == (5, 4)
    assert channel.wait_newer(5, timeout=0.01) == (5, 4)


def test_session_publishes_observations_in_order() -> None:
    chunks = _tone_chunks(110.0, 0.5)
    source = FakeSource(chunks)
    session = TunerSession(source, TunerConfig(), clock=_Clock(1024 / 48_000))
    seen: list[object] = []

    with session:
        version = 0
        deadline = time.monotonic() + 5.0
        while time.monotonic() < deadline:
            version, value = session.latest.wait_newer(version, timeout=0.05)
            if value is not None:
                seen.append(value)
            if version >= len(chunks):
                break

    assert source.stopped == 1
    assert session.latest.get()[0] >= len(chunks)
    _, last = session.latest.get()
    assert isinstance(last, PitchObservation)
    assert last.note_name == "A2"
    assert seen


def test_transient_read_failures_are_skipped() -> None:
    chunks = _tone_chunks(110.0, 0.1)
    chunks.insert(1, TransientReadFailure("overflow"))
    source = FakeSource(chunks)
    session = TunerSession(source, TunerConfig())
    session.start()
    try:
        assert _wait_for(lambda: session.latest.get()[0] >= len(chunks) - 1)
    finally:
        session.stop()
    assert session.error is None


def test_stop_is_idempotent_and_releases_once() -> None:
    source = FakeSource([])
    session = TunerSession(source, TunerConfig())
    session.start()
    assert session.is_running
    session.stop()
    session.stop()
    assert not session.is_running
    assert source.stopped == 1


def test_start_failure_releases_device() -> None:
    source = FakeSource([], fail_start=DeviceInitFailure("busy"))
    session = TunerSession(source, TunerConfig())
    with pytest.raises(DeviceInitFailure):
        session.start()
    assert source.stopped == 1
    assert not session.is_running
    session.stop()
    assert source.stopped == 1


def test_loop_error_stops_session_and_releases() -> None:
    source = FakeSource([RuntimeError("device unplugged")])
    session = TunerSession(source, TunerConfig())
    session.start()
    assert _wait_for(lambda: not session.is_running)
    assert isinstance(session.error, RuntimeError)
    assert source.stopped == 1
    session.stop()
    assert source.stopped == 1


def test_restart_uses_fresh_state() -> None:
    source = FakeSource(_tone_chunks(110.0, 0.3))
    session = TunerSession(source, TunerConfig(), clock=_Clock(1024 / 48_000))
    session.start()
    assert _wait_for(lambda: isinstance(session.latest.get()[1], PitchObservation))
    session.stop()

    source._chunks = _tone_chunks(110.0, 0.03)
    session.start()
    try:
        assert _wait_for(lambda: session.latest.get()[1] is not None)
        assert isinstance(session.latest.get()[1], NoObservation)
    finally:
        session.stop()
    assert source.started == 2
    assert source.stopped == 2


def test_config_follows_source_sample_rate() -> None:
    session = TunerSession(FakeSource([], sample_rate=44_100), TunerConfig())
    assert session.config.sample_rate == 44_100
