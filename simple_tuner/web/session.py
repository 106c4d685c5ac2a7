from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import replace

import numpy as np

from simple_tuner.analyzer import PitchAnalyzer
from simple_tuner.config import DEFAULT_CONFIG, TunerConfig
from simple_tuner.display import TunerDisplay
from simple_tuner.web.schemas import TunerUpdateEvent

logger = logging.getLogger(__name__)


class RealtimeSession:
    """
    Analyzer and display state for one websocket connection.

    The browser streams float32 PCM; it is re-blocked into `chunk_size`
    blocks and each block yields exactly one `tuner_update` event. Time is
    the sample position, not the wall clock, so network jitter does not
    stretch the attack mask or the hold windows.
    """

    def __init__(self, session_id: str, config: TunerConfig = DEFAULT_CONFIG) -> None:
        self.session_id = session_id
        self._processing_buffer = np.zeros(0, dtype=np.float32)
        self._configure(config)

    @property
    def config(self) -> TunerConfig:
        return self.analyzer.config

    def init(
        self,
        *,
        sample_rate: int,
        min_hz: float | None = None,
        max_hz: float | None = None,
        gate_open_db: float | None = None,
        gate_close_db: float | None = None,
    ) -> None:
        overrides: dict[str, object] = {"sample_rate": int(sample_rate)}
        if min_hz is not None:
            overrides["min_hz"] = float(min_hz)
        if max_hz is not None:
            overrides["max_hz"] = float(max_hz)
        if gate_open_db is not None:
            overrides["gate_open_db"] = float(gate_open_db)
        if gate_close_db is not None:
            overrides["gate_close_db"] = float(gate_close_db)
        # Raises ConfigurationError before any state is replaced.
        config = replace(self.config, **overrides)
        self._configure(config)

    def reset(self) -> None:
        self._configure(self.config)

    def process_audio_bytes(self, payload: bytes) -> list[dict[str, object]]:
        if not payload:
            return []

        usable = len(payload) - (len(payload) % 4)
        frame = np.frombuffer(payload[:usable], dtype=np.float32)
        if frame.size == 0:
            return []

        self._processing_buffer = np.concatenate((self._processing_buffer, frame))
        block_size = self.config.chunk_size
        sample_rate = float(self.config.sample_rate)
        events: list[dict[str, object]] = []

        while self._processing_buffer.size >= block_size:
            block = self._processing_buffer[:block_size]
            self._processing_buffer = self._processing_buffer[block_size:]
            self._clock += block_size / sample_rate
            result = self.analyzer.process(block, self._clock)
            frame_state = self.display.update(result, self._clock)
            event = TunerUpdateEvent.model_validate({**frame_state.to_event(), "t": self._clock})
            events.append(event.model_dump(by_alias=True))

        return events

    def _configure(self, config: TunerConfig) -> None:
        self.analyzer = PitchAnalyzer(config)
        self.display = TunerDisplay(config)
        self._processing_buffer = np.zeros(0, dtype=np.float32)
        self._clock = 0.0


class SessionManager:
    def __init__(self) -> None:
        self._sessions: dict[str, RealtimeSession] = {}
        self._lock = threading.Lock()

    def create(self) -> RealtimeSession:
        session_id = uuid.uuid4().hex
        session = RealtimeSession(session_id)
        with self._lock:
            self._sessions[session_id] = session
        logger.info("realtime session %s opened", session_id)
        return session

    def remove(self, session_id: str) -> None:
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.info("realtime session %s closed", session_id)

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)
