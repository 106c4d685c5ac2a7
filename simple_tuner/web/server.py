from __future__ import annotations

import json
import logging

import uvicorn
from fastapi import FastAPI, File, HTTPException, UploadFile, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from simple_tuner import __version__
from simple_tuner.errors import ConfigurationError
from simple_tuner.offline import analyze_waveform, load_audio, summarize
from simple_tuner.web.schemas import AnalyzeResponse, InitMessage, ResetMessage
from simple_tuner.web.session import RealtimeSession, SessionManager

logger = logging.getLogger(__name__)

app = FastAPI(title="Simple Tuner", version=__version__)
sessions = SessionManager()


@app.get("/api/health")
async def health() -> dict[str, object]:
    return {
        "status": "ok",
        "version": __version__,
        "activeSessions": sessions.active_count,
    }


@app.post("/api/analyze")
async def analyze_upload(audio: UploadFile = File(...)) -> dict[str, object]:
    payload = await audio.read()
    if not payload:
        raise HTTPException(status_code=400, detail="Audio file is empty")

    try:
        waveform, sample_rate = load_audio(payload)
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(status_code=400, detail=f"Unable to decode audio: {exc}") from exc

    try:
        results = analyze_waveform(waveform, sample_rate)
    except ConfigurationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    summary = summarize(results)
    return AnalyzeResponse.model_validate(summary.to_dict()).model_dump(by_alias=True)


@app.websocket("/ws/realtime")
async def realtime_ws(websocket: WebSocket) -> None:
    await websocket.accept()
    session = sessions.create()
    await websocket.send_json({"type": "status", "message": "Connected."})

    try:
        while True:
            message = await websocket.receive()
            if message.get("type") == "websocket.disconnect":
                break
            text = message.get("text")
            binary = message.get("bytes")

            if text is not None:
                for event in _handle_text_message(session, text):
                    await websocket.send_json(event)
            elif binary is not None:
                for event in session.process_audio_bytes(binary):
                    await websocket.send_json(event)
    except WebSocketDisconnect:
        pass
    finally:
        sessions.remove(session.session_id)


def _handle_text_message(session: RealtimeSession, text: str) -> list[dict[str, object]]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return [{"type": "error", "code": "invalid_json", "message": "Invalid JSON payload"}]

    if not isinstance(payload, dict):
        return [{"type": "error", "code": "invalid_payload", "message": "Expected JSON object"}]

    msg_type = payload.get("type")
    try:
        if msg_type == "init":
            msg = InitMessage.model_validate(payload)
            session.init(
                sample_rate=msg.sample_rate,
                min_hz=msg.min_hz,
                max_hz=msg.max_hz,
                gate_open_db=msg.gate_open_db,
                gate_close_db=msg.gate_close_db,
            )
            return [{"type": "status", "message": "Session initialized."}]

        if msg_type == "reset":
            ResetMessage.model_validate(payload)
            session.reset()
            return [{"type": "status", "message": "Session reset."}]

    except ValidationError as exc:
        return [{"type": "error", "code": "invalid_message", "message": str(exc)}]
    except ConfigurationError as exc:
        return [{"type": "error", "code": "invalid_config", "message": str(exc)}]

    return [{"type": "error", "code": "unknown_message", "message": f"Unknown type: {msg_type}"}]


def main(host: str = "0.0.0.0", port: int = 8000) -> None:
    uvicorn.run(
        "simple_tuner.web.server:app",
        host=host,
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    main()
