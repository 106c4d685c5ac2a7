from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class InitMessage(_Model):
    type: Literal["init"]
    sample_rate: int = Field(alias="sampleRate", ge=8_000, le=192_000)
    min_hz: float | None = Field(alias="minHz", default=None, gt=0.0)
    max_hz: float | None = Field(alias="maxHz", default=None, gt=0.0)
    gate_open_db: float | None = Field(alias="gateOpenDb", default=None, le=0.0)
    gate_close_db: float | None = Field(alias="gateCloseDb", default=None, le=0.0)


class ResetMessage(_Model):
    type: Literal["reset"]


class StatusEvent(_Model):
    type: Literal["status"] = "status"
    message: str


class ErrorEvent(_Model):
    type: Literal["error"] = "error"
    code: str
    message: str


class TunerUpdateEvent(_Model):
    type: Literal["tuner_update"] = "tuner_update"
    t: float
    note: str | None
    hz: float | None
    cents: int | None
    smoothed_cents: int = Field(alias="smoothedCents")
    in_tune: bool = Field(alias="inTune")
    emphasis: Literal["live", "held", "none"]
    hold_phase: Literal["empty", "live", "short_hold", "long_hold"] = Field(alias="holdPhase")
    meter_opacity: float = Field(alias="meterOpacity")
    needle_opacity: float = Field(alias="needleOpacity")


class AnalyzeResponse(_Model):
    note: str | None
    median_hz: float | None = Field(alias="medianHz")
    median_cents: int | None = Field(alias="medianCents")
    voiced_ratio: float = Field(alias="voicedRatio")
    observations: int
    chunks: int
