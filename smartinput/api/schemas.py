"""
Pydantic schemas for the FastAPI local API.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

# ── Surfaces ───────────────────────────────────────────────────────────────

class SurfaceOpenIn(BaseModel):
    surface_id: str = Field(..., min_length=1)
    text: Optional[str] = None
    language: str = Field(default="plain", description="python | java | kotlin | javascript | …")


class DocumentIn(BaseModel):
    text: str
    language: str = "plain"


class CaretIn(BaseModel):
    offset: Optional[int] = Field(default=None, ge=0)
    line: Optional[int] = Field(default=None, ge=0, description="0-based line")
    column: Optional[int] = Field(default=None, ge=0, description="0-based column")
    timestamp_ms: Optional[float] = Field(
        default=None, description="Unix epoch ms of the caret event; defaults to arrival time"
    )

    @model_validator(mode="after")
    def _offset_or_position(self) -> "CaretIn":
        if self.offset is None and (self.line is None or self.column is None):
            raise ValueError("either offset or line and column is required")
        return self


class FocusIn(BaseModel):
    has_focus: bool
    offset: Optional[int] = Field(default=None, ge=0)


class IndicatorOut(BaseModel):
    visible: bool
    mode: str
    region: Optional[str]
    confidence: Optional[float]
    opacity: float
    timeout_ms: int


class GateStateOut(BaseModel):
    last_switch_ms: Optional[float]
    last_switch_target: str
    last_switch_context: str
    logical_current_mode: str


class SurfaceOut(BaseModel):
    surface_id: str
    has_focus: bool
    caret_offset: int
    has_pending_cycle: bool
    cycles_run: int
    gate: GateStateOut
    last_region: Optional[str]
    last_confidence: Optional[float]
    last_description: Optional[str]
    last_decision: Optional[str]
    indicator: Optional[IndicatorOut]


# ── Decision cycles ────────────────────────────────────────────────────────

class CycleResultOut(BaseModel):
    surface_id: str
    region: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    description: str
    target_mode: str
    decision: str
    context_tag: str
    success: Optional[bool]
    error: Optional[str]


class ManualSwitchIn(BaseModel):
    surface_id: str
    mode: Optional[str] = Field(default=None, description="latin | native; omit to toggle")


class ClassifyIn(BaseModel):
    text: str
    language: str = "plain"
    offset: int = Field(..., ge=0)


class ClassificationOut(BaseModel):
    region: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    suggested_mode: str
    target_mode: str
    description: str
    reason: str


# ── History ────────────────────────────────────────────────────────────────

class SwitchRecordOut(BaseModel):
    id: Optional[int]
    timestamp: float
    surface_id: str
    context_tag: str
    region_kind: str
    target_mode: str
    decision: str
    success: Optional[bool]
    detail: str


class HistorySummaryOut(BaseModel):
    decision_counts: Dict[str, int]
    failures: int
    last_mode_by_context: Dict[str, str]


# ── Platform ───────────────────────────────────────────────────────────────

class PlatformOut(BaseModel):
    platform: str
    os_name: str
    os_version: str
    os_arch: str
    python_version: str
    is_supported: bool
    switcher: str
    switcher_available: bool
    supported_modes: List[str]
    input_methods: Dict[str, Any] = Field(default_factory=dict)
