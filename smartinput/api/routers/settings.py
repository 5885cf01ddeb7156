"""
/settings — read and update user-tunable switching settings.
"""

from __future__ import annotations

from typing import Dict, Literal, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from ...settings import DEFAULTS, get_settings, reset_settings, update_settings

router = APIRouter(prefix="/settings", tags=["settings"])

Preference = Literal["latin", "native", "auto"]


class SettingsPatch(BaseModel):
    enabled:                    Optional[bool]  = None
    auto_switch:                Optional[bool]  = None
    show_indicator:             Optional[bool]  = None
    debug_mode:                 Optional[bool]  = None
    switch_in_code_areas:       Optional[bool]  = None
    switch_in_comments:         Optional[bool]  = None
    switch_in_strings:          Optional[bool]  = None
    switch_in_documentation:    Optional[bool]  = None
    code_area_input_method:     Optional[Preference] = None
    comment_input_method:       Optional[Preference] = None
    string_input_method:        Optional[Preference] = None
    documentation_input_method: Optional[Preference] = None
    detection_delay_ms:   Optional[int]   = Field(None, ge=0,   le=5000)
    switch_delay_ms:      Optional[int]   = Field(None, ge=0,   le=1000)
    toggle_guard_ms:      Optional[int]   = Field(None, ge=0,   le=5000)
    indicator_timeout_ms: Optional[int]   = Field(None, ge=500, le=10000)
    indicator_opacity:    Optional[float] = Field(None, ge=0.1, le=1.0)
    windows_input_methods: Optional[Dict[str, str]] = None
    macos_input_methods:   Optional[Dict[str, str]] = None
    linux_input_methods:   Optional[Dict[str, str]] = None


@router.get("")
def read_settings():
    """Return current settings with their defaults for reference."""
    current = get_settings()
    return {"settings": current, "defaults": DEFAULTS}


@router.put("")
def write_settings(patch: SettingsPatch):
    """Apply a partial update; unknown keys are ignored. Persists to data/settings.json."""
    data = {k: v for k, v in patch.model_dump().items() if v is not None}
    return {"settings": update_settings(data)}


@router.post("/reset")
def restore_defaults():
    return {"settings": reset_settings()}
