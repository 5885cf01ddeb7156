"""
User-tunable switching settings — persisted to data/settings.json.

Import get_settings() anywhere to read current values, update_settings(patch)
to mutate and save. The decision pipeline never reads the raw dict: it takes
a SwitchConfig snapshot, which is always built from validated values.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Tuple

from .config import config
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

_FILE: Path = config.data_dir / "settings.json"


class ModePreference(str, Enum):
    LATIN = "latin"
    NATIVE = "native"
    AUTO = "auto"


DEFAULTS: dict[str, Any] = {
    # General
    "enabled":                    True,
    "auto_switch":                True,
    "show_indicator":             True,
    "debug_mode":                 False,

    # Region rules
    "switch_in_code_areas":       True,
    "switch_in_comments":         False,
    "switch_in_strings":          False,
    "switch_in_documentation":    False,
    "code_area_input_method":     "latin",
    "comment_input_method":       "native",
    "string_input_method":        "auto",
    "documentation_input_method": "native",

    # Timing
    "detection_delay_ms":         150,     # debounce window after the last caret move
    "switch_delay_ms":            50,      # minimum interval between two switches
    "toggle_guard_ms":            1000,    # same target+context guard for blind toggles

    # Indicator pass-through
    "indicator_timeout_ms":       2000,
    "indicator_opacity":          0.8,

    # Platform input method identifiers, keyed by mode value
    "windows_input_methods": {"latin": "0409:00000409", "native": "0804:00000804"},
    "macos_input_methods":   {"latin": "com.apple.keylayout.US",
                              "native": "com.apple.inputmethod.SCIM.ITABC"},
    "linux_input_methods":   {"latin": "xkb:us::eng", "native": "pinyin"},
}

# Supported ranges; values outside are clamped, never rejected.
BOUNDS: dict[str, Tuple[float, float]] = {
    "detection_delay_ms":   (0, 5000),
    "switch_delay_ms":      (0, 1000),
    "toggle_guard_ms":      (0, 5000),
    "indicator_timeout_ms": (500, 10000),
    "indicator_opacity":    (0.1, 1.0),
}

PREFERENCE_KEYS = (
    "code_area_input_method",
    "comment_input_method",
    "string_input_method",
    "documentation_input_method",
)

# Older settings files used language names instead of mode names.
_PREFERENCE_ALIASES = {"english": "latin", "chinese": "native"}

_current: dict[str, Any] = {}


def _coerce(key: str, value: Any) -> Any:
    default = DEFAULTS[key]
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if isinstance(default, dict):
        return {str(k): str(v) for k, v in dict(value).items()}
    if isinstance(default, str):
        return str(value)
    number = float(value)
    if not math.isfinite(number):
        raise ConfigurationError(f"{key} must be a finite number, got {value!r}")
    return type(default)(number)


def validate_settings(values: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of *values* with every known key coerced and clamped into
    its supported range. Malformed entries (ConfigurationError, bad types,
    non-finite numbers) are logged and replaced by their default, so callers
    never see an exception.
    """
    fixed = dict(DEFAULTS)
    for key, raw in values.items():
        if key not in DEFAULTS:
            continue
        try:
            fixed[key] = _coerce(key, raw)
        except (TypeError, ValueError, OverflowError, ConfigurationError) as e:
            logger.warning("Setting %s=%r is malformed (%s); using default %r",
                           key, raw, e, DEFAULTS[key])
            fixed[key] = DEFAULTS[key]

    for key, (lo, hi) in BOUNDS.items():
        value = fixed[key]
        clamped = type(DEFAULTS[key])(min(max(value, lo), hi))
        if clamped != value:
            logger.warning("Setting %s=%r out of range [%s, %s]; clamped to %r",
                           key, value, lo, hi, clamped)
            fixed[key] = clamped

    for key in PREFERENCE_KEYS:
        value = str(fixed[key]).strip().lower()
        value = _PREFERENCE_ALIASES.get(value, value)
        if value not in {p.value for p in ModePreference}:
            logger.warning("Setting %s=%r is not one of latin/native/auto; using %r",
                           key, fixed[key], DEFAULTS[key])
            value = DEFAULTS[key]
        fixed[key] = value

    return fixed


def _load() -> None:
    global _current
    _current = dict(DEFAULTS)
    if _FILE.exists():
        try:
            saved = json.loads(_FILE.read_text())
            _current = validate_settings(saved)
        except (OSError, ValueError, AttributeError) as e:
            # malformed file — fall back to defaults
            logger.warning("Could not read %s (%s); using defaults", _FILE, e)


def _save() -> None:
    _FILE.parent.mkdir(parents=True, exist_ok=True)
    _FILE.write_text(json.dumps(_current, indent=2))


def get_settings() -> dict[str, Any]:
    """Return a copy of the current settings dict."""
    if not _current:
        _load()
    return dict(_current)


def update_settings(patch: dict[str, Any]) -> dict[str, Any]:
    """Apply *patch* (unknown keys ignored), validate, persist, return full settings."""
    global _current
    if not _current:
        _load()
    merged = dict(_current)
    merged.update({k: v for k, v in patch.items() if k in DEFAULTS})
    _current = validate_settings(merged)
    _save()
    return dict(_current)


def reset_settings() -> dict[str, Any]:
    """Restore every setting to its default and persist."""
    global _current
    _current = dict(DEFAULTS)
    _save()
    return dict(_current)


# ---------------------------------------------------------------------------
# Immutable snapshot consumed by the decision pipeline
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SwitchConfig:
    enabled: bool = True
    auto_switch: bool = True
    show_indicator: bool = True
    debug_mode: bool = False

    switch_in_code_areas: bool = True
    switch_in_comments: bool = False
    switch_in_strings: bool = False
    switch_in_documentation: bool = False
    code_area_preference: ModePreference = ModePreference.LATIN
    comment_preference: ModePreference = ModePreference.NATIVE
    string_preference: ModePreference = ModePreference.AUTO
    documentation_preference: ModePreference = ModePreference.NATIVE

    debounce_ms: int = 150
    min_switch_interval_ms: int = 50
    toggle_guard_ms: int = 1000
    indicator_timeout_ms: int = 2000
    indicator_opacity: float = 0.8

    @classmethod
    def from_settings(cls, values: Dict[str, Any] | None = None) -> "SwitchConfig":
        s = validate_settings(get_settings() if values is None else values)
        return cls(
            enabled=s["enabled"],
            auto_switch=s["auto_switch"],
            show_indicator=s["show_indicator"],
            debug_mode=s["debug_mode"],
            switch_in_code_areas=s["switch_in_code_areas"],
            switch_in_comments=s["switch_in_comments"],
            switch_in_strings=s["switch_in_strings"],
            switch_in_documentation=s["switch_in_documentation"],
            code_area_preference=ModePreference(s["code_area_input_method"]),
            comment_preference=ModePreference(s["comment_input_method"]),
            string_preference=ModePreference(s["string_input_method"]),
            documentation_preference=ModePreference(s["documentation_input_method"]),
            debounce_ms=s["detection_delay_ms"],
            min_switch_interval_ms=s["switch_delay_ms"],
            toggle_guard_ms=s["toggle_guard_ms"],
            indicator_timeout_ms=s["indicator_timeout_ms"],
            indicator_opacity=s["indicator_opacity"],
        )


def input_method_ids(platform: str) -> dict[str, str]:
    """Return the configured {mode value: OS input method id} map for *platform*."""
    key = {
        "windows": "windows_input_methods",
        "macos": "macos_input_methods",
        "linux": "linux_input_methods",
    }.get(platform)
    if key is None:
        return {}
    return dict(get_settings()[key])


# Eagerly load on import
_load()
