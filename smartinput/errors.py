"""
Error taxonomy for the switching pipeline.

None of these escape into the host's event delivery: the classifier turns
ClassificationError into an UNDETERMINED result, the pipeline turns
SwitchExecutionError into a SwitchFailure event, settings validation clamps
instead of raising ConfigurationError, and the session registry treats
SessionLifecycleError conditions as no-ops.
"""

from __future__ import annotations

from typing import Any, Optional


class SmartInputError(Exception):
    """Base class for every error raised inside smartinput."""


class ClassificationError(SmartInputError):
    """The syntax tree could not be walked at the requested offset."""


class SwitchExecutionError(SmartInputError):
    """A platform switcher call failed, raised, or timed out."""

    def __init__(self, target_mode: Any, cause: Optional[BaseException] = None, message: str = ""):
        self.target_mode = target_mode
        self.cause = cause
        if not message:
            message = f"switch to {getattr(target_mode, 'value', target_mode)} failed"
            if cause is not None:
                message += f": {cause}"
        super().__init__(message)


class ConfigurationError(SmartInputError):
    """A persisted setting is malformed or out of range."""


class SessionLifecycleError(SmartInputError):
    """An operation referenced an unknown or already closed surface."""
