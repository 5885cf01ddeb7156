"""
Mode listeners and the headless status indicator.

The visual widget belongs to the host; the router only keeps the indicator's
model (what to show, whether it should still be visible) and pushes
notifications to registered listeners.
"""

from __future__ import annotations

import time
from typing import Optional

from ..inference.context_classifier import ContextClassification, InputMode


class ModeListener:
    """Receives pipeline notifications. Override the hooks you need."""

    def on_mode_changed(
        self,
        surface_id: str,
        mode: InputMode,
        classification: Optional[ContextClassification],
    ) -> None:
        pass

    def on_switch_failed(self, surface_id: str, target_mode: InputMode, cause: BaseException) -> None:
        pass

    def on_surface_focus_changed(self, surface_id: str, has_focus: bool) -> None:
        pass


class StatusIndicator:
    """
    Per-surface indicator state. Becomes visible on show()/update() and
    auto-hides once timeout_ms has passed since it was last shown.
    """

    def __init__(
        self,
        surface_id: str,
        timeout_ms: int = 2000,
        opacity: float = 0.8,
        clock=time.monotonic,
    ):
        self.surface_id = surface_id
        self.timeout_ms = timeout_ms
        self.opacity = opacity
        self._clock = clock
        self.mode: InputMode = InputMode.UNDETERMINED
        self.classification: Optional[ContextClassification] = None
        self.visible = False
        self.shown_at_ms: Optional[float] = None
        self.disposed = False

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def show(self, now_ms: Optional[float] = None) -> None:
        if self.disposed:
            return
        self.visible = True
        self.shown_at_ms = self._now_ms() if now_ms is None else now_ms

    def hide(self) -> None:
        self.visible = False

    def update(
        self,
        mode: InputMode,
        classification: Optional[ContextClassification] = None,
        now_ms: Optional[float] = None,
    ) -> None:
        if self.disposed:
            return
        self.mode = mode
        if classification is not None:
            self.classification = classification
        self.show(now_ms)

    def dispose(self) -> None:
        self.visible = False
        self.disposed = True

    def is_visible(self, now_ms: Optional[float] = None) -> bool:
        if not self.visible or self.shown_at_ms is None:
            return False
        now_ms = self._now_ms() if now_ms is None else now_ms
        return now_ms - self.shown_at_ms < self.timeout_ms

    def snapshot(self, now_ms: Optional[float] = None) -> dict:
        c = self.classification
        return {
            "visible": self.is_visible(now_ms),
            "mode": self.mode.value,
            "region": c.kind.value if c else None,
            "confidence": c.confidence if c else None,
            "opacity": self.opacity,
            "timeout_ms": self.timeout_ms,
        }
