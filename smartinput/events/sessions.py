"""
Session Registry — one SurfaceSession per open editing surface (tab/pane).

A session owns its debounce slot, its switch gate state and its indicator.
Nothing is shared between sessions, so closing one surface can never touch
another surface's pending work or gate state.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..errors import SessionLifecycleError
from ..inference.context_classifier import ContextClassification
from ..inference.syntax import SourceDocument, SyntaxTree
from ..router.gate import GateDecision, SwitchGateState
from ..settings import SwitchConfig
from .indicator import StatusIndicator

logger = logging.getLogger(__name__)

IndicatorFactory = Callable[[str, SwitchConfig], StatusIndicator]


def default_indicator_factory(surface_id: str, config: SwitchConfig) -> StatusIndicator:
    return StatusIndicator(
        surface_id,
        timeout_ms=config.indicator_timeout_ms,
        opacity=config.indicator_opacity,
    )


@dataclass
class SurfaceSession:
    surface_id: str
    document: Optional[SyntaxTree] = None
    gate_state: SwitchGateState = field(default_factory=SwitchGateState)
    indicator: Optional[StatusIndicator] = None
    caret_offset: int = 0
    has_focus: bool = False
    is_open: bool = True

    # pending (not yet started) debounced cycle; at most one per surface
    pending: Optional[asyncio.Task] = field(default=None, repr=False)
    # serializes decision cycles so only one switch is in flight per surface
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    last_classification: Optional[ContextClassification] = None
    last_decision: Optional[GateDecision] = None
    cycles_run: int = 0

    def cancel_pending(self) -> bool:
        task, self.pending = self.pending, None
        if task is not None and not task.done():
            task.cancel()
            return True
        return False

    def snapshot(self) -> dict:
        c = self.last_classification
        return {
            "surface_id": self.surface_id,
            "has_focus": self.has_focus,
            "caret_offset": self.caret_offset,
            "has_pending_cycle": self.pending is not None and not self.pending.done(),
            "cycles_run": self.cycles_run,
            "gate": self.gate_state.snapshot(),
            "last_region": c.kind.value if c else None,
            "last_confidence": c.confidence if c else None,
            "last_description": c.description if c else None,
            "last_decision": self.last_decision.value if self.last_decision else None,
            "indicator": self.indicator.snapshot() if self.indicator else None,
        }


class SessionRegistry:
    """
    Tracks the live sessions. open() is idempotent; close() and unknown ids
    are no-ops rather than errors.
    """

    def __init__(
        self,
        config_provider: Callable[[], SwitchConfig] = SwitchConfig.from_settings,
        indicator_factory: Optional[IndicatorFactory] = default_indicator_factory,
    ):
        self._config = config_provider
        self._indicator_factory = indicator_factory
        self._sessions: Dict[str, SurfaceSession] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(
        self,
        surface_id: str,
        document: Optional[SyntaxTree] = None,
        language: Optional[str] = None,
    ) -> SurfaceSession:
        session = self._sessions.get(surface_id)
        if session is not None:
            return session

        indicator = None
        config = self._config()
        if config.show_indicator and self._indicator_factory is not None:
            indicator = self._indicator_factory(surface_id, config)

        if document is None and language is not None:
            document = SourceDocument("", language)

        session = SurfaceSession(surface_id=surface_id, document=document, indicator=indicator)
        self._sessions[surface_id] = session
        logger.debug("Opened surface %s", surface_id)
        return session

    def close(self, surface_id: str) -> bool:
        session = self._sessions.pop(surface_id, None)
        if session is None:
            logger.debug("Close for unknown surface %s ignored", surface_id)
            return False
        session.is_open = False
        session.cancel_pending()
        if session.indicator is not None:
            session.indicator.dispose()
            session.indicator = None
        logger.debug("Closed surface %s", surface_id)
        return True

    def dispose_all(self) -> int:
        closed = 0
        for surface_id in list(self._sessions):
            if self.close(surface_id):
                closed += 1
        if closed:
            logger.info("Disposed %d surface session(s)", closed)
        return closed

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def get(self, surface_id: str) -> Optional[SurfaceSession]:
        return self._sessions.get(surface_id)

    def require(self, surface_id: str) -> SurfaceSession:
        """Like get(), but raises SessionLifecycleError for unknown or closed ids."""
        session = self._sessions.get(surface_id)
        if session is None or not session.is_open:
            raise SessionLifecycleError(f"unknown or closed surface {surface_id!r}")
        return session

    def surface_ids(self) -> List[str]:
        return list(self._sessions)

    def __contains__(self, surface_id: object) -> bool:
        return surface_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
