"""
Event Debouncer — turns the host's noisy caret/focus event stream into
sequential classify → resolve → decide → switch cycles, one pipeline per
surface.

Cursor moves use a trailing-edge debounce: each move replaces the surface's
pending task, so only the last move inside a quiescence window is
evaluated. Once a task wakes up it detaches from the pending slot and runs
under the surface lock; later moves can no longer cancel it, they queue
behind it instead.

Usage:
    debouncer = EventDebouncer(registry, create_switcher())
    debouncer.register_listener(my_listener)
    debouncer.on_cursor_moved("editor-1", 42)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..actions.platform import PlatformSwitcher
from ..errors import SwitchExecutionError
from ..inference.context_classifier import (
    UNDETERMINED_CLASSIFICATION,
    ContextClassification,
    ContextClassifier,
    InputMode,
)
from ..inference.syntax import SyntaxTree
from ..router.gate import GateDecision, SwitchGate, SwitchRequest
from ..router.policy_engine import ModePolicy
from ..settings import SwitchConfig
from .history import SwitchHistory, SwitchRecord
from .indicator import ModeListener
from .sessions import SessionRegistry, SurfaceSession

logger = logging.getLogger(__name__)

MANUAL_CONTEXT = "manual"


@dataclass
class CycleResult:
    surface_id: str
    classification: ContextClassification
    target_mode: InputMode
    decision: GateDecision
    context_tag: str
    success: Optional[bool] = None        # None unless the gate executed
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "surface_id": self.surface_id,
            "region": self.classification.kind.value,
            "confidence": self.classification.confidence,
            "description": self.classification.description,
            "target_mode": self.target_mode.value,
            "decision": self.decision.value,
            "context_tag": self.context_tag,
            "success": self.success,
            "error": self.error,
        }


class EventDebouncer:

    def __init__(
        self,
        registry: SessionRegistry,
        switcher: PlatformSwitcher,
        config_provider: Callable[[], SwitchConfig] = SwitchConfig.from_settings,
        classifier: Optional[ContextClassifier] = None,
        policy: Optional[ModePolicy] = None,
        gate: Optional[SwitchGate] = None,
        history: Optional[SwitchHistory] = None,
        clock=time.monotonic,
        switch_timeout_s: float = 3.0,
    ):
        self._registry = registry
        self._switcher = switcher
        self._config = config_provider
        self._classifier = classifier or ContextClassifier()
        self._policy = policy or ModePolicy()
        self._gate = gate or SwitchGate()
        self._history = history
        self._clock = clock
        self._switch_timeout_s = switch_timeout_s
        self._listeners: List[ModeListener] = []

    @property
    def switcher(self) -> PlatformSwitcher:
        return self._switcher

    def register_listener(self, listener: ModeListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: ModeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _now_ms(self) -> float:
        return self._clock() * 1000.0

    def from_wall_clock_ms(self, epoch_ms: float) -> float:
        """Translate a Unix epoch timestamp in ms onto the debouncer's clock."""
        return epoch_ms - time.time() * 1000.0 + self._now_ms()

    # ------------------------------------------------------------------
    # Host events
    # ------------------------------------------------------------------

    def on_cursor_moved(
        self, surface_id: str, offset: int, now: Optional[float] = None
    ) -> Optional[asyncio.Task]:
        """
        Schedule a decision cycle for *offset* after the debounce window.
        *now* is the event time in ms on the debouncer's clock; the window
        is measured from it when given, and the resulting delay never leaves
        [0, debounce_ms]. Must be called from the event loop.
        """
        session = self._registry.get(surface_id)
        if session is None:
            logger.debug("Caret move on unknown surface %s ignored", surface_id)
            return None

        session.caret_offset = offset
        config = self._config()
        if not (config.enabled and config.auto_switch):
            session.cancel_pending()
            return None

        now_ms = self._now_ms()
        fire_at_ms = (now if now is not None else now_ms) + config.debounce_ms
        delay_s = min(max(0.0, fire_at_ms - now_ms), config.debounce_ms) / 1000.0

        session.cancel_pending()
        session.pending = asyncio.get_running_loop().create_task(
            self._debounced(session, offset, delay_s),
            name=f"smartinput-debounce-{surface_id}",
        )
        return session.pending

    async def on_focus_gained(self, surface_id: str, offset: Optional[int] = None) -> Optional[CycleResult]:
        session = self._registry.get(surface_id)
        if session is None:
            return None

        session.has_focus = True
        if offset is not None:
            session.caret_offset = offset
        session.cancel_pending()
        if session.indicator is not None:
            session.indicator.show()
        self._notify("on_surface_focus_changed", surface_id, True)

        config = self._config()
        if not (config.enabled and config.auto_switch):
            return None
        return await self.run_cycle(session, session.caret_offset)

    def on_focus_lost(self, surface_id: str) -> bool:
        session = self._registry.get(surface_id)
        if session is None:
            return False
        session.has_focus = False
        session.cancel_pending()
        if session.indicator is not None:
            session.indicator.hide()
        self._notify("on_surface_focus_changed", surface_id, False)
        return True

    def on_document_changed(self, surface_id: str, document: SyntaxTree) -> bool:
        session = self._registry.get(surface_id)
        if session is None:
            return False
        session.document = document
        return True

    async def switch_manually(
        self, surface_id: str, mode: Optional[InputMode] = None
    ) -> Optional[CycleResult]:
        """
        Switch *surface_id* to *mode*, or toggle its logical mode when no
        mode is given. Goes through the same gate as automatic switching.
        """
        session = self._registry.get(surface_id)
        if session is None:
            return None

        async with session.lock:
            if not session.is_open:
                return None
            target = mode if mode is not None else session.gate_state.logical_current_mode.toggled()
            classification = session.last_classification or UNDETERMINED_CLASSIFICATION
            try:
                return await self._decide_and_execute(
                    session, classification, target, MANUAL_CONTEXT, self._config()
                )
            except Exception:
                logger.exception("Manual switch on %s failed unexpectedly", surface_id)
                return None

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def _debounced(self, session: SurfaceSession, offset: int, delay_s: float) -> Optional[CycleResult]:
        await asyncio.sleep(delay_s)
        if session.pending is asyncio.current_task():
            session.pending = None
        return await self.run_cycle(session, offset)

    async def run_cycle(self, session: SurfaceSession, offset: int) -> Optional[CycleResult]:
        async with session.lock:
            if not session.is_open:
                logger.debug("Cycle for closed surface %s dropped", session.surface_id)
                return None
            try:
                return await self._cycle(session, offset)
            except Exception:
                logger.exception("Decision cycle on %s failed", session.surface_id)
                return None

    async def _cycle(self, session: SurfaceSession, offset: int) -> CycleResult:
        config = self._config()
        if session.document is None:
            classification = UNDETERMINED_CLASSIFICATION
        else:
            classification = self._classifier.classify(session.document, offset)
        session.last_classification = classification

        target = self._policy.resolve_target_mode(classification, config)
        self._trace(
            config, "%s@%d: %s (%.1f) -> %s",
            session.surface_id, offset, classification.kind.value,
            classification.confidence, target.value,
        )
        return await self._decide_and_execute(
            session, classification, target, classification.kind.value, config
        )

    async def _decide_and_execute(
        self,
        session: SurfaceSession,
        classification: ContextClassification,
        target: InputMode,
        context_tag: str,
        config: SwitchConfig,
    ) -> CycleResult:
        now_ms = self._now_ms()
        decision = self._gate.decide(session.gate_state, target, context_tag, now_ms, config)
        result = CycleResult(session.surface_id, classification, target, decision, context_tag)

        if decision.executes:
            request = SwitchRequest(target, context_tag, now_ms)
            try:
                await self._dispatch(request)
            except SwitchExecutionError as e:
                result.success, result.error = False, str(e)
                if session.is_open:
                    logger.warning("Switch to %s on %s failed: %s", target.value, session.surface_id, e)
                    self._notify("on_switch_failed", session.surface_id, target, e)
            else:
                if session.is_open:
                    previous = self._gate.commit(session.gate_state, request)
                    result.success = True
                    logger.info(
                        "Switched %s from %s to %s in context: %s",
                        session.surface_id, previous.value, target.value, context_tag,
                    )
                    self._notify("on_mode_changed", session.surface_id, target, classification)
                else:
                    result.error = "surface closed while switching"
                    logger.debug("Surface %s closed mid-switch; result discarded", session.surface_id)
        else:
            self._trace(config, "%s: %s", session.surface_id, decision.value)

        session.last_decision = decision
        session.cycles_run += 1
        if session.is_open and session.indicator is not None and decision != GateDecision.SUPPRESS_DISABLED:
            session.indicator.update(session.gate_state.logical_current_mode, classification)
        self._record(result)
        return result

    async def _dispatch(self, request: SwitchRequest) -> None:
        target = request.target_mode
        loop = asyncio.get_running_loop()
        try:
            switched = await asyncio.wait_for(
                loop.run_in_executor(None, self._switcher.switch_to, target, request.context_tag),
                timeout=self._switch_timeout_s,
            )
        except SwitchExecutionError:
            raise
        except asyncio.TimeoutError as e:
            raise SwitchExecutionError(
                target, e, f"switch to {target.value} timed out after {self._switch_timeout_s:.1f}s"
            ) from e
        except Exception as e:
            raise SwitchExecutionError(target, e) from e
        if not switched:
            raise SwitchExecutionError(
                target, message=f"{self._switcher.name} switcher could not switch to {target.value}"
            )

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _notify(self, hook: str, *args) -> None:
        for listener in list(self._listeners):
            try:
                getattr(listener, hook)(*args)
            except Exception as e:
                logger.warning("Error notifying listener %r of %s: %s", listener, hook, e)

    def _record(self, result: CycleResult) -> None:
        if self._history is None:
            return
        try:
            self._history.append(
                SwitchRecord(
                    id=None,
                    surface_id=result.surface_id,
                    context_tag=result.context_tag,
                    region_kind=result.classification.kind.value,
                    target_mode=result.target_mode.value,
                    decision=result.decision.value,
                    success=result.success,
                    detail=result.error or result.classification.description,
                )
            )
        except Exception as e:
            logger.error("Could not record switch history: %s", e)

    @staticmethod
    def _trace(config: SwitchConfig, msg: str, *args) -> None:
        logger.log(logging.INFO if config.debug_mode else logging.DEBUG, msg, *args)
