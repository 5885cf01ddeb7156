"""
Switch Gate — decides whether a proposed target mode should actually be
sent to the platform switcher, and owns the bookkeeping of the last
committed switch.

Rules, evaluated in order:
  1. switching globally disabled          → SUPPRESS_DISABLED
  2. target is "no opinion"               → SUPPRESS_NO_OPINION
  3. target equals the logical mode       → SUPPRESS_REDUNDANT
  4. inside the minimum switch interval   → SUPPRESS_RATE_LIMITED
  5. otherwise                            → EXECUTE

The logical mode only moves in commit(), which the pipeline calls after a
successful platform switch on a session that is still open.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..inference.context_classifier import InputMode
from ..settings import SwitchConfig


class GateDecision(str, Enum):
    EXECUTE = "execute"
    SUPPRESS_REDUNDANT = "suppress_redundant"
    SUPPRESS_DISABLED = "suppress_disabled"
    SUPPRESS_RATE_LIMITED = "suppress_rate_limited"
    SUPPRESS_NO_OPINION = "suppress_no_opinion"

    @property
    def executes(self) -> bool:
        return self == GateDecision.EXECUTE


@dataclass(frozen=True)
class SwitchRequest:
    target_mode: InputMode
    context_tag: str
    requested_at_ms: float


@dataclass
class SwitchGateState:
    last_switch_ms: Optional[float] = None
    last_switch_target: InputMode = InputMode.UNDETERMINED
    last_switch_context: str = ""
    logical_current_mode: InputMode = InputMode.UNDETERMINED

    def snapshot(self) -> dict:
        return {
            "last_switch_ms": self.last_switch_ms,
            "last_switch_target": self.last_switch_target.value,
            "last_switch_context": self.last_switch_context,
            "logical_current_mode": self.logical_current_mode.value,
        }


class SwitchGate:

    def decide(
        self,
        state: SwitchGateState,
        target_mode: InputMode,
        context_tag: str,
        now_ms: float,
        config: SwitchConfig,
    ) -> GateDecision:
        if not config.enabled:
            return GateDecision.SUPPRESS_DISABLED
        if target_mode == InputMode.UNDETERMINED:
            return GateDecision.SUPPRESS_NO_OPINION
        if target_mode == state.logical_current_mode:
            return GateDecision.SUPPRESS_REDUNDANT
        if (
            state.last_switch_ms is not None
            and now_ms - state.last_switch_ms < config.min_switch_interval_ms
        ):
            return GateDecision.SUPPRESS_RATE_LIMITED
        return GateDecision.EXECUTE

    def commit(self, state: SwitchGateState, request: SwitchRequest) -> InputMode:
        """Record a successful switch; returns the previous logical mode."""
        previous = state.logical_current_mode
        state.last_switch_ms = request.requested_at_ms
        state.last_switch_target = request.target_mode
        state.last_switch_context = request.context_tag
        state.logical_current_mode = request.target_mode
        return previous
