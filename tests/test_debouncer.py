"""
Tests for the per-surface debounce pipeline: coalescing, session isolation,
failure handling and the end-to-end caret scenarios.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import replace

import pytest

from smartinput.actions.platform import RecordingSwitcher
from smartinput.events.debouncer import MANUAL_CONTEXT, EventDebouncer
from smartinput.events.history import SwitchHistory
from smartinput.events.indicator import ModeListener
from smartinput.events.sessions import SessionRegistry
from smartinput.inference.context_classifier import InputMode, RegionKind
from smartinput.inference.syntax import SourceDocument
from smartinput.router.gate import GateDecision, SwitchRequest
from smartinput.settings import SwitchConfig

JAVA = (
    "class Demo {\n"
    "    void run() {\n"
    "        int total = count + 1; // 说明文字\n"
    "    }\n"
    "}\n"
)
CODE_OFFSET = JAVA.index("count") + 2
COMMENT_OFFSET = JAVA.index("说明") + 1


class RecordingListener(ModeListener):
    def __init__(self):
        self.changes = []
        self.failures = []
        self.focus = []

    def on_mode_changed(self, surface_id, mode, classification):
        self.changes.append((surface_id, mode, classification.kind))

    def on_switch_failed(self, surface_id, target_mode, cause):
        self.failures.append((surface_id, target_mode, cause))

    def on_surface_focus_changed(self, surface_id, has_focus):
        self.focus.append((surface_id, has_focus))


class Harness:
    def __init__(self, config: SwitchConfig, switcher: RecordingSwitcher, history=None, timeout_s=3.0):
        self.config = config
        self.switcher = switcher
        self.registry = SessionRegistry(lambda: self.config)
        self.debouncer = EventDebouncer(
            self.registry, switcher, lambda: self.config, history=history, switch_timeout_s=timeout_s,
        )
        self.listener = RecordingListener()
        self.debouncer.register_listener(self.listener)

    def open(self, surface_id: str = "A", text: str = JAVA):
        return self.registry.open(surface_id, SourceDocument(text, "java"))


FAST = SwitchConfig(debounce_ms=30, min_switch_interval_ms=0, switch_in_comments=True)


@pytest.fixture()
def switcher():
    return RecordingSwitcher()


@pytest.fixture()
def harness(switcher):
    return Harness(FAST, switcher)


class TestDebounceCoalescing:
    async def test_burst_runs_one_cycle_on_last_offset(self, harness):
        session = harness.open()
        tasks = [harness.debouncer.on_cursor_moved("A", offset) for offset in (0, CODE_OFFSET, COMMENT_OFFSET)]
        await asyncio.gather(*tasks, return_exceptions=True)

        assert session.cycles_run == 1
        assert all(t.cancelled() for t in tasks[:-1])
        assert harness.switcher.calls == [(InputMode.NATIVE, "comment")]
        assert session.last_classification.kind == RegionKind.COMMENT

    async def test_two_moves_20ms_apart_fire_once_after_window(self, switcher):
        h = Harness(replace(FAST, debounce_ms=150), switcher)
        session = h.open()
        first = h.debouncer.on_cursor_moved("A", CODE_OFFSET)
        await asyncio.sleep(0.02)
        second = h.debouncer.on_cursor_moved("A", COMMENT_OFFSET)
        moved_at = time.monotonic()

        result = await second
        elapsed = time.monotonic() - moved_at

        assert first.cancelled()
        assert session.cycles_run == 1
        assert result.decision == GateDecision.EXECUTE
        assert elapsed >= 0.14

    async def test_fired_task_detaches_from_pending_slot(self, harness):
        session = harness.open()
        task = harness.debouncer.on_cursor_moved("A", CODE_OFFSET)
        assert session.pending is task
        await task
        assert session.pending is None

    async def test_event_timestamp_anchors_window(self, switcher):
        h = Harness(replace(FAST, debounce_ms=1000), switcher)
        h.open()
        event_ms = time.monotonic() * 1000.0 - 990.0
        started = time.monotonic()
        await h.debouncer.on_cursor_moved("A", CODE_OFFSET, now=event_ms)
        assert time.monotonic() - started < 0.5

    async def test_future_timestamp_is_clamped_to_window(self, switcher):
        h = Harness(replace(FAST, debounce_ms=50), switcher)
        h.open()
        event_ms = time.monotonic() * 1000.0 + 10_000_000.0
        started = time.monotonic()
        await h.debouncer.on_cursor_moved("A", CODE_OFFSET, now=event_ms)
        assert time.monotonic() - started < 0.5

    async def test_wall_clock_timestamp_maps_onto_debouncer_clock(self, switcher):
        h = Harness(FAST, switcher)
        event_ms = h.debouncer.from_wall_clock_ms(time.time() * 1000.0 - 200.0)
        assert abs(time.monotonic() * 1000.0 - 200.0 - event_ms) < 50.0

    async def test_moves_ignored_while_auto_switch_off(self, switcher):
        h = Harness(replace(FAST, auto_switch=False), switcher)
        session = h.open()
        assert h.debouncer.on_cursor_moved("A", CODE_OFFSET) is None
        assert session.caret_offset == CODE_OFFSET
        assert session.pending is None

    async def test_unknown_surface_is_noop(self, harness):
        assert harness.debouncer.on_cursor_moved("ghost", 3) is None
        assert await harness.debouncer.on_focus_gained("ghost") is None
        assert not harness.debouncer.on_focus_lost("ghost")


class TestSessionIsolation:
    async def test_closing_a_does_not_touch_b(self, harness):
        harness.open("A")
        b = harness.open("B")
        task_a = harness.debouncer.on_cursor_moved("A", CODE_OFFSET)
        task_b = harness.debouncer.on_cursor_moved("B", COMMENT_OFFSET)

        harness.registry.close("A")
        result = await task_b
        await asyncio.gather(task_a, return_exceptions=True)

        assert task_a.cancelled()
        assert result.surface_id == "B"
        assert b.gate_state.logical_current_mode == InputMode.NATIVE
        assert harness.switcher.calls == [(InputMode.NATIVE, "comment")]

    async def test_gate_state_is_per_surface(self, harness):
        a = harness.open("A")
        b = harness.open("B")
        await harness.debouncer.run_cycle(a, CODE_OFFSET)
        assert a.gate_state.logical_current_mode == InputMode.LATIN
        assert b.gate_state.logical_current_mode == InputMode.UNDETERMINED

    async def test_cycle_on_closed_surface_is_noop(self, harness):
        session = harness.open()
        harness.registry.close("A")
        assert await harness.debouncer.run_cycle(session, CODE_OFFSET) is None
        assert harness.switcher.calls == []


class TestFailureHandling:
    async def test_failed_switch_does_not_advance_mode(self, harness):
        session = harness.open()
        await harness.debouncer.run_cycle(session, CODE_OFFSET)
        assert session.gate_state.logical_current_mode == InputMode.LATIN

        harness.switcher.succeed = False
        result = await harness.debouncer.run_cycle(session, COMMENT_OFFSET)
        assert result.decision == GateDecision.EXECUTE
        assert result.success is False
        assert session.gate_state.logical_current_mode == InputMode.LATIN
        assert len(harness.listener.failures) == 1
        assert harness.listener.failures[0][1] == InputMode.NATIVE

        harness.switcher.succeed = True
        retry = await harness.debouncer.run_cycle(session, COMMENT_OFFSET)
        assert retry.decision == GateDecision.EXECUTE
        assert retry.success is True
        assert session.gate_state.logical_current_mode == InputMode.NATIVE

    async def test_switcher_exception_becomes_failure_event(self, harness):
        session = harness.open()
        harness.switcher.error = OSError("no display")
        result = await harness.debouncer.run_cycle(session, CODE_OFFSET)
        assert result.success is False
        assert "no display" in result.error
        assert harness.listener.failures[0][2].cause is harness.switcher.error

    async def test_slow_switch_times_out(self):
        h = Harness(FAST, RecordingSwitcher(delay_s=0.3), timeout_s=0.05)
        session = h.open()
        result = await h.debouncer.run_cycle(session, CODE_OFFSET)
        assert result.success is False
        assert "timed out" in result.error
        assert session.gate_state.logical_current_mode == InputMode.UNDETERMINED

    async def test_surface_closed_mid_switch_discards_result(self):
        h = Harness(FAST, RecordingSwitcher(delay_s=0.1))
        session = h.open()
        cycle = asyncio.create_task(h.debouncer.run_cycle(session, CODE_OFFSET))
        await asyncio.sleep(0.03)
        h.registry.close("A")
        result = await cycle

        assert result.success is None
        assert session.gate_state.logical_current_mode == InputMode.UNDETERMINED
        assert h.listener.changes == []

    async def test_listener_errors_are_contained(self, harness):
        class Exploding(ModeListener):
            def on_mode_changed(self, surface_id, mode, classification):
                raise RuntimeError("listener bug")

        harness.debouncer.register_listener(Exploding())
        session = harness.open()
        result = await harness.debouncer.run_cycle(session, CODE_OFFSET)
        assert result.success is True
        assert harness.listener.changes == [("A", InputMode.LATIN, RegionKind.CODE)]


class TestEndToEnd:
    async def test_comment_with_default_config_has_no_opinion(self, switcher):
        h = Harness(SwitchConfig(), switcher)
        session = h.open()
        result = await h.debouncer.run_cycle(session, COMMENT_OFFSET)

        assert result.classification.kind == RegionKind.COMMENT
        assert result.classification.confidence == 1.0
        assert result.classification.suggested_mode == InputMode.NATIVE
        assert result.target_mode == InputMode.UNDETERMINED
        assert result.decision == GateDecision.SUPPRESS_NO_OPINION
        assert switcher.calls == []

    async def test_identifier_switches_native_to_latin(self, switcher):
        h = Harness(SwitchConfig(), switcher)
        session = h.open()
        h.debouncer._gate.commit(session.gate_state, SwitchRequest(InputMode.NATIVE, "comment", -10_000.0))

        result = await h.debouncer.run_cycle(session, CODE_OFFSET)

        assert result.classification.kind == RegionKind.CODE
        assert result.classification.confidence == 0.8
        assert result.target_mode == InputMode.LATIN
        assert result.decision == GateDecision.EXECUTE
        assert session.gate_state.logical_current_mode == InputMode.LATIN
        assert h.listener.changes == [("A", InputMode.LATIN, RegionKind.CODE)]

    async def test_disabled_suppresses_without_indicator_update(self, switcher):
        h = Harness(replace(FAST, enabled=False), switcher)
        session = h.open()
        result = await h.debouncer.run_cycle(session, CODE_OFFSET)
        assert result.decision == GateDecision.SUPPRESS_DISABLED
        assert not session.indicator.is_visible()

    async def test_no_document_is_undetermined(self, harness):
        session = harness.registry.open("bare")
        result = await harness.debouncer.run_cycle(session, 0)
        assert result.decision == GateDecision.SUPPRESS_NO_OPINION

    async def test_cycles_are_recorded_in_history(self, switcher, tmp_path):
        history = SwitchHistory(tmp_path / "history.db")
        h = Harness(FAST, switcher, history=history)
        session = h.open()
        await h.debouncer.run_cycle(session, CODE_OFFSET)
        await h.debouncer.run_cycle(session, CODE_OFFSET)

        records = history.query(surface_id="A")
        assert [r.decision for r in records] == ["suppress_redundant", "execute"]
        assert history.last_mode_by_context() == {"code": "latin"}


class TestFocusAndDocument:
    async def test_focus_gained_runs_immediately_and_shows_indicator(self, harness):
        session = harness.open()
        result = await harness.debouncer.on_focus_gained("A", CODE_OFFSET)
        assert result.decision == GateDecision.EXECUTE
        assert session.has_focus
        assert session.indicator.is_visible()
        assert harness.listener.focus == [("A", True)]

    async def test_focus_lost_cancels_and_hides(self, harness):
        session = harness.open()
        await harness.debouncer.on_focus_gained("A", CODE_OFFSET)
        task = harness.debouncer.on_cursor_moved("A", COMMENT_OFFSET)

        assert harness.debouncer.on_focus_lost("A")
        await asyncio.gather(task, return_exceptions=True)

        assert task.cancelled()
        assert not session.indicator.is_visible()
        assert session.gate_state.logical_current_mode == InputMode.LATIN
        assert harness.listener.focus[-1] == ("A", False)

    async def test_document_change_is_used_by_next_cycle(self, harness):
        session = harness.open()
        assert harness.debouncer.on_document_changed("A", SourceDocument("// 全部是注释", "java"))
        result = await harness.debouncer.run_cycle(session, 4)
        assert result.classification.kind == RegionKind.COMMENT


class TestManualSwitch:
    async def test_toggle_from_undetermined_goes_latin_then_native(self, harness):
        session = harness.open()
        first = await harness.debouncer.switch_manually("A")
        second = await harness.debouncer.switch_manually("A")
        assert (first.target_mode, second.target_mode) == (InputMode.LATIN, InputMode.NATIVE)
        assert session.gate_state.last_switch_context == MANUAL_CONTEXT
        assert harness.switcher.calls == [(InputMode.LATIN, "manual"), (InputMode.NATIVE, "manual")]

    async def test_explicit_mode_equal_to_current_is_redundant(self, harness):
        harness.open()
        await harness.debouncer.switch_manually("A", InputMode.NATIVE)
        result = await harness.debouncer.switch_manually("A", InputMode.NATIVE)
        assert result.decision == GateDecision.SUPPRESS_REDUNDANT

    async def test_unknown_surface(self, harness):
        assert await harness.debouncer.switch_manually("ghost") is None
