"""Tests for the platform switchers, with subprocess and PATH lookups faked."""

from __future__ import annotations

import subprocess
from types import SimpleNamespace

import pytest

import smartinput.actions.platform as platform_mod
from smartinput.actions.platform import (
    LinuxSwitcher,
    MacOSSwitcher,
    RecordingSwitcher,
    UnsupportedSwitcher,
    WindowsSwitcher,
    create_switcher,
    detect_platform,
    platform_info,
)
from smartinput.errors import SwitchExecutionError
from smartinput.inference.context_classifier import InputMode

IDS = {"latin": "xkb:us::eng", "native": "pinyin"}


class FakeRun:
    """Stands in for subprocess.run; records argv lists."""

    def __init__(self, stdout: str = "", error: Exception | None = None):
        self.stdout = stdout
        self.error = error
        self.commands: list[list[str]] = []

    def __call__(self, cmd, **kwargs):
        self.commands.append(cmd)
        assert kwargs["check"] is True
        assert kwargs["timeout"] > 0
        if self.error is not None:
            raise self.error
        return SimpleNamespace(stdout=self.stdout, returncode=0)


@pytest.fixture()
def fake_run(monkeypatch):
    fake = FakeRun()
    monkeypatch.setattr(platform_mod.subprocess, "run", fake)
    return fake


def _which(*available):
    return lambda name: f"/usr/bin/{name}" if name in available else None


class TestLinuxSwitcher:
    def test_ibus_switch(self, fake_run):
        switcher = LinuxSwitcher(IDS, tool="ibus")
        assert switcher.switch_to(InputMode.NATIVE)
        assert fake_run.commands == [["ibus", "engine", "pinyin"]]

    def test_fcitx5_switch(self, fake_run):
        switcher = LinuxSwitcher(IDS, tool="fcitx5-remote")
        switcher.switch_to(InputMode.LATIN)
        assert fake_run.commands == [["fcitx5-remote", "-s", "xkb:us::eng"]]

    def test_fcitx_toggles_active_state(self, fake_run):
        switcher = LinuxSwitcher(IDS, tool="fcitx-remote")
        switcher.switch_to(InputMode.LATIN)
        switcher.switch_to(InputMode.NATIVE)
        assert fake_run.commands == [["fcitx-remote", "-c"], ["fcitx-remote", "-o"]]

    def test_no_tool_is_unavailable(self, fake_run):
        switcher = LinuxSwitcher(IDS, tool=None)
        switcher.tool = None
        assert not switcher.is_available()
        assert not switcher.switch_to(InputMode.LATIN)
        assert fake_run.commands == []

    def test_undetermined_is_never_switched(self, fake_run):
        assert not LinuxSwitcher(IDS, tool="ibus").switch_to(InputMode.UNDETERMINED)
        assert fake_run.commands == []

    def test_command_failure_raises_switch_error(self, monkeypatch):
        error = subprocess.CalledProcessError(1, ["ibus"])
        monkeypatch.setattr(platform_mod.subprocess, "run", FakeRun(error=error))
        with pytest.raises(SwitchExecutionError) as info:
            LinuxSwitcher(IDS, tool="ibus").switch_to(InputMode.NATIVE)
        assert info.value.target_mode == InputMode.NATIVE
        assert info.value.cause is error

    def test_missing_input_method_id_raises(self, fake_run):
        with pytest.raises(SwitchExecutionError):
            LinuxSwitcher({}, tool="ibus").switch_to(InputMode.NATIVE)

    def test_current_mode_from_ibus_engine(self, monkeypatch):
        monkeypatch.setattr(platform_mod.subprocess, "run", FakeRun(stdout="pinyin\n"))
        assert LinuxSwitcher(IDS, tool="ibus").current_mode() == InputMode.NATIVE

    def test_current_mode_unknown_when_query_fails(self, monkeypatch):
        monkeypatch.setattr(platform_mod.subprocess, "run", FakeRun(error=FileNotFoundError("ibus")))
        assert LinuxSwitcher(IDS, tool="ibus").current_mode() == InputMode.UNDETERMINED


class TestMacOSSwitcher:
    def test_prefers_im_select(self, fake_run, monkeypatch):
        monkeypatch.setattr(platform_mod.shutil, "which", _which("im-select", "osascript"))
        switcher = MacOSSwitcher({"latin": "com.apple.keylayout.US", "native": "com.apple.inputmethod.SCIM.ITABC"})
        switcher.switch_to(InputMode.LATIN)
        assert fake_run.commands == [["im-select", "com.apple.keylayout.US"]]

    def test_falls_back_to_applescript(self, fake_run, monkeypatch):
        monkeypatch.setattr(platform_mod.shutil, "which", _which("osascript"))
        MacOSSwitcher({"native": "Pinyin"}).switch_to(InputMode.NATIVE)
        assert fake_run.commands[0][:2] == ["osascript", "-e"]
        assert "Pinyin" in fake_run.commands[0][2]


class TestWindowsSwitcher:
    def _switcher(self, clock):
        return WindowsSwitcher(toggle_guard_ms=1000, clock=clock)

    def test_same_target_and_context_inside_guard_toggles_once(self, fake_run):
        now = [10.0]
        switcher = self._switcher(lambda: now[0])
        assert switcher.switch_to(InputMode.NATIVE, "comment")
        now[0] = 10.5
        assert switcher.switch_to(InputMode.NATIVE, "comment")
        assert len(fake_run.commands) == 1

    def test_guard_expires(self, fake_run):
        now = [10.0]
        switcher = self._switcher(lambda: now[0])
        switcher.switch_to(InputMode.NATIVE, "comment")
        now[0] = 11.0
        switcher.switch_to(InputMode.NATIVE, "comment")
        assert len(fake_run.commands) == 2

    def test_different_context_is_not_guarded(self, fake_run):
        switcher = self._switcher(lambda: 10.0)
        switcher.switch_to(InputMode.NATIVE, "comment")
        switcher.switch_to(InputMode.NATIVE, "documentation")
        assert len(fake_run.commands) == 2

    def test_sends_ctrl_space(self, fake_run):
        self._switcher(lambda: 0.0).switch_to(InputMode.LATIN, "code")
        assert fake_run.commands[0][0] == "powershell"
        assert "SendKeys('^ ')" in fake_run.commands[0][-1]


class TestRecordingAndUnsupported:
    def test_recording_switcher_records_calls(self):
        switcher = RecordingSwitcher()
        assert switcher.switch_to(InputMode.NATIVE, "comment")
        assert switcher.calls == [(InputMode.NATIVE, "comment")]
        assert switcher.current_mode() == InputMode.NATIVE

    def test_recording_switcher_can_fail(self):
        switcher = RecordingSwitcher(succeed=False)
        assert not switcher.switch_to(InputMode.LATIN)
        assert switcher.current_mode() == InputMode.UNDETERMINED

    def test_recording_switcher_can_raise(self):
        with pytest.raises(OSError):
            RecordingSwitcher(error=OSError("boom")).switch_to(InputMode.LATIN)

    def test_unsupported_switcher(self):
        switcher = UnsupportedSwitcher()
        assert not switcher.is_available()
        assert switcher.supported_modes() == frozenset()
        assert not switcher.switch_to(InputMode.LATIN)


class TestDetection:
    @pytest.mark.parametrize("platform_id,expected", [
        ("win32", "windows"),
        ("darwin", "macos"),
        ("linux", "linux"),
        ("sunos5", "unknown"),
    ])
    def test_detect_platform(self, platform_id, expected):
        assert detect_platform(platform_id) == expected

    def test_create_switcher_by_kind(self, monkeypatch):
        monkeypatch.setattr(platform_mod.shutil, "which", _which())
        assert isinstance(create_switcher("windows"), WindowsSwitcher)
        assert isinstance(create_switcher("macos"), MacOSSwitcher)
        assert isinstance(create_switcher("linux"), LinuxSwitcher)
        assert isinstance(create_switcher("dry-run"), RecordingSwitcher)
        assert isinstance(create_switcher("beos"), UnsupportedSwitcher)

    def test_linux_tool_detection_order(self, monkeypatch):
        monkeypatch.setattr(platform_mod.shutil, "which", _which("fcitx-remote", "fcitx5-remote"))
        assert platform_mod.detect_linux_tool() == "fcitx5-remote"

    def test_platform_info_shape(self):
        info = platform_info()
        assert set(info) == {"platform", "os_name", "os_version", "os_arch", "python_version", "is_supported"}
