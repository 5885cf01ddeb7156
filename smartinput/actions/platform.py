"""
Platform Switchers — best-effort OS input method switching.

Every backend implements the same small capability interface; one is chosen
at startup by create_switcher(). None of them can reliably read back the
OS state, so callers drive off their own logical mode and treat
current_mode() as a hint at most.

  windows  — blind Ctrl+Space toggle through PowerShell SendKeys
  macos    — im-select when installed, AppleScript menu selection otherwise
  linux    — ibus / fcitx5 / fcitx command line tools
  dry-run  — in-memory recorder, no side effects
"""

from __future__ import annotations

import logging
import platform as _platform
import shutil
import subprocess
import sys
import threading
import time
from typing import Dict, FrozenSet, List, Optional, Tuple

from ..errors import SwitchExecutionError
from ..inference.context_classifier import InputMode

logger = logging.getLogger(__name__)

SWITCHABLE_MODES: FrozenSet[InputMode] = frozenset({InputMode.LATIN, InputMode.NATIVE})


class PlatformSwitcher:
    """Capability interface for switching the OS input method."""

    name = "base"

    def __init__(self, input_method_ids: Optional[Dict[str, str]] = None, timeout_s: float = 3.0):
        self.input_method_ids = dict(input_method_ids or {})
        self.timeout_s = timeout_s

    def is_available(self) -> bool:
        return True

    def supported_modes(self) -> FrozenSet[InputMode]:
        return SWITCHABLE_MODES

    def current_mode(self) -> InputMode:
        """Best guess of the OS mode; UNDETERMINED when unknown."""
        return InputMode.UNDETERMINED

    def switch_to(self, mode: InputMode, context_tag: str = "") -> bool:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _input_method_id(self, mode: InputMode) -> str:
        im_id = self.input_method_ids.get(mode.value)
        if not im_id:
            raise SwitchExecutionError(mode, message=f"no {self.name} input method configured for {mode.value}")
        return im_id

    def _run(self, *command: str, mode: InputMode = InputMode.UNDETERMINED) -> str:
        try:
            result = subprocess.run(
                list(command), check=True, capture_output=True, text=True, timeout=self.timeout_s,
            )
        except (subprocess.SubprocessError, OSError) as e:
            raise SwitchExecutionError(mode, e) from e
        return result.stdout.strip()

    def _query(self, *command: str) -> str:
        try:
            return self._run(*command)
        except SwitchExecutionError as e:
            logger.debug("%s query failed: %s", self.name, e)
            return ""


# ---------------------------------------------------------------------------
# Platform implementations
# ---------------------------------------------------------------------------

class WindowsSwitcher(PlatformSwitcher):
    """
    Windows IMEs are toggled, not selected: one Ctrl+Space flips between the
    native IME and Latin input. Two identical requests racing each other
    would flip twice, so a same-target-and-context request inside
    toggle_guard_ms is acknowledged without sending another toggle.
    """

    name = "windows"
    _SEND_TOGGLE = (
        "$wsh = New-Object -ComObject WScript.Shell; "
        "$wsh.SendKeys('^ ')"
    )
    _QUERY_LAYOUT = (
        "Add-Type -TypeDefinition 'using System; using System.Runtime.InteropServices; "
        "public class Win32 { [DllImport(\"user32.dll\")] public static extern IntPtr GetKeyboardLayout(uint idThread); }'; "
        "[Win32]::GetKeyboardLayout(0).ToString('X8')"
    )

    def __init__(self, input_method_ids=None, timeout_s: float = 3.0,
                 toggle_guard_ms: int = 1000, clock=time.monotonic):
        super().__init__(input_method_ids, timeout_s)
        self.toggle_guard_ms = toggle_guard_ms
        self._clock = clock
        self._lock = threading.Lock()
        self._last_toggle: Optional[Tuple[InputMode, str, float]] = None

    def is_available(self) -> bool:
        return shutil.which("powershell") is not None

    def current_mode(self) -> InputMode:
        layout = self._query("powershell", "-NoProfile", "-Command", self._QUERY_LAYOUT)
        if layout.endswith("0409"):
            return InputMode.LATIN
        if layout.endswith("0804"):
            return InputMode.NATIVE
        return InputMode.UNDETERMINED

    def switch_to(self, mode: InputMode, context_tag: str = "") -> bool:
        if mode not in SWITCHABLE_MODES:
            return False
        with self._lock:
            now_ms = self._clock() * 1000.0
            if self._last_toggle is not None:
                last_mode, last_context, last_ms = self._last_toggle
                if (last_mode, last_context) == (mode, context_tag) and now_ms - last_ms < self.toggle_guard_ms:
                    logger.debug("Toggle to %s (%s) already sent %.0f ms ago", mode.value, context_tag, now_ms - last_ms)
                    return True
            self._run("powershell", "-NoProfile", "-Command", self._SEND_TOGGLE, mode=mode)
            self._last_toggle = (mode, context_tag, now_ms)
        return True


class MacOSSwitcher(PlatformSwitcher):

    name = "macos"

    def is_available(self) -> bool:
        return shutil.which("im-select") is not None or shutil.which("osascript") is not None

    def current_mode(self) -> InputMode:
        if shutil.which("im-select") is None:
            return InputMode.UNDETERMINED
        current = self._query("im-select")
        for mode in SWITCHABLE_MODES:
            if current and current == self.input_method_ids.get(mode.value):
                return mode
        return InputMode.UNDETERMINED

    def switch_to(self, mode: InputMode, context_tag: str = "") -> bool:
        if mode not in SWITCHABLE_MODES:
            return False
        im_id = self._input_method_id(mode)
        if shutil.which("im-select") is not None:
            self._run("im-select", im_id, mode=mode)
        else:
            self._run(
                "osascript", "-e",
                'tell application "System Events" to tell process "SystemUIServer" '
                f'to click menu bar item "{im_id}" of menu bar 1',
                mode=mode,
            )
        return True


class LinuxSwitcher(PlatformSwitcher):

    name = "linux"
    TOOLS = ("ibus", "fcitx5-remote", "fcitx-remote")

    def __init__(self, input_method_ids=None, timeout_s: float = 3.0, tool: Optional[str] = None):
        super().__init__(input_method_ids, timeout_s)
        self.tool = tool if tool is not None else detect_linux_tool()

    def is_available(self) -> bool:
        return self.tool is not None

    def current_mode(self) -> InputMode:
        if self.tool == "ibus":
            engine = self._query("ibus", "engine")
            return self._mode_for_engine(engine)
        if self.tool == "fcitx5-remote":
            return self._mode_for_engine(self._query("fcitx5-remote", "-n"))
        if self.tool == "fcitx-remote":
            state = self._query("fcitx-remote")
            return {"1": InputMode.LATIN, "2": InputMode.NATIVE}.get(state, InputMode.UNDETERMINED)
        return InputMode.UNDETERMINED

    def switch_to(self, mode: InputMode, context_tag: str = "") -> bool:
        if mode not in SWITCHABLE_MODES or self.tool is None:
            return False
        if self.tool == "fcitx-remote":
            self._run("fcitx-remote", "-c" if mode == InputMode.LATIN else "-o", mode=mode)
        elif self.tool == "fcitx5-remote":
            self._run("fcitx5-remote", "-s", self._input_method_id(mode), mode=mode)
        else:
            self._run("ibus", "engine", self._input_method_id(mode), mode=mode)
        return True

    def _mode_for_engine(self, engine: str) -> InputMode:
        if not engine:
            return InputMode.UNDETERMINED
        for mode in SWITCHABLE_MODES:
            if engine == self.input_method_ids.get(mode.value):
                return mode
        if engine.startswith(("xkb:us", "keyboard-us")):
            return InputMode.LATIN
        if "pinyin" in engine or "chinese" in engine:
            return InputMode.NATIVE
        return InputMode.UNDETERMINED


class UnsupportedSwitcher(PlatformSwitcher):

    name = "unsupported"

    def is_available(self) -> bool:
        return False

    def supported_modes(self) -> FrozenSet[InputMode]:
        return frozenset()

    def switch_to(self, mode: InputMode, context_tag: str = "") -> bool:
        logger.warning("Input method switching not supported on this platform")
        return False


class RecordingSwitcher(PlatformSwitcher):
    """
    Side-effect free switcher. Records every call; can be told to report
    failure, raise, or take a while, to exercise the pipeline.
    """

    name = "dry-run"

    def __init__(self, succeed: bool = True, error: Optional[BaseException] = None,
                 delay_s: float = 0.0, available: bool = True):
        super().__init__()
        self.succeed = succeed
        self.error = error
        self.delay_s = delay_s
        self.available = available
        self.calls: List[Tuple[InputMode, str]] = []
        self._mode = InputMode.UNDETERMINED
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        return self.available

    def current_mode(self) -> InputMode:
        return self._mode

    def switch_to(self, mode: InputMode, context_tag: str = "") -> bool:
        with self._lock:
            self.calls.append((mode, context_tag))
        if self.delay_s:
            time.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        if self.succeed:
            self._mode = mode
        return self.succeed


# ---------------------------------------------------------------------------
# Platform detection & factory
# ---------------------------------------------------------------------------

def detect_platform(platform_id: Optional[str] = None) -> str:
    platform_id = platform_id or sys.platform
    if platform_id.startswith("win"):
        return "windows"
    if platform_id == "darwin":
        return "macos"
    if platform_id.startswith("linux"):
        return "linux"
    return "unknown"


def detect_linux_tool() -> Optional[str]:
    for tool in LinuxSwitcher.TOOLS:
        if shutil.which(tool) is not None:
            logger.info("Detected Linux input method tool: %s", tool)
            return tool
    logger.warning("No supported Linux input method tool found")
    return None


def platform_info() -> dict:
    name = detect_platform()
    return {
        "platform": name,
        "os_name": _platform.system(),
        "os_version": _platform.release(),
        "os_arch": _platform.machine(),
        "python_version": _platform.python_version(),
        "is_supported": name != "unknown",
    }


def create_switcher(
    kind: str = "auto",
    input_method_ids: Optional[Dict[str, str]] = None,
    timeout_s: float = 3.0,
    toggle_guard_ms: int = 1000,
) -> PlatformSwitcher:
    """Build the switcher for *kind*; "auto" picks the one for the running OS."""
    if kind == "auto":
        kind = detect_platform()
    if kind == "windows":
        return WindowsSwitcher(input_method_ids, timeout_s, toggle_guard_ms=toggle_guard_ms)
    if kind == "macos":
        return MacOSSwitcher(input_method_ids, timeout_s)
    if kind == "linux":
        return LinuxSwitcher(input_method_ids, timeout_s)
    if kind == "dry-run":
        return RecordingSwitcher()
    logger.warning("Unknown platform %r; input method switching disabled", kind)
    return UnsupportedSwitcher()
