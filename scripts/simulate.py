"""
Editor Simulator — drives the Smart Input router with synthetic caret,
focus and document events so you can watch decisions and switches happen
without a real editor plugin.

Usage:
    # Make sure the router is running first (a dry-run switcher is safest):
    #   SMI_SWITCHER=dry-run python start.py
    # Then in a separate terminal:
    python scripts/simulate.py                      # default: cycle all scenarios
    python scripts/simulate.py --scenario burst     # specific scenario
    python scripts/simulate.py --loop               # repeat forever
    python scripts/simulate.py --speed 2.0          # 2× faster
"""

from __future__ import annotations

import argparse
import json
import random
import time
import urllib.error
import urllib.request
from typing import Iterator

API = "http://127.0.0.1:8766"
SURFACE = "simulator"

SAMPLE = '''def greet(name):
    """Say hello. 返回问候语。"""
    # 打印问候
    message = "Hello, " + name
    label = "你好"
    return message  # done
'''


# ---------------------------------------------------------------------------
# Low-level HTTP helper
# ---------------------------------------------------------------------------

def _request(method: str, path: str, body: dict | None = None) -> dict | None:
    try:
        data = json.dumps(body).encode() if body is not None else None
        req = urllib.request.Request(
            f"{API}{path}",
            data=data,
            headers={"Content-Type": "application/json"},
            method=method,
        )
        with urllib.request.urlopen(req, timeout=3) as r:
            return json.loads(r.read())
    except (urllib.error.URLError, OSError) as e:
        print(f"  [!] Router unreachable: {e}")
        return None


def _post(path: str, body: dict) -> dict | None:
    return _request("POST", path, body)


def _get(path: str) -> dict | None:
    return _request("GET", path)


def offset_of(needle: str, shift: int = 1) -> int:
    return SAMPLE.index(needle) + shift


# ---------------------------------------------------------------------------
# Scenario generators — each yields (description, caret offsets, pause)
# ---------------------------------------------------------------------------

def scenario_walk(speed: float = 1.0) -> Iterator[tuple[str, list[int], float]]:
    """Caret settles in each region long enough for a decision."""
    stops = [
        ("code: function name", offset_of("greet")),
        ("docstring", offset_of("Say hello")),
        ("line comment", offset_of("打印")),
        ("code: assignment", offset_of("message =")),
        ("ASCII string", offset_of("Hello, ")),
        ("CJK string", offset_of("你好")),
        ("trailing comment", offset_of("done")),
    ]
    for description, offset in stops:
        yield description, [offset], 0.6 / speed


def scenario_burst(speed: float = 1.0) -> Iterator[tuple[str, list[int], float]]:
    """Fast typing: many moves inside one debounce window, one decision."""
    start = offset_of("message")
    for i in range(3):
        moves = [start + random.randint(0, 20) for _ in range(8)]
        yield f"Burst [{i+1}/3]: {len(moves)} moves", moves, 0.6 / speed


SCENARIOS = {
    "walk": scenario_walk,
    "burst": scenario_burst,
}

CYCLE = ["walk", "burst"]


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def run_scenario(name: str, speed: float) -> None:
    print(f"\n{'─' * 60}")
    print(f"  SCENARIO: {name.upper()}")
    print(f"{'─' * 60}")

    for description, offsets, delay in SCENARIOS[name](speed):
        ok = True
        for offset in offsets:
            ok = _post(f"/surfaces/{SURFACE}/caret", {"offset": offset}) is not None and ok
            time.sleep(0.01)
        time.sleep(delay)
        state = _get(f"/surfaces/{SURFACE}") or {}
        mode = state.get("gate", {}).get("logical_current_mode", "?")
        region = state.get("last_region") or "?"
        decision = state.get("last_decision") or "?"
        status = "✓" if ok else "✗"
        print(f"  {status} {mode:<12} {region:<16} {decision:<22} {description}")


def main() -> None:
    parser = argparse.ArgumentParser(description="Smart Input editor simulator")
    parser.add_argument(
        "--scenario",
        choices=list(SCENARIOS.keys()) + ["cycle"],
        default="cycle",
        help="Which scenario to run (default: cycle through all)",
    )
    parser.add_argument("--loop", action="store_true", help="Repeat indefinitely")
    parser.add_argument("--speed", type=float, default=1.0, help="Speed multiplier (default 1.0)")
    args = parser.parse_args()

    health = _get("/health")
    if not health:
        print(f"[!] Cannot reach router at {API}")
        print("    Start it first: python start.py")
        return
    print(f"[✓] Router connected — v{health.get('version', '?')}, switcher={health.get('switcher')}")
    print(f"    Speed: {args.speed}×  |  Scenario: {args.scenario}")

    _post("/surfaces", {"surface_id": SURFACE, "text": SAMPLE, "language": "python"})
    _post(f"/surfaces/{SURFACE}/focus", {"has_focus": True, "offset": 0})

    sequence = CYCLE if args.scenario == "cycle" else [args.scenario]
    try:
        while True:
            for name in sequence:
                run_scenario(name, args.speed)
            if not args.loop:
                break
            print("\n[↺] Looping...\n")
            time.sleep(2.0)
    finally:
        _request("DELETE", f"/surfaces/{SURFACE}")

    summary = _get("/history/summary") or {}
    print(f"\n[✓] Simulation complete. Decisions: {summary.get('decision_counts', {})}")


if __name__ == "__main__":
    main()
