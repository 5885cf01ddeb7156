"""
Convenience launcher — starts the Smart Input router and (optionally) the
editor simulator against it.

Usage:
    python start.py              # router only
    python start.py --simulate   # router + simulator (forces the dry-run switcher)
"""

from __future__ import annotations

import argparse
import os
import subprocess
import sys
import time
from typing import Optional


def start_router(env: dict) -> subprocess.Popen:
    return subprocess.Popen(
        [sys.executable, "-m", "smartinput.main"],
        stdout=sys.stdout,
        stderr=sys.stderr,
        env=env,
    )


def start_simulator() -> subprocess.Popen:
    return subprocess.Popen([sys.executable, "scripts/simulate.py"], stdout=sys.stdout, stderr=sys.stderr)


def router_env(simulate: bool, base: Optional[dict] = None) -> dict:
    """Environment for the router process; the simulator always runs against the dry-run switcher."""
    env = dict(os.environ if base is None else base)
    if simulate:
        env["SMI_SWITCHER"] = "dry-run"
    return env


def main() -> None:
    parser = argparse.ArgumentParser(description="Start the Smart Input router")
    parser.add_argument("--simulate", action="store_true", help="Also run the editor simulator")
    args = parser.parse_args()

    print("Starting Smart Input router…")
    router_proc = start_router(router_env(args.simulate))

    if args.simulate:
        time.sleep(1.5)  # give the router a moment to bind
        print("Starting editor simulator…")
        start_simulator()

    print("\nRouter → http://127.0.0.1:8766")
    print("Press Ctrl+C to stop.\n")

    try:
        router_proc.wait()
    except KeyboardInterrupt:
        print("\nShutting down…")
        router_proc.terminate()
        router_proc.wait()


if __name__ == "__main__":
    main()
