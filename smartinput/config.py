"""
Central process configuration for the Smart Input router.
All values can be overridden via environment variables or a local config.json.

User-facing switching preferences live in settings.py; this module only holds
what is fixed for the lifetime of the process.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

_ROOT = Path(__file__).parent.parent
_CONFIG_FILE = _ROOT / "config.json"


@dataclass
class Config:
    # API
    api_host: str = "127.0.0.1"
    api_port: int = 8766

    # Storage
    data_dir: Path = field(default_factory=lambda: _ROOT / "data")
    history_db: str = "switch_history.db"

    # Platform switching
    switcher: str = "auto"                 # auto | windows | macos | linux | dry-run | none
    switch_timeout_s: float = 3.0          # upper bound for one OS automation call

    # Logging
    log_level: str = "info"

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    @classmethod
    def load(cls) -> "Config":
        cfg = cls()
        if _CONFIG_FILE.exists():
            overrides = json.loads(_CONFIG_FILE.read_text())
            for k, v in overrides.items():
                if hasattr(cfg, k):
                    setattr(cfg, k, v)
        # environment variable overrides (SMI_*)
        for k in cfg.__dataclass_fields__:  # type: ignore[attr-defined]
            env_key = f"SMI_{k.upper()}"
            if env_key in os.environ:
                setattr(cfg, k, type(getattr(cfg, k))(os.environ[env_key]))
        cfg.data_dir = Path(cfg.data_dir)
        return cfg


# Module-level singleton
config = Config.load()
