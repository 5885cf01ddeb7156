"""
Region Rules — declarative policy definitions.

Each rule binds a RegionKind to the SwitchConfig fields that say whether
switching is enabled in that region and which mode the user prefers there.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List

from ..inference.context_classifier import RegionKind
from ..settings import ModePreference, SwitchConfig


@dataclass(frozen=True)
class RegionRule:
    kind: RegionKind
    enabled_field: str               # SwitchConfig attribute, bool
    preference_field: str            # SwitchConfig attribute, ModePreference
    description: str = ""

    def is_enabled(self, config: SwitchConfig) -> bool:
        return bool(getattr(config, self.enabled_field))

    def preference(self, config: SwitchConfig) -> ModePreference:
        return getattr(config, self.preference_field)


# ---------------------------------------------------------------------------
# Rule registry — one rule per switchable region
# ---------------------------------------------------------------------------

RULES: List[RegionRule] = [
    RegionRule(
        kind=RegionKind.CODE,
        enabled_field="switch_in_code_areas",
        preference_field="code_area_preference",
        description="Identifiers, keywords and other code",
    ),
    RegionRule(
        kind=RegionKind.COMMENT,
        enabled_field="switch_in_comments",
        preference_field="comment_preference",
        description="Line and block comments",
    ),
    RegionRule(
        kind=RegionKind.STRING_LITERAL,
        enabled_field="switch_in_strings",
        preference_field="string_preference",
        description="String, char and template literals",
    ),
    RegionRule(
        kind=RegionKind.DOCUMENTATION,
        enabled_field="switch_in_documentation",
        preference_field="documentation_preference",
        description="Doc comments and docstrings",
    ),
]

RULES_BY_KIND: Dict[RegionKind, RegionRule] = {rule.kind: rule for rule in RULES}
