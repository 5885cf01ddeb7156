"""
Mode Policy — turns a ContextClassification into the input mode the
current region should use, according to the region rules and the user's
configuration.

InputMode.UNDETERMINED is the policy's "no opinion" answer; the switch gate
never dispatches it.
"""

from __future__ import annotations

from ..inference.context_classifier import ContextClassification, InputMode
from ..settings import ModePreference, SwitchConfig
from .rules import RULES_BY_KIND

NO_OPINION = InputMode.UNDETERMINED

_PREFERRED_MODE = {
    ModePreference.LATIN: InputMode.LATIN,
    ModePreference.NATIVE: InputMode.NATIVE,
}


class ModePolicy:
    """Resolves the target mode for a classified region."""

    def resolve_target_mode(
        self,
        classification: ContextClassification,
        config: SwitchConfig,
    ) -> InputMode:
        rule = RULES_BY_KIND.get(classification.kind)
        if rule is None or not rule.is_enabled(config):
            return NO_OPINION

        preference = rule.preference(config)
        if preference == ModePreference.AUTO:
            return classification.suggested_mode
        return _PREFERRED_MODE[preference]

    def describe(
        self,
        classification: ContextClassification,
        config: SwitchConfig,
    ) -> str:
        """Return a human-readable reason for the resolved mode."""
        rule = RULES_BY_KIND.get(classification.kind)
        if rule is None:
            return f"No rule for {classification.kind.value} region"
        if not rule.is_enabled(config):
            return f"Switching disabled in {classification.kind.value} region"
        preference = rule.preference(config)
        target = self.resolve_target_mode(classification, config)
        if preference == ModePreference.AUTO:
            return (
                f"{rule.description}: auto → {target.value} "
                f"(confidence {classification.confidence:.1f})"
            )
        return f"{rule.description}: preferred {target.value}"
