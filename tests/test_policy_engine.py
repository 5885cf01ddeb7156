"""Tests for the region rules and the mode policy."""

import pytest

from smartinput.inference.context_classifier import ContextClassification, InputMode, RegionKind
from smartinput.router.policy_engine import NO_OPINION, ModePolicy
from smartinput.router.rules import RULES, RULES_BY_KIND
from smartinput.settings import ModePreference, SwitchConfig


def _classification(kind: RegionKind, suggested: InputMode = InputMode.NATIVE, confidence: float = 1.0):
    return ContextClassification(kind, confidence, suggested, "test")


class TestRules:
    def test_one_rule_per_switchable_region(self):
        assert {r.kind for r in RULES} == {
            RegionKind.CODE, RegionKind.COMMENT, RegionKind.STRING_LITERAL, RegionKind.DOCUMENTATION,
        }
        assert RegionKind.UNDETERMINED not in RULES_BY_KIND

    def test_rule_reads_config_fields(self):
        config = SwitchConfig(switch_in_comments=True, comment_preference=ModePreference.LATIN)
        rule = RULES_BY_KIND[RegionKind.COMMENT]
        assert rule.is_enabled(config)
        assert rule.preference(config) == ModePreference.LATIN


class TestModePolicy:
    policy = ModePolicy()

    def test_code_defaults_to_latin(self):
        target = self.policy.resolve_target_mode(_classification(RegionKind.CODE, InputMode.LATIN), SwitchConfig())
        assert target == InputMode.LATIN

    @pytest.mark.parametrize("kind", [RegionKind.COMMENT, RegionKind.STRING_LITERAL, RegionKind.DOCUMENTATION])
    def test_disabled_regions_have_no_opinion(self, kind):
        assert self.policy.resolve_target_mode(_classification(kind), SwitchConfig()) == NO_OPINION

    def test_undetermined_has_no_opinion(self):
        c = _classification(RegionKind.UNDETERMINED, InputMode.UNDETERMINED, 0.0)
        assert self.policy.resolve_target_mode(c, SwitchConfig()) == NO_OPINION

    def test_enabled_comment_uses_preference(self):
        config = SwitchConfig(switch_in_comments=True)
        assert self.policy.resolve_target_mode(_classification(RegionKind.COMMENT), config) == InputMode.NATIVE

    def test_explicit_preference_overrides_suggestion(self):
        config = SwitchConfig(switch_in_code_areas=True, code_area_preference=ModePreference.NATIVE)
        c = _classification(RegionKind.CODE, InputMode.LATIN, 0.8)
        assert self.policy.resolve_target_mode(c, config) == InputMode.NATIVE

    def test_auto_preference_follows_suggested_mode(self):
        config = SwitchConfig(switch_in_strings=True, string_preference=ModePreference.AUTO)
        latin = _classification(RegionKind.STRING_LITERAL, InputMode.LATIN, 0.9)
        native = _classification(RegionKind.STRING_LITERAL, InputMode.NATIVE, 1.0)
        assert self.policy.resolve_target_mode(latin, config) == InputMode.LATIN
        assert self.policy.resolve_target_mode(native, config) == InputMode.NATIVE

    def test_describe_explains_disabled_region(self):
        reason = self.policy.describe(_classification(RegionKind.COMMENT), SwitchConfig())
        assert "disabled" in reason

    def test_describe_explains_auto(self):
        config = SwitchConfig(switch_in_strings=True)
        reason = self.policy.describe(_classification(RegionKind.STRING_LITERAL, InputMode.LATIN, 0.9), config)
        assert "auto" in reason and "latin" in reason
