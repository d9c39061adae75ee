"""
Tests for the Rule Set Registry.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from common.exceptions import UnknownRuleSetError
from eld_logs.services import DutyStatus
from hos_compliance.services import RuleSetRegistry, get_rule_set_registry
from hos_compliance.services.rule_set_registry import (
    CANADA,
    DEFAULT_RULE_SETS,
    INTERSTATE_2013,
    INTERSTATE_2020,
    INTRASTATE_CA,
)


class TestRuleSetRegistry:
    """Test rule set lookup and versioning."""

    def setup_method(self):
        self.registry = RuleSetRegistry()

    def test_catalog_keys(self):
        assert self.registry.keys() == ("canada", "interstate", "intrastate_ca", "intrastate_tx")

    def test_resolve_returns_latest_version(self):
        assert self.registry.resolve("interstate") == INTERSTATE_2020
        assert self.registry.resolve() == INTERSTATE_2020

    def test_interstate_limits(self):
        rule_set = self.registry.resolve("interstate")

        assert rule_set.drive_limit == timedelta(hours=11)
        assert rule_set.on_duty_limit == timedelta(hours=14)
        assert rule_set.cycle_limit == timedelta(hours=70)
        assert rule_set.cycle_window_days == 8
        assert rule_set.required_break_duration == timedelta(minutes=30)
        assert rule_set.break_trigger_drive_time == timedelta(hours=8)
        assert rule_set.min_off_duty_rest == timedelta(hours=10)
        assert rule_set.cycle_restart_duration == timedelta(hours=34)

    def test_jurisdictions_differ(self):
        assert self.registry.resolve("intrastate_ca").drive_limit == timedelta(hours=12)
        assert self.registry.resolve("intrastate_ca").cycle_limit == timedelta(hours=80)
        assert self.registry.resolve("intrastate_tx").cycle_window_days == 7
        assert self.registry.resolve("canada").drive_limit == timedelta(hours=13)
        assert self.registry.resolve("canada").cycle_restart_duration == timedelta(hours=36)

    def test_effective_version_follows_date(self):
        before = self.registry.effective("interstate", date(2019, 6, 1))
        on_change = self.registry.effective(
            "interstate", datetime(2020, 9, 29, 12, 0, tzinfo=timezone.utc)
        )

        assert before == INTERSTATE_2013
        assert DutyStatus.ON_DUTY not in before.break_qualifying_statuses
        assert on_change == INTERSTATE_2020
        assert DutyStatus.ON_DUTY in on_change.break_qualifying_statuses

    def test_effective_uses_default_key(self):
        assert self.registry.effective(None, date(2024, 1, 1)).key == "interstate"

    def test_unknown_rule_set(self):
        with pytest.raises(UnknownRuleSetError):
            self.registry.resolve("mars")

    def test_no_version_in_force_yet(self):
        with pytest.raises(UnknownRuleSetError):
            self.registry.effective("canada", date(2000, 1, 1))

    def test_versions_are_ordered(self):
        assert self.registry.versions("interstate") == (INTERSTATE_2013, INTERSTATE_2020)

    def test_duplicate_version_rejected(self):
        with pytest.raises(ValueError):
            RuleSetRegistry(DEFAULT_RULE_SETS + (INTERSTATE_2020,))

    def test_default_must_exist(self):
        with pytest.raises(ValueError):
            RuleSetRegistry((INTRASTATE_CA,), default_key="interstate")

    def test_custom_default(self):
        registry = RuleSetRegistry((INTRASTATE_CA, CANADA), default_key="canada")

        assert registry.resolve() == CANADA

    def test_to_dict(self):
        summary = INTERSTATE_2020.to_dict()

        assert summary["version"] == "2020-09-29"
        assert summary["drive_limit_hours"] == 11.0
        assert summary["required_break_minutes"] == 30
        assert summary["break_qualifying_statuses"] == ["off_duty", "on_duty", "sleeper_berth"]
        assert summary["regulation_reference"] == "49 CFR 395.3"

    def test_shared_registry_uses_configured_default(self, settings):
        settings.HOS_ENGINE = {"DEFAULT_RULE_SET": "intrastate_tx"}

        assert get_rule_set_registry().default_key == "intrastate_tx"
