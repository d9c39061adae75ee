"""
Rule Set Registry Service.

Immutable catalog of jurisdictional Hours of Service limit tables. Each rule
set is versioned by the date it took effect, so a calculation for any
instant uses the limits that were in force at that instant.

Built-in rule sets:
- interstate: FMCSA property-carrying (49 CFR 395.3), 70 hours / 8 days
- intrastate_ca: California intrastate, 80 hours / 8 days
- intrastate_tx: Texas intrastate, 70 hours / 7 days
- canada: Canadian federal, cycle 1 (70 hours / 7 days)

Single Responsibility: Rule set lookup only.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from functools import lru_cache
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from common.conf import engine_setting
from common.exceptions import UnknownRuleSetError
from eld_logs.services.duty_status import DutyStatus

logger = logging.getLogger(__name__)


def _hours(value) -> timedelta:
    return timedelta(hours=value)


@dataclass(frozen=True)
class RuleSet:
    """One version of a jurisdiction's HOS limit table."""

    key: str
    name: str
    effective_from: date
    drive_limit: timedelta
    on_duty_limit: timedelta
    shift_limit: timedelta
    cycle_limit: timedelta
    cycle_window_days: int
    required_break_duration: timedelta
    break_trigger_drive_time: timedelta
    min_off_duty_rest: timedelta
    split_sleeper_allowed: bool = False
    break_qualifying_statuses: FrozenSet[DutyStatus] = field(
        default=frozenset({DutyStatus.OFF_DUTY, DutyStatus.SLEEPER_BERTH})
    )
    # Driving this long past the break trigger escalates the break warning
    break_escalation_grace: timedelta = timedelta(minutes=30)
    cycle_restart_duration: Optional[timedelta] = None
    regulation_reference: str = ""

    @property
    def version(self) -> str:
        return self.effective_from.isoformat()

    def to_dict(self) -> Dict:
        """Rule set summary with durations in hours."""

        def hours(value):
            return round(value.total_seconds() / 3600, 2) if value is not None else None

        return {
            "key": self.key,
            "name": self.name,
            "version": self.version,
            "effective_from": self.effective_from.isoformat(),
            "drive_limit_hours": hours(self.drive_limit),
            "on_duty_limit_hours": hours(self.on_duty_limit),
            "shift_limit_hours": hours(self.shift_limit),
            "cycle_limit_hours": hours(self.cycle_limit),
            "cycle_window_days": self.cycle_window_days,
            "required_break_minutes": int(self.required_break_duration.total_seconds() // 60),
            "break_trigger_drive_hours": hours(self.break_trigger_drive_time),
            "break_escalation_grace_minutes": int(
                self.break_escalation_grace.total_seconds() // 60
            ),
            "break_qualifying_statuses": sorted(s.value for s in self.break_qualifying_statuses),
            "min_off_duty_rest_hours": hours(self.min_off_duty_rest),
            "cycle_restart_hours": hours(self.cycle_restart_duration),
            "split_sleeper_allowed": self.split_sleeper_allowed,
            "regulation_reference": self.regulation_reference,
        }


INTERSTATE_2013 = RuleSet(
    key="interstate",
    name="US Interstate (Property-Carrying)",
    effective_from=date(2013, 7, 1),
    drive_limit=_hours(11),
    on_duty_limit=_hours(14),
    shift_limit=_hours(14),
    cycle_limit=_hours(70),
    cycle_window_days=8,
    required_break_duration=timedelta(minutes=30),
    break_trigger_drive_time=_hours(8),
    min_off_duty_rest=_hours(10),
    split_sleeper_allowed=True,
    cycle_restart_duration=_hours(34),
    regulation_reference="49 CFR 395.3",
)

# Since 2020-09-29 any non-driving period satisfies the 30-minute break
INTERSTATE_2020 = RuleSet(
    key="interstate",
    name="US Interstate (Property-Carrying)",
    effective_from=date(2020, 9, 29),
    drive_limit=_hours(11),
    on_duty_limit=_hours(14),
    shift_limit=_hours(14),
    cycle_limit=_hours(70),
    cycle_window_days=8,
    required_break_duration=timedelta(minutes=30),
    break_trigger_drive_time=_hours(8),
    min_off_duty_rest=_hours(10),
    split_sleeper_allowed=True,
    break_qualifying_statuses=frozenset(
        {DutyStatus.OFF_DUTY, DutyStatus.SLEEPER_BERTH, DutyStatus.ON_DUTY}
    ),
    cycle_restart_duration=_hours(34),
    regulation_reference="49 CFR 395.3",
)

INTRASTATE_CA = RuleSet(
    key="intrastate_ca",
    name="California Intrastate",
    effective_from=date(2013, 7, 1),
    drive_limit=_hours(12),
    on_duty_limit=_hours(16),
    shift_limit=_hours(16),
    cycle_limit=_hours(80),
    cycle_window_days=8,
    required_break_duration=timedelta(minutes=30),
    break_trigger_drive_time=_hours(8),
    min_off_duty_rest=_hours(8),
    cycle_restart_duration=_hours(34),
    regulation_reference="13 CCR 1212",
)

INTRASTATE_TX = RuleSet(
    key="intrastate_tx",
    name="Texas Intrastate",
    effective_from=date(2013, 7, 1),
    drive_limit=_hours(12),
    on_duty_limit=_hours(15),
    shift_limit=_hours(15),
    cycle_limit=_hours(70),
    cycle_window_days=7,
    required_break_duration=timedelta(minutes=30),
    break_trigger_drive_time=_hours(8),
    min_off_duty_rest=_hours(8),
    cycle_restart_duration=_hours(34),
    regulation_reference="37 TAC 4.12",
)

CANADA = RuleSet(
    key="canada",
    name="Canada Federal (Cycle 1)",
    effective_from=date(2007, 1, 1),
    drive_limit=_hours(13),
    on_duty_limit=_hours(14),
    shift_limit=_hours(14),
    cycle_limit=_hours(70),
    cycle_window_days=7,
    required_break_duration=timedelta(minutes=30),
    break_trigger_drive_time=_hours(8),
    min_off_duty_rest=_hours(8),
    split_sleeper_allowed=True,
    cycle_restart_duration=_hours(36),
    regulation_reference="SOR/2005-313",
)

DEFAULT_RULE_SETS = (INTERSTATE_2013, INTERSTATE_2020, INTRASTATE_CA, INTRASTATE_TX, CANADA)


class RuleSetRegistry:
    """
    Catalog of rule sets keyed by name and ordered by effective date.

    Built once and never modified, so one instance is shared by every
    calculation in the process.
    """

    def __init__(self, rule_sets: Iterable[RuleSet] = DEFAULT_RULE_SETS, default_key: str = "interstate"):
        catalog: Dict[str, list] = {}
        for rule_set in rule_sets:
            versions = catalog.setdefault(rule_set.key, [])
            if any(v.effective_from == rule_set.effective_from for v in versions):
                raise ValueError(
                    f"Duplicate rule set version {rule_set.key}@{rule_set.version}"
                )
            versions.append(rule_set)

        self._catalog: Dict[str, Tuple[RuleSet, ...]] = {
            key: tuple(sorted(versions, key=lambda v: v.effective_from))
            for key, versions in catalog.items()
        }
        if default_key not in self._catalog:
            raise ValueError(f"Default rule set {default_key} is not in the catalog")
        self.default_key = default_key

    def resolve(self, key: Optional[str] = None) -> RuleSet:
        """Return the latest version of a rule set (default: the configured one)."""
        return self.versions(key)[-1]

    def effective(self, key: Optional[str], at) -> RuleSet:
        """
        Return the version of a rule set in force at an instant or date.

        Raises:
            UnknownRuleSetError: Unknown key, or no version in force yet
        """
        key = key or self.default_key
        on_date = at.date() if isinstance(at, datetime) else at
        in_force = [v for v in self.versions(key) if v.effective_from <= on_date]
        if not in_force:
            raise UnknownRuleSetError(
                f"No version of rule set {key} is in force on {on_date.isoformat()}",
                rule_set=key,
            )
        return in_force[-1]

    def keys(self) -> Tuple[str, ...]:
        return tuple(sorted(self._catalog))

    def versions(self, key: Optional[str] = None) -> Tuple[RuleSet, ...]:
        key = key or self.default_key
        try:
            return self._catalog[key]
        except KeyError:
            raise UnknownRuleSetError(f"Unknown rule set: {key}", rule_set=key)


@lru_cache(maxsize=None)
def get_rule_set_registry() -> RuleSetRegistry:
    """Shared registry with the built-in catalog and configured default."""
    default_key = engine_setting("DEFAULT_RULE_SET")
    logger.info(f"Loaded HOS rule sets; default is {default_key}")
    return RuleSetRegistry(DEFAULT_RULE_SETS, default_key=default_key)
