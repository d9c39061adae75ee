"""
Violation Detector Service.

Compares aggregated HOS windows against the rule set in force and emits
violation records, and projects when the next break or rest will be due if
the driver keeps their current status.

Violation ids are derived from driver, kind, severity and the entry during
which the limit was first passed, so detecting the same condition again
yields the same id. The detector never resolves anything; resolution is an
explicit action on the violation store.

Single Responsibility: Limit comparison and projection only.
"""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional

from django.db import models

from eld_logs.services.duty_status import ON_DUTY_STATUSES, DutyStatus, DutyStatusEntry

from .rule_set_registry import RuleSet
from .window_aggregator import WindowAggregatorService, WindowTotals, WindowUsage

logger = logging.getLogger(__name__)

VIOLATION_NAMESPACE = uuid.UUID("8f6f3b2a-4a8e-5c1d-9a63-2f1f0c7d4e10")


class ViolationKind(models.TextChoices):
    DAILY_DRIVING_LIMIT = "daily_driving_limit", "Daily Driving Limit"
    WEEKLY_DRIVING_LIMIT = "weekly_driving_limit", "Cycle (Weekly) Limit"
    ON_DUTY_LIMIT = "on_duty_limit", "Daily On-Duty Limit"
    REST_BREAK_REQUIRED = "rest_break_required", "Rest Break Required"
    SHIFT_LIMIT = "shift_limit", "Shift (Duty Window) Limit"


class Severity(models.TextChoices):
    WARNING = "warning", "Warning"
    CRITICAL = "critical", "Critical"


# Violations that stop driving but not other on-duty work
DRIVE_ONLY_KINDS = frozenset(
    {ViolationKind.DAILY_DRIVING_LIMIT, ViolationKind.REST_BREAK_REQUIRED}
)


def violation_id(driver_id, kind, severity, triggering_entry_id) -> uuid.UUID:
    """Deterministic id of a detected condition."""
    return uuid.uuid5(
        VIOLATION_NAMESPACE,
        f"{driver_id}:{ViolationKind(kind).value}:{Severity(severity).value}:{triggering_entry_id}",
    )


def _hours(value: timedelta) -> float:
    return round(value.total_seconds() / 3600, 2)


@dataclass(frozen=True)
class Violation:
    """A detected limit breach."""

    id: uuid.UUID
    driver_id: str
    kind: ViolationKind
    severity: Severity
    triggering_entry_id: Optional[uuid.UUID]
    rule_set_key: str
    description: str
    used: timedelta
    limit: timedelta
    detected_at: datetime
    resolved: bool = False
    resolved_at: Optional[datetime] = None
    resolved_by: str = ""
    resolution_notes: str = ""

    @property
    def is_critical(self) -> bool:
        return self.severity == Severity.CRITICAL

    def resolved_by_actor(self, actor_id: str, at: datetime, notes: str = "") -> "Violation":
        return replace(
            self, resolved=True, resolved_at=at, resolved_by=actor_id, resolution_notes=notes
        )

    def to_dict(self) -> Dict:
        return {
            "id": str(self.id),
            "driver_id": self.driver_id,
            "kind": self.kind.value,
            "severity": self.severity.value,
            "triggering_entry_id": (
                str(self.triggering_entry_id) if self.triggering_entry_id else None
            ),
            "rule_set_key": self.rule_set_key,
            "description": self.description,
            "used_hours": _hours(self.used),
            "limit_hours": _hours(self.limit),
            "detected_at": self.detected_at.isoformat(),
            "resolved": self.resolved,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "resolved_by": self.resolved_by,
            "resolution_notes": self.resolution_notes,
        }


class ViolationDetectorService:
    """
    Service for detecting HOS violations.

    Rules:
    - Daily drive over the drive limit: DAILY_DRIVING_LIMIT, critical
    - Daily on-duty over the on-duty limit: ON_DUTY_LIMIT, critical
    - Shift span over the shift limit: SHIFT_LIMIT, critical
    - Cycle on-duty over the cycle limit: WEEKLY_DRIVING_LIMIT, critical
    - Driving since break at or over the trigger: REST_BREAK_REQUIRED,
      warning; critical past the escalation grace
    """

    def __init__(self, aggregator: Optional[WindowAggregatorService] = None):
        self.aggregator = aggregator or WindowAggregatorService()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def evaluate(
        self, driver_id: str, aggregates: WindowTotals, rule_set: RuleSet
    ) -> List[Violation]:
        """
        Compare aggregated windows against a rule set.

        Returns:
            The violations present at aggregates.as_of; empty when compliant
        """
        violations = []

        limit_checks = (
            (aggregates.daily_drive, ViolationKind.DAILY_DRIVING_LIMIT, "Daily driving"),
            (aggregates.daily_on_duty, ViolationKind.ON_DUTY_LIMIT, "Daily on-duty"),
            (aggregates.shift, ViolationKind.SHIFT_LIMIT, "Shift"),
            (
                aggregates.cycle,
                ViolationKind.WEEKLY_DRIVING_LIMIT,
                f"{rule_set.cycle_window_days}-day cycle",
            ),
        )
        for usage, kind, label in limit_checks:
            if usage.exceeded:
                violations.append(
                    self._violation(
                        driver_id,
                        kind,
                        Severity.CRITICAL,
                        usage,
                        usage.triggering_entry_id,
                        rule_set,
                        aggregates.as_of,
                        f"{label} time {_hours(usage.used)}h exceeds the "
                        f"{_hours(usage.limit)}h limit",
                    )
                )

        break_window = aggregates.break_window
        if break_window.used >= break_window.limit:
            escalated = break_window.used > break_window.limit + rule_set.break_escalation_grace
            severity = Severity.CRITICAL if escalated else Severity.WARNING
            triggering = (
                aggregates.break_escalated_entry_id
                if escalated
                else break_window.triggering_entry_id
            )
            violations.append(
                self._violation(
                    driver_id,
                    ViolationKind.REST_BREAK_REQUIRED,
                    severity,
                    break_window,
                    triggering,
                    rule_set,
                    aggregates.as_of,
                    f"{int(rule_set.required_break_duration.total_seconds() // 60)}-minute "
                    f"break required after {_hours(break_window.used)}h of driving",
                )
            )

        if violations:
            self.logger.info(
                f"Detected {len(violations)} violations for driver {driver_id}: "
                f"{', '.join(v.kind for v in violations)}"
            )
        return violations

    def predict_next_break(
        self, entries: Iterable[DutyStatusEntry], rule_set: RuleSet, now: datetime
    ) -> Optional[datetime]:
        """
        When the next break is due if the driver keeps driving.

        Returns None unless the driver is currently driving.
        """
        entries = list(entries)
        current = self.aggregator.current_entry(entries, now)
        if current is None or current.status != DutyStatus.DRIVING:
            return None
        driven = self.aggregator.driving_since_break(entries, now, rule_set)
        return now + max(timedelta(0), rule_set.break_trigger_drive_time - driven)

    def predict_next_rest(
        self,
        entries: Iterable[DutyStatusEntry],
        rule_set: RuleSet,
        now: datetime,
        tz,
        horizon_start: Optional[datetime] = None,
    ) -> Optional[datetime]:
        """
        When the earliest drive, on-duty, shift or cycle limit is reached if
        the driver keeps their current on-duty status.

        Returns None while the driver is resting.
        """
        entries = list(entries)
        current = self.aggregator.current_entry(entries, now)
        if current is None or current.status not in ON_DUTY_STATUSES:
            return None

        totals = self.aggregator.aggregate(entries, now, rule_set, tz, horizon_start)
        windows = [totals.daily_on_duty, totals.shift, totals.cycle]
        if current.status == DutyStatus.DRIVING:
            windows.append(totals.daily_drive)
        return now + min(window.remaining for window in windows)

    def _violation(
        self,
        driver_id,
        kind,
        severity,
        usage: WindowUsage,
        triggering_entry_id,
        rule_set: RuleSet,
        detected_at,
        description,
    ) -> Violation:
        return Violation(
            id=violation_id(driver_id, kind, severity, triggering_entry_id),
            driver_id=driver_id,
            kind=kind,
            severity=severity,
            triggering_entry_id=triggering_entry_id,
            rule_set_key=rule_set.key,
            description=description,
            used=usage.used,
            limit=usage.limit,
            detected_at=detected_at,
        )
