"""
HOS Calculator Service.

Public entry point of the Hours of Service compliance engine. Produces a
ComplianceSnapshot for a driver: time used and remaining under every window
of the rule set in force, active violations, the next required break and
rest, and whether the driver may drive or work right now.

Three modes:
- compute: read-only, raises on failure
- assess: never raises; a failure yields an undetermined snapshot that
  forbids driving and work
- evaluate_and_record: compute, then store new violations

Single Responsibility: Orchestration of HOS calculations only.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple
from uuid import UUID

from django.utils import timezone

from common.conf import engine_setting
from common.exceptions import ViolationPersistenceError
from common.validators import ensure_aware, resolve_timezone
from eld_logs.services import DutyStatus, DutyStatusLedgerService

from .rule_set_registry import RuleSetRegistry, get_rule_set_registry
from .violation_detector import DRIVE_ONLY_KINDS, Violation, ViolationDetectorService
from .violation_store import ViolationStore, get_violation_store
from .window_aggregator import WindowAggregatorService, WindowUsage

logger = logging.getLogger(__name__)


def _hours(value: Optional[timedelta]) -> Optional[float]:
    return round(value.total_seconds() / 3600, 2) if value is not None else None


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class WindowStatus:
    """Used, remaining and limit of one HOS window."""

    used: timedelta
    remaining: timedelta
    limit: timedelta

    @classmethod
    def from_usage(cls, usage: WindowUsage) -> "WindowStatus":
        return cls(used=usage.used, remaining=usage.remaining, limit=usage.limit)

    def to_dict(self) -> Dict:
        return {
            "used_hours": _hours(self.used),
            "remaining_hours": _hours(self.remaining),
            "limit_hours": _hours(self.limit),
            "used_seconds": self.used.total_seconds(),
            "remaining_seconds": self.remaining.total_seconds(),
        }


@dataclass(frozen=True)
class ComplianceSnapshot:
    """Compliance state of one driver at one instant. Never persisted."""

    driver_id: str
    rule_set_key: str
    rule_set_version: str
    as_of: datetime
    drive: Optional[WindowStatus] = None
    on_duty: Optional[WindowStatus] = None
    shift: Optional[WindowStatus] = None
    cycle: Optional[WindowStatus] = None
    driving_since_break: Optional[timedelta] = None
    current_status: Optional[DutyStatus] = None
    current_entry_id: Optional[UUID] = None
    active_violations: Tuple[Violation, ...] = ()
    next_break_required_at: Optional[datetime] = None
    next_rest_required_at: Optional[datetime] = None
    can_drive: bool = False
    can_work: bool = False
    determinable: bool = True
    error: str = ""
    computed_at: datetime = field(default_factory=timezone.now, compare=False)

    def to_dict(self) -> Dict:
        windows = {
            name: window.to_dict() if window is not None else None
            for name, window in (
                ("drive", self.drive),
                ("on_duty", self.on_duty),
                ("shift", self.shift),
                ("cycle", self.cycle),
            )
        }
        return {
            "driver_id": self.driver_id,
            "rule_set": {"key": self.rule_set_key, "version": self.rule_set_version},
            "as_of": _isoformat(self.as_of),
            "windows": windows,
            "driving_since_break_hours": _hours(self.driving_since_break),
            "current_status": self.current_status.value if self.current_status else None,
            "current_entry_id": str(self.current_entry_id) if self.current_entry_id else None,
            "active_violations": [v.to_dict() for v in self.active_violations],
            "next_break_required_at": _isoformat(self.next_break_required_at),
            "next_rest_required_at": _isoformat(self.next_rest_required_at),
            "can_drive": self.can_drive,
            "can_work": self.can_work,
            "determinable": self.determinable,
            "error": self.error,
            "computed_at": _isoformat(self.computed_at),
        }


class HOSCalculatorService:
    """
    Service for calculating Hours of Service compliance.

    Loads a driver's effective ledger entries over the cycle horizon,
    resolves the rule set in force, aggregates the windows and runs the
    violation detector.
    """

    def __init__(
        self,
        ledger: Optional[DutyStatusLedgerService] = None,
        registry: Optional[RuleSetRegistry] = None,
        aggregator: Optional[WindowAggregatorService] = None,
        detector: Optional[ViolationDetectorService] = None,
        violation_store: Optional[ViolationStore] = None,
        clock=None,
    ):
        """Initialize HOS calculator with its collaborators."""
        self.ledger = ledger or DutyStatusLedgerService()
        self.registry = registry or get_rule_set_registry()
        self.aggregator = aggregator or WindowAggregatorService()
        self.detector = detector or ViolationDetectorService(self.aggregator)
        self._violation_store = violation_store
        self.clock = clock or timezone.now
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def violation_store(self) -> ViolationStore:
        if self._violation_store is None:
            self._violation_store = get_violation_store()
        return self._violation_store

    def compute(
        self,
        driver_id: str,
        rule_set_key: Optional[str] = None,
        now: Optional[datetime] = None,
        tz=None,
    ) -> ComplianceSnapshot:
        """
        Calculate a driver's compliance snapshot.

        Args:
            driver_id: Driver to evaluate
            rule_set_key: Rule set name (default: configured rule set)
            now: Instant to evaluate at (default: current time)
            tz: Driver's home terminal time zone (default: configured zone)

        Returns:
            ComplianceSnapshot; calling again with the same arguments and no
            ledger change returns an equal snapshot
        """
        now = ensure_aware(now, "now", driver_id=driver_id) or self.clock()
        tz = resolve_timezone(tz) or resolve_timezone(engine_setting("DEFAULT_TIMEZONE"))
        rule_set = self.registry.effective(rule_set_key, now)

        horizon_start = now - timedelta(
            days=rule_set.cycle_window_days + engine_setting("HORIZON_PADDING_DAYS")
        )
        entries = self.ledger.effective_entries(driver_id, horizon_start, now)

        totals = self.aggregator.aggregate(entries, now, rule_set, tz, horizon_start)
        violations = self.detector.evaluate(driver_id, totals, rule_set)

        windows = {
            "drive": WindowStatus.from_usage(totals.daily_drive),
            "on_duty": WindowStatus.from_usage(totals.daily_on_duty),
            "shift": WindowStatus.from_usage(totals.shift),
            "cycle": WindowStatus.from_usage(totals.cycle),
        }
        work_windows = (windows["on_duty"], windows["shift"], windows["cycle"])

        can_drive = not any(v.is_critical for v in violations) and all(
            w.remaining > timedelta(0) for w in windows.values()
        )
        can_work = not any(
            v.is_critical and v.kind not in DRIVE_ONLY_KINDS for v in violations
        ) and all(w.remaining > timedelta(0) for w in work_windows)

        snapshot = ComplianceSnapshot(
            driver_id=driver_id,
            rule_set_key=rule_set.key,
            rule_set_version=rule_set.version,
            as_of=now,
            driving_since_break=totals.driving_since_break,
            current_status=totals.current_status,
            current_entry_id=totals.current_entry_id,
            active_violations=tuple(violations),
            next_break_required_at=self.detector.predict_next_break(entries, rule_set, now),
            next_rest_required_at=self.detector.predict_next_rest(
                entries, rule_set, now, tz, horizon_start
            ),
            can_drive=can_drive,
            can_work=can_work,
            computed_at=self.clock(),
            **windows,
        )

        self.logger.debug(
            f"HOS calculation completed for driver {driver_id}: "
            f"can_drive={can_drive} can_work={can_work} violations={len(violations)}"
        )
        return snapshot

    def assess(
        self,
        driver_id: str,
        rule_set_key: Optional[str] = None,
        now: Optional[datetime] = None,
        tz=None,
    ) -> ComplianceSnapshot:
        """
        Calculate a snapshot, failing closed.

        Any error yields a snapshot with determinable=False that forbids
        both driving and work and carries the error message.
        """
        try:
            return self.compute(driver_id, rule_set_key=rule_set_key, now=now, tz=tz)
        except Exception as e:
            self.logger.error(f"HOS calculation failed for driver {driver_id}: {str(e)}")
            return ComplianceSnapshot(
                driver_id=driver_id,
                rule_set_key=rule_set_key or self.registry.default_key,
                rule_set_version="",
                as_of=now or self.clock(),
                can_drive=False,
                can_work=False,
                determinable=False,
                error=str(e),
                computed_at=self.clock(),
            )

    def evaluate_and_record(
        self,
        driver_id: str,
        rule_set_key: Optional[str] = None,
        now: Optional[datetime] = None,
        tz=None,
    ) -> Tuple[ComplianceSnapshot, List[Violation]]:
        """
        Calculate a snapshot and store its violations.

        Returns:
            The snapshot and the violations stored for the first time

        Raises:
            ViolationPersistenceError: Violations could not be stored
        """
        snapshot = self.compute(driver_id, rule_set_key=rule_set_key, now=now, tz=tz)
        try:
            recorded = self.violation_store.record(snapshot.active_violations)
        except Exception as e:
            self.logger.error(
                f"Failed to record violations for driver {driver_id}: {str(e)}"
            )
            raise ViolationPersistenceError(
                f"Failed to record violations: {str(e)}",
                driver_id=driver_id,
                timestamp=snapshot.as_of,
            ) from e

        if recorded:
            self.logger.warning(
                f"Recorded {len(recorded)} new violations for driver {driver_id}"
            )
        return snapshot, recorded
