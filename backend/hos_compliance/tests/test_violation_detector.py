"""
Tests for the Violation Detector Service.
"""

from datetime import datetime, timedelta, timezone

import pytest

from eld_logs.services import DutyStatus
from hos_compliance.services import (
    Severity,
    ViolationDetectorService,
    ViolationKind,
    WindowAggregatorService,
)
from hos_compliance.services.rule_set_registry import INTERSTATE_2020
from hos_compliance.services.violation_detector import violation_id

UTC = timezone.utc


def at(hour, minute=0, day=4):
    return datetime(2024, 3, day, hour, minute, tzinfo=UTC)


def record(ledger, *changes):
    for instant, status in changes:
        ledger.append("D1", status, instant)
    return list(ledger.list_entries("D1"))


@pytest.fixture
def aggregator():
    return WindowAggregatorService()


@pytest.fixture
def detector(aggregator):
    return ViolationDetectorService(aggregator)


def detect(detector, entries, now):
    totals = detector.aggregator.aggregate(entries, now, INTERSTATE_2020, UTC)
    return detector.evaluate("D1", totals, INTERSTATE_2020)


class TestLimitViolations:
    """Test drive, on-duty, shift and cycle limits."""

    def _scenario_b(self, ledger):
        return record(
            ledger,
            (at(18, day=3), DutyStatus.OFF_DUTY),
            (at(6), DutyStatus.DRIVING),
            (at(13), DutyStatus.OFF_DUTY),
            (at(13, 30), DutyStatus.DRIVING),
        )

    def test_compliant_day_has_no_violations(self, ledger, detector):
        entries = self._scenario_b(ledger)

        assert detect(detector, entries, at(17)) == []

    def test_daily_driving_limit(self, ledger, detector):
        entries = self._scenario_b(ledger)

        violations = detect(detector, entries, at(17, 31))

        assert len(violations) == 1
        violation = violations[0]
        assert violation.kind == ViolationKind.DAILY_DRIVING_LIMIT
        assert violation.severity == Severity.CRITICAL
        assert violation.triggering_entry_id == entries[-1].id
        assert violation.used == timedelta(hours=11, minutes=1)
        assert violation.limit == timedelta(hours=11)
        assert violation.detected_at == at(17, 31)
        assert violation.rule_set_key == "interstate"
        assert not violation.resolved

    def test_shift_limit(self, ledger, detector):
        entries = record(
            ledger,
            (at(18, day=3), DutyStatus.OFF_DUTY),
            (at(6), DutyStatus.ON_DUTY),
            (at(12), DutyStatus.OFF_DUTY),
            (at(13), DutyStatus.ON_DUTY),
        )

        violations = detect(detector, entries, at(21))

        assert [v.kind for v in violations] == [ViolationKind.SHIFT_LIMIT]
        assert violations[0].is_critical

    def test_on_duty_limit(self, ledger, detector):
        entries = record(
            ledger,
            (at(0), DutyStatus.ON_DUTY),
            (at(15), DutyStatus.OFF_DUTY),
        )

        kinds = {v.kind for v in detect(detector, entries, at(16))}

        assert ViolationKind.ON_DUTY_LIMIT in kinds
        assert ViolationKind.SHIFT_LIMIT in kinds

    def test_cycle_limit(self, ledger, detector):
        changes = []
        for day in range(1, 9):
            changes.append((at(6, day=day), DutyStatus.ON_DUTY))
            changes.append((at(15, day=day), DutyStatus.OFF_DUTY))
        entries = record(ledger, *changes)

        violations = detect(detector, entries, at(18, day=8))

        assert len(violations) == 1
        violation = violations[0]
        assert violation.kind == ViolationKind.WEEKLY_DRIVING_LIMIT
        assert violation.severity == Severity.CRITICAL
        assert violation.used == timedelta(hours=72)
        assert violation.limit == timedelta(hours=70)
        # 63 hours after seven days, so the eighth shift crosses the limit
        last_shift = next(e for e in entries if e.start_time == at(6, day=8))
        assert violation.triggering_entry_id == last_shift.id

    def test_ids_are_deterministic(self, ledger, detector):
        entries = self._scenario_b(ledger)

        first = detect(detector, entries, at(17, 31))
        later = detect(detector, entries, at(17, 45))

        assert first[0].id == later[0].id
        assert first[0].id == violation_id(
            "D1", ViolationKind.DAILY_DRIVING_LIMIT, Severity.CRITICAL, entries[-1].id
        )
        assert first[0].id != violation_id(
            "D2", ViolationKind.DAILY_DRIVING_LIMIT, Severity.CRITICAL, entries[-1].id
        )


class TestRestBreak:
    """Test the 30-minute break rule."""

    def _driving(self, ledger):
        return record(ledger, (at(18, day=3), DutyStatus.OFF_DUTY), (at(6), DutyStatus.DRIVING))

    def test_no_violation_before_trigger(self, ledger, detector):
        entries = self._driving(ledger)

        assert detect(detector, entries, at(13, 59)) == []

    def test_warning_at_trigger(self, ledger, detector):
        entries = self._driving(ledger)

        violations = detect(detector, entries, at(14))

        assert len(violations) == 1
        assert violations[0].kind == ViolationKind.REST_BREAK_REQUIRED
        assert violations[0].severity == Severity.WARNING
        assert violations[0].triggering_entry_id == entries[-1].id

    def test_warning_within_grace(self, ledger, detector):
        entries = self._driving(ledger)

        violations = detect(detector, entries, at(14, 30))

        assert violations[0].severity == Severity.WARNING

    def test_critical_after_grace(self, ledger, detector):
        entries = self._driving(ledger)

        warning = detect(detector, entries, at(14))[0]
        critical = detect(detector, entries, at(14, 31))[0]

        assert critical.severity == Severity.CRITICAL
        assert critical.kind == ViolationKind.REST_BREAK_REQUIRED
        assert critical.id != warning.id

    def test_break_clears_condition(self, ledger, detector):
        entries = record(
            ledger,
            (at(18, day=3), DutyStatus.OFF_DUTY),
            (at(6), DutyStatus.DRIVING),
            (at(14, 10), DutyStatus.OFF_DUTY),
            (at(14, 45), DutyStatus.DRIVING),
        )

        violations = detect(detector, entries, at(15))

        assert ViolationKind.REST_BREAK_REQUIRED not in {v.kind for v in violations}


class TestPredictions:
    """Test next break and next rest projections."""

    def test_next_break(self, ledger, detector):
        entries = record(ledger, (at(18, day=3), DutyStatus.OFF_DUTY), (at(6), DutyStatus.DRIVING))

        assert detector.predict_next_break(entries, INTERSTATE_2020, at(10)) == at(14)

    def test_next_break_for_past_instant(self, ledger, detector):
        entries = record(
            ledger,
            (at(18, day=3), DutyStatus.OFF_DUTY),
            (at(6), DutyStatus.DRIVING),
            (at(10), DutyStatus.OFF_DUTY),
        )

        assert detector.predict_next_break(entries, INTERSTATE_2020, at(8)) == at(14)
        assert detector.predict_next_break(entries, INTERSTATE_2020, at(11)) is None

    def test_no_break_prediction_when_not_driving(self, ledger, detector):
        entries = record(ledger, (at(18, day=3), DutyStatus.OFF_DUTY), (at(6), DutyStatus.ON_DUTY))

        assert detector.predict_next_break(entries, INTERSTATE_2020, at(10)) is None

    def test_next_rest_while_driving(self, ledger, detector):
        entries = record(ledger, (at(18, day=3), DutyStatus.OFF_DUTY), (at(6), DutyStatus.DRIVING))

        # Driving limit (11h) is reached before the on-duty or shift limit
        assert detector.predict_next_rest(entries, INTERSTATE_2020, at(10), UTC) == at(17)

    def test_next_rest_while_on_duty(self, ledger, detector):
        entries = record(ledger, (at(18, day=3), DutyStatus.OFF_DUTY), (at(6), DutyStatus.ON_DUTY))

        assert detector.predict_next_rest(entries, INTERSTATE_2020, at(10), UTC) == at(20)

    def test_no_rest_prediction_while_resting(self, ledger, detector):
        entries = record(
            ledger,
            (at(18, day=3), DutyStatus.OFF_DUTY),
            (at(6), DutyStatus.DRIVING),
            (at(9), DutyStatus.SLEEPER_BERTH),
        )

        assert detector.predict_next_rest(entries, INTERSTATE_2020, at(10), UTC) is None

    def test_next_rest_respects_horizon(self, ledger, detector):
        entries = record(ledger, (at(0), DutyStatus.OFF_DUTY), (at(6), DutyStatus.ON_DUTY))

        # Six hours off is no rest, so the shift runs from the first entry
        assert detector.predict_next_rest(entries, INTERSTATE_2020, at(10), UTC) == at(14)
        assert detector.predict_next_rest(
            entries, INTERSTATE_2020, at(10), UTC, horizon_start=at(5)
        ) == at(19)
