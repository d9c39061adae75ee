"""
Tests for the Django-backed violation store.
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from common.exceptions import InvalidTransitionError, ViolationNotFoundError
from hos_compliance.models import ComplianceViolation
from hos_compliance.services import Severity, Violation, ViolationKind
from hos_compliance.services.django_store import DjangoViolationStore
from hos_compliance.services.violation_detector import violation_id

UTC = timezone.utc


def make_violation(
    driver_id="D1",
    kind=ViolationKind.DAILY_DRIVING_LIMIT,
    severity=Severity.CRITICAL,
    minute=0,
):
    entry_id = uuid.uuid4()
    return Violation(
        id=violation_id(driver_id, kind, severity, entry_id),
        driver_id=driver_id,
        kind=kind,
        severity=severity,
        triggering_entry_id=entry_id,
        rule_set_key="interstate",
        description="Daily driving time 11.02h exceeds the 11.0h limit",
        used=timedelta(hours=11, minutes=1),
        limit=timedelta(hours=11),
        detected_at=datetime(2024, 3, 4, 17, minute, tzinfo=UTC),
    )


@pytest.fixture
def db_violations():
    return DjangoViolationStore()


@pytest.mark.django_db
class TestDjangoViolationStore:
    """Test violation persistence."""

    def test_record_round_trip(self, db_violations):
        violation = make_violation()

        recorded = db_violations.record([violation])

        assert recorded == [violation]
        assert db_violations.get(violation.id) == violation
        row = ComplianceViolation.objects.get(pk=violation.id)
        assert row.violation_type == "daily_driving_limit"
        assert row.used_seconds == 11 * 3600 + 60

    def test_record_is_idempotent(self, db_violations):
        violation = make_violation()
        db_violations.record([violation])

        assert db_violations.record([violation, violation]) == []
        assert ComplianceViolation.objects.count() == 1

    def test_record_nothing(self, db_violations):
        assert db_violations.record([]) == []

    def test_query_filters(self, db_violations):
        drive = make_violation(minute=1)
        warning = make_violation(
            kind=ViolationKind.REST_BREAK_REQUIRED, severity=Severity.WARNING, minute=2
        )
        other_driver = make_violation(driver_id="D2", minute=3)
        db_violations.record([other_driver, warning, drive])

        assert db_violations.by_driver("D1") == [drive, warning]
        assert db_violations.by_severity(Severity.CRITICAL) == [drive, other_driver]
        assert db_violations.query(kind=ViolationKind.REST_BREAK_REQUIRED) == [warning]
        assert db_violations.query(driver_id="D2", resolved=False) == [other_driver]

    def test_resolve_once(self, db_violations):
        violation = make_violation()
        db_violations.record([violation])
        resolved_at = datetime(2024, 3, 5, 9, 0, tzinfo=UTC)

        resolved = db_violations.resolve(violation.id, "safety", "Coached driver", at=resolved_at)
        with pytest.raises(InvalidTransitionError):
            db_violations.resolve(violation.id, "safety")

        assert resolved.resolved
        assert resolved.resolved_at == resolved_at
        assert resolved.resolution_notes == "Coached driver"
        assert db_violations.unresolved("D1") == []

    def test_resolved_row_is_not_overwritten(self, db_violations):
        violation = make_violation()
        db_violations.record([violation])
        db_violations.resolve(violation.id, "safety")

        db_violations.record([violation])

        assert db_violations.get(violation.id).resolved

    def test_unknown_violation(self, db_violations):
        with pytest.raises(ViolationNotFoundError):
            db_violations.get(uuid.uuid4())
        with pytest.raises(ViolationNotFoundError):
            db_violations.resolve(uuid.uuid4(), "safety")
