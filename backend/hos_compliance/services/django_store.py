"""
Django Violation Store.

ViolationStore backed by the ComplianceViolation table. Inserts are keyed
by the deterministic violation id, so recording the same detection from
two processes stores one row.
"""

import logging

from django.db import IntegrityError, transaction
from django.utils import timezone

from common.exceptions import (
    InvalidTransitionError,
    ViolationNotFoundError,
)

from ..models import ComplianceViolation
from .violation_store import ViolationStore

logger = logging.getLogger(__name__)


class DjangoViolationStore(ViolationStore):
    """Violation store persisting ComplianceViolation rows."""

    def __init__(self, using=None):
        self.using = using
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def record(self, violations):
        violations = list(violations)
        if not violations:
            return []

        stored = []
        with transaction.atomic(using=self.using):
            existing = set(
                ComplianceViolation.objects.using(self.using)
                .filter(pk__in=[v.id for v in violations])
                .values_list("id", flat=True)
            )
            for violation in violations:
                if violation.id in existing:
                    continue
                try:
                    with transaction.atomic(using=self.using):
                        ComplianceViolation.from_violation(violation).save(
                            using=self.using, force_insert=True
                        )
                except IntegrityError:
                    # Stored by a concurrent evaluation
                    self.logger.debug(f"Violation {violation.id} already recorded")
                    continue
                existing.add(violation.id)
                stored.append(violation)

        if stored:
            self.logger.info(f"Recorded {len(stored)} new violations")
        return stored

    def get(self, violation_id):
        row = ComplianceViolation.objects.using(self.using).filter(pk=violation_id).first()
        if row is None:
            raise ViolationNotFoundError(
                "Violation not found", violation_id=violation_id
            )
        return row.to_violation()

    def query(self, driver_id=None, severity=None, kind=None, resolved=None):
        queryset = ComplianceViolation.objects.using(self.using).all()
        if driver_id is not None:
            queryset = queryset.filter(driver_id=driver_id)
        if severity is not None:
            queryset = queryset.filter(severity=severity)
        if kind is not None:
            queryset = queryset.filter(violation_type=kind)
        if resolved is not None:
            queryset = queryset.filter(is_resolved=resolved)
        return [row.to_violation() for row in queryset.order_by("detected_at", "id")]

    def resolve(self, violation_id, actor_id, notes="", at=None):
        with transaction.atomic(using=self.using):
            row = (
                ComplianceViolation.objects.using(self.using)
                .select_for_update()
                .filter(pk=violation_id)
                .first()
            )
            if row is None:
                raise ViolationNotFoundError(
                    "Violation not found", violation_id=violation_id
                )
            if row.is_resolved:
                raise InvalidTransitionError(
                    "Violation is already resolved",
                    driver_id=row.driver_id,
                    timestamp=row.resolved_at,
                    violation_id=violation_id,
                )
            row.is_resolved = True
            row.resolved_at = at or timezone.now()
            row.resolved_by = actor_id
            row.resolution_notes = notes
            row.save(
                using=self.using,
                update_fields=["is_resolved", "resolved_at", "resolved_by", "resolution_notes"],
            )

        self.logger.info(f"Violation {violation_id} resolved by {actor_id}")
        return row.to_violation()
