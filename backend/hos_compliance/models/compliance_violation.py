"""
Compliance Violation model for HOS compliance.

Contains the ComplianceViolation model that stores detected HOS violations
and their resolution.
"""

from datetime import timedelta

from django.db import models

from ..services.violation_detector import Severity, Violation, ViolationKind


class ComplianceViolation(models.Model):
    """
    Detected HOS violation.

    Rows are keyed by the deterministic violation id, so re-detecting the
    same condition never creates a second row. Rows are never deleted;
    resolution is recorded in place.

    Attributes:
        id: Deterministic UUID of the detected condition
        driver_id: Driver the violation belongs to
        violation_type: Kind of HOS violation
        severity: Severity level (warning, critical)
        triggering_entry_id: Entry during which the limit was first exceeded
        rule_set_key: Rule set the limit came from
        description: Description of the violation
        used_seconds/limit_seconds: Time used and the regulatory limit
        detected_at: When the violation was detected
        is_resolved/resolved_at/resolved_by/resolution_notes: Resolution
    """

    id = models.UUIDField(
        primary_key=True,
        editable=False,
        help_text="Unique identifier for the compliance violation",
    )

    driver_id = models.CharField(max_length=64, db_index=True)

    violation_type = models.CharField(
        max_length=30,
        choices=ViolationKind.choices,
        help_text="Type of HOS violation",
    )

    severity = models.CharField(
        max_length=10,
        choices=Severity.choices,
        default=Severity.WARNING,
        help_text="Severity level of the violation",
    )

    triggering_entry_id = models.UUIDField(
        null=True,
        blank=True,
        help_text="Duty status entry during which the limit was first exceeded",
    )

    rule_set_key = models.CharField(max_length=50)

    description = models.CharField(
        max_length=200, help_text="Description of the violation"
    )

    used_seconds = models.PositiveIntegerField(
        help_text="Time used against the limit, in seconds"
    )
    limit_seconds = models.PositiveIntegerField(
        help_text="Regulatory limit, in seconds"
    )

    detected_at = models.DateTimeField(help_text="When the violation was detected")

    # Resolution tracking
    is_resolved = models.BooleanField(
        default=False, help_text="Whether the violation has been resolved"
    )
    resolved_at = models.DateTimeField(null=True, blank=True)
    resolved_by = models.CharField(max_length=64, blank=True)
    resolution_notes = models.TextField(
        blank=True, help_text="Notes on how the violation was resolved"
    )

    class Meta:
        db_table = "hos_compliance_complianceviolation"
        ordering = ["detected_at"]
        verbose_name = "Compliance Violation"
        verbose_name_plural = "Compliance Violations"
        indexes = [
            models.Index(fields=["driver_id", "is_resolved"], name="violation_driver_open_idx"),
            models.Index(fields=["severity"], name="violation_severity_idx"),
            models.Index(fields=["violation_type"], name="violation_type_idx"),
        ]

    def __str__(self):
        """Return string representation of the violation."""
        status = "Resolved" if self.is_resolved else "Active"
        return f"{self.get_violation_type_display()} - {self.driver_id} ({status})"

    def to_violation(self) -> Violation:
        return Violation(
            id=self.id,
            driver_id=self.driver_id,
            kind=ViolationKind(self.violation_type),
            severity=Severity(self.severity),
            triggering_entry_id=self.triggering_entry_id,
            rule_set_key=self.rule_set_key,
            description=self.description,
            used=timedelta(seconds=self.used_seconds),
            limit=timedelta(seconds=self.limit_seconds),
            detected_at=self.detected_at,
            resolved=self.is_resolved,
            resolved_at=self.resolved_at,
            resolved_by=self.resolved_by,
            resolution_notes=self.resolution_notes,
        )

    @classmethod
    def from_violation(cls, violation: Violation) -> "ComplianceViolation":
        return cls(
            id=violation.id,
            driver_id=violation.driver_id,
            violation_type=violation.kind,
            severity=violation.severity,
            triggering_entry_id=violation.triggering_entry_id,
            rule_set_key=violation.rule_set_key,
            description=violation.description[:200],
            used_seconds=int(violation.used.total_seconds()),
            limit_seconds=int(violation.limit.total_seconds()),
            detected_at=violation.detected_at,
            is_resolved=violation.resolved,
            resolved_at=violation.resolved_at,
            resolved_by=violation.resolved_by,
            resolution_notes=violation.resolution_notes,
        )
