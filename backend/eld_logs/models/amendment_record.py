"""
Amendment Record model.

Stores edit requests against historical duty status entries. Approved rows
double as the link between an original entry and the edited entry that
replaces it in compliance calculations.
"""

from django.db import models

from ..services.duty_status import AmendmentRequest, AmendmentState, DutyStatus


class AmendmentRecord(models.Model):
    """
    Requested correction of a duty status entry.

    Attributes:
        id: UUID primary key
        driver_id: Driver whose ledger is being corrected
        target_entry: Entry the amendment corrects
        requested_by/requested_at: Who asked for the correction and when
        reason: Required annotation explaining the edit
        proposed_status/proposed_start/proposed_end: Proposed values
        state: pending, approved or rejected
        decided_by/decided_at/decision_note: Review outcome
        resulting_entry: Edited entry created on approval
    """

    id = models.UUIDField(primary_key=True, editable=False)

    driver_id = models.CharField(max_length=64, db_index=True)

    target_entry = models.ForeignKey(
        "eld_logs.DutyStatusRecord",
        on_delete=models.PROTECT,
        related_name="amendment_requests",
        help_text="Duty status entry being corrected",
    )

    requested_by = models.CharField(max_length=64)
    requested_at = models.DateTimeField()
    reason = models.TextField(help_text="Why the entry needs correcting")

    proposed_status = models.CharField(
        max_length=20, choices=DutyStatus.choices, blank=True
    )
    proposed_start = models.DateTimeField(null=True, blank=True)
    proposed_end = models.DateTimeField(null=True, blank=True)

    state = models.CharField(
        max_length=10,
        choices=AmendmentState.choices,
        default=AmendmentState.PENDING,
    )

    decided_by = models.CharField(max_length=64, blank=True)
    decided_at = models.DateTimeField(null=True, blank=True)
    decision_note = models.TextField(blank=True)

    resulting_entry = models.OneToOneField(
        "eld_logs.DutyStatusRecord",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="source_amendment",
        help_text="Edited entry created when the amendment was approved",
    )

    class Meta:
        db_table = "eld_logs_amendmentrecord"
        ordering = ["requested_at"]
        verbose_name = "Amendment Record"
        verbose_name_plural = "Amendment Records"
        indexes = [
            models.Index(fields=["driver_id", "state"], name="amendment_driver_state_idx"),
            models.Index(fields=["target_entry", "state"], name="amendment_target_state_idx"),
        ]

    def __str__(self):
        return f"Amendment of {self.target_entry_id} ({self.get_state_display()})"

    def to_amendment(self) -> AmendmentRequest:
        return AmendmentRequest(
            id=self.id,
            driver_id=self.driver_id,
            target_entry_id=self.target_entry_id,
            requested_by=self.requested_by,
            reason=self.reason,
            proposed_status=(
                DutyStatus(self.proposed_status) if self.proposed_status else None
            ),
            proposed_start=self.proposed_start,
            proposed_end=self.proposed_end,
            state=AmendmentState(self.state),
            requested_at=self.requested_at,
            decided_by=self.decided_by,
            decided_at=self.decided_at,
            decision_note=self.decision_note,
            resulting_entry_id=self.resulting_entry_id,
        )

    def apply_decision(self, amendment: AmendmentRequest):
        """Copy the review outcome of a decided amendment onto this row."""
        self.state = amendment.state
        self.decided_by = amendment.decided_by
        self.decided_at = amendment.decided_at
        self.decision_note = amendment.decision_note
        self.resulting_entry_id = amendment.resulting_entry_id

    @classmethod
    def from_amendment(cls, amendment: AmendmentRequest) -> "AmendmentRecord":
        return cls(
            id=amendment.id,
            driver_id=amendment.driver_id,
            target_entry_id=amendment.target_entry_id,
            requested_by=amendment.requested_by,
            requested_at=amendment.requested_at,
            reason=amendment.reason,
            proposed_status=amendment.proposed_status or "",
            proposed_start=amendment.proposed_start,
            proposed_end=amendment.proposed_end,
            state=amendment.state,
            decided_by=amendment.decided_by,
            decided_at=amendment.decided_at,
            decision_note=amendment.decision_note,
            resulting_entry_id=amendment.resulting_entry_id,
        )
