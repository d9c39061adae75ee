"""
Amendment Workflow Service.

Handles edit requests against historical duty status entries. Any closed
entry may be amended whether or not it has been certified; only the open
entry is refused. An approved amendment never rewrites the original entry;
it appends an EDITED entry that points back at the original and replaces it
in HOS calculations, leaving the original in the ledger for inspection.

Review follows the four-eyes rule: neither the author of the entry nor the
requester of the amendment may decide it.

Single Responsibility: Amendment request lifecycle only.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional

from django.utils import timezone

from common.exceptions import (
    AmendmentNotFoundError,
    ConflictError,
    EntryNotFoundError,
    HOSEngineError,
    InvalidTransitionError,
    OpenEntryError,
    SelfApprovalError,
    ValidationError,
)
from common.validators import ensure_aware

from .duty_status import (
    AmendmentRequest,
    AmendmentState,
    DataSource,
    DutyStatus,
    DutyStatusEntry,
)
from .ledger_store import LedgerStore, get_ledger_store

logger = logging.getLogger(__name__)


class AmendmentWorkflowService:
    """
    Service for submitting and deciding duty status amendments.

    State machine: PENDING -> APPROVED | REJECTED. Both outcomes are final.
    """

    def __init__(self, store: Optional[LedgerStore] = None, clock=None):
        self.store = store if store is not None else get_ledger_store()
        self.clock = clock or timezone.now
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def submit(
        self,
        target_entry_id,
        requested_by: str,
        reason: str,
        proposed_status=None,
        proposed_start: Optional[datetime] = None,
        proposed_end: Optional[datetime] = None,
    ) -> AmendmentRequest:
        """
        Submit a correction of a closed entry for review.

        The entry need not be certified. Certification is not checked here.

        Args:
            target_entry_id: Entry to correct
            requested_by: Actor asking for the correction
            reason: Required annotation explaining the edit
            proposed_status/proposed_start/proposed_end: New values; at
                least one must be given, the rest keep the entry's values

        Returns:
            The PENDING AmendmentRequest

        Raises:
            ValidationError: Missing reason or proposal, naive instants, an
                empty range or a range reaching into the open entry
            OpenEntryError: Target entry is still open
            EntryNotFoundError: Unknown target entry
        """
        if not reason or not str(reason).strip():
            raise ValidationError(
                "An amendment requires a reason", entry_id=target_entry_id
            )
        if proposed_status is None and proposed_start is None and proposed_end is None:
            raise ValidationError(
                "An amendment must propose a status, start or end",
                entry_id=target_entry_id,
            )

        target = self.store.get_entry(target_entry_id)
        if target is None:
            raise EntryNotFoundError(
                "Duty status entry not found", entry_id=target_entry_id
            )
        if target.is_open:
            raise OpenEntryError(
                "The open entry cannot be amended; append a status change instead",
                driver_id=target.driver_id,
                entry_id=target.id,
                timestamp=target.start_time,
            )

        ensure_aware(proposed_start, "proposed_start", driver_id=target.driver_id)
        ensure_aware(proposed_end, "proposed_end", driver_id=target.driver_id)
        if proposed_status is not None:
            try:
                proposed_status = DutyStatus(proposed_status)
            except ValueError:
                raise ValidationError(
                    f"Invalid duty status: {proposed_status}",
                    driver_id=target.driver_id,
                    entry_id=target.id,
                )

        self._check_range(target, proposed_start, proposed_end)

        amendment = AmendmentRequest(
            id=uuid.uuid4(),
            driver_id=target.driver_id,
            target_entry_id=target.id,
            requested_by=requested_by,
            reason=str(reason).strip(),
            proposed_status=proposed_status,
            proposed_start=proposed_start,
            proposed_end=proposed_end,
            requested_at=self.clock(),
        )
        self.store.add_amendment(amendment)

        self.logger.info(
            f"Amendment {amendment.id} submitted by {requested_by} for entry {target.id}"
        )
        return amendment

    def decide(
        self, amendment_id, actor_id: str, approve: bool, note: str = ""
    ) -> AmendmentRequest:
        """
        Approve or reject a pending amendment.

        Approval appends the EDITED entry in the same commit as the state
        change. Rejection leaves the ledger untouched.

        Raises:
            AmendmentNotFoundError: Unknown amendment
            SelfApprovalError: actor wrote the target entry or asked for the
                amendment
            InvalidTransitionError: Amendment already decided
            ConflictError: Target already superseded, or the ledger moved on
                while the decision was being made
        """
        try:
            amendment = self.get(amendment_id)
            if amendment.is_terminal:
                raise InvalidTransitionError(
                    f"Amendment already {amendment.state.label.lower()}",
                    driver_id=amendment.driver_id,
                    entry_id=amendment.target_entry_id,
                    amendment_id=amendment.id,
                )

            target = self.store.get_entry(amendment.target_entry_id)
            if target is None:
                raise EntryNotFoundError(
                    "Duty status entry not found",
                    entry_id=amendment.target_entry_id,
                )
            if actor_id in (target.recorded_by, amendment.requested_by):
                raise SelfApprovalError(
                    "Amendments must be decided by someone other than the entry "
                    "author and the requester",
                    driver_id=amendment.driver_id,
                    entry_id=target.id,
                    actor_id=actor_id,
                )

            now = self.clock()
            if not approve:
                decided = amendment.decided(AmendmentState.REJECTED, actor_id, now, note)
                self.store.commit_amendment_decision(decided)
                self.logger.info(f"Amendment {amendment.id} rejected by {actor_id}")
                return decided

            if target.id in self.store.superseded_entry_ids(amendment.driver_id):
                raise ConflictError(
                    "Target entry was already superseded by another amendment",
                    driver_id=amendment.driver_id,
                    entry_id=target.id,
                )

            head = self.store.head(amendment.driver_id)
            edited = self._edited_entry(amendment, target, head.last_sequence + 1, now)
            if head.open_entry is not None and edited.end_time > head.open_entry.start_time:
                raise ConflictError(
                    "Edited range reaches into the open entry",
                    driver_id=amendment.driver_id,
                    entry_id=head.open_entry.id,
                    timestamp=edited.end_time,
                )

            decided = amendment.decided(
                AmendmentState.APPROVED, actor_id, now, note, resulting_entry_id=edited.id
            )
            self.store.commit_amendment_decision(decided, head.last_sequence, edited)

            self.logger.info(
                f"Amendment {amendment.id} approved by {actor_id}; "
                f"entry {target.id} superseded by {edited.id}"
            )
            return decided

        except HOSEngineError as e:
            self.logger.warning(f"Decision on amendment {amendment_id} rejected: {e.message}")
            raise
        except Exception as e:
            self.logger.error(f"Failed to decide amendment {amendment_id}: {str(e)}")
            raise

    def approve(self, amendment_id, actor_id: str, note: str = "") -> AmendmentRequest:
        return self.decide(amendment_id, actor_id, approve=True, note=note)

    def reject(self, amendment_id, actor_id: str, note: str = "") -> AmendmentRequest:
        return self.decide(amendment_id, actor_id, approve=False, note=note)

    def get(self, amendment_id) -> AmendmentRequest:
        amendment = self.store.get_amendment(amendment_id)
        if amendment is None:
            raise AmendmentNotFoundError(
                "Amendment not found", amendment_id=amendment_id
            )
        return amendment

    def list_for_driver(self, driver_id: str, state=None) -> List[AmendmentRequest]:
        return self.list_amendments(driver_id=driver_id, state=state)

    def list_amendments(self, driver_id=None, state=None) -> List[AmendmentRequest]:
        if state is not None:
            try:
                state = AmendmentState(state)
            except ValueError:
                raise ValidationError(f"Invalid amendment state: {state}", state=state)
        return list(self.store.iter_amendments(driver_id=driver_id, state=state))

    def _check_range(self, target: DutyStatusEntry, proposed_start, proposed_end):
        start = proposed_start or target.start_time
        end = proposed_end or target.end_time
        if start >= end:
            raise ValidationError(
                "Amended start must be before amended end",
                driver_id=target.driver_id,
                entry_id=target.id,
                start=start,
                end=end,
            )

        open_entry = self.store.head(target.driver_id).open_entry
        if open_entry is not None and end > open_entry.start_time:
            raise ValidationError(
                "Amended range reaches into the open entry",
                driver_id=target.driver_id,
                entry_id=target.id,
                timestamp=end,
            )

    def _edited_entry(
        self, amendment: AmendmentRequest, target: DutyStatusEntry, sequence: int, now
    ) -> DutyStatusEntry:
        """The replacement entry; equipment and location carry over from the original."""
        return DutyStatusEntry(
            id=uuid.uuid4(),
            driver_id=target.driver_id,
            sequence=sequence,
            status=amendment.proposed_status or target.status,
            start_time=amendment.proposed_start or target.start_time,
            end_time=amendment.proposed_end or target.end_time,
            location=target.location,
            vehicle_id=target.vehicle_id,
            trailer_id=target.trailer_id,
            odometer=target.odometer,
            engine_hours=target.engine_hours,
            data_source=DataSource.EDITED,
            recorded_by=amendment.requested_by,
            recorded_at=now,
            amends_entry_id=target.id,
            remarks=amendment.reason[:200],
        )
