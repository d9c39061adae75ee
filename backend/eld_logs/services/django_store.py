"""
Django Ledger Store.

LedgerStore backed by the Django ORM. Each commit runs in one
transaction.atomic block that first locks the driver's DriverLedgerHead row
with select_for_update, so concurrent writers for one driver queue on that
row while other drivers proceed. The unique (driver_id, sequence) constraint
backs the compare-and-swap on databases without row locks.
"""

import logging

from django.db import IntegrityError, transaction
from django.db.models import Q

from common.exceptions import (
    AlreadyCertifiedError,
    AmendmentNotFoundError,
    ConflictError,
    EntryNotFoundError,
    InvalidTransitionError,
    OpenEntryError,
)

from ..models import AmendmentRecord, DriverLedgerHead, DutyStatusRecord
from .duty_status import AmendmentState
from .ledger_store import LedgerHead, LedgerStore

logger = logging.getLogger(__name__)


class DjangoLedgerStore(LedgerStore):
    """Ledger store persisting entries and amendments as ORM rows."""

    def __init__(self, using=None):
        self.using = using
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def head(self, driver_id):
        head_row = (
            DriverLedgerHead.objects.using(self.using)
            .select_related("open_entry")
            .filter(driver_id=driver_id)
            .first()
        )
        if head_row is None:
            return LedgerHead(driver_id=driver_id)
        return LedgerHead(
            driver_id=driver_id,
            last_sequence=head_row.last_sequence,
            open_entry=head_row.open_entry.to_entry() if head_row.open_entry else None,
        )

    def get_entry(self, entry_id):
        record = DutyStatusRecord.objects.using(self.using).filter(pk=entry_id).first()
        return record.to_entry() if record else None

    def iter_entries(self, driver_id, start=None, end=None):
        queryset = DutyStatusRecord.objects.using(self.using).filter(driver_id=driver_id)
        if end is not None:
            queryset = queryset.filter(start_time__lte=end)
        if start is not None:
            queryset = queryset.filter(Q(end_time__isnull=True) | Q(end_time__gt=start))

        # One query, so the iterator reads a single committed state
        for record in queryset.order_by("sequence").iterator():
            yield record.to_entry()

    def superseded_entry_ids(self, driver_id):
        return frozenset(
            AmendmentRecord.objects.using(self.using)
            .filter(driver_id=driver_id, state=AmendmentState.APPROVED)
            .values_list("target_entry_id", flat=True)
        )

    def commit_append(self, driver_id, expected_sequence, new_entry, closed_entry=None):
        try:
            with transaction.atomic(using=self.using):
                head_row = self._lock_head(driver_id)
                self._check_head(driver_id, head_row, expected_sequence)

                if closed_entry is not None:
                    if head_row.open_entry_id != closed_entry.id:
                        raise ConflictError(
                            "Open entry changed before the append committed",
                            driver_id=driver_id,
                            entry_id=closed_entry.id,
                        )
                    closed = (
                        DutyStatusRecord.objects.using(self.using)
                        .filter(pk=closed_entry.id, end_time__isnull=True)
                        .update(end_time=closed_entry.end_time)
                    )
                    if closed != 1:
                        raise ConflictError(
                            "Open entry was closed by another writer",
                            driver_id=driver_id,
                            entry_id=closed_entry.id,
                        )
                elif head_row.open_entry_id is not None:
                    raise ConflictError(
                        "Append must close the current open entry",
                        driver_id=driver_id,
                        entry_id=head_row.open_entry_id,
                    )

                DutyStatusRecord.from_entry(new_entry).save(
                    using=self.using, force_insert=True
                )
                head_row.last_sequence = new_entry.sequence
                head_row.open_entry_id = new_entry.id if new_entry.is_open else None
                head_row.save(using=self.using)

        except IntegrityError as e:
            self.logger.warning(
                f"Sequence collision appending for driver {driver_id}: {str(e)}"
            )
            raise ConflictError(
                "Ledger changed concurrently; re-read the current entry and retry",
                driver_id=driver_id,
                timestamp=new_entry.start_time,
            )

        self.logger.debug(
            f"Committed entry {new_entry.sequence} for driver {driver_id}"
        )
        return new_entry

    def commit_certification(self, entry):
        with transaction.atomic(using=self.using):
            record = (
                DutyStatusRecord.objects.using(self.using)
                .select_for_update()
                .filter(pk=entry.id)
                .first()
            )
            if record is None:
                raise EntryNotFoundError(
                    "Duty status entry not found", entry_id=entry.id
                )
            if record.certified_at is not None:
                raise AlreadyCertifiedError(
                    "Entry is already certified",
                    driver_id=record.driver_id,
                    entry_id=entry.id,
                    timestamp=record.certified_at,
                )
            if record.end_time is None:
                raise OpenEntryError(
                    "Open entries cannot be certified",
                    driver_id=record.driver_id,
                    entry_id=entry.id,
                    timestamp=record.start_time,
                )

            record.certified_at = entry.certified_at
            record.certified_by = entry.certified_by
            record.save(using=self.using, update_fields=["certified_at", "certified_by"])
        return record.to_entry()

    def add_amendment(self, amendment):
        AmendmentRecord.from_amendment(amendment).save(
            using=self.using, force_insert=True
        )
        return amendment

    def get_amendment(self, amendment_id):
        record = AmendmentRecord.objects.using(self.using).filter(pk=amendment_id).first()
        return record.to_amendment() if record else None

    def iter_amendments(self, driver_id=None, state=None):
        queryset = AmendmentRecord.objects.using(self.using).all()
        if driver_id is not None:
            queryset = queryset.filter(driver_id=driver_id)
        if state is not None:
            queryset = queryset.filter(state=state)
        for record in queryset.order_by("requested_at").iterator():
            yield record.to_amendment()

    def commit_amendment_decision(self, amendment, expected_sequence=None, new_entry=None):
        driver_id = amendment.driver_id
        try:
            with transaction.atomic(using=self.using):
                # Head first: every writer for this driver locks in the same order
                head_row = self._lock_head(driver_id) if new_entry is not None else None

                record = (
                    AmendmentRecord.objects.using(self.using)
                    .select_for_update()
                    .filter(pk=amendment.id)
                    .first()
                )
                if record is None:
                    raise AmendmentNotFoundError(
                        "Amendment not found",
                        driver_id=driver_id,
                        amendment_id=amendment.id,
                    )
                if record.state != AmendmentState.PENDING:
                    raise InvalidTransitionError(
                        f"Amendment already {record.get_state_display().lower()}",
                        driver_id=driver_id,
                        entry_id=record.target_entry_id,
                        amendment_id=amendment.id,
                    )

                if new_entry is not None:
                    self._check_head(driver_id, head_row, expected_sequence)
                    already_superseded = (
                        AmendmentRecord.objects.using(self.using)
                        .filter(
                            target_entry_id=amendment.target_entry_id,
                            state=AmendmentState.APPROVED,
                        )
                        .exists()
                    )
                    if already_superseded:
                        raise ConflictError(
                            "Target entry was already superseded by another amendment",
                            driver_id=driver_id,
                            entry_id=amendment.target_entry_id,
                        )

                    DutyStatusRecord.from_entry(new_entry).save(
                        using=self.using, force_insert=True
                    )
                    head_row.last_sequence = new_entry.sequence
                    head_row.save(using=self.using, update_fields=["last_sequence", "updated_at"])

                record.apply_decision(amendment)
                record.save(using=self.using)

        except IntegrityError as e:
            self.logger.warning(
                f"Sequence collision deciding amendment {amendment.id}: {str(e)}"
            )
            raise ConflictError(
                "Ledger changed concurrently; re-read the current entry and retry",
                driver_id=driver_id,
                entry_id=amendment.target_entry_id,
            )

        return amendment

    def _lock_head(self, driver_id):
        head_row, created = (
            DriverLedgerHead.objects.using(self.using)
            .select_for_update()
            .get_or_create(driver_id=driver_id)
        )
        if created:
            self.logger.info(f"Opened ledger for driver {driver_id}")
        return head_row

    def _check_head(self, driver_id, head_row, expected_sequence):
        if expected_sequence is not None and head_row.last_sequence != expected_sequence:
            raise ConflictError(
                "Ledger changed concurrently; re-read the current entry and retry",
                driver_id=driver_id,
                expected_sequence=expected_sequence,
                current_sequence=head_row.last_sequence,
            )
