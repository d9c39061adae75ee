"""
Duty Status Ledger Service.

Records duty status changes in each driver's append-only ledger as required
for ELD compliance. Every change closes the driver's open segment and opens
the next one in a single commit, so a driver always has at most one open
entry and appended entries never overlap.

This service handles:
- Duty status change recording with sequencing
- Out-of-order and concurrent append rejection
- Entry and end-of-day certification
- Effective entry selection for HOS calculations
- ELD data export

Single Responsibility: Duty status recording and retrieval only.
"""

import logging
import uuid
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterator, List, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.utils import timezone

from common.conf import engine_setting
from common.exceptions import (
    AlreadyCertifiedError,
    ConflictError,
    EntryNotFoundError,
    HOSEngineError,
    OpenEntryError,
    ValidationError,
)
from common.validators import (
    ensure_aware,
    resolve_timezone,
    validate_latitude,
    validate_longitude,
)

from .duty_status import (
    DataSource,
    DutyStatus,
    DutyStatusEntry,
    Location,
    local_day_bounds,
)
from .ledger_store import LedgerStore, get_ledger_store

logger = logging.getLogger(__name__)


class DutyStatusLedgerService:
    """
    Service for a driver's append-only duty status ledger.

    Writers for one driver are linearized by the store's compare-and-swap on
    the driver's head sequence; readers get committed snapshots and never
    block writers.
    """

    # A driver's first entry cannot put them behind the wheel
    VALID_INITIAL_STATUSES = frozenset(
        {DutyStatus.OFF_DUTY, DutyStatus.SLEEPER_BERTH, DutyStatus.ON_DUTY}
    )

    METADATA_KEYS = frozenset(
        {
            "latitude",
            "longitude",
            "address",
            "vehicle_id",
            "trailer_id",
            "odometer",
            "engine_hours",
            "data_source",
            "remarks",
        }
    )

    def __init__(self, store: Optional[LedgerStore] = None, clock=None):
        """Initialize the ledger service."""
        self.store = store if store is not None else get_ledger_store()
        self.clock = clock or timezone.now
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def append(
        self,
        driver_id: str,
        status,
        at: datetime,
        metadata: Optional[Dict] = None,
        actor_id: Optional[str] = None,
        expected_sequence: Optional[int] = None,
    ) -> DutyStatusEntry:
        """
        Record a duty status change.

        Args:
            driver_id: Driver whose ledger is appended to
            status: New duty status (DutyStatus or its value)
            at: Timezone-aware instant of the change
            metadata: Optional location, equipment, data source and remarks
            actor_id: Who records the change (default: the driver)
            expected_sequence: Head sequence the caller last saw; the append
                is rejected if the ledger moved on since

        Returns:
            The new open DutyStatusEntry

        Raises:
            ConflictError: Out-of-order instant, stale expected_sequence,
                concurrent append or invalid initial status
            ValidationError: Malformed status, instant or metadata
        """
        try:
            status = self._parse_status(status, driver_id)
            ensure_aware(at, "at", driver_id=driver_id)
            fields = self._parse_metadata(metadata or {}, driver_id)

            head = self.store.head(driver_id)
            if expected_sequence is not None and expected_sequence != head.last_sequence:
                raise ConflictError(
                    "Ledger changed since it was read; re-read the current entry and retry",
                    driver_id=driver_id,
                    timestamp=at,
                    expected_sequence=expected_sequence,
                    current_sequence=head.last_sequence,
                )

            closed_entry = None
            if head.open_entry is not None:
                if at <= head.open_entry.start_time:
                    raise ConflictError(
                        "Status change is not after the start of the current entry",
                        driver_id=driver_id,
                        entry_id=head.open_entry.id,
                        timestamp=at,
                        current_start=head.open_entry.start_time,
                    )
                closed_entry = head.open_entry.closed_at(at)
            elif head.is_empty and status not in self.VALID_INITIAL_STATUSES:
                raise ConflictError(
                    f"{status.label} is not a valid initial duty status",
                    driver_id=driver_id,
                    timestamp=at,
                )

            entry = DutyStatusEntry(
                id=uuid.uuid4(),
                driver_id=driver_id,
                sequence=head.last_sequence + 1,
                status=status,
                start_time=at,
                recorded_by=actor_id or driver_id,
                recorded_at=self.clock(),
                **fields,
            )

            self.store.commit_append(driver_id, head.last_sequence, entry, closed_entry)

            previous = closed_entry.status if closed_entry else None
            self.logger.info(
                f"Duty status change recorded for driver {driver_id}: "
                f"{previous} -> {status} (sequence {entry.sequence})"
            )
            return entry

        except HOSEngineError as e:
            self.logger.warning(f"Append rejected for driver {driver_id}: {e.message}")
            raise
        except Exception as e:
            self.logger.error(
                f"Failed to append duty status for driver {driver_id}: {str(e)}"
            )
            raise

    def certify(self, entry_id, actor_id: Optional[str] = None) -> DutyStatusEntry:
        """
        Certify a closed entry.

        Raises:
            EntryNotFoundError: Unknown entry
            AlreadyCertifiedError: Entry was certified before (it is unchanged)
            OpenEntryError: Entry is still open
        """
        entry = self.store.get_entry(entry_id)
        if entry is None:
            raise EntryNotFoundError("Duty status entry not found", entry_id=entry_id)
        if entry.is_certified:
            raise AlreadyCertifiedError(
                "Entry is already certified",
                driver_id=entry.driver_id,
                entry_id=entry.id,
                timestamp=entry.certified_at,
            )
        if entry.is_open:
            raise OpenEntryError(
                "Open entries cannot be certified",
                driver_id=entry.driver_id,
                entry_id=entry.id,
                timestamp=entry.start_time,
            )

        certified = self.store.commit_certification(
            entry.certified(self.clock(), actor_id or entry.driver_id)
        )
        self.logger.info(f"Entry {entry.id} certified for driver {entry.driver_id}")
        return certified

    def certify_day(
        self,
        driver_id: str,
        day: date,
        actor_id: Optional[str] = None,
        tz=None,
    ) -> List[DutyStatusEntry]:
        """
        Certify every closed, uncertified entry of one local calendar day.

        Only entries that started on the day and ended by its end are
        certified. Segments crossing midnight are left for certify().
        """
        tz = resolve_timezone(tz) or resolve_timezone(engine_setting("DEFAULT_TIMEZONE"))
        day_start, day_end = local_day_bounds(day, tz)

        certified = []
        for entry in list(self.store.iter_entries(driver_id, day_start, day_end)):
            if entry.is_open or entry.is_certified:
                continue
            if entry.start_time < day_start or entry.end_time > day_end:
                continue
            try:
                certified.append(
                    self.store.commit_certification(
                        entry.certified(self.clock(), actor_id or driver_id)
                    )
                )
            except AlreadyCertifiedError:
                self.logger.debug(f"Entry {entry.id} was certified concurrently")

        self.logger.info(
            f"Certified {len(certified)} entries for driver {driver_id} on {day.isoformat()}"
        )
        return certified

    def list_entries(
        self,
        driver_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Iterator[DutyStatusEntry]:
        """
        Iterate a driver's entries overlapping [start, end] in sequence order.

        The iterator is lazy and reads one committed snapshot, so concurrent
        appends never show up half-written.
        """
        ensure_aware(start, "start", driver_id=driver_id)
        ensure_aware(end, "end", driver_id=driver_id)
        if start is not None and end is not None and start > end:
            raise ValidationError(
                "start must not be after end", driver_id=driver_id, start=start, end=end
            )
        return self.store.iter_entries(driver_id, start, end)

    def effective_entries(
        self,
        driver_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> List[DutyStatusEntry]:
        """
        Entries for HOS aggregation over [start, end].

        Originals replaced by an approved amendment are left out; the edited
        entries replacing them are included like any other entry.
        """
        # Superseded ids first: an approval landing in between leaves both
        # the original and its edit, and the aggregator drops the original.
        superseded = self.store.superseded_entry_ids(driver_id)
        return [
            entry
            for entry in self.list_entries(driver_id, start, end)
            if entry.id not in superseded
        ]

    def current_entry(self, driver_id: str) -> Optional[DutyStatusEntry]:
        """Return the driver's open entry, if any."""
        return self.store.head(driver_id).open_entry

    def get_entry(self, entry_id) -> DutyStatusEntry:
        entry = self.store.get_entry(entry_id)
        if entry is None:
            raise EntryNotFoundError("Duty status entry not found", entry_id=entry_id)
        return entry

    def export_entries(
        self,
        driver_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Dict:
        """
        Export a driver's ledger in ELD data file form.

        All entries in range are exported, superseded originals included and
        flagged, so an inspector sees both the original and its edit.
        """
        superseded = self.store.superseded_entry_ids(driver_id)
        entries = []
        for entry in self.list_entries(driver_id, start, end):
            record = entry.to_dict()
            record["superseded"] = entry.id in superseded
            entries.append(record)

        self.logger.info(f"Exported {len(entries)} entries for driver {driver_id}")
        return {
            "driver_id": driver_id,
            "start": start.isoformat() if start else None,
            "end": end.isoformat() if end else None,
            "exported_at": self.clock().isoformat(),
            "entry_count": len(entries),
            "entries": entries,
        }

    def _parse_status(self, status, driver_id) -> DutyStatus:
        try:
            return DutyStatus(status)
        except ValueError:
            raise ValidationError(
                f"Invalid duty status: {status}", driver_id=driver_id, status=status
            )

    def _parse_metadata(self, metadata: Dict, driver_id) -> Dict:
        """Turn append metadata into DutyStatusEntry fields."""
        unknown = set(metadata) - self.METADATA_KEYS
        if unknown:
            raise ValidationError(
                f"Unknown metadata keys: {', '.join(sorted(unknown))}",
                driver_id=driver_id,
            )

        fields = {}

        latitude = metadata.get("latitude")
        longitude = metadata.get("longitude")
        address = metadata.get("address") or ""
        try:
            if latitude is not None:
                validate_latitude(latitude)
                latitude = float(latitude)
            if longitude is not None:
                validate_longitude(longitude)
                longitude = float(longitude)
        except (DjangoValidationError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid location: {e}", driver_id=driver_id)
        if latitude is not None or longitude is not None or address:
            fields["location"] = Location(
                latitude=latitude, longitude=longitude, address=address
            )

        for key in ("odometer", "engine_hours"):
            value = metadata.get(key)
            if value is None:
                continue
            try:
                fields[key] = Decimal(str(value))
            except InvalidOperation:
                raise ValidationError(
                    f"Invalid {key}: {value}", driver_id=driver_id, field=key
                )

        for key in ("vehicle_id", "trailer_id", "remarks"):
            if metadata.get(key):
                fields[key] = str(metadata[key])

        if "data_source" in metadata:
            try:
                data_source = DataSource(metadata["data_source"])
            except ValueError:
                raise ValidationError(
                    f"Invalid data source: {metadata['data_source']}",
                    driver_id=driver_id,
                )
            if data_source == DataSource.EDITED:
                raise ValidationError(
                    "Edited entries are created through the amendment workflow",
                    driver_id=driver_id,
                )
            fields["data_source"] = data_source

        return fields
