"""
Duty status value objects.

Immutable records shared by the ledger, the amendment workflow and the
HOS calculations. Persistence rows (see eld_logs.models) convert to and
from these objects; nothing outside a store ever mutates an entry.
"""

import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta, tzinfo
from decimal import Decimal
from typing import Dict, Optional

from django.db import models


class DutyStatus(models.TextChoices):
    """Driver duty status (matches grid rows on the log sheet)."""

    OFF_DUTY = "off_duty", "Off Duty"
    SLEEPER_BERTH = "sleeper_berth", "Sleeper Berth"
    ON_DUTY = "on_duty", "On Duty (Not Driving)"
    DRIVING = "driving", "Driving"


class DataSource(models.TextChoices):
    """How an entry came to be in the ledger."""

    AUTOMATIC = "automatic", "Automatic (ELD Generated)"
    MANUAL = "manual", "Manual Entry"
    EDITED = "edited", "Edited Record"


class AmendmentState(models.TextChoices):
    PENDING = "pending", "Pending Review"
    APPROVED = "approved", "Approved"
    REJECTED = "rejected", "Rejected"


ON_DUTY_STATUSES = frozenset({DutyStatus.ON_DUTY, DutyStatus.DRIVING})
REST_STATUSES = frozenset({DutyStatus.OFF_DUTY, DutyStatus.SLEEPER_BERTH})


def local_day_bounds(day: date, tz: tzinfo):
    """Return the [start, end) instants of a local calendar day in tz."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def _isoformat(value):
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class Location:
    """Opaque location attached to an entry; stored, never interpreted."""

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: str = ""

    def to_dict(self) -> Dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "address": self.address,
        }


@dataclass(frozen=True)
class DutyStatusEntry:
    """
    One segment of a driver's timeline.

    An entry without end_time is the driver's open entry. Duration is always
    derived from the instants and never stored as the source of truth.
    """

    id: uuid.UUID
    driver_id: str
    sequence: int
    status: DutyStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    location: Optional[Location] = None
    vehicle_id: str = ""
    trailer_id: str = ""
    odometer: Optional[Decimal] = None
    engine_hours: Optional[Decimal] = None
    data_source: DataSource = DataSource.MANUAL
    recorded_by: str = ""
    recorded_at: Optional[datetime] = None
    certified_at: Optional[datetime] = None
    certified_by: str = ""
    amends_entry_id: Optional[uuid.UUID] = None
    remarks: str = ""

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    @property
    def is_certified(self) -> bool:
        return self.certified_at is not None

    @property
    def is_edited(self) -> bool:
        return self.data_source == DataSource.EDITED

    def duration(self, now: Optional[datetime] = None) -> timedelta:
        """Closed entries span start to end; an open entry runs until now."""
        end = self.end_time if self.end_time is not None else now
        if end is None or end <= self.start_time:
            return timedelta(0)
        return end - self.start_time

    def closed_at(self, end_time: datetime) -> "DutyStatusEntry":
        return replace(self, end_time=end_time)

    def certified(self, certified_at: datetime, certified_by: str = "") -> "DutyStatusEntry":
        return replace(self, certified_at=certified_at, certified_by=certified_by)

    def to_dict(self) -> Dict:
        """Export form with full-precision instants."""
        return {
            "id": str(self.id),
            "driver_id": self.driver_id,
            "sequence": self.sequence,
            "status": self.status.value,
            "start_time": _isoformat(self.start_time),
            "end_time": _isoformat(self.end_time),
            "duration_seconds": (
                self.duration().total_seconds() if not self.is_open else None
            ),
            "location": self.location.to_dict() if self.location else None,
            "vehicle_id": self.vehicle_id,
            "trailer_id": self.trailer_id,
            "odometer": str(self.odometer) if self.odometer is not None else None,
            "engine_hours": (
                str(self.engine_hours) if self.engine_hours is not None else None
            ),
            "data_source": self.data_source.value,
            "recorded_by": self.recorded_by,
            "recorded_at": _isoformat(self.recorded_at),
            "certified_at": _isoformat(self.certified_at),
            "certified_by": self.certified_by,
            "amends_entry_id": (
                str(self.amends_entry_id) if self.amends_entry_id else None
            ),
            "remarks": self.remarks,
        }


@dataclass(frozen=True)
class AmendmentRequest:
    """A proposed correction to a historical entry."""

    id: uuid.UUID
    driver_id: str
    target_entry_id: uuid.UUID
    requested_by: str
    reason: str
    proposed_status: Optional[DutyStatus] = None
    proposed_start: Optional[datetime] = None
    proposed_end: Optional[datetime] = None
    state: AmendmentState = AmendmentState.PENDING
    requested_at: Optional[datetime] = None
    decided_by: str = ""
    decided_at: Optional[datetime] = None
    decision_note: str = ""
    resulting_entry_id: Optional[uuid.UUID] = None

    @property
    def is_terminal(self) -> bool:
        return self.state != AmendmentState.PENDING

    def decided(
        self,
        state: AmendmentState,
        decided_by: str,
        decided_at: datetime,
        note: str = "",
        resulting_entry_id: Optional[uuid.UUID] = None,
    ) -> "AmendmentRequest":
        return replace(
            self,
            state=state,
            decided_by=decided_by,
            decided_at=decided_at,
            decision_note=note,
            resulting_entry_id=resulting_entry_id,
        )
