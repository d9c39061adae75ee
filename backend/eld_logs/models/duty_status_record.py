"""
Duty Status Record model for ELD compliance.

Contains the DutyStatusRecord model, the durable row behind one
DutyStatusEntry of a driver's append-only duty status ledger.
"""

from decimal import Decimal

from django.db import models

from ..services.duty_status import (
    DataSource,
    DutyStatus,
    DutyStatusEntry,
    Location,
)


class DutyStatusRecord(models.Model):
    """
    One duty status segment of a driver's ledger.

    Rows are written by the ledger store only. Once appended, a row is never
    deleted; closing sets end_time and certification sets certified_at, and
    nothing else about a row ever changes. Corrections are new rows with
    data_source=edited pointing back at the original through amends_entry.

    Attributes:
        id: UUID primary key (same as the entry id)
        driver_id: Driver the segment belongs to
        sequence: Gapless per-driver ordering (1-based)
        status: Duty status (off_duty, sleeper_berth, on_duty, driving)
        start_time/end_time: Segment instants; end_time is null while open
        latitude/longitude/address: Optional location at the status change
        vehicle_id/trailer_id/odometer/engine_hours: Optional equipment data
        data_source: automatic, manual or edited
        recorded_by/recorded_at: Who appended the row and when
        certified_at/certified_by: End-of-day certification stamp
        amends_entry: Original row an edited row replaces
    """

    id = models.UUIDField(
        primary_key=True,
        editable=False,
        help_text="Unique identifier for the duty status entry",
    )

    driver_id = models.CharField(
        max_length=64, db_index=True, help_text="Driver this segment belongs to"
    )

    sequence = models.PositiveIntegerField(
        help_text="Order of this entry within the driver's ledger (1-based, gapless)"
    )

    status = models.CharField(
        max_length=20,
        choices=DutyStatus.choices,
        help_text="Duty status for this time period",
    )

    # Time range for this duty status
    start_time = models.DateTimeField(help_text="When this duty status period started")

    end_time = models.DateTimeField(
        null=True, blank=True, help_text="When this duty status period ended (null while open)"
    )

    # GPS coordinates are stored as reported and never interpreted
    latitude = models.DecimalField(
        max_digits=10,
        decimal_places=7,
        null=True,
        blank=True,
        help_text="Latitude where duty status changed (-90 to 90)",
    )

    longitude = models.DecimalField(
        max_digits=10,
        decimal_places=7,
        null=True,
        blank=True,
        help_text="Longitude where duty status changed (-180 to 180)",
    )

    address = models.CharField(
        max_length=200,
        blank=True,
        help_text="Location description (e.g., 'I-95 Mile 45', 'Rest Area', 'Customer Site')",
    )

    # Equipment
    vehicle_id = models.CharField(max_length=50, blank=True)
    trailer_id = models.CharField(max_length=50, blank=True)

    odometer = models.DecimalField(
        max_digits=12,
        decimal_places=1,
        null=True,
        blank=True,
        help_text="Vehicle odometer reading at status change",
    )

    engine_hours = models.DecimalField(
        max_digits=10,
        decimal_places=1,
        null=True,
        blank=True,
        help_text="Engine hours at status change",
    )

    data_source = models.CharField(
        max_length=10,
        choices=DataSource.choices,
        default=DataSource.MANUAL,
        help_text="How this record was created",
    )

    remarks = models.CharField(
        max_length=200,
        blank=True,
        help_text="Additional remarks for this duty status change",
    )

    recorded_by = models.CharField(
        max_length=64, blank=True, help_text="Actor who appended this entry"
    )
    recorded_at = models.DateTimeField(help_text="When this entry was appended")

    # Certification
    certified_at = models.DateTimeField(
        null=True, blank=True, help_text="When the driver certified this entry"
    )
    certified_by = models.CharField(max_length=64, blank=True)

    # Edited rows point back at the row they replace
    amends_entry = models.ForeignKey(
        "self",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="edits",
        help_text="Original entry this edited entry replaces",
    )

    class Meta:
        db_table = "eld_logs_dutystatusrecord"
        ordering = ["driver_id", "sequence"]
        unique_together = ["driver_id", "sequence"]
        verbose_name = "Duty Status Record"
        verbose_name_plural = "Duty Status Records"
        indexes = [
            models.Index(fields=["driver_id", "start_time"], name="dsr_driver_start_idx"),
            models.Index(fields=["driver_id", "end_time"], name="dsr_driver_end_idx"),
            models.Index(fields=["status"], name="dsr_status_idx"),
        ]

    def __str__(self):
        """Return string representation of the duty status record."""
        end = self.end_time.strftime("%H:%M") if self.end_time else "ongoing"
        return (
            f"{self.driver_id} #{self.sequence} {self.get_status_display()} "
            f"{self.start_time.strftime('%H:%M')} - {end}"
        )

    def to_entry(self) -> DutyStatusEntry:
        """Convert this row to the immutable ledger value object."""
        location = None
        if self.latitude is not None or self.longitude is not None or self.address:
            location = Location(
                latitude=float(self.latitude) if self.latitude is not None else None,
                longitude=float(self.longitude) if self.longitude is not None else None,
                address=self.address,
            )

        return DutyStatusEntry(
            id=self.id,
            driver_id=self.driver_id,
            sequence=self.sequence,
            status=DutyStatus(self.status),
            start_time=self.start_time,
            end_time=self.end_time,
            location=location,
            vehicle_id=self.vehicle_id,
            trailer_id=self.trailer_id,
            odometer=self.odometer,
            engine_hours=self.engine_hours,
            data_source=DataSource(self.data_source),
            recorded_by=self.recorded_by,
            recorded_at=self.recorded_at,
            certified_at=self.certified_at,
            certified_by=self.certified_by,
            amends_entry_id=self.amends_entry_id,
            remarks=self.remarks,
        )

    @classmethod
    def from_entry(cls, entry: DutyStatusEntry) -> "DutyStatusRecord":
        """Build an unsaved row from a ledger value object."""
        location = entry.location
        return cls(
            id=entry.id,
            driver_id=entry.driver_id,
            sequence=entry.sequence,
            status=entry.status,
            start_time=entry.start_time,
            end_time=entry.end_time,
            latitude=_decimal(location.latitude) if location else None,
            longitude=_decimal(location.longitude) if location else None,
            address=location.address if location else "",
            vehicle_id=entry.vehicle_id,
            trailer_id=entry.trailer_id,
            odometer=entry.odometer,
            engine_hours=entry.engine_hours,
            data_source=entry.data_source,
            remarks=entry.remarks,
            recorded_by=entry.recorded_by,
            recorded_at=entry.recorded_at,
            certified_at=entry.certified_at,
            certified_by=entry.certified_by,
            amends_entry_id=entry.amends_entry_id,
        )


def _decimal(value):
    if value is None:
        return None
    return Decimal(str(value)).quantize(Decimal("0.0000001"))
