"""
Driver Ledger Head model.

One row per driver holding the committed head of the driver's ledger. Every
ledger write locks this row first, which linearizes writers for one driver
without touching any other driver.
"""

from django.db import models


class DriverLedgerHead(models.Model):
    """
    Committed position of one driver's duty status ledger.

    Attributes:
        driver_id: Driver identifier (primary key)
        last_sequence: Sequence of the most recent entry (0 when empty)
        open_entry: The driver's open entry, if any
        updated_at: Last commit time
    """

    driver_id = models.CharField(
        max_length=64, primary_key=True, help_text="Driver identifier"
    )

    last_sequence = models.PositiveIntegerField(
        default=0, help_text="Sequence of the most recently committed entry"
    )

    open_entry = models.OneToOneField(
        "eld_logs.DutyStatusRecord",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="+",
        help_text="Currently open duty status entry",
    )

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "eld_logs_driverledgerhead"
        verbose_name = "Driver Ledger Head"
        verbose_name_plural = "Driver Ledger Heads"

    def __str__(self):
        return f"{self.driver_id} @ {self.last_sequence}"
