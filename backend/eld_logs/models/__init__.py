"""
ELD Logs models package.

This package contains the persistence models of the duty status ledger,
split into separate files for better modularity.
"""

from .amendment_record import AmendmentRecord
from .driver_ledger_head import DriverLedgerHead
from .duty_status_record import DutyStatusRecord

__all__ = ['AmendmentRecord', 'DriverLedgerHead', 'DutyStatusRecord']
