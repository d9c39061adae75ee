"""
ELD Logs Services Package.

This package contains all business logic services for the Electronic
Logging Device duty status ledger.

Services:
- DutyStatusLedgerService: Append-only duty status recording and certification
- AmendmentWorkflowService: Review of edits to historical entries
- LedgerStore: Storage interface (InMemoryLedgerStore, DjangoLedgerStore)
"""

from .amendment_workflow import AmendmentWorkflowService
from .duty_status import (
    AmendmentRequest,
    AmendmentState,
    DataSource,
    DutyStatus,
    DutyStatusEntry,
    Location,
)
from .duty_status_ledger import DutyStatusLedgerService
from .ledger_store import InMemoryLedgerStore, LedgerHead, LedgerStore, get_ledger_store

__all__ = [
    'AmendmentRequest',
    'AmendmentState',
    'AmendmentWorkflowService',
    'DataSource',
    'DutyStatus',
    'DutyStatusEntry',
    'DutyStatusLedgerService',
    'InMemoryLedgerStore',
    'LedgerHead',
    'LedgerStore',
    'Location',
    'get_ledger_store',
]
