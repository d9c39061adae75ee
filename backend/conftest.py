"""
Shared pytest fixtures for the fleet compliance backend.

Service tests run against the in-memory stores with a controllable clock;
API tests use the Django stores configured in settings.
"""

from datetime import datetime, timedelta, timezone

import pytest
from rest_framework.test import APIClient

from eld_logs.services import (
    AmendmentWorkflowService,
    DutyStatusLedgerService,
    InMemoryLedgerStore,
    get_ledger_store,
)
from hos_compliance.services import (
    HOSCalculatorService,
    InMemoryViolationStore,
    get_rule_set_registry,
    get_violation_store,
)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 3, 4, 23, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return InMemoryLedgerStore()


@pytest.fixture
def ledger(store, clock):
    return DutyStatusLedgerService(store=store, clock=clock)


@pytest.fixture
def workflow(store, clock):
    return AmendmentWorkflowService(store=store, clock=clock)


@pytest.fixture
def violation_store():
    return InMemoryViolationStore()


@pytest.fixture
def calculator(ledger, violation_store, clock):
    return HOSCalculatorService(ledger=ledger, violation_store=violation_store, clock=clock)


@pytest.fixture(autouse=True)
def reset_store_factories():
    """Every test starts with fresh process-wide stores."""
    factories = (get_ledger_store, get_violation_store, get_rule_set_registry)
    for factory in factories:
        factory.cache_clear()
    yield
    for factory in factories:
        factory.cache_clear()


@pytest.fixture
def api_client():
    return APIClient()
