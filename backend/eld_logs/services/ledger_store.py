"""
Ledger Store.

Abstract durable store behind the duty status ledger and the amendment
workflow, plus an in-process implementation.

The store is keyed by driver. Every mutation is a compare-and-swap against
the driver's head sequence, so writers for one driver are linearized while
writers for different drivers never contend. Readers always see committed
state: a driver's timeline is replaced as a whole on commit, never edited in
place.

Single Responsibility: ledger persistence and per-driver atomicity only.
"""

import logging
import threading
from dataclasses import dataclass
from functools import lru_cache
from datetime import datetime
from typing import Dict, FrozenSet, Iterator, Optional, Tuple
from uuid import UUID

from django.utils.module_loading import import_string

from common.conf import engine_setting
from common.exceptions import (
    AlreadyCertifiedError,
    ConflictError,
    EntryNotFoundError,
    InvalidTransitionError,
    AmendmentNotFoundError,
    OpenEntryError,
)

from .duty_status import AmendmentRequest, AmendmentState, DutyStatusEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerHead:
    """Committed position of a driver's ledger."""

    driver_id: str
    last_sequence: int = 0
    open_entry: Optional[DutyStatusEntry] = None

    @property
    def is_empty(self) -> bool:
        return self.last_sequence == 0


def overlaps(entry: DutyStatusEntry, start: Optional[datetime], end: Optional[datetime]) -> bool:
    """Whether an entry's span touches the [start, end] range."""
    if end is not None and entry.start_time > end:
        return False
    if start is not None and entry.end_time is not None and entry.end_time <= start:
        return False
    return True


class LedgerStore:
    """
    Interface of a per-driver, key-ordered ledger store.

    Implementations must make each commit_* call all-or-nothing and must
    reject a commit whose expected_sequence no longer matches the driver's
    head with ConflictError.
    """

    def head(self, driver_id: str) -> LedgerHead:
        raise NotImplementedError

    def get_entry(self, entry_id: UUID) -> Optional[DutyStatusEntry]:
        raise NotImplementedError

    def iter_entries(
        self,
        driver_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Iterator[DutyStatusEntry]:
        """Yield committed entries overlapping [start, end] in sequence order."""
        raise NotImplementedError

    def superseded_entry_ids(self, driver_id: str) -> FrozenSet[UUID]:
        """Ids of entries replaced by an approved amendment."""
        raise NotImplementedError

    def commit_append(
        self,
        driver_id: str,
        expected_sequence: int,
        new_entry: DutyStatusEntry,
        closed_entry: Optional[DutyStatusEntry] = None,
    ) -> DutyStatusEntry:
        """Close the open entry (if any) and add new_entry in one commit."""
        raise NotImplementedError

    def commit_certification(self, entry: DutyStatusEntry) -> DutyStatusEntry:
        """Store the certification stamp carried by entry."""
        raise NotImplementedError

    def add_amendment(self, amendment: AmendmentRequest) -> AmendmentRequest:
        raise NotImplementedError

    def get_amendment(self, amendment_id: UUID) -> Optional[AmendmentRequest]:
        raise NotImplementedError

    def iter_amendments(
        self,
        driver_id: Optional[str] = None,
        state: Optional[AmendmentState] = None,
    ) -> Iterator[AmendmentRequest]:
        raise NotImplementedError

    def commit_amendment_decision(
        self,
        amendment: AmendmentRequest,
        expected_sequence: Optional[int] = None,
        new_entry: Optional[DutyStatusEntry] = None,
    ) -> AmendmentRequest:
        """
        Store a decided amendment; an approval also adds the EDITED entry.

        Raises InvalidTransitionError if the stored amendment is no longer
        pending and ConflictError if the target was superseded meanwhile.
        """
        raise NotImplementedError


class StripedLock:
    """Fixed pool of locks shared out by key hash."""

    def __init__(self, stripes: int = 64):
        self._locks = [threading.Lock() for _ in range(stripes)]

    def for_key(self, key) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]


@dataclass(frozen=True)
class _Timeline:
    """Committed state of one driver: entries by sequence and the open slot."""

    entries: Tuple[DutyStatusEntry, ...] = ()
    open_index: Optional[int] = None
    superseded: FrozenSet[UUID] = frozenset()


class InMemoryLedgerStore(LedgerStore):
    """
    Process-local ledger store.

    Each driver's timeline is an immutable _Timeline swapped in whole under
    the driver's stripe lock. Readers take the current timeline without
    locking and so never observe a half-written commit.
    """

    def __init__(self, stripes: int = 64):
        self._locks = StripedLock(stripes)
        self._timelines: Dict[str, _Timeline] = {}
        self._entry_index: Dict[UUID, Tuple[str, int]] = {}
        self._amendments: Dict[UUID, AmendmentRequest] = {}
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def head(self, driver_id: str) -> LedgerHead:
        timeline = self._timelines.get(driver_id, _Timeline())
        open_entry = None
        if timeline.open_index is not None:
            open_entry = timeline.entries[timeline.open_index]
        return LedgerHead(
            driver_id=driver_id,
            last_sequence=len(timeline.entries),
            open_entry=open_entry,
        )

    def get_entry(self, entry_id: UUID) -> Optional[DutyStatusEntry]:
        location = self._entry_index.get(entry_id)
        if location is None:
            return None
        driver_id, index = location
        return self._timelines[driver_id].entries[index]

    def iter_entries(self, driver_id, start=None, end=None):
        timeline = self._timelines.get(driver_id, _Timeline())
        for entry in timeline.entries:
            if overlaps(entry, start, end):
                yield entry

    def superseded_entry_ids(self, driver_id: str) -> FrozenSet[UUID]:
        return self._timelines.get(driver_id, _Timeline()).superseded

    def commit_append(self, driver_id, expected_sequence, new_entry, closed_entry=None):
        with self._locks.for_key(driver_id):
            timeline = self._timelines.get(driver_id, _Timeline())
            self._check_head(driver_id, timeline, expected_sequence)
            entries = list(timeline.entries)

            if closed_entry is not None:
                if (
                    timeline.open_index is None
                    or entries[timeline.open_index].id != closed_entry.id
                ):
                    raise ConflictError(
                        "Open entry changed before the append committed",
                        driver_id=driver_id,
                        entry_id=closed_entry.id,
                    )
                entries[timeline.open_index] = closed_entry
            elif timeline.open_index is not None:
                raise ConflictError(
                    "Append must close the current open entry",
                    driver_id=driver_id,
                    entry_id=entries[timeline.open_index].id,
                )

            entries.append(new_entry)
            new_index = len(entries) - 1
            self._timelines[driver_id] = _Timeline(
                entries=tuple(entries),
                open_index=new_index if new_entry.is_open else None,
                superseded=timeline.superseded,
            )
            self._entry_index[new_entry.id] = (driver_id, new_index)

        self.logger.debug(
            f"Committed entry {new_entry.sequence} for driver {driver_id}"
        )
        return new_entry

    def commit_certification(self, entry):
        with self._locks.for_key(entry.driver_id):
            location = self._entry_index.get(entry.id)
            if location is None:
                raise EntryNotFoundError(
                    "Duty status entry not found", entry_id=entry.id
                )
            driver_id, index = location
            timeline = self._timelines[driver_id]
            stored = timeline.entries[index]
            if stored.is_certified:
                raise AlreadyCertifiedError(
                    "Entry is already certified",
                    driver_id=driver_id,
                    entry_id=entry.id,
                    timestamp=stored.certified_at,
                )
            if stored.is_open:
                raise OpenEntryError(
                    "Open entries cannot be certified",
                    driver_id=driver_id,
                    entry_id=entry.id,
                    timestamp=stored.start_time,
                )

            certified = stored.certified(entry.certified_at, entry.certified_by)
            entries = list(timeline.entries)
            entries[index] = certified
            self._timelines[driver_id] = _Timeline(
                entries=tuple(entries),
                open_index=timeline.open_index,
                superseded=timeline.superseded,
            )
        return certified

    def add_amendment(self, amendment):
        with self._locks.for_key(amendment.driver_id):
            self._amendments[amendment.id] = amendment
        return amendment

    def get_amendment(self, amendment_id):
        return self._amendments.get(amendment_id)

    def iter_amendments(self, driver_id=None, state=None):
        for amendment in list(self._amendments.values()):
            if driver_id is not None and amendment.driver_id != driver_id:
                continue
            if state is not None and amendment.state != state:
                continue
            yield amendment

    def commit_amendment_decision(self, amendment, expected_sequence=None, new_entry=None):
        driver_id = amendment.driver_id
        with self._locks.for_key(driver_id):
            stored = self._amendments.get(amendment.id)
            if stored is None:
                raise AmendmentNotFoundError(
                    "Amendment not found",
                    driver_id=driver_id,
                    amendment_id=amendment.id,
                )
            if stored.is_terminal:
                raise InvalidTransitionError(
                    f"Amendment already {stored.state.label.lower()}",
                    driver_id=driver_id,
                    entry_id=stored.target_entry_id,
                    amendment_id=amendment.id,
                )

            if new_entry is not None:
                timeline = self._timelines.get(driver_id, _Timeline())
                self._check_head(driver_id, timeline, expected_sequence)
                if amendment.target_entry_id in timeline.superseded:
                    raise ConflictError(
                        "Target entry was already superseded by another amendment",
                        driver_id=driver_id,
                        entry_id=amendment.target_entry_id,
                    )

                # Edits are appended behind the open entry; its slot is unchanged
                entries = timeline.entries + (new_entry,)
                self._timelines[driver_id] = _Timeline(
                    entries=entries,
                    open_index=timeline.open_index,
                    superseded=timeline.superseded | {amendment.target_entry_id},
                )
                self._entry_index[new_entry.id] = (driver_id, len(entries) - 1)

            self._amendments[amendment.id] = amendment
        return amendment

    def _check_head(self, driver_id, timeline, expected_sequence):
        if expected_sequence is not None and len(timeline.entries) != expected_sequence:
            raise ConflictError(
                "Ledger changed concurrently; re-read the current entry and retry",
                driver_id=driver_id,
                expected_sequence=expected_sequence,
                current_sequence=len(timeline.entries),
            )


@lru_cache(maxsize=None)
def get_ledger_store() -> LedgerStore:
    """
    Return the process-wide ledger store named by HOS_ENGINE["LEDGER_STORE"].

    Call get_ledger_store.cache_clear() after changing the setting.
    """
    store_class = import_string(engine_setting("LEDGER_STORE"))
    logger.info(f"Using ledger store {store_class.__name__}")
    return store_class()
