"""
Violation Store.

Keeps detected violations and their resolution. Recording is idempotent by
violation id: the same condition detected twice is stored once, and a stored
violation is never cleared by a later calculation. Only resolve() changes
its resolved flag.
"""

import logging
import threading
from datetime import datetime
from functools import lru_cache
from typing import Dict, Iterable, List, Optional
from uuid import UUID

from django.utils import timezone
from django.utils.module_loading import import_string

from common.conf import engine_setting
from common.exceptions import InvalidTransitionError, ViolationNotFoundError

from .violation_detector import Severity, Violation, ViolationKind

logger = logging.getLogger(__name__)


class ViolationStore:
    """Interface of a violation store."""

    def record(self, violations: Iterable[Violation]) -> List[Violation]:
        """Store violations not seen before; return only the newly stored ones."""
        raise NotImplementedError

    def get(self, violation_id: UUID) -> Violation:
        raise NotImplementedError

    def query(
        self,
        driver_id: Optional[str] = None,
        severity: Optional[Severity] = None,
        kind: Optional[ViolationKind] = None,
        resolved: Optional[bool] = None,
    ) -> List[Violation]:
        """Violations matching every given filter, oldest first."""
        raise NotImplementedError

    def resolve(
        self,
        violation_id: UUID,
        actor_id: str,
        notes: str = "",
        at: Optional[datetime] = None,
    ) -> Violation:
        """
        Mark a violation resolved.

        Raises:
            ViolationNotFoundError: Unknown violation
            InvalidTransitionError: Violation already resolved
        """
        raise NotImplementedError

    def unresolved(self, driver_id: Optional[str] = None) -> List[Violation]:
        return self.query(driver_id=driver_id, resolved=False)

    def by_severity(self, severity) -> List[Violation]:
        return self.query(severity=severity)

    def by_driver(self, driver_id: str) -> List[Violation]:
        return self.query(driver_id=driver_id)


class InMemoryViolationStore(ViolationStore):
    """Process-local violation store."""

    def __init__(self):
        self._lock = threading.Lock()
        self._violations: Dict[UUID, Violation] = {}
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def record(self, violations):
        stored = []
        with self._lock:
            for violation in violations:
                if violation.id in self._violations:
                    continue
                self._violations[violation.id] = violation
                stored.append(violation)
        if stored:
            self.logger.info(f"Recorded {len(stored)} new violations")
        return stored

    def get(self, violation_id):
        violation = self._violations.get(violation_id)
        if violation is None:
            raise ViolationNotFoundError(
                "Violation not found", violation_id=violation_id
            )
        return violation

    def query(self, driver_id=None, severity=None, kind=None, resolved=None):
        matches = [
            v
            for v in list(self._violations.values())
            if (driver_id is None or v.driver_id == driver_id)
            and (severity is None or v.severity == severity)
            and (kind is None or v.kind == kind)
            and (resolved is None or v.resolved == resolved)
        ]
        return sorted(matches, key=lambda v: (v.detected_at, str(v.id)))

    def resolve(self, violation_id, actor_id, notes="", at=None):
        with self._lock:
            violation = self.get(violation_id)
            if violation.resolved:
                raise InvalidTransitionError(
                    "Violation is already resolved",
                    driver_id=violation.driver_id,
                    timestamp=violation.resolved_at,
                    violation_id=violation_id,
                )
            resolved = violation.resolved_by_actor(actor_id, at or timezone.now(), notes)
            self._violations[violation_id] = resolved
        self.logger.info(f"Violation {violation_id} resolved by {actor_id}")
        return resolved


@lru_cache(maxsize=None)
def get_violation_store() -> ViolationStore:
    """
    Return the process-wide violation store named by HOS_ENGINE["VIOLATION_STORE"].

    Call get_violation_store.cache_clear() after changing the setting.
    """
    store_class = import_string(engine_setting("VIOLATION_STORE"))
    logger.info(f"Using violation store {store_class.__name__}")
    return store_class()
