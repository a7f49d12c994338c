"""
Attribute diffing between an HR record and its directory entry.

HR is authoritative, so a diff only ever carries HR values. A blank HR
value never produces a diff: the engine does not clear directory
attributes.
"""

import logging
import threading
from typing import Callable

from .models import (
    DEPARTMENT,
    EMPLOYEE_ID,
    GENDER,
    MANAGER,
    MOBILE,
    TITLE,
    AttributeDiff,
    DirectoryEntry,
    SourceRecord,
)
from .normalization import (
    is_valid_employee_id,
    is_valid_phone_number,
    standardize_phone_number,
    values_equal,
)

logger = logging.getLogger(__name__)


class ManagerPathResolver:
    """
    Memoized supervisor id -> directory path lookups for one pass.

    Misses are cached too, so each supervisor id is searched at most once
    per pass no matter how many reports it has.
    """

    def __init__(self, lookup: Callable[[str], str | None]):
        self._lookup = lookup
        self._cache: dict[str, str | None] = {}
        self._lock = threading.Lock()
        self.lookups = 0

    def __call__(self, employee_id: str) -> str | None:
        with self._lock:
            if employee_id in self._cache:
                return self._cache[employee_id]

        path = self._lookup(employee_id)

        with self._lock:
            if employee_id not in self._cache:
                self.lookups += 1
            return self._cache.setdefault(employee_id, path)

    def moved(self, employee_id: str, old_path: str, new_path: str) -> None:
        """
        Record that ``employee_id``'s entry was relocated this pass.

        Only a cached path equal to ``old_path`` is rewritten; ids not yet
        looked up are resolved fresh when first needed.
        """
        with self._lock:
            cached = self._cache.get(employee_id)
            if cached is not None and cached.lower() == old_path.lower():
                self._cache[employee_id] = new_path


def _present(value: str | None) -> bool:
    return bool(value and value.strip())


class DiffEngine:
    """
    Args:
        resolve_manager: Supervisor id -> directory path, usually a
            ManagerPathResolver
        case_sensitive: Compare values exactly (default) or case-folded
            and trimmed
    """

    def __init__(
        self,
        resolve_manager: Callable[[str], str | None],
        case_sensitive: bool = True,
    ):
        self.resolve_manager = resolve_manager
        self.case_sensitive = case_sensitive

    def _differs(self, source: str | None, current: str | None) -> bool:
        return not values_equal(source, current, self.case_sensitive)

    def compute_diff(self, record: SourceRecord, entry: DirectoryEntry) -> AttributeDiff:
        """
        Attributes whose HR value differs from the directory value.

        An empty result means the entry is already in sync.
        """
        diff: AttributeDiff = {}

        if _present(record.department) and self._differs(record.department, entry.department):
            diff[DEPARTMENT] = record.department

        if _present(record.position_title) and self._differs(record.position_title, entry.title):
            diff[TITLE] = record.position_title

        supervisor = record.supervisor_employee_id
        if supervisor and is_valid_employee_id(supervisor):
            manager_path = self.resolve_manager(supervisor)
            if manager_path and self._differs(manager_path, entry.manager_reference):
                diff[MANAGER] = manager_path
            elif not manager_path:
                logger.debug(f"Supervisor {supervisor} of {record.employee_id} not in directory")

        if is_valid_phone_number(record.phone_number):
            mobile = standardize_phone_number(record.phone_number)
            if self._differs(mobile, entry.mobile):
                diff[MOBILE] = mobile

        return diff

    def identity_repair_diff(self, record: SourceRecord, entry: DirectoryEntry) -> AttributeDiff:
        """Changes that stamp HR identity onto an entry found by name."""
        diff: AttributeDiff = {}
        if _present(record.employee_id) and record.employee_id != entry.employee_id:
            diff[EMPLOYEE_ID] = record.employee_id
        if _present(record.gender) and self._differs(record.gender, entry.gender):
            diff[GENDER] = record.gender
        return diff
