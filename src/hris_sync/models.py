"""
Value types for one sync pass.

SourceRecord and DirectoryEntry are independent flat shapes; they are only
ever joined through a MatchedPair. Nothing here outlives a pass.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

# Logical attribute names used as AttributeDiff keys
DEPARTMENT = "department"
TITLE = "title"
MANAGER = "manager"
MOBILE = "mobile"
EMPLOYEE_ID = "employeeId"
GENDER = "gender"

AttributeDiff = dict[str, str]

# HR table columns the engine understands; anything else goes to `extra`
SOURCE_COLUMNS = {
    "employee_id": "employee_id",
    "employee_name": "full_name",
    "department": "department",
    "position_title": "position_title",
    "supervisor_id": "supervisor_employee_id",
    "phone": "phone_number",
    "gender": "gender",
}


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class MatchMethod(str, Enum):
    """How a source record was paired with a directory entry."""

    EXACT_KEY = "exact-key"
    FUZZY_NAME = "fuzzy-name"
    UNMATCHED = "unmatched"


class SyncAction(str, Enum):
    """Audit tag attached to every SyncResult."""

    TEST = "Test"
    UPDATED = "Updated"
    ID_REASSIGNED = "IDReassigned"
    ATTRIBUTE_UPDATE = "AttributeUpdate"


@dataclass(frozen=True)
class SourceRecord:
    """One employee row from the HR system of record."""

    employee_id: str | None
    full_name: str | None
    department: str | None = None
    position_title: str | None = None
    supervisor_employee_id: str | None = None
    phone_number: str | None = None
    gender: str | None = None
    extra: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SourceRecord":
        """
        Build a record from an HR row keyed by column name.

        Values are stripped of surrounding whitespace and blanks become None;
        no other normalization happens here.
        """
        known = {attr: _clean(row.get(column)) for column, attr in SOURCE_COLUMNS.items()}
        extra = {k: v for k, v in row.items() if k not in SOURCE_COLUMNS}
        return cls(**known, extra=MappingProxyType(extra))


@dataclass(frozen=True)
class DirectoryEntry:
    """One user entry from the directory, flattened."""

    unique_path: str
    account_name: str | None = None
    display_name: str | None = None
    common_name: str | None = None
    employee_id: str | None = None
    department: str | None = None
    title: str | None = None
    manager_reference: str | None = None
    mobile: str | None = None
    gender: str | None = None

    @property
    def match_name(self) -> str | None:
        """Name used for fuzzy matching."""
        return self.display_name or self.common_name

    def snapshot(self) -> dict[str, str]:
        """Current values of the synced attributes, blanks as ''."""
        return {
            DEPARTMENT: self.department or "",
            TITLE: self.title or "",
            MANAGER: self.manager_reference or "",
            MOBILE: self.mobile or "",
        }


@dataclass(frozen=True)
class MatchedPair:
    source: SourceRecord
    entry: DirectoryEntry | None
    method: MatchMethod
    score: float | None = None

    @property
    def is_matched(self) -> bool:
        return self.entry is not None and self.method is not MatchMethod.UNMATCHED


@dataclass(frozen=True)
class SyncResult:
    """Audit record for one change set, applied or proposed."""

    employee_id: str | None
    display_name: str
    unique_path: str
    current: dict[str, str]
    diffs: AttributeDiff
    action: SyncAction
    match_method: MatchMethod

    def to_dict(self) -> dict[str, Any]:
        return {
            "employeeID": self.employee_id,
            "displayName": self.display_name,
            "path": self.unique_path,
            "current": dict(self.current),
            "diffs": dict(self.diffs),
            "action": self.action.value,
            "matchMethod": self.match_method.value,
        }


@dataclass(frozen=True)
class RecordFailure:
    """A record that was skipped because its processing raised."""

    employee_id: str | None
    error: str
    type: str

    def to_dict(self) -> dict[str, Any]:
        return {"employeeID": self.employee_id, "error": self.error, "type": self.type}


@dataclass
class SyncReport:
    """Outcome of one pass."""

    test: bool
    results: list[SyncResult] = field(default_factory=list)
    errors: list[RecordFailure] = field(default_factory=list)
    unmatched: list[str] = field(default_factory=list)
    started_at: datetime | None = None
    duration_seconds: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "test": self.test,
            "results": [r.to_dict() for r in self.results],
            "errors": [e.to_dict() for e in self.errors],
            "unmatched": list(self.unmatched),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "duration_seconds": self.duration_seconds,
        }
