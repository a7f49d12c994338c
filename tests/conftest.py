"""
Pytest configuration and fixtures for sync engine tests.

Provides in-memory doubles for the HR extractor, the directory adapter and
the ldap3 connection so no test touches a real SQL Server or directory.
"""

import threading
from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest

from hris_sync.config import (
    DirectorySettings,
    HrisDatabaseSettings,
    StaticSettingsProvider,
    SyncSettings,
)
from hris_sync.directory.adapter import split_path
from hris_sync.errors import DirectoryModifyError, DirectoryRelocateError
from hris_sync.models import DirectoryEntry, SourceRecord
from hris_sync.orchestrator import ReconciliationOrchestrator

BASE_PATH = "DC=corp,DC=example"

ENV_OVERRIDES = (
    "HRIS_DB_SERVER",
    "HRIS_DB_PORT",
    "HRIS_DB_NAME",
    "HRIS_DB_USER",
    "HRIS_DB_PASSWORD",
    "AD_SERVER",
    "AD_BASE_DN",
    "AD_USERNAME",
    "AD_PASSWORD",
    "AD_DOMAIN",
    "AD_PROTOCOL",
    "SYNC_MAX_WORKERS",
    "SYNC_FUZZY_THRESHOLD",
)

# Diff attribute -> DirectoryEntry field
_DIFF_FIELDS = {
    "department": "department",
    "title": "title",
    "manager": "manager_reference",
    "mobile": "mobile",
    "employeeId": "employee_id",
    "gender": "gender",
}


@pytest.fixture(autouse=True)
def clean_sync_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's environment from leaking into settings."""
    for key in ENV_OVERRIDES:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(scope="session")
def project_root() -> Path:
    return Path(__file__).parent.parent


class FakeExtractor:
    """Stands in for HrisExtractor."""

    def __init__(self, records: list[SourceRecord] | None = None, error: Exception | None = None):
        self.records = list(records or [])
        self.error = error
        self.calls = 0

    def fetch_employees(self) -> list[SourceRecord]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.records)


class FakeDirectory:
    """
    In-memory directory with call counters.

    Writes are applied to the stored entries so a second pass sees the
    result of the first.
    """

    def __init__(self, entries: list[DirectoryEntry] | None = None, base_path: str = BASE_PATH):
        self.entries = {e.unique_path: e for e in entries or []}
        self.base_path = base_path
        self.list_error: Exception | None = None
        self.fail_modify_paths: set[str] = set()
        self.fail_relocate_paths: set[str] = set()
        self.calls: list[tuple] = []
        self.modify_calls: list[tuple[str, dict[str, str]]] = []
        self.relocate_calls: list[tuple[str, str]] = []
        self.resolve_calls: list[str] = []
        self._lock = threading.RLock()

    def add(self, *entries: DirectoryEntry) -> None:
        for entry in entries:
            self.entries[entry.unique_path] = entry

    @property
    def write_count(self) -> int:
        return len(self.modify_calls) + len(self.relocate_calls)

    def list_users(self) -> list[DirectoryEntry]:
        self.calls.append(("list_users",))
        if self.list_error is not None:
            raise self.list_error
        with self._lock:
            return sorted(self.entries.values(), key=lambda e: e.unique_path)

    def resolve_path_by_employee_id(self, employee_id: str) -> str | None:
        self.resolve_calls.append(employee_id)
        with self._lock:
            paths = sorted(p for p, e in self.entries.items() if e.employee_id == employee_id)
        return paths[0] if paths else None

    def apply_attribute_changes(self, path: str, diff: dict[str, str]) -> None:
        if not diff:
            return
        self.calls.append(("modify", path, dict(diff)))
        self.modify_calls.append((path, dict(diff)))
        if path in self.fail_modify_paths:
            raise DirectoryModifyError(f"Modify of {path} rejected", path=path)
        changes = {_DIFF_FIELDS[k]: v for k, v in diff.items()}
        with self._lock:
            self.entries[path] = replace(self.entries[path], **changes)

    def relocate_entry(self, path: str, new_parent: str) -> None:
        self.calls.append(("relocate", path, new_parent))
        self.relocate_calls.append((path, new_parent))
        if path in self.fail_relocate_paths:
            raise DirectoryRelocateError(f"Move of {path} rejected", path=path)
        rdn, _ = split_path(path)
        new_path = f"{rdn},{new_parent}"
        with self._lock:
            entry = self.entries.pop(path)
            self.entries[new_path] = replace(entry, unique_path=new_path)


class FakeLdapConnection:
    """
    Minimal ldap3.Connection double.

    ``pages`` is a list of (entries, cookie) tuples returned one per search
    call; each entry is a dict with ``dn`` and ``attributes``.
    """

    def __init__(self, bind_ok: bool = True, pages: list[tuple[list[dict], bytes | None]] | None = None):
        self.bind_ok = bind_ok
        self.pages = list(pages or [([], None)])
        self.result: dict[str, Any] = {}
        self.response: list[dict] = []
        self.bound = False
        self.bind_calls = 0
        self.unbind_calls = 0
        self.search_calls: list[dict] = []
        self.modify_calls: list[tuple[str, dict]] = []
        self.modify_dn_calls: list[tuple[str, str, str]] = []
        self.search_result_code = 0
        self.modify_ok = True
        self.modify_dn_ok = True
        self.search_error: Exception | None = None

    def bind(self) -> bool:
        self.bind_calls += 1
        if self.bind_ok:
            self.bound = True
            self.result = {"result": 0, "description": "success"}
            return True
        self.result = {"result": 49, "description": "invalidCredentials", "message": "bad password"}
        return False

    def unbind(self) -> bool:
        self.unbind_calls += 1
        self.bound = False
        return True

    def search(self, **kwargs) -> bool:
        self.search_calls.append(kwargs)
        if self.search_error is not None:
            raise self.search_error
        if self.search_result_code != 0:
            self.result = {"result": self.search_result_code, "description": "noSuchObject", "message": ""}
            self.response = []
            return False
        entries, cookie = self.pages.pop(0) if self.pages else ([], None)
        self.response = [{"type": "searchResEntry", **e} for e in entries]
        self.result = {
            "result": 0,
            "description": "success",
            "controls": {"1.2.840.113556.1.4.319": {"value": {"size": 0, "cookie": cookie}}},
        }
        return bool(entries)

    def modify(self, dn: str, changes: dict) -> bool:
        self.modify_calls.append((dn, changes))
        if self.modify_ok:
            self.result = {"result": 0, "description": "success"}
            return True
        self.result = {"result": 50, "description": "insufficientAccessRights", "message": ""}
        return False

    def modify_dn(self, dn: str, relative_dn: str, new_superior: str | None = None) -> bool:
        self.modify_dn_calls.append((dn, relative_dn, new_superior))
        if self.modify_dn_ok:
            self.result = {"result": 0, "description": "success"}
            return True
        self.result = {"result": 53, "description": "unwillingToPerform", "message": ""}
        return False


def make_record(employee_id: str | None = "MTI123456", full_name: str | None = "Jane Smith", **fields) -> SourceRecord:
    return SourceRecord(employee_id=employee_id, full_name=full_name, **fields)


def make_entry(name: str = "Jane Smith", ou: str = "Engineering", **fields) -> DirectoryEntry:
    fields.setdefault("display_name", name)
    fields.setdefault("common_name", name)
    return DirectoryEntry(unique_path=f"CN={name},OU={ou},{BASE_PATH}", **fields)


@pytest.fixture
def record_factory():
    return make_record


@pytest.fixture
def entry_factory():
    return make_entry


@pytest.fixture
def directory_settings() -> DirectorySettings:
    return DirectorySettings(
        server="dc01.corp.example",
        base_path=BASE_PATH,
        username="svc-sync",
        password="secret",
        domain="corp.example",
        bind_retries=0,
    )


@pytest.fixture
def sync_settings(directory_settings: DirectorySettings) -> SyncSettings:
    return SyncSettings(
        hris=HrisDatabaseSettings(enabled=True, server="hr-db", database="HRIS", username="sa", password="pw"),
        directory=directory_settings,
        max_workers=4,
        extraction_timeout=10,
    )


@pytest.fixture
def fake_extractor() -> FakeExtractor:
    return FakeExtractor()


@pytest.fixture
def fake_directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def fake_connection_class():
    return FakeLdapConnection


@pytest.fixture
def orchestrator(sync_settings, fake_extractor, fake_directory) -> ReconciliationOrchestrator:
    return ReconciliationOrchestrator(
        StaticSettingsProvider(sync_settings),
        extractor_factory=lambda settings: fake_extractor,
        directory_factory=lambda settings: fake_directory,
    )
