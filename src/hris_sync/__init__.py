"""
HRIS to directory reconciliation engine.

Pulls staff records from the HR SQL Server database and user entries from
Active Directory, pairs them by employee id (falling back to fuzzy name
matching), and writes the attribute changes HR says are needed.
"""

from .config import FileSettingsProvider, StaticSettingsProvider, SyncSettings, load_settings
from .errors import PassAbortedError, SyncError
from .models import SyncAction, SyncReport, SyncResult
from .orchestrator import ReconciliationOrchestrator

__version__ = "1.0.0"

__all__ = [
    "FileSettingsProvider",
    "PassAbortedError",
    "ReconciliationOrchestrator",
    "StaticSettingsProvider",
    "SyncAction",
    "SyncError",
    "SyncReport",
    "SyncResult",
    "SyncSettings",
    "load_settings",
]
