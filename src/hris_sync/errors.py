"""
Exception hierarchy for the sync engine.

Two families matter to callers:

- PassAbortedError: raised before any write, the whole pass is abandoned
  and no partial report is produced.
- DirectoryWriteError: raised for a single record; the orchestrator logs it,
  leaves the record out of the results, and carries on.
"""


class SyncError(Exception):
    """Base exception for the sync engine."""

    pass


class ConfigurationError(SyncError):
    """Raised when settings are missing or invalid."""

    pass


class PassAbortedError(SyncError):
    """Base for failures that abort a sync pass."""

    pass


class SyncDisabledError(PassAbortedError):
    """Raised when HRIS sync is switched off in settings."""

    pass


class ExtractionError(PassAbortedError):
    """Base for failures reading the HR store."""

    pass


class HrisConnectionError(ExtractionError):
    """Raised when the HR database cannot be reached or logged into."""

    pass


class HrisQueryError(ExtractionError):
    """Raised when the employee query fails."""

    pass


class ExtractionTimeoutError(PassAbortedError):
    """Raised when an extraction read does not finish within its deadline."""

    pass


class DirectoryError(PassAbortedError):
    """Base for directory failures that abort the pass."""

    pass


class DirectoryBindError(DirectoryError):
    """Raised when the service account cannot bind."""

    pass


class DirectorySearchError(DirectoryError):
    """Raised when a directory search fails."""

    pass


class DirectoryWriteError(SyncError):
    """Base for record-level directory write failures."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path


class DirectoryModifyError(DirectoryWriteError):
    """Raised when an attribute modify is rejected."""

    pass


class DirectoryRelocateError(DirectoryWriteError):
    """Raised when moving an entry to its department container fails."""

    pass
