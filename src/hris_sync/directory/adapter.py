"""
LDAP directory adapter.

Every public operation opens its own connection, binds, does its work and
unbinds, even when the work fails. No connection is shared between calls,
so a stale or half-open socket can never leak from one record into the next.
"""

import logging
import re
import ssl
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from ldap3 import (
    ALL_ATTRIBUTES,
    MODIFY_REPLACE,
    NONE,
    SUBTREE,
    Connection,
    Server,
    Tls,
)
from ldap3.core.exceptions import (
    LDAPException,
    LDAPSocketOpenError,
    LDAPSocketReceiveError,
)
from ldap3.utils.conv import escape_filter_chars
from ldap3.utils.dn import escape_rdn
from opentelemetry import trace

from sync_utils.retry import retry_with_backoff
from sync_utils.tracing import trace_operation

from ..config import DISTINGUISHED_NAME, DirectorySettings
from ..errors import (
    DirectoryBindError,
    DirectoryModifyError,
    DirectoryRelocateError,
    DirectorySearchError,
)
from ..metrics import DIRECTORY_OPERATIONS
from ..models import (
    DEPARTMENT,
    EMPLOYEE_ID,
    GENDER,
    MANAGER,
    MOBILE,
    TITLE,
    AttributeDiff,
    DirectoryEntry,
)

logger = logging.getLogger(__name__)

PAGED_RESULTS_OID = "1.2.840.113556.1.4.319"

USER_FILTER = "(&(objectClass=user)(objectCategory=user))"
USER_ATTRIBUTES = [
    "sAMAccountName",
    "displayName",
    "name",
    "employeeID",
    "department",
    "title",
    "manager",
    "mobile",
    "gender",
    "distinguishedName",
]

# Logical diff attribute -> directory attribute
ATTRIBUTE_MAP = {
    DEPARTMENT: "department",
    TITLE: "title",
    MANAGER: "manager",
    MOBILE: "mobile",
    EMPLOYEE_ID: "employeeID",
    GENDER: "gender",
}

# Directory attribute (lower case) -> DirectoryEntry field
_ENTRY_FIELDS = {
    "samaccountname": "account_name",
    "displayname": "display_name",
    "name": "common_name",
    "employeeid": "employee_id",
    "department": "department",
    "title": "title",
    "manager": "manager_reference",
    "mobile": "mobile",
    "gender": "gender",
}

_UNESCAPED_COMMA = re.compile(r"(?<!\\),")


def escape_filter_value(value: str) -> str:
    """
    Escape a value for use inside a search filter.

    ``\\``, ``(``, ``)``, ``*`` and NUL become ``\\5c``, ``\\28``, ``\\29``,
    ``\\2a`` and ``\\00``.
    """
    return escape_filter_chars(value)


def format_bind_credential(settings: DirectorySettings) -> str:
    """
    Build the bind name for the service account.

    A name already in ``CN=...`` form is used unchanged. Otherwise
    distinguished-name mode builds ``CN=<user>,CN=Users,<base>`` and
    principal-name mode builds ``<user>@<domain>``.
    """
    username = settings.username
    if username.upper().startswith("CN="):
        return username
    if settings.auth_format == DISTINGUISHED_NAME:
        user_part = username.split("@", 1)[0]
        return f"CN={user_part},CN=Users,{settings.base_path}"
    if "@" in username or not settings.domain:
        return username
    return f"{username}@{settings.domain}"


def department_container_path(department: str, base_path: str) -> str:
    """Path of the container a department's users live in."""
    return f"OU={escape_rdn(department)},{base_path}"


def split_path(path: str) -> tuple[str, str]:
    """Split an entry path into its RDN and its parent path."""
    parts = _UNESCAPED_COMMA.split(path, maxsplit=1)
    if len(parts) == 1:
        return parts[0].strip(), ""
    return parts[0].strip(), parts[1].strip()


def flatten_attributes(attributes: dict[str, Any]) -> dict[str, Any]:
    """
    Flatten a protocol attribute map.

    Single values are unwrapped, multiple values kept as an ordered tuple,
    and attributes with no values dropped.
    """
    flat = {}
    for name, values in attributes.items():
        if isinstance(values, (list, tuple)):
            if not values:
                continue
            flat[name] = values[0] if len(values) == 1 else tuple(values)
        elif values is not None:
            flat[name] = values
    return flat


def _single(value: Any) -> str | None:
    if isinstance(value, tuple):
        value = value[0] if value else None
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return str(value)


def entry_from_attributes(flat: dict[str, Any]) -> DirectoryEntry | None:
    """
    Build a DirectoryEntry from flattened attributes.

    Returns None when the entry has no addressable path.
    """
    lowered = {name.lower(): value for name, value in flat.items()}
    path = _single(lowered.get("distinguishedname") or lowered.get("dn"))
    if not path:
        return None
    fields = {
        field_name: _single(lowered.get(attr))
        for attr, field_name in _ENTRY_FIELDS.items()
    }
    return DirectoryEntry(unique_path=path, **fields)


def default_connection_factory(settings: DirectorySettings, bind_name: str) -> Connection:
    """Create an unbound ldap3 connection for ``settings``."""
    tls = None
    if settings.use_tls:
        tls = Tls(validate=ssl.CERT_REQUIRED if settings.verify_tls else ssl.CERT_NONE)
    server = Server(
        settings.server,
        port=settings.effective_port,
        use_ssl=settings.use_tls,
        tls=tls,
        get_info=NONE,
        connect_timeout=settings.connect_timeout,
    )
    return Connection(
        server,
        user=bind_name,
        password=settings.password,
        receive_timeout=settings.receive_timeout,
        raise_exceptions=False,
    )


class LdapDirectoryAdapter:
    """
    Search, modify and relocate operations against the directory.

    Args:
        settings: Directory settings for this pass
        connection_factory: Callable(settings, bind_name) returning an
            unbound ldap3-compatible connection
    """

    def __init__(
        self,
        settings: DirectorySettings,
        connection_factory: Callable[[DirectorySettings, str], Any] = default_connection_factory,
    ):
        self.settings = settings
        self.bind_name = format_bind_credential(settings)
        self._connection_factory = connection_factory

    @property
    def base_path(self) -> str:
        return self.settings.base_path

    def _bind(self, conn: Any) -> None:
        @retry_with_backoff(
            max_retries=self.settings.bind_retries,
            base_delay=0.5,
            max_delay=5.0,
            retryable_exceptions=(LDAPSocketOpenError, LDAPSocketReceiveError),
        )
        def bind():
            if not conn.bind():
                result = conn.result or {}
                raise DirectoryBindError(
                    f"Bind as {self.bind_name!r} rejected: "
                    f"{result.get('description', 'unknown')} {result.get('message', '')}".rstrip()
                )

        try:
            bind()
        except DirectoryBindError:
            DIRECTORY_OPERATIONS.labels(operation="bind", status="failed").inc()
            raise
        except LDAPException as e:
            DIRECTORY_OPERATIONS.labels(operation="bind", status="failed").inc()
            raise DirectoryBindError(
                f"Cannot bind to {self.settings.server}:{self.settings.effective_port}: {e}"
            ) from e

    @contextmanager
    def _session(self) -> Iterator[Any]:
        conn = self._connection_factory(self.settings, self.bind_name)
        try:
            self._bind(conn)
            yield conn
        finally:
            try:
                conn.unbind()
            except LDAPException as e:
                logger.debug(f"Ignoring error during unbind: {e}")

    @staticmethod
    def _failure(conn: Any) -> str:
        result = conn.result or {}
        return f"{result.get('description', 'error')} ({result.get('result')}): {result.get('message', '')}"

    def search_raw(
        self,
        base_path: str,
        search_filter: str,
        attributes: list[str] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Paged subtree search returning flattened attribute maps.

        Raises:
            DirectoryBindError: The service account could not bind
            DirectorySearchError: The search failed on any page
        """
        page_size = self.settings.page_size
        requested = attributes or [ALL_ATTRIBUTES]

        logger.debug(
            f"Directory search: base={base_path!r} filter={search_filter!r} attributes={requested}"
        )

        with trace_operation(
            "directory_search",
            kind=trace.SpanKind.CLIENT,
            base_path=base_path,
            search_filter=search_filter,
        ):
            results: list[dict[str, Any]] = []
            with self._session() as conn:
                cookie = None
                pages = 0
                while True:
                    try:
                        conn.search(
                            search_base=base_path,
                            search_filter=search_filter,
                            search_scope=SUBTREE,
                            attributes=requested,
                            paged_size=page_size,
                            paged_cookie=cookie,
                        )
                    except LDAPException as e:
                        DIRECTORY_OPERATIONS.labels(operation="search", status="failed").inc()
                        raise DirectorySearchError(f"Search under {base_path!r} failed: {e}") from e

                    if (conn.result or {}).get("result", 0) != 0:
                        DIRECTORY_OPERATIONS.labels(operation="search", status="failed").inc()
                        raise DirectorySearchError(
                            f"Search under {base_path!r} failed: {self._failure(conn)}"
                        )

                    pages += 1
                    for item in conn.response or []:
                        if item.get("type") != "searchResEntry":
                            continue
                        flat = flatten_attributes(dict(item.get("attributes") or {}))
                        if item.get("dn") and not any(k.lower() == "distinguishedname" for k in flat):
                            flat["distinguishedName"] = item["dn"]
                        results.append(flat)

                    cookie = (
                        (conn.result or {})
                        .get("controls", {})
                        .get(PAGED_RESULTS_OID, {})
                        .get("value", {})
                        .get("cookie")
                    )
                    if not cookie:
                        break

            DIRECTORY_OPERATIONS.labels(operation="search", status="success").inc()
            logger.info(f"Directory search returned {len(results)} entries in {pages} page(s)")
            return results

    def search_users(
        self,
        base_path: str,
        search_filter: str,
        attributes: list[str] | None = None,
    ) -> list[DirectoryEntry]:
        """Paged search converted to DirectoryEntry values; path-less entries dropped."""
        entries = []
        for flat in self.search_raw(base_path, search_filter, attributes):
            entry = entry_from_attributes(flat)
            if entry is not None:
                entries.append(entry)
        return entries

    def list_users(self) -> list[DirectoryEntry]:
        """Every user entry under the configured base path."""
        return self.search_users(self.base_path, USER_FILTER, USER_ATTRIBUTES)

    def resolve_path_by_employee_id(self, employee_id: str | None) -> str | None:
        """
        Path of the user carrying ``employee_id``, or None.

        With several matches the lexicographically smallest path wins.
        """
        if not employee_id:
            return None
        search_filter = f"(&(objectClass=user)(employeeID={escape_filter_value(employee_id)}))"
        entries = self.search_users(self.base_path, search_filter, ["distinguishedName"])
        paths = sorted(entry.unique_path for entry in entries)
        if len(paths) > 1:
            logger.warning(f"{len(paths)} directory entries carry employeeID {employee_id}; using {paths[0]}")
        return paths[0] if paths else None

    def apply_attribute_changes(self, entry_path: str, diff: AttributeDiff) -> None:
        """
        Replace each attribute in ``diff`` on the entry.

        An empty diff does nothing, not even a bind.

        Raises:
            DirectoryModifyError: The modify was rejected
        """
        if not diff:
            logger.debug(f"No attribute changes for {entry_path}")
            return

        try:
            changes = {
                ATTRIBUTE_MAP[name]: [(MODIFY_REPLACE, [value])]
                for name, value in diff.items()
            }
        except KeyError as e:
            raise DirectoryModifyError(f"Unknown attribute {e.args[0]!r}", path=entry_path) from None

        with trace_operation("directory_modify", kind=trace.SpanKind.CLIENT, path=entry_path):
            with self._session() as conn:
                try:
                    ok = conn.modify(entry_path, changes)
                except LDAPException as e:
                    DIRECTORY_OPERATIONS.labels(operation="modify", status="failed").inc()
                    raise DirectoryModifyError(f"Modify of {entry_path} failed: {e}", path=entry_path) from e
                if not ok:
                    DIRECTORY_OPERATIONS.labels(operation="modify", status="failed").inc()
                    raise DirectoryModifyError(
                        f"Modify of {entry_path} failed: {self._failure(conn)}", path=entry_path
                    )

        DIRECTORY_OPERATIONS.labels(operation="modify", status="success").inc()
        logger.info(f"Modified {entry_path}: {sorted(diff)}")

    def relocate_entry(self, entry_path: str, new_parent_path: str) -> None:
        """
        Move the entry under ``new_parent_path``, keeping its RDN.

        Raises:
            DirectoryRelocateError: The move was rejected
        """
        rdn, current_parent = split_path(entry_path)
        if current_parent.lower() == new_parent_path.lower():
            logger.debug(f"{entry_path} already under {new_parent_path}")
            return

        with trace_operation(
            "directory_relocate",
            kind=trace.SpanKind.CLIENT,
            path=entry_path,
            new_parent=new_parent_path,
        ):
            with self._session() as conn:
                try:
                    ok = conn.modify_dn(entry_path, rdn, new_superior=new_parent_path)
                except LDAPException as e:
                    DIRECTORY_OPERATIONS.labels(operation="relocate", status="failed").inc()
                    raise DirectoryRelocateError(
                        f"Move of {entry_path} to {new_parent_path} failed: {e}", path=entry_path
                    ) from e
                if not ok:
                    DIRECTORY_OPERATIONS.labels(operation="relocate", status="failed").inc()
                    raise DirectoryRelocateError(
                        f"Move of {entry_path} to {new_parent_path} failed: {self._failure(conn)}",
                        path=entry_path,
                    )

        DIRECTORY_OPERATIONS.labels(operation="relocate", status="success").inc()
        logger.info(f"Moved {entry_path} -> {rdn},{new_parent_path}")
