"""
Directory (LDAP) access.
"""

from .adapter import (
    USER_ATTRIBUTES,
    USER_FILTER,
    LdapDirectoryAdapter,
    department_container_path,
    entry_from_attributes,
    escape_filter_value,
    flatten_attributes,
    format_bind_credential,
)

__all__ = [
    "LdapDirectoryAdapter",
    "USER_ATTRIBUTES",
    "USER_FILTER",
    "department_container_path",
    "entry_from_attributes",
    "escape_filter_value",
    "flatten_attributes",
    "format_bind_credential",
]
