"""
SQL safety utilities for the HR extraction query.

The schema and table names come from settings, so they are validated and
bracket-quoted before being placed into the query text.
"""

import re

# Strict ASCII-only pattern for SQL Server identifiers
VALID_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")


def validate_identifier(identifier: str) -> None:
    """
    Validate a SQL identifier (schema or table name).

    Args:
        identifier: The identifier to validate

    Raises:
        ValueError: If the identifier contains invalid characters
    """
    if not identifier:
        raise ValueError("SQL identifier cannot be empty")

    if not VALID_IDENTIFIER.match(identifier):
        raise ValueError(
            f"Invalid SQL identifier: {identifier!r}. "
            "Only ASCII letters, digits, and underscores are allowed, "
            "and must start with a letter or underscore."
        )


def quote_identifier(identifier: str) -> str:
    """
    Validate and bracket-quote a SQL Server identifier.

    Args:
        identifier: The identifier to quote

    Returns:
        Quoted identifier, e.g. ``[dbo]``

    Raises:
        ValueError: If the identifier is invalid
    """
    validate_identifier(identifier)
    return f"[{identifier}]"


def quote_schema_table(schema: str, table: str) -> str:
    """
    Build a quoted ``[schema].[table]`` reference.

    Args:
        schema: Schema name (e.g. "dbo")
        table: Table name

    Returns:
        Quoted two-part name safe for use in SQL

    Raises:
        ValueError: If either identifier is invalid
    """
    return f"{quote_identifier(schema)}.{quote_identifier(table)}"
