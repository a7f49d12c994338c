"""
Field validation and canonical forms shared by matching and diffing.
"""

import re

EMPLOYEE_ID_PATTERN = re.compile(r"^MTI\d{6}$")

_NON_PHONE_CHARS = re.compile(r"[^\d+]")
_NON_DIGITS = re.compile(r"\D")
_WHITESPACE = re.compile(r"\s+")

PHONE_MIN_DIGITS = 10
PHONE_MAX_DIGITS = 15
COUNTRY_CODE = "62"


def is_valid_employee_id(value: str | None) -> bool:
    """True for ids shaped like ``MTI123456``."""
    return isinstance(value, str) and bool(EMPLOYEE_ID_PATTERN.match(value))


def is_valid_phone_number(value: object) -> bool:
    """
    True when ``value`` looks like an Indonesian mobile number.

    Everything except digits and ``+`` is dropped, a leading ``+`` is
    removed, and what remains must be 10-15 digits starting with ``0`` or
    ``62``.
    """
    if value is None:
        return False
    cleaned = _NON_PHONE_CHARS.sub("", str(value))
    digits = cleaned[1:] if cleaned.startswith("+") else cleaned
    return (
        digits.isdigit()
        and PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS
        and digits.startswith(("0", COUNTRY_CODE))
    )


def standardize_phone_number(value: object) -> str:
    """
    Canonical ``62``-prefixed digit string.

    >>> standardize_phone_number("0812-345-6789")
    '628123456789'
    >>> standardize_phone_number("+62812 345 6789")
    '628123456789'
    """
    digits = _NON_DIGITS.sub("", str(value))
    if digits.startswith(COUNTRY_CODE):
        return digits
    return COUNTRY_CODE + digits.lstrip("0")


def normalize_name(value: str | None) -> str:
    """Case-folded name with runs of whitespace collapsed."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip().casefold()


def values_equal(source: str | None, current: str | None, case_sensitive: bool = True) -> bool:
    """
    Compare an HR value with a directory value.

    Missing and empty are the same thing on both sides. With
    ``case_sensitive`` the comparison is exact; otherwise both sides are
    trimmed and case-folded first.
    """
    left = source or ""
    right = current or ""
    if case_sensitive:
        return left == right
    return left.strip().casefold() == right.strip().casefold()
