"""
Input Sanitizer - Clean user-supplied session fields
====================================================

Session names end up in prompts, exports and the browser, so angle brackets
are stripped and lengths are bounded before anything is stored.

Usage:
    from testimony_prep.sanitize import sanitize_name
    clean = sanitize_name(raw, "subjectName")
"""

import re
from typing import Optional

from .errors import InvalidInputError

MAX_NAME_LENGTH = 200
MAX_CASE_NUMBER_LENGTH = 100

_ANGLE_BRACKETS = re.compile(r"[<>]")


def strip_markup(value: str) -> str:
    """Remove < and > and surrounding whitespace"""
    return _ANGLE_BRACKETS.sub("", value).strip()


def sanitize_name(value: Optional[str], field: str, max_length: int = MAX_NAME_LENGTH) -> str:
    """
    Validate a required name field.

    Raises:
        InvalidInputError: If the value is missing, empty or too long
    """
    if value is None or not str(value).strip():
        raise InvalidInputError(f"{field} is required")
    if len(value) > max_length:
        raise InvalidInputError(f"{field} must be {max_length} characters or less")
    cleaned = strip_markup(value)
    if not cleaned:
        raise InvalidInputError(f"{field} is required")
    return cleaned


def sanitize_optional(value: Optional[str], field: str, max_length: int) -> Optional[str]:
    if value is None or not value.strip():
        return None
    if len(value) > max_length:
        raise InvalidInputError(f"{field} must be {max_length} characters or less")
    return strip_markup(value) or None


def sanitize_case_number(value: Optional[str]) -> Optional[str]:
    return sanitize_optional(value, "caseNumber", MAX_CASE_NUMBER_LENGTH)
