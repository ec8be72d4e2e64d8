"""Validation rules for import headers and cell values."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Optional

from records_api.imports.coercers import (
    coerce_date,
    coerce_email,
    coerce_float,
    coerce_phone,
    split_multi_value,
)

DATE_FORMAT_MESSAGE = "Invalid date format. Use YYYY-MM-DD"


@dataclass
class HeaderValidation:
    """Outcome of comparing a file's headers with an entity's columns."""

    valid: bool
    missing: list[str] = field(default_factory=list)
    unknown: list[str] = field(default_factory=list)


def validate_headers(
    actual: list[str], required: list[str], allowed: list[str]
) -> HeaderValidation:
    """
    Check file headers against the required and allowed column sets.

    Args:
        actual: Headers found in the file, in file order
        required: Columns every file must carry
        allowed: Every column the entity understands

    Returns:
        HeaderValidation; valid only if nothing is missing and nothing is unknown
    """
    actual_set = set(actual)
    allowed_set = set(allowed)

    missing = [h for h in required if h not in actual_set]
    unknown = [h for h in actual if h not in allowed_set]

    return HeaderValidation(
        valid=not missing and not unknown,
        missing=missing,
        unknown=unknown,
    )


def validate_required(value: Optional[str], field_name: str) -> Optional[str]:
    """Validate that required field is not empty."""
    if value is None or value.strip() == "":
        return f"{field_name} is required"
    return None


def validate_length(
    value: Optional[str],
    field_name: str,
    min_length: Optional[int] = None,
    max_length: Optional[int] = None,
) -> Optional[str]:
    """Validate a required string's length bounds."""
    if not value or (min_length and len(value) < min_length):
        if min_length and min_length > 1:
            return f"{field_name} is required and must be at least {min_length} characters"
        return f"{field_name} is required"
    if max_length and len(value) > max_length:
        return f"{field_name} must be {max_length} characters or less"
    return None


def validate_max_length(
    value: Optional[str], field_name: str, max_length: int
) -> Optional[str]:
    """Validate an optional string does not exceed its column size."""
    if value and len(value) > max_length:
        return f"{field_name} must be {max_length} characters or less"
    return None


def validate_choice(value: Optional[str], choices: Iterable[str]) -> Optional[str]:
    """Validate a case-insensitive choice from a closed set."""
    choices = list(choices)
    if not value or value.lower() not in choices:
        return f"Must be one of: {', '.join(choices)}"
    return None


def validate_date(value: Optional[str]) -> Optional[str]:
    """Validate an optional date cell."""
    if value and not coerce_date(value).success:
        return DATE_FORMAT_MESSAGE
    return None


def validate_number(
    value: Optional[str],
    field_name: str,
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
) -> Optional[str]:
    """Validate an optional numeric cell and its range."""
    if not value:
        return None
    result = coerce_float(value)
    if not result.success:
        return f"{field_name} must be a valid number"
    if min_value is not None and result.coerced_value < min_value:
        return f"{field_name} must be at least {min_value:g}"
    if max_value is not None and result.coerced_value > max_value:
        return f"{field_name} must be at most {max_value:g}"
    return None


def validate_email_list(value: Optional[str]) -> Optional[str]:
    """Validate every address in a pipe-separated email cell."""
    for item in split_multi_value(value):
        result = coerce_email(item)
        if not result.success:
            return result.error
    return None


def validate_phone_list(value: Optional[str]) -> Optional[str]:
    """Validate every number in a pipe-separated phone cell."""
    for item in split_multi_value(value):
        result = coerce_phone(item)
        if not result.success:
            return result.error
    return None
