"""Typed readings of CSV cell text.

Each ``coerce_*`` function returns a CoercionResult instead of raising,
so validators can turn failures into row errors. The ``to_*`` helpers
are for cells that already passed validation.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Optional

import phonenumbers
from dateutil import parser as date_parser

# Default region for numbers written without a country code
DEFAULT_PHONE_REGION = "SL"
MIN_PHONE_DIGITS = 7

MULTI_VALUE_SEPARATOR = "|"

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_NOT_PHONE_CHARS = re.compile(r"[^\d+]")


@dataclass
class CoercionResult:
    success: bool
    coerced_value: Any = None
    warnings: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def ok(cls, value: Any, *warnings: str) -> "CoercionResult":
        return cls(success=True, coerced_value=value, warnings=list(warnings))

    @classmethod
    def fail(cls, error: str) -> "CoercionResult":
        return cls(success=False, error=error)


EMPTY = "Empty value"


def _text(value: Any) -> Optional[str]:
    """Stripped cell text, or None for a blank cell."""
    if value is None or value == "":
        return None
    return str(value).strip()


def _parse_timestamp(text: str) -> Optional[datetime]:
    try:
        return date_parser.isoparse(text)
    except (ValueError, OverflowError):
        pass
    # Other numeric dates are read day first (02/03/2020 is 2 March)
    try:
        return date_parser.parse(text, dayfirst=True, yearfirst=False)
    except (ValueError, OverflowError):
        return None


def coerce_date(value: Any) -> CoercionResult:
    text = _text(value)
    if text is None:
        return CoercionResult.fail(EMPTY)
    parsed = _parse_timestamp(text)
    if parsed is None:
        return CoercionResult.fail(f"Could not parse date: {text}")
    return CoercionResult.ok(parsed.date())


def coerce_datetime(value: Any) -> CoercionResult:
    """Timezone-aware datetime; naive input is taken as UTC."""
    text = _text(value)
    if text is None:
        return CoercionResult.fail(EMPTY)
    parsed = _parse_timestamp(text)
    if parsed is None:
        return CoercionResult.fail(f"Could not parse datetime: {text}")
    return CoercionResult.ok(parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc))


def coerce_float(value: Any) -> CoercionResult:
    """Finite float; thousands separators are ignored."""
    text = _text(value)
    if text is None:
        return CoercionResult.fail(EMPTY)
    text = text.replace(",", "")
    try:
        number = float(text)
    except ValueError:
        number = math.nan
    if not math.isfinite(number):
        return CoercionResult.fail(f"Could not parse number: {text}")
    return CoercionResult.ok(number)


def coerce_email(value: Any) -> CoercionResult:
    """Lowercased address matching a basic local@domain.tld shape."""
    text = _text(value)
    if text is None:
        return CoercionResult.fail(EMPTY)
    text = text.lower()
    if not EMAIL_PATTERN.match(text):
        return CoercionResult.fail(f"Invalid email format: {text}")
    return CoercionResult.ok(text)


def coerce_phone(value: Any) -> CoercionResult:
    """
    Normalize a phone number to E.164 where possible.

    Numbers with fewer than MIN_PHONE_DIGITS digits are errors. Numbers
    phonenumbers cannot confirm are kept as cleaned digits with a warning.
    """
    text = _text(value)
    if text is None:
        return CoercionResult.fail(EMPTY)

    cleaned = _NOT_PHONE_CHARS.sub("", text)
    if len(cleaned.lstrip("+")) < MIN_PHONE_DIGITS:
        return CoercionResult.fail(f"Phone number too short: {text}")

    try:
        number = phonenumbers.parse(cleaned, DEFAULT_PHONE_REGION)
    except phonenumbers.NumberParseException:
        return CoercionResult.ok(cleaned, "Could not fully validate phone number")

    if not phonenumbers.is_valid_number(number):
        return CoercionResult.ok(cleaned, "Phone number may be invalid")
    return CoercionResult.ok(
        phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)
    )


def split_multi_value(value: Optional[str]) -> list[str]:
    """Split a pipe-separated cell into trimmed, non-empty items."""
    if not value:
        return []
    return [item.strip() for item in value.split(MULTI_VALUE_SEPARATOR) if item.strip()]


def to_date(value: Optional[str]) -> Optional[date]:
    return coerce_date(value).coerced_value if value else None


def to_datetime(value: Optional[str]) -> Optional[datetime]:
    return coerce_datetime(value).coerced_value if value else None


def to_float(value: Optional[str]) -> Optional[float]:
    return coerce_float(value).coerced_value if value else None
