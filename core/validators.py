"""
Input validation functions for API parameters.

All validators raise ValidationError on invalid input.
"""

import re
from datetime import date, datetime
from typing import Optional, List

from core.exceptions import ValidationError, InvalidPeriodError


# Maximum allowed values
MAX_CHANNEL_IDS = 100
MAX_CHANNEL_ID_LENGTH = 64
MAX_PLACE_NAME_LENGTH = 100

VALID_PERIODS = ("today", "week", "month", "all", "custom")

_CHANNEL_ID_RE = re.compile(r"^[A-Za-z0-9_\-]+$")


def validate_date_string(
    value: str,
    field: str = "date",
    format: str = "%Y-%m-%d"
) -> date:
    """
    Validate and parse a date string.

    Args:
        value: Date string to validate
        field: Field name for error messages
        format: Expected date format (default: YYYY-MM-DD)

    Returns:
        Parsed date object

    Raises:
        ValidationError: If date is invalid or in wrong format
    """
    if not value:
        raise ValidationError(field, "Date is required", value)

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a string", value)

    try:
        return datetime.strptime(value, format).date()
    except ValueError:
        raise ValidationError(
            field,
            f"Invalid date format. Expected {format}",
            value
        )


def validate_period(
    value: Optional[str],
    field: str = "period",
    default: str = "month"
) -> str:
    """
    Validate a period keyword.

    Args:
        value: Period string to validate
        field: Field name for error messages
        default: Period used when value is empty

    Returns:
        Validated, lower-cased period keyword

    Raises:
        InvalidPeriodError: If period is unknown
    """
    if value is None or value == "":
        return default

    if not isinstance(value, str):
        raise InvalidPeriodError("Must be a string", value, field=field)

    value = value.lower().strip()

    if value not in VALID_PERIODS:
        raise InvalidPeriodError(
            f"Must be one of: {', '.join(VALID_PERIODS)}",
            value,
            field=field
        )

    return value


def validate_channel_ids(
    value: Optional[str],
    field: str = "channel_ids"
) -> Optional[List[str]]:
    """
    Parse a comma-separated channel id list.

    Args:
        value: Raw "id1,id2" string
        field: Field name for error messages

    Returns:
        De-duplicated ids in given order, or None when value is absent
        (callers then default to every active channel). A value made only
        of separators yields an empty list.

    Raises:
        ValidationError: If an id is malformed or too many are given
    """
    if value is None:
        return None

    if not isinstance(value, str):
        raise ValidationError(field, "Must be a comma-separated string", value)

    ids: List[str] = []
    for raw in value.split(","):
        channel_id = raw.strip()
        if not channel_id or channel_id in ids:
            continue
        if len(channel_id) > MAX_CHANNEL_ID_LENGTH or not _CHANNEL_ID_RE.match(channel_id):
            raise ValidationError(field, "Contains an invalid channel id", channel_id)
        ids.append(channel_id)

    if len(ids) > MAX_CHANNEL_IDS:
        raise ValidationError(
            field,
            f"Cannot exceed {MAX_CHANNEL_IDS} channels",
            f"{len(ids)} channels"
        )

    return ids


def validate_place_name(
    value: Optional[str],
    field: str,
    allow_none: bool = False
) -> Optional[str]:
    """
    Validate a region/city/town name.

    Args:
        value: Place name to validate
        field: Field name for error messages
        allow_none: Whether None/empty is allowed

    Returns:
        Stripped place name or None

    Raises:
        ValidationError: If the name is missing or too long
    """
    if value is None or not str(value).strip():
        if allow_none:
            return None
        raise ValidationError(field, "Place name is required")

    value = str(value).strip()

    if len(value) > MAX_PLACE_NAME_LENGTH:
        raise ValidationError(
            field,
            f"Cannot exceed {MAX_PLACE_NAME_LENGTH} characters",
            f"{len(value)} characters"
        )

    return value
