"""Validation of caller-supplied inputs."""

import re
from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any

from .errors import ValidationFailed

_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def require_fields(source: Mapping[str, Any], fields: Iterable[str]) -> dict[str, str]:
    """Return the named fields as stripped strings.

    Args:
        source: Query parameters or request body
        fields: Names that must be present and non-blank

    Returns:
        Mapping of field name to value

    Raises:
        ValidationFailed: Naming the first missing or blank field
    """
    values = {}
    for name in fields:
        value = source.get(name)
        if value is None or str(value).strip() == "":
            raise ValidationFailed(name)
        values[name] = str(value).strip()
    return values


def validate_date(name: str, value: str) -> str:
    """Check ``value`` is a real calendar date written as YYYY-MM-DD."""
    message = f"{name} must be a date in YYYY-MM-DD format"
    if not _DATE_PATTERN.match(value):
        raise ValidationFailed(name, message)
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValidationFailed(name, message) from None
    return value


def optional_value(source: Mapping[str, Any], name: str) -> str | None:
    """Return a stripped optional value, treating blank as absent."""
    value = source.get(name)
    if value is None:
        return None
    value = str(value).strip()
    return value or None
