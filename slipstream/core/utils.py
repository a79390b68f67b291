"""Utility functions shared by the slipstream services."""

from __future__ import annotations

import datetime
from typing import Any

from slipstream.errors import ValidationError


def utcnow() -> datetime.datetime:
    """Return the current wall-clock time as an aware UTC datetime."""
    return datetime.datetime.now(datetime.timezone.utc)


def as_utc_datetime(value: Any) -> datetime.datetime | None:
    """Normalize a Firestore timestamp, datetime or ISO string to aware UTC."""
    if value is None or value == "":
        return None
    if hasattr(value, "to_datetime"):
        value = value.to_datetime()
    if isinstance(value, str):
        value = datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
    elif isinstance(value, datetime.date) and not isinstance(
        value, datetime.datetime
    ):
        value = datetime.datetime.combine(value, datetime.time.min)
    if not isinstance(value, datetime.datetime):
        raise TypeError(f"Cannot interpret {value!r} as a datetime.")
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def isoformat(value: Any) -> str | None:
    """Serialize a stored timestamp for JSON responses."""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, datetime.date) or hasattr(value, "to_datetime"):
        return as_utc_datetime(value).isoformat()  # type: ignore[union-attr]
    return str(value)


def form_error(form: Any) -> ValidationError:
    """Build a ValidationError from a form's field errors."""
    return ValidationError("Invalid input.", {"fields": form.errors})
