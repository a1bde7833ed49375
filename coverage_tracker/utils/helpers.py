"""Shared parsing helpers for request input.

json_body:    request JSON as a dict; missing body → {}, non-object body → ValidationError
parse_date:   lenient, returns None on empty input, raises ValueError on bad input
as_date:      normalise a date/datetime (naive or aware) to a calendar date
"""
from datetime import date, datetime

from flask import request

from coverage_tracker.core.exceptions import ValidationError


def json_body() -> dict:
    """Parsed JSON body of the current request.

    An absent or unparseable body reads as empty. A body that parses to
    anything other than an object (list, string, number) is rejected.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY

    Raises:
        ValueError: if the value is non-empty but matches none of the formats.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(text, "%d.%m.%Y").date()
    except ValueError as exc:
        raise ValueError(
            "Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY."
        ) from exc


def as_date(value):
    """Calendar date of a date or datetime; None passes through."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    return value
