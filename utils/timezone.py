"""UTC timestamps and the calendar dates printed on billing documents."""

import re
from datetime import date, datetime, timedelta, timezone

_GERMAN_DATE = re.compile(r"^(\d{1,2})\.(\d{1,2})\.(\d{4})$")


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def today_utc() -> date:
    """Current calendar date in UTC."""
    return now_utc().date()


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 datetime string to UTC datetime.

    Raises ValueError if string has no timezone info.
    """
    dt = datetime.fromisoformat(iso_string)
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot parse naive datetime string. "
            "Include timezone offset (e.g., 'Z' or '+00:00')."
        )
    return to_utc(dt)


def parse_document_date(value: str | date | None) -> date | None:
    """
    Parse a document date as entered by users.

    Accepts ISO dates (2024-03-01), German dates (1.3.2024 / 01.03.2024)
    and full ISO datetimes. Blank input returns None.

    Raises:
        ValueError: If the value is not blank and cannot be parsed
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = value.strip()
    if not text:
        return None

    match = _GERMAN_DATE.match(text)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return date(year, month, day)

    try:
        return date.fromisoformat(text)
    except ValueError:
        pass

    try:
        return parse_iso(text.replace("Z", "+00:00")).date()
    except ValueError:
        raise ValueError(f"Unrecognized date: {value!r}")


def add_days(day: date, days: int) -> date:
    """Calendar arithmetic for due dates and validity periods."""
    return day + timedelta(days=days)
