"""
Timestamp helpers.

Instants are stored as UTC ISO-8601 text with millisecond precision and a
``Z`` suffix, e.g. ``2026-01-05T09:00:00.000Z``: fixed width, so text order is
time order. Calendar dates are stored as ``YYYY-MM-DD``. Naive datetimes are
taken to be UTC.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Union

from .errors import InvalidArgument

Instant = Union[datetime, str]
CalendarDate = Union[date, str]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Instant) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidArgument(f"Invalid timestamp {value!r}") from None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: Instant) -> str:
    moment = parse_timestamp(value)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def now_timestamp() -> str:
    return format_timestamp(utc_now())


def parse_date(value: CalendarDate) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise InvalidArgument(f"Invalid date {value!r}") from None


def format_date(value: CalendarDate) -> str:
    return parse_date(value).isoformat()


def seconds_between(start: Instant, end: Instant) -> int:
    return int((parse_timestamp(end) - parse_timestamp(start)).total_seconds())
