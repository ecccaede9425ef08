import datetime

import pytz


def from_timestamp(ts: float) -> datetime.datetime:
    """Return a UTC datetime object from a timestamp.

    :return: datetime object
    """
    return datetime.datetime.fromtimestamp(ts, tz=pytz.UTC)


def utc_now() -> datetime.datetime:
    """Get the current time in UTC.

    :return: datetime object
    """
    return datetime.datetime.now(tz=pytz.UTC)


def to_utc(dt: datetime.datetime) -> datetime.datetime:
    """This converts a naive datetime object that represents UTC into
    an aware datetime object.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=pytz.UTC)
    if dt.tzinfo == pytz.UTC:
        # Already UTC.
        return dt
    return dt.astimezone(pytz.UTC)


def beginning_of_day(value: datetime.date) -> datetime.datetime:
    """The first instant of the calendar day `value` falls on.

    A datetime keeps its own timezone; a plain date comes back naive.
    """
    if isinstance(value, datetime.datetime):
        return value.replace(hour=0, minute=0, second=0, microsecond=0)
    return datetime.datetime.combine(value, datetime.time.min)


def end_of_day(value: datetime.date) -> datetime.datetime:
    """The last representable instant of the calendar day `value` falls on."""
    if isinstance(value, datetime.datetime):
        return value.replace(hour=23, minute=59, second=59, microsecond=999999)
    return datetime.datetime.combine(value, datetime.time.max)


def strptime_utc(date_string: str, format: str) -> datetime.datetime:
    """Parse a string that describes a time but includes no timezone,
    into a timezone-aware datetime object set to UTC.

    :raise ValueError: If `format` expects timezone information to be
        present in `date_string`.
    """
    if "%Z" in format or "%z" in format:
        raise ValueError(f"Cannot use strptime_utc with timezone-aware format {format}")
    return to_utc(datetime.datetime.strptime(date_string, format))
