"""UTC clock and calendar-day helpers.

Services read the current time only through `utc_now()` so tests can pin it.
Timestamps are persisted with `format_timestamp()`, a fixed-width UTC ISO-8601
form, so lexical comparison in filters matches chronological comparison.
"""

from datetime import UTC, datetime, timedelta

from grindset.core.config import constants


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def start_of_day(value: datetime) -> datetime:
    """Floor a datetime to midnight of its UTC calendar day."""
    return ensure_utc(value).replace(hour=0, minute=0, second=0, microsecond=0)


def day_key(value: datetime) -> str:
    """Return the UTC calendar day of a datetime as YYYY-MM-DD."""
    return ensure_utc(value).strftime("%Y-%m-%d")


def today_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    """Return the [start, end] window treated as "today".

    The window is [midnight - 1h, midnight + 23h] UTC, skewed to absorb
    client timezone drift around midnight.
    """
    skew = timedelta(hours=constants.TODAY_WINDOW_SKEW_HOURS)
    midnight = start_of_day(now or utc_now())
    return midnight - skew, midnight + timedelta(hours=24) - skew


def format_timestamp(value: datetime) -> str:
    """Serialize a datetime as fixed-width UTC ISO-8601 (microsecond precision)."""
    return ensure_utc(value).isoformat(timespec="microseconds")


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse a persisted timestamp back into an aware UTC datetime."""
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
