"""Local-time helpers for day boundaries."""
import calendar
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Europe/Helsinki"

# Last supported minute of a local day
END_OF_DAY_LIMIT = time(23, 55)


def resolve_zone(zone: str | tzinfo | None = None) -> tzinfo:
    """Return a tzinfo for a zone name, passing tzinfo instances through."""
    if zone is None:
        return ZoneInfo(DEFAULT_TIMEZONE)
    if isinstance(zone, str):
        return ZoneInfo(zone)
    return zone


def to_local(moment: datetime, zone: str | tzinfo | None = None) -> datetime:
    """
    Convert a timestamp to local wall-clock time.

    Naive datetimes are already local and are returned unchanged.
    """
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(resolve_zone(zone))


def shift_time(moment: datetime, delta: timedelta) -> datetime:
    """
    Add an elapsed-time delta.

    Aware values are shifted in UTC and converted back, so times inside a
    DST fold keep their real position.
    """
    if moment.tzinfo is None:
        return moment + delta
    return (moment.astimezone(timezone.utc) + delta).astimezone(moment.tzinfo)


def end_of_day_limit(moment: datetime, zone: str | tzinfo | None = None) -> datetime:
    """
    Get the 23:55 local cutoff of the day containing `moment`.

    The result uses the same representation as the input: naive in, naive
    out; aware in, aware out in the input's tzinfo.

    Examples:
        >>> end_of_day_limit(datetime(2025, 3, 4, 9, 15))
        datetime.datetime(2025, 3, 4, 23, 55)
    """
    local = to_local(moment, zone)
    limit = datetime.combine(local.date(), END_OF_DAY_LIMIT, tzinfo=local.tzinfo)
    if moment.tzinfo is None:
        return limit
    return limit.astimezone(moment.tzinfo)


def local_day_bounds(day: date, zone: str | tzinfo | None = None) -> tuple[datetime, datetime]:
    """Return aware [start, end) of a local calendar day."""
    tz = resolve_zone(zone)
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return start, end


def local_month_bounds(year: int, month: int, zone: str | tzinfo | None = None) -> tuple[datetime, datetime]:
    """Return aware [start, end) of a local calendar month."""
    tz = resolve_zone(zone)
    last_day = calendar.monthrange(year, month)[1]
    start = datetime.combine(date(year, month, 1), time.min, tzinfo=tz)
    end = datetime.combine(date(year, month, last_day) + timedelta(days=1), time.min, tzinfo=tz)
    return start, end
