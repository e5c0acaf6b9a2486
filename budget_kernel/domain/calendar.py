"""
Calendar -- timezone-aware period boundary math.

Responsibility:
    Computes where a budget period starts and ends for a recurrence rule
    ("every N days starting on weekday W") relative to a reference instant,
    in an explicitly supplied IANA timezone.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The timezone is
    always passed in by the caller; this module never reads settings.

Invariants enforced:
    - Weekdays use the 0 = Sunday convention throughout the engine.
    - period_start is local midnight of the most recent matching weekday
      on or before the reference date (0-day look-back on a match).
    - period_end is local 23:59:59.999 of start + (duration - 1) days.
    - Day arithmetic happens on calendar dates before localisation, so a
      DST transition never moves a boundary off midnight.
    - Naive datetimes are interpreted as UTC.

Failure modes:
    - InvalidTimezoneError from resolve_timezone() for unknown zone names.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from budget_kernel.exceptions import InvalidTimezoneError

DEFAULT_TIMEZONE = "UTC"

END_OF_DAY = time(23, 59, 59, 999000)

WEEKDAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

# (label, zone) pairs offered by the settings screen.
COMMON_TIMEZONES: tuple[tuple[str, str], ...] = (
    ("UTC", "UTC"),
    ("Eastern Time (US)", "America/New_York"),
    ("Central Time (US)", "America/Chicago"),
    ("Mountain Time (US)", "America/Denver"),
    ("Pacific Time (US)", "America/Los_Angeles"),
    ("Alaska Time (US)", "America/Anchorage"),
    ("Hawaii Time (US)", "Pacific/Honolulu"),
    ("London (GMT/BST)", "Europe/London"),
    ("Paris (CET/CEST)", "Europe/Paris"),
    ("Berlin (CET/CEST)", "Europe/Berlin"),
    ("Tokyo (JST)", "Asia/Tokyo"),
    ("Sydney (AEDT/AEST)", "Australia/Sydney"),
    ("Mumbai (IST)", "Asia/Kolkata"),
    ("Dubai (GST)", "Asia/Dubai"),
    ("Singapore (SGT)", "Asia/Singapore"),
    ("Hong Kong (HKT)", "Asia/Hong_Kong"),
    ("Toronto (EST/EDT)", "America/Toronto"),
    ("Vancouver (PST/PDT)", "America/Vancouver"),
    ("Mexico City (CST/CDT)", "America/Mexico_City"),
    ("São Paulo (BRT)", "America/Sao_Paulo"),
)


def resolve_timezone(name: str | None) -> ZoneInfo:
    """
    Resolve an IANA zone name.

    Raises:
        InvalidTimezoneError: If the name is empty or not a known zone.
    """
    if not isinstance(name, str) or not name.strip():
        raise InvalidTimezoneError(str(name))
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise InvalidTimezoneError(name) from exc


def is_valid_timezone(name: str | None) -> bool:
    try:
        resolve_timezone(name)
    except InvalidTimezoneError:
        return False
    return True


def to_sunday_weekday(d: date) -> int:
    """Convert Python's Monday=0 weekday to the engine's Sunday=0 weekday."""
    return (d.weekday() + 1) % 7


def weekday_name(weekday: int) -> str:
    if isinstance(weekday, int) and 0 <= weekday <= 6:
        return WEEKDAY_NAMES[weekday]
    return "Invalid"


def local_date(instant: datetime | date, tz: tzinfo) -> date:
    """
    Date component of ``instant`` as seen in ``tz``.

    Plain dates are returned unchanged; naive datetimes are read as UTC.
    """
    if not isinstance(instant, datetime):
        return instant
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(tz).date()


def start_of_day(d: date, tz: tzinfo) -> datetime:
    return datetime.combine(d, time.min, tzinfo=tz)


def end_of_day(d: date, tz: tzinfo) -> datetime:
    return datetime.combine(d, END_OF_DAY, tzinfo=tz)


def period_start_date(start_weekday: int, reference: datetime | date, tz: tzinfo) -> date:
    """Most recent local date on or before ``reference`` falling on ``start_weekday``."""
    ref = local_date(reference, tz)
    days_back = (to_sunday_weekday(ref) - start_weekday) % 7
    return ref - timedelta(days=days_back)


def period_end_date(start: date, duration_days: int) -> date:
    return start + timedelta(days=duration_days - 1)


def period_start(
    start_weekday: int,
    duration_days: int,
    reference: datetime | date,
    tz: tzinfo,
) -> datetime:
    """
    Local midnight at which the period containing ``reference`` begins.

    ``duration_days`` does not affect the anchor: every period of a budget
    begins on its start weekday.  It is accepted so callers can pass the
    whole recurrence rule.

    Example (tz=UTC, start_weekday=1 / Monday):
        reference Tue 2025-07-22 10:00 -> 2025-07-21 00:00
        reference Mon 2025-07-21 00:00 -> 2025-07-21 00:00
    """
    return start_of_day(period_start_date(start_weekday, reference, tz), tz)


def period_end(start: datetime | date, duration_days: int, tz: tzinfo) -> datetime:
    """Local end-of-day of the last day of a period beginning at ``start``."""
    return end_of_day(period_end_date(local_date(start, tz), duration_days), tz)
