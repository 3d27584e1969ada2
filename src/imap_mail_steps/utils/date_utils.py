"""Date string parsing and email date normalization utilities."""

import logging
import re
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y%m%d",
)

# Central European civil time: CET in winter, CEST in summer.
REGION_TIMEZONE = ZoneInfo("Europe/Prague")
_STANDARD_OFFSET = 60
_SUMMER_OFFSET = 120
_STANDARD_ABBREV = "CET"
_SUMMER_ABBREV = "CEST"

_WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
# 2100-01-01T00:00:00Z in milliseconds
_MAX_TIMESTAMP_MS = 4102444800000
_SECONDS_TIMESTAMP_LIMIT = 10000000000

_PARSE_ERRORS = (ValueError, TypeError, OverflowError, IndexError)

_RE_ISO_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}", re.ASCII)
_RE_WEEKDAY_MONTH_DAY_TIME_YEAR = re.compile(
    r"^(\w{3})\s+(\w{3})\s+(\d{1,2})\s+(\d{1,2}:\d{2}:\d{2})\s+(\d{4})$",
    re.ASCII,
)
_RE_DAY_MONTH_YEAR_TIME = re.compile(
    r"^(\d{1,2})\s+(\w{3})\s+(\d{4})\s+(\d{1,2}:\d{2}:\d{2})(?:\s+([+-]\d{4}))?$",
    re.ASCII,
)
_RE_ISO_LIKE = re.compile(
    r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})[T\s](\d{1,2}):(\d{2}):(\d{2})(?:\.(\d+))?(?:Z|([+-]\d{2}):?(\d{2}))?$",
    re.ASCII,
)
_RE_DIGITS = re.compile(r"^\d+$", re.ASCII)
_RE_MONTH_DAY_YEAR_TIME = re.compile(
    r"^(\w{3})\s+(\d{1,2})\s+(\d{4})\s+(\d{1,2}:\d{2}:\d{2})(?:\s+([+-]\d{4}))?$",
    re.ASCII,
)


def parse_date(text):
    """Parse a date string in yyyy-MM-dd, yyyy/MM/dd, or yyyyMMdd format.

    Returns
    -------
    datetime.date

    Raises
    ------
    ValueError
        If *text* does not match any supported format.
    """
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Invalid date format: '{text}'. " f"Expected yyyy-MM-dd, yyyy/MM/dd, or yyyyMMdd.")


# ------------------------------------------------------------------
# Email Date header parsing
# ------------------------------------------------------------------


def _to_canonical(dt):
    """Render *dt* as ``YYYY-MM-DDTHH:MM:SS.mmmZ``; naive values are UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _pad_time(time_text):
    """``7:56:11`` -> ``07:56:11``"""
    return time_text.zfill(8)


def _parse_rfc2822(text):
    try:
        return _to_canonical(parsedate_to_datetime(text))
    except _PARSE_ERRORS:
        return None


def _parse_generic(text):
    result = _parse_rfc2822(text)
    if result is not None or not _RE_ISO_PREFIX.match(text):
        return result
    try:
        return _to_canonical(datetime.fromisoformat(text.replace("Z", "+00:00")))
    except _PARSE_ERRORS:
        return None


def _parse_weekday_month_day_time_year(text):
    # "Wed Dec 03  7:56:11 2025"
    match = _RE_WEEKDAY_MONTH_DAY_TIME_YEAR.match(text)
    if not match:
        return None
    day_name, month, day, time_text, year = match.groups()
    return _parse_rfc2822(f"{day_name}, {day.zfill(2)} {month} {year} {_pad_time(time_text)} +0000")


def _parse_day_month_year_time(text):
    # "3 Dec 2025 07:56:11" or "3 Dec 2025 07:56:11 +0100"
    match = _RE_DAY_MONTH_YEAR_TIME.match(text)
    if not match:
        return None
    day, month, year, time_text, tz = match.groups()
    return _parse_rfc2822(f"{day.zfill(2)} {month} {year} {_pad_time(time_text)} {tz or '+0000'}")


def _parse_iso_like(text):
    # "2025-12-03T07:56:11", "2025/12/3 7:56:11.5+0100"
    match = _RE_ISO_LIKE.match(text)
    if not match:
        return None
    year, month, day, hour, minute, second, fraction, tz_hours, tz_minutes = match.groups()
    tzinfo = timezone.utc
    try:
        if tz_hours:
            offset = timedelta(hours=int(tz_hours[1:]), minutes=int(tz_minutes))
            tzinfo = timezone(-offset if tz_hours[0] == "-" else offset)
        dt = datetime(
            int(year),
            int(month),
            int(day),
            int(hour),
            int(minute),
            int(second),
            int((fraction or "0")[:6].ljust(6, "0")),
            tzinfo=tzinfo,
        )
        # the UTC conversion itself can leave the datetime range
        return _to_canonical(dt)
    except _PARSE_ERRORS:
        return None


def _parse_unix_timestamp(text):
    # "1701592571" (seconds) or "1701592571000" (milliseconds)
    if not _RE_DIGITS.match(text):
        return None
    value = int(text)
    if not 0 < value < _MAX_TIMESTAMP_MS:
        return None
    millis = value * 1000 if value < _SECONDS_TIMESTAMP_LIMIT else value
    return _to_canonical(_EPOCH + timedelta(milliseconds=millis))


def _parse_month_day_year_time(text):
    # "Dec 03 2025 07:56:11" or "Dec 03 2025 07:56:11 +0100"
    match = _RE_MONTH_DAY_YEAR_TIME.match(text)
    if not match:
        return None
    month, day, year, time_text, tz = match.groups()
    return _parse_rfc2822(f"{day.zfill(2)} {month} {year} {_pad_time(time_text)} {tz or '+0000'}")


# Tried in order; the first recognizer returning a value wins.
_DATE_RECOGNIZERS = (
    _parse_generic,
    _parse_weekday_month_day_time_year,
    _parse_day_month_year_time,
    _parse_iso_like,
    _parse_unix_timestamp,
    _parse_month_day_year_time,
)


def parse_email_date(raw_date):
    """Normalize an email ``Date`` header value to a UTC instant string.

    Well-formed RFC 2822 dates are handled by :func:`email.utils.parsedate_to_datetime`;
    several malformed shapes seen in the wild (``Wed Dec 03  7:56:11 2025``,
    ``3 Dec 2025 07:56:11``, ISO-like strings, Unix timestamps) are recognized
    as well. Values carrying no UTC offset are taken as UTC.

    Parameters
    ----------
    raw_date : str or None
        Raw header value.

    Returns
    -------
    str or None
        ``YYYY-MM-DDTHH:MM:SS.mmmZ`` on success, *raw_date* unchanged when no
        format matched, or ``None`` for empty/whitespace-only input.
    """
    if not raw_date:
        return None
    if isinstance(raw_date, bytes):
        raw_date = raw_date.decode("utf-8", errors="replace")
    text = raw_date.strip()
    if not text:
        return None

    for recognizer in _DATE_RECOGNIZERS:
        result = recognizer(text)
        if result is not None:
            return result

    logger.debug("Unrecognized date format: %r", raw_date)
    return raw_date


# ------------------------------------------------------------------
# Regional civil time rendering
# ------------------------------------------------------------------


def _parse_instant(instant):
    dt = datetime.fromisoformat(instant.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _offset_minutes(local, utc):
    """UTC offset of *local* derived from the two wall clocks of one instant."""
    offset = (local.hour * 60 + local.minute) - (utc.hour * 60 + utc.minute)
    if local.date() > utc.date():
        offset += 1440
    elif local.date() < utc.date():
        offset -= 1440
    while offset > 720:
        offset -= 1440
    while offset < -720:
        offset += 1440
    return offset


def _format_offset(minutes):
    sign = "+" if minutes >= 0 else "-"
    hours, mins = divmod(abs(minutes), 60)
    return f"{sign}{hours:02d}{mins:02d}"


def render_regional_civiltime(instant):
    """Render a canonical instant as Central European civil time.

    ``2025-12-03T13:42:50.000Z`` -> ``Wed, 03 Dec 2025 14:42:50 +0100 (CET)``

    Returns
    -------
    str or None
        The rendered string, or ``None`` when *instant* is empty, cannot be
        interpreted as a point in time, or its local time falls past
        year 9999 (``9999-12-31T23:00:00.000Z`` and later).
    """
    if not instant or not isinstance(instant, str):
        return None
    try:
        moment = _parse_instant(instant)
        local = moment.astimezone(REGION_TIMEZONE)
        utc = moment.astimezone(timezone.utc)
    except _PARSE_ERRORS:
        return None

    offset = _offset_minutes(local, utc)
    if offset == _SUMMER_OFFSET:
        abbrev = _SUMMER_ABBREV
    elif offset == _STANDARD_OFFSET:
        abbrev = _STANDARD_ABBREV
    else:
        abbrev = local.tzname()
        logger.warning("Unexpected offset %+d min for %s; using zone name %s", offset, instant, abbrev)

    return (
        f"{_WEEKDAYS[local.weekday()]}, {local.day:02d} {_MONTHS[local.month - 1]} {local.year:04d} "
        f"{local.hour:02d}:{local.minute:02d}:{local.second:02d} {_format_offset(offset)} ({abbrev})"
    )
