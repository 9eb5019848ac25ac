import re
from datetime import date, datetime
from typing import Optional

import pytz

from classlog.config import LOCAL_TIMEZONE

_YMD_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_YM_RE = re.compile(r"^\d{4}-\d{2}$")


def parse_iso_date(s) -> Optional[date]:
    """
    Strict YYYY-MM-DD parser. Returns None for anything else, including
    timestamps and impossible dates like 2024-02-30.
    """
    if isinstance(s, datetime):
        return None
    if isinstance(s, date):
        return s
    if not isinstance(s, str):
        return None
    s = s.strip()
    if not _YMD_RE.match(s):
        return None
    try:
        return date.fromisoformat(s)
    except ValueError:
        return None


def is_month_key(s) -> bool:
    return isinstance(s, str) and bool(_YM_RE.match(s))


def month_key(d) -> str:
    if isinstance(d, str):
        return d[:7]
    return f"{d.year:04d}-{d.month:02d}"


def utc_now_iso() -> str:
    return datetime.now(pytz.UTC).isoformat()


def parse_utc(s) -> Optional[datetime]:
    if isinstance(s, datetime):
        return s if s.tzinfo else pytz.UTC.localize(s)
    if not isinstance(s, str) or not s.strip():
        return None
    s = s.strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    return dt if dt.tzinfo else pytz.UTC.localize(dt)


def today_local(tz_name: str = LOCAL_TIMEZONE) -> str:
    """Today's date in the instructor's timezone, as YYYY-MM-DD."""
    return datetime.now(pytz.timezone(tz_name)).date().isoformat()


def weekday_label(ymd: str) -> str:
    # "Tuesday, Mar 5, 2024"; empty for malformed input
    d = parse_iso_date(ymd)
    if d is None:
        return ""
    return f"{d.strftime('%A')}, {d.strftime('%b')} {d.day}, {d.year}"
