import datetime as dt
import math
from typing import Any, Optional

import pytz

import config


def now_utc() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def local_tz():
    return pytz.timezone(config.SCHEDULE_TIMEZONE)


def to_datetime(value: Any) -> Optional[dt.datetime]:
    """Coerce a stored timestamp into an aware UTC datetime.

    Handles Firestore timestamps (datetime subclasses), ISO strings with or
    without a trailing Z, and objects exposing ``seconds`` like protobuf
    Timestamps. Returns None for anything else.
    """
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        result = value
    elif isinstance(value, str):
        try:
            result = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    elif hasattr(value, "seconds"):
        result = dt.datetime.fromtimestamp(value.seconds, tz=dt.timezone.utc)
    else:
        return None

    if result.tzinfo is None:
        result = result.replace(tzinfo=dt.timezone.utc)
    return result.astimezone(dt.timezone.utc)


def local_now(now: Optional[dt.datetime] = None) -> dt.datetime:
    return (now or now_utc()).astimezone(local_tz())


def local_date_key(now: Optional[dt.datetime] = None) -> str:
    """Calendar date in the schedule timezone, e.g. '2026-10-19'."""
    return local_now(now).date().isoformat()


def local_week_key(now: Optional[dt.datetime] = None) -> str:
    year, week, _ = local_now(now).isocalendar()
    return f"{year}-W{week:02d}"


def end_of_local_day(now: Optional[dt.datetime] = None) -> dt.datetime:
    tz = local_tz()
    local = local_now(now)
    end = tz.localize(dt.datetime.combine(local.date(), dt.time.max))
    return end.astimezone(dt.timezone.utc)


def hours_until(due: dt.datetime, now: dt.datetime) -> int:
    """Whole hours until `due`, rounded up; zero or negative once it has passed."""
    return math.ceil((due - now).total_seconds() / 3600)
