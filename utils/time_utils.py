"""
Civil-time helpers.

Timestamps are stored naive, in the configured civil timezone. Anything
carrying an offset is converted on the way in.
"""
from datetime import datetime, timedelta, tzinfo
from typing import Optional

from app_config.settings import APP_TIMEZONE


def to_local(value: datetime, tz: Optional[tzinfo] = None) -> datetime:
    """Convert an aware datetime to naive local civil time; naive values pass through."""
    if value.tzinfo is None:
        return value
    return value.astimezone(tz or APP_TIMEZONE).replace(tzinfo=None)


def local_now(tz: Optional[tzinfo] = None) -> datetime:
    """Current naive local civil time."""
    return datetime.now(tz or APP_TIMEZONE).replace(tzinfo=None)


def week_range(reference: datetime) -> tuple[datetime, datetime]:
    """
    Monday-to-Sunday civil week containing `reference`.

    Returns (Monday 00:00:00.000, following Monday minus 1 millisecond).
    """
    start = (reference - timedelta(days=reference.weekday())).replace(
        hour=0, minute=0, second=0, microsecond=0
    )
    end = start + timedelta(days=7) - timedelta(milliseconds=1)
    return start, end
