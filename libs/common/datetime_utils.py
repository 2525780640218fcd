"""Datetime utilities for timezone-aware UTC timestamps and reporting windows.

Usage:
    from libs.common.datetime_utils import utc_now

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime.

    Always use this for timestamps in the database.
    """
    return datetime.now(timezone.utc)


def start_of_week(now: Optional[datetime] = None) -> datetime:
    """Monday 00:00 UTC of the week containing ``now``."""
    now = now or utc_now()
    day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return day_start - timedelta(days=day_start.weekday())


def start_of_month(now: Optional[datetime] = None) -> datetime:
    now = now or utc_now()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def previous_month_window(now: Optional[datetime] = None) -> tuple[datetime, datetime]:
    """Return ``(start, end)`` of the calendar month before ``now``; end is exclusive."""
    end = start_of_month(now)
    start = start_of_month(end - timedelta(days=1))
    return start, end
