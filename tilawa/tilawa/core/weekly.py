"""
Weekly rotation clock.

Rotation weeks start on Friday at 00:00 local time. The week start is used
to bucket listening history and to decide when a new rotation begins.
"""

from datetime import date, datetime, timedelta

FRIDAY = 4  # date.weekday()


def _days_since_friday(day: date) -> int:
    # Same as (sunday_based_weekday + 2) % 7 with Sunday = 0
    sunday_based = (day.weekday() + 1) % 7
    return (sunday_based + 2) % 7


def week_start_date(moment: datetime | date | None = None) -> date:
    """Date of the most recent Friday on or before ``moment``."""
    if moment is None:
        moment = datetime.now()
    day = moment.date() if isinstance(moment, datetime) else moment
    return day - timedelta(days=_days_since_friday(day))


def week_start(moment: datetime | date | None = None) -> str:
    """
    ISO date (YYYY-MM-DD) of the current rotation week's Friday.

    Examples:
        >>> week_start(date(2024, 3, 15))  # a Friday
        '2024-03-15'
        >>> week_start(date(2024, 3, 14))  # Thursday
        '2024-03-08'
    """
    return week_start_date(moment).isoformat()


def week_start_datetime(moment: datetime | None = None) -> datetime:
    """Week start as a datetime at 00:00, keeping the input's tzinfo."""
    if moment is None:
        moment = datetime.now()
    start = week_start_date(moment)
    return datetime(start.year, start.month, start.day, tzinfo=moment.tzinfo)


def next_week_start(moment: datetime | date | None = None) -> date:
    return week_start_date(moment) + timedelta(days=7)
