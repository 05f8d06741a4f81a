"""Calendar helpers shared by analytics calculations."""
import calendar
from datetime import datetime
from typing import Tuple


def shift_months(value: datetime, months: int) -> datetime:
    """
    Move a datetime by whole calendar months, clamping the day to the target month.

    Examples:
        >>> shift_months(datetime(2025, 3, 31), -1)
        datetime.datetime(2025, 2, 28, 0, 0)
        >>> shift_months(datetime(2025, 1, 15), -12)
        datetime.datetime(2024, 1, 15, 0, 0)
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def month_bounds(value: datetime) -> Tuple[datetime, datetime]:
    """Return [start of month, start of next month) for the month containing value."""
    start = value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return start, shift_months(start, 1)
