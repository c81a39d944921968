"""
Calendar Model Module

Maps a (year, month) pair to the ordered day columns of the grid.
"""

from calendar import monthrange
from datetime import date
from functools import lru_cache
from typing import Tuple

from .entities import DayInfo

WEEKDAY_LABELS = ('Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun')


@lru_cache(maxsize=64)
def generate_days_info(year: int, month: int) -> Tuple[DayInfo, ...]:
    """
    Generate day descriptors for every day of a month.

    Args:
        year: Full year
        month: Zero-indexed month (0 = January, 11 = December)

    Returns:
        Tuple of DayInfo in calendar order. Callers validate the month;
        an out-of-range month raises from the calendar module.
    """
    _, num_days = monthrange(year, month + 1)
    days = []
    for day in range(1, num_days + 1):
        weekday = date(year, month + 1, day).weekday()
        days.append(DayInfo(
            day=day,
            weekday_label=WEEKDAY_LABELS[weekday],
            is_weekend=weekday >= 5
        ))
    return tuple(days)
