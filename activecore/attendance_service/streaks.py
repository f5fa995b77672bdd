"""
Attendance streak calculation.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, Union


def compute_streak(check_ins: Iterable[Union[date, datetime]]) -> int:
    """
    Count consecutive calendar days ending at the most recent check-in.

    Datetimes are reduced to their date; duplicate days count once. The streak
    is anchored on the latest check-in, not on today.
    """
    days = sorted({c.date() if isinstance(c, datetime) else c for c in check_ins}, reverse=True)
    if not days:
        return 0

    streak = 1
    expected = days[0] - timedelta(days=1)
    for day in days[1:]:
        if day != expected:
            break
        streak += 1
        expected = day - timedelta(days=1)

    return streak
