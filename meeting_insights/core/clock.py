"""
Injectable clock for time-relative analytics.

Every computation that depends on "today" (weekly bucketing, month windows,
new industries last month, seller of the week) receives a Clock instead of
reading the system date, so results are reproducible under a fixed date.
"""

from datetime import date
from typing import Callable

from meeting_insights.core.config import Settings

Clock = Callable[[], date]


def system_clock() -> date:
    """Return the current local date."""
    return date.today()


def fixed_clock(today: date) -> Clock:
    """
    Build a clock that always returns the same date.

    Example:
        >>> clock = fixed_clock(date(2024, 11, 15))
        >>> clock()
        datetime.date(2024, 11, 15)
    """
    def _clock() -> date:
        return today

    return _clock


def clock_from_settings(settings: Settings) -> Clock:
    if settings.reference_date is not None:
        return fixed_clock(settings.reference_date)
    return system_clock
