"""
Trend Classifier Service

Compares a current value against a previous one and labels the move as
increasing, decreasing, stable or neutral using a relative-change threshold.
The same classification drives seller timelines, weekly forecast trends and
month-over-month projection adjustments.

Key Components:
- classify_trend: Relative-change classification with zero-baseline handling
- trend_percentage / percent_direction: Percent change and its +/-5% label
  used by projection messages
- trend_multiplier: Daily-rate multiplier applied to a projected trend
- mean / split_halves: Series helpers for first-half vs second-half stats

Zero-baseline rule (asymmetric, preserved exactly):
- previous == 0 and current > 0  -> increasing
- previous == 0 and current <= 0 -> neutral
A move from zero is never an error or an infinite percentage.

Otherwise change = (current - previous) / previous:
- change >  threshold -> increasing
- change < -threshold -> decreasing
- else                -> stable

Both bounds are exclusive: a change of exactly the threshold is stable.

Example:
    >>> classify_trend(111, 100)
    <TrendDirection.INCREASING: 'increasing'>
    >>> percent_direction(trend_percentage(21, 20))
    <TrendDirection.STABLE: 'stable'>
"""

from typing import Dict, List, Sequence

import numpy as np

from meeting_insights.models.enums import TrendDirection


# =============================================================================
# Constants
# =============================================================================

# Default relative-change threshold (10%)
DEFAULT_TREND_THRESHOLD: float = 0.10

# Tighter threshold for month-over-month daily rates (5%)
MONTHLY_TREND_THRESHOLD: float = 0.05

# Percent change magnitude that counts as a real move in messages
PERCENT_CHANGE_THRESHOLD: float = 5.0

# Daily-rate multiplier applied per projected trend
TREND_MULTIPLIERS: Dict[TrendDirection, float] = {
    TrendDirection.INCREASING: 1.05,
    TrendDirection.DECREASING: 0.95,
    TrendDirection.STABLE: 1.0,
    TrendDirection.NEUTRAL: 1.0,
}


def classify_trend(
    current: float,
    previous: float,
    threshold: float = DEFAULT_TREND_THRESHOLD,
) -> TrendDirection:
    """
    Classify the move from previous to current.

    Args:
        current: Value for the recent window
        previous: Value for the prior window
        threshold: Relative change needed to call a direction

    Returns:
        TrendDirection

    Example:
        >>> classify_trend(5, 0)
        <TrendDirection.INCREASING: 'increasing'>
        >>> classify_trend(0, 0)
        <TrendDirection.NEUTRAL: 'neutral'>
        >>> classify_trend(4, 4)
        <TrendDirection.STABLE: 'stable'>

    Note:
        A drop to zero from a positive baseline is a -100% change and
        classifies as decreasing; only a zero baseline is special-cased.
    """
    if previous == 0:
        return TrendDirection.INCREASING if current > 0 else TrendDirection.NEUTRAL

    change = (current - previous) / previous

    if change > threshold:
        return TrendDirection.INCREASING
    if change < -threshold:
        return TrendDirection.DECREASING
    return TrendDirection.STABLE


def trend_percentage(current: float, previous: float) -> float:
    """
    Percent change from previous to current.

    Args:
        current: Value for the recent window
        previous: Value for the prior window

    Returns:
        Change in percent; 100 when rising from a zero baseline, 0 when
        both are zero.

    Example:
        >>> trend_percentage(15, 10)
        50.0
        >>> trend_percentage(3, 0)
        100.0
    """
    if previous > 0:
        return (current - previous) / previous * 100
    return 100.0 if current > 0 else 0.0


def percent_direction(percentage: float) -> TrendDirection:
    """Direction of a percent change using the +/-5% message cut-off."""
    if percentage > PERCENT_CHANGE_THRESHOLD:
        return TrendDirection.INCREASING
    if percentage < -PERCENT_CHANGE_THRESHOLD:
        return TrendDirection.DECREASING
    return TrendDirection.STABLE


def trend_multiplier(trend: TrendDirection) -> float:
    return TREND_MULTIPLIERS[trend]


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0 for an empty sequence."""
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=float)))


def split_halves(values: List[float]) -> List[List[float]]:
    """Split a series into first and second halves; the first half takes the extra value."""
    middle = (len(values) + 1) // 2
    return [values[:middle], values[middle:]]
