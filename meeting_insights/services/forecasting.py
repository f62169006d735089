"""
Forecast Projector Service

Projects closed deals and meetings for next week and next month from the
record history, labels the projection's confidence and explains it.

Two complementary projections:
a. Weekly weighted average: last 4 ISO-week buckets, recency weights
   [0.4, 0.3, 0.2, 0.1] (most recent first), normalised by the weights used.
   Retained with the recent-vs-older weekly trend in ProjectionBasis for
   confidence scoring and diagnostics.
b. Daily-rate trend-adjusted projection (authoritative): current and previous
   month daily rates (count / days in month), month-over-month trend at a 5%
   threshold, rate x trend multiplier (1.05 / 0.95 / 1.0) x days in target
   period, rounded half-up.

Confidence:
- Population variance of the last 4 weekly closed counts
- CV = stdDev / mean (CV = 1 when the mean is 0, forcing low confidence)
- high if CV < 0.3, low if CV > 0.6, medium otherwise

Insufficient-data states are explicit results, not exceptions:
- no records                 -> all zeros, "Insufficient data for projection."
- fewer than 2 weekly buckets -> first bucket (x4 for the month), low confidence,
                                 "Limited data available. Projection based on recent average."

Timeline: one entry per day of the current month (actual, zero-filled)
followed by one entry per day of next month at the projected daily rate.
"""

import calendar
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Sequence, Tuple

import numpy as np

from meeting_insights.models.enums import ConfidenceLevel, TimelinePeriod, TrendDirection
from meeting_insights.models.schemas import (
    MeetingRecord,
    ProjectionEstimate,
    ProjectionResult,
    TimelineEntry,
    WeeklyBucket,
)
from meeting_insights.services.aggregation import (
    format_fixed,
    month_start,
    round_to_int,
    week_key,
)
from meeting_insights.services.trends import (
    DEFAULT_TREND_THRESHOLD,
    MONTHLY_TREND_THRESHOLD,
    classify_trend,
    mean,
    percent_direction,
    trend_multiplier,
    trend_percentage,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Number of most recent weekly buckets used for weighting and confidence
RECENT_WEEKS: int = 4

# Most recent first; weights for missing weeks are simply not used
RECENCY_WEIGHTS: Tuple[float, ...] = (0.4, 0.3, 0.2, 0.1)

# Weekly trend threshold when the recent-weeks average is zero
HIGH_VARIANCE_THRESHOLD: float = 0.5

# CV below this is high confidence; above twice this is low
LOW_VARIANCE_THRESHOLD: float = 0.3

DAYS_PER_WEEK: int = 7
WEEKS_PER_MONTH: int = 4

# Minimum weekly buckets for the full projection
MIN_WEEKLY_BUCKETS: int = 2

INSUFFICIENT_DATA_MESSAGE: str = "Insufficient data for projection."
LIMITED_DATA_MESSAGE: str = "Limited data available. Projection based on recent average."
PROJECTION_ERROR_MESSAGE: str = "Unable to generate projection at this time."


# =============================================================================
# Data Classes
# =============================================================================


@dataclass
class MonthWindow:
    """Meetings and closed deals for one calendar month."""
    start: date
    days: int
    meetings: int = 0
    closed: int = 0
    daily_counts: Dict[int, Tuple[int, int]] = field(default_factory=dict)

    @property
    def daily_meetings(self) -> float:
        return self.meetings / self.days

    @property
    def daily_closed(self) -> float:
        return self.closed / self.days


@dataclass
class ProjectionBasis:
    """Intermediate values behind a projection."""
    buckets: List[WeeklyBucket]
    weighted_closed_average: float
    weekly_trend_closed: TrendDirection
    weekly_trend_meetings: TrendDirection
    coefficient_of_variation: float
    current: MonthWindow
    previous: MonthWindow


# =============================================================================
# Weekly Buckets
# =============================================================================


def build_weekly_buckets(records: Sequence[MeetingRecord]) -> List[WeeklyBucket]:
    """
    Aggregate records into ISO-week buckets, sorted by period key.

    Example:
        >>> [b.periodKey for b in build_weekly_buckets(records)]
        ['2024-W44', '2024-W45', '2024-W46']
    """
    totals: Counter = Counter()
    closed: Counter = Counter()
    for record in records:
        key = week_key(record.meetingDate)
        totals[key] += 1
        if record.closed:
            closed[key] += 1

    return [
        WeeklyBucket(periodKey=key, total=totals[key], closed=closed[key])
        for key in sorted(totals)
    ]


def recent_buckets(buckets: List[WeeklyBucket], count: int = RECENT_WEEKS) -> List[WeeklyBucket]:
    return buckets[-count:]


def weighted_weekly_average(
    buckets: List[WeeklyBucket],
    weights: Sequence[float] = RECENCY_WEIGHTS,
) -> float:
    """
    Recency-weighted average of closed counts over the last 4 buckets.

    The normaliser is the sum of the weights actually applied, so fewer than
    four buckets still average correctly.

    Args:
        buckets: Chronologically sorted weekly buckets
        weights: Most-recent-first weight vector

    Returns:
        Weighted average, 0.0 for no buckets

    Example:
        >>> weighted_weekly_average(buckets_with_closed([2, 4, 6, 8]))
        6.0
    """
    recent = recent_buckets(buckets, len(weights))
    if not recent:
        return 0.0

    newest_first = [bucket.closed for bucket in reversed(recent)]
    used = np.asarray(weights[:len(newest_first)], dtype=float)
    return float(np.dot(newest_first, used) / used.sum())


def _recent_vs_older(values: List[float]) -> Tuple[float, float]:
    recent = values[-2:]
    older = values[:-2]
    recent_average = mean(recent)
    older_average = mean(older) if older else recent_average
    return recent_average, older_average


def weekly_trend(
    buckets: List[WeeklyBucket],
    metric: str = "closed",
) -> TrendDirection:
    """
    Trend of the last 2 weeks against the earlier recent weeks.

    Uses the default 10% threshold, or 50% when the recent-weeks average of
    the metric is zero.

    Args:
        buckets: Chronologically sorted weekly buckets
        metric: 'closed' or 'total'

    Example:
        Weekly closed counts [2, 4, 6, 8] compare 7.0 against 3.0 and
        classify as increasing.
    """
    recent = recent_buckets(buckets)
    if not recent:
        return TrendDirection.NEUTRAL

    values = [float(getattr(bucket, metric)) for bucket in recent]
    recent_average, older_average = _recent_vs_older(values)
    threshold = DEFAULT_TREND_THRESHOLD if mean(values) > 0 else HIGH_VARIANCE_THRESHOLD

    return classify_trend(recent_average, older_average, threshold)


def coefficient_of_variation(buckets: List[WeeklyBucket]) -> float:
    """stdDev / mean of the last 4 weekly closed counts (population variance); 1.0 if the mean is 0."""
    closed = np.asarray([bucket.closed for bucket in recent_buckets(buckets)], dtype=float)
    if closed.size == 0:
        return 1.0

    average = float(closed.mean())
    if average <= 0:
        return 1.0
    return float(np.sqrt(np.var(closed)) / average)


def confidence_from_buckets(
    buckets: List[WeeklyBucket],
    low_variance_threshold: float = LOW_VARIANCE_THRESHOLD,
) -> ConfidenceLevel:
    """
    Confidence label from weekly closed-count dispersion.

    More dispersion never upgrades the label.
    """
    cv = coefficient_of_variation(buckets)
    if cv < low_variance_threshold:
        return ConfidenceLevel.HIGH
    if cv > low_variance_threshold * 2:
        return ConfidenceLevel.LOW
    return ConfidenceLevel.MEDIUM


# =============================================================================
# Monthly Windows
# =============================================================================


def days_in_month(month: date) -> int:
    return calendar.monthrange(month.year, month.month)[1]


def build_month_window(records: Sequence[MeetingRecord], month: date) -> MonthWindow:
    """Counts for the calendar month containing `month`, with per-day detail."""
    start = month_start(month)
    window = MonthWindow(start=start, days=days_in_month(start))

    day_meetings: Counter = Counter()
    day_closed: Counter = Counter()
    for record in records:
        if record.meetingDate.year != start.year or record.meetingDate.month != start.month:
            continue
        window.meetings += 1
        day_meetings[record.meetingDate.day] += 1
        if record.closed:
            window.closed += 1
            day_closed[record.meetingDate.day] += 1

    window.daily_counts = {
        day: (day_meetings[day], day_closed[day]) for day in day_meetings
    }
    return window


def next_month_start(today: date) -> date:
    return month_start(today, -1)


def monthly_daily_rates(
    records: Sequence[MeetingRecord],
    today: date,
) -> Tuple[MonthWindow, MonthWindow]:
    """
    Current and previous calendar month windows.

    Each window exposes daily_meetings and daily_closed (count divided by
    the days in that month).
    """
    return build_month_window(records, today), build_month_window(records, month_start(today, 1))



# =============================================================================
# Projection
# =============================================================================


def project_estimates(
    current: MonthWindow,
    previous: MonthWindow,
    confidence: ConfidenceLevel,
    days_next_month: int,
    monthly_threshold: float = MONTHLY_TREND_THRESHOLD,
) -> Tuple[ProjectionEstimate, ProjectionEstimate]:
    """
    Daily-rate, trend-adjusted estimates for next week and next month.

    Returns:
        Tuple of (next week, next month)
    """
    trend_closed = classify_trend(current.daily_closed, previous.daily_closed, monthly_threshold)
    trend_meetings = classify_trend(
        current.daily_meetings, previous.daily_meetings, monthly_threshold
    )

    projected_closed = current.daily_closed * trend_multiplier(trend_closed)
    projected_meetings = current.daily_meetings * trend_multiplier(trend_meetings)

    def estimate(days: int) -> ProjectionEstimate:
        return ProjectionEstimate(
            estimatedClosed=round_to_int(projected_closed * days),
            estimatedMeetings=round_to_int(projected_meetings * days),
            confidence=confidence,
            trend=trend_closed,
            trendClosed=trend_closed,
            trendMeetings=trend_meetings,
        )

    return estimate(DAYS_PER_WEEK), estimate(days_next_month)


def build_projection_timeline(
    current: MonthWindow,
    next_month: ProjectionEstimate,
    next_start: date,
) -> List[TimelineEntry]:
    """Actual days of the current month followed by projected days of next month."""
    timeline: List[TimelineEntry] = []

    for day in range(1, current.days + 1):
        meetings, closed = current.daily_counts.get(day, (0, 0))
        timeline.append(TimelineEntry(
            date=current.start.replace(day=day),
            period=TimelinePeriod.CURRENT,
            meetings=meetings,
            closed=closed,
        ))

    next_days = days_in_month(next_start)
    projected_meetings = round_to_int(next_month.estimatedMeetings / next_days)
    projected_closed = round_to_int(next_month.estimatedClosed / next_days)

    for day in range(1, next_days + 1):
        timeline.append(TimelineEntry(
            date=next_start.replace(day=day),
            period=TimelinePeriod.PROJECTED,
            meetings=projected_meetings,
            closed=projected_closed,
        ))

    return timeline


def _closed_clause(current: float, previous: float) -> str:
    percentage = trend_percentage(current, previous)
    direction = percent_direction(percentage)

    if direction == TrendDirection.INCREASING:
        return (
            f"Based on current month showing a {format_fixed(abs(percentage), 1)}% "
            f"increase in closed deals compared to last month"
        )
    if direction == TrendDirection.DECREASING:
        return (
            f"Based on current month showing a {format_fixed(abs(percentage), 1)}% "
            f"decrease in closed deals compared to last month"
        )
    if current == 0 and previous == 0:
        return "Based on current month data showing no closed deals (same as last month)"
    if current == 0 and previous > 0:
        return (
            f"Based on current month showing no closed deals "
            f"(down from {format_fixed(previous, 2)} per day last month)"
        )
    if current > 0 and previous == 0:
        return (
            f"Based on current month showing {format_fixed(current, 2)} closed deals "
            f"per day (up from none last month)"
        )
    return f"Based on current month performance ({format_fixed(current, 2)} closed deals per day)"


def _meetings_clause(current: float, previous: float) -> str:
    percentage = trend_percentage(current, previous)
    direction = percent_direction(percentage)

    if direction == TrendDirection.INCREASING:
        return (
            f" and a {format_fixed(abs(percentage), 1)}% increase in meetings "
            f"compared to last month"
        )
    if direction == TrendDirection.DECREASING:
        return (
            f" and a {format_fixed(abs(percentage), 1)}% decrease in meetings "
            f"compared to last month"
        )
    if current == 0 and previous == 0:
        return " (no meetings, same as last month)"
    if current == 0 and previous > 0:
        return f" (no meetings, down from {format_fixed(previous, 2)} per day last month)"
    if current > 0 and previous == 0:
        return f" ({format_fixed(current, 2)} meetings per day, up from none last month)"
    return f" ({format_fixed(current, 2)} meetings per day)"


def build_projection_message(
    current: MonthWindow,
    previous: MonthWindow,
    next_week: ProjectionEstimate,
    next_month: ProjectionEstimate,
) -> str:
    """
    Explain a projection in one sentence.

    Closed deals and meetings each pick one of six clauses (increase,
    decrease, both zero, positive to zero, zero to positive, steady) from the
    month-over-month daily-rate change, then the estimates follow.
    """
    return (
        _closed_clause(current.daily_closed, previous.daily_closed)
        + _meetings_clause(current.daily_meetings, previous.daily_meetings)
        + f", we estimate {next_week.estimatedClosed} closed deals and "
        f"{next_week.estimatedMeetings} meetings next week, and "
        f"{next_month.estimatedClosed} closed deals and "
        f"{next_month.estimatedMeetings} meetings next month."
    )


def empty_projection(message: str = INSUFFICIENT_DATA_MESSAGE) -> ProjectionResult:
    """All-zero projection with low confidence and neutral trends."""
    return ProjectionResult(
        nextWeek=ProjectionEstimate(),
        nextMonth=ProjectionEstimate(),
        message=message,
        dataPoints=0,
        timeline=[],
    )


def limited_data_projection(buckets: List[WeeklyBucket]) -> ProjectionResult:
    """Projection from the first available bucket when history is too short."""
    first = buckets[0]
    meetings = round_to_int(first.total)

    return ProjectionResult(
        nextWeek=ProjectionEstimate(
            estimatedClosed=round_to_int(first.closed),
            estimatedMeetings=meetings,
        ),
        nextMonth=ProjectionEstimate(
            estimatedClosed=round_to_int(first.closed * WEEKS_PER_MONTH),
            estimatedMeetings=meetings * WEEKS_PER_MONTH,
        ),
        message=LIMITED_DATA_MESSAGE,
        dataPoints=len(buckets),
        timeline=[],
    )


def build_projection_basis(
    records: Sequence[MeetingRecord],
    today: date,
) -> ProjectionBasis:
    buckets = recent_buckets(build_weekly_buckets(records))
    current, previous = monthly_daily_rates(records, today)
    return ProjectionBasis(
        buckets=buckets,
        weighted_closed_average=weighted_weekly_average(buckets),
        weekly_trend_closed=weekly_trend(buckets, "closed"),
        weekly_trend_meetings=weekly_trend(buckets, "total"),
        coefficient_of_variation=coefficient_of_variation(buckets),
        current=current,
        previous=previous,
    )


def project_future(
    records: Sequence[MeetingRecord],
    today: date,
    low_variance_threshold: float = LOW_VARIANCE_THRESHOLD,
    monthly_threshold: float = MONTHLY_TREND_THRESHOLD,
) -> ProjectionResult:
    """
    Project next week and next month from the record history.

    Args:
        records: All meeting records
        today: Current date from the clock
        low_variance_threshold: CV threshold for high confidence
        monthly_threshold: Month-over-month trend threshold

    Returns:
        ProjectionResult; insufficient data and unexpected failures produce
        the documented fallback results rather than raising
    """
    if not records:
        return empty_projection(INSUFFICIENT_DATA_MESSAGE)

    try:
        basis = build_projection_basis(records, today)

        if len(basis.buckets) < MIN_WEEKLY_BUCKETS:
            return limited_data_projection(basis.buckets)

        confidence = confidence_from_buckets(basis.buckets, low_variance_threshold)
        next_start = next_month_start(today)
        next_week, next_month = project_estimates(
            basis.current,
            basis.previous,
            confidence,
            days_in_month(next_start),
            monthly_threshold,
        )

        logger.debug(
            f"Projection basis: {len(basis.buckets)} weeks, "
            f"weighted closed avg {basis.weighted_closed_average:.2f}, "
            f"weekly trend {basis.weekly_trend_closed.value}, "
            f"CV {basis.coefficient_of_variation:.3f}"
        )

        return ProjectionResult(
            nextWeek=next_week,
            nextMonth=next_month,
            message=build_projection_message(basis.current, basis.previous, next_week, next_month),
            dataPoints=len(basis.buckets),
            timeline=build_projection_timeline(basis.current, next_month, next_start),
        )
    except (ArithmeticError, ValueError) as e:
        logger.error(f"Error building projection: {e}", exc_info=True)
        return empty_projection(PROJECTION_ERROR_MESSAGE)

