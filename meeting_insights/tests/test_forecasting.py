"""
Tests for the forecast projector.

Test Categories:
- TestWeeklyBuckets: ISO-week bucketing, recency weighting, weekly trend
- TestConfidence: coefficient of variation and its labels
- TestMonthWindows: calendar month windows and daily rates
- TestProjectFuture: insufficient / limited / full projections, message, timeline
"""

from datetime import date, timedelta
from typing import List

import pytest

from meeting_insights.models import (
    ConfidenceLevel,
    MeetingRecord,
    TimelinePeriod,
    TrendDirection,
    WeeklyBucket,
)
from meeting_insights.services.forecasting import (
    INSUFFICIENT_DATA_MESSAGE,
    LIMITED_DATA_MESSAGE,
    MonthWindow,
    build_month_window,
    build_projection_message,
    build_weekly_buckets,
    coefficient_of_variation,
    confidence_from_buckets,
    days_in_month,
    monthly_daily_rates,
    project_estimates,
    project_future,
    weekly_trend,
    weighted_weekly_average,
)
from meeting_insights.tests.conftest import make_record


def buckets_with_closed(closed: List[int], total: int = 10) -> List[WeeklyBucket]:
    return [
        WeeklyBucket(periodKey=f'2024-W{40 + index:02d}', total=total, closed=count)
        for index, count in enumerate(closed)
    ]


@pytest.fixture
def two_month_history() -> List[MeetingRecord]:
    """
    October 2024: one meeting a day, closes on the 1st to the 10th.
    November 1-15: four meetings a day, one close a day.
    """
    records = []
    for day in range(1, 32):
        records.append(make_record(meetingDate=date(2024, 10, day), closed=day <= 10))
    for day in range(1, 16):
        records.append(make_record(meetingDate=date(2024, 11, day), closed=True))
        records.extend(make_record(meetingDate=date(2024, 11, day)) for _ in range(3))
    return records


class TestWeeklyBuckets:
    """Weekly aggregation feeding weighting and confidence."""

    def test_buckets_sorted_by_iso_week(self) -> None:
        records = [
            make_record(meetingDate=date(2024, 12, 30), closed=True),
            make_record(meetingDate=date(2024, 12, 20)),
            make_record(meetingDate=date(2024, 12, 18), closed=True),
        ]

        buckets = build_weekly_buckets(records)

        assert [b.periodKey for b in buckets] == ['2024-W51', '2025-W01']
        assert (buckets[0].total, buckets[0].closed) == (2, 1)

    @pytest.mark.parity
    def test_weighted_average_most_recent_first(self) -> None:
        assert weighted_weekly_average(buckets_with_closed([2, 4, 6, 8])) == pytest.approx(6.0)

    def test_weighted_average_uses_only_last_four(self) -> None:
        buckets = buckets_with_closed([100, 2, 4, 6, 8])

        assert weighted_weekly_average(buckets) == pytest.approx(6.0)

    def test_weighted_average_normalises_missing_weeks(self) -> None:
        # (10 * 0.4 + 5 * 0.3) / 0.7
        assert weighted_weekly_average(buckets_with_closed([5, 10])) == pytest.approx(5.5 / 0.7)
        assert weighted_weekly_average([]) == 0.0

    @pytest.mark.parity
    def test_weekly_trend_increasing(self) -> None:
        assert weekly_trend(buckets_with_closed([2, 4, 6, 8])) == TrendDirection.INCREASING

    def test_weekly_trend_all_zero_is_neutral(self) -> None:
        assert weekly_trend(buckets_with_closed([0, 0, 0, 0])) == TrendDirection.NEUTRAL
        assert weekly_trend([]) == TrendDirection.NEUTRAL

    def test_weekly_trend_on_meetings(self) -> None:
        buckets = buckets_with_closed([1, 1, 1, 1], total=10)

        assert weekly_trend(buckets, 'total') == TrendDirection.STABLE


class TestConfidence:
    """CV = stdDev / mean over the last four weekly closed counts."""

    def test_constant_series_is_high(self) -> None:
        buckets = buckets_with_closed([4, 4, 4, 4])

        assert coefficient_of_variation(buckets) == 0.0
        assert confidence_from_buckets(buckets) == ConfidenceLevel.HIGH

    def test_zero_mean_forces_low(self) -> None:
        buckets = buckets_with_closed([0, 0, 0, 0])

        assert coefficient_of_variation(buckets) == 1.0
        assert confidence_from_buckets(buckets) == ConfidenceLevel.LOW

    def test_population_variance(self) -> None:
        # mean 5, population variance 5
        buckets = buckets_with_closed([2, 4, 6, 8])

        assert coefficient_of_variation(buckets) == pytest.approx(5 ** 0.5 / 5)
        assert confidence_from_buckets(buckets) == ConfidenceLevel.MEDIUM

    def test_more_dispersion_never_upgrades(self) -> None:
        order = [ConfidenceLevel.LOW, ConfidenceLevel.MEDIUM, ConfidenceLevel.HIGH]
        series = [[5, 5, 5, 5], [4, 5, 6, 5], [2, 4, 6, 8], [1, 10, 1, 10], [0, 0, 0, 9]]

        labels = [confidence_from_buckets(buckets_with_closed(s)) for s in series]
        ranks = [order.index(label) for label in labels]

        assert ranks == sorted(ranks, reverse=True)
        assert labels[-1] == ConfidenceLevel.LOW


class TestMonthWindows:
    """Calendar month windows and daily rates."""

    def test_days_in_month(self) -> None:
        assert days_in_month(date(2024, 2, 10)) == 29
        assert days_in_month(date(2023, 2, 10)) == 28

    def test_window_counts_and_daily_detail(self) -> None:
        records = [
            make_record(meetingDate=date(2024, 11, 3), closed=True),
            make_record(meetingDate=date(2024, 11, 3)),
            make_record(meetingDate=date(2024, 10, 31)),
        ]

        window = build_month_window(records, date(2024, 11, 20))

        assert window.start == date(2024, 11, 1)
        assert (window.meetings, window.closed) == (2, 1)
        assert window.daily_counts == {3: (2, 1)}

    def test_monthly_daily_rates_cross_year(self) -> None:
        records = [
            make_record(meetingDate=date(2023, 12, 5), closed=True),
            make_record(meetingDate=date(2024, 1, 5)),
        ]

        current, previous = monthly_daily_rates(records, date(2024, 1, 10))

        assert current.start == date(2024, 1, 1)
        assert previous.start == date(2023, 12, 1)
        assert current.daily_meetings == pytest.approx(1 / 31)
        assert previous.daily_closed == pytest.approx(1 / 31)


class TestProjectFuture:
    """End-to-end projection states."""

    def test_no_records(self, today) -> None:
        result = project_future([], today)

        assert result.message == INSUFFICIENT_DATA_MESSAGE
        assert result.nextWeek.estimatedClosed == 0
        assert result.nextMonth.estimatedMeetings == 0
        assert result.nextWeek.confidence == ConfidenceLevel.LOW
        assert result.nextWeek.trend == TrendDirection.NEUTRAL
        assert result.dataPoints == 0
        assert result.timeline == []

    def test_single_week_is_limited(self, today) -> None:
        records = [
            make_record(meetingDate=today, closed=True),
            make_record(meetingDate=today - timedelta(days=1)),
            make_record(meetingDate=today - timedelta(days=2)),
        ]

        result = project_future(records, today)

        assert result.message == LIMITED_DATA_MESSAGE
        assert result.dataPoints == 1
        assert (result.nextWeek.estimatedClosed, result.nextWeek.estimatedMeetings) == (1, 3)
        assert (result.nextMonth.estimatedClosed, result.nextMonth.estimatedMeetings) == (4, 12)
        assert result.nextMonth.confidence == ConfidenceLevel.LOW

    @pytest.mark.parity
    def test_full_projection(self, two_month_history, today) -> None:
        result = project_future(two_month_history, today)

        # 0.5 closed/day and 2 meetings/day, both increasing (x1.05)
        assert result.nextWeek.estimatedClosed == 4
        assert result.nextWeek.estimatedMeetings == 15
        assert result.nextMonth.estimatedClosed == 16
        assert result.nextMonth.estimatedMeetings == 65
        assert result.nextWeek.trendClosed == TrendDirection.INCREASING
        assert result.nextWeek.trend == result.nextWeek.trendClosed
        assert result.nextMonth.trendMeetings == TrendDirection.INCREASING
        assert result.dataPoints == 4
        # weekly closed [0, 3, 7, 5]
        assert result.nextWeek.confidence == ConfidenceLevel.LOW

        assert result.message == (
            'Based on current month showing a 55.0% increase in closed deals compared to '
            'last month and a 100.0% increase in meetings compared to last month, we '
            'estimate 4 closed deals and 15 meetings next week, and 16 closed deals and '
            '65 meetings next month.'
        )

    def test_timeline(self, two_month_history, today) -> None:
        timeline = project_future(two_month_history, today).timeline

        current = [entry for entry in timeline if entry.period == TimelinePeriod.CURRENT]
        projected = [entry for entry in timeline if entry.period == TimelinePeriod.PROJECTED]

        assert len(current) == 30
        assert len(projected) == 31
        assert (current[0].meetings, current[0].closed) == (4, 1)
        assert (current[20].meetings, current[20].closed) == (0, 0)
        assert projected[0].date == date(2024, 12, 1)
        assert (projected[0].meetings, projected[0].closed) == (2, 1)

    def test_estimates_never_negative(self, sample_records, today) -> None:
        result = project_future(sample_records, today)

        for estimate in (result.nextWeek, result.nextMonth):
            assert estimate.estimatedClosed >= 0
            assert estimate.estimatedMeetings >= 0


class TestProjectionEstimates:
    """Trend multipliers and explanation clauses."""

    @staticmethod
    def window(days: int, meetings: int, closed: int) -> MonthWindow:
        return MonthWindow(start=date(2024, 11, 1), days=days, meetings=meetings, closed=closed)

    def test_decreasing_multiplier(self) -> None:
        next_week, next_month = project_estimates(
            self.window(30, 30, 15), self.window(30, 30, 30), ConfidenceLevel.MEDIUM, 31
        )

        assert next_week.trendClosed == TrendDirection.DECREASING
        assert next_week.trendMeetings == TrendDirection.STABLE
        # 0.5 * 0.95 * 7 = 3.325
        assert next_week.estimatedClosed == 3
        assert next_month.estimatedMeetings == 31
        assert next_month.confidence == ConfidenceLevel.MEDIUM

    def test_steady_message(self) -> None:
        current = previous = self.window(30, 60, 15)
        next_week, next_month = project_estimates(current, previous, ConfidenceLevel.HIGH, 31)

        message = build_projection_message(current, previous, next_week, next_month)

        assert message.startswith(
            'Based on current month performance (0.50 closed deals per day) (2.00 meetings per day), '
        )

    def test_both_zero_message(self) -> None:
        empty = self.window(30, 0, 0)
        next_week, next_month = project_estimates(empty, empty, ConfidenceLevel.LOW, 31)

        message = build_projection_message(empty, empty, next_week, next_month)

        assert message == (
            'Based on current month data showing no closed deals (same as last month)'
            ' (no meetings, same as last month), we estimate 0 closed deals and 0 meetings '
            'next week, and 0 closed deals and 0 meetings next month.'
        )

    @pytest.mark.parametrize('closed, meetings, expected', [
        ((5, 10), (20, 40),
         'Based on current month showing a 50.0% decrease in closed deals compared to last '
         'month and a 50.0% decrease in meetings compared to last month'),
        ((5, 10), (40, 40),
         'Based on current month showing a 50.0% decrease in closed deals compared to last '
         'month (4.00 meetings per day)'),
        ((15, 10), (20, 40),
         'Based on current month showing a 50.0% increase in closed deals compared to last '
         'month and a 50.0% decrease in meetings compared to last month'),
        ((10, 10), (20, 40),
         'Based on current month performance (1.00 closed deals per day) and a 50.0% '
         'decrease in meetings compared to last month'),
        ((211, 200), (400, 400),
         'Based on current month showing a 5.5% increase in closed deals compared to last '
         'month (40.00 meetings per day)'),
    ])
    def test_mixed_clauses(self, closed, meetings, expected) -> None:
        current = self.window(10, meetings[0], closed[0])
        previous = self.window(10, meetings[1], closed[1])
        next_week, next_month = project_estimates(current, previous, ConfidenceLevel.MEDIUM, 31)

        message = build_projection_message(current, previous, next_week, next_month)

        assert message.startswith(expected + ', we estimate ')

    @pytest.mark.parametrize('closed, meetings, expected', [
        # Exactly +5% and -5% stay steady
        ((210, 200), (420, 400),
         'Based on current month performance (21.00 closed deals per day) (42.00 meetings per day)'),
        ((190, 200), (380, 400),
         'Based on current month performance (19.00 closed deals per day) (38.00 meetings per day)'),
    ])
    def test_five_percent_boundary_is_steady(self, closed, meetings, expected) -> None:
        current = self.window(10, meetings[0], closed[0])
        previous = self.window(10, meetings[1], closed[1])
        next_week, next_month = project_estimates(current, previous, ConfidenceLevel.MEDIUM, 31)

        message = build_projection_message(current, previous, next_week, next_month)

        assert message.startswith(expected + ', we estimate ')
        assert next_week.trendClosed == TrendDirection.STABLE
        assert next_week.trendMeetings == TrendDirection.STABLE
