"""
Tests for trend classification and its helpers.
"""

import pytest

from meeting_insights.models import TrendDirection
from meeting_insights.services.trends import (
    classify_trend,
    mean,
    percent_direction,
    split_halves,
    trend_multiplier,
    trend_percentage,
)


class TestClassifyTrend:
    """Relative-change classification with asymmetric zero-baseline handling."""

    def test_zero_baseline_with_growth_is_increasing(self) -> None:
        assert classify_trend(5, 0) == TrendDirection.INCREASING
        assert classify_trend(0.01, 0) == TrendDirection.INCREASING

    def test_zero_to_zero_is_neutral(self) -> None:
        assert classify_trend(0, 0) == TrendDirection.NEUTRAL

    @pytest.mark.parametrize('x', [0.5, 1, 3, 250])
    def test_positive_over_zero_never_neutral(self, x: float) -> None:
        assert classify_trend(x, 0) == TrendDirection.INCREASING

    def test_thresholds_are_exclusive(self) -> None:
        assert classify_trend(111, 100) == TrendDirection.INCREASING
        assert classify_trend(110, 100) == TrendDirection.STABLE
        assert classify_trend(90, 100) == TrendDirection.STABLE
        assert classify_trend(89, 100) == TrendDirection.DECREASING

    def test_drop_to_zero_is_decreasing(self) -> None:
        assert classify_trend(0, 4) == TrendDirection.DECREASING

    def test_custom_threshold(self) -> None:
        assert classify_trend(106, 100, threshold=0.05) == TrendDirection.INCREASING
        assert classify_trend(106, 100) == TrendDirection.STABLE


class TestTrendHelpers:
    """Percentages, multipliers and series helpers."""

    def test_trend_percentage(self) -> None:
        assert trend_percentage(15, 10) == 50.0
        assert trend_percentage(3, 0) == 100.0
        assert trend_percentage(0, 0) == 0.0
        assert trend_percentage(0, 8) == -100.0

    def test_percent_direction(self) -> None:
        assert percent_direction(5.1) == TrendDirection.INCREASING
        assert percent_direction(5.0) == TrendDirection.STABLE
        assert percent_direction(-7) == TrendDirection.DECREASING

    def test_multipliers(self) -> None:
        assert trend_multiplier(TrendDirection.INCREASING) == 1.05
        assert trend_multiplier(TrendDirection.DECREASING) == 0.95
        assert trend_multiplier(TrendDirection.STABLE) == 1.0
        assert trend_multiplier(TrendDirection.NEUTRAL) == 1.0

    def test_mean(self) -> None:
        assert mean([]) == 0.0
        assert mean([1, 2, 6]) == 3.0
        assert mean((0.5, 1.5)) == 1.0
        assert type(mean([2, 4])) is float

    def test_split_halves_first_half_takes_extra(self) -> None:
        assert split_halves([1, 2, 3]) == [[1, 2], [3]]
        assert split_halves([1, 2, 3, 4]) == [[1, 2], [3, 4]]
        assert split_halves([5]) == [[5], []]
