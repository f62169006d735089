"""
Tests for the reliability gate and the percentile threshold engine.

Test Categories:
- TestReliabilityGate: minimum-sample filtering
- TestPercentileThresholds: index rule, fallbacks, ordering property
- TestOutlierClassification: opportunities vs needs-strategy lists
- TestIndustriesToWatch: end-to-end over aggregated industry groups
"""

import logging
import random
from typing import List

import pytest

from meeting_insights.models import Dimension, DimensionGroup
from meeting_insights.services.aggregation import aggregate_by_dimension, conversion_rate
from meeting_insights.services.reliability import (
    apply_reliability_gate,
    classify_outlier_groups,
    compute_percentile_thresholds,
    find_industries_to_watch,
    gated_conversion_map,
    median_total,
    passes_reliability_gate,
    percentile_value,
)
from meeting_insights.tests.conftest import make_record


def group(key: str, total: int, closed: int) -> DimensionGroup:
    return DimensionGroup(
        key=key, total=total, closed=closed, conversionRate=conversion_rate(closed, total)
    )


@pytest.fixture
def industry_groups() -> List[DimensionGroup]:
    """Six gated industries with a clear small/high and large/low split."""
    return [
        group('Alpha', 3, 3),    # 100%
        group('Beta', 4, 1),     # 25%
        group('Gamma', 10, 2),   # 20%
        group('Delta', 6, 3),    # 50%
        group('Epsilon', 20, 4), # 20%
        group('Zeta', 5, 4),     # 80%
    ]


class TestReliabilityGate:
    """Groups below the minimum sample never reach derived statistics."""

    def test_boundary(self) -> None:
        assert passes_reliability_gate(group('A', 3, 0))
        assert not passes_reliability_gate(group('A', 2, 2))

    def test_custom_minimum(self) -> None:
        groups = [group('A', 4, 1), group('B', 5, 1)]

        assert [g.key for g in apply_reliability_gate(groups, minimum=5)] == ['B']

    def test_preserves_order(self) -> None:
        groups = [group('Z', 3, 1), group('small', 1, 1), group('A', 7, 1)]

        assert [g.key for g in apply_reliability_gate(groups)] == ['Z', 'A']

    def test_gated_conversion_map(self) -> None:
        groups = {'A': group('A', 3, 1), 'B': group('B', 2, 2)}

        assert gated_conversion_map(groups) == {'A': 33.33}


class TestPercentileThresholds:
    """Thresholds at floor(n * p) with documented fallbacks."""

    def test_percentile_index(self) -> None:
        assert percentile_value([1, 2, 3, 4, 5, 6], 0.33, 0) == 2
        assert percentile_value([1, 2, 3, 4, 5, 6], 0.67, 0) == 5
        assert percentile_value([7], 0.67, 0) == 7

    def test_median_total(self, industry_groups) -> None:
        # sorted totals [3, 4, 5, 6, 10, 20]; index 3
        assert median_total(industry_groups) == 6.0
        assert median_total([]) == 0.0

    @pytest.mark.parity
    def test_thresholds(self, industry_groups) -> None:
        thresholds = compute_percentile_thresholds(industry_groups)

        assert thresholds.lowVolume == 4
        assert thresholds.highVolume == 10
        assert thresholds.lowConversion == 20.0
        assert thresholds.highConversion == 80.0

    def test_empty_fallbacks(self) -> None:
        thresholds = compute_percentile_thresholds([])

        assert thresholds.lowVolume == 0.0
        assert thresholds.highVolume == 0.0
        assert thresholds.highConversion == 60.0
        assert thresholds.lowConversion == -5.0

    def test_low_never_exceeds_high(self) -> None:
        rng = random.Random(11)
        for _ in range(50):
            groups = []
            for index in range(rng.randint(1, 12)):
                total = rng.randint(3, 40)
                groups.append(group(f'G{index}', total, rng.randint(0, total)))

            thresholds = compute_percentile_thresholds(groups)

            assert thresholds.lowVolume <= thresholds.highVolume
            assert thresholds.lowConversion <= thresholds.highConversion


class TestOutlierClassification:
    """Expansion opportunities and industries needing strategy."""

    @pytest.mark.parity
    def test_classification(self, industry_groups) -> None:
        thresholds = compute_percentile_thresholds(industry_groups)

        opportunities, needs_strategy = classify_outlier_groups(industry_groups, thresholds)

        assert [g.key for g in opportunities] == ['Alpha']
        assert [g.key for g in needs_strategy] == ['Epsilon', 'Gamma']

    def test_truncated_to_top_n(self) -> None:
        groups = [group(f'G{i}', 3, 3) for i in range(8)]
        thresholds = compute_percentile_thresholds(groups)

        opportunities, _ = classify_outlier_groups(groups, thresholds, top_n=5)

        assert len(opportunities) == 5

    def test_single_group_of_three(self) -> None:
        only = [group('Solo', 3, 1)]
        thresholds = compute_percentile_thresholds(only)

        opportunities, needs_strategy = classify_outlier_groups(only, thresholds)

        assert thresholds.lowVolume == thresholds.highVolume == 3
        assert [g.key for g in opportunities] == ['Solo']
        assert [g.key for g in needs_strategy] == ['Solo']


class TestIndustriesToWatch:
    """Gate, thresholds and classification over industry groups."""

    def test_nothing_survives_gate(self, caplog) -> None:
        records = [make_record(industry='Tech'), make_record(industry='Tech')]
        groups = aggregate_by_dimension(records, Dimension.INDUSTRY)

        with caplog.at_level(logging.WARNING):
            result = find_industries_to_watch(groups)

        assert result.expansionOpportunities == []
        assert result.needsStrategy == []
        assert result.thresholds is None
        assert 'No industries with at least 3 clients' in caplog.text

    def test_small_groups_do_not_feed_thresholds(self, industry_groups) -> None:
        groups = {g.key: g for g in industry_groups}
        groups['Tiny'] = group('Tiny', 1, 1)

        result = find_industries_to_watch(groups)

        assert [row.industry for row in result.expansionOpportunities] == ['Alpha']
        assert [row.industry for row in result.needsStrategy] == ['Epsilon', 'Gamma']
        assert result.thresholds.lowVolume == 4
