"""
Reliability Gate and Percentile Threshold Engine

The reliability gate drops any aggregated group whose sample is too small to
trust before it can feed a derived statistic. The percentile engine derives
volume and conversion cut points from the surviving groups and classifies
outlier industries:

- Expansion opportunity: total <= lowVolume AND conversionRate >= highConversion
  (small but converting well; sorted by conversion rate, descending)
- Needs strategy: total >= highVolume AND conversionRate <= lowConversion
  (large but converting poorly; sorted by total, descending)

Threshold Derivation:
- Ascending arrays of group totals and conversion rates
- low/high thresholds are the values at index floor(n * p_low) / floor(n * p_high)
- Empty array fallbacks: volume -> median total; high conversion ->
  max(60, avg + adjustment); low conversion -> min(40, avg - adjustment)

Zero groups surviving the gate is a normal outcome: both lists are empty.
All functions here are pure and cannot fail on valid numeric input.
"""

import logging
import math
from typing import Dict, Iterable, List, Tuple

from meeting_insights.models.schemas import (
    DimensionGroup,
    IndustriesToWatch,
    IndustryStats,
    PercentileThresholds,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Policy Constants
# Overridable through Settings; changing them changes classification output.
# =============================================================================

# Minimum group total before a statistic derived from it is trusted
MIN_RELIABILITY_SAMPLE: int = 3

PERCENTILE_LOW: float = 0.33
PERCENTILE_HIGH: float = 0.67

# Floor / ceiling for the conversion fallback thresholds
HIGH_CONVERSION_MIN: float = 60.0
LOW_CONVERSION_MAX: float = 40.0

# Margin applied around the average conversion in fallbacks
CONVERSION_THRESHOLD_ADJUSTMENT: float = 5.0

# Size of each outlier list
TOP_N_OUTLIERS: int = 5


# =============================================================================
# Reliability Gate
# =============================================================================


def passes_reliability_gate(
    group: DimensionGroup,
    minimum: int = MIN_RELIABILITY_SAMPLE,
) -> bool:
    return group.total >= minimum


def apply_reliability_gate(
    groups: Iterable[DimensionGroup],
    minimum: int = MIN_RELIABILITY_SAMPLE,
) -> List[DimensionGroup]:
    """
    Keep only groups with at least `minimum` records, preserving order.

    Args:
        groups: Aggregated groups (any order)
        minimum: Minimum sample size, default MIN_RELIABILITY_SAMPLE

    Returns:
        Surviving groups in input order
    """
    return [group for group in groups if passes_reliability_gate(group, minimum)]


def gated_conversion_map(
    groups: Dict[str, DimensionGroup],
    minimum: int = MIN_RELIABILITY_SAMPLE,
) -> Dict[str, float]:
    """Map of value -> conversion rate for groups that pass the gate."""
    return {
        group.key: group.conversionRate
        for group in apply_reliability_gate(groups.values(), minimum)
    }


# =============================================================================
# Percentile Threshold Engine
# =============================================================================


def percentile_value(sorted_values: List[float], p: float, fallback: float) -> float:
    """
    Value at index floor(n * p) of an ascending array.

    Args:
        sorted_values: Values sorted ascending
        p: Percentile as a fraction in [0, 1)
        fallback: Returned when the array is empty

    Example:
        >>> percentile_value([1, 2, 3, 4, 5, 6], 0.33, 0)
        2
        >>> percentile_value([], 0.67, 10.0)
        10.0
    """
    if not sorted_values:
        return fallback
    index = min(int(math.floor(len(sorted_values) * p)), len(sorted_values) - 1)
    return sorted_values[index]


def median_total(groups: List[DimensionGroup]) -> float:
    """Median group total as sorted[n // 2]; 0 when there are no groups."""
    totals = sorted(group.total for group in groups)
    if not totals:
        return 0.0
    return float(totals[len(totals) // 2])


def compute_percentile_thresholds(
    groups: List[DimensionGroup],
    p_low: float = PERCENTILE_LOW,
    p_high: float = PERCENTILE_HIGH,
    adjustment: float = CONVERSION_THRESHOLD_ADJUSTMENT,
) -> PercentileThresholds:
    """
    Derive volume and conversion cut points from gated groups.

    Args:
        groups: Groups that already passed the reliability gate
        p_low: Low percentile split
        p_high: High percentile split
        adjustment: Margin around the average conversion for fallbacks

    Returns:
        PercentileThresholds with lowVolume <= highVolume and
        lowConversion <= highConversion for any non-empty input
    """
    volumes = sorted(float(group.total) for group in groups)
    conversions = sorted(group.conversionRate for group in groups)

    median_clients = median_total(groups)
    average_conversion = sum(conversions) / len(conversions) if conversions else 0.0

    high_conversion_fallback = max(HIGH_CONVERSION_MIN, average_conversion + adjustment)
    low_conversion_fallback = min(LOW_CONVERSION_MAX, average_conversion - adjustment)

    return PercentileThresholds(
        lowVolume=percentile_value(volumes, p_low, median_clients),
        highVolume=percentile_value(volumes, p_high, median_clients),
        lowConversion=percentile_value(conversions, p_low, low_conversion_fallback),
        highConversion=percentile_value(conversions, p_high, high_conversion_fallback),
        medianClients=median_clients,
        averageConversion=average_conversion,
    )


def classify_outlier_groups(
    groups: List[DimensionGroup],
    thresholds: PercentileThresholds,
    top_n: int = TOP_N_OUTLIERS,
) -> Tuple[List[DimensionGroup], List[DimensionGroup]]:
    """
    Split groups into expansion opportunities and strategy-needed groups.

    A group can appear in both lists when all thresholds coincide (a single
    surviving group, for example).

    Returns:
        Tuple of (opportunities by conversion desc, strategy by total desc),
        each truncated to top_n
    """
    opportunities = [
        group for group in groups
        if group.total <= thresholds.lowVolume
        and group.conversionRate >= thresholds.highConversion
    ]
    needs_strategy = [
        group for group in groups
        if group.total >= thresholds.highVolume
        and group.conversionRate <= thresholds.lowConversion
    ]

    opportunities.sort(key=lambda group: group.conversionRate, reverse=True)
    needs_strategy.sort(key=lambda group: group.total, reverse=True)

    return opportunities[:top_n], needs_strategy[:top_n]


def _industry_stats(group: DimensionGroup) -> IndustryStats:
    return IndustryStats(
        industry=group.key,
        clients=group.total,
        closed=group.closed,
        conversionRate=group.conversionRate,
    )


def find_industries_to_watch(
    groups: Dict[str, DimensionGroup],
    minimum: int = MIN_RELIABILITY_SAMPLE,
    p_low: float = PERCENTILE_LOW,
    p_high: float = PERCENTILE_HIGH,
    adjustment: float = CONVERSION_THRESHOLD_ADJUSTMENT,
    top_n: int = TOP_N_OUTLIERS,
) -> IndustriesToWatch:
    """
    Gate industry groups, derive thresholds and classify outliers.

    Args:
        groups: Industry groups from aggregate_by_dimension
        minimum: Reliability gate minimum
        p_low / p_high: Percentile splits
        adjustment: Conversion fallback margin
        top_n: Size of each output list

    Returns:
        IndustriesToWatch; both lists empty (and thresholds None) when no
        group survives the gate
    """
    reliable = apply_reliability_gate(groups.values(), minimum)

    if not reliable:
        logger.warning(
            f"No industries with at least {minimum} clients; "
            f"skipping outlier classification ({len(groups)} groups total)"
        )
        return IndustriesToWatch()

    thresholds = compute_percentile_thresholds(reliable, p_low, p_high, adjustment)
    logger.debug(
        f"Industry thresholds: volume {thresholds.lowVolume}-{thresholds.highVolume}, "
        f"conversion {thresholds.lowConversion}-{thresholds.highConversion}, "
        f"median clients {thresholds.medianClients}"
    )

    opportunities, needs_strategy = classify_outlier_groups(reliable, thresholds, top_n)
    logger.debug(
        f"Classified {len(reliable)} reliable industries: "
        f"{len(opportunities)} opportunities, {len(needs_strategy)} needing strategy"
    )

    return IndustriesToWatch(
        expansionOpportunities=[_industry_stats(group) for group in opportunities],
        needsStrategy=[_industry_stats(group) for group in needs_strategy],
        thresholds=thresholds,
    )

