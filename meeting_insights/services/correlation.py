"""
Correlation Analyzer Service

Cross-tabulates each seller's performance against every other dimension and
keeps only the statistically meaningful combinations.

Algorithm:
1. Baseline: overall conversion rate per dimension value across all records,
   with the reliability gate applied (values below the minimum sample have
   no baseline and count as 0).
2. Per seller (sorted by name): the seller's own conversion rate
   (sellerAvgConversion, ungated and unrounded for the relevance test) and
   the seller's per-value breakdown, gated again at the seller level.
3. A CorrelationEntry is emitted when the seller-level group passes the gate
   AND at least one relevance criterion holds:
       successRate >= 70
       successRate >  sellerAvgConversion + 15
       successRate >  overallAvg + 2 * adjustment   (+10 by default)

Entries are emitted seller by seller, dimension by dimension, in
CORRELATION_DIMENSIONS order, values in first-seen order.
"""

import logging
from typing import Dict, List, Optional

from meeting_insights.models.enums import Dimension
from meeting_insights.models.schemas import CorrelationEntry, MeetingRecord
from meeting_insights.services.aggregation import (
    DECIMAL_PLACES,
    aggregate_by_dimension,
    round_half_up,
)
from meeting_insights.services.reliability import (
    CONVERSION_THRESHOLD_ADJUSTMENT,
    MIN_RELIABILITY_SAMPLE,
    gated_conversion_map,
    passes_reliability_gate,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Relevance Policy
# Named and overridable through Settings.
# =============================================================================

# Dimensions a seller is cross-tabulated against, in output order
CORRELATION_DIMENSIONS: List[Dimension] = [
    Dimension.INDUSTRY,
    Dimension.OPERATION_SIZE,
    Dimension.URGENCY_LEVEL,
    Dimension.SENTIMENT,
    Dimension.DISCOVERY_SOURCE,
]

# A success rate at or above this is always relevant
ABSOLUTE_SUCCESS_THRESHOLD: float = 70.0

# Margin over the seller's own average conversion
SELF_MARGIN: float = 15.0

# Number of correlations per seller handed to the narrator
TOP_CORRELATIONS_PER_SELLER: int = 3


def sellers_in(records: List[MeetingRecord]) -> List[str]:
    """Sorted unique seller names; records without a seller are ignored."""
    return sorted({record.seller for record in records if record.seller})


def compute_overall_averages(
    records: List[MeetingRecord],
    dimensions: List[Dimension] = CORRELATION_DIMENSIONS,
    minimum: int = MIN_RELIABILITY_SAMPLE,
) -> Dict[Dimension, Dict[str, float]]:
    """
    Baseline conversion rate per dimension value.

    Returns:
        {dimension: {value: conversionRate}} holding only gated values
    """
    return {
        dimension: gated_conversion_map(aggregate_by_dimension(records, dimension), minimum)
        for dimension in dimensions
    }


def is_relevant(
    success_rate: float,
    seller_average: float,
    overall_average: float,
    adjustment: float = CONVERSION_THRESHOLD_ADJUSTMENT,
    absolute_threshold: float = ABSOLUTE_SUCCESS_THRESHOLD,
    self_margin: float = SELF_MARGIN,
) -> bool:
    """
    Multi-criteria relevance test.

    Args:
        success_rate: Seller's rounded conversion for one dimension value
        seller_average: Seller's unrounded overall conversion
        overall_average: Baseline conversion for the value (0 if ungated)
        adjustment: Base margin; the baseline margin is twice this
        absolute_threshold: Success rate that is always relevant
        self_margin: Margin over the seller's own average

    Returns:
        True if any criterion holds
    """
    return (
        success_rate >= absolute_threshold
        or success_rate > seller_average + self_margin
        or success_rate > overall_average + adjustment * 2
    )


def analyze_seller_correlations(
    records: List[MeetingRecord],
    minimum: int = MIN_RELIABILITY_SAMPLE,
    adjustment: float = CONVERSION_THRESHOLD_ADJUSTMENT,
    absolute_threshold: float = ABSOLUTE_SUCCESS_THRESHOLD,
    self_margin: float = SELF_MARGIN,
    dimensions: Optional[List[Dimension]] = None,
) -> List[CorrelationEntry]:
    """
    Find relevant seller/dimension-value correlations.

    Args:
        records: Processed record snapshot
        minimum: Reliability gate minimum, applied to baseline and seller groups
        adjustment: Conversion threshold adjustment
        absolute_threshold: Absolute success-rate criterion
        self_margin: Relative-to-self criterion margin
        dimensions: Dimensions to cross-tabulate, default CORRELATION_DIMENSIONS

    Returns:
        List of CorrelationEntry; every entry has total >= minimum

    Example:
        >>> entries = analyze_seller_correlations(records)
        >>> entries[0].seller, entries[0].dimension, entries[0].value
        ('Boa', <Dimension.INDUSTRY: 'industry'>, 'Tech')
    """
    dimensions = dimensions or CORRELATION_DIMENSIONS
    overall = compute_overall_averages(records, dimensions, minimum)

    correlations: List[CorrelationEntry] = []

    for seller in sellers_in(records):
        seller_records = [record for record in records if record.seller == seller]
        seller_closed = sum(1 for record in seller_records if record.closed)
        seller_average = seller_closed / len(seller_records) * 100

        for dimension in dimensions:
            baseline = overall[dimension]

            for value, group in aggregate_by_dimension(seller_records, dimension).items():
                if not passes_reliability_gate(group, minimum):
                    continue

                overall_average = baseline.get(value, 0.0)
                if not is_relevant(
                    group.conversionRate,
                    seller_average,
                    overall_average,
                    adjustment,
                    absolute_threshold,
                    self_margin,
                ):
                    continue

                correlations.append(CorrelationEntry(
                    seller=seller,
                    dimension=dimension,
                    value=value,
                    total=group.total,
                    closed=group.closed,
                    successRate=group.conversionRate,
                    sellerAvgConversion=round_half_up(seller_average, DECIMAL_PLACES),
                    overallAvg=round_half_up(overall_average, DECIMAL_PLACES),
                    performanceVsAvg=round_half_up(
                        group.conversionRate - overall_average, DECIMAL_PLACES
                    ),
                ))

    logger.debug(f"Found {len(correlations)} relevant seller correlations")
    return correlations


def top_correlations_by_seller(
    correlations: List[CorrelationEntry],
    sellers: List[str],
    top_n: int = TOP_CORRELATIONS_PER_SELLER,
) -> Dict[str, List[CorrelationEntry]]:
    """
    Per seller, the top-N correlations by success rate.

    Every seller in `sellers` gets a key; sellers with no correlations map
    to an empty list.
    """
    grouped: Dict[str, List[CorrelationEntry]] = {seller: [] for seller in sellers}
    for entry in correlations:
        grouped.setdefault(entry.seller, []).append(entry)

    return {
        seller: sorted(entries, key=lambda entry: entry.successRate, reverse=True)[:top_n]
        for seller, entries in grouped.items()
    }
