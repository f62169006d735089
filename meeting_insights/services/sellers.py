"""
Seller Performance Service

Descriptive seller metrics built on the dimension aggregator.

Key Components:
- compute_seller_metrics: Per-seller totals ranked by conversion rate
- generate_seller_insights: Month-over-month closed-deal swings of at least
  15% and atypical low-urgency wins
- find_seller_of_week: Monday-started week podium by closed deals
- rank_sellers_for_year: Current-year closed/total per seller
- build_sellers_timeline: Closed deals per seller by week or month, zero filled

Insight messages round percentages half-up, so a 62.5% swing reads "63%".

Example:
    >>> insights = generate_seller_insights(records, today=date(2024, 11, 15))
    >>> insights[0].message
    'Ana increased conversions by 50% compared to last month'

Note:
    All time windows are relative to the `today` argument supplied by the
    caller's clock; nothing here reads the system date.
"""

import logging
from datetime import date, timedelta
from typing import Dict, List, Optional

from meeting_insights.models.enums import Dimension, InsightType, TimelineGranularity
from meeting_insights.models.schemas import (
    AnnualRanking,
    MeetingRecord,
    SellerInsight,
    SellerMetrics,
    SellerOfWeek,
    SellerRanking,
    SellersTimeline,
    SellersTimelinePoint,
)
from meeting_insights.services.aggregation import (
    aggregate_by_dimension,
    conversion_rate,
    format_fixed,
    month_key,
    month_start,
    round_half_up,
    week_key,
)
from meeting_insights.services.reliability import MIN_RELIABILITY_SAMPLE

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

# Month-over-month closed-deal change (percent) worth reporting
SIGNIFICANT_CHANGE_PERCENT: float = 15.0

TOP_SELLERS: int = 3

EXPLORATORY_URGENCY: str = "exploratory"


def compute_seller_metrics(records: List[MeetingRecord]) -> List[SellerMetrics]:
    """Per-seller totals sorted by conversion rate, best first."""
    groups = aggregate_by_dimension(records, Dimension.SELLER)
    metrics = [
        SellerMetrics(
            seller=group.key,
            total=group.total,
            closed=group.closed,
            conversionRate=group.conversionRate,
        )
        for group in groups.values()
    ]
    metrics.sort(key=lambda row: row.conversionRate, reverse=True)
    return metrics


def generate_seller_insights(
    records: List[MeetingRecord],
    today: date,
    minimum: int = MIN_RELIABILITY_SAMPLE,
) -> List[SellerInsight]:
    """
    Month-over-month observations per seller.

    - Closed deals changed by at least 15% vs last month (only when last
      month had closes): positive or negative 'conversions' insight.
    - At least `minimum` exploratory-urgency deals closed this month:
      neutral 'urgency' insight.

    Args:
        records: All records covering last month and this month
        today: Current date from the clock
        minimum: Threshold for the low-urgency pattern

    Returns:
        Insights in seller first-seen order (this month, then last month)
    """
    current_start = month_start(today)
    last_start = month_start(today, 1)

    current = [record for record in records if record.meetingDate >= current_start]
    last = [record for record in records if last_start <= record.meetingDate < current_start]

    sellers = list(dict.fromkeys(
        record.seller for record in current + last if record.seller
    ))

    insights: List[SellerInsight] = []

    for seller in sellers:
        current_closed = sum(1 for record in current if record.seller == seller and record.closed)
        last_closed = sum(1 for record in last if record.seller == seller and record.closed)

        if last_closed > 0:
            change = (current_closed - last_closed) / last_closed * 100
            if abs(change) >= SIGNIFICANT_CHANGE_PERCENT:
                direction = "increased" if change > 0 else "decreased"
                insights.append(SellerInsight(
                    seller=seller,
                    type=InsightType.POSITIVE if change > 0 else InsightType.NEGATIVE,
                    metric="conversions",
                    message=(
                        f"{seller} {direction} conversions by {format_fixed(abs(change), 0)}% "
                        f"compared to last month"
                    ),
                    change=round_half_up(change),
                ))

        low_urgency_closed = sum(
            1 for record in current
            if record.seller == seller
            and record.closed
            and record.urgencyLevel == EXPLORATORY_URGENCY
        )
        if low_urgency_closed >= minimum:
            insights.append(SellerInsight(
                seller=seller,
                type=InsightType.NEUTRAL,
                metric="urgency",
                message=(
                    f"{seller} closed {low_urgency_closed} deals with low urgency "
                    f"clients (atypical pattern)"
                ),
                change=0.0,
            ))

    return insights


def _rankings(records: List[MeetingRecord]) -> List[SellerRanking]:
    groups = aggregate_by_dimension(records, Dimension.SELLER)
    rankings = [
        SellerRanking(
            seller=group.key,
            closed=group.closed,
            total=group.total,
            conversionRate=group.conversionRate,
        )
        for group in groups.values()
    ]
    rankings.sort(key=lambda row: row.closed, reverse=True)
    return rankings


def find_seller_of_week(
    records: List[MeetingRecord],
    today: date,
    week_start: Optional[date] = None,
    top_n: int = TOP_SELLERS,
) -> SellerOfWeek:
    """
    Top sellers by closed deals within one Monday-to-Sunday week.

    Args:
        records: Record snapshot
        today: Current date; the week containing it is used by default
        week_start: Explicit start of the week to rank
        top_n: Podium size
    """
    start = week_start or today - timedelta(days=today.weekday())
    end = start + timedelta(days=6)

    in_week = [record for record in records if start <= record.meetingDate <= end]
    podium = _rankings(in_week)[:top_n]

    return SellerOfWeek(weekStart=start, weekEnd=end, podium=podium)


def rank_sellers_for_year(
    records: List[MeetingRecord],
    year: int,
) -> AnnualRanking:
    """
    Sellers with at least one closed deal in `year`, by closed deals.

    total counts all of the seller's meetings in the year.
    """
    in_year = [record for record in records if record.meetingDate.year == year]
    closers = {record.seller for record in in_year if record.closed and record.seller}
    rankings = [row for row in _rankings(in_year) if row.seller in closers]

    return AnnualRanking(year=year, rankings=rankings)


def build_sellers_timeline(
    records: List[MeetingRecord],
    granularity: TimelineGranularity = TimelineGranularity.WEEK,
) -> SellersTimeline:
    """
    Closed deals per seller per period.

    Every period lists every seller that ever closed, zero-filled. Periods
    are sorted chronologically by key.
    """
    closed = sorted(
        (record for record in records if record.closed and record.seller),
        key=lambda record: record.meetingDate,
    )
    sellers = list(dict.fromkeys(record.seller for record in closed))
    period_of = week_key if granularity == TimelineGranularity.WEEK else month_key

    grouped: Dict[str, Dict[str, int]] = {}
    for record in closed:
        period = period_of(record.meetingDate)
        if period not in grouped:
            grouped[period] = {seller: 0 for seller in sellers}
        grouped[period][record.seller] += 1

    points = [
        SellersTimelinePoint(period=period, closedBySeller=counts)
        for period, counts in sorted(grouped.items())
    ]

    return SellersTimeline(granularity=granularity, sellers=sellers, points=points)


def seller_conversion(records: List[MeetingRecord], seller: str) -> Optional[SellerMetrics]:
    """Metrics for one seller, or None if the seller has no records."""
    own = [record for record in records if record.seller == seller]
    if not own:
        return None
    closed = sum(1 for record in own if record.closed)
    return SellerMetrics(
        seller=seller,
        total=len(own),
        closed=closed,
        conversionRate=conversion_rate(closed, len(own)),
    )
