"""
Dimension Aggregator Service

Groups meeting records by a categorical dimension and computes total count,
closed count and conversion rate per group. Every other analytics service
builds on these groups.

Key rules:
- Records whose dimension value is missing (None or empty) are excluded from
  the group set entirely; there is no null bucket.
- Groups keep first-seen insertion order; rankings that sort on top of them
  use stable sorts so ties keep that order.
- conversion_rate() is only defined for total > 0; callers never build a
  group for zero records.

Rounding reproduces the dashboard's fixed-decimal formatting: half-up on the
exact binary value of the float (round() would use banker's rounding).

Also provides the descriptive views built directly on groups: overview
metrics, conversion analysis across all dimensions, the industries ranking
with averaged sentiment/urgency labels, new industries last month,
volume-vs-conversion ranges, the per-day timeline and the top pain points
and technical requirements.
"""

import calendar
import logging
import math
import re
from collections import Counter
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from meeting_insights.models.enums import Dimension, SentimentLabel, UrgencyLabel
from meeting_insights.models.schemas import (
    ConversionAnalysis,
    DimensionGroup,
    IndustryRanking,
    IndustryStats,
    MeetingRecord,
    NewIndustriesLastMonth,
    OverviewMetrics,
    PainPointStats,
    TechnicalRequirementCount,
    TimelineMetric,
    VolumeConversionBucket,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DECIMAL_PLACES: int = 2

# Numeric scores used to average sentiment / urgency within an industry.
# Unknown labels score as the neutral middle value.
SENTIMENT_SCORES: Dict[str, int] = {"positive": 3, "neutral": 2, "skeptical": 1}
URGENCY_SCORES: Dict[str, int] = {"immediate": 3, "planned": 2, "exploratory": 1}
NEUTRAL_SCORE: int = 2

# avg >= HIGH_LABEL_THRESHOLD -> positive / immediate
# avg <= LOW_LABEL_THRESHOLD  -> skeptical / exploratory
HIGH_LABEL_THRESHOLD: float = 2.5
LOW_LABEL_THRESHOLD: float = 1.5

# (label, low, next_low): low <= interactionVolume < next_low, so 50.5 counts as "0-50"
VOLUME_RANGES: List[Tuple[str, float, float]] = [
    ("0-50", 0, 51),
    ("51-100", 51, 101),
    ("101-200", 101, 201),
    ("201-300", 201, 301),
    ("300+", 301, math.inf),
]

RecordPredicate = Callable[[MeetingRecord], bool]


# =============================================================================
# Rounding Helpers
# =============================================================================


def round_half_up(value: float, places: int = DECIMAL_PLACES) -> float:
    """
    Round to a fixed number of decimals, ties away from zero.

    Example:
        >>> round_half_up(0.125)
        0.13
        >>> round_half_up(200 / 3)
        66.67
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def round_to_int(value: float) -> int:
    """Round to the nearest integer with .5 going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def format_fixed(value: float, places: int) -> str:
    """Fixed-decimal string with half-up rounding, e.g. format_fixed(12.345, 1) == '12.3'."""
    quantum = Decimal(1).scaleb(-places)
    return str(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


# =============================================================================
# Dimension Extraction
# =============================================================================

DIMENSION_EXTRACTORS: Dict[Dimension, Callable[[MeetingRecord], Optional[str]]] = {
    Dimension.SELLER: lambda record: record.seller,
    Dimension.INDUSTRY: lambda record: record.industry,
    Dimension.SENTIMENT: lambda record: record.sentiment,
    Dimension.URGENCY_LEVEL: lambda record: record.urgencyLevel,
    Dimension.DISCOVERY_SOURCE: lambda record: record.discoverySource,
    Dimension.OPERATION_SIZE: lambda record: record.operationSize,
}


def extract_dimension(record: MeetingRecord, dimension: Dimension) -> Optional[str]:
    """Return the record's value for a dimension, or None when missing or empty."""
    value = DIMENSION_EXTRACTORS[dimension](record)
    return value if value else None


# =============================================================================
# Aggregation
# =============================================================================


def conversion_rate(closed: int, total: int, places: int = DECIMAL_PLACES) -> float:
    """
    closed / total * 100, rounded half-up.

    Undefined for total == 0; callers filter empty groups first.
    """
    return round_half_up(closed / total * 100, places)


def aggregate_by_dimension(
    records: Iterable[MeetingRecord],
    dimension: Dimension,
    predicate: Optional[RecordPredicate] = None,
) -> Dict[str, DimensionGroup]:
    """
    Group records by a dimension value.

    Args:
        records: Record snapshot
        dimension: Dimension to group by
        predicate: Optional filter applied before grouping,
            e.g. ``lambda r: r.processed``

    Returns:
        Insertion-ordered mapping of dimension value to DimensionGroup.
        Records without a value for the dimension are skipped.

    Example:
        >>> groups = aggregate_by_dimension(records, Dimension.INDUSTRY)
        >>> groups["Tech"].conversionRate
        66.67
    """
    totals: Dict[str, int] = {}
    closed_counts: Dict[str, int] = {}

    for record in records:
        if predicate is not None and not predicate(record):
            continue
        key = extract_dimension(record, dimension)
        if key is None:
            continue
        totals[key] = totals.get(key, 0) + 1
        closed_counts[key] = closed_counts.get(key, 0) + (1 if record.closed else 0)

    return {
        key: DimensionGroup(
            key=key,
            total=total,
            closed=closed_counts[key],
            conversionRate=conversion_rate(closed_counts[key], total),
        )
        for key, total in totals.items()
    }


def groups_by_volume(groups: Dict[str, DimensionGroup]) -> List[DimensionGroup]:
    """Groups sorted by total, descending; ties keep insertion order."""
    return sorted(groups.values(), key=lambda group: group.total, reverse=True)


def is_processed(record: MeetingRecord) -> bool:
    return record.processed


# =============================================================================
# Descriptive Views
# =============================================================================


def build_overview(records: List[MeetingRecord]) -> OverviewMetrics:
    total = len(records)
    closed = sum(1 for record in records if record.closed)
    processed = sum(1 for record in records if record.processed)

    return OverviewMetrics(
        totalClients=total,
        closedDeals=closed,
        openDeals=total - closed,
        processedClients=processed,
        conversionRate=conversion_rate(closed, total) if total > 0 else 0.0,
    )


def build_conversion_analysis(records: List[MeetingRecord]) -> ConversionAnalysis:
    """
    Conversion groups for every dimension over processed records.

    Each list is ordered by group size, largest first.
    """
    def ranked(dimension: Dimension) -> List[DimensionGroup]:
        return groups_by_volume(aggregate_by_dimension(records, dimension, is_processed))

    return ConversionAnalysis(
        byIndustry=ranked(Dimension.INDUSTRY),
        bySentiment=ranked(Dimension.SENTIMENT),
        byUrgency=ranked(Dimension.URGENCY_LEVEL),
        byDiscoverySource=ranked(Dimension.DISCOVERY_SOURCE),
        byOperationSize=ranked(Dimension.OPERATION_SIZE),
        bySeller=ranked(Dimension.SELLER),
    )


def _average_score(labels: List[str], scores: Dict[str, int]) -> float:
    if not labels:
        return float(NEUTRAL_SCORE)
    return sum(scores.get(label, NEUTRAL_SCORE) for label in labels) / len(labels)


def sentiment_label(sentiments: List[str]) -> SentimentLabel:
    """Average sentiment label; an empty list is neutral."""
    average = _average_score(sentiments, SENTIMENT_SCORES)
    if average >= HIGH_LABEL_THRESHOLD:
        return SentimentLabel.POSITIVE
    if average <= LOW_LABEL_THRESHOLD:
        return SentimentLabel.SKEPTICAL
    return SentimentLabel.NEUTRAL


def urgency_label(urgencies: List[str]) -> UrgencyLabel:
    """Average urgency label; an empty list is planned."""
    average = _average_score(urgencies, URGENCY_SCORES)
    if average >= HIGH_LABEL_THRESHOLD:
        return UrgencyLabel.IMMEDIATE
    if average <= LOW_LABEL_THRESHOLD:
        return UrgencyLabel.EXPLORATORY
    return UrgencyLabel.PLANNED


def rank_industries(records: List[MeetingRecord]) -> List[IndustryRanking]:
    """
    Rank industries of processed records by client count.

    Each row carries the industry's conversion rate plus the labels of its
    average sentiment and urgency.

    Example:
        Two closed and one open "Tech" record rank as
        {industry: "Tech", clients: 3, closed: 2, conversionRate: 66.67}.
    """
    processed = [record for record in records if record.processed and record.industry]
    groups = aggregate_by_dimension(processed, Dimension.INDUSTRY)

    sentiments: Dict[str, List[str]] = {key: [] for key in groups}
    urgencies: Dict[str, List[str]] = {key: [] for key in groups}
    for record in processed:
        if record.sentiment:
            sentiments[record.industry].append(record.sentiment)
        if record.urgencyLevel:
            urgencies[record.industry].append(record.urgencyLevel)

    ranking = [
        IndustryRanking(
            industry=group.key,
            clients=group.total,
            closed=group.closed,
            conversionRate=group.conversionRate,
            averageSentiment=sentiment_label(sentiments[group.key]),
            averageUrgency=urgency_label(urgencies[group.key]),
        )
        for group in groups.values()
    ]
    ranking.sort(key=lambda row: row.clients, reverse=True)

    return ranking


def month_start(day: date, months_back: int = 0) -> date:
    """First day of the month `months_back` months before `day`'s month."""
    month_index = day.year * 12 + (day.month - 1) - months_back
    return date(month_index // 12, month_index % 12 + 1, 1)


def find_new_industries_last_month(
    records: List[MeetingRecord],
    today: date,
) -> NewIndustriesLastMonth:
    """
    Industries whose first processed meeting falls in the previous month.

    The window is [first of last month, first of this month). An industry
    seen at any earlier date is not new.
    """
    window_start = month_start(today, 1)
    window_end = month_start(today)

    processed = [record for record in records if record.processed and record.industry]
    seen_before = {record.industry for record in processed if record.meetingDate < window_start}
    last_month = [
        record for record in processed
        if window_start <= record.meetingDate < window_end
        and record.industry not in seen_before
    ]

    groups = aggregate_by_dimension(last_month, Dimension.INDUSTRY)
    industries = [
        IndustryStats(
            industry=group.key,
            clients=group.total,
            closed=group.closed,
            conversionRate=group.conversionRate,
        )
        for group in groups_by_volume(groups)
    ]

    month_label = f"{calendar.month_name[window_start.month]} {window_start.year}"
    logger.debug(f"Found {len(industries)} new industries in {month_label}")

    return NewIndustriesLastMonth(month=month_label, industries=industries)


def volume_vs_conversion(records: List[MeetingRecord]) -> List[VolumeConversionBucket]:
    """Conversion per interaction-volume range for processed records with a volume."""
    volumes = [
        record for record in records
        if record.processed and record.interactionVolume is not None
    ]

    buckets = []
    for label, low, next_low in VOLUME_RANGES:
        in_range = [record for record in volumes if low <= record.interactionVolume < next_low]
        closed = sum(1 for record in in_range if record.closed)
        count = len(in_range)
        buckets.append(VolumeConversionBucket(
            volumeRange=label,
            count=count,
            closed=closed,
            conversionRate=conversion_rate(closed, count) if count > 0 else 0.0,
        ))

    return buckets


def daily_timeline(records: List[MeetingRecord]) -> List[TimelineMetric]:
    """Meetings and closed deals per calendar day, oldest first."""
    totals: Counter = Counter(record.meetingDate for record in records)
    closed: Counter = Counter(record.meetingDate for record in records if record.closed)

    return [
        TimelineMetric(date=day, total=totals[day], closed=closed[day])
        for day in sorted(totals)
    ]


# =============================================================================
# Pain Points and Technical Requirements
# =============================================================================

TOP_PAIN_POINTS: int = 10
TOP_TECHNICAL_REQUIREMENTS: int = 10

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[^\w\s]")


def normalize_pain_point(text: str) -> str:
    """
    Matching key for a pain point: lowercased, single-spaced, punctuation dropped.

    Example:
        >>> normalize_pain_point("  Slow   response times! ")
        'slow response times'
    """
    collapsed = _WHITESPACE.sub(" ", text.strip().lower())
    return _PUNCTUATION.sub("", collapsed).strip()


def top_pain_points(
    records: Iterable[MeetingRecord],
    limit: int = TOP_PAIN_POINTS,
) -> List[PainPointStats]:
    """
    Most mentioned pain points across processed records.

    Mentions are grouped by normalize_pain_point(); each group is reported
    under its most frequent trimmed spelling (first seen wins a tie). A record
    that closed counts as a closed mention for every pain point it lists.

    Returns:
        Up to `limit` PainPointStats, most mentioned first; ties keep
        first-seen order.
    """
    mentions: Dict[str, int] = {}
    closed: Dict[str, int] = {}
    spellings: Dict[str, Counter] = {}

    for record in records:
        if not record.processed:
            continue
        for raw in record.painPoints:
            spelling = raw.strip()
            key = normalize_pain_point(spelling)
            if not key:
                continue
            mentions[key] = mentions.get(key, 0) + 1
            closed[key] = closed.get(key, 0) + (1 if record.closed else 0)
            spellings.setdefault(key, Counter())[spelling] += 1

    ranking = [
        PainPointStats(
            painPoint=spellings[key].most_common(1)[0][0],
            count=count,
            conversionRate=conversion_rate(closed[key], count),
        )
        for key, count in mentions.items()
    ]
    ranking.sort(key=lambda row: row.count, reverse=True)

    logger.debug(f"{len(ranking)} distinct pain points, keeping {min(limit, len(ranking))}")
    return ranking[:limit]


def top_technical_requirements(
    records: Iterable[MeetingRecord],
    limit: int = TOP_TECHNICAL_REQUIREMENTS,
) -> List[TechnicalRequirementCount]:
    """Most mentioned technical requirements of processed records, matched verbatim."""
    counts: Counter = Counter(
        requirement
        for record in records if record.processed
        for requirement in record.technicalRequirements
        if requirement
    )
    return [
        TechnicalRequirementCount(requirement=requirement, count=count)
        for requirement, count in counts.most_common(limit)
    ]


# =============================================================================
# Period Keys
# =============================================================================


def week_key(day: date) -> str:
    """
    ISO year-week key, e.g. '2024-W46'.

    Keys sort lexicographically in chronological order.
    """
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def month_key(day: date) -> str:
    """Year-month key, e.g. '2024-11'."""
    return f"{day.year}-{day.month:02d}"
