"""
Narrative Payload Builder

Prepares the fixed-shape numeric payload an insight narrator consumes and the
deterministic fallback text used whenever the narrator cannot be used.

Every narrated insight follows the same flow:
1. Build a NarrativeRequest (dataset kind + items) from derived metrics.
2. Compute a fallback from the same numbers.
3. Ask the narrator; any failure (not configured, exception, empty or
   malformed response) yields status=degraded with the fallback text.

Narrator output for the monthly timeline must be a JSON object and for seller
feedback a JSON array; both are parsed leniently with fixed fallbacks.
"""

import calendar
import json
import logging
import re
from collections import Counter, defaultdict
from typing import Any, Dict, List, Optional, Tuple

from meeting_insights.models.enums import DatasetKind, NarrativeStatus
from meeting_insights.models.schemas import (
    CorrelationEntry,
    DimensionGroup,
    MeetingRecord,
    NarrativeRequest,
    NarrativeResult,
    PainPointStats,
    SellerCorrelationInsight,
    SellerFeedback,
    SellerMetrics,
    SellersTimeline,
    TimelineInsight,
    VolumeConversionBucket,
)
from meeting_insights.services.aggregation import (
    format_fixed,
    groups_by_volume,
    month_key,
    round_half_up,
)
from meeting_insights.services.narrator import DIMENSION_LABELS, Narrator
from meeting_insights.services.reliability import MIN_RELIABILITY_SAMPLE, apply_reliability_gate
from meeting_insights.services.trends import mean, split_halves

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

REASON_NOT_CONFIGURED: str = "narrator not configured"
REASON_NO_DATA: str = "insufficient data"
REASON_NARRATOR_ERROR: str = "narrator error"
REASON_EMPTY_RESPONSE: str = "empty narrator response"
REASON_MALFORMED: str = "malformed narrator response"

NO_INDUSTRY_DATA_MESSAGE: str = "No industry data available to analyze."
INSUFFICIENT_CONVERSION_DATA_MESSAGE: str = (
    "Insufficient data to analyze conversion rates reliably."
)
NO_CORRELATIONS_MESSAGE: str = (
    "No significant correlations identified yet. Need more data to identify patterns."
)
NO_TIMELINE_DATA_MESSAGE: str = "No timeline data available to analyze."
INSUFFICIENT_SELLER_TIMELINE_MESSAGE: str = "Insufficient data to generate insights."
NO_VOLUME_DATA_MESSAGE: str = "No volume vs conversion data available to analyze."
INSUFFICIENT_VOLUME_DATA_MESSAGE: str = (
    "Insufficient data to analyze volume vs conversion relationship."
)
NO_PAIN_POINT_DATA_MESSAGE: str = "No pain points data available to analyze."

TIMELINE_FALLBACK: Dict[str, List[str]] = {
    "keyFindings": [
        "Timeline analysis indicates stable performance with ongoing monitoring recommended."
    ],
    "reasons": ["Further analysis needed to identify specific reasons."],
    "recommendations": ["Continue monitoring recent trends and patterns."],
}
TIMELINE_KEYS: Tuple[str, ...] = ("keyFindings", "reasons", "recommendations")

FEEDBACK_FALLBACK: List[str] = [
    "Focus on your strongest client segments",
    "Continue building expertise in successful areas",
]
MAX_FEEDBACK_ITEMS: int = 3

TOP_MONTHLY_INDUSTRIES: int = 3

JSON_OBJECT_PATTERN = re.compile(r"\{[\s\S]*\}")
JSON_ARRAY_PATTERN = re.compile(r"\[[\s\S]*\]")
BULLET_PREFIXES: Tuple[str, ...] = ("-", "•")


def build_narrative_request(
    kind: DatasetKind,
    items: List[Dict[str, Any]],
    subject: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
) -> NarrativeRequest:
    return NarrativeRequest(kind=kind, subject=subject, items=items, context=context or {})


def _rate(value: float) -> str:
    return f"{value:g}"


# =============================================================================
# Response Parsing
# =============================================================================


def parse_json_response(text: str, fallback: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
    """
    Extract the first {...} span from narrator text and decode it.

    Returns:
        (parsed object, True) or (fallback, False) when nothing decodes to a dict
    """
    match = JSON_OBJECT_PATTERN.search(text or "")
    if not match:
        logger.warning("No JSON object found in narrator response")
        return fallback, False

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.error(f"Error parsing narrator JSON response: {e}")
        return fallback, False

    if not isinstance(parsed, dict):
        return fallback, False
    return parsed, True


def parse_array_response(text: str, fallback: List[str]) -> Tuple[List[str], bool]:
    """
    Extract a list of strings from narrator text.

    A [...] span is decoded as JSON; without one, bullet lines ('-' or '•')
    are taken as items.
    """
    text = text or ""
    match = JSON_ARRAY_PATTERN.search(text)

    if not match:
        bullets = [
            line.strip().lstrip("".join(BULLET_PREFIXES)).strip()
            for line in text.splitlines()
            if line.strip().startswith(BULLET_PREFIXES)
        ]
        bullets = [line for line in bullets if line]
        if bullets:
            return bullets, True
        logger.warning("No JSON array or bullet list found in narrator response")
        return fallback, False

    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        logger.error(f"Error parsing narrator array response: {e}")
        return fallback, False

    if not isinstance(parsed, list):
        return fallback, False
    return [str(item) for item in parsed if item is not None], True


# =============================================================================
# Narration
# =============================================================================


async def request_narration(
    narrator: Narrator,
    request: NarrativeRequest,
) -> Tuple[Optional[str], Optional[str]]:
    """
    Call the narrator, converting every failure into a reason.

    Returns:
        (text, None) on success or (None, reason) otherwise
    """
    if not narrator.is_configured():
        return None, REASON_NOT_CONFIGURED

    try:
        text = await narrator.narrate(request)
    except Exception as e:
        logger.error(f"Narrator failed for {request.kind.value}: {e}", exc_info=True)
        return None, f"{REASON_NARRATOR_ERROR}: {e}"

    text = (text or "").strip()
    if not text:
        return None, REASON_EMPTY_RESPONSE
    return text, None


async def narrate_with_fallback(
    narrator: Narrator,
    request: NarrativeRequest,
    fallback: str,
) -> NarrativeResult:
    """Narrated text, or the fallback tagged degraded with the reason."""
    text, reason = await request_narration(narrator, request)
    if text is None:
        return NarrativeResult.degraded(fallback, reason)
    return NarrativeResult.ok(text)


# =============================================================================
# Industry Distribution
# =============================================================================


def industry_distribution_request(groups: Dict[str, DimensionGroup]) -> NarrativeRequest:
    items = [
        {"value": group.key, "count": group.total}
        for group in groups_by_volume(groups)
    ]
    return build_narrative_request(DatasetKind.INDUSTRY_DISTRIBUTION, items)


def industry_distribution_fallback(groups: Dict[str, DimensionGroup]) -> str:
    ranked = groups_by_volume(groups)
    if not ranked:
        return NO_INDUSTRY_DATA_MESSAGE

    total = sum(group.total for group in ranked)
    top = ranked[0]
    share = format_fixed(top.total / total * 100, 1)
    text = (
        f"{len(ranked)} industries represented; {top.key} leads with "
        f"{top.total} of {total} clients ({share}%)."
    )
    if len(ranked) > 1:
        text += f" {ranked[1].key} follows with {ranked[1].total} clients."
    return text


async def narrate_industry_distribution(
    narrator: Narrator,
    groups: Dict[str, DimensionGroup],
) -> NarrativeResult:
    if not groups:
        return NarrativeResult.degraded(NO_INDUSTRY_DATA_MESSAGE, REASON_NO_DATA)
    return await narrate_with_fallback(
        narrator,
        industry_distribution_request(groups),
        industry_distribution_fallback(groups),
    )


# =============================================================================
# Industry Conversion
# =============================================================================


def industry_conversion_request(
    groups: Dict[str, DimensionGroup],
    minimum: int = MIN_RELIABILITY_SAMPLE,
) -> NarrativeRequest:
    """Only industries with at least `minimum` clients are sent."""
    gated = sorted(
        apply_reliability_gate(groups.values(), minimum),
        key=lambda group: group.conversionRate,
        reverse=True,
    )
    items = [
        {
            "value": group.key,
            "count": group.total,
            "closed": group.closed,
            "conversionRate": group.conversionRate,
        }
        for group in gated
    ]
    return build_narrative_request(
        DatasetKind.INDUSTRY_CONVERSION, items, context={"minimumSample": minimum}
    )


def industry_conversion_fallback(request: NarrativeRequest) -> str:
    if not request.items:
        return INSUFFICIENT_CONVERSION_DATA_MESSAGE

    best = request.items[0]
    text = (
        f"{best['value']} has the highest conversion rate at {_rate(best['conversionRate'])}% "
        f"({best['closed']}/{best['count']} deals)."
    )
    if len(request.items) > 1:
        worst = request.items[-1]
        text += (
            f" {worst['value']} has the lowest at {_rate(worst['conversionRate'])}% "
            f"({worst['closed']}/{worst['count']} deals)."
        )
    return text


async def narrate_industry_conversion(
    narrator: Narrator,
    groups: Dict[str, DimensionGroup],
    minimum: int = MIN_RELIABILITY_SAMPLE,
) -> NarrativeResult:
    if not groups:
        return NarrativeResult.degraded(NO_INDUSTRY_DATA_MESSAGE, REASON_NO_DATA)

    request = industry_conversion_request(groups, minimum)
    fallback = industry_conversion_fallback(request)
    if not request.items:
        return NarrativeResult.degraded(fallback, REASON_NO_DATA)
    return await narrate_with_fallback(narrator, request, fallback)


# =============================================================================
# Seller Correlations
# =============================================================================


def _correlation_item(entry: CorrelationEntry) -> Dict[str, Any]:
    return entry.model_dump(mode="json", exclude={"seller"})


def seller_correlation_request(
    seller: str,
    correlations: List[CorrelationEntry],
) -> NarrativeRequest:
    return build_narrative_request(
        DatasetKind.SELLER_CORRELATION,
        [_correlation_item(entry) for entry in correlations],
        subject=seller,
    )


def seller_correlation_fallback(seller: str, correlations: List[CorrelationEntry]) -> str:
    if not correlations:
        return NO_CORRELATIONS_MESSAGE
    top = correlations[0]
    return (
        f"{seller} shows {format_fixed(top.successRate, 0)}% success rate with {top.value} "
        f"clients ({top.closed}/{top.total} deals closed)."
    )


async def narrate_seller_correlations(
    narrator: Narrator,
    seller: str,
    correlations: List[CorrelationEntry],
) -> SellerCorrelationInsight:
    """
    Narrate one seller's top correlations.

    A seller without correlations gets the explicit no-correlation marker
    and the narrator is not called.
    """
    if not correlations:
        insight = NarrativeResult.degraded(NO_CORRELATIONS_MESSAGE, REASON_NO_DATA)
    else:
        insight = await narrate_with_fallback(
            narrator,
            seller_correlation_request(seller, correlations),
            seller_correlation_fallback(seller, correlations),
        )
    return SellerCorrelationInsight(seller=seller, insight=insight, correlations=correlations)


# =============================================================================
# Seller Timeline
# =============================================================================


def seller_timeline_stats(timeline: SellersTimeline) -> List[Dict[str, Any]]:
    """
    First-half vs second-half momentum per seller.

    The first half takes the extra period when the count is odd. trend is
    'increasing', 'decreasing' or 'stable'; changePercent is absolute and
    100 when the first half averaged zero and the second did not.
    """
    stats = []
    for seller in timeline.sellers:
        values = [point.closedBySeller.get(seller, 0) for point in timeline.points]
        if not values:
            continue

        first_half, second_half = split_halves(values)
        first_avg = mean(first_half)
        second_avg = mean(second_half)

        if second_avg > first_avg:
            trend = "increasing"
        elif second_avg < first_avg:
            trend = "decreasing"
        else:
            trend = "stable"

        if first_avg > 0:
            change = (second_avg - first_avg) / first_avg * 100
        else:
            change = 100.0 if second_avg > 0 else 0.0

        total = sum(values)
        stats.append({
            "seller": seller,
            "total": total,
            "trend": trend,
            "changePercent": abs(change),
            "avgPerPeriod": total / len(values),
            "firstHalfAvg": first_avg,
            "secondHalfAvg": second_avg,
        })

    return stats


def seller_timeline_fallback(stats: List[Dict[str, Any]], granularity: str) -> str:
    if not stats:
        return INSUFFICIENT_SELLER_TIMELINE_MESSAGE

    leader = max(stats, key=lambda row: row["total"])
    text = (
        f"{leader['seller']} leads with {leader['total']} closed deals "
        f"({format_fixed(leader['avgPerPeriod'], 1)} per {granularity})."
    )
    rising = [row["seller"] for row in stats if row["trend"] == "increasing"]
    falling = [row["seller"] for row in stats if row["trend"] == "decreasing"]
    if rising:
        text += f" Trending up: {', '.join(rising)}."
    if falling:
        text += f" Trending down: {', '.join(falling)}."
    return text


async def narrate_seller_timeline(
    narrator: Narrator,
    timeline: SellersTimeline,
) -> NarrativeResult:
    stats = seller_timeline_stats(timeline)
    granularity = timeline.granularity.value
    fallback = seller_timeline_fallback(stats, granularity)
    if not stats:
        return NarrativeResult.degraded(fallback, REASON_NO_DATA)

    request = build_narrative_request(
        DatasetKind.SELLER_TIMELINE, stats, context={"granularity": granularity}
    )
    return await narrate_with_fallback(narrator, request, fallback)


# =============================================================================
# Monthly Timeline
# =============================================================================


def _most_common(values: List[str], default: str) -> str:
    """Most frequent value; ties go to the alphabetically first."""
    if not values:
        return default
    counts = Counter(values)
    top = max(counts.values())
    return min(value for value, count in counts.items() if count == top)


def summarize_months(records: List[MeetingRecord]) -> List[Dict[str, Any]]:
    """
    Per-month meetings, closes, conversion (1 decimal), dominant sentiment
    and top-3 industries by meetings, oldest month first.
    """
    months: Dict[str, List[MeetingRecord]] = defaultdict(list)
    for record in records:
        months[month_key(record.meetingDate)].append(record)

    summaries = []
    for key in sorted(months):
        rows = months[key]
        year, month = (int(part) for part in key.split("-"))
        closed = sum(1 for record in rows if record.closed)

        industries: Dict[str, List[str]] = defaultdict(list)
        for record in rows:
            if record.industry:
                industries[record.industry].append(record.sentiment or "")

        top_industries = sorted(
            (
                {
                    "industry": industry,
                    "count": len(sentiments),
                    "sentiment": _most_common([s for s in sentiments if s], "neutral"),
                }
                for industry, sentiments in industries.items()
            ),
            key=lambda row: (-row["count"], row["industry"]),
        )[:TOP_MONTHLY_INDUSTRIES]

        summaries.append({
            "month": f"{calendar.month_name[month]} {year}",
            "totalMeetings": len(rows),
            "totalClosed": closed,
            "conversionRate": round_half_up(closed / len(rows) * 100, 1),
            "avgSentiment": _most_common(
                [record.sentiment for record in rows if record.sentiment], "neutral"
            ),
            "topIndustries": top_industries,
        })

    return summaries


def _as_string_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, list):
        return [str(item) for item in value if item is not None]
    return [str(value)]


def monthly_timeline_fallback(summaries: List[Dict[str, Any]]) -> Dict[str, List[str]]:
    """Numeric key findings from the latest months; fixed reasons and recommendations."""
    if not summaries:
        return {"keyFindings": [NO_TIMELINE_DATA_MESSAGE], "reasons": [], "recommendations": []}

    latest = summaries[-1]
    findings = [
        f"{latest['month']}: {latest['totalMeetings']} meetings and {latest['totalClosed']} "
        f"closed deals ({_rate(latest['conversionRate'])}% conversion)."
    ]
    if len(summaries) > 1:
        previous = summaries[-2]
        delta = round_half_up(latest["conversionRate"] - previous["conversionRate"], 1)
        direction = "up" if delta > 0 else "down" if delta < 0 else "unchanged"
        findings.append(
            f"Conversion is {direction} from {_rate(previous['conversionRate'])}% "
            f"in {previous['month']}."
        )

    return {
        "keyFindings": findings,
        "reasons": list(TIMELINE_FALLBACK["reasons"]),
        "recommendations": list(TIMELINE_FALLBACK["recommendations"]),
    }


async def narrate_monthly_timeline(
    narrator: Narrator,
    records: List[MeetingRecord],
) -> TimelineInsight:
    """
    Key findings, reasons and recommendations over the monthly history.

    The narrator must answer with a JSON object; a response that does not
    parse degrades to the fixed timeline fallback. Non-list values are
    wrapped into single-item lists.
    """
    summaries = summarize_months(records)
    fallback = monthly_timeline_fallback(summaries)
    if not summaries:
        return TimelineInsight(status=NarrativeStatus.DEGRADED, **fallback)

    request = build_narrative_request(DatasetKind.MONTHLY_TIMELINE, summaries)
    text, reason = await request_narration(narrator, request)
    if text is None:
        logger.info(f"Monthly timeline insight degraded: {reason}")
        return TimelineInsight(status=NarrativeStatus.DEGRADED, **fallback)

    parsed, ok = parse_json_response(text, TIMELINE_FALLBACK)
    if not ok:
        logger.info(f"Monthly timeline insight degraded: {REASON_MALFORMED}")
        return TimelineInsight(status=NarrativeStatus.DEGRADED, **TIMELINE_FALLBACK)

    return TimelineInsight(
        status=NarrativeStatus.OK,
        **{key: _as_string_list(parsed.get(key)) for key in TIMELINE_KEYS},
    )


# =============================================================================
# Volume vs Conversion
# =============================================================================


def volume_conversion_fallback(buckets: List[VolumeConversionBucket]) -> str:
    populated = [bucket for bucket in buckets if bucket.count > 0]
    if not buckets:
        return NO_VOLUME_DATA_MESSAGE
    if not populated:
        return INSUFFICIENT_VOLUME_DATA_MESSAGE

    best = max(populated, key=lambda bucket: bucket.conversionRate)
    busiest = max(populated, key=lambda bucket: bucket.count)
    text = (
        f"Clients with {best.volumeRange} interactions convert best at "
        f"{_rate(best.conversionRate)}% ({best.closed}/{best.count})."
    )
    if busiest.volumeRange != best.volumeRange:
        text += (
            f" Most clients fall in the {busiest.volumeRange} range "
            f"({busiest.count} clients, {_rate(busiest.conversionRate)}% conversion)."
        )
    return text


async def narrate_volume_conversion(
    narrator: Narrator,
    buckets: List[VolumeConversionBucket],
) -> NarrativeResult:
    fallback = volume_conversion_fallback(buckets)
    if not any(bucket.count > 0 for bucket in buckets):
        return NarrativeResult.degraded(fallback, REASON_NO_DATA)

    request = build_narrative_request(
        DatasetKind.VOLUME_CONVERSION,
        [bucket.model_dump(mode="json") for bucket in buckets if bucket.count > 0],
    )
    return await narrate_with_fallback(narrator, request, fallback)


# =============================================================================
# Pain Points
# =============================================================================


def pain_points_request(pain_points: List[PainPointStats]) -> NarrativeRequest:
    total_mentions = sum(row.count for row in pain_points)
    average = sum(row.conversionRate for row in pain_points) / len(pain_points)
    return build_narrative_request(
        DatasetKind.PAIN_POINTS,
        [row.model_dump(mode="json") for row in pain_points],
        context={
            "distinctPainPoints": len(pain_points),
            "totalMentions": total_mentions,
            "averageConversionRate": format_fixed(average, 1),
        },
    )


def pain_points_fallback(pain_points: List[PainPointStats]) -> str:
    """
    Names the most mentioned pain point and, when present, the runner-up.

    Example:
        '"Slow response times" is the most common pain point with 4 mentions
        (75% conversion). Next is "Manual scheduling" with 2 mentions.
        2 distinct pain points, 6 mentions, 62.5% average conversion.'
    """
    if not pain_points:
        return NO_PAIN_POINT_DATA_MESSAGE

    top = pain_points[0]
    total_mentions = sum(row.count for row in pain_points)
    average = sum(row.conversionRate for row in pain_points) / len(pain_points)

    text = (
        f'"{top.painPoint}" is the most common pain point with {top.count} mentions '
        f"({_rate(top.conversionRate)}% conversion)."
    )
    if len(pain_points) > 1:
        runner_up = pain_points[1]
        text += f' Next is "{runner_up.painPoint}" with {runner_up.count} mentions.'
    text += (
        f" {len(pain_points)} distinct pain points, {total_mentions} mentions, "
        f"{format_fixed(average, 1)}% average conversion."
    )
    return text


async def narrate_pain_points(
    narrator: Narrator,
    pain_points: List[PainPointStats],
) -> NarrativeResult:
    if not pain_points:
        return NarrativeResult.degraded(NO_PAIN_POINT_DATA_MESSAGE, REASON_NO_DATA)
    return await narrate_with_fallback(
        narrator,
        pain_points_request(pain_points),
        pain_points_fallback(pain_points),
    )


# =============================================================================
# Seller Feedback
# =============================================================================


def seller_feedback_fallback(correlations: List[CorrelationEntry]) -> List[str]:
    if not correlations:
        return list(FEEDBACK_FALLBACK)
    strongest = sorted(correlations, key=lambda entry: entry.successRate, reverse=True)
    return [
        f"Prioritize {entry.value} clients ({DIMENSION_LABELS[entry.dimension.value]}), "
        f"where you close {format_fixed(entry.successRate, 0)}% of deals"
        for entry in strongest[:MAX_FEEDBACK_ITEMS]
    ]


async def narrate_seller_feedback(
    narrator: Narrator,
    metrics: SellerMetrics,
    correlations: List[CorrelationEntry],
) -> SellerFeedback:
    """
    Up to three assignment recommendations for one seller.

    The narrator must answer with a JSON array (or a bullet list).
    """
    request = build_narrative_request(
        DatasetKind.SELLER_FEEDBACK,
        [_correlation_item(entry) for entry in correlations],
        subject=metrics.seller,
        context={"metrics": metrics.model_dump(mode="json")},
    )
    fallback = seller_feedback_fallback(correlations)

    text, reason = await request_narration(narrator, request)
    if text is None:
        logger.info(f"Seller feedback for {metrics.seller} degraded: {reason}")
        return SellerFeedback(
            seller=metrics.seller,
            status=NarrativeStatus.DEGRADED,
            recommendations=fallback,
        )

    recommendations, ok = parse_array_response(text, FEEDBACK_FALLBACK)
    if not ok:
        logger.info(f"Seller feedback for {metrics.seller} degraded: {REASON_MALFORMED}")
    return SellerFeedback(
        seller=metrics.seller,
        status=NarrativeStatus.OK if ok and recommendations else NarrativeStatus.DEGRADED,
        recommendations=(recommendations or list(FEEDBACK_FALLBACK))[:MAX_FEEDBACK_ITEMS],
    )
