"""
Meeting Insights Services Module

Business logic for the analytics engine. Every service except the engine,
the record sources and the narrator is a set of pure functions over an
immutable record snapshot.

Services:
- aggregation: Dimension grouping, overview, rankings, timelines, pain points
- reliability: Minimum-sample gate and percentile thresholds
- correlation: Seller/dimension correlation analysis
- trends: Trend classification with zero-baseline handling
- sellers: Seller metrics, insights, podium, rankings, timeline
- forecasting: Weekly buckets, weighted projection, confidence
- narrative: Narrator payloads, fallbacks and response parsing
- narrator: Insight narrator adapters (Anthropic, null)
- record_source: Record sources (Postgres, in-memory)
- engine: AnalyticsEngine orchestrating all of the above

All services are consumed by the API layer (meeting_insights/api/).
"""

# =============================================================================
# Aggregation Exports
# =============================================================================

from meeting_insights.services.aggregation import (
    aggregate_by_dimension,
    build_conversion_analysis,
    build_overview,
    conversion_rate,
    daily_timeline,
    find_new_industries_last_month,
    month_key,
    normalize_pain_point,
    rank_industries,
    round_half_up,
    top_pain_points,
    top_technical_requirements,
    volume_vs_conversion,
    week_key,
)

# =============================================================================
# Reliability Gate + Percentile Threshold Exports
# =============================================================================

from meeting_insights.services.reliability import (
    apply_reliability_gate,
    classify_outlier_groups,
    compute_percentile_thresholds,
    find_industries_to_watch,
    passes_reliability_gate,
    MIN_RELIABILITY_SAMPLE,
)

# =============================================================================
# Correlation, Trend and Seller Exports
# =============================================================================

from meeting_insights.services.correlation import (
    analyze_seller_correlations,
    top_correlations_by_seller,
)

from meeting_insights.services.trends import (
    classify_trend,
    trend_multiplier,
    trend_percentage,
)

from meeting_insights.services.sellers import (
    build_sellers_timeline,
    compute_seller_metrics,
    find_seller_of_week,
    generate_seller_insights,
    rank_sellers_for_year,
)

# =============================================================================
# Forecast Exports
# =============================================================================

from meeting_insights.services.forecasting import (
    build_weekly_buckets,
    confidence_from_buckets,
    project_future,
    weekly_trend,
    weighted_weekly_average,
)

# =============================================================================
# Narration, Record Source and Engine Exports
# =============================================================================

from meeting_insights.services.narrative import (
    build_narrative_request,
    parse_array_response,
    parse_json_response,
)

from meeting_insights.services.narrator import (
    AnthropicNarrator,
    Narrator,
    NullNarrator,
    narrator_from_settings,
)

from meeting_insights.services.record_source import (
    InMemoryRecordSource,
    PostgresRecordSource,
    RecordQuery,
    RecordSource,
)

from meeting_insights.services.engine import AnalyticsEngine

__all__ = [
    # Aggregation
    "aggregate_by_dimension",
    "build_conversion_analysis",
    "build_overview",
    "conversion_rate",
    "daily_timeline",
    "find_new_industries_last_month",
    "month_key",
    "normalize_pain_point",
    "rank_industries",
    "round_half_up",
    "top_pain_points",
    "top_technical_requirements",
    "volume_vs_conversion",
    "week_key",
    # Reliability
    "apply_reliability_gate",
    "classify_outlier_groups",
    "compute_percentile_thresholds",
    "find_industries_to_watch",
    "passes_reliability_gate",
    "MIN_RELIABILITY_SAMPLE",
    # Correlation / trends / sellers
    "analyze_seller_correlations",
    "top_correlations_by_seller",
    "classify_trend",
    "trend_multiplier",
    "trend_percentage",
    "build_sellers_timeline",
    "compute_seller_metrics",
    "find_seller_of_week",
    "generate_seller_insights",
    "rank_sellers_for_year",
    # Forecasting
    "build_weekly_buckets",
    "confidence_from_buckets",
    "project_future",
    "weekly_trend",
    "weighted_weekly_average",
    # Narration
    "build_narrative_request",
    "parse_array_response",
    "parse_json_response",
    "AnthropicNarrator",
    "Narrator",
    "NullNarrator",
    "narrator_from_settings",
    # Record sources
    "InMemoryRecordSource",
    "PostgresRecordSource",
    "RecordQuery",
    "RecordSource",
    # Engine
    "AnalyticsEngine",
]
