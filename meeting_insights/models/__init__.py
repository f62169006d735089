"""
Package initialization file for Meeting Insights models.

This module exports all Pydantic schemas and enumerations from schemas.py and
enums.py, making them importable from meeting_insights.models directly.

Usage:
    from meeting_insights.models import (
        Dimension,
        MeetingRecord,
        DimensionGroup,
        ProjectionResult,
        # ... etc
    )
"""

# =============================================================================
# Enums - Import and re-export all enumerations from enums.py
# =============================================================================

from meeting_insights.models.enums import (
    ConfidenceLevel,
    DatasetKind,
    Dimension,
    InsightType,
    NarrativeStatus,
    SentimentLabel,
    TimelineGranularity,
    TimelinePeriod,
    TrendDirection,
    UrgencyLabel,
)


# =============================================================================
# Schemas - Import and re-export all Pydantic models from schemas.py
# =============================================================================

from meeting_insights.models.schemas import (
    # -------------------------------------------------------------------------
    # Record Snapshot
    # -------------------------------------------------------------------------
    MeetingRecord,

    # -------------------------------------------------------------------------
    # Aggregation Models
    # -------------------------------------------------------------------------
    DimensionGroup,
    OverviewMetrics,
    ConversionAnalysis,
    VolumeConversionBucket,
    TimelineMetric,
    PainPointStats,
    TechnicalRequirementCount,

    # -------------------------------------------------------------------------
    # Industry Models
    # -------------------------------------------------------------------------
    IndustryRanking,
    IndustryStats,
    PercentileThresholds,
    IndustriesToWatch,
    NewIndustriesLastMonth,

    # -------------------------------------------------------------------------
    # Seller Models
    # -------------------------------------------------------------------------
    SellerMetrics,
    SellerInsight,
    SellerRanking,
    SellerOfWeek,
    AnnualRanking,
    SellersTimelinePoint,
    SellersTimeline,

    # -------------------------------------------------------------------------
    # Correlation and Forecast Models
    # -------------------------------------------------------------------------
    CorrelationEntry,
    WeeklyBucket,
    ProjectionEstimate,
    TimelineEntry,
    ProjectionResult,

    # -------------------------------------------------------------------------
    # Narrative Models
    # -------------------------------------------------------------------------
    NarrativeRequest,
    NarrativeResult,
    SellerCorrelationInsight,
    SellerFeedback,
    TimelineInsight,
)


__all__ = [
    # =========================================================================
    # Enums
    # =========================================================================
    "ConfidenceLevel",
    "DatasetKind",
    "Dimension",
    "InsightType",
    "NarrativeStatus",
    "SentimentLabel",
    "TimelineGranularity",
    "TimelinePeriod",
    "TrendDirection",
    "UrgencyLabel",

    # =========================================================================
    # Schemas
    # =========================================================================
    "MeetingRecord",
    "DimensionGroup",
    "OverviewMetrics",
    "ConversionAnalysis",
    "VolumeConversionBucket",
    "TimelineMetric",
    "PainPointStats",
    "TechnicalRequirementCount",
    "IndustryRanking",
    "IndustryStats",
    "PercentileThresholds",
    "IndustriesToWatch",
    "NewIndustriesLastMonth",
    "SellerMetrics",
    "SellerInsight",
    "SellerRanking",
    "SellerOfWeek",
    "AnnualRanking",
    "SellersTimelinePoint",
    "SellersTimeline",
    "CorrelationEntry",
    "WeeklyBucket",
    "ProjectionEstimate",
    "TimelineEntry",
    "ProjectionResult",
    "NarrativeRequest",
    "NarrativeResult",
    "SellerCorrelationInsight",
    "SellerFeedback",
    "TimelineInsight",
]
