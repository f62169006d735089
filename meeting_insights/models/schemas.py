"""
Pydantic request/response models for the Meeting Insights backend.

This module provides type-safe data validation and serialization for the
meeting record snapshot consumed by the engine and for every derived result
it returns: dimension groups, rankings, outlier classifications, seller
correlations, weekly buckets, projections and narrated insights.

Field names are camelCase so API payloads match the dashboard contract.

All models use Pydantic v2 syntax with proper field validation and examples.
"""

from datetime import date as DateType
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

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
# Record Snapshot
# =============================================================================


class MeetingRecord(BaseModel):
    """
    One historical meeting / deal.

    Records are immutable once ingested and owned by the external record
    store; the engine only ever reads a snapshot of them.
    """
    model_config = ConfigDict(
        frozen=True,
        str_strip_whitespace=True,
        json_schema_extra={
            "example": {
                "name": "Acme Logistics",
                "seller": "Boa",
                "industry": "Logistics",
                "sentiment": "positive",
                "urgencyLevel": "immediate",
                "discoverySource": "referral",
                "operationSize": "medium",
                "interactionVolume": 120,
                "closed": True,
                "meetingDate": "2024-11-04",
                "processed": True,
                "painPoints": ["Slow response times"],
                "technicalRequirements": ["WhatsApp integration"]
            }
        }
    )

    name: Optional[str] = Field(
        default=None,
        description="Client name"
    )
    seller: Optional[str] = Field(
        default=None,
        description="Seller who ran the meeting"
    )
    industry: Optional[str] = Field(
        default=None,
        description="Client industry"
    )
    sentiment: Optional[str] = Field(
        default=None,
        description="Client sentiment (positive, neutral, skeptical)"
    )
    urgencyLevel: Optional[str] = Field(
        default=None,
        description="Purchase urgency (immediate, planned, exploratory)"
    )
    discoverySource: Optional[str] = Field(
        default=None,
        description="Channel through which the client found the company"
    )
    operationSize: Optional[str] = Field(
        default=None,
        description="Size of the client's operation"
    )
    interactionVolume: Optional[float] = Field(
        default=None,
        ge=0,
        description="Client's interaction volume"
    )
    closed: bool = Field(
        default=False,
        description="Whether the deal closed"
    )
    meetingDate: DateType = Field(
        ...,
        description="Date of the meeting"
    )
    processed: bool = Field(
        default=True,
        description="Whether the transcript has been categorized"
    )
    painPoints: Tuple[str, ...] = Field(
        default=(),
        description="Pain points the client raised, as extracted from the transcript"
    )
    technicalRequirements: Tuple[str, ...] = Field(
        default=(),
        description="Technical requirements the client mentioned"
    )


# =============================================================================
# Aggregation Models
# =============================================================================


class DimensionGroup(BaseModel):
    """
    Records sharing one value of a dimension.

    conversionRate = closed / total * 100, rounded half-up to 2 places.
    Never constructed for an empty group.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "key": "Tech",
                "total": 3,
                "closed": 2,
                "conversionRate": 66.67
            }
        }
    )

    key: str = Field(..., description="Dimension value")
    total: int = Field(..., ge=0, description="Number of records in the group")
    closed: int = Field(..., ge=0, description="Number of closed records")
    conversionRate: float = Field(
        ...,
        ge=0.0,
        le=100.0,
        description="Closed share of the group in percent"
    )


class OverviewMetrics(BaseModel):
    """Headline counts over the whole record set."""
    totalClients: int = Field(..., ge=0)
    closedDeals: int = Field(..., ge=0)
    openDeals: int = Field(..., ge=0)
    processedClients: int = Field(..., ge=0)
    conversionRate: float = Field(..., ge=0.0, le=100.0)


class ConversionAnalysis(BaseModel):
    """Conversion groups for every supported dimension."""
    byIndustry: List[DimensionGroup] = Field(default_factory=list)
    bySentiment: List[DimensionGroup] = Field(default_factory=list)
    byUrgency: List[DimensionGroup] = Field(default_factory=list)
    byDiscoverySource: List[DimensionGroup] = Field(default_factory=list)
    byOperationSize: List[DimensionGroup] = Field(default_factory=list)
    bySeller: List[DimensionGroup] = Field(default_factory=list)


class VolumeConversionBucket(BaseModel):
    """Conversion within one interaction-volume range."""
    volumeRange: str = Field(..., description="Range label, e.g. '51-100'")
    count: int = Field(..., ge=0)
    closed: int = Field(..., ge=0)
    conversionRate: float = Field(..., ge=0.0, le=100.0)


class TimelineMetric(BaseModel):
    """Meetings and closed deals on one calendar day."""
    date: DateType
    total: int = Field(..., ge=0)
    closed: int = Field(..., ge=0)


class PainPointStats(BaseModel):
    """
    One pain point across processed records.

    Spelling variants that normalize to the same text are counted together
    under their most frequent spelling.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "painPoint": "Slow response times",
                "count": 4,
                "conversionRate": 75.0
            }
        }
    )

    painPoint: str = Field(..., description="Most frequent spelling of the pain point")
    count: int = Field(..., ge=1, description="Mentions across records")
    conversionRate: float = Field(..., ge=0.0, le=100.0)


class TechnicalRequirementCount(BaseModel):
    """Mentions of one technical requirement, matched verbatim."""
    requirement: str
    count: int = Field(..., ge=1)


# =============================================================================
# Industry Models
# =============================================================================


class IndustryRanking(BaseModel):
    """
    Industry row in the conversion ranking.

    averageSentiment and averageUrgency are labels derived from the mean
    numeric score of the industry's records.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "industry": "Tech",
                "clients": 3,
                "closed": 2,
                "conversionRate": 66.67,
                "averageSentiment": "positive",
                "averageUrgency": "planned"
            }
        }
    )

    industry: str
    clients: int = Field(..., ge=0)
    closed: int = Field(..., ge=0)
    conversionRate: float = Field(..., ge=0.0, le=100.0)
    averageSentiment: SentimentLabel = SentimentLabel.NEUTRAL
    averageUrgency: UrgencyLabel = UrgencyLabel.PLANNED


class IndustryStats(BaseModel):
    """Volume and conversion for a single industry."""
    industry: str
    clients: int = Field(..., ge=0)
    closed: int = Field(..., ge=0)
    conversionRate: float = Field(..., ge=0.0, le=100.0)


class PercentileThresholds(BaseModel):
    """
    Cut points derived from the gated industry groups.

    lowVolume <= highVolume and lowConversion <= highConversion whenever both
    come from the same non-empty array.
    """
    lowVolume: float
    highVolume: float
    lowConversion: float
    highConversion: float
    medianClients: float
    averageConversion: float


class IndustriesToWatch(BaseModel):
    """
    Outlier industries.

    expansionOpportunities: low volume, high conversion (by conversion desc)
    needsStrategy: high volume, low conversion (by clients desc)
    """
    expansionOpportunities: List[IndustryStats] = Field(default_factory=list)
    needsStrategy: List[IndustryStats] = Field(default_factory=list)
    thresholds: Optional[PercentileThresholds] = Field(
        default=None,
        description="Derived cut points; None when no group passed the reliability gate"
    )


class NewIndustriesLastMonth(BaseModel):
    """Industries whose first meeting fell in the previous calendar month."""
    month: str = Field(..., description="Month label, e.g. 'October 2024'")
    industries: List[IndustryStats] = Field(default_factory=list)


# =============================================================================
# Seller Models
# =============================================================================


class SellerMetrics(BaseModel):
    seller: str
    total: int = Field(..., ge=0)
    closed: int = Field(..., ge=0)
    conversionRate: float = Field(..., ge=0.0, le=100.0)


class SellerInsight(BaseModel):
    """Month-over-month observation about a seller."""
    seller: str
    type: InsightType
    metric: str = Field(..., description="'conversions' or 'urgency'")
    message: str
    change: Optional[float] = Field(
        default=None,
        description="Percent change vs last month, rounded to 2 places"
    )


class SellerRanking(BaseModel):
    seller: str
    closed: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    conversionRate: float = Field(..., ge=0.0, le=100.0)


class SellerOfWeek(BaseModel):
    """Top sellers by closed deals in the Monday-started current week."""
    weekStart: DateType
    weekEnd: DateType
    podium: List[SellerRanking] = Field(default_factory=list)


class AnnualRanking(BaseModel):
    year: int
    rankings: List[SellerRanking] = Field(default_factory=list)


class SellersTimelinePoint(BaseModel):
    period: str = Field(..., description="Week key (YYYY-Www) or month key (YYYY-MM)")
    closedBySeller: Dict[str, int] = Field(default_factory=dict)


class SellersTimeline(BaseModel):
    granularity: TimelineGranularity
    sellers: List[str] = Field(default_factory=list)
    points: List[SellersTimelinePoint] = Field(default_factory=list)


# =============================================================================
# Correlation Models
# =============================================================================


class CorrelationEntry(BaseModel):
    """
    A seller's performance on one dimension value that passed the
    reliability gate and at least one relevance criterion.
    """
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "seller": "Boa",
                "dimension": "industry",
                "value": "Tech",
                "total": 4,
                "closed": 3,
                "successRate": 75.0,
                "sellerAvgConversion": 50.0,
                "overallAvg": 55.5,
                "performanceVsAvg": 19.5
            }
        }
    )

    seller: str
    dimension: Dimension
    value: str
    total: int = Field(..., ge=0)
    closed: int = Field(..., ge=0)
    successRate: float = Field(..., ge=0.0, le=100.0)
    sellerAvgConversion: float
    overallAvg: float
    performanceVsAvg: float


# =============================================================================
# Forecast Models
# =============================================================================


class WeeklyBucket(BaseModel):
    """Meetings and closed deals in one ISO week."""
    periodKey: str = Field(..., description="ISO year-week, e.g. '2024-W46'")
    total: int = Field(..., ge=0)
    closed: int = Field(..., ge=0)


class ProjectionEstimate(BaseModel):
    estimatedClosed: int = Field(default=0, ge=0)
    estimatedMeetings: int = Field(default=0, ge=0)
    confidence: ConfidenceLevel = ConfidenceLevel.LOW
    trend: TrendDirection = Field(
        default=TrendDirection.NEUTRAL,
        description="Same as trendClosed"
    )
    trendClosed: TrendDirection = TrendDirection.NEUTRAL
    trendMeetings: TrendDirection = TrendDirection.NEUTRAL


class TimelineEntry(BaseModel):
    date: DateType
    period: TimelinePeriod
    meetings: int = Field(..., ge=0)
    closed: int = Field(..., ge=0)


class ProjectionResult(BaseModel):
    """Next-week and next-month projection with its explanation."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "nextWeek": {
                    "estimatedClosed": 3,
                    "estimatedMeetings": 8,
                    "confidence": "medium",
                    "trend": "increasing",
                    "trendClosed": "increasing",
                    "trendMeetings": "stable"
                },
                "nextMonth": {
                    "estimatedClosed": 13,
                    "estimatedMeetings": 33,
                    "confidence": "medium",
                    "trend": "increasing",
                    "trendClosed": "increasing",
                    "trendMeetings": "stable"
                },
                "message": "Based on current month showing a 25.0% increase in closed deals ...",
                "dataPoints": 4,
                "timeline": []
            }
        }
    )

    nextWeek: ProjectionEstimate = Field(default_factory=ProjectionEstimate)
    nextMonth: ProjectionEstimate = Field(default_factory=ProjectionEstimate)
    message: str
    dataPoints: int = Field(default=0, ge=0, description="Weekly buckets used")
    timeline: List[TimelineEntry] = Field(default_factory=list)


# =============================================================================
# Narrative Models
# =============================================================================


class NarrativeRequest(BaseModel):
    """Fixed-shape payload handed to the insight narrator."""
    kind: DatasetKind
    subject: Optional[str] = Field(
        default=None,
        description="Entity the payload is about, e.g. a seller name"
    )
    items: List[Dict[str, Any]] = Field(default_factory=list)
    context: Dict[str, Any] = Field(default_factory=dict)


class NarrativeResult(BaseModel):
    """
    Tagged narration result.

    status=ok carries narrator text; status=degraded carries the
    deterministic fallback and the reason the narrator was not used.
    """
    status: NarrativeStatus
    text: str
    reason: Optional[str] = None

    @classmethod
    def ok(cls, text: str) -> "NarrativeResult":
        return cls(status=NarrativeStatus.OK, text=text)

    @classmethod
    def degraded(cls, text: str, reason: str) -> "NarrativeResult":
        return cls(status=NarrativeStatus.DEGRADED, text=text, reason=reason)


class SellerCorrelationInsight(BaseModel):
    seller: str
    insight: NarrativeResult
    correlations: List[CorrelationEntry] = Field(default_factory=list)


class SellerFeedback(BaseModel):
    seller: str
    status: NarrativeStatus
    recommendations: List[str] = Field(default_factory=list)


class TimelineInsight(BaseModel):
    status: NarrativeStatus
    keyFindings: List[str] = Field(default_factory=list)
    reasons: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
