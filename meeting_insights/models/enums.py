"""
Enumeration definitions for the Meeting Insights backend.

All enums inherit from both `str` and `Enum` to ensure JSON serialization
compatibility with Pydantic models, enabling automatic serialization in API
responses.

Enums:
- Dimension: categorical record attributes usable as grouping keys
- TrendDirection: output of the trend classifier
- ConfidenceLevel: forecast confidence derived from coefficient of variation
- TimelinePeriod: actual vs projected timeline entries
- DatasetKind: tag sent to the insight narrator with each payload
- NarrativeStatus: tagged result of a narration attempt
- SentimentLabel / UrgencyLabel: averaged labels in industry rankings
- InsightType / TimelineGranularity: seller insight and timeline options
"""

from enum import Enum


class Dimension(str, Enum):
    """
    Categorical attributes of a meeting record.

    Values are the camelCase record field names so they can be echoed in
    API payloads unchanged. Each member is mapped to a typed extractor in
    meeting_insights.services.aggregation.DIMENSION_EXTRACTORS.
    """
    SELLER = "seller"
    INDUSTRY = "industry"
    SENTIMENT = "sentiment"
    URGENCY_LEVEL = "urgencyLevel"
    DISCOVERY_SOURCE = "discoverySource"
    OPERATION_SIZE = "operationSize"


class TrendDirection(str, Enum):
    """
    Result of comparing a current value against a previous one.

    - increasing: relative change above threshold, or 0 -> positive
    - decreasing: relative change below -threshold
    - stable: relative change within +/- threshold
    - neutral: baseline and current are both zero (or no data)
    """
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    NEUTRAL = "neutral"


class ConfidenceLevel(str, Enum):
    """Forecast confidence label derived from weekly closed-count dispersion."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TimelinePeriod(str, Enum):
    """Whether a timeline entry holds actual counts or a projected rate."""
    CURRENT = "current"
    PROJECTED = "projected"


class DatasetKind(str, Enum):
    """
    Dataset tag attached to every narrator request.

    The narrator uses the tag to pick its prompt; the payload builder uses it
    to pick the deterministic fallback sentence.
    """
    INDUSTRY_DISTRIBUTION = "industry_distribution"
    INDUSTRY_CONVERSION = "industry_conversion"
    SELLER_CORRELATION = "seller_correlation"
    SELLER_TIMELINE = "seller_timeline"
    MONTHLY_TIMELINE = "monthly_timeline"
    VOLUME_CONVERSION = "volume_conversion"
    PAIN_POINTS = "pain_points"
    SELLER_FEEDBACK = "seller_feedback"


class NarrativeStatus(str, Enum):
    """
    Tagged result of a narration attempt.

    - ok: text came from the narrator
    - degraded: text is the deterministic fallback; `reason` says why
    """
    OK = "ok"
    DEGRADED = "degraded"


class SentimentLabel(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    SKEPTICAL = "skeptical"


class UrgencyLabel(str, Enum):
    IMMEDIATE = "immediate"
    PLANNED = "planned"
    EXPLORATORY = "exploratory"


class InsightType(str, Enum):
    """Tone of a seller month-over-month insight."""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class TimelineGranularity(str, Enum):
    """Period size for the sellers timeline."""
    WEEK = "week"
    MONTH = "month"
