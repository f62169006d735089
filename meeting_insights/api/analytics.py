"""
FastAPI router module for descriptive and predictive analytics.

Endpoints:
- Overview, conversion analysis and timeline metrics
- Industry ranking, industries to watch, new industries last month
- Volume vs conversion, top pain points and technical requirements
- Seller metrics, month-over-month insights, seller of the week, annual
  ranking, sellers timeline, seller correlations
- Next-week / next-month projection

Every endpoint delegates to AnalyticsEngine. Record-source failures are
absorbed by the engine; anything else surfaces as HTTP 500.
"""

import logging
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from meeting_insights.core.dependencies import EngineDep
from meeting_insights.models import (
    AnnualRanking,
    ConversionAnalysis,
    CorrelationEntry,
    IndustriesToWatch,
    IndustryRanking,
    NewIndustriesLastMonth,
    OverviewMetrics,
    PainPointStats,
    ProjectionResult,
    SellerInsight,
    SellerMetrics,
    SellerOfWeek,
    SellersTimeline,
    TechnicalRequirementCount,
    TimelineGranularity,
    TimelineMetric,
    VolumeConversionBucket,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])


def _server_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"Error {action}: {str(e)}")


# =============================================================================
# Overview
# =============================================================================


@router.get("/overview", response_model=OverviewMetrics)
async def get_overview(engine: EngineDep) -> OverviewMetrics:
    """Total, closed, open and processed clients with overall conversion."""
    try:
        return await engine.overview()
    except Exception as e:
        raise _server_error("computing overview", e)


@router.get("/conversion", response_model=ConversionAnalysis)
async def get_conversion_analysis(engine: EngineDep) -> ConversionAnalysis:
    """Conversion groups per dimension over processed records."""
    try:
        return await engine.conversion_analysis()
    except Exception as e:
        raise _server_error("computing conversion analysis", e)


@router.get("/timeline", response_model=List[TimelineMetric])
async def get_timeline_metrics(
    engine: EngineDep,
    start: Optional[date] = Query(None, description="Inclusive first day"),
    end: Optional[date] = Query(None, description="Exclusive last day"),
) -> List[TimelineMetric]:
    """
    Meetings and closed deals per day.

    Raises:
        HTTPException 400: If start is not before end
    """
    if start is not None and end is not None and start >= end:
        raise HTTPException(status_code=400, detail="start must be before end")

    try:
        return await engine.timeline_metrics(start, end)
    except Exception as e:
        raise _server_error("computing timeline metrics", e)


@router.get("/volume-conversion", response_model=List[VolumeConversionBucket])
async def get_volume_vs_conversion(engine: EngineDep) -> List[VolumeConversionBucket]:
    try:
        return await engine.volume_vs_conversion()
    except Exception as e:
        raise _server_error("computing volume vs conversion", e)


@router.get("/pain-points", response_model=List[PainPointStats])
async def get_top_pain_points(engine: EngineDep) -> List[PainPointStats]:
    """Ten most mentioned pain points, spelling variants merged."""
    try:
        return await engine.top_pain_points()
    except Exception as e:
        raise _server_error("computing top pain points", e)


@router.get("/technical-requirements", response_model=List[TechnicalRequirementCount])
async def get_top_technical_requirements(engine: EngineDep) -> List[TechnicalRequirementCount]:
    try:
        return await engine.top_technical_requirements()
    except Exception as e:
        raise _server_error("computing top technical requirements", e)


# =============================================================================
# Industries
# =============================================================================


@router.get("/industries/ranking", response_model=List[IndustryRanking])
async def get_industries_ranking(engine: EngineDep) -> List[IndustryRanking]:
    try:
        return await engine.industries_ranking()
    except Exception as e:
        raise _server_error("ranking industries", e)


@router.get("/industries/to-watch", response_model=IndustriesToWatch)
async def get_industries_to_watch(engine: EngineDep) -> IndustriesToWatch:
    """
    Expansion opportunities (small, high-converting) and industries needing
    strategy (large, low-converting), with the derived thresholds.
    """
    try:
        return await engine.industries_to_watch()
    except Exception as e:
        raise _server_error("classifying industries", e)


@router.get("/industries/new-last-month", response_model=NewIndustriesLastMonth)
async def get_new_industries_last_month(engine: EngineDep) -> NewIndustriesLastMonth:
    try:
        return await engine.new_industries_last_month()
    except Exception as e:
        raise _server_error("finding new industries", e)


# =============================================================================
# Sellers
# =============================================================================


@router.get("/sellers/metrics", response_model=List[SellerMetrics])
async def get_seller_metrics(engine: EngineDep) -> List[SellerMetrics]:
    try:
        return await engine.seller_metrics()
    except Exception as e:
        raise _server_error("computing seller metrics", e)


@router.get("/sellers/insights", response_model=List[SellerInsight])
async def get_seller_insights(engine: EngineDep) -> List[SellerInsight]:
    """Month-over-month seller observations."""
    try:
        return await engine.seller_insights()
    except Exception as e:
        raise _server_error("generating seller insights", e)


@router.get("/sellers/of-week", response_model=SellerOfWeek)
async def get_seller_of_week(
    engine: EngineDep,
    week_start: Optional[date] = Query(
        None, alias="weekStart", description="Monday of the week; current week by default"
    ),
) -> SellerOfWeek:
    """
    Raises:
        HTTPException 400: If weekStart is not a Monday
    """
    if week_start is not None and week_start.weekday() != 0:
        raise HTTPException(status_code=400, detail="weekStart must be a Monday")

    try:
        return await engine.seller_of_week(week_start)
    except Exception as e:
        raise _server_error("finding seller of the week", e)


@router.get("/sellers/annual-ranking", response_model=AnnualRanking)
async def get_annual_ranking(
    engine: EngineDep,
    year: Optional[int] = Query(None, ge=1970, le=9998, description="Defaults to the current year"),
) -> AnnualRanking:
    try:
        return await engine.annual_ranking(year)
    except Exception as e:
        raise _server_error("ranking sellers", e)


@router.get("/sellers/timeline", response_model=SellersTimeline)
async def get_sellers_timeline(
    engine: EngineDep,
    granularity: TimelineGranularity = Query(TimelineGranularity.WEEK),
) -> SellersTimeline:
    try:
        return await engine.sellers_timeline(granularity)
    except Exception as e:
        raise _server_error("building sellers timeline", e)


@router.get("/sellers/correlations", response_model=List[CorrelationEntry])
async def get_seller_correlations(engine: EngineDep) -> List[CorrelationEntry]:
    """Seller/dimension-value combinations that pass the relevance test."""
    try:
        return await engine.seller_correlations()
    except Exception as e:
        raise _server_error("analyzing seller correlations", e)


# =============================================================================
# Projections
# =============================================================================


@router.get("/projections", response_model=ProjectionResult)
async def get_projection(engine: EngineDep) -> ProjectionResult:
    """
    Next-week and next-month estimates with confidence, trends, a message
    and the current/projected daily timeline.
    """
    try:
        return await engine.projection()
    except Exception as e:
        raise _server_error("building projection", e)
