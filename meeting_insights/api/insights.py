"""
FastAPI router module for narrated insights.

Each endpoint returns prose built from the numeric payloads in
meeting_insights.services.narrative. Responses carry a status: 'ok' when the
narrator produced the text, 'degraded' when the deterministic fallback was
used (narrator unconfigured or failing, or not enough data).
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from meeting_insights.core.dependencies import EngineDep
from meeting_insights.models import (
    NarrativeResult,
    SellerCorrelationInsight,
    SellerFeedback,
    TimelineGranularity,
    TimelineInsight,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/insights", tags=["insights"])


@router.get("/industries/distribution", response_model=NarrativeResult)
async def get_industry_distribution_insight(engine: EngineDep) -> NarrativeResult:
    try:
        return await engine.industry_distribution_insight()
    except Exception as e:
        logger.error(f"Error generating industry distribution insight: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error generating insight: {str(e)}")


@router.get("/industries/conversion", response_model=NarrativeResult)
async def get_industry_conversion_insight(engine: EngineDep) -> NarrativeResult:
    """Only industries with enough clients are narrated."""
    try:
        return await engine.industry_conversion_insight()
    except Exception as e:
        logger.error(f"Error generating industry conversion insight: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error generating insight: {str(e)}")


@router.get("/sellers/correlations", response_model=List[SellerCorrelationInsight])
async def get_seller_correlation_insights(
    engine: EngineDep,
    seller: Optional[str] = Query(None, description="Limit to one seller"),
) -> List[SellerCorrelationInsight]:
    try:
        return await engine.seller_correlation_insights(seller)
    except Exception as e:
        logger.error(f"Error generating seller correlation insights: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error generating insights: {str(e)}")


@router.get("/sellers/timeline", response_model=NarrativeResult)
async def get_seller_timeline_insight(
    engine: EngineDep,
    granularity: TimelineGranularity = Query(TimelineGranularity.MONTH),
) -> NarrativeResult:
    try:
        return await engine.seller_timeline_insight(granularity)
    except Exception as e:
        logger.error(f"Error generating seller timeline insight: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error generating insight: {str(e)}")


@router.get("/sellers/{seller}/feedback", response_model=SellerFeedback)
async def get_seller_feedback(seller: str, engine: EngineDep) -> SellerFeedback:
    """
    Industry assignment recommendations for one seller.

    Raises:
        HTTPException 404: If the seller has no processed meetings
    """
    try:
        feedback = await engine.seller_feedback(seller)
        if feedback is None:
            raise HTTPException(status_code=404, detail=f"Seller {seller} not found")
        return feedback
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error generating feedback for {seller}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error generating feedback: {str(e)}")


@router.get("/timeline", response_model=TimelineInsight)
async def get_timeline_insight(engine: EngineDep) -> TimelineInsight:
    """Key findings, reasons and recommendations over the monthly history."""
    try:
        return await engine.timeline_insight()
    except Exception as e:
        logger.error(f"Error generating timeline insight: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error generating insight: {str(e)}")


@router.get("/volume-conversion", response_model=NarrativeResult)
async def get_volume_conversion_insight(engine: EngineDep) -> NarrativeResult:
    try:
        return await engine.volume_conversion_insight()
    except Exception as e:
        logger.error(f"Error generating volume vs conversion insight: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error generating insight: {str(e)}")


@router.get("/pain-points", response_model=NarrativeResult)
async def get_pain_points_insight(engine: EngineDep) -> NarrativeResult:
    try:
        return await engine.pain_points_insight()
    except Exception as e:
        logger.error(f"Error generating pain points insight: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Error generating insight: {str(e)}")
