"""
Meeting Insights API package.

Router modules:
- analytics: Descriptive views, seller views and projections (/analytics)
- insights: Narrated insights with deterministic fallbacks (/insights)
"""

from fastapi import APIRouter

from meeting_insights.api.analytics import router as analytics_router
from meeting_insights.api.insights import router as insights_router

# Both routers carry their own prefix
api_router = APIRouter()
api_router.include_router(analytics_router)
api_router.include_router(insights_router)

__all__ = [
    "api_router",
    "analytics_router",
    "insights_router",
]
