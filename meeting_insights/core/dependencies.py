"""
FastAPI dependency injection module for the Meeting Insights backend.

Key Dependencies Provided:
- get_settings_dependency / SettingsDep: the cached Settings singleton
- get_narrator / NarratorDep: the insight narrator built from settings
- get_record_source / RecordSourceDep: Postgres record source over the pool
- get_engine / EngineDep: an AnalyticsEngine wired to the above

Routers only depend on EngineDep; tests override get_engine (or its inputs)
through app.dependency_overrides.

Usage Examples:
    @router.get("/overview")
    async def get_overview(engine: EngineDep) -> OverviewMetrics:
        return await engine.overview()

    # In tests
    app.dependency_overrides[get_engine] = lambda: AnalyticsEngine(
        InMemoryRecordSource(records), clock=fixed_clock(date(2024, 11, 15))
    )
"""

import logging
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException

from meeting_insights.core.clock import clock_from_settings
from meeting_insights.core.config import Settings, get_settings
from meeting_insights.core.database import get_db_pool
from meeting_insights.services.engine import AnalyticsEngine
from meeting_insights.services.narrator import Narrator, narrator_from_settings
from meeting_insights.services.record_source import PostgresRecordSource, RecordSource

logger = logging.getLogger(__name__)


# =============================================================================
# Settings Dependency
# =============================================================================

def get_settings_dependency() -> Settings:
    """
    Return the Settings singleton instance.

    Thin wrapper around get_settings() so tests can do:

        app.dependency_overrides[get_settings_dependency] = lambda: mock_settings
    """
    return get_settings()


SettingsDep = Annotated[Settings, Depends(get_settings_dependency)]


# =============================================================================
# Collaborator Dependencies
# =============================================================================

@lru_cache()
def _cached_narrator() -> Narrator:
    return narrator_from_settings(get_settings())


def get_narrator() -> Narrator:
    """Narrator shared across requests; NullNarrator without ANTHROPIC_API_KEY."""
    return _cached_narrator()


async def get_record_source() -> RecordSource:
    """
    Postgres record source over the shared pool.

    Raises:
        HTTPException 503: If DATABASE_URL is not configured
    """
    try:
        pool = await get_db_pool()
    except RuntimeError as e:
        logger.error(f"Record store unavailable: {e}")
        raise HTTPException(status_code=503, detail="Record store is not configured")
    return PostgresRecordSource(pool)


NarratorDep = Annotated[Narrator, Depends(get_narrator)]
RecordSourceDep = Annotated[RecordSource, Depends(get_record_source)]


# =============================================================================
# Engine Dependency
# =============================================================================

def get_engine(
    source: RecordSourceDep,
    narrator: NarratorDep,
    settings: SettingsDep,
) -> AnalyticsEngine:
    """Build a per-request engine; the clock honors REFERENCE_DATE."""
    return AnalyticsEngine(
        source=source,
        narrator=narrator,
        clock=clock_from_settings(settings),
        settings=settings,
    )


# Usage: async def endpoint(engine: EngineDep)
EngineDep = Annotated[AnalyticsEngine, Depends(get_engine)]
