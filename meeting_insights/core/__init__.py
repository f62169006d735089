"""
Core infrastructure package for the Meeting Insights backend.

Provides:
- Configuration management via pydantic-settings
- An injectable clock for time-relative analytics
- Async PostgreSQL connectivity via asyncpg

FastAPI dependencies live in meeting_insights.core.dependencies and are
imported from there directly, since they build on the services layer:

    from meeting_insights.core import get_settings, init_db, close_db
    from meeting_insights.core.dependencies import EngineDep
"""

# =============================================================================
# Configuration
# =============================================================================

from meeting_insights.core.config import Settings, get_settings

# =============================================================================
# Clock
# =============================================================================

from meeting_insights.core.clock import Clock, clock_from_settings, fixed_clock, system_clock

# =============================================================================
# Database Connection Pool
# =============================================================================

from meeting_insights.core.database import close_db, get_db_pool, init_db

__all__ = [
    "Settings",
    "get_settings",
    "Clock",
    "clock_from_settings",
    "fixed_clock",
    "system_clock",
    "close_db",
    "get_db_pool",
    "init_db",
]
