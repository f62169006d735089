"""
Pytest Configuration and Shared Fixtures for Meeting Insights Tests.

Provides:
- Custom markers (slow, integration, parity)
- A fixed clock (Friday 2024-11-15) so time-relative views are reproducible
- A MeetingRecord factory and a sample record history
- A mock asyncpg pool for the Postgres record source
- Fake narrators (scripted, failing) for narrated insights
- An AnalyticsEngine over an in-memory source
"""

from datetime import date, timedelta
from typing import Any, Callable, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest

from meeting_insights.core.clock import fixed_clock
from meeting_insights.core.config import Settings
from meeting_insights.models import MeetingRecord, NarrativeRequest
from meeting_insights.services.engine import AnalyticsEngine
from meeting_insights.services.record_source import InMemoryRecordSource


TODAY = date(2024, 11, 15)


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Register custom markers.

    - slow: deselect with -m "not slow"
    - integration: needs a real database or narrator
    - parity: pins documented numeric results
    """
    config.addinivalue_line('markers', 'slow: marks tests as slow (deselect with -m "not slow")')
    config.addinivalue_line('markers', 'integration: marks tests requiring external services')
    config.addinivalue_line('markers', 'parity: marks tests pinning documented numeric results')


# ============================================================
# RECORD FIXTURES
# ============================================================

def make_record(**overrides: Any) -> MeetingRecord:
    """Build a processed, open MeetingRecord dated TODAY unless overridden."""
    values = {
        'name': 'Client',
        'seller': 'Ana',
        'industry': 'Tech',
        'sentiment': 'neutral',
        'urgencyLevel': 'planned',
        'discoverySource': 'referral',
        'operationSize': 'medium',
        'interactionVolume': 40.0,
        'closed': False,
        'meetingDate': TODAY,
        'processed': True,
    }
    values.update(overrides)
    return MeetingRecord(**values)


@pytest.fixture
def record_factory() -> Callable[..., MeetingRecord]:
    return make_record


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def sample_records() -> List[MeetingRecord]:
    """
    Twelve weeks of history ending on TODAY.

    - Ana: Tech-heavy closer (Tech 4/5 closed)
    - Ben: Retail and Health, mostly open
    - Cleo: only two meetings, both Finance
    - One unprocessed record and one record without an industry
    - Pain points: "Slow response times" (9 mentions in two spellings, 5
      closed) and "Manual scheduling" (8 mentions, 2 closed)
    """
    records: List[MeetingRecord] = []
    start = TODAY - timedelta(weeks=11)

    for week in range(12):
        day = start + timedelta(weeks=week)
        records.append(make_record(
            name=f'Weekly {week}',
            seller='Ben',
            industry='Retail' if week % 2 == 0 else 'Health',
            sentiment='skeptical' if week % 3 == 0 else 'neutral',
            urgencyLevel='exploratory',
            discoverySource='ads',
            operationSize='small',
            interactionVolume=float(20 + week * 10),
            closed=week % 4 == 0,
            meetingDate=day,
            painPoints=('slow response times!',) if week % 3 == 0 else ('Manual scheduling',),
            technicalRequirements=('WhatsApp API',),
        ))

    for offset, closed in enumerate([True, True, False, True, True]):
        records.append(make_record(
            name=f'Tech {offset}',
            seller='Ana',
            industry='Tech',
            sentiment='positive',
            urgencyLevel='immediate',
            discoverySource='referral',
            operationSize='large',
            interactionVolume=150.0,
            closed=closed,
            meetingDate=TODAY - timedelta(days=offset * 9),
            painPoints=('Slow response times',),
            technicalRequirements=('CRM integration', 'WhatsApp API'),
        ))

    records.append(make_record(seller='Cleo', industry='Finance', closed=True,
                               meetingDate=TODAY - timedelta(days=20)))
    records.append(make_record(seller='Cleo', industry='Finance', closed=False,
                               meetingDate=TODAY - timedelta(days=2)))
    records.append(make_record(seller='Ana', industry='Tech', closed=True, processed=False,
                               meetingDate=TODAY - timedelta(days=1)))
    records.append(make_record(seller='Ben', industry=None, closed=False,
                               meetingDate=TODAY - timedelta(days=3)))

    return records


# ============================================================
# DATABASE MOCK FIXTURES
# ============================================================

@pytest.fixture
def mock_db_pool() -> AsyncMock:
    """
    Mock asyncpg pool whose acquire() yields a mock connection.

    Usage:
        mock_db_pool.acquire.return_value.__aenter__.return_value.fetch.return_value = rows
    """
    pool = AsyncMock()

    conn = AsyncMock()
    conn.fetch = AsyncMock(return_value=[])

    acquire_context = AsyncMock()
    acquire_context.__aenter__ = AsyncMock(return_value=conn)
    acquire_context.__aexit__ = AsyncMock(return_value=None)
    pool.acquire = Mock(return_value=acquire_context)
    pool.close = AsyncMock(return_value=None)

    return pool


# ============================================================
# SETTINGS FIXTURE
# ============================================================

@pytest.fixture
def test_settings() -> Settings:
    """Default policy settings, isolated from any .env file."""
    return Settings(_env_file=None, database_url=None, anthropic_api_key=None)


# ============================================================
# NARRATOR FAKES
# ============================================================

class ScriptedNarrator:
    """Configured narrator that returns a fixed response and records requests."""

    def __init__(self, response: str = 'Narrated insight.'):
        self.response = response
        self.requests: List[NarrativeRequest] = []

    def is_configured(self) -> bool:
        return True

    async def narrate(self, request: NarrativeRequest) -> str:
        self.requests.append(request)
        return self.response


class FailingNarrator:
    """Configured narrator whose every call raises."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error or ConnectionError('narrator unreachable')
        self.calls = 0

    def is_configured(self) -> bool:
        return True

    async def narrate(self, request: NarrativeRequest) -> str:
        self.calls += 1
        raise self.error


@pytest.fixture
def scripted_narrator() -> ScriptedNarrator:
    return ScriptedNarrator()


@pytest.fixture
def failing_narrator() -> FailingNarrator:
    return FailingNarrator()


# ============================================================
# ENGINE FIXTURE
# ============================================================

@pytest.fixture
def engine(sample_records: List[MeetingRecord], test_settings: Settings) -> AnalyticsEngine:
    """Engine over the sample history with the null narrator and a fixed clock."""
    return AnalyticsEngine(
        source=InMemoryRecordSource(sample_records),
        clock=fixed_clock(TODAY),
        settings=test_settings,
    )
