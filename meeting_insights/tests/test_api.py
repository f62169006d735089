"""
Tests for the HTTP routes.

The engine dependency is overridden with an engine over the sample history;
the lifespan (database pool) is not started.
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from meeting_insights.core import dependencies
from meeting_insights.core.dependencies import get_engine
from meeting_insights.main import app


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestMeta:

    def test_health(self, client) -> None:
        response = client.get('/health')

        assert response.status_code == 200
        assert response.json() == {'status': 'healthy'}

    def test_root(self, client) -> None:
        assert client.get('/').status_code == 200


class TestAnalyticsRoutes:
    """Descriptive views over the sample history."""

    def test_overview(self, client) -> None:
        body = client.get('/analytics/overview').json()

        assert body['totalClients'] == 21
        assert body['closedDeals'] == 9

    def test_conversion(self, client) -> None:
        body = client.get('/analytics/conversion').json()

        assert {row['key'] for row in body['byIndustry']} == {'Retail', 'Health', 'Tech', 'Finance'}

    def test_timeline_rejects_inverted_range(self, client) -> None:
        response = client.get('/analytics/timeline', params={'start': '2024-11-10', 'end': '2024-11-01'})

        assert response.status_code == 400

    def test_seller_of_week_requires_monday(self, client) -> None:
        assert client.get('/analytics/sellers/of-week', params={'weekStart': '2024-11-12'}).status_code == 400

        response = client.get('/analytics/sellers/of-week', params={'weekStart': '2024-11-11'})

        assert response.status_code == 200
        assert response.json()['weekEnd'] == '2024-11-17'

    def test_sellers_timeline_granularity(self, client) -> None:
        body = client.get('/analytics/sellers/timeline', params={'granularity': 'month'}).json()

        assert body['granularity'] == 'month'
        assert all(len(point['period']) == 7 for point in body['points'])

    def test_invalid_granularity(self, client) -> None:
        response = client.get('/analytics/sellers/timeline', params={'granularity': 'day'})

        assert response.status_code == 422

    def test_projection(self, client) -> None:
        body = client.get('/analytics/projections').json()

        assert body['dataPoints'] == 4
        assert body['nextWeek']['confidence'] in {'high', 'medium', 'low'}

    def test_pain_points(self, client) -> None:
        body = client.get('/analytics/pain-points').json()

        assert body[0] == {'painPoint': 'Slow response times', 'count': 9, 'conversionRate': 55.56}

    def test_technical_requirements(self, client) -> None:
        body = client.get('/analytics/technical-requirements').json()

        assert body == [
            {'requirement': 'WhatsApp API', 'count': 17},
            {'requirement': 'CRM integration', 'count': 5},
        ]

    def test_industries_to_watch(self, client) -> None:
        body = client.get('/analytics/industries/to-watch').json()

        assert set(body) == {'expansionOpportunities', 'needsStrategy', 'thresholds'}


class TestInsightRoutes:
    """Narrated insights with the null narrator."""

    def test_distribution_is_degraded(self, client) -> None:
        body = client.get('/insights/industries/distribution').json()

        assert body['status'] == 'degraded'
        assert body['text']

    def test_pain_points_insight(self, client) -> None:
        body = client.get('/insights/pain-points').json()

        assert body['status'] == 'degraded'
        assert 'Slow response times' in body['text']

    def test_feedback_unknown_seller(self, client) -> None:
        assert client.get('/insights/sellers/Nobody/feedback').status_code == 404

    def test_feedback(self, client) -> None:
        body = client.get('/insights/sellers/Ana/feedback').json()

        assert body['seller'] == 'Ana'
        assert body['recommendations']

    def test_correlations_for_one_seller(self, client) -> None:
        body = client.get('/insights/sellers/correlations', params={'seller': 'Ana'}).json()

        assert [row['seller'] for row in body] == ['Ana']


class TestErrors:

    def test_unexpected_error_is_500(self, engine) -> None:
        engine.overview = AsyncMock(side_effect=ValueError('boom'))
        app.dependency_overrides[get_engine] = lambda: engine
        try:
            response = TestClient(app).get('/analytics/overview')
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 500
        assert 'boom' in response.json()['detail']

    def test_missing_database_is_503(self, monkeypatch, test_settings) -> None:
        monkeypatch.setattr(
            dependencies, 'get_db_pool', AsyncMock(side_effect=RuntimeError('DATABASE_URL not set'))
        )
        app.dependency_overrides[dependencies.get_settings_dependency] = lambda: test_settings
        try:
            response = TestClient(app).get('/analytics/overview')
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 503
